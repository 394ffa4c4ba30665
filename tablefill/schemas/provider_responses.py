"""Pydantic models for the provider wire responses we depend on.

Only the fields actually read are declared; everything else is ignored so
that additive upstream changes do not break parsing.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """Assistant message of a chat completion."""

    model_config = ConfigDict(extra="ignore")

    role: Optional[str] = None
    content: Optional[str] = None
    refusal: Optional[str] = None


class ChatChoice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    index: int = 0
    message: ChatMessage
    finish_reason: Optional[str] = None


class ChatCompletionResponse(BaseModel):
    """OpenAI-compatible chat completion (OpenAI, Perplexity)."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    model: Optional[str] = None
    choices: List[ChatChoice] = Field(..., min_length=1)
    # Perplexity returns the URLs it cited alongside the message
    citations: List[str] = Field(default_factory=list)

    @property
    def content(self) -> str:
        """Text of the first choice, or an empty string."""
        return self.choices[0].message.content or ""
