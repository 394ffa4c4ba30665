import asyncio
from typing import Any, Dict, List, Optional, Union

import httpx
from httpx import HTTPStatusError, TimeoutException
from google import genai
from google.genai import types
from pydantic import ValidationError as PydanticValidationError

from tablefill.core.exceptions import APIClientError, APITimeoutError
from tablefill.schemas.provider_responses import ChatCompletionResponse
from tablefill.utils.logging import get_logger

LOGGER = get_logger(__name__)

Contents = Union[str, List[Union[str, Dict[str, Any]]]]


class BaseLLMClient:
    """Base client for LLM API interactions.

    Handles common logic for HTTP requests, retries, timeout management,
    and error logging.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = 60,
        max_retries: int = 3,
        retry_delay: float = 2,
    ):
        """Initialize the LLM client.

        Args:
            api_key: API key for authentication
            base_url: Base URL for the API
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts (1 disables retries)
            retry_delay: Base delay for exponential backoff
        """
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.logger = LOGGER

    async def call_api(
        self,
        endpoint: str = "",
        method: str = "POST",
        payload: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Call the API with retry logic.

        Args:
            endpoint: API endpoint (appended to base_url)
            method: HTTP method (POST, GET, etc.)
            payload: JSON payload
            headers: Additional headers

        Returns:
            Parsed JSON response

        Raises:
            APIClientError: If the API call fails after retries or the body is not JSON
            APITimeoutError: If the API call times out after retries
        """
        url = f"{self.base_url}{endpoint}" if endpoint else self.base_url

        default_headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        if headers:
            default_headers.update(headers)

        self.logger.debug(
            f"Calling LLM API: {url}",
            extra={"method": method, "timeout": self.timeout}
        )

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for attempt in range(self.max_retries):
                try:
                    if method.upper() == "GET":
                        response = await client.get(url, headers=default_headers, params=payload)
                    else:
                        response = await client.post(url, headers=default_headers, json=payload)

                    response.raise_for_status()

                except HTTPStatusError as e:
                    await self._handle_http_error(e, attempt, url)
                    continue

                except TimeoutException as e:
                    await self._handle_timeout_error(e, attempt, url)
                    continue

                except httpx.HTTPError as e:
                    await self._handle_generic_error(e, attempt, url)
                    continue

                try:
                    body = response.json()
                except ValueError as e:
                    raise APIClientError(f"Non-JSON response from {url}", original_error=e) from e

                if not isinstance(body, dict):
                    raise APIClientError(f"Unexpected JSON payload from {url}: {type(body).__name__}")
                return body

        raise APIClientError(f"Failed to call API {url} after {self.max_retries} attempts")

    async def _handle_http_error(self, error: HTTPStatusError, attempt: int, url: str):
        """Handle HTTP status errors."""
        status_code = error.response.status_code

        try:
            error_body = error.response.text
        except httpx.ResponseNotRead:
            error_body = "Could not read response body"

        self.logger.warning(
            f"API HTTP error (Attempt {attempt + 1}/{self.max_retries})",
            extra={
                "url": url,
                "status_code": status_code,
                "error_body": error_body[:500]
            }
        )

        # Don't retry on client errors (4xx) unless it's rate limiting (429)
        if 400 <= status_code < 500 and status_code != 429:
            raise APIClientError(f"API Client Error {status_code}: {error_body[:500]}", original_error=error) from error

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APIClientError(f"API HTTP Error {status_code} after retries", original_error=error) from error

    async def _handle_timeout_error(self, error: TimeoutException, attempt: int, url: str):
        """Handle timeout errors."""
        self.logger.warning(
            f"API Timeout (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": url}
        )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APITimeoutError(f"API Timeout after {self.max_retries} attempts", original_error=error) from error

    async def _handle_generic_error(self, error: Exception, attempt: int, url: str):
        """Handle transport errors."""
        self.logger.warning(
            f"API Transport Error (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": url, "error": str(error)}
        )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APIClientError(f"API Error: {str(error)}", original_error=error) from error

    async def _wait_before_retry(self, attempt: int):
        """Exponential backoff wait."""
        wait_time = self.retry_delay * (2 ** attempt)
        await asyncio.sleep(wait_time)


class ChatCompletionsClient:
    """Client for OpenAI-compatible chat completion endpoints.

    Used for the OpenAI and Perplexity search providers and for the
    schema-constrained synthesis call.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://api.openai.com/v1/chat/completions",
        timeout: float = 60,
        max_retries: int = 3,
        retry_delay: float = 2,
    ):
        """Initialize chat completions client.

        Args:
            api_key: Bearer token for the endpoint
            model: Model name to use (e.g., "gpt-4o-mini-2024-07-18")
            base_url: Full chat completions URL
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts
            retry_delay: Base delay for exponential backoff
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries

        self.client = BaseLLMClient(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
        )

        LOGGER.info(f"Initialized chat completions client with model {self.model}")

    def _build_payload(
        self,
        contents: Contents,
        system_instruction: Optional[str],
        generation_config: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        messages = []

        if system_instruction:
            messages.append({
                "role": "system",
                "content": system_instruction
            })

        if isinstance(contents, str):
            messages.append({
                "role": "user",
                "content": contents
            })
        else:
            for part in contents:
                if isinstance(part, str):
                    messages.append({"role": "user", "content": part})
                elif isinstance(part, dict) and "role" in part:
                    messages.append({"role": part["role"], "content": part.get("content", "")})
                elif isinstance(part, dict) and "text" in part:
                    messages.append({"role": "user", "content": part["text"]})

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
        }

        config = generation_config or {}
        if "temperature" in config:
            payload["temperature"] = config["temperature"]
        if "max_output_tokens" in config:
            payload["max_tokens"] = config["max_output_tokens"]
        if config.get("web_search"):
            # Search models reject sampling parameters
            payload["web_search_options"] = {}
            payload.pop("temperature", None)
        if "response_schema" in config:
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": config.get("response_schema_name", "output"),
                    "strict": True,
                    "schema": config["response_schema"],
                },
            }

        return payload

    async def complete(
        self,
        contents: Contents,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> ChatCompletionResponse:
        """Run a chat completion and return the validated response.

        Raises:
            APIClientError: If the call fails or the response shape is invalid
        """
        payload = self._build_payload(contents, system_instruction, generation_config)
        response = await self.client.call_api(endpoint="", method="POST", payload=payload)

        try:
            return ChatCompletionResponse.model_validate(response)
        except PydanticValidationError as e:
            LOGGER.error(f"Unexpected chat completion response format from {self.base_url}: {e}")
            raise APIClientError("Invalid response format from chat completions API", original_error=e) from e

    async def generate_content(
        self,
        contents: Contents,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Generate content and return the first choice's text.

        Args:
            contents: Input content (string or list of parts/messages)
            system_instruction: Optional system instruction
            generation_config: Optional config (temperature, max_output_tokens,
                response_schema, web_search)

        Returns:
            Generated text response

        Raises:
            APIClientError: If generation fails
        """
        completion = await self.complete(contents, system_instruction, generation_config)
        content = completion.content
        if not content:
            LOGGER.warning(f"Empty response from {self.base_url}")
        return content


class GeminiClient:
    """Wrapper for Google Gemini API client."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        timeout: float = 60,
        max_retries: int = 3,
    ):
        """Initialize Gemini client.

        Args:
            api_key: Gemini API key
            model: Model name to use
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts
        """
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_retries = max(1, max_retries)

        try:
            self.client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=int(timeout * 1000)),
            )
            LOGGER.info(f"Initialized Gemini client with model {self.model}")
        except Exception as e:
            LOGGER.error(f"Failed to initialize Gemini client: {e}")
            raise APIClientError(f"Failed to initialize Gemini client: {e}", original_error=e) from e

    def _build_config(
        self,
        system_instruction: Optional[str],
        generation_config: Optional[Dict[str, Any]],
    ) -> types.GenerateContentConfig:
        config = types.GenerateContentConfig(temperature=0.0)

        if generation_config:
            if "temperature" in generation_config:
                config.temperature = generation_config["temperature"]
            if "max_output_tokens" in generation_config:
                config.max_output_tokens = generation_config["max_output_tokens"]
            if "response_mime_type" in generation_config:
                config.response_mime_type = generation_config["response_mime_type"]
            if "response_schema" in generation_config:
                config.response_schema = generation_config["response_schema"]
            if generation_config.get("web_search"):
                config.tools = [types.Tool(google_search=types.GoogleSearch())]

        if system_instruction:
            config.system_instruction = system_instruction

        return config

    async def generate_content(
        self,
        contents: Contents,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Generate content using Gemini model.

        The text parts of the first candidate are joined with newlines.

        Args:
            contents: Input content (string or list of parts)
            system_instruction: Optional system instruction
            generation_config: Optional generation config (temperature, web_search, etc.)

        Returns:
            Generated text response

        Raises:
            APIClientError: If generation fails or the response carries no text parts
        """
        config = self._build_config(system_instruction, generation_config)

        for attempt in range(self.max_retries):
            try:
                response = await self.client.aio.models.generate_content(
                    model=self.model,
                    contents=contents,
                    config=config
                )
                return self._join_text_parts(response)

            except APIClientError:
                raise

            except Exception as e:
                LOGGER.warning(
                    f"Gemini API error (Attempt {attempt + 1}/{self.max_retries}): {e}"
                )
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(2 ** attempt)
                else:
                    LOGGER.error(f"Gemini generation failed after retries: {e}", exc_info=True)
                    raise APIClientError(f"Gemini generation failed: {e}", original_error=e) from e

        raise APIClientError("Gemini generation failed")

    @staticmethod
    def _join_text_parts(response: Any) -> str:
        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            raise APIClientError("Invalid response from Gemini: no candidates")

        content = getattr(candidates[0], "content", None)
        parts = getattr(content, "parts", None) if content is not None else None
        if not parts:
            raise APIClientError("Invalid response from Gemini: no content parts")

        texts = [part.text for part in parts if getattr(part, "text", None)]
        if not texts:
            raise APIClientError("Invalid response from Gemini: no text parts")
        return "\n".join(texts)
