import json
import re
from typing import Any, Dict, List, Union

from tablefill.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Trailing punctuation that commonly follows a URL in prose or markdown.
_URL_PATTERN = re.compile(r"https?://[^\s<>\"'`\]\[)(]+")
_URL_TRAILING = ".,;:!?*"


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code block (```json ... ```) if present."""
    cleaned_text = text.strip()
    if cleaned_text.startswith("```json"):
        cleaned_text = cleaned_text[7:]
    elif cleaned_text.startswith("```"):
        cleaned_text = cleaned_text[3:]

    if cleaned_text.endswith("```"):
        cleaned_text = cleaned_text[:-3]

    return cleaned_text.strip()


def parse_json_strict(text: str) -> Union[Dict[str, Any], List[Any]]:
    """Parse JSON returned by a schema-constrained model call.

    Unlike a lenient parser this never guesses at object boundaries or merges
    fragments: anything other than a single JSON document raises.

    Args:
        text: The model output

    Returns:
        Parsed JSON value

    Raises:
        ValueError: If the text is empty or not valid JSON
    """
    if not text or not text.strip():
        raise ValueError("Empty response")

    cleaned_text = strip_code_fences(text)
    try:
        return json.loads(cleaned_text)
    except json.JSONDecodeError as e:
        LOGGER.debug(f"Strict JSON parse failed at position {e.pos}: {e.msg}")
        raise ValueError(f"Invalid JSON: {e}") from e


def extract_urls(text: str) -> List[str]:
    """Return every http(s) URL in the text, in order of first appearance."""
    if not text:
        return []

    urls: List[str] = []
    seen = set()
    for match in _URL_PATTERN.finditer(text):
        url = match.group(0).rstrip(_URL_TRAILING)
        if url and url not in seen:
            seen.add(url)
            urls.append(url)
    return urls
