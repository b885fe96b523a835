import json
import re
from typing import Any, Dict, List, Optional, Union

from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def parse_json_safely(text: Optional[str]) -> Union[Dict[str, Any], List[Any], None]:
    """Parse JSON from model output, handling common LLM formatting issues.

    Handles:
    - Markdown code blocks (```json ... ```)
    - Prose before or after the JSON value
    - Trailing content after the first complete value

    Args:
        text: The text containing JSON

    Returns:
        Parsed JSON value or None if nothing parseable was found
    """
    if not text:
        return None

    cleaned_text = _CODE_FENCE.sub("", text.strip()).strip()

    try:
        return json.loads(cleaned_text)
    except json.JSONDecodeError as e:
        LOGGER.warning(f"Initial JSON parse failed: {e}, attempting repairs...")

    decoder = json.JSONDecoder()
    for start, char in enumerate(cleaned_text):
        if char not in "{[":
            continue
        try:
            value, _ = decoder.raw_decode(cleaned_text, start)
            LOGGER.info(f"Parsed JSON value starting at position {start}")
            return value
        except json.JSONDecodeError:
            continue

    LOGGER.error("Failed to parse JSON from model output")
    return None
