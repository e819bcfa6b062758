"""Locate and parse the JSON object in free-form model output."""
import json
import logging
from typing import Any

logger = logging.getLogger(__name__)


def extract_json_object(text: str) -> str | None:
    """
    Return the first balanced top-level {...} substring of text.

    Tolerates leading prose, trailing commentary and code fences. Braces
    are counted naively from the first "{"; no attempt is made to fix a
    mismatched object, which is left to the caller's strict retry.

    Args:
        text: Raw model output

    Returns:
        The candidate object text, or None if no balanced object exists
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    for i in range(start, len(text)):
        ch = text[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1

        if depth == 0:
            return text[start : i + 1]

    return None


def parse_json_object(text: str) -> dict[str, Any] | None:
    """Parse text as a JSON object; None on any parse failure or non-object JSON."""
    try:
        data = json.loads(text)
    except (ValueError, TypeError, RecursionError) as e:
        logger.warning(f"Model did not return valid JSON: {e}")
        return None

    if not isinstance(data, dict):
        logger.warning(f"Model returned JSON {type(data).__name__}, expected object")
        return None
    return data


def extract_and_parse(raw: str) -> tuple[str, dict[str, Any] | None]:
    """
    Extract then parse.

    When no balanced object is found the raw text itself is parsed, so a
    bare object with no surrounding prose still succeeds.

    Returns:
        (extracted_text, parsed_object_or_None)
    """
    extracted = extract_json_object(raw)
    if extracted is None:
        extracted = raw
    return extracted, parse_json_object(extracted)


__all__ = ["extract_json_object", "parse_json_object", "extract_and_parse"]
