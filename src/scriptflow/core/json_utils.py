"""JSON parsing utilities for untrusted model output.

Text returned by a language model is treated as data. These helpers never
evaluate anything: they strip markdown fences, try a strict parse, and fall
back to the first balanced ``{...}`` object found in the text.
"""

import json
import logging
import re
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Prevent memory exhaustion from pathological responses
DEFAULT_MAX_JSON_SIZE = 10 * 1024 * 1024  # 10MB

_LOG_PREVIEW_LENGTH = 100

_FENCE_PATTERN = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n(.*?)\n?```\s*$", re.DOTALL)


def _preview(text: str) -> str:
    return text[:_LOG_PREVIEW_LENGTH] if len(text) > _LOG_PREVIEW_LENGTH else text


def try_parse_json(
    value: str,
    *,
    max_size: int = DEFAULT_MAX_JSON_SIZE,
) -> tuple[bool, Any]:
    """Attempt to parse a string as JSON.

    Returns:
        ``(True, parsed_value)`` if parsing succeeded, ``(False, value)`` otherwise

    Examples:
        >>> try_parse_json('{"a": 1}')
        (True, {'a': 1})
        >>> try_parse_json('not json')
        (False, 'not json')
    """
    if not isinstance(value, str):
        return (False, value)

    text = value.strip()
    if not text:
        return (False, value)

    if len(text) > max_size:
        logger.warning(f"Skipping JSON parse: string exceeds size limit ({len(text):,} > {max_size:,} bytes)")
        return (False, value)

    if text[0] not in '{["tfn-0123456789':
        return (False, value)

    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, ValueError) as e:
        logger.debug(f"String is not valid JSON: {type(e).__name__}", extra={"preview": _preview(text)})
        return (False, value)
    return (True, parsed)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if the whole text is fenced."""
    stripped = text.strip()
    match = _FENCE_PATTERN.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def extract_first_json_object(text: str, *, max_size: int = DEFAULT_MAX_JSON_SIZE) -> Optional[str]:
    """Find the first balanced ``{...}`` substring, respecting JSON strings.

    Args:
        text: Arbitrary text that may contain a JSON object among prose
        max_size: Texts longer than this are not scanned

    Returns:
        The object's source text, or None if no balanced object exists
    """
    if len(text) > max_size:
        logger.warning(f"Skipping JSON object search: text exceeds size limit ({len(text):,} > {max_size:,} bytes)")
        return None
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for pos in range(start, len(text)):
            char = text[pos]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : pos + 1]
        # Unbalanced from this brace; try the next one
        start = text.find("{", start + 1)
    return None


def parse_json_object(text: str, *, max_size: int = DEFAULT_MAX_JSON_SIZE) -> Optional[dict[str, Any]]:
    """Parse model output into a JSON object using the fence/strict/substring ladder.

    Returns:
        The parsed dict, or None if no JSON object could be recovered
    """
    if not isinstance(text, str):
        return None
    if len(text) > max_size:
        logger.warning(f"Ignoring model output: text exceeds size limit ({len(text):,} > {max_size:,} bytes)")
        return None

    candidate = strip_code_fences(text)
    success, parsed = try_parse_json(candidate)
    if success and isinstance(parsed, dict):
        return parsed

    embedded = extract_first_json_object(candidate)
    if embedded is not None:
        success, parsed = try_parse_json(embedded)
        if success and isinstance(parsed, dict):
            logger.debug("Recovered JSON object embedded in surrounding text")
            return parsed

    logger.debug("No JSON object found in text", extra={"preview": _preview(text)})
    return None
