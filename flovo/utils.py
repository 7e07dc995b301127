import json
import re
from typing import Any, Dict, Optional, Tuple

FENCED_JSON_RE = re.compile(r"```json[ \t]*\r?\n?([\s\S]*?)```", re.IGNORECASE)

_DECODER = json.JSONDecoder()


def extract_fenced_json(text: str) -> Optional[str]:
    """Purpose: Return the body of the first ```json fenced block in a model reply.
    Inputs/Outputs: Input is raw text; output is the stripped block body or None.
    Side Effects / State: None; pure function.
    Dependencies: Uses FENCED_JSON_RE; called by the response parser.
    Failure Modes: Returns None when no tagged fence exists; an unterminated fence
        does not match.
    If Removed: Structured product/image replies are delivered as raw JSON text.
    Testing Notes: Check fences with and without a newline after the tag.
    """
    if not text:
        return None
    match = FENCED_JSON_RE.search(text)
    if not match:
        return None
    return match.group(1).strip()


def safe_json_loads(text: str) -> Optional[Any]:
    """Purpose: Parse a JSON document from model output without raising.
    Inputs/Outputs: Input is raw text; output is the decoded value or None.
    Side Effects / State: None; pure function.
    Dependencies: json.loads.
    Failure Modes: Returns None on JSONDecodeError, nesting too deep to decode
        (RecursionError) or empty input.
    If Removed: Every caller has to guard its own json.loads.
    Testing Notes: Valid JSON decodes; truncated JSON returns None.
    """
    if not text:
        return None
    try:
        return json.loads(text)
    except (json.JSONDecodeError, RecursionError):
        return None


def decode_object_at(text: str, start: int) -> Optional[Tuple[Dict[str, Any], int]]:
    """Purpose: Decode the JSON object that begins at text[start] and locate its end.
    Inputs/Outputs: Inputs are text and the index of an opening brace; output is
        (object, end_index) or None.
    Side Effects / State: None; pure function.
    Dependencies: json.JSONDecoder.raw_decode, which tracks nesting and strings, so
        braces inside payload values do not end the object early.
    Failure Modes: Returns None when decoding fails (including RecursionError on
        pathologically deep nesting) or the value is not an object.
    If Removed: Intent payloads fall back to brace counting that breaks on nesting.
    Testing Notes: Nested objects and trailing prose after the object both decode.
    """
    # raw_decode stops at the end of the first complete value and ignores the rest.
    try:
        value, end = _DECODER.raw_decode(text, start)
    except (json.JSONDecodeError, RecursionError):
        return None
    if not isinstance(value, dict):
        return None
    return value, end


def truncate(text: str, limit: int = 100) -> str:
    """Shorten text for log previews."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def mask_contact_value(value: object) -> str:
    """Purpose: Mask contact-like values for safe logging.
    Inputs/Outputs: Input is any value; output is a masked string with last digits only.
    Side Effects / State: None.
    Dependencies: Uses regex digit extraction.
    Failure Modes: Non-numeric inputs yield a generic mask.
    If Removed: Logs may expose customer phone numbers.
    Testing Notes: Verify outputs for short and long numeric strings.
    """
    if value is None:
        return ""
    digits = re.findall(r"\d", str(value))
    if len(digits) < 4:
        return "***"
    return "***" + "".join(digits[-3:])
