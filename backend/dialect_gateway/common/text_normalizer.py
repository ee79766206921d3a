"""
Text Normalization Module

Validates and cleans text before it is embedded in an outbound or inbound
JSON payload, so every payload written by the gateway is valid UTF-8.
"""

import json
import unicodedata
from typing import Any

from dialect_gateway.common.errors import EncodingError

# Control characters that survive normalization
_ALLOWED_CONTROLS = frozenset("\r\n\t")


def _is_allowed(ch: str) -> bool:
    category = unicodedata.category(ch)
    # Lone surrogates cannot be encoded as UTF-8
    if category == "Cs":
        return False
    if category == "Cc" and ch not in _ALLOWED_CONTROLS:
        return False
    return True


def is_valid_text(value: str) -> bool:
    """
    Check whether text can be embedded as-is

    Args:
        value: Text to check

    Returns:
        bool: True when every code point is encodable and no control
        character other than CR, LF or TAB is present

    Examples:
        >>> is_valid_text("hello\\n")
        True
        >>> is_valid_text("bad\\x00byte")
        False
    """
    return all(_is_allowed(ch) for ch in value)


def sanitize(value: str) -> str:
    """
    Remove invalid code points and disallowed control characters

    All other characters are kept in their original order. Applying the
    function twice gives the same result as applying it once.

    Args:
        value: Text to clean

    Returns:
        str: Cleaned text (possibly empty)

    Examples:
        >>> sanitize("a\\x07b\\tc")
        'ab\\tc'
    """
    if not value:
        return ""
    if is_valid_text(value):
        return value
    return "".join(ch for ch in value if _is_allowed(ch))


def sanitize_bytes(data: bytes) -> bytes:
    """
    Clean a UTF-8 buffer (normally serialized JSON)

    Invalid byte sequences are dropped and the text rule of :func:`sanitize`
    is applied to the decoded content.

    Args:
        data: Raw bytes expected to hold UTF-8 text

    Returns:
        bytes: Valid UTF-8 bytes
    """
    if not data:
        return b""
    text = data.decode("utf-8", errors="ignore")
    return sanitize(text).encode("utf-8")


def encode_structured(value: Any) -> str:
    """
    JSON-encode structured content on the strict path

    Structured content is never silently repaired because dropping characters
    could break its own schema.

    Args:
        value: JSON-serializable structured content (lists, dicts)

    Returns:
        str: JSON text

    Raises:
        TypeError/ValueError: Value is not JSON serializable
        EncodingError: Encoded text contains invalid code points
    """
    text = json.dumps(value, ensure_ascii=False)
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise EncodingError(
            message="Structured content contains invalid UTF-8 characters",
            details={"position": e.start},
        ) from e
    return text


def sanitize_structured(value: Any) -> str:
    """
    JSON-encode structured content and clean the resulting bytes

    Used where structured content is flattened into a text field, so a
    lossy repair is acceptable.
    """
    text = json.dumps(value, ensure_ascii=False)
    raw = text.encode("utf-8", errors="surrogatepass")
    return sanitize_bytes(raw).decode("utf-8")
