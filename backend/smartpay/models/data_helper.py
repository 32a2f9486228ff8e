"""
Field Format Helpers

Processor field formats:
- AN: alphanumeric text with punctuation, printable characters only
- ANS: AN plus symbol characters (currency signs, math symbols, etc.)

Display fields are a common injection vector into the hosted payment page,
so markup is rejected on validation and stripped on sanitization.
"""
import re
import unicodedata
from typing import Optional

from ..exceptions import InvalidFieldFormatError


_SCRIPT_STYLE_PATTERN = re.compile(r"<(script|style)[^>]*?>.*?</\1>", re.IGNORECASE | re.DOTALL)
_TAG_PATTERN = re.compile(r"<[^>]*>")
_ALLOWED_CONTROL = {"\r", "\n", "\t"}


def strip_tags(value: str) -> str:
    """
    Strip all markup from a string.

    Script and style blocks are removed together with their content,
    other tags keep their inner text. Result is trimmed.
    """
    value = _SCRIPT_STYLE_PATTERN.sub("", value)
    value = _TAG_PATTERN.sub("", value)

    return value.strip()


def sanitize_an(value: str, length: int) -> str:
    """
    Sanitize a value to AN format with a maximum length.

    Args:
        value: Raw input, may contain markup
        length: Maximum number of characters (code points)

    Returns:
        Value without markup, truncated to length

    Example:
        sanitize_an("test <strong>abcd</strong> 1234", 20) == "test abcd 1234"
    """
    return strip_tags(value)[:length]


def _is_an_character(char: str) -> bool:
    if char in _ALLOWED_CONTROL:
        return True

    if char.isascii():
        return char.isprintable()

    return unicodedata.category(char)[0] in "LMNPZ"


def _is_ans_character(char: str) -> bool:
    return _is_an_character(char) or unicodedata.category(char)[0] == "S"


def _validate(value, length: int, field: Optional[str], allowed, format_name: str) -> bool:
    label = field or "value"

    if not isinstance(value, str):
        raise InvalidFieldFormatError(
            f"Field `{label}` value must be a string.",
            {"field": label}
        )

    if value.strip() == "":
        raise InvalidFieldFormatError(
            f"Field `{label}` value must not be empty.",
            {"field": label}
        )

    if len(value) > length:
        raise InvalidFieldFormatError(
            f"Field `{label}` value \"{value}\" can not be longer then `{length}`.",
            {"field": label, "max_length": length}
        )

    if strip_tags(value) != value.strip():
        raise InvalidFieldFormatError(
            f"Field `{label}` value \"{value}\" does not match {format_name} format.",
            {"field": label, "format": format_name}
        )

    if not all(allowed(char) for char in value):
        raise InvalidFieldFormatError(
            f"Field `{label}` value contains characters not allowed in {format_name} format.",
            {"field": label, "format": format_name}
        )

    return True


def validate_an(value: str, length: int, field: Optional[str] = None) -> bool:
    """
    Validate AN format.

    Leading and trailing whitespace is tolerated.

    Raises:
        InvalidFieldFormatError: If value does not match `AN..max length`
    """
    return _validate(value, length, field, _is_an_character, "AN")


def validate_ans(value: str, length: int, field: Optional[str] = None) -> bool:
    """
    Validate ANS format.

    Raises:
        InvalidFieldFormatError: If value does not match `ANS..max length`
    """
    return _validate(value, length, field, _is_ans_character, "ANS")


def validate_null_or_an(value: Optional[str], length: int, field: Optional[str] = None) -> bool:
    """Validate AN format, allowing the field to be absent."""
    if value is None:
        return True

    return validate_an(value, length, field)


def validate_null_or_ans(value: Optional[str], length: int, field: Optional[str] = None) -> bool:
    """Validate ANS format, allowing the field to be absent."""
    if value is None:
        return True

    return validate_ans(value, length, field)
