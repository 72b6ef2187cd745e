"""Anchor based amount parsing for '<euros>,<cents>' formatted prices."""

import re
import string

from ..errors import AnchorNotFound, InvalidAmountFormat

# Currency symbols and stray words around the amount
_TRIM_CHARS = " \n\t€" + string.ascii_letters

_DIGITS = re.compile(r"[0-9]+")

MAX_CENTS = 0xFFFF


def extract_amount_between(haystack: str, before: str, after: str) -> int:
    """Find a price formatted as '%d,%d' between two anchor strings.

    The first comma is treated as the decimal separator and dropped, so
    "12,34" becomes 1234 cents. Any further comma makes the amount invalid.

    Args:
        haystack: Plain text to search
        before: Text that comes immediately before the price
        after: Text that comes immediately after the price

    Returns:
        int: Price in cents

    Raises:
        AnchorNotFound: If either anchor is missing
        InvalidAmountFormat: If the field is not a number fitting in 16 bits
    """
    before_index = haystack.find(before)
    if before_index == -1:
        raise AnchorNotFound(f"Text before amount not found: {before!r}")

    start = before_index + len(before)
    end = haystack.find(after, start)
    if end == -1:
        raise AnchorNotFound(f"Text after amount not found: {after!r}")

    field = haystack[start:end].strip(_TRIM_CHARS)
    cents = field.replace(",", "", 1)

    if not _DIGITS.fullmatch(cents):
        raise InvalidAmountFormat(f"Not a valid amount: {field!r}")

    value = int(cents)
    if value > MAX_CENTS:
        raise InvalidAmountFormat(f"Amount out of range: {field!r}")

    return value


def format_cents(value: int) -> str:
    """Render cents as '<euros>,<cents>' with two cent digits."""
    return f"{value // 100},{value % 100:02d}"
