"""
Shared money parsing utilities.

Handles the number shapes seen in receipt text:
- US: 1,234.56
- European decimal comma: 7,75 or 1.234,56
- Currency prefixes: $12.34, € 7,75, £3.10
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Iterable, Iterator, List, Optional, Tuple
import re

# A decimal number as it appears in receipt text: US thousands grouping with a
# dot decimal (1,234.56), European dot grouping with a comma decimal
# (1.234,56), a plain dot decimal, or a plain decimal comma with two digits.
DECIMAL_NUMBER = (
    r'\d{1,3}(?:,\d{3})+\.\d+'
    r'|\d{1,3}(?:\.\d{3})+,\d{2}(?![\d,])'
    r'|\d+\.\d+'
    r'|\d+,\d{2}(?![\d,])'
)

# Receipt totals above this are treated as OCR noise (card numbers, phones).
MAX_AMOUNT = Decimal('1000000')

CENTS = Decimal('0.01')

_DECIMAL_NUMBER_RE = re.compile(rf'(?<![\d.,])(?:{DECIMAL_NUMBER})(?!\d*[.,]\d)')


class MoneyFormat(Enum):
    """Money format locale hints."""
    US = "US"  # 1,234.56
    EUROPEAN = "EUROPEAN"  # 1.234,56 or 7,75
    AUTO = "AUTO"  # Auto-detect based on patterns


def parse_money(
    amount_str: str,
    format_hint: Optional[MoneyFormat] = None
) -> Optional[Decimal]:
    """
    Parse a money string into a non-negative Decimal.

    Args:
        amount_str: String containing amount (e.g., "$1,234.56", "7,75")
        format_hint: Optional locale hint (US, EUROPEAN, AUTO)

    Returns:
        Decimal amount or None if parsing fails

    Examples:
        >>> parse_money("$1,234.56")
        Decimal('1234.56')
        >>> parse_money("7,75")
        Decimal('7.75')
    """
    if not amount_str or not isinstance(amount_str, str):
        return None

    # Strip currency symbols and codes
    cleaned = re.sub(r'[$£€¥]\s*|[A-Z]{3}\s*', '', amount_str.strip(), flags=re.IGNORECASE)
    cleaned = cleaned.strip()

    if not cleaned or cleaned.startswith('-'):
        return None

    detected_format = format_hint or MoneyFormat.AUTO
    if detected_format == MoneyFormat.AUTO:
        detected_format = _detect_money_format(cleaned)

    if detected_format == MoneyFormat.EUROPEAN:
        result = _parse_european_format(cleaned)
    else:
        result = _parse_us_format(cleaned)

    if result is None or result < 0 or result >= MAX_AMOUNT:
        return None

    return result


def _detect_money_format(amount_str: str) -> MoneyFormat:
    """
    Auto-detect money format based on separator patterns.

    - Ends with ,XX (comma + 2 digits): European
    - Dot before the last comma: European
    - Otherwise: US
    """
    if re.search(r',\d{2}$', amount_str):
        return MoneyFormat.EUROPEAN

    if '.' in amount_str and ',' in amount_str:
        if amount_str.index('.') < amount_str.rindex(','):
            return MoneyFormat.EUROPEAN

    return MoneyFormat.US


def _parse_us_format(amount_str: str) -> Optional[Decimal]:
    """Parse US format: comma thousands separator, dot decimal separator."""
    cleaned = amount_str.replace(',', '').replace(' ', '')
    try:
        return Decimal(cleaned)
    except (InvalidOperation, ValueError):
        return None


def _parse_european_format(amount_str: str) -> Optional[Decimal]:
    """Parse European format: dot or space thousands separator, comma decimal."""
    cleaned = amount_str.replace('.', '').replace(' ', '').replace(',', '.')
    try:
        return Decimal(cleaned)
    except (InvalidOperation, ValueError):
        return None


def find_decimal_numbers(text: str) -> List[Decimal]:
    """
    Return every decimal number in the text, in order of appearance.

    Integers are ignored: receipts print money with a decimal part, and bare
    integers are mostly quantities, phone numbers and dates.
    """
    return [value for value, _ in iter_decimal_numbers(text)]


def iter_decimal_numbers(text: str) -> Iterator[Tuple[Decimal, re.Match]]:
    """Like find_decimal_numbers, also yielding each number's match."""
    for match in _DECIMAL_NUMBER_RE.finditer(text):
        value = parse_money(match.group(0))
        if value is not None:
            yield value, match


def largest(amounts: Iterable[Decimal]) -> Optional[Decimal]:
    """Largest positive amount, or None."""
    positive = [a for a in amounts if a > 0]
    return max(positive) if positive else None


def quantize_cents(amount: Decimal) -> Decimal:
    """Round to two decimal places."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def format_amount(amount: Optional[Decimal]) -> str:
    """
    Format an amount as a two-decimal string for storage.

    Examples:
        >>> format_amount(Decimal('59'))
        '59.00'
        >>> format_amount(None)
        '0.00'
    """
    if amount is None:
        return '0.00'
    return f"{quantize_cents(amount):.2f}"
