"""
Transaction date extraction.

Supported shapes, in priority order:
- labelled:    "Date: 15/03/2023" (any of the shapes below after a date label)
- slash:       15/03/2023, 15/03/23 (day-first unless configured otherwise)
- dot:         15.03.2023
- ISO:         2023-03-15
- month name:  15 Mar 2023, March 15, 2023

Ambiguous slash dates follow ``date_order``. When the preferred order gives an
impossible date (03/15/2023 read day-first), the other order is tried.
"""

import logging
import re
from datetime import date
from typing import Callable, List, Optional

from app.utils.candidates import DateCandidate, create_candidate
from app.utils.patterns import PatternSpec
from app.utils.scoring import ConfidenceTable, DEFAULT_CONFIDENCE

logger = logging.getLogger(__name__)

DAY_FIRST = 'DMY'
MONTH_FIRST = 'MDY'

MONTHS = {
    'jan': 1, 'feb': 2, 'mar': 3, 'apr': 4, 'may': 5, 'jun': 6,
    'jul': 7, 'aug': 8, 'sep': 9, 'oct': 10, 'nov': 11, 'dec': 12,
}

_MONTH_NAME = r'(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?'

DATE_LABEL = PatternSpec(
    name='date_label',
    pattern=r'\b(?:transaction\s+|purchase\s+|receipt\s+)?(?:date|datum|fecha)\b[\s*]*[:\-]?[\s*]*([^\n]{6,40})',
    example='Date: 03/15/2023',
)

SLASH_DATE = PatternSpec(
    name='date_slash',
    pattern=r'(?<![\d/])(\d{1,2})/(\d{1,2})/(\d{4}|\d{2})(?![\d/])',
    example='15/03/2023',
)

DOT_DATE = PatternSpec(
    name='date_dot',
    pattern=r'(?<![\d.])(\d{1,2})\.(\d{1,2})\.(\d{4}|\d{2})(?![\d.]\d)',
    example='15.03.2023',
)

ISO_DATE = PatternSpec(
    name='date_iso',
    pattern=r'(?<!\d)(\d{4})-(\d{1,2})-(\d{1,2})(?!\d)',
    example='2023-03-15',
)

DAY_MONTH_NAME = PatternSpec(
    name='date_month_name',
    pattern=rf'\b(\d{{1,2}})(?:st|nd|rd|th)?[\s\-]+{_MONTH_NAME}[\s\-,]+(\d{{4}}|\d{{2}})\b',
    example='15 Mar 2023',
)

MONTH_NAME_DAY = PatternSpec(
    name='date_month_name',
    pattern=rf'\b{_MONTH_NAME}\s+(\d{{1,2}})(?:st|nd|rd|th)?,?\s+(\d{{4}}|\d{{2}})\b',
    example='March 15, 2023',
)


def normalize_year(year: int) -> int:
    """Two-digit years are taken as 20YY."""
    return year + 2000 if year < 100 else year


def _build(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(normalize_year(year), month, day)
    except ValueError:
        return None


def _parse_slash(match: re.Match, date_order: str) -> Optional[date]:
    first, second, year = (int(g) for g in match.groups())
    if date_order == MONTH_FIRST:
        return _build(year, first, second) or _build(year, second, first)
    return _build(year, second, first) or _build(year, first, second)


def _parse_dot(match: re.Match, date_order: str) -> Optional[date]:
    day, month, year = (int(g) for g in match.groups())
    return _build(year, month, day)


def _parse_iso(match: re.Match, date_order: str) -> Optional[date]:
    year, month, day = (int(g) for g in match.groups())
    return _build(year, month, day)


def _parse_day_month_name(match: re.Match, date_order: str) -> Optional[date]:
    day, month_name, year = match.groups()
    return _build(int(year), MONTHS[month_name.lower()[:3]], int(day))


def _parse_month_name_day(match: re.Match, date_order: str) -> Optional[date]:
    month_name, day, year = match.groups()
    return _build(int(year), MONTHS[month_name.lower()[:3]], int(day))


DateParser = Callable[[re.Match, str], Optional[date]]

# (pattern, parser, confidence attribute) in priority order
FORMATS = [
    (SLASH_DATE, _parse_slash, 'date_slash'),
    (DOT_DATE, _parse_dot, 'date_dot'),
    (ISO_DATE, _parse_iso, 'date_iso'),
    (DAY_MONTH_NAME, _parse_day_month_name, 'date_month_name'),
    (MONTH_NAME_DAY, _parse_month_name_day, 'date_month_name'),
]


def parse_date_string(value: str, date_order: str = DAY_FIRST) -> Optional[date]:
    """
    Parse the first date found in a string using any supported shape.

    Example:
        >>> parse_date_string("15 Mar 2023")
        datetime.date(2023, 3, 15)
    """
    for spec, parser, _ in FORMATS:
        for match in spec.finditer(value):
            parsed = parser(match, date_order)
            if parsed is not None:
                return parsed
    return None


def extract_date_candidates(
    text: str,
    table: ConfidenceTable = DEFAULT_CONFIDENCE,
    date_order: str = DAY_FIRST
) -> List[DateCandidate]:
    """
    Run every date strategy against the text.

    Each strategy contributes the first match it can turn into a valid date.

    Args:
        text: Raw OCR text
        table: Confidence constants
        date_order: 'DMY' or 'MDY' for ambiguous slash dates

    Returns:
        Candidates in strategy priority order (possibly empty)
    """
    candidates: List[DateCandidate] = []
    if not text:
        return candidates

    for match in DATE_LABEL.finditer(text):
        parsed = parse_date_string(match.group(1), date_order)
        if parsed is not None:
            candidates.append(
                create_candidate(parsed, table.date_label, DATE_LABEL.name, match.group(0))
            )
            break

    seen_strategies = set()
    for spec, parser, confidence_attr in FORMATS:
        if spec.name in seen_strategies:
            continue
        for match in spec.finditer(text):
            parsed = parser(match, date_order)
            if parsed is None:
                continue
            candidates.append(
                create_candidate(parsed, getattr(table, confidence_attr), spec.name, match.group(0))
            )
            seen_strategies.add(spec.name)
            break

    for candidate in candidates:
        logger.debug("Date candidate", extra={
            "strategy": candidate.strategy_id,
            "value": candidate.value.isoformat(),
        })

    return candidates
