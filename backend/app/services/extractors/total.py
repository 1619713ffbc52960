"""
Total amount extraction.

Every strategy runs against the full text and contributes at most one
candidate. Strategies are listed in priority order; the resolver breaks
confidence ties by that order.
"""

import logging
from decimal import Decimal
from typing import Callable, List, Optional

from app.utils.candidates import AmountCandidate, create_candidate
from app.utils.money import find_decimal_numbers, iter_decimal_numbers, largest, parse_money
from app.utils.patterns import AMOUNT, CURRENCY_SYMBOL, PatternSpec
from app.utils.scoring import ConfidenceTable, DEFAULT_CONFIDENCE

logger = logging.getLogger(__name__)

# Relative tolerance when matching subtotal + tax against printed numbers
SUM_TOLERANCE = Decimal('0.01')

# A precise-max candidate this many times larger than an earlier candidate is
# more likely the receipt total than a line item.
DOMINANCE_FACTOR = 2

TOTAL_CAPS = PatternSpec(
    name='total_caps_label',
    pattern=rf'\bTOTAL(?:\s+AMOUNT)?[\s:]*{CURRENCY_SYMBOL}?\s*{AMOUNT}',
    example='TOTAL             $59.00',
    notes='TOTAL or TOTAL AMOUNT label; never matches inside "Subtotal"',
)

TOTAL_COLON = PatternSpec(
    name='total_colon_label',
    pattern=rf'\btotal\s*:\s*{CURRENCY_SYMBOL}?\s*{AMOUNT}',
    example='Total: $15.24',
)

CURRENCY_AMOUNT = PatternSpec(
    name='total_currency_max',
    pattern=rf'{CURRENCY_SYMBOL}\s?{AMOUNT}',
    example='$24.50',
    notes='Every currency-prefixed amount; the largest is kept',
)

# Specific phrases come first so they win the alternation at the same offset.
SPECIFIC_KEYWORDS = (
    'amount due', 'total due', 'balance due', 'grand total',
    'zu zahlen', 'gesamtbetrag',
)

TOTAL_KEYWORD_NEAR = PatternSpec(
    name='total_keyword_near',
    pattern=(
        r'\b(amount\s+due|total\s+due|balance\s+due|grand\s+total|zu\s+zahlen|gesamtbetrag'
        r'|total|amount|sum|due|summe|betrag|gesamt)\b'
        rf'.{{0,25}}?{AMOUNT}'
    ),
    example='Amount Due: €7.75',
    notes='Keyword within 25 characters of a number, localized variants included',
)

SUBTOTAL = PatternSpec(
    name='subtotal_label',
    pattern=rf'\bsub[\s-]?total\b[\s:]*{CURRENCY_SYMBOL}?\s*{AMOUNT}',
    example='Subtotal          $54.50',
)

TAX = PatternSpec(
    name='tax_label',
    pattern=rf'\b(?:sales\s+)?tax\b[\s:]*{CURRENCY_SYMBOL}?\s*{AMOUNT}',
    example='Tax                $4.50',
)

PRECISE_NUMBER = PatternSpec(
    name='total_precise_max',
    pattern=r'(?<![\d.,])(\d{2,}\.\d{2})(?!\d*[.,]\d)',
    example='54.50',
    notes='Two or more integer digits, exactly two decimals',
)

LABELLED_AMOUNT = PatternSpec(
    name='total_labelled_amount',
    pattern=rf'\b(?:total|amount|sum)(?:\s+amount)?[\s:]+{CURRENCY_SYMBOL}?\s*{AMOUNT}',
    example='Total Amount: 59.00',
    notes='Phrasing typical of AI-vision responses',
)


TotalStrategy = Callable[[str, List[AmountCandidate], ConfidenceTable], Optional[AmountCandidate]]


def _first_labelled(spec: PatternSpec, text: str, confidence: int) -> Optional[AmountCandidate]:
    match = spec.search(text)
    if not match:
        return None
    value = parse_money(match.group(1))
    if value is None:
        return None
    return create_candidate(value, confidence, spec.name, match.group(0))


def caps_label(text: str, found: List[AmountCandidate], table: ConfidenceTable) -> Optional[AmountCandidate]:
    return _first_labelled(TOTAL_CAPS, text, table.total_caps_label)


def colon_label(text: str, found: List[AmountCandidate], table: ConfidenceTable) -> Optional[AmountCandidate]:
    return _first_labelled(TOTAL_COLON, text, table.total_colon_label)


def currency_max(text: str, found: List[AmountCandidate], table: ConfidenceTable) -> Optional[AmountCandidate]:
    amounts = [parse_money(m.group(1)) for m in CURRENCY_AMOUNT.finditer(text)]
    best = largest(a for a in amounts if a is not None)
    if best is None:
        return None
    return create_candidate(best, table.total_currency_max, CURRENCY_AMOUNT.name)


def keyword_near(text: str, found: List[AmountCandidate], table: ConfidenceTable) -> Optional[AmountCandidate]:
    match = TOTAL_KEYWORD_NEAR.search(text)
    if not match:
        return None
    value = parse_money(match.group(2))
    if value is None:
        return None

    keyword = ' '.join(match.group(1).lower().split())
    if keyword in SPECIFIC_KEYWORDS:
        confidence = table.total_keyword_near_specific
    else:
        confidence = table.total_keyword_near
    return create_candidate(value, confidence, TOTAL_KEYWORD_NEAR.name, match.group(0))


def verified_sum(text: str, found: List[AmountCandidate], table: ConfidenceTable) -> Optional[AmountCandidate]:
    """
    Subtotal + tax, accepted only when that sum is printed elsewhere.

    Numbers on the subtotal and tax lines themselves are skipped; of the rest,
    the one closest to the sum wins.
    """
    subtotal_match = SUBTOTAL.search(text)
    tax_match = TAX.search(text)
    if not subtotal_match or not tax_match:
        return None

    subtotal = parse_money(subtotal_match.group(1))
    tax = parse_money(tax_match.group(1))
    if subtotal is None or tax is None:
        return None

    expected = subtotal + tax
    if expected <= 0:
        return None

    label_spans = (subtotal_match.span(), tax_match.span())
    best = None
    best_diff = None
    for number, match in iter_decimal_numbers(text):
        if any(start <= match.start() < end for start, end in label_spans):
            continue
        diff = abs(number - expected)
        if diff / expected < SUM_TOLERANCE and (best_diff is None or diff < best_diff):
            best, best_diff = number, diff

    if best is None:
        return None
    return create_candidate(
        best,
        table.total_verified_sum,
        'total_verified_sum',
        f"{subtotal} + {tax}",
    )


def precise_max(text: str, found: List[AmountCandidate], table: ConfidenceTable) -> Optional[AmountCandidate]:
    amounts = [parse_money(m.group(1)) for m in PRECISE_NUMBER.finditer(text)]
    best = largest(a for a in amounts if a is not None)
    if best is None:
        return None

    confidence = table.total_precise_max
    if any(best > c.value * DOMINANCE_FACTOR for c in found):
        confidence = table.total_precise_max_dominant
    return create_candidate(best, confidence, PRECISE_NUMBER.name)


def largest_decimal(text: str, found: List[AmountCandidate], table: ConfidenceTable) -> Optional[AmountCandidate]:
    """Last resort: only used when no earlier strategy produced anything."""
    if found:
        return None
    best = largest(find_decimal_numbers(text))
    if best is None:
        return None
    return create_candidate(best, table.total_largest_decimal, 'total_largest_decimal')


def labelled_amount(text: str, found: List[AmountCandidate], table: ConfidenceTable) -> Optional[AmountCandidate]:
    return _first_labelled(LABELLED_AMOUNT, text, table.total_labelled_amount)


TOTAL_STRATEGIES: List[TotalStrategy] = [
    caps_label,
    colon_label,
    currency_max,
    keyword_near,
    verified_sum,
    precise_max,
    largest_decimal,
    labelled_amount,
]


def extract_total_candidates(
    text: str,
    table: ConfidenceTable = DEFAULT_CONFIDENCE
) -> List[AmountCandidate]:
    """
    Run every total strategy against the text.

    Args:
        text: Raw OCR text
        table: Confidence constants

    Returns:
        Candidates in strategy priority order (possibly empty)
    """
    candidates: List[AmountCandidate] = []
    if not text:
        return candidates

    for strategy in TOTAL_STRATEGIES:
        candidate = strategy(text, candidates, table)
        if candidate is None:
            continue
        logger.debug("Total candidate", extra={
            "strategy": candidate.strategy_id,
            "value": str(candidate.value),
            "confidence": candidate.confidence,
        })
        candidates.append(candidate)

    return candidates
