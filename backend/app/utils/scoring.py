"""
Confidence resolution for extraction candidates.

Confidences are integers from 0 to 100 assigned per strategy. The values in
``ConfidenceTable`` are empirically chosen and kept configurable; resolution
itself is a stable sort, so on equal confidence the earlier-listed strategy
wins.
"""

from dataclasses import dataclass
from typing import List, Optional, TypeVar

from .candidates import FieldCandidate

__all__ = [
    'ConfidenceTable', 'DEFAULT_CONFIDENCE',
    'rank_candidates', 'resolve', 'select_best_candidate', 'select_top_candidates',
]

T = TypeVar('T')


@dataclass(frozen=True)
class ConfidenceTable:
    """
    Per-strategy confidence constants.

    Merchant:
    - merchant_label: "Merchant: X", "Store: X", "Name: X"
    - merchant_first_line: first non-empty line

    Total (strategy order is the tie-break order):
    - total_caps_label: "TOTAL" / "TOTAL AMOUNT" then a number
    - total_colon_label: "total:" then a number
    - total_currency_max: largest number after $, € or £
    - total_keyword_near: total-like keyword within 25 chars of a number
      (generic keyword score, raised for "amount due" style phrases)
    - total_verified_sum: subtotal + tax found verbatim (within 1%)
    - total_precise_max: largest NN.NN number; raised when it is at least
      twice another candidate
    - total_largest_decimal: largest decimal, only when nothing else matched
    - total_labelled_amount: "Total Amount: X" phrasing from AI-vision output
    """
    merchant_label: int = 90
    merchant_first_line: int = 50

    total_caps_label: int = 100
    total_colon_label: int = 90
    total_currency_max: int = 80
    total_keyword_near: int = 75
    total_keyword_near_specific: int = 90
    total_verified_sum: int = 85
    total_precise_max: int = 60
    total_precise_max_dominant: int = 70
    total_largest_decimal: int = 50
    total_labelled_amount: int = 65

    date_label: int = 95
    date_slash: int = 90
    date_dot: int = 85
    date_iso: int = 80
    date_month_name: int = 75

    products_label: int = 90
    category_label: int = 90


DEFAULT_CONFIDENCE = ConfidenceTable()


def rank_candidates(candidates: List[FieldCandidate[T]]) -> List[FieldCandidate[T]]:
    """
    Order candidates by confidence, highest first.

    ``sorted`` is stable, so candidates with equal confidence keep their
    insertion order (strategy priority order).
    """
    return sorted(candidates, key=lambda c: c.confidence, reverse=True)


def select_best_candidate(
    candidates: List[FieldCandidate[T]]
) -> Optional[FieldCandidate[T]]:
    """
    Select the winning candidate.

    Args:
        candidates: Candidates in strategy priority order

    Returns:
        Highest-confidence candidate, or None if the list is empty

    Example:
        >>> best = select_best_candidate(extract_total_candidates(text))
    """
    if not candidates:
        return None
    return rank_candidates(candidates)[0]


def resolve(candidates: List[FieldCandidate[T]]) -> Optional[T]:
    """
    Resolve a field to a single value.

    Returns None when there are no candidates; callers supply the default.
    """
    best = select_best_candidate(candidates)
    return best.value if best is not None else None


def select_top_candidates(
    candidates: List[FieldCandidate[T]],
    top_n: int = 3
) -> List[FieldCandidate[T]]:
    """Select top N candidates for diagnostics."""
    return rank_candidates(candidates)[:top_n]
