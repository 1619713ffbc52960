"""
Candidate dataclasses for field extraction.

Each candidate is a provisional value for one receipt field, tagged with the
confidence of the strategy that produced it. Extractors return lists of
candidates; the resolver in ``app.utils.scoring`` picks the winner.
"""

from dataclasses import dataclass
from decimal import Decimal
from datetime import date
from typing import Generic, TypeVar, Optional, Tuple

T = TypeVar('T')

MIN_CONFIDENCE = 0
MAX_CONFIDENCE = 100


@dataclass(frozen=True)
class FieldCandidate(Generic[T]):
    """
    A provisional extracted value.

    Attributes:
        value: Parsed value (str, Decimal, date or tuple of str)
        confidence: Integer score from 0 to 100
        strategy_id: Name of the strategy that produced the value
        raw_text: Matched source text, kept for diagnostics
    """
    value: T
    confidence: int
    strategy_id: str
    raw_text: str = ""

    def __post_init__(self):
        if not MIN_CONFIDENCE <= self.confidence <= MAX_CONFIDENCE:
            raise ValueError(
                f"confidence must be between {MIN_CONFIDENCE} and {MAX_CONFIDENCE}, "
                f"got {self.confidence}"
            )

    def describe(self) -> dict:
        """Plain dict used for draft diagnostics and JSON output."""
        value = self.value
        if isinstance(value, Decimal):
            value = f"{value:.2f}"
        elif isinstance(value, date):
            value = value.isoformat()
        elif isinstance(value, tuple):
            value = list(value)
        return {
            'value': value,
            'confidence': self.confidence,
            'strategy': self.strategy_id,
        }


# Aliases used in extractor signatures

MerchantCandidate = FieldCandidate[str]
AmountCandidate = FieldCandidate[Decimal]
DateCandidate = FieldCandidate[date]
ProductsCandidate = FieldCandidate[Tuple[str, ...]]
CategoryCandidate = FieldCandidate[str]


def create_candidate(
    value: T,
    confidence: int,
    strategy_id: str,
    raw_text: Optional[str] = None
) -> FieldCandidate[T]:
    """
    Create a candidate, clamping the confidence into the 0-100 range.

    Args:
        value: Parsed value
        confidence: Strategy confidence (clamped)
        strategy_id: Strategy name
        raw_text: Original matched text

    Returns:
        FieldCandidate
    """
    confidence = max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, int(confidence)))
    return FieldCandidate(
        value=value,
        confidence=confidence,
        strategy_id=strategy_id,
        raw_text=(raw_text or "").strip(),
    )
