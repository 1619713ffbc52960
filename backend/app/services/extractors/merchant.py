"""
Merchant name extraction.
"""

import logging
import re
from typing import List, Optional

from app.utils.candidates import MerchantCandidate, create_candidate
from app.utils.patterns import PatternSpec
from app.utils.scoring import ConfidenceTable, DEFAULT_CONFIDENCE

logger = logging.getLogger(__name__)

UNKNOWN_MERCHANT = "Unknown"

MAX_MERCHANT_LENGTH = 100

# Lines that introduce an AI-vision answer rather than name a merchant
PREAMBLE_PHRASES = (
    'extracted information',
    'information extracted',
    'here is the extracted',
    "here's the extracted",
)

MERCHANT_LABEL = PatternSpec(
    name='merchant_label',
    pattern=r'^[\s*\-•]*(?:merchant(?:\s+name)?|store(?:\s+name)?|name)[\s*]*:[\s*]*(.+?)[\s*]*$',
    example='Merchant: ABC STORE',
    flags=re.IGNORECASE | re.MULTILINE,
)


def is_acceptable_merchant(value: str) -> bool:
    """Reject over-long lines and AI response preambles before scoring."""
    if not value or len(value) > MAX_MERCHANT_LENGTH:
        return False
    lowered = value.lower()
    return not any(phrase in lowered for phrase in PREAMBLE_PHRASES)


def _clean(value: str) -> str:
    return value.strip().strip('*').strip()


def label_match(text: str, table: ConfidenceTable) -> Optional[MerchantCandidate]:
    match = MERCHANT_LABEL.search(text)
    if not match:
        return None
    value = _clean(match.group(1))
    if not is_acceptable_merchant(value):
        logger.debug("Rejected merchant label value", extra={"value": value[:120]})
        return None
    return create_candidate(value, table.merchant_label, MERCHANT_LABEL.name, match.group(0))


def first_line(text: str, table: ConfidenceTable) -> Optional[MerchantCandidate]:
    for line in text.splitlines():
        value = _clean(line)
        if not value:
            continue
        if not is_acceptable_merchant(value):
            logger.debug("Rejected first-line merchant", extra={"value": value[:120]})
            return None
        return create_candidate(value, table.merchant_first_line, 'merchant_first_line', line)
    return None


MERCHANT_STRATEGIES = [label_match, first_line]


def extract_merchant_candidates(
    text: str,
    table: ConfidenceTable = DEFAULT_CONFIDENCE
) -> List[MerchantCandidate]:
    """
    Run every merchant strategy against the text.

    Returns:
        Candidates in strategy priority order (possibly empty)
    """
    if not text:
        return []
    candidates = []
    for strategy in MERCHANT_STRATEGIES:
        candidate = strategy(text, table)
        if candidate is not None:
            candidates.append(candidate)
    return candidates
