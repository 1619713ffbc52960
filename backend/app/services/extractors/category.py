"""
Spending category suggestion.

The label value is returned as-is; matching it against configured categories
happens when the draft is assembled.
"""

import re
from typing import List

from app.utils.candidates import CategoryCandidate, create_candidate
from app.utils.patterns import PatternSpec
from app.utils.scoring import ConfidenceTable, DEFAULT_CONFIDENCE

CATEGORY_LABEL = PatternSpec(
    name='category_label',
    pattern=r'^[\s*\-•]*(?:spending\s+|expense\s+)?category[\s*]*:[\s*]*(.+?)[\s*.]*$',
    example='Category: Food & Dining',
    flags=re.IGNORECASE | re.MULTILINE,
)


def extract_category_candidates(
    text: str,
    table: ConfidenceTable = DEFAULT_CONFIDENCE
) -> List[CategoryCandidate]:
    if not text:
        return []
    match = CATEGORY_LABEL.search(text)
    if not match:
        return []
    suggestion = match.group(1).strip()
    if not suggestion:
        return []
    return [create_candidate(suggestion, table.category_label, CATEGORY_LABEL.name, match.group(0))]
