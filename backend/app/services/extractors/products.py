"""
Purchased-item list extraction.

Only an explicit "Products:" style label is read. Line items in the tabular
body of a receipt are not parsed.
"""

import re
from typing import List, Tuple

from app.utils.candidates import ProductsCandidate, create_candidate
from app.utils.patterns import PatternSpec
from app.utils.scoring import ConfidenceTable, DEFAULT_CONFIDENCE

PRODUCTS_LABEL = PatternSpec(
    name='products_label',
    pattern=r'^[\s*\-•]*(?:products?|purchased\s+items|items\s+purchased)[\s*]*:[\s*]*(.+?)[\s*]*$',
    example='Products: Latte, Croissant',
    flags=re.IGNORECASE | re.MULTILINE,
)


def split_products(value: str) -> Tuple[str, ...]:
    """Split a comma-separated list, dropping blanks and keeping order."""
    return tuple(item.strip() for item in value.split(',') if item.strip())


def extract_products_candidates(
    text: str,
    table: ConfidenceTable = DEFAULT_CONFIDENCE
) -> List[ProductsCandidate]:
    if not text:
        return []
    match = PRODUCTS_LABEL.search(text)
    if not match:
        return []
    products = split_products(match.group(1))
    if not products:
        return []
    return [create_candidate(products, table.products_label, PRODUCTS_LABEL.name, match.group(0))]
