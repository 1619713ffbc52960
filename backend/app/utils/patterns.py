"""
Named regex patterns used by the field extractors.
"""

import re
from dataclasses import dataclass, field
from typing import Optional

from app.utils.money import DECIMAL_NUMBER

# Capturing group for an amount; refuses to start or stop inside a longer number.
AMOUNT = rf'(?<![\d.,])({DECIMAL_NUMBER})(?!\d*[.,]\d)'

CURRENCY_SYMBOL = r'[$€£]'


@dataclass(frozen=True)
class PatternSpec:
    """A named regex pattern with example and notes for documentation."""
    name: str
    pattern: str
    example: str
    notes: Optional[str] = None
    flags: int = re.IGNORECASE
    compiled: re.Pattern = field(default=None, init=False, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'compiled', re.compile(self.pattern, self.flags))

    def search(self, text: str) -> Optional[re.Match]:
        return self.compiled.search(text)

    def finditer(self, text: str):
        return self.compiled.finditer(text)
