"""
Deterministic provider stand-ins for chain and pipeline tests.
"""

from typing import Optional, Sequence

from app.services.providers.base import ErrorKind, RawOCRResult


class StubProvider:
    """Returns canned text or a canned failure and counts calls."""

    def __init__(
        self,
        name: str = "stub",
        text: str = "",
        error: Optional[ErrorKind] = None,
        message: str = "stub failure",
        configured: bool = True,
        raises: Optional[Exception] = None,
    ):
        self.name = name
        self.text = text
        self.error = error
        self.message = message
        self.configured = configured
        self.raises = raises
        self.calls = 0
        self.category_names = None

    def recognize(
        self,
        image_bytes: bytes,
        mime_type: str,
        category_names: Optional[Sequence[str]] = None,
    ) -> RawOCRResult:
        self.calls += 1
        self.category_names = category_names
        if self.raises is not None:
            raise self.raises
        if self.error is not None:
            return RawOCRResult.failure(self.error, self.message, self.name)
        return RawOCRResult(text=self.text, provider_name=self.name)


ABC_STORE = "ABC STORE\nDate: 03/15/2023\nSubtotal $54.50\nTax $4.50\nTOTAL $59.00"

FULL_ABC_STORE = """ABC STORE
1234 Main Street
New York, NY 10001
Date: 03/15/2023

Item 1             $10.99
Item 2             $24.50
Item 3             $19.01

Subtotal          $54.50
Tax                $4.50
TOTAL             $59.00"""

GROCERY_MART = """GROCERY MART
Receipt: #1234

Apples     2lb    $4.50
Oranges    3lb    $6.75
Milk       1gal   $3.99

Total: $15.24"""

COFFEE_SHOP = """COFFEE SHOP
15.03.2023

Latte            4.50
Croissant        3.25

Amount Due: €7.75"""

DEPARTMENT_STORE = """DEPARTMENT STORE
Date: 2023-04-01

Shirt            24.99
Pants            34.95
Socks             7.50

Total Amount    $67.44"""

PROBLEMATIC_RECEIPT = """PROBLEMATIC RECEIPT
Date: 05/12/2023

Coffee              $3.75
Sandwich           $7.25
Chips              $1.50
Soft Drinks        $2.00

Subtotal          $14.50
Tax               $1.25
Service Fee        $1.25

TOTAL             $17.00

*IMPORTANT*
Subtotal          54.50

The store thanks you!"""

TOTAL_DOLLAR_SPACED = """ANOTHER PROBLEM RECEIPT
123 Main Street
New York, NY

Item 1              4.99
Item 2              9.99
Item 3             39.52

TOTAL $           54.50

Thank you for shopping with us!"""

GEMINI_RESPONSE = """Here is the extracted information from the receipt:
Merchant: Corner Cafe
Date: 2023-03-15
Subtotal: 11.00
Tax: 1.40
Total: 12.40
Products: Flat White, Banana Bread, , Water
Category: Food & Dining.

CORNER CAFE
FLAT WHITE 4.20
BANANA BREAD 5.30
WATER 1.50
"""
