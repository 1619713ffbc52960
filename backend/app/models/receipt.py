"""
Pydantic models for receipt drafts.
"""

from datetime import date as date_type
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.services.providers.base import ProviderKind
from app.utils.money import format_amount


class CategoryRef(BaseModel):
    """A configured spending category supplied by the caller."""
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    name: str


class ExtractedFields(BaseModel):
    """Resolved receipt fields. Each field is resolved independently."""
    model_config = ConfigDict(frozen=True)

    merchant_name: str
    total: Decimal = Field(default=Decimal('0'), ge=0)
    date: date_type
    products: List[str] = Field(default_factory=list)
    category: Optional[str] = None


class ReceiptPayload(BaseModel):
    """Fields handed to the storage layer, serialized with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    merchant_name: str
    total: str  # two-decimal string, e.g. "59.00"
    date: str  # YYYY-MM-DD
    notes: str
    ocr_text: str
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    needs_manual_review: bool
    ocr_error: Optional[str] = None


class ReceiptDraft(BaseModel):
    """
    Pipeline output: resolved fields plus provenance and review status.

    ``needs_manual_review`` is set when no text was obtained or no total was
    found. The draft is never persisted by the pipeline.
    """
    model_config = ConfigDict(frozen=True)

    extracted: ExtractedFields
    raw_text: str = ""
    needs_manual_review: bool = False
    review_reason: Optional[str] = None
    provider_used: ProviderKind = ProviderKind.NONE
    provider_name: Optional[str] = None
    provider_narrative: str = ""
    category_match: Optional[CategoryRef] = None
    candidates: Dict[str, List[dict]] = Field(default_factory=dict)

    @property
    def ocr_error(self) -> Optional[str]:
        """User-facing message, only when the draft needs manual review."""
        if not self.needs_manual_review:
            return None
        return self.review_reason or self.provider_narrative or None

    def build_notes(self) -> str:
        parts = []
        if self.provider_used != ProviderKind.NONE:
            parts.append(
                f"Extracted by {self.provider_name or 'OCR'} ({self.provider_used.value.lower()})."
            )
        # Review reasons for failed OCR already carry the narrative
        if self.provider_narrative and self.provider_narrative not in (self.review_reason or ""):
            parts.append(self.provider_narrative)
        if self.extracted.products:
            parts.append("Products: " + ", ".join(self.extracted.products) + ".")
        if self.extracted.category and self.category_match is None:
            parts.append(f"Suggested category: {self.extracted.category}.")
        if self.needs_manual_review and self.review_reason:
            parts.append(f"Needs review: {self.review_reason}")
        return " ".join(parts)

    def to_payload(self) -> ReceiptPayload:
        return ReceiptPayload(
            merchant_name=self.extracted.merchant_name,
            total=format_amount(self.extracted.total),
            date=self.extracted.date.isoformat(),
            notes=self.build_notes(),
            ocr_text=self.raw_text,
            category_id=self.category_match.id if self.category_match else None,
            category_name=self.category_match.name if self.category_match else None,
            needs_manual_review=self.needs_manual_review,
            ocr_error=self.ocr_error,
        )
