"""
Receipt extraction pipeline.

image bytes -> ProviderChain -> raw text -> field extractors -> resolver ->
ReceiptDraft. Every failure ends in a draft flagged for manual review; nothing
raises past ``ExtractionPipeline.extract``.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, List, Optional, Sequence, Union

from app.config import Settings, get_settings
from app.models.receipt import CategoryRef, ExtractedFields, ReceiptDraft
from app.services.chain import ProviderChain
from app.services.extractors.category import extract_category_candidates
from app.services.extractors.date import extract_date_candidates
from app.services.extractors.merchant import UNKNOWN_MERCHANT, extract_merchant_candidates
from app.services.extractors.products import extract_products_candidates
from app.services.extractors.total import extract_total_candidates
from app.services.providers.base import (
    ErrorKind,
    InvalidInputError,
    OCRProvider,
    ProviderKind,
    RawOCRResult,
    validate_input,
)
from app.services.providers.gemini import GeminiVisionProvider
from app.services.providers.tesseract import TesseractProvider
from app.services.providers.vision import GoogleVisionProvider
from app.utils.scoring import ConfidenceTable, DEFAULT_CONFIDENCE, resolve, select_top_candidates

logger = logging.getLogger(__name__)

MANUAL_ENTRY_MERCHANT = "Manual Entry Required"

REVIEW_REASONS = {
    ErrorKind.NOT_CONFIGURED: "No OCR provider configured. Please enter the receipt details manually.",
    ErrorKind.PERMISSION_DENIED: "OCR rejected by the provider. Please enter the receipt details manually.",
    ErrorKind.TRANSIENT: "OCR failed. Please enter the receipt details manually.",
    ErrorKind.EMPTY_RESULT: "OCR found no text in the image. Please enter the receipt details manually.",
}
NO_TOTAL_REASON = "OCR succeeded but no total found. Please check the amount."

CategoryInput = Union[str, CategoryRef]


def normalize_categories(categories: Optional[Iterable[CategoryInput]]) -> List[CategoryRef]:
    refs = []
    for category in categories or []:
        if isinstance(category, CategoryRef):
            refs.append(category)
        else:
            refs.append(CategoryRef(name=str(category)))
    return refs


def match_category(
    suggestion: Optional[str],
    categories: Optional[Iterable[CategoryInput]]
) -> Optional[CategoryRef]:
    """
    Match a suggested category against configured categories.

    Case-insensitive; a category matches when the names are equal or either
    contains the other. The first match in caller order wins.

    Example:
        >>> match_category("food", ["Travel", "Food & Dining"]).name
        'Food & Dining'
    """
    if not suggestion or not suggestion.strip():
        return None
    wanted = suggestion.strip().lower()
    for category in normalize_categories(categories):
        name = category.name.strip().lower()
        if not name:
            continue
        if name == wanted or wanted in name or name in wanted:
            return category
    return None


def review_reason_for(result: RawOCRResult) -> str:
    kind = result.provider_error.kind if result.provider_error else ErrorKind.EMPTY_RESULT
    reason = REVIEW_REASONS[kind]
    if result.narrative:
        reason = f"{reason} ({result.narrative})"
    return reason


def build_providers(
    settings: Settings,
    category_names: Optional[Sequence[str]] = None
) -> tuple[Optional[OCRProvider], Optional[OCRProvider]]:
    """Create the primary and fallback adapters from configuration."""
    if settings.PRIMARY_PROVIDER == "tesseract":
        primary: Optional[OCRProvider] = TesseractProvider(
            settings.TESSERACT_CMD, timeout=settings.PROVIDER_TIMEOUT_SECONDS
        )
    elif settings.GOOGLE_VISION_API_KEY:
        primary = GoogleVisionProvider(
            settings.GOOGLE_VISION_API_KEY, timeout=settings.PROVIDER_TIMEOUT_SECONDS
        )
    else:
        logger.warning("Google Vision API key not found. OCR functionality will be limited.")
        primary = None

    fallback: Optional[OCRProvider] = None
    if settings.GEMINI_API_KEY:
        fallback = GeminiVisionProvider(
            settings.GEMINI_API_KEY,
            model_name=settings.GEMINI_MODEL,
            timeout=settings.PROVIDER_TIMEOUT_SECONDS,
            category_names=category_names,
        )
    return primary, fallback


class ExtractionPipeline:
    """Turns one uploaded receipt into a ReceiptDraft."""

    def __init__(
        self,
        chain: ProviderChain,
        confidence: ConfidenceTable = DEFAULT_CONFIDENCE,
        date_order: str = "DMY",
        max_upload_bytes: Optional[int] = None,
        clock: Callable[[], date] = date.today,
    ):
        self.chain = chain
        self.confidence = confidence
        self.date_order = date_order
        self.max_upload_bytes = max_upload_bytes
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        categories: Optional[Iterable[CategoryInput]] = None,
    ) -> "ExtractionPipeline":
        settings = settings or get_settings()
        names = [c.name for c in normalize_categories(categories)]
        primary, fallback = build_providers(settings, names)
        chain = ProviderChain(
            primary=primary,
            fallback=fallback,
            fallback_on_transient=settings.FALLBACK_ON_TRANSIENT,
        )
        return cls(
            chain,
            date_order=settings.DATE_ORDER,
            max_upload_bytes=settings.MAX_UPLOAD_MB * 1024 * 1024,
        )

    def extract(
        self,
        image_bytes: bytes,
        mime_type: str,
        categories: Optional[Iterable[CategoryInput]] = None,
    ) -> ReceiptDraft:
        """
        Run OCR and field extraction for one receipt.

        ``categories`` are matched against the suggested category and, for
        this call, replace the vocabulary given to the providers at build time.

        Never raises; failures produce a draft flagged for manual review.
        """
        category_names = None
        if categories is not None:
            categories = normalize_categories(categories)
            category_names = [c.name for c in categories]

        try:
            mime_type = validate_input(image_bytes, mime_type, self.max_upload_bytes)
            ocr_result = self.chain.run(image_bytes, mime_type, category_names)
            if not ocr_result.succeeded:
                return self.manual_review_draft(review_reason_for(ocr_result), ocr_result)
            return self.extract_from_text(ocr_result.text, categories, ocr_result)
        except InvalidInputError as e:
            logger.warning("Rejected upload", extra={"mime_type": mime_type, "error": str(e)})
            return self.manual_review_draft(f"Invalid upload: {e}")
        except Exception as e:
            logger.exception("Receipt extraction failed", extra={"mime_type": mime_type})
            return self.manual_review_draft(f"Extraction error: {e}")

    def extract_from_text(
        self,
        raw_text: str,
        categories: Optional[Iterable[CategoryInput]] = None,
        ocr_result: Optional[RawOCRResult] = None,
    ) -> ReceiptDraft:
        """Run every extractor on already-recognized text and assemble a draft."""
        if not raw_text or not raw_text.strip():
            result = ocr_result or RawOCRResult.failure(ErrorKind.EMPTY_RESULT, "No text")
            return self.manual_review_draft(review_reason_for(result), result)

        merchant_candidates = extract_merchant_candidates(raw_text, self.confidence)
        total_candidates = extract_total_candidates(raw_text, self.confidence)
        date_candidates = extract_date_candidates(raw_text, self.confidence, self.date_order)
        products_candidates = extract_products_candidates(raw_text, self.confidence)
        category_candidates = extract_category_candidates(raw_text, self.confidence)

        total = resolve(total_candidates)
        if total is None:
            total = Decimal('0')

        extracted = ExtractedFields(
            merchant_name=resolve(merchant_candidates) or UNKNOWN_MERCHANT,
            total=total,
            date=resolve(date_candidates) or self.clock(),
            products=list(resolve(products_candidates) or ()),
            category=resolve(category_candidates),
        )

        needs_review = extracted.total == 0
        ocr_result = ocr_result or RawOCRResult(text=raw_text)

        draft = ReceiptDraft(
            extracted=extracted,
            raw_text=raw_text,
            needs_manual_review=needs_review,
            review_reason=NO_TOTAL_REASON if needs_review else None,
            provider_used=ocr_result.provider_used,
            provider_name=ocr_result.provider_name,
            provider_narrative=ocr_result.narrative,
            category_match=match_category(extracted.category, categories),
            candidates={
                'merchant': [c.describe() for c in select_top_candidates(merchant_candidates)],
                'total': [c.describe() for c in select_top_candidates(total_candidates)],
                'date': [c.describe() for c in select_top_candidates(date_candidates)],
            },
        )

        logger.info("Receipt extracted", extra={
            "provider": ocr_result.provider_name,
            "merchant": extracted.merchant_name,
            "total": str(extracted.total),
            "needs_manual_review": needs_review,
        })
        return draft

    def manual_review_draft(
        self,
        reason: str,
        ocr_result: Optional[RawOCRResult] = None,
    ) -> ReceiptDraft:
        """Placeholder draft kept when no usable text was obtained."""
        ocr_result = ocr_result or RawOCRResult()
        return ReceiptDraft(
            extracted=ExtractedFields(
                merchant_name=MANUAL_ENTRY_MERCHANT,
                total=Decimal('0'),
                date=self.clock(),
                products=[],
            ),
            raw_text=ocr_result.text,
            needs_manual_review=True,
            review_reason=reason,
            provider_used=ProviderKind.NONE,
            provider_name=ocr_result.provider_name,
            provider_narrative=ocr_result.narrative,
        )
