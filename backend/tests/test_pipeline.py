"""
End-to-end tests for the extraction pipeline with stub providers.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from app.config import Settings
from app.models.receipt import CategoryRef
from app.services.chain import ProviderChain
from app.services.pipeline import (
    MANUAL_ENTRY_MERCHANT,
    NO_TOTAL_REASON,
    ExtractionPipeline,
    build_providers,
    match_category,
)
from app.services.providers.base import ErrorKind, ProviderKind
from app.services.providers.gemini import GeminiVisionProvider
from app.services.providers.tesseract import TesseractProvider
from app.services.providers.vision import GoogleVisionProvider
from stubs import ABC_STORE, GEMINI_RESPONSE, StubProvider

IMAGE = b"\xff\xd8\xff fake jpeg"
TODAY = date(2024, 6, 1)


def make_pipeline(primary=None, fallback=None, **kwargs):
    return ExtractionPipeline(ProviderChain(primary, fallback), clock=lambda: TODAY, **kwargs)


def bare_settings(**overrides):
    values = dict(GOOGLE_VISION_API_KEY=None, GEMINI_API_KEY=None, _env_file=None)
    values.update(overrides)
    return Settings(**values)


class TestSuccessfulExtraction:

    def test_abc_store(self):
        draft = make_pipeline(StubProvider("vision", text=ABC_STORE)).extract(IMAGE, "image/jpeg")

        assert draft.extracted.merchant_name == "ABC STORE"
        assert draft.extracted.total == Decimal('59.00')
        assert draft.extracted.date == date(2023, 3, 15)
        assert draft.needs_manual_review is False
        assert draft.review_reason is None
        assert draft.provider_used == ProviderKind.PRIMARY
        assert draft.raw_text == ABC_STORE

    def test_payload(self):
        draft = make_pipeline(StubProvider("vision", text=ABC_STORE)).extract(IMAGE, "image/jpeg")
        payload = draft.to_payload().model_dump(by_alias=True)

        assert payload['merchantName'] == "ABC STORE"
        assert payload['total'] == "59.00"
        assert payload['date'] == "2023-03-15"
        assert payload['ocrText'] == ABC_STORE
        assert payload['needsManualReview'] is False
        assert payload['ocrError'] is None
        assert payload['categoryId'] is None
        assert "Extracted by vision (primary)." in payload['notes']

    def test_same_input_same_draft(self):
        pipeline = make_pipeline(StubProvider("vision", text=ABC_STORE))
        assert pipeline.extract(IMAGE, "image/jpeg") == pipeline.extract(IMAGE, "image/jpeg")

    def test_candidates_recorded(self):
        draft = make_pipeline(StubProvider("vision", text=ABC_STORE)).extract(IMAGE, "image/jpeg")

        assert draft.candidates['total'][0] == {
            'value': '59.00', 'confidence': 100, 'strategy': 'total_caps_label',
        }
        assert len(draft.candidates['total']) <= 3
        assert draft.candidates['merchant'][0]['value'] == "ABC STORE"

    def test_fallback_response(self):
        primary = StubProvider("vision", error=ErrorKind.PERMISSION_DENIED, message="API disabled")
        fallback = StubProvider("gemini", text=GEMINI_RESPONSE)
        categories = ["Travel", CategoryRef(id=7, name="food & dining")]

        draft = make_pipeline(primary, fallback).extract(IMAGE, "image/png", categories)

        assert draft.provider_used == ProviderKind.FALLBACK
        assert draft.extracted.merchant_name == "Corner Cafe"
        assert draft.extracted.total == Decimal('12.40')
        assert draft.extracted.date == date(2023, 3, 15)
        assert draft.extracted.products == ["Flat White", "Banana Bread", "Water"]
        assert draft.extracted.category == "Food & Dining"
        assert draft.category_match == CategoryRef(id=7, name="food & dining")
        assert draft.needs_manual_review is False
        assert "used fallback (gemini)" in draft.provider_narrative

        payload = draft.to_payload()
        assert payload.category_id == 7
        assert "Products: Flat White, Banana Bread, Water." in payload.notes


class TestManualReview:

    def test_no_total_found(self):
        text = "CORNER SHOP\nThank you\nTOTAL 12"
        draft = make_pipeline(StubProvider("vision", text=text)).extract(IMAGE, "image/jpeg")

        assert draft.extracted.total == Decimal('0')
        assert draft.extracted.merchant_name == "CORNER SHOP"
        assert draft.extracted.date == TODAY
        assert draft.needs_manual_review is True
        assert draft.review_reason == NO_TOTAL_REASON
        assert draft.to_payload().ocr_error == NO_TOTAL_REASON

    def test_chain_exhausted(self):
        primary = StubProvider("vision", error=ErrorKind.PERMISSION_DENIED, message="disabled")
        draft = make_pipeline(primary).extract(IMAGE, "image/jpeg")

        assert draft.extracted.merchant_name == MANUAL_ENTRY_MERCHANT
        assert draft.extracted.total == Decimal('0')
        assert draft.extracted.date == TODAY
        assert draft.needs_manual_review is True
        assert draft.provider_used == ProviderKind.NONE
        assert draft.review_reason.startswith("OCR rejected by the provider.")
        assert "Primary OCR (vision) unavailable: disabled" in draft.review_reason

    def test_notes_mention_narrative_once(self):
        primary = StubProvider("vision", error=ErrorKind.PERMISSION_DENIED, message="disabled")
        draft = make_pipeline(primary).extract(IMAGE, "image/jpeg")

        notes = draft.to_payload().notes
        assert notes.count("Primary OCR (vision) unavailable: disabled") == 1
        assert notes.startswith("Needs review: OCR rejected by the provider.")

    def test_empty_result_has_its_own_reason(self):
        draft = make_pipeline(StubProvider("vision", text="  ")).extract(IMAGE, "image/jpeg")
        assert draft.review_reason.startswith("OCR found no text")

    def test_unexpected_error(self):
        chain = MagicMock()
        chain.run.side_effect = RuntimeError("boom")
        draft = ExtractionPipeline(chain, clock=lambda: TODAY).extract(IMAGE, "image/jpeg")

        assert draft.needs_manual_review is True
        assert draft.review_reason == "Extraction error: boom"

    def test_invalid_upload(self):
        primary = StubProvider("vision", text=ABC_STORE)
        draft = make_pipeline(primary).extract(IMAGE, "image/gif")

        assert draft.review_reason.startswith("Invalid upload: Unsupported file type")
        assert primary.calls == 0

    def test_upload_size_limit(self):
        primary = StubProvider("vision", text=ABC_STORE)
        draft = make_pipeline(primary, max_upload_bytes=4).extract(IMAGE, "image/jpeg")

        assert draft.review_reason.startswith("Invalid upload: File too large")
        assert primary.calls == 0

    def test_blank_text(self):
        draft = make_pipeline().extract_from_text("   ")
        assert draft.needs_manual_review is True
        assert draft.extracted.merchant_name == MANUAL_ENTRY_MERCHANT


class TestCategoryMatching:

    @pytest.mark.parametrize("suggestion,expected", [
        ("Groceries", "Groceries"),
        ("groceries", "Groceries"),
        ("Food", "Food & Dining"),
        ("Air Travel expenses", "Travel"),
    ])
    def test_matches(self, suggestion, expected):
        categories = ["Groceries", "Food & Dining", "Travel"]
        assert match_category(suggestion, categories).name == expected

    def test_first_match_wins(self):
        categories = [CategoryRef(id=1, name="Office"), CategoryRef(id=2, name="Office Supplies")]
        assert match_category("office", categories).id == 1

    def test_no_match(self):
        assert match_category("Utilities", ["Groceries"]) is None
        assert match_category(None, ["Groceries"]) is None
        assert match_category("  ", ["Groceries"]) is None
        assert match_category("Groceries", []) is None

    def test_blank_category_names_ignored(self):
        assert match_category("Travel", ["", "Travel"]).name == "Travel"


class TestConfiguration:

    def test_categories_reach_the_providers(self):
        primary = StubProvider("vision", error=ErrorKind.NOT_CONFIGURED)
        fallback = StubProvider("gemini", text=GEMINI_RESPONSE)
        categories = (name for name in ["Travel", "Food & Dining"])

        draft = make_pipeline(primary, fallback).extract(IMAGE, "image/png", categories)

        assert primary.category_names == ["Travel", "Food & Dining"]
        assert fallback.category_names == ["Travel", "Food & Dining"]
        assert draft.category_match.name == "Food & Dining"

    def test_no_categories_leaves_provider_default(self):
        fallback = StubProvider("gemini", text=GEMINI_RESPONSE)
        make_pipeline(None, fallback).extract(IMAGE, "image/png")
        assert fallback.category_names is None

    def test_nothing_configured(self):
        pipeline = ExtractionPipeline.from_settings(bare_settings())
        draft = pipeline.extract(IMAGE, "image/jpeg")

        assert draft.needs_manual_review is True
        assert draft.review_reason.startswith("No OCR provider configured")

    def test_missing_tesseract_binary(self):
        settings = bare_settings(PRIMARY_PROVIDER="tesseract", TESSERACT_CMD="/nonexistent/tesseract")
        draft = ExtractionPipeline.from_settings(settings).extract(IMAGE, "image/jpeg")

        assert draft.review_reason.startswith("No OCR provider configured")

    def test_build_providers(self):
        settings = bare_settings(GOOGLE_VISION_API_KEY="vision-key", GEMINI_API_KEY="gemini-key")
        primary, fallback = build_providers(settings, ["Travel"])

        assert isinstance(primary, GoogleVisionProvider)
        assert isinstance(fallback, GeminiVisionProvider)
        assert fallback.category_names == ["Travel"]

    def test_build_tesseract_primary(self):
        settings = bare_settings(PRIMARY_PROVIDER="tesseract")
        primary, fallback = build_providers(settings)

        assert isinstance(primary, TesseractProvider)
        assert fallback is None

    def test_settings_applied(self):
        settings = bare_settings(DATE_ORDER="MDY", MAX_UPLOAD_MB=2, FALLBACK_ON_TRANSIENT=True)
        pipeline = ExtractionPipeline.from_settings(settings)

        assert pipeline.date_order == "MDY"
        assert pipeline.max_upload_bytes == 2 * 1024 * 1024
        assert pipeline.chain.fallback_on_transient is True
