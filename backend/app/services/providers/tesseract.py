"""
Local Tesseract OCR adapter.

Selected as the primary provider with ``PRIMARY_PROVIDER=tesseract``. Needs
no API key; a missing tesseract binary is reported as NOT_CONFIGURED.
"""

import logging
import shutil
from pathlib import Path

import pytesseract

from app.services.providers.base import ErrorKind, OCRProvider, classify_error_message
from app.services.providers.imaging import (
    extract_pdf_text_layer,
    load_image,
    pdf_to_images,
    preprocess_image,
)

logger = logging.getLogger(__name__)

# OEM 3: default engine, PSM 6: single uniform block of text (receipt body)
TESSERACT_CONFIG = r'--oem 3 --psm 6'


class TesseractProvider(OCRProvider):
    """Service for extracting text from receipt files with Tesseract."""

    name = "Tesseract"

    def __init__(self, tesseract_cmd: str, timeout: float = 30.0):
        self.tesseract_cmd = tesseract_cmd
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return Path(self.tesseract_cmd).exists() or shutil.which(self.tesseract_cmd) is not None

    def _recognize(self, image_bytes: bytes, mime_type: str, category_names=None) -> str:
        pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd

        if mime_type == "application/pdf":
            return self._recognize_pdf(image_bytes)

        image = preprocess_image(load_image(image_bytes))
        return pytesseract.image_to_string(image, config=TESSERACT_CONFIG, timeout=self.timeout)

    def _recognize_pdf(self, pdf_data: bytes) -> str:
        """Use the PDF text layer when present, otherwise OCR every page."""
        text = extract_pdf_text_layer(pdf_data)
        if text:
            return text

        pages = []
        for image in pdf_to_images(pdf_data):
            pages.append(pytesseract.image_to_string(
                preprocess_image(image),
                config=TESSERACT_CONFIG,
                timeout=self.timeout,
            ))
        return "\n".join(pages)

    def classify_exception(self, error: Exception) -> ErrorKind:
        if isinstance(error, pytesseract.TesseractNotFoundError):
            return ErrorKind.NOT_CONFIGURED
        if isinstance(error, RuntimeError) and 'timeout' in str(error).lower():
            # pytesseract signals its own timeout with a RuntimeError
            return ErrorKind.TRANSIENT
        return classify_error_message(str(error))
