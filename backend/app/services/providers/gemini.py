"""
Gemini vision adapter (fallback provider).

The model is asked to answer with labelled lines so the regular field
extractors can read its output the same way they read plain OCR text.
"""

import logging
from typing import Optional, Sequence

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from app.services.providers.base import ErrorKind, OCRProvider, classify_error_message

logger = logging.getLogger(__name__)

RECEIPT_PROMPT = """You are reading a photographed or scanned purchase receipt.
Return ONLY the following lines, one per line, with no other text:

Merchant: <store or merchant name>
Date: <transaction date as YYYY-MM-DD>
Subtotal: <subtotal amount with two decimals, if printed>
Tax: <tax amount with two decimals, if printed>
Total: <final amount paid with two decimals>
Products: <comma-separated list of purchased item names>
Category: <one spending category>

Then, after a blank line, transcribe the full receipt text exactly as printed.
"""

CATEGORY_HINT = "Choose the category from this list when one fits: {names}\n"


def build_prompt(category_names: Optional[Sequence[str]] = None) -> str:
    prompt = RECEIPT_PROMPT
    if category_names:
        prompt += CATEGORY_HINT.format(names=", ".join(category_names))
    return prompt


class GeminiVisionProvider(OCRProvider):
    """Sends the image (or PDF) inline to a Gemini model."""

    name = "Gemini"

    def __init__(
        self,
        api_key: Optional[str],
        model_name: str = "gemini-1.5-flash",
        timeout: float = 30.0,
        category_names: Optional[Sequence[str]] = None,
        model=None,
    ):
        self.api_key = api_key
        self.model_name = model_name
        self.timeout = timeout
        self.category_names = list(category_names or [])
        self._model = model

    @property
    def configured(self) -> bool:
        return bool(self.api_key) or self._model is not None

    @property
    def model(self):
        if self._model is None:
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(self.model_name)
            logger.info("Gemini model initialized", extra={"model": self.model_name})
        return self._model

    def _recognize(
        self,
        image_bytes: bytes,
        mime_type: str,
        category_names: Optional[Sequence[str]] = None,
    ) -> str:
        if category_names is None:
            category_names = self.category_names
        # retry=None turns off the SDK default retry; one attempt per call
        response = self.model.generate_content(
            [build_prompt(category_names), {"mime_type": mime_type, "data": image_bytes}],
            request_options={"timeout": self.timeout, "retry": None},
        )
        try:
            return response.text
        except ValueError:
            # Blocked or candidate-less responses have no text accessor
            logger.warning("Gemini returned no usable candidate", extra={"model": self.model_name})
            return ""

    def classify_exception(self, error: Exception) -> ErrorKind:
        if isinstance(error, (google_exceptions.PermissionDenied,
                              google_exceptions.Unauthenticated,
                              google_exceptions.Forbidden)):
            return ErrorKind.PERMISSION_DENIED
        if isinstance(error, google_exceptions.InvalidArgument) and "api key" in str(error).lower():
            return ErrorKind.PERMISSION_DENIED
        if isinstance(error, (google_exceptions.DeadlineExceeded,
                              google_exceptions.ServiceUnavailable,
                              google_exceptions.ResourceExhausted)):
            return ErrorKind.TRANSIENT
        return classify_error_message(str(error))
