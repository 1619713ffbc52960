"""
Google Cloud Vision text detection adapter (primary provider).
"""

import logging
from typing import Optional

from google.api_core import exceptions as google_exceptions
from google.cloud import vision

from app.services.providers.base import ErrorKind, OCRProvider, classify_error_message
from app.services.providers.imaging import pdf_first_page_png

logger = logging.getLogger(__name__)


class VisionResponseError(Exception):
    """Error reported inside a successful Vision RPC response."""


class GoogleVisionProvider(OCRProvider):
    """Runs ``text_detection`` with an API key; PDFs are sent as their first page."""

    name = "Google Vision"

    def __init__(self, api_key: Optional[str], timeout: float = 30.0, client=None):
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    @property
    def client(self):
        if self._client is None:
            self._client = vision.ImageAnnotatorClient(
                client_options={"api_key": self.api_key}
            )
            logger.info("Google Vision API client initialized")
        return self._client

    def _recognize(self, image_bytes: bytes, mime_type: str, category_names=None) -> str:
        if mime_type == "application/pdf":
            image_bytes = pdf_first_page_png(image_bytes)

        response = self.client.text_detection(
            image=vision.Image(content=image_bytes),
            retry=None,
            timeout=self.timeout,
        )

        if response.error.message:
            raise VisionResponseError(response.error.message)

        annotations = response.text_annotations
        if not annotations:
            return ""
        # The first annotation holds the full text block
        return annotations[0].description or ""

    def classify_exception(self, error: Exception) -> ErrorKind:
        if isinstance(error, (google_exceptions.PermissionDenied,
                              google_exceptions.Unauthenticated,
                              google_exceptions.Forbidden)):
            return ErrorKind.PERMISSION_DENIED
        if isinstance(error, (google_exceptions.DeadlineExceeded,
                              google_exceptions.ServiceUnavailable,
                              google_exceptions.RetryError)):
            return ErrorKind.TRANSIENT
        return classify_error_message(str(error))

    def describe_error(self, kind: ErrorKind, error: Exception) -> str:
        if kind == ErrorKind.PERMISSION_DENIED:
            return (
                "Google Vision API not properly enabled. "
                "Please enable the API in your Google Cloud Console."
            )
        return super().describe_error(kind, error)
