"""
Provider adapter interface shared by every OCR/vision backend.

An adapter turns image bytes into a ``RawOCRResult``. It never raises and never
retries: backend errors are classified into an ``ErrorInfo`` here, at the
adapter boundary, and retry/fallback policy belongs to the provider chain.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence

logger = logging.getLogger(__name__)

SUPPORTED_MIME_TYPES = frozenset({"image/jpeg", "image/png", "application/pdf"})

# "image/jpg" is sent by some browsers for JPEG uploads
MIME_ALIASES = {"image/jpg": "image/jpeg", "image/pjpeg": "image/jpeg"}


class ProviderKind(str, Enum):
    """Which stage of the chain produced the text."""
    PRIMARY = "PRIMARY"
    FALLBACK = "FALLBACK"
    NONE = "NONE"


class ErrorKind(str, Enum):
    """Why a provider failed."""
    NOT_CONFIGURED = "NOT_CONFIGURED"        # no credential or binary present
    PERMISSION_DENIED = "PERMISSION_DENIED"  # backend rejected the credential / API disabled
    TRANSIENT = "TRANSIENT"                  # network, timeout, unexpected backend error
    EMPTY_RESULT = "EMPTY_RESULT"            # backend answered with no text


@dataclass(frozen=True)
class ErrorInfo:
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class RawOCRResult:
    """
    Outcome of a single recognition attempt (or of the whole chain).

    ``text`` is empty whenever ``provider_error`` is set.
    """
    text: str = ""
    provider_used: ProviderKind = ProviderKind.NONE
    provider_error: Optional[ErrorInfo] = None
    provider_name: Optional[str] = None
    narrative: str = ""

    @property
    def succeeded(self) -> bool:
        return bool(self.text.strip()) and self.provider_error is None

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, provider_name: Optional[str] = None) -> "RawOCRResult":
        return cls(provider_error=ErrorInfo(kind, message), provider_name=provider_name)


class InvalidInputError(ValueError):
    """Raised for empty, oversized or unsupported uploads."""


def normalize_mime_type(mime_type: Optional[str]) -> str:
    mime_type = (mime_type or "").split(";")[0].strip().lower()
    return MIME_ALIASES.get(mime_type, mime_type)


def validate_input(image_bytes: bytes, mime_type: str, max_bytes: Optional[int] = None) -> str:
    """
    Check an upload before it reaches any backend.

    Returns:
        The normalized MIME type

    Raises:
        InvalidInputError: empty bytes, unsupported type or too large
    """
    if not image_bytes:
        raise InvalidInputError("Image data is empty")

    normalized = normalize_mime_type(mime_type)
    if normalized not in SUPPORTED_MIME_TYPES:
        raise InvalidInputError(
            f"Unsupported file type: {mime_type}. Allowed: PDF, JPG, PNG"
        )

    if max_bytes is not None and len(image_bytes) > max_bytes:
        size_mb = len(image_bytes) / (1024 * 1024)
        raise InvalidInputError(
            f"File too large: {size_mb:.2f}MB. Maximum: {max_bytes / (1024 * 1024):.0f}MB"
        )

    return normalized


# Substrings in backend error text that mean the credential or API is unusable
PERMISSION_MARKERS = (
    "PERMISSION_DENIED",
    "API has not been used",
    "it is disabled",
    "API key not valid",
    "API_KEY_INVALID",
    "UNAUTHENTICATED",
    "unauthorized",
    "forbidden",
    "billing",
)

NOT_CONFIGURED_MARKERS = (
    "could not automatically determine credentials",
    "no api key",
    "api key not found",
    "is not installed or it's not in your path",
)


def _contains_any(message: str, markers: Iterable[str]) -> bool:
    lowered = message.lower()
    return any(marker.lower() in lowered for marker in markers)


def classify_error_message(
    message: str,
    permission_markers: Iterable[str] = PERMISSION_MARKERS,
    not_configured_markers: Iterable[str] = NOT_CONFIGURED_MARKERS,
) -> ErrorKind:
    """
    Classify backend error text.

    Depends on the vendor's wording; adapters pass their own marker lists when
    a backend phrases things differently.
    """
    if _contains_any(message, not_configured_markers):
        return ErrorKind.NOT_CONFIGURED
    if _contains_any(message, permission_markers):
        return ErrorKind.PERMISSION_DENIED
    return ErrorKind.TRANSIENT


class OCRProvider(ABC):
    """Single OCR/vision backend."""

    name: str = "provider"

    @property
    def configured(self) -> bool:
        """Whether a credential (or local binary path) is present."""
        return True

    def recognize(
        self,
        image_bytes: bytes,
        mime_type: str,
        category_names: Optional[Sequence[str]] = None,
    ) -> RawOCRResult:
        """
        Recognize text in an image or PDF.

        ``category_names`` is the caller's category vocabulary for this request;
        backends that can suggest a category use it, others ignore it.

        Never raises. On failure returns a result with ``provider_error`` set
        and no text.
        """
        if not self.configured:
            return RawOCRResult.failure(
                ErrorKind.NOT_CONFIGURED,
                f"{self.name} is not configured",
                self.name,
            )

        try:
            mime_type = validate_input(image_bytes, mime_type)
            text = self._recognize(image_bytes, mime_type, category_names)
        except InvalidInputError as e:
            # Input problems are not the backend's fault, but the chain treats them alike
            return RawOCRResult.failure(ErrorKind.TRANSIENT, str(e), self.name)
        except Exception as e:
            kind = self.classify_exception(e)
            logger.warning("OCR provider failed", extra={
                "provider": self.name,
                "error_kind": kind.value,
                "error": str(e),
            })
            return RawOCRResult.failure(kind, self.describe_error(kind, e), self.name)

        text = (text or "").strip()
        if not text:
            return RawOCRResult.failure(
                ErrorKind.EMPTY_RESULT,
                f"{self.name} returned no text",
                self.name,
            )

        return RawOCRResult(text=text, provider_name=self.name)

    @abstractmethod
    def _recognize(
        self,
        image_bytes: bytes,
        mime_type: str,
        category_names: Optional[Sequence[str]] = None,
    ) -> str:
        """Call the backend and return its raw text. May raise."""

    def classify_exception(self, error: Exception) -> ErrorKind:
        if isinstance(error, TimeoutError):
            return ErrorKind.TRANSIENT
        return classify_error_message(f"{type(error).__name__}: {error}")

    def describe_error(self, kind: ErrorKind, error: Exception) -> str:
        if kind == ErrorKind.PERMISSION_DENIED:
            return f"{self.name} rejected the request. Check that the API is enabled for this key."
        if kind == ErrorKind.NOT_CONFIGURED:
            return f"{self.name} is not configured: {error}"
        return f"Error processing OCR with {self.name}. Technical details: {error or 'Unknown error'}"
