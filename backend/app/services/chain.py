"""
Primary -> fallback sequencing across OCR providers.

States: TRY_PRIMARY -> (TRY_FALLBACK) -> SUCCESS | EXHAUSTED.

- A missing primary, NOT_CONFIGURED or PERMISSION_DENIED moves to the
  fallback when one is configured.
- TRANSIENT and EMPTY_RESULT end the chain, unless ``fallback_on_transient``
  is set. The same provider is never retried.
- Any failure of the fallback is terminal.
"""

import logging
from enum import Enum
from typing import List, Optional, Sequence

from app.services.providers.base import (
    ErrorInfo,
    ErrorKind,
    OCRProvider,
    ProviderKind,
    RawOCRResult,
)

logger = logging.getLogger(__name__)

FALLBACK_TRIGGERS = frozenset({ErrorKind.NOT_CONFIGURED, ErrorKind.PERMISSION_DENIED})
TRANSIENT_KINDS = frozenset({ErrorKind.TRANSIENT, ErrorKind.EMPTY_RESULT})


class ChainState(str, Enum):
    TRY_PRIMARY = "TRY_PRIMARY"
    TRY_FALLBACK = "TRY_FALLBACK"
    SUCCESS = "SUCCESS"
    EXHAUSTED = "EXHAUSTED"


class ProviderChain:
    """Runs the primary provider and, when eligible, the fallback."""

    def __init__(
        self,
        primary: Optional[OCRProvider] = None,
        fallback: Optional[OCRProvider] = None,
        fallback_on_transient: bool = False,
    ):
        self.primary = primary
        self.fallback = fallback
        self.fallback_on_transient = fallback_on_transient

    def run(
        self,
        image_bytes: bytes,
        mime_type: str,
        category_names: Optional[Sequence[str]] = None,
    ) -> RawOCRResult:
        """
        Recognize text, falling back when the primary is unusable.

        ``category_names`` is forwarded to each provider call.

        Never raises: every path returns a RawOCRResult.
        """
        notes: List[str] = []
        last_error: Optional[ErrorInfo] = None
        state = ChainState.TRY_PRIMARY

        # TRY_PRIMARY
        if not self._is_configured(self.primary):
            last_error = ErrorInfo(ErrorKind.NOT_CONFIGURED, "Primary OCR provider not configured.")
            notes.append("Primary OCR not configured")
            state = ChainState.TRY_FALLBACK
        else:
            result = self._attempt(self.primary, image_bytes, mime_type, category_names)
            if result.succeeded:
                logger.info("OCR succeeded", extra={"provider": self.primary.name, "stage": "primary"})
                return self._success(result, ProviderKind.PRIMARY, notes)

            last_error = result.provider_error
            notes.append(self._failure_note("Primary OCR", self.primary.name, last_error))
            if self._eligible_for_fallback(last_error):
                state = ChainState.TRY_FALLBACK
            else:
                state = ChainState.EXHAUSTED

        # TRY_FALLBACK
        if state == ChainState.TRY_FALLBACK:
            if not self._is_configured(self.fallback):
                if self.fallback is not None:
                    notes.append("fallback OCR not configured")
                state = ChainState.EXHAUSTED
            else:
                logger.info("Falling back to secondary OCR provider", extra={
                    "provider": self.fallback.name,
                    "reason": last_error.kind.value if last_error else None,
                })
                result = self._attempt(self.fallback, image_bytes, mime_type, category_names)
                if result.succeeded:
                    notes.append(f"used fallback ({self.fallback.name})")
                    return self._success(result, ProviderKind.FALLBACK, notes)

                last_error = result.provider_error
                notes.append(self._failure_note("fallback OCR", self.fallback.name, last_error))
                state = ChainState.EXHAUSTED

        narrative = "; ".join(notes) + "." if notes else ""
        logger.warning("OCR chain exhausted", extra={
            "state": state.value,
            "error_kind": last_error.kind.value if last_error else None,
        })
        return RawOCRResult(
            provider_used=ProviderKind.NONE,
            provider_error=last_error,
            narrative=narrative,
        )

    @staticmethod
    def _is_configured(provider: Optional[OCRProvider]) -> bool:
        if provider is None:
            return False
        try:
            return provider.configured
        except Exception:
            logger.exception("Could not check provider configuration", extra={"provider": provider.name})
            return False

    def _eligible_for_fallback(self, error: Optional[ErrorInfo]) -> bool:
        if error is None:
            return False
        if error.kind in FALLBACK_TRIGGERS:
            return True
        return self.fallback_on_transient and error.kind in TRANSIENT_KINDS

    @staticmethod
    def _attempt(
        provider: OCRProvider,
        image_bytes: bytes,
        mime_type: str,
        category_names: Optional[Sequence[str]] = None,
    ) -> RawOCRResult:
        """One call, no retry. Converts anything the adapter lets escape."""
        try:
            result = provider.recognize(image_bytes, mime_type, category_names=category_names)
        except Exception as e:
            logger.exception("OCR provider raised", extra={"provider": provider.name})
            return RawOCRResult.failure(ErrorKind.TRANSIENT, str(e) or type(e).__name__, provider.name)

        if result.provider_error is None and not result.text.strip():
            return RawOCRResult.failure(ErrorKind.EMPTY_RESULT, f"{provider.name} returned no text", provider.name)
        return result

    @staticmethod
    def _failure_note(stage: str, name: str, error: Optional[ErrorInfo]) -> str:
        if error is None:
            return f"{stage} ({name}) failed"
        if error.kind == ErrorKind.NOT_CONFIGURED:
            return f"{stage} ({name}) not configured"
        if error.kind == ErrorKind.PERMISSION_DENIED:
            return f"{stage} ({name}) unavailable: {error.message}"
        if error.kind == ErrorKind.EMPTY_RESULT:
            return f"{stage} ({name}) returned no text"
        return f"{stage} ({name}) failed: {error.message}"

    @staticmethod
    def _success(result: RawOCRResult, used: ProviderKind, notes: List[str]) -> RawOCRResult:
        return RawOCRResult(
            text=result.text,
            provider_used=used,
            provider_name=result.provider_name,
            narrative="; ".join(notes) + "." if notes else "",
        )
