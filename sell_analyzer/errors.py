"""Error types raised by the extraction engine and the correction store"""

from __future__ import annotations

from typing import Optional


class SellAnalyzerError(RuntimeError):
    """Base error for the package"""

    def __init__(self, message: str, *, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause

    def __str__(self) -> str:
        if self.cause:
            return f"{super().__str__()} (cause={self.cause})"
        return super().__str__()


class EngineUnavailable(SellAnalyzerError):
    """The OCR engine could not be created or initialized. Fatal for the batch."""


class RecognitionFailed(SellAnalyzerError):
    """One recognition attempt (image x variant x pass) failed"""

    def __init__(
        self,
        message: str,
        *,
        image_ref: str = "",
        variant: str = "",
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, cause=cause)
        self.image_ref = image_ref
        self.variant = variant


class RecognitionTimeout(RecognitionFailed):
    """A recognition call exceeded the configured timeout"""


class NotFound(SellAnalyzerError, KeyError):
    """A trade id is not present in the correction store"""

    def __init__(self, trade_id: str):
        super().__init__(f"Trade not found: {trade_id}")
        self.trade_id = trade_id

    def __str__(self) -> str:
        return SellAnalyzerError.__str__(self)


class EditStateError(SellAnalyzerError):
    """Edit operations called out of order"""


class DuplicateTradeId(SellAnalyzerError, ValueError):
    """A trade id is already in use or was used before"""
