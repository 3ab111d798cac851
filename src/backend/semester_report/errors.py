from __future__ import annotations

from typing import Optional


class ReportDataError(RuntimeError):
    """
    Raised when the data provider cannot produce the report inputs.

    ``collection`` names the input that failed (``members``, ``events`` ...)
    so callers can surface a precise message. Report generation is aborted;
    partial reports are never returned.
    """

    def __init__(self, message: str, collection: Optional[str] = None):
        super().__init__(message)
        self.collection = collection


class InvalidRecordError(ReportDataError):
    """A raw row could not be mapped onto its typed record."""


class ReportRangeError(ValueError):
    pass
