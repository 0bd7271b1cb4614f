"""Exceptions raised by the extraction and loading steps."""

from __future__ import annotations

from typing import Optional


class KtloError(Exception):
    """Base exception for all KTLO dashboard errors"""


class SourceUnreadable(KtloError):
    """The source workbook could not be opened or parsed"""

    def __init__(self, path: str, reason: str = ""):
        message = f"Cannot read workbook: {path}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.path = path
        self.reason = reason


class MalformedRow(KtloError):
    """A raw row could not be turned into a record; the row is dropped"""

    def __init__(self, reason: str, sheet: Optional[str] = None, row: Optional[int] = None):
        super().__init__(reason)
        self.reason = reason
        self.sheet = sheet
        self.row = row


class MissingArtifact(KtloError):
    """The JSON data file a dashboard needs is absent or unusable"""

    def __init__(self, path: str, reason: str = "not found"):
        super().__init__(f"Data file {path}: {reason}")
        self.path = path
        self.reason = reason
