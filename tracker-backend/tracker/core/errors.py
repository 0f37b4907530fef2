"""
TrackerError hierarchy.

Typed exceptions let the ingestion pipeline and the API tell a bad oracle
response from a missing video or a wrong LogEntry state without parsing
message strings.

Hierarchy:
    TrackerError
    ├── ExtractionFailed        (no valid JSON from the oracle after one retry)
    ├── TranscriptionError      (audio could not be turned into text)
    ├── VideoNotFound
    ├── LogEntryNotFound
    ├── LogEntryStateError      (operation not allowed in the entry's status)
    ├── ImportFileError         (unsupported or empty upload)
    └── SyncError               (channel feed could not be read)
"""
from typing import Optional


class TrackerError(Exception):
    """Base exception for tracker errors."""

    def __init__(self, message: str, *, cause: Optional[Exception] = None):
        self.cause = cause
        super().__init__(message)
        if cause and not self.__cause__:
            self.__cause__ = cause

    def to_dict(self) -> dict:
        d = {
            "error_type": type(self).__name__,
            "message": str(self),
        }
        if self.cause:
            d["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return d


class ExtractionFailed(TrackerError):
    """Oracle returned no parseable, schema-valid JSON after one retry."""

    def __init__(self, message: str = "Extraction failed", *, attempts: int = 0, **kwargs):
        self.attempts = attempts
        super().__init__(message, **kwargs)

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["attempts"] = self.attempts
        return d


class TranscriptionError(TrackerError):
    pass


class VideoNotFound(TrackerError):

    def __init__(self, video_id: str):
        self.video_id = video_id
        super().__init__(f"Video not found: {video_id}")


class LogEntryNotFound(TrackerError):

    def __init__(self, log_entry_id: str):
        self.log_entry_id = log_entry_id
        super().__init__(f"Log entry not found: {log_entry_id}")


class LogEntryStateError(TrackerError):
    pass


class ImportFileError(TrackerError):
    pass


class SyncError(TrackerError):
    pass
