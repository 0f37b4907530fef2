"""
Logging Configuration - Structured logging with ingestion context
"""
import logging
import json
import sys
from datetime import datetime, timezone
from typing import Optional
from contextvars import ContextVar


# Context variables for ingestion tracking
current_log_entry_id: ContextVar[Optional[str]] = ContextVar('current_log_entry_id', default=None)
current_video_id: ContextVar[Optional[str]] = ContextVar('current_video_id', default=None)


class StructuredFormatter(logging.Formatter):
    """
    JSON-structured log formatter with ingestion context.
    """
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        log_entry_id = current_log_entry_id.get()
        video_id = current_video_id.get()

        if log_entry_id:
            log_data["log_entry_id"] = log_entry_id
        if video_id:
            log_data["video_id"] = video_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields
        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


def setup_logging(level: str = "INFO", structured: bool = True):
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        structured: Use JSON format (True) or human-readable (False)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
        ))

    root_logger.addHandler(handler)


class IngestContext:
    """
    Context manager for tagging logs with the LogEntry / Video being processed.

    Usage:
        with IngestContext(log_entry_id="abc123"):
            logger.info("Extracting...")  # JSON output includes log_entry_id
    """
    def __init__(self, log_entry_id: Optional[str] = None, video_id: Optional[str] = None):
        self.log_entry_id = log_entry_id
        self.video_id = video_id
        self._tokens = []

    def __enter__(self):
        if self.log_entry_id:
            self._tokens.append((current_log_entry_id, current_log_entry_id.set(self.log_entry_id)))
        if self.video_id:
            self._tokens.append((current_video_id, current_video_id.set(self.video_id)))
        return self

    def bind_video(self, video_id: str):
        """Attach a video id once resolution has picked one."""
        self._tokens.append((current_video_id, current_video_id.set(video_id)))

    def __exit__(self, *args):
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens = []
