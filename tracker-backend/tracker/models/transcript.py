from datetime import datetime

from sqlalchemy import String, Text, DateTime, ForeignKey, JSON, func
from sqlalchemy.orm import Mapped, mapped_column
from tracker.db.base import Base

class Transcript(Base):
    """Extraction result for one processing attempt of a LogEntry. Never updated."""
    __tablename__ = "transcripts"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    log_entry_id: Mapped[str] = mapped_column(String, ForeignKey("log_entries.id"), nullable=False, index=True)

    raw_transcript: Mapped[str] = mapped_column(Text, nullable=False)
    extracted_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    confidence_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
