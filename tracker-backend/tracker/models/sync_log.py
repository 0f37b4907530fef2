from datetime import datetime

from sqlalchemy import String, Integer, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from tracker.db.base import Base

class SyncLog(Base):
    __tablename__ = "sync_logs"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    channel_id: Mapped[str | None] = mapped_column(String, nullable=True)
    sync_type: Mapped[str] = mapped_column(String(40), default="youtube_uploads")

    status: Mapped[str] = mapped_column(String(20), default="started")
    new_videos_count: Mapped[int] = mapped_column(Integer, default=0)
    updated_videos_count: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
