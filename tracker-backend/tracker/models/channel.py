from datetime import datetime

from sqlalchemy import String, Boolean, DateTime, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from tracker.db.base import Base

class Channel(Base):
    """A creator's YouTube channel, polled for uploads by the sync client."""
    __tablename__ = "channels"
    __table_args__ = (UniqueConstraint("user_id", "youtube_channel_id", name="uq_channel_user"),)

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    youtube_channel_id: Mapped[str] = mapped_column(String, nullable=False)
    youtube_feed_url: Mapped[str] = mapped_column(String, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
