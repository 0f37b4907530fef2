from datetime import datetime

from sqlalchemy import String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from tracker.db.base import Base

class VideoPlatformPost(Base):
    """Whether (and when) a video went out on one platform."""
    __tablename__ = "video_platform_posts"
    __table_args__ = (UniqueConstraint("video_id", "platform", name="uq_posts_video_platform"),)

    id: Mapped[str] = mapped_column(String, primary_key=True)
    video_id: Mapped[str] = mapped_column(String, ForeignKey("videos.id"), nullable=False, index=True)
    platform: Mapped[str] = mapped_column(String(40), nullable=False)

    posted: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    source: Mapped[str] = mapped_column(String(20), default="manual")
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
