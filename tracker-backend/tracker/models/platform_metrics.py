from datetime import datetime

from sqlalchemy import String, BigInteger, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from tracker.db.base import Base

class VideoPlatformMetrics(Base):
    __tablename__ = "video_platform_metrics"
    __table_args__ = (UniqueConstraint("video_id", "platform", name="uq_metrics_video_platform"),)

    id: Mapped[str] = mapped_column(String, primary_key=True)
    video_id: Mapped[str] = mapped_column(String, ForeignKey("videos.id"), nullable=False, index=True)
    platform: Mapped[str] = mapped_column(String(40), nullable=False)

    views: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    likes: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    comments: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    shares: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    saves: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    watch_time_seconds: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    followers_gained: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    # Provenance of the latest write: manual, transcript, import or sync
    source: Mapped[str] = mapped_column(String(20), default="manual")
    log_entry_id: Mapped[str | None] = mapped_column(String, nullable=True)

    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
