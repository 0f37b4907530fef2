from datetime import datetime
from typing import TypeVar, Generic, Type, Optional
from uuid import uuid4
from sqlalchemy.orm import Session
from tracker.db.base import Base

T = TypeVar("T", bound=Base)

class BaseRepository(Generic[T]):
    """Generic repository for CRUD operations."""

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model

    def get_by_id(self, id: str) -> Optional[T]:
        return self.db.query(self.model).filter(self.model.id == id).first()

    def get_all(self) -> list[T]:
        return self.db.query(self.model).all()

    def create(self, **kwargs) -> T:
        if "id" not in kwargs:
            kwargs["id"] = str(uuid4())
        instance = self.model(**kwargs)
        self.db.add(instance)
        return instance

    def delete(self, id: str) -> bool:
        instance = self.get_by_id(id)
        if instance:
            self.db.delete(instance)
            return True
        return False


class VideoRepository(BaseRepository):
    """Repository for Video operations."""

    def __init__(self, db: Session):
        from tracker.models import Video
        super().__init__(db, Video)

    def get_for_user(self, video_id: str, user_id: str):
        return self.db.query(self.model).filter(
            self.model.id == video_id,
            self.model.user_id == user_id,
        ).first()

    def get_by_youtube_id(self, youtube_video_id: str):
        return self.db.query(self.model).filter(
            self.model.youtube_video_id == youtube_video_id
        ).first()

    def list_for_user(self, user_id: str, limit: Optional[int] = None):
        # Unknown publish dates sort last
        q = self.db.query(self.model).filter(
            self.model.user_id == user_id
        ).order_by(
            self.model.published_at.is_(None),
            self.model.published_at.desc(),
            self.model.created_at.desc(),
        )
        if limit:
            q = q.limit(limit)
        return q.all()

    def known_videos(self, user_id: str, limit: Optional[int] = None):
        """Abbreviated videos for the oracle prompt and the resolver."""
        from tracker.services.oracle import KnownVideo
        return [
            KnownVideo(
                id=v.id,
                title=v.title,
                published_at=v.published_at,
                youtube_video_id=v.youtube_video_id,
            )
            for v in self.list_for_user(user_id, limit)
        ]

    def delete_cascade(self, video_id: str) -> bool:
        """Delete a video and the rows hanging off it. Audit rows are kept."""
        from tracker.models import VideoManualFields, VideoPlatformMetrics, VideoPlatformPost, LogEntry

        video = self.get_by_id(video_id)
        if not video:
            return False
        self.db.query(VideoManualFields).filter(
            VideoManualFields.video_id == video_id
        ).delete(synchronize_session=False)
        self.db.query(VideoPlatformMetrics).filter(
            VideoPlatformMetrics.video_id == video_id
        ).delete(synchronize_session=False)
        self.db.query(VideoPlatformPost).filter(
            VideoPlatformPost.video_id == video_id
        ).delete(synchronize_session=False)
        self.db.query(LogEntry).filter(
            LogEntry.linked_video_id == video_id
        ).update({LogEntry.linked_video_id: None}, synchronize_session=False)
        self.db.delete(video)
        return True


class ManualFieldsRepository(BaseRepository):
    """Repository for VideoManualFields operations."""

    def __init__(self, db: Session):
        from tracker.models import VideoManualFields
        super().__init__(db, VideoManualFields)

    def get_for_video(self, video_id: str):
        return self.db.query(self.model).filter(
            self.model.video_id == video_id
        ).first()

    def get_for_videos(self, video_ids: list[str]) -> dict:
        if not video_ids:
            return {}
        rows = self.db.query(self.model).filter(self.model.video_id.in_(video_ids)).all()
        return {r.video_id: r for r in rows}


class PlatformMetricsRepository(BaseRepository):
    """Repository for VideoPlatformMetrics operations."""

    def __init__(self, db: Session):
        from tracker.models import VideoPlatformMetrics
        super().__init__(db, VideoPlatformMetrics)

    def get_for_video(self, video_id: str):
        return self.db.query(self.model).filter(
            self.model.video_id == video_id
        ).order_by(self.model.platform).all()

    def get_one(self, video_id: str, platform: str):
        return self.db.query(self.model).filter(
            self.model.video_id == video_id,
            self.model.platform == platform,
        ).first()

    def get_for_videos(self, video_ids: list[str]) -> dict:
        """video_id -> {platform: row}"""
        if not video_ids:
            return {}
        grouped: dict = {}
        for row in self.db.query(self.model).filter(self.model.video_id.in_(video_ids)).all():
            grouped.setdefault(row.video_id, {})[row.platform] = row
        return grouped


class PlatformPostRepository(BaseRepository):
    """Repository for VideoPlatformPost operations."""

    def __init__(self, db: Session):
        from tracker.models import VideoPlatformPost
        super().__init__(db, VideoPlatformPost)

    def get_for_video(self, video_id: str):
        return self.db.query(self.model).filter(
            self.model.video_id == video_id
        ).order_by(self.model.platform).all()

    def get_for_videos(self, video_ids: list[str]) -> dict:
        """video_id -> {platform: row}"""
        if not video_ids:
            return {}
        grouped: dict = {}
        for row in self.db.query(self.model).filter(self.model.video_id.in_(video_ids)).all():
            grouped.setdefault(row.video_id, {})[row.platform] = row
        return grouped


class LogEntryRepository(BaseRepository):
    """Repository for LogEntry operations."""

    def __init__(self, db: Session):
        from tracker.models import LogEntry
        super().__init__(db, LogEntry)

    def get_for_user(self, log_entry_id: str, user_id: str):
        return self.db.query(self.model).filter(
            self.model.id == log_entry_id,
            self.model.user_id == user_id,
        ).first()

    def list_for_user(self, user_id: str, limit: int = 20):
        return self.db.query(self.model).filter(
            self.model.user_id == user_id
        ).order_by(self.model.created_at.desc()).limit(limit).all()

    def recent_texts(self, user_id: str, exclude_id: str, limit: int = 5) -> list[str]:
        rows = self.db.query(self.model).filter(
            self.model.user_id == user_id,
            self.model.id != exclude_id,
            self.model.raw_text.is_not(None),
        ).order_by(self.model.created_at.desc()).limit(limit).all()
        return [r.raw_text for r in reversed(rows)]

    def get_stale_processing(self, cutoff: datetime):
        return self.db.query(self.model).filter(
            self.model.status == "processing",
            self.model.queued_at < cutoff,
        ).all()


class TranscriptRepository(BaseRepository):
    """Repository for Transcript operations."""

    def __init__(self, db: Session):
        from tracker.models import Transcript
        super().__init__(db, Transcript)

    def latest_for_log_entry(self, log_entry_id: str):
        return self.db.query(self.model).filter(
            self.model.log_entry_id == log_entry_id
        ).order_by(self.model.created_at.desc()).first()


class ImportBatchRepository(BaseRepository):
    """Repository for ImportBatch operations."""

    def __init__(self, db: Session):
        from tracker.models import ImportBatch
        super().__init__(db, ImportBatch)

    def list_for_user(self, user_id: str):
        return self.db.query(self.model).filter(
            self.model.user_id == user_id
        ).order_by(self.model.created_at.desc()).all()

    def get_rows(self, batch_id: str):
        from tracker.models import ImportedRow
        return self.db.query(ImportedRow).filter(
            ImportedRow.batch_id == batch_id
        ).order_by(ImportedRow.row_index).all()


class ChannelRepository(BaseRepository):
    """Repository for Channel operations."""

    def __init__(self, db: Session):
        from tracker.models import Channel
        super().__init__(db, Channel)

    def get_active(self):
        return self.db.query(self.model).filter(
            self.model.is_active == True
        ).all()

    def get_by_youtube_id(self, user_id: str, youtube_channel_id: str):
        return self.db.query(self.model).filter(
            self.model.user_id == user_id,
            self.model.youtube_channel_id == youtube_channel_id,
        ).first()

    def list_for_user(self, user_id: str):
        return self.db.query(self.model).filter(
            self.model.user_id == user_id
        ).order_by(self.model.created_at.desc()).all()


class SyncLogRepository(BaseRepository):
    """Repository for SyncLog operations."""

    def __init__(self, db: Session):
        from tracker.models import SyncLog
        super().__init__(db, SyncLog)
