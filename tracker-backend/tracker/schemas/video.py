from datetime import datetime
from typing import Any
from pydantic import BaseModel, Field

Scalar = int | float | str | None


class VideoCreate(BaseModel):
    """Request body for manually adding a video"""
    title: str = Field(..., min_length=1)
    published_at: str | None = None
    youtube_video_id: str | None = None
    duration_seconds: Scalar = None


class ManualFieldsIn(BaseModel):
    hook: str | None = None
    caption: str | None = None
    hashtags: list[str] | str | None = None
    topic: str | None = None
    format: str | None = None
    cta: str | None = None
    target_audience: str | None = None
    why_posted: str | None = None
    content_summary: str | None = None
    wearing_outfit: str | None = None
    notes: str | None = None


class PlatformMetricsIn(BaseModel):
    platform: str
    views: Scalar = None
    likes: Scalar = None
    comments: Scalar = None
    shares: Scalar = None
    saves: Scalar = None
    watch_time_seconds: Scalar = None
    followers_gained: Scalar = None


class PlatformPostIn(BaseModel):
    platform: str
    posted: bool | str | None = None
    posted_at: str | None = None


class VideoUpdate(BaseModel):
    """Partial edit. Omitted or null fields keep their stored value."""
    title: str | None = None
    description: str | None = None
    published_at: str | None = None
    duration_seconds: Scalar = None
    manual: ManualFieldsIn | None = None
    metrics: list[PlatformMetricsIn] = Field(default_factory=list)
    posts: list[PlatformPostIn] = Field(default_factory=list)


class ManualFieldsOut(BaseModel):
    hook: str | None = None
    caption: str | None = None
    hashtags: list[str] | None = None
    topic: str | None = None
    format: str | None = None
    cta: str | None = None
    target_audience: str | None = None
    why_posted: str | None = None
    content_summary: str | None = None
    wearing_outfit: str | None = None
    notes: str | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class PlatformMetricsOut(BaseModel):
    platform: str
    views: int | None = None
    likes: int | None = None
    comments: int | None = None
    shares: int | None = None
    saves: int | None = None
    watch_time_seconds: int | None = None
    followers_gained: int | None = None
    source: str | None = None
    log_entry_id: str | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class PlatformPostOut(BaseModel):
    platform: str
    posted: bool | None = None
    posted_at: datetime | None = None
    source: str | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class VideoOut(BaseModel):
    id: str
    youtube_video_id: str | None = None
    title: str
    description: str | None = None
    thumbnail_url: str | None = None
    published_at: datetime | None = None
    duration_seconds: int | None = None
    source: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class AuditEntryOut(BaseModel):
    id: str
    entity_type: str
    entity_id: str
    field: str
    old_value: str | None = None
    new_value: str | None = None
    source: str
    changed_by: str | None = None
    changed_at: datetime

    class Config:
        from_attributes = True


class VideoDetailOut(VideoOut):
    manual_fields: ManualFieldsOut | None = None
    platform_metrics: list[PlatformMetricsOut] = Field(default_factory=list)
    platform_posts: list[PlatformPostOut] = Field(default_factory=list)
    audit: list[AuditEntryOut] = Field(default_factory=list)


class MergeReport(BaseModel):
    video_id: str
    changed_fields: list[str] = Field(default_factory=list)
    skipped_fields: list[str] = Field(default_factory=list)
    created: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result) -> "MergeReport":
        return cls(
            video_id=result.video_id,
            changed_fields=[c.field for c in result.changes],
            skipped_fields=result.skipped,
            created=result.created,
        )


class SpreadsheetOut(BaseModel):
    videos: list[dict[str, Any]]
    platforms: list[str]
    missing_data_summary: dict[str, int]
