from datetime import datetime
from pydantic import BaseModel, Field

class ChannelCreate(BaseModel):
    name: str = Field(..., min_length=1)
    youtube_channel_id: str = Field(..., pattern=r"^UC[\w-]{22}$")
    is_active: bool = True
    sync_now: bool = False  # enqueue a first sync right away

class ChannelOut(BaseModel):
    id: str
    name: str
    youtube_channel_id: str
    youtube_feed_url: str
    is_active: bool
    last_synced_at: datetime | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class ChannelResolveRequest(BaseModel):
    url: str = Field(..., description="YouTube URL or handle to resolve")


class ChannelResolveResponse(BaseModel):
    channel_id: str | None = None
    name: str | None = None
    error: str | None = None


class SyncLogOut(BaseModel):
    id: str
    channel_id: str | None = None
    sync_type: str
    status: str
    new_videos_count: int
    updated_videos_count: int
    error_message: str | None = None
    started_at: datetime
    completed_at: datetime | None = None

    class Config:
        from_attributes = True


class SyncQueued(BaseModel):
    channel_id: str
    job_id: str | None = None
