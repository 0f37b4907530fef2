import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from tracker.api.deps import get_current_user_id
from tracker.db.repositories import ChannelRepository
from tracker.db.session import get_db
from tracker.models import SyncLog
from tracker.schemas.channel import (
    ChannelCreate,
    ChannelOut,
    ChannelResolveRequest,
    ChannelResolveResponse,
    SyncLogOut,
    SyncQueued,
)
from tracker.services.audit import utcnow
from tracker.services.youtube import channel_feed_url, get_channel_id
from tracker.workers import queue as work_queue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/channels", tags=["channels"])


def _get_owned_channel(db: Session, channel_id: str, user_id: str):
    ch = ChannelRepository(db).get_by_id(channel_id)
    if not ch or ch.user_id != user_id:
        raise HTTPException(status_code=404, detail="Channel not found")
    return ch


@router.post("/resolve", response_model=ChannelResolveResponse)
def resolve_channel(body: ChannelResolveRequest):
    """
    Resolve a YouTube URL (video, handle, or custom URL) to a canonical Channel ID.
    """
    result = get_channel_id(body.url)
    return ChannelResolveResponse(**result)


@router.get("", response_model=list[ChannelOut])
def list_channels(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return ChannelRepository(db).list_for_user(user_id)


@router.post("", response_model=ChannelOut, status_code=201)
def create_channel(
    body: ChannelCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    repo = ChannelRepository(db)
    existing = repo.get_by_youtube_id(user_id, body.youtube_channel_id)
    if existing:
        raise HTTPException(status_code=400, detail=f"Channel already linked as '{existing.name}'")

    ch = repo.create(
        user_id=user_id,
        name=body.name,
        youtube_channel_id=body.youtube_channel_id,
        youtube_feed_url=channel_feed_url(body.youtube_channel_id),
        is_active=body.is_active,
        created_at=utcnow(),
    )
    db.commit()
    db.refresh(ch)

    if body.sync_now and ch.is_active:
        try:
            work_queue.enqueue_sync(ch.id)
        except RedisError as e:
            logger.warning(f"Could not enqueue first sync for {ch.name}: {e}")
    return ch


@router.delete("/{channel_id}")
def delete_channel(
    channel_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Unlink a channel. Videos it synced stay, with their history."""
    ch = _get_owned_channel(db, channel_id, user_id)
    db.delete(ch)
    db.commit()
    return {"ok": True}


@router.post("/{channel_id}/sync", response_model=SyncQueued, status_code=202)
def sync_channel(
    channel_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    ch = _get_owned_channel(db, channel_id, user_id)
    try:
        job = work_queue.enqueue_sync(ch.id)
    except RedisError as e:
        raise HTTPException(status_code=503, detail=f"Sync queue unavailable: {e}")
    return SyncQueued(channel_id=ch.id, job_id=getattr(job, "id", None))


@router.get("/{channel_id}/syncs", response_model=list[SyncLogOut])
def list_channel_syncs(
    channel_id: str,
    limit: int = Query(default=20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    _get_owned_channel(db, channel_id, user_id)
    return (
        db.query(SyncLog)
        .filter(SyncLog.channel_id == channel_id)
        .order_by(SyncLog.started_at.desc())
        .limit(limit)
        .all()
    )
