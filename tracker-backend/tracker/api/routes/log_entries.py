import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from tracker.api.deps import get_current_user_id, get_oracle
from tracker.core.errors import LogEntryNotFound, LogEntryStateError, VideoNotFound
from tracker.db.repositories import LogEntryRepository, TranscriptRepository
from tracker.db.session import get_db
from tracker.schemas.log_entry import (
    AssociateIn,
    AssociateOut,
    LogEntryCreate,
    LogEntryCreated,
    LogEntryDetailOut,
    LogEntryOut,
    TranscriptOut,
)
from tracker.schemas.video import MergeReport
from tracker.services.ingestion import IngestionService
from tracker.services.oracle import ExtractionOracle
from tracker.workers import queue as work_queue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/log-entries", tags=["log-entries"])


def _enqueue(log_entry_id: str):
    # A missed enqueue is picked up by the scheduler's stale-entry sweep
    try:
        work_queue.enqueue_ingest(log_entry_id)
    except RedisError as e:
        logger.warning(f"Could not enqueue log entry {log_entry_id}: {e}")


def _get_owned_entry(db: Session, log_entry_id: str, user_id: str):
    entry = LogEntryRepository(db).get_for_user(log_entry_id, user_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Log entry not found")
    return entry


@router.post("", response_model=LogEntryCreated, status_code=202)
def create_log_entry(
    body: LogEntryCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    oracle: ExtractionOracle = Depends(get_oracle),
):
    """Store the note and hand it to the ingest queue. Returns before extraction runs."""
    entry = IngestionService(db, oracle=oracle).create_log_entry(user_id, body.raw_text, body.audio_url)
    _enqueue(entry.id)
    return LogEntryCreated(log_entry_id=entry.id, status=entry.status)


@router.get("", response_model=list[LogEntryOut])
def list_log_entries(
    limit: int = Query(default=20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return LogEntryRepository(db).list_for_user(user_id, limit)


@router.get("/{log_entry_id}", response_model=LogEntryDetailOut)
def get_log_entry(
    log_entry_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    entry = _get_owned_entry(db, log_entry_id, user_id)
    detail = LogEntryDetailOut.model_validate(entry)
    transcript = TranscriptRepository(db).latest_for_log_entry(entry.id)
    detail.transcript = TranscriptOut.model_validate(transcript) if transcript else None
    return detail


@router.post("/{log_entry_id}/associate", response_model=AssociateOut)
def associate_log_entry(
    log_entry_id: str,
    body: AssociateIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    oracle: ExtractionOracle = Depends(get_oracle),
):
    """Attach a needs_association entry to a video picked by the creator."""
    _get_owned_entry(db, log_entry_id, user_id)
    service = IngestionService(db, oracle=oracle)
    try:
        result = service.associate(log_entry_id, body.video_id, actor_id=user_id)
    except (LogEntryNotFound, VideoNotFound) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except LogEntryStateError as e:
        raise HTTPException(status_code=409, detail=str(e))

    entry = LogEntryRepository(db).get_by_id(log_entry_id)
    return AssociateOut(
        log_entry=LogEntryOut.model_validate(entry),
        merge=MergeReport.from_result(result),
    )


@router.post("/{log_entry_id}/retry", response_model=LogEntryOut)
def retry_log_entry(
    log_entry_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    oracle: ExtractionOracle = Depends(get_oracle),
):
    _get_owned_entry(db, log_entry_id, user_id)
    try:
        entry = IngestionService(db, oracle=oracle).retry(log_entry_id)
    except LogEntryStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    _enqueue(entry.id)
    return entry
