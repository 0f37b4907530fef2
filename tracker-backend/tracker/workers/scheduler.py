"""
Scheduler - periodic channel syncs and recovery of stuck log entries.

Every tick enqueues a sync for each active channel and re-enqueues log
entries that have sat in "processing" longer than STALE_PROCESSING_MINUTES
(e.g. the web process died before the job ran). Entries that keep getting
stuck are failed so the creator can retry them by hand.
"""
import logging
import time
from datetime import timedelta

from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tracker.core.enums import LogEntryStatus
from tracker.core.logging import setup_logging
from tracker.core.settings import settings
from tracker.db.base import Base
from tracker.db.repositories import ChannelRepository, LogEntryRepository
from tracker.db.session import SessionLocal, engine
from tracker.services.audit import utcnow
from tracker.workers import queue as work_queue

logger = logging.getLogger(__name__)

MAX_STALE_ATTEMPTS = 3


def init_db():
    """Create tables if they don't exist"""
    logger.info("Initializing database tables...")
    import tracker.models  # noqa: F401  registers every table on Base.metadata
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready.")


def requeue_stale_entries(db: Session) -> int:
    cutoff = utcnow() - timedelta(minutes=settings.stale_processing_minutes)
    requeued = 0
    for entry in LogEntryRepository(db).get_stale_processing(cutoff):
        if (entry.attempts or 0) >= MAX_STALE_ATTEMPTS:
            entry.status = LogEntryStatus.FAILED.value
            entry.error_message = f"Processing did not finish after {entry.attempts} attempts"
            entry.completed_at = utcnow()
            db.commit()
            logger.warning(f"[scheduler] Gave up on stuck log entry {entry.id}")
            continue
        entry.queued_at = utcnow()
        db.commit()
        work_queue.enqueue_ingest(entry.id)
        requeued += 1
    if requeued:
        logger.info(f"[scheduler] Re-enqueued {requeued} stuck log entries")
    return requeued


def enqueue_channel_syncs(db: Session) -> int:
    channels = ChannelRepository(db).get_active()
    for ch in channels:
        work_queue.enqueue_sync(ch.id)
    return len(channels)


def tick():
    db: Session = SessionLocal()
    try:
        enqueue_channel_syncs(db)
        requeue_stale_entries(db)
    except (SQLAlchemyError, RedisError) as e:
        db.rollback()
        logger.error(f"[scheduler] Tick failed: {e}")
    finally:
        db.close()


if __name__ == "__main__":
    setup_logging(settings.log_level, settings.log_structured)

    # Wait for DB to be ready
    for attempt in range(10):
        try:
            init_db()
            break
        except SQLAlchemyError as e:
            logger.warning(f"DB not ready (attempt {attempt + 1}/10): {e}")
            time.sleep(3)

    logger.info(f"Scheduler started. Polling every {settings.poll_interval_seconds}s")
    while True:
        tick()
        time.sleep(settings.poll_interval_seconds)
