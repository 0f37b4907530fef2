import logging

from tracker.db.context import get_db_session
from tracker.db.repositories import ChannelRepository
from tracker.services.ingestion import IngestionService
from tracker.services.oracle import ExtractionOracle
from tracker.services.youtube import sync_channel_uploads

logger = logging.getLogger(__name__)

# Lazy loading services
_services = {}

def get_services():
    if not _services:
        logger.info("Initializing extraction services...")
        _services["oracle"] = ExtractionOracle()
    return _services


def process_log_entry_job(log_entry_id: str) -> None:
    """
    Run one log entry through extraction, resolution and reconciliation.

    Outcomes are recorded on the entry itself; only unexpected errors
    escape, so RQ retries them.
    """
    logger.info(f"Processing log entry: {log_entry_id}")
    with get_db_session() as db:
        service = IngestionService(db, oracle=get_services()["oracle"])
        entry = service.process(log_entry_id)
        if entry is not None:
            logger.info(f"Log entry {log_entry_id} -> {entry.status}")


def sync_channel_job(channel_id: str) -> None:
    with get_db_session() as db:
        channel = ChannelRepository(db).get_by_id(channel_id)
        if not channel:
            logger.warning(f"Channel not found: {channel_id}")
            return
        if not channel.is_active:
            logger.info(f"Channel {channel.name} is inactive, skipping sync")
            return
        sync_channel_uploads(db, channel)
