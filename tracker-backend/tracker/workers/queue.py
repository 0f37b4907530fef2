"""
Queue Configuration - durable ingest and sync queues with retry support
"""
from redis import Redis
from rq import Queue, Retry
from tracker.core.settings import settings

# Redis connection
redis_conn = Redis.from_url(settings.redis_url)

# Ingest queue: log entry extraction (LLM calls, optional Whisper)
ingest_queue = Queue(settings.rq_queue_ingest, connection=redis_conn)

# Sync queue: channel feed polling
sync_queue = Queue(settings.rq_queue_sync, connection=redis_conn)


def get_retry_config(max_retries: int = 3) -> Retry:
    """
    Default retry configuration with backoff.
    Intervals: 30s, 60s, 120s
    """
    return Retry(max=max_retries, interval=[30, 60, 120])


RETRY_INGEST = get_retry_config(3)
RETRY_SYNC = get_retry_config(2)


def enqueue_ingest(log_entry_id: str, job_timeout=900):
    """Enqueue processing of one log entry"""
    from tracker.workers.jobs import process_log_entry_job
    return ingest_queue.enqueue(
        process_log_entry_job, log_entry_id,
        job_timeout=job_timeout,
        retry=RETRY_INGEST,
    )

def enqueue_sync(channel_id: str, job_timeout=600):
    """Enqueue an upload sync for one channel"""
    from tracker.workers.jobs import sync_channel_job
    return sync_queue.enqueue(
        sync_channel_job, channel_id,
        job_timeout=job_timeout,
        retry=RETRY_SYNC,
    )
