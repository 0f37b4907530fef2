from rq import Worker

from tracker.core.logging import setup_logging
from tracker.core.settings import settings
from tracker.workers.queue import ingest_queue, sync_queue, redis_conn

if __name__ == "__main__":
    setup_logging(settings.log_level, settings.log_structured)
    w = Worker([ingest_queue, sync_queue], connection=redis_conn)
    w.work()
