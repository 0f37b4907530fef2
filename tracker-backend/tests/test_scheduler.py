"""Tests for recovering log entries stuck in processing."""
from datetime import timedelta

import pytest

from tracker.models import Channel, LogEntry
from tracker.services.audit import utcnow
from tracker.workers import queue as work_queue
from tracker.workers import scheduler

from conftest import USER_ID


@pytest.fixture
def enqueued(monkeypatch):
    calls = {"ingest": [], "sync": []}
    monkeypatch.setattr(work_queue, "enqueue_ingest", lambda entry_id: calls["ingest"].append(entry_id))
    monkeypatch.setattr(work_queue, "enqueue_sync", lambda channel_id: calls["sync"].append(channel_id))
    return calls


def _entry(db, entry_id, minutes_ago, attempts=1, status="processing"):
    queued = utcnow() - timedelta(minutes=minutes_ago)
    entry = LogEntry(
        id=entry_id,
        user_id=USER_ID,
        raw_text="note",
        status=status,
        attempts=attempts,
        created_at=queued,
        queued_at=queued,
    )
    db.add(entry)
    db.commit()
    return entry


class TestRequeueStaleEntries:
    def test_requeues_only_stale_processing_entries(self, db, enqueued):
        _entry(db, "stale", minutes_ago=60)
        _entry(db, "fresh", minutes_ago=1)
        _entry(db, "done", minutes_ago=60, status="completed")

        assert scheduler.requeue_stale_entries(db) == 1
        assert enqueued["ingest"] == ["stale"]

    def test_requeue_resets_the_clock(self, db, enqueued):
        entry = _entry(db, "stale", minutes_ago=60)
        scheduler.requeue_stale_entries(db)
        assert scheduler.requeue_stale_entries(db) == 0
        assert entry.status == "processing"

    def test_gives_up_after_repeated_attempts(self, db, enqueued):
        entry = _entry(db, "stuck", minutes_ago=60, attempts=scheduler.MAX_STALE_ATTEMPTS)

        assert scheduler.requeue_stale_entries(db) == 0
        assert enqueued["ingest"] == []
        assert entry.status == "failed"
        assert "after 3 attempts" in entry.error_message


class TestChannelSyncs:
    def test_enqueues_active_channels(self, db, enqueued):
        for cid, active in (("c1", True), ("c2", False)):
            db.add(Channel(
                id=cid,
                user_id=USER_ID,
                name=cid,
                youtube_channel_id=f"UC{cid:0>22}",
                youtube_feed_url="https://www.youtube.com/feeds/videos.xml",
                is_active=active,
            ))
        db.commit()

        assert scheduler.enqueue_channel_syncs(db) == 1
        assert enqueued["sync"] == ["c1"]
