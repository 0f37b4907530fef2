"""Tests for the channel upload sync, with the RSS feed replaced by fixtures."""
from datetime import datetime, timezone

import pytest

from tracker.core.errors import SyncError
from tracker.models import AuditLogEntry, Channel, Video, VideoPlatformMetrics
from tracker.services import youtube
from tracker.services.youtube import channel_feed_url, get_channel_id, sync_channel_uploads

from conftest import USER_ID

CHANNEL_ID = "UCabcdefghijklmnopqrstuv"


def _entry(yt_id, title, views=None, **kwargs):
    return {
        "youtube_video_id": yt_id,
        "title": title,
        "description": kwargs.get("description"),
        "published_at": kwargs.get("published_at", datetime(2024, 3, 5, 12, tzinfo=timezone.utc)),
        "thumbnail_url": kwargs.get("thumbnail_url", f"https://i.ytimg.com/vi/{yt_id}/hqdefault.jpg"),
        "views": views,
        "likes": kwargs.get("likes"),
    }


@pytest.fixture
def channel(db):
    ch = Channel(
        id="ch-1",
        user_id=USER_ID,
        name="Gym Channel",
        youtube_channel_id=CHANNEL_ID,
        youtube_feed_url=channel_feed_url(CHANNEL_ID),
        is_active=True,
    )
    db.add(ch)
    db.commit()
    return ch


@pytest.fixture
def feed(monkeypatch):
    entries = []
    monkeypatch.setattr(youtube, "parse_feed", lambda url: list(entries))
    return entries


class TestSyncChannelUploads:
    def test_new_uploads_become_videos(self, db, channel, feed):
        feed.extend([_entry("vid00000001", "Leg day", views="1500"), _entry("vid00000002", "Meal prep")])

        log = sync_channel_uploads(db, channel, probe_durations=False)

        assert log.status == "completed"
        assert (log.new_videos_count, log.updated_videos_count) == (2, 0)
        video = db.query(Video).filter(Video.youtube_video_id == "vid00000001").one()
        assert video.source == "sync"
        assert video.thumbnail_url.endswith("/vid00000001/hqdefault.jpg")
        metrics = db.query(VideoPlatformMetrics).filter(VideoPlatformMetrics.video_id == video.id).one()
        assert (metrics.platform, metrics.views, metrics.source) == ("youtube", 1500, "sync")
        assert channel.last_synced_at is not None

    def test_existing_video_is_reconciled(self, db, channel, feed, make_video):
        video = make_video("Old title", youtube_video_id="vid00000001")
        feed.append(_entry("vid00000001", "New title", views="10"))

        log = sync_channel_uploads(db, channel, probe_durations=False)

        assert (log.new_videos_count, log.updated_videos_count) == (0, 1)
        db.refresh(video)
        assert video.title == "New title"
        change = db.query(AuditLogEntry).filter(AuditLogEntry.field == "title").one()
        assert (change.old_value, change.new_value, change.source) == ("Old title", "New title", "sync")
        assert change.changed_by is None

    def test_unchanged_feed_updates_nothing(self, db, channel, feed):
        feed.append(_entry("vid00000001", "Leg day", views="1500"))
        sync_channel_uploads(db, channel, probe_durations=False)

        log = sync_channel_uploads(db, channel, probe_durations=False)

        assert (log.new_videos_count, log.updated_videos_count) == (0, 0)

    def test_other_accounts_videos_are_left_alone(self, db, channel, feed, make_video):
        theirs = make_video("Theirs", user_id="user-2", youtube_video_id="vid00000001")
        feed.append(_entry("vid00000001", "Hijacked"))

        sync_channel_uploads(db, channel, probe_durations=False)

        db.refresh(theirs)
        assert theirs.title == "Theirs"

    def test_probed_duration(self, db, channel, feed, monkeypatch):
        monkeypatch.setattr(youtube, "_probe_duration", lambda yt_id: 61)
        feed.append(_entry("vid00000001", "Leg day"))

        sync_channel_uploads(db, channel, probe_durations=True)

        assert db.query(Video).one().duration_seconds == 61

    def test_unreadable_feed_fails_the_log(self, db, channel, monkeypatch):
        def broken(url):
            raise SyncError("Could not read feed")
        monkeypatch.setattr(youtube, "parse_feed", broken)

        with pytest.raises(SyncError):
            sync_channel_uploads(db, channel, probe_durations=False)


class TestGetChannelId:
    def test_bare_id(self):
        assert get_channel_id(CHANNEL_ID)["channel_id"] == CHANNEL_ID

    def test_channel_url(self):
        result = get_channel_id(f"https://www.youtube.com/channel/{CHANNEL_ID}")
        assert result == {"channel_id": CHANNEL_ID, "name": None, "error": None}

    def test_handle_page(self, monkeypatch):
        class FakeResponse:
            text = f'<meta itemprop="channelId" content="{CHANNEL_ID}"> "author":"Gym Channel"'

            def raise_for_status(self):
                return None

        monkeypatch.setattr(youtube.requests, "get", lambda *args, **kwargs: FakeResponse())
        result = get_channel_id("@gymchannel")
        assert result["channel_id"] == CHANNEL_ID
        assert result["name"] == "Gym Channel"
