"""
YouTube Sync Client - channel uploads as a reconciliation source.

Uploads are read from the channel's public RSS feed and merged with
source="sync", keyed by the YouTube video id. The feed also carries view and
rating counts, which land in the video's "youtube" platform metrics.
"""
import feedparser
import logging
import re
import requests
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tracker.core.enums import ChangeSource, SyncStatus
from tracker.core.errors import SyncError
from tracker.core.settings import settings
from tracker.db.repositories import SyncLogRepository, VideoRepository
from tracker.models import Channel, SyncLog
from tracker.services.audit import utcnow
from tracker.services.reconciliation import FieldSet, ReconciliationEngine

logger = logging.getLogger(__name__)

CHANNEL_ID_REGEX = re.compile(r'^UC[\w-]{22}$')

# Where a fetched channel page exposes its canonical id
_PAGE_ID_PATTERNS = (
    re.compile(r'<meta\s+itemprop="channelId"\s+content="(UC[\w-]{22})"'),
    re.compile(r'"channelId":"(UC[\w-]{22})"'),
    re.compile(r'/channel/(UC[\w-]{22})'),
)
_PAGE_NAME_PATTERN = re.compile(r'"author":"([^"]+)"')

_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Accept-Language': 'en-US,en;q=0.9',
}


def channel_feed_url(channel_id: str) -> str:
    return f"https://www.youtube.com/feeds/videos.xml?channel_id={channel_id}"


def get_channel_id(url_or_id: str) -> dict:
    """
    Resolve a YouTube URL or handle to a canonical Channel ID.

    Supports a bare channel id (UC...), /channel/UC... URLs, @handles,
    /c/ and /user/ URLs, and watch URLs of any upload on the channel.

    Returns: {"channel_id": str | None, "name": str | None, "error": str | None}
    """
    url_or_id = url_or_id.strip()

    if CHANNEL_ID_REGEX.match(url_or_id):
        return {"channel_id": url_or_id, "name": None, "error": None}

    direct_match = re.search(r'youtube\.com/channel/(UC[\w-]{22})', url_or_id)
    if direct_match:
        return {"channel_id": direct_match.group(1), "name": None, "error": None}

    # Anything else needs the page itself
    target_url = url_or_id
    if not target_url.startswith('http'):
        target_url = f"https://www.youtube.com/{target_url.lstrip('/')}"

    try:
        resp = requests.get(target_url, headers=_HEADERS, timeout=10)
        resp.raise_for_status()
    except requests.RequestException as e:
        return {"channel_id": None, "name": None, "error": f"Failed to fetch URL: {str(e)}"}

    html = resp.text
    for pattern in _PAGE_ID_PATTERNS:
        match = pattern.search(html)
        if match:
            name_match = _PAGE_NAME_PATTERN.search(html)
            return {
                "channel_id": match.group(1),
                "name": name_match.group(1) if name_match else None,
                "error": None,
            }

    return {"channel_id": None, "name": None, "error": "Could not find channel ID in page"}


def parse_feed(feed_url: str) -> list[dict]:
    """Feed entries newest-first, as plain dicts."""
    feed = feedparser.parse(feed_url)
    if getattr(feed, "bozo", False) and not feed.entries:
        raise SyncError(f"Could not read feed {feed_url}: {getattr(feed, 'bozo_exception', 'unknown error')}")

    entries = []
    for entry in feed.entries:
        thumbnails = getattr(entry, "media_thumbnail", None) or []
        statistics = getattr(entry, "media_statistics", None) or {}
        rating = getattr(entry, "media_starrating", None) or {}
        entries.append({
            "youtube_video_id": getattr(entry, "yt_videoid", None),
            "title": getattr(entry, "title", None),
            "description": getattr(entry, "summary", None),
            "published_at": _parse_datetime(getattr(entry, "published", None)),
            "thumbnail_url": thumbnails[0].get("url") if thumbnails else None,
            "views": statistics.get("views"),
            "likes": rating.get("count"),
        })
    return entries


def _parse_datetime(s: str | None) -> Optional[datetime]:
    if not s:
        return None
    try:
        parsed = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _probe_duration(youtube_video_id: str) -> Optional[int]:
    from tracker.services.ytdlp_probe import probe_duration
    try:
        return probe_duration(youtube_video_id)
    except RuntimeError as e:
        logger.warning(f"[sync] Duration probe failed for {youtube_video_id}: {e}")
        return None


def sync_channel_uploads(db: Session, channel: Channel, probe_durations: Optional[bool] = None) -> SyncLog:
    """
    Merge a channel's recent uploads into the owner's videos.

    New uploads become Video rows (source "sync"); known ones are reconciled
    like any other source, so an edited title shows up in the audit trail.
    """
    if probe_durations is None:
        probe_durations = settings.sync_probe_durations

    videos = VideoRepository(db)
    engine = ReconciliationEngine(db)
    log = SyncLogRepository(db).create(
        user_id=channel.user_id,
        channel_id=channel.id,
        sync_type="youtube_uploads",
        status=SyncStatus.STARTED.value,
        new_videos_count=0,
        updated_videos_count=0,
        started_at=utcnow(),
    )
    db.commit()

    try:
        entries = parse_feed(channel.youtube_feed_url)
        for entry in entries:
            yt_id = entry.get("youtube_video_id")
            if not yt_id:
                continue

            video = videos.get_by_youtube_id(yt_id)
            is_new = video is None
            if video and video.user_id != channel.user_id:
                logger.warning(f"[sync] {yt_id} belongs to another account, skipping")
                continue
            if is_new:
                video = videos.create(
                    user_id=channel.user_id,
                    youtube_video_id=yt_id,
                    title=entry.get("title") or yt_id,
                    source=ChangeSource.SYNC.value,
                    created_at=utcnow(),
                )
                db.flush()
                log.new_videos_count += 1
                logger.info(f"[sync] New upload: {video.title}")

            if entry.get("thumbnail_url") and not video.thumbnail_url:
                video.thumbnail_url = entry["thumbnail_url"]

            field_set = FieldSet()
            for name in ("title", "description", "published_at"):
                if entry.get(name) is not None:
                    field_set.video[name] = entry[name]
            if probe_durations and video.duration_seconds is None:
                duration = _probe_duration(yt_id)
                if duration is not None:
                    field_set.video["duration_seconds"] = duration
            field_set.add_metrics("youtube", {"views": entry.get("views"), "likes": entry.get("likes")})

            result = engine.merge(video.id, field_set, source=ChangeSource.SYNC, actor_id=None)
            if result.changed_count and not is_new:
                log.updated_videos_count += 1
            db.commit()

        channel.last_synced_at = utcnow()
        log.status = SyncStatus.COMPLETED.value
        log.completed_at = utcnow()
        db.commit()
    except (SyncError, SQLAlchemyError) as e:
        db.rollback()
        log.status = SyncStatus.FAILED.value
        log.error_message = str(e)
        log.completed_at = utcnow()
        db.commit()
        logger.error(f"[sync] Channel {channel.name} failed: {e}")
        raise

    logger.info(
        f"[sync] {channel.name}: {log.new_videos_count} new, {log.updated_videos_count} updated"
    )
    return log
