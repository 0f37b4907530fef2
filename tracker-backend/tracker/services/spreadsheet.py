"""
Spreadsheet view of a creator's videos, with missing-data indicators and CSV export.
"""
from __future__ import annotations

import csv
import io
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from tracker.core.settings import settings
from tracker.db.repositories import (
    ManualFieldsRepository,
    PlatformMetricsRepository,
    PlatformPostRepository,
    VideoRepository,
)
from tracker.services.reconciliation import MANUAL_FIELDS, METRIC_FIELDS, POST_FIELDS

# Views on these platforms count double in the missing score
PRIORITY_PLATFORMS = ("youtube", "tiktok")
REQUIRED_MANUAL = ("hook", "hashtags", "format")

FILTERS = ("missing_youtube", "missing_tiktok", "missing_hook", "has_missing")

METRIC_LABELS = {
    "views": "views",
    "likes": "likes",
    "comments": "comments",
    "shares": "shares",
    "saves": "saves",
    "watch_time_seconds": "watch time (s)",
    "followers_gained": "followers gained",
}
POST_LABELS = {"posted": "posted", "posted_at": "posted at"}


def tracked_platforms() -> list[str]:
    return [p.strip().lower() for p in settings.tracked_platforms.split(",") if p.strip()]


def format_duration(seconds: Optional[int]) -> str:
    if seconds is None:
        return ""
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def build_rows(db: Session, user_id: str, platforms: Optional[list[str]] = None) -> list[dict[str, Any]]:
    """One flat row per video: core and manual fields, then <platform>_<field> columns."""
    platforms = platforms or tracked_platforms()
    videos = VideoRepository(db).list_for_user(user_id)
    ids = [v.id for v in videos]
    manual = ManualFieldsRepository(db).get_for_videos(ids)
    metrics = PlatformMetricsRepository(db).get_for_videos(ids)
    posts = PlatformPostRepository(db).get_for_videos(ids)

    rows = []
    for video in videos:
        mf = manual.get(video.id)
        row: dict[str, Any] = {
            "id": video.id,
            "youtube_video_id": video.youtube_video_id,
            "title": video.title,
            "published_at": video.published_at,
            "thumbnail_url": video.thumbnail_url,
            "duration_seconds": video.duration_seconds,
            "source": video.source,
        }
        for name in MANUAL_FIELDS:
            row[name] = getattr(mf, name) if mf else None

        per_platform = metrics.get(video.id, {})
        posted = posts.get(video.id, {})
        for platform in platforms:
            pm = per_platform.get(platform)
            for name in METRIC_FIELDS:
                row[f"{platform}_{name}"] = getattr(pm, name) if pm else None
            pp = posted.get(platform)
            for name in POST_FIELDS:
                row[f"{platform}_{name}"] = getattr(pp, name) if pp else None

        missing = [name for name in REQUIRED_MANUAL if not row[name]]
        missing_count = len(missing)
        for platform in PRIORITY_PLATFORMS:
            if platform in platforms and row[f"{platform}_views"] is None:
                missing.append(f"{platform}_views")
                missing_count += 2
        row["missing_fields"] = missing
        row["missing_count"] = missing_count
        rows.append(row)
    return rows


def filter_rows(rows: list[dict], filter: Optional[str]) -> list[dict]:
    if not filter:
        return rows
    if filter == "missing_youtube":
        return [r for r in rows if r.get("youtube_views") is None]
    if filter == "missing_tiktok":
        return [r for r in rows if r.get("tiktok_views") is None]
    if filter == "missing_hook":
        return [r for r in rows if not r.get("hook")]
    if filter == "has_missing":
        return [r for r in rows if r["missing_count"] > 0]
    raise ValueError(f"Unknown filter '{filter}'. Use one of: {', '.join(FILTERS)}")


def missing_summary(rows: list[dict], platforms: list[str]) -> dict[str, int]:
    summary = {"total_videos": len(rows)}
    for platform in PRIORITY_PLATFORMS:
        summary[f"{platform}_views_missing"] = (
            sum(1 for r in rows if r.get(f"{platform}_views") is None) if platform in platforms else 0
        )
    for name in REQUIRED_MANUAL:
        summary[f"{name}_missing"] = sum(1 for r in rows if not r.get(name))
    return summary


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, list):
        return " ".join(str(v) for v in value)
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def export_csv(rows: list[dict], platforms: Optional[list[str]] = None) -> str:
    """
    Render rows as CSV text.

    Minimal quoting: only cells containing a comma, quote or newline are
    quoted, and embedded quotes are doubled.
    """
    platforms = platforms or tracked_platforms()
    columns = [
        ("Title", "title"),
        ("YouTube ID", "youtube_video_id"),
        ("Published", "published_at"),
        ("Duration", "duration_seconds"),
        ("Hook", "hook"),
        ("Caption", "caption"),
        ("Hashtags", "hashtags"),
        ("Topic", "topic"),
        ("Format", "format"),
        ("Outfit", "wearing_outfit"),
        ("CTA", "cta"),
        ("Notes", "notes"),
    ]
    for platform in platforms:
        for name in METRIC_FIELDS:
            columns.append((f"{platform} {METRIC_LABELS[name]}", f"{platform}_{name}"))
        for name in POST_FIELDS:
            columns.append((f"{platform} {POST_LABELS[name]}", f"{platform}_{name}"))

    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow([label for label, _ in columns])
    for row in rows:
        values = []
        for _, key in columns:
            if key == "duration_seconds":
                values.append(format_duration(row.get(key)))
            else:
                values.append(_cell(row.get(key)))
        writer.writerow(values)
    return buf.getvalue()
