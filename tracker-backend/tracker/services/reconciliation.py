"""
Reconciliation Engine - merge a namespaced field set into a stored video.

Per field: parse, compare with the stored value, audit the change, then
write it. Writes are partial upserts: a missing ManualFields,
PlatformMetrics or PlatformPost row is created with only the supplied fields, an existing row
only has the supplied fields overwritten. Audit rows are flushed before the
value writes and everything runs in the caller's transaction, so a committed
value change always has its audit entry.

Concurrent merges against the same video are per-field last-write-wins.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from tracker.core.enums import AuditEntity, ChangeSource
from tracker.core.errors import VideoNotFound
from tracker.core.settings import settings
from tracker.models import Video, VideoManualFields, VideoPlatformMetrics, VideoPlatformPost
from tracker.schemas.extraction import ExtractedData
from tracker.services.audit import AuditTrail, utcnow
from tracker.services.value_parsers import (
    UNPARSABLE,
    DateOrder,
    is_iso_date,
    normalize_hashtags,
    normalize_platform,
    parse_bool,
    parse_count,
    parse_date,
    parse_duration,
    parse_text,
    parse_watch_time,
)

logger = logging.getLogger(__name__)

METRIC_FIELDS = (
    "views", "likes", "comments", "shares", "saves",
    "watch_time_seconds", "followers_gained",
)
MANUAL_FIELDS = (
    "hook", "caption", "hashtags", "topic", "format", "cta",
    "target_audience", "why_posted", "content_summary", "wearing_outfit", "notes",
)
POST_FIELDS = ("posted", "posted_at")
VIDEO_FIELDS = ("title", "description", "published_at", "duration_seconds")


def _add_platform_values(target: dict, platform: Any, values: dict[str, Any]):
    name = normalize_platform(platform)
    if not name:
        return
    present = {k: v for k, v in values.items() if v is not None}
    if present:
        target.setdefault(name, {}).update(present)


@dataclass
class FieldSet:
    """Incoming values grouped by the entity they belong to."""
    video: dict[str, Any] = field(default_factory=dict)
    manual: dict[str, Any] = field(default_factory=dict)
    metrics: dict[str, dict[str, Any]] = field(default_factory=dict)
    posts: dict[str, dict[str, Any]] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (
            self.video or self.manual or any(self.metrics.values()) or any(self.posts.values())
        )

    def add_metrics(self, platform: Any, values: dict[str, Any]):
        _add_platform_values(self.metrics, platform, values)

    def add_post(self, platform: Any, values: dict[str, Any]):
        _add_platform_values(self.posts, platform, values)

    @classmethod
    def from_extraction(cls, data: ExtractedData) -> "FieldSet":
        fs = cls()
        if data.title is not None:
            fs.video["title"] = data.title
        if data.posted_at is not None:
            fs.video["published_at"] = data.posted_at
        if data.duration is not None:
            fs.video["duration_seconds"] = data.duration
        for name in MANUAL_FIELDS:
            value = getattr(data, name)
            if value is not None:
                fs.manual[name] = value
        for guess in data.platform_metrics:
            fs.add_metrics(guess.platform, {name: getattr(guess, name) for name in METRIC_FIELDS})
            fs.add_post(guess.platform, {name: getattr(guess, name) for name in POST_FIELDS})
        return fs


@dataclass
class FieldChange:
    entity_type: str
    field: str
    old_value: Any
    new_value: Any


@dataclass
class MergeResult:
    video_id: str
    changes: list[FieldChange] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    created: list[str] = field(default_factory=list)

    @property
    def changed_count(self) -> int:
        return len(self.changes)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _same_value(old: Any, new: Any) -> bool:
    if old is None:
        return False
    if isinstance(new, datetime):
        return isinstance(old, datetime) and _as_utc(old) == _as_utc(new)
    if isinstance(new, date):
        # Date-only input matches any stored time on that day
        if isinstance(old, datetime):
            return _as_utc(old).date() == new
        return old == new
    return old == new


def _storable(value: Any) -> Any:
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    return value


class ReconciliationEngine:
    def __init__(self, db: Session, date_order: Optional[DateOrder] = None):
        self.db = db
        self.date_order = date_order or DateOrder(settings.date_order)
        self.audit = AuditTrail(db)

        self._video_parsers: dict[str, Callable[[Any], Any]] = {
            "title": parse_text,
            "description": parse_text,
            "published_at": self._parse_timestamp,
            "duration_seconds": parse_duration,
        }
        self._manual_parsers: dict[str, Callable[[Any], Any]] = {
            name: parse_text for name in MANUAL_FIELDS
        }
        self._manual_parsers["hashtags"] = normalize_hashtags
        self._metric_parsers: dict[str, Callable[[Any], Any]] = {
            name: parse_count for name in METRIC_FIELDS
        }
        self._metric_parsers["watch_time_seconds"] = parse_watch_time
        self._post_parsers: dict[str, Callable[[Any], Any]] = {
            "posted": parse_bool,
            "posted_at": self._parse_timestamp,
        }

    def _parse_timestamp(self, value: Any) -> Any:
        if isinstance(value, datetime):
            return _as_utc(value)
        parsed = parse_date(value, self.date_order)
        if parsed is None:
            return None
        if not is_iso_date(parsed):
            return UNPARSABLE
        return date.fromisoformat(parsed)

    def merge(
        self,
        video_id: str,
        field_set: FieldSet,
        source: ChangeSource | str,
        actor_id: Optional[str] = None,
        log_entry_id: Optional[str] = None,
    ) -> MergeResult:
        video = self.db.get(Video, video_id)
        if video is None:
            raise VideoNotFound(video_id)

        source = ChangeSource(source).value
        result = MergeResult(video_id=video_id)

        if field_set.video:
            updates = self._diff(video, field_set.video, self._video_parsers, "", result)
            self._apply(AuditEntity.VIDEO, video_id, video, updates, "", source, actor_id, result)

        if field_set.manual:
            row = self.db.query(VideoManualFields).filter(VideoManualFields.video_id == video_id).first()
            updates = self._diff(row, field_set.manual, self._manual_parsers, "", result)
            if updates and row is None:
                row = VideoManualFields(id=str(uuid4()), video_id=video_id)
                result.created.append(AuditEntity.MANUAL_FIELDS.value)
            self._apply(AuditEntity.MANUAL_FIELDS, video_id, row, updates, "", source, actor_id, result)

        self._merge_per_platform(
            VideoPlatformMetrics, AuditEntity.PLATFORM_METRICS, video_id, field_set.metrics,
            self._metric_parsers, source, actor_id, result,
            provenance={"source": source, "log_entry_id": log_entry_id},
        )
        self._merge_per_platform(
            VideoPlatformPost, AuditEntity.PLATFORM_POST, video_id, field_set.posts,
            self._post_parsers, source, actor_id, result,
            provenance={"source": source},
        )

        logger.info(
            f"[reconcile] Video {video_id}: {result.changed_count} changed, "
            f"{len(result.skipped)} skipped, source={source}"
        )
        return result

    def _merge_per_platform(
        self,
        model: Any,
        entity: AuditEntity,
        video_id: str,
        values_by_platform: dict[str, dict[str, Any]],
        parsers: dict[str, Callable[[Any], Any]],
        source: str,
        actor_id: Optional[str],
        result: MergeResult,
        provenance: dict[str, Any],
    ):
        for platform, values in values_by_platform.items():
            row = self.db.query(model).filter(
                model.video_id == video_id,
                model.platform == platform,
            ).first()
            prefix = f"{platform}."
            updates = self._diff(row, values, parsers, prefix, result)
            if not updates:
                continue
            if row is None:
                row = model(id=str(uuid4()), video_id=video_id, platform=platform)
                result.created.append(f"{entity.value}:{platform}")
            self._apply(entity, video_id, row, updates, prefix, source, actor_id, result, provenance=provenance)

    def _diff(
        self,
        row: Any,
        values: dict[str, Any],
        parsers: dict[str, Callable[[Any], Any]],
        prefix: str,
        result: MergeResult,
    ) -> dict[str, tuple[Any, Any]]:
        updates: dict[str, tuple[Any, Any]] = {}
        for name, raw in values.items():
            parser = parsers.get(name)
            if parser is None:
                logger.debug(f"[reconcile] Unknown field {prefix}{name}, ignored")
                result.skipped.append(f"{prefix}{name}")
                continue
            new = parser(raw)
            if new is UNPARSABLE:
                logger.debug(f"[reconcile] Dropping unparsable {prefix}{name}={raw!r}")
                result.skipped.append(f"{prefix}{name}")
                continue
            if new is None:
                continue
            old = getattr(row, name) if row is not None else None
            if _same_value(old, new):
                continue
            updates[name] = (old, new)
        return updates

    def _apply(
        self,
        entity: AuditEntity,
        entity_id: str,
        row: Any,
        updates: dict[str, tuple[Any, Any]],
        prefix: str,
        source: str,
        actor_id: Optional[str],
        result: MergeResult,
        provenance: Optional[dict[str, Any]] = None,
    ):
        if not updates:
            return

        changed_at = utcnow()
        for name, (old, new) in updates.items():
            self.audit.record(
                entity_type=entity.value,
                entity_id=entity_id,
                field=f"{prefix}{name}",
                old_value=old,
                new_value=new,
                source=source,
                changed_by=actor_id,
                changed_at=changed_at,
            )
            result.changes.append(FieldChange(entity.value, f"{prefix}{name}", old, new))
        # Audit rows reach the database before the values they describe
        self.db.flush()

        for name, (_, new) in updates.items():
            setattr(row, name, _storable(new))
        for name, value in (provenance or {}).items():
            setattr(row, name, value)
        row.updated_at = utcnow()
        self.db.add(row)
        self.db.flush()
