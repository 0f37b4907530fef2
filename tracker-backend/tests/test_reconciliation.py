"""
Tests for the reconciliation engine.

Covers:
- field-level diffing and partial upserts
- idempotent re-merges (no audit rows the second time)
- audit trail naming and old/new values
- unparsable values dropped and reported
- audit rows written ahead of the values they describe
- per-platform posted flags and dates
"""
from datetime import datetime, timezone

import pytest
from sqlalchemy import BigInteger, event, func, select

from tracker.core.enums import ChangeSource
from tracker.core.errors import VideoNotFound
from tracker.models import AuditLogEntry, VideoManualFields, VideoPlatformMetrics, VideoPlatformPost
from tracker.schemas.extraction import ExtractedData
from tracker.services.reconciliation import FieldSet, ReconciliationEngine
from tracker.services.value_parsers import DateOrder


def _audit_rows(db, video_id):
    return db.query(AuditLogEntry).filter(AuditLogEntry.entity_id == video_id).all()


@pytest.fixture
def engine_(db):
    return ReconciliationEngine(db, date_order=DateOrder.MONTH_FIRST)


# ============================================================================
# FieldSet
# ============================================================================

class TestFieldSet:
    def test_add_metrics_normalizes_platform_and_drops_nulls(self):
        fs = FieldSet()
        fs.add_metrics("TikTok", {"views": "1k", "likes": None})
        fs.add_metrics("tik tok", {"shares": 3})
        assert fs.metrics == {"tiktok": {"views": "1k", "shares": 3}}

    def test_blank_platform_is_ignored(self):
        fs = FieldSet()
        fs.add_metrics("", {"views": 1})
        assert fs.is_empty()


# ============================================================================
# Merge
# ============================================================================

class TestMerge:
    def test_new_metrics_row_gets_only_supplied_fields(self, db, engine_, make_video):
        video = make_video("Leg day")
        fs = FieldSet(metrics={"tiktok": {"views": "1.2k", "likes": "300"}})

        result = engine_.merge(video.id, fs, ChangeSource.TRANSCRIPT, actor_id="user-1", log_entry_id="log-1")
        db.commit()

        row = db.query(VideoPlatformMetrics).filter(VideoPlatformMetrics.video_id == video.id).one()
        assert row.platform == "tiktok"
        assert (row.views, row.likes, row.comments, row.saves) == (1200, 300, None, None)
        assert row.source == "transcript"
        assert row.log_entry_id == "log-1"
        assert result.changed_count == 2
        assert "VideoPlatformMetrics:tiktok" in result.created

    def test_audit_entry_per_changed_field(self, db, engine_, make_video):
        video = make_video("Leg day")
        engine_.merge(video.id, FieldSet(metrics={"tiktok": {"views": 100}}), "import", actor_id="user-1")
        db.commit()
        engine_.merge(video.id, FieldSet(metrics={"tiktok": {"views": "2,500"}}), "manual", actor_id="user-1")
        db.commit()

        rows = sorted(_audit_rows(db, video.id), key=lambda r: r.new_value)
        assert [(r.field, r.old_value, r.new_value, r.source) for r in rows] == [
            ("tiktok.views", None, "100", "import"),
            ("tiktok.views", "100", "2500", "manual"),
        ]
        assert all(r.entity_type == "VideoPlatformMetrics" for r in rows)
        assert all(r.changed_by == "user-1" for r in rows)

    def test_remerge_is_idempotent(self, db, engine_, make_video):
        video = make_video("Leg day")
        fs = FieldSet(
            video={"published_at": "03/05/24", "duration_seconds": "1:05"},
            manual={"hook": "Wait for it", "hashtags": "#gym #legs"},
            metrics={"youtube": {"views": "1.2k"}},
        )
        first = engine_.merge(video.id, fs, "transcript")
        db.commit()
        audit_count = len(_audit_rows(db, video.id))

        second = engine_.merge(video.id, fs, "transcript")
        db.commit()

        assert first.changed_count == 5
        assert second.changed_count == 0
        assert len(_audit_rows(db, video.id)) == audit_count

    def test_partial_update_keeps_other_fields(self, db, engine_, make_video):
        video = make_video("Leg day")
        engine_.merge(video.id, FieldSet(manual={"hook": "A", "caption": "B"}), "manual")
        db.commit()

        engine_.merge(video.id, FieldSet(manual={"hook": "C"}), "manual")
        db.commit()

        row = db.query(VideoManualFields).filter(VideoManualFields.video_id == video.id).one()
        db.refresh(row)
        assert (row.hook, row.caption) == ("C", "B")

    def test_unparsable_values_are_skipped_not_stored(self, db, engine_, make_video):
        video = make_video("Leg day")
        fs = FieldSet(
            video={"duration_seconds": "a while"},
            metrics={"youtube": {"views": "lots", "likes": "12"}},
        )
        result = engine_.merge(video.id, fs, "transcript")
        db.commit()

        assert sorted(result.skipped) == ["duration_seconds", "youtube.views"]
        row = db.query(VideoPlatformMetrics).one()
        assert row.views is None
        assert row.likes == 12
        db.refresh(video)
        assert video.duration_seconds is None

    def test_missing_values_never_overwrite(self, db, engine_, make_video):
        video = make_video("Leg day", duration_seconds=30)
        result = engine_.merge(video.id, FieldSet(video={"duration_seconds": None, "title": ""}), "manual")
        assert result.changed_count == 0
        assert video.duration_seconds == 30
        assert video.title == "Leg day"

    def test_date_only_matches_stored_day(self, db, engine_, make_video):
        video = make_video("Leg day", published_at=datetime(2024, 3, 5, 18, 30, tzinfo=timezone.utc))
        result = engine_.merge(video.id, FieldSet(video={"published_at": "2024-03-05"}), "import")
        assert result.changed_count == 0

    def test_date_change_is_stored_at_midnight_utc(self, db, engine_, make_video):
        video = make_video("Leg day")
        engine_.merge(video.id, FieldSet(video={"published_at": "March 7, 2024"}), "import")
        db.commit()
        db.refresh(video)
        assert video.published_at.replace(tzinfo=None) == datetime(2024, 3, 7)

    def test_unknown_video(self, engine_):
        with pytest.raises(VideoNotFound):
            engine_.merge("missing", FieldSet(manual={"hook": "x"}), "manual")

    def test_unknown_source_is_rejected(self, engine_, make_video):
        video = make_video("Leg day")
        with pytest.raises(ValueError):
            engine_.merge(video.id, FieldSet(), "carrier-pigeon")

    def test_counts_beyond_32_bits(self, db, engine_, make_video):
        video = make_video("Leg day")
        engine_.merge(video.id, FieldSet(metrics={"youtube": {"views": "3,000,000,000"}}), "sync")
        db.commit()

        row = db.query(VideoPlatformMetrics).one()
        db.refresh(row)
        assert row.views == 3_000_000_000
        assert isinstance(VideoPlatformMetrics.__table__.c.views.type, BigInteger)


# ============================================================================
# Audit ordering
# ============================================================================

class TestAuditOrdering:
    def test_audit_row_precedes_the_value_it_describes(self, db, engine_, make_video):
        video = make_video("Leg day")
        engine_.merge(video.id, FieldSet(metrics={"tiktok": {"views": 100}}), "import")
        db.commit()

        engine_.merge(video.id, FieldSet(metrics={"tiktok": {"views": "2.5k"}}), "manual", actor_id="user-1")
        db.commit()

        row = db.query(VideoPlatformMetrics).filter(VideoPlatformMetrics.video_id == video.id).one()
        db.refresh(row)
        change = db.query(AuditLogEntry).filter(
            AuditLogEntry.field == "tiktok.views",
            AuditLogEntry.source == "manual",
        ).one()
        assert (change.old_value, change.new_value) == ("100", "2500")
        assert row.views == 2500
        assert change.changed_at.replace(tzinfo=None) <= row.updated_at.replace(tzinfo=None)

    def test_audit_is_in_the_database_when_the_value_is_written(self, db, engine_, make_video):
        video = make_video("Leg day")
        seen = []

        def count_audit(mapper, connection, target):
            seen.append(connection.execute(
                select(func.count()).select_from(AuditLogEntry).where(
                    AuditLogEntry.field.in_(["hook", "caption"])
                )
            ).scalar())

        event.listen(VideoManualFields, "before_insert", count_audit)
        try:
            engine_.merge(video.id, FieldSet(manual={"hook": "A", "caption": "B"}), "manual")
            db.commit()
        finally:
            event.remove(VideoManualFields, "before_insert", count_audit)

        assert seen == [2]


# ============================================================================
# Platform posts and outfit
# ============================================================================

class TestPlatformPosts:
    def test_post_flag_and_date_per_platform(self, db, engine_, make_video):
        video = make_video("Leg day")
        fs = FieldSet()
        fs.add_post("Instagram", {"posted": "yes", "posted_at": "03/05/24"})
        fs.add_post("tiktok", {"posted": False})

        result = engine_.merge(video.id, fs, "manual", actor_id="user-1")
        db.commit()

        posts = {p.platform: p for p in db.query(VideoPlatformPost).all()}
        assert posts["instagram"].posted is True
        assert posts["instagram"].posted_at.replace(tzinfo=None) == datetime(2024, 3, 5)
        assert posts["tiktok"].posted is False
        assert posts["tiktok"].posted_at is None
        assert sorted(c.field for c in result.changes) == [
            "instagram.posted", "instagram.posted_at", "tiktok.posted",
        ]
        assert {c.entity_type for c in result.changes} == {"VideoPlatformPost"}

    def test_unreadable_post_flag_is_skipped(self, db, engine_, make_video):
        video = make_video("Leg day")
        fs = FieldSet()
        fs.add_post("youtube", {"posted": "maybe"})

        result = engine_.merge(video.id, fs, "transcript")

        assert result.skipped == ["youtube.posted"]
        assert db.query(VideoPlatformPost).count() == 0

    def test_extraction_carries_posts_and_outfit(self):
        data = ExtractedData.model_validate({
            "wearingOutfit": "black hoodie",
            "platformMetrics": [{"platform": "TikTok", "views": "1k", "posted": True, "postedAt": "2024-03-05"}],
        })
        fs = FieldSet.from_extraction(data)
        assert fs.manual == {"wearing_outfit": "black hoodie"}
        assert fs.posts == {"tiktok": {"posted": True, "posted_at": "2024-03-05"}}

    def test_outfit_is_a_manual_field(self, db, engine_, make_video):
        video = make_video("Leg day")
        engine_.merge(video.id, FieldSet(manual={"wearing_outfit": "  gym fit "}), "manual")
        db.commit()

        row = db.query(VideoManualFields).filter(VideoManualFields.video_id == video.id).one()
        assert row.wearing_outfit == "gym fit"
