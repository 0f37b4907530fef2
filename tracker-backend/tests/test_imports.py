"""
Tests for spreadsheet import: file readers, mapping-driven merge and
preservation of unmapped data.
"""
import io
import json
from datetime import datetime
from types import SimpleNamespace

import openpyxl
import pytest
import xlrd

from tracker.core.errors import ImportFileError
from tracker.models import (
    AuditLogEntry,
    ImportedRow,
    Video,
    VideoManualFields,
    VideoPlatformMetrics,
    VideoPlatformPost,
)
from tracker.services import column_mapping
from tracker.services.column_mapping import ImportService, columns_of, read_rows

from conftest import USER_ID


CSV = (
    "Title,Views,Post Date,Mood\n"
    "Leg day fails,1200,03/05/24,happy\n"
    "Meal prep,\"3,400\",2024-04-01,tired\n"
).encode()

MAPPING = {"Title": "title", "Views": "views", "Post Date": "postedAt"}


# ============================================================================
# read_rows
# ============================================================================

class TestReadRows:
    def test_csv(self):
        rows = read_rows("export.csv", CSV)
        assert rows[0] == {"Title": "Leg day fails", "Views": "1200", "Post Date": "03/05/24", "Mood": "happy"}
        assert rows[1]["Views"] == "3,400"

    def test_csv_with_bom_and_blank_lines(self):
        rows = read_rows("export.CSV", b"\xef\xbb\xbfTitle,Views\n\n,\nA,1\n")
        assert rows == [{"Title": "A", "Views": "1"}]

    def test_xlsx_reads_every_sheet(self):
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.append(["Title", "Views"])
        ws.append(["Leg day fails", 1200])
        second = wb.create_sheet("TikTok")
        second.append(["Title", "Likes"])
        second.append(["Meal prep", 90])
        buf = io.BytesIO()
        wb.save(buf)

        rows = read_rows("tracker.xlsx", buf.getvalue())

        assert rows == [
            {"Title": "Leg day fails", "Views": 1200},
            {"Title": "Meal prep", "Likes": 90},
        ]
        assert columns_of(rows) == ["Title", "Views", "Likes"]

    def test_xls_reads_every_sheet(self, monkeypatch):
        def cell(ctype, value):
            return SimpleNamespace(ctype=ctype, value=value)

        def sheet(*rows):
            return SimpleNamespace(nrows=len(rows), row=lambda r: rows[r])

        book = SimpleNamespace(datemode=0, sheets=lambda: [
            sheet(
                [cell(xlrd.XL_CELL_TEXT, "Title"), cell(xlrd.XL_CELL_TEXT, "Views"), cell(xlrd.XL_CELL_TEXT, "Posted")],
                [cell(xlrd.XL_CELL_TEXT, "Leg day fails"), cell(xlrd.XL_CELL_NUMBER, 1200.0),
                 cell(xlrd.XL_CELL_DATE, 45356.0)],
                [cell(xlrd.XL_CELL_EMPTY, ""), cell(xlrd.XL_CELL_BLANK, ""), cell(xlrd.XL_CELL_EMPTY, "")],
            ),
            sheet(
                [cell(xlrd.XL_CELL_TEXT, "Title"), cell(xlrd.XL_CELL_TEXT, "Likes")],
                [cell(xlrd.XL_CELL_TEXT, "Meal prep"), cell(xlrd.XL_CELL_ERROR, 7)],
            ),
        ])
        monkeypatch.setattr(column_mapping.xlrd, "open_workbook", lambda file_contents: book)

        rows = read_rows("legacy.XLS", b"\xd0\xcf\x11\xe0")

        assert rows == [
            {"Title": "Leg day fails", "Views": 1200, "Posted": datetime(2024, 3, 5)},
            {"Title": "Meal prep", "Likes": None},
        ]

    def test_corrupt_xls(self):
        with pytest.raises(ImportFileError, match="Could not open workbook"):
            read_rows("legacy.xls", b"definitely not a workbook")

    def test_json_object_or_array(self):
        assert read_rows("a.json", json.dumps({"Title": "A"}).encode()) == [{"Title": "A"}]
        assert read_rows("a.json", json.dumps([{"Title": "A"}, 3]).encode()) == [{"Title": "A"}]

    def test_txt_lines(self):
        assert read_rows("notes.txt", b"first\n\n second \n") == [
            {"raw_content": "first"},
            {"raw_content": "second"},
        ]

    def test_unsupported_extension(self):
        with pytest.raises(ImportFileError, match="Unsupported file type"):
            read_rows("deck.pdf", b"%PDF")

    def test_empty_file(self):
        with pytest.raises(ImportFileError, match="No rows"):
            read_rows("empty.csv", b"Title,Views\n")

    def test_invalid_json(self):
        with pytest.raises(ImportFileError):
            read_rows("a.json", b"{nope")


# ============================================================================
# ImportService
# ============================================================================

class TestImportService:
    def test_mapped_rows_merge_into_videos(self, db, scripted_oracle, make_video):
        existing = make_video("Leg day fails")
        oracle, backend = scripted_oracle(MAPPING)

        batch = ImportService(db, oracle=oracle).run(USER_ID, "export.csv", read_rows("export.csv", CSV))

        assert batch.status == "completed"
        assert (batch.total_rows, batch.rows_imported, batch.rows_failed) == (2, 2, 0)
        assert batch.column_mapping == MAPPING

        db.refresh(existing)
        assert existing.published_at.date().isoformat() == "2024-03-05"
        metrics = db.query(VideoPlatformMetrics).filter(VideoPlatformMetrics.video_id == existing.id).one()
        assert (metrics.platform, metrics.views, metrics.source) == ("youtube", 1200, "import")

        created = db.query(Video).filter(Video.title == "Meal prep").one()
        assert created.source == "import"
        assert db.query(VideoPlatformMetrics).filter(VideoPlatformMetrics.video_id == created.id).one().views == 3400

        audit_sources = {a.source for a in db.query(AuditLogEntry).all()}
        assert audit_sources == {"import"}

        # Only the header and sample rows reach the oracle
        assert "Mood" in backend.calls[0][1]

    def test_unmapped_columns_are_kept(self, db, scripted_oracle):
        oracle, _ = scripted_oracle(MAPPING)
        batch = ImportService(db, oracle=oracle).run(USER_ID, "export.csv", read_rows("export.csv", CSV))

        rows = db.query(ImportedRow).filter(ImportedRow.batch_id == batch.id).order_by(ImportedRow.row_index).all()
        assert rows[0].unmapped_json == {"Mood": "happy"}
        assert rows[0].raw_json["Views"] == "1200"
        assert rows[0].parsed_json["metrics"] == {"youtube": {"views": "1200"}}

    def test_platform_column_routes_metrics(self, db, scripted_oracle, make_video):
        video = make_video("Leg day fails")
        oracle, _ = scripted_oracle({"Title": "title", "Platform": "platform", "Views": "views"})
        rows = [{"Title": "leg day FAILS", "Platform": "TikTok", "Views": "2k"}]

        ImportService(db, oracle=oracle).run(USER_ID, "t.csv", rows)

        metrics = db.query(VideoPlatformMetrics).one()
        assert (metrics.video_id, metrics.platform, metrics.views) == (video.id, "tiktok", 2000)

    def test_posted_columns_route_to_platform_posts(self, db, scripted_oracle, make_video):
        video = make_video("Leg day fails")
        oracle, _ = scripted_oracle({
            "Title": "title", "Platform": "platform", "Posted": "posted",
            "Went up": "platformPostedAt", "Outfit": "wearingOutfit",
        })
        rows = [{"Title": "Leg day fails", "Platform": "IG", "Posted": "Yes", "Went up": "2024-03-05", "Outfit": "hoodie"}]

        ImportService(db, oracle=oracle).run(USER_ID, "t.csv", rows)

        post = db.query(VideoPlatformPost).one()
        assert (post.video_id, post.platform, post.posted, post.source) == (video.id, "instagram", True, "import")
        assert post.posted_at.replace(tzinfo=None) == datetime(2024, 3, 5)
        assert db.query(VideoManualFields).one().wearing_outfit == "hoodie"

    def test_failed_mapping_keeps_every_row(self, db, scripted_oracle):
        oracle, _ = scripted_oracle("no idea", "still no idea")
        batch = ImportService(db, oracle=oracle).run(USER_ID, "export.csv", read_rows("export.csv", CSV))

        assert batch.column_mapping == {}
        assert (batch.rows_imported, batch.rows_failed) == (0, 2)
        rows = db.query(ImportedRow).filter(ImportedRow.batch_id == batch.id).all()
        assert len(rows) == 2
        assert all(r.error_message == "Row has no mapped fields" for r in rows)
        assert all(r.unmapped_json["Mood"] for r in rows)
        assert db.query(Video).count() == 0

    def test_rerun_is_idempotent(self, db, scripted_oracle):
        oracle, _ = scripted_oracle(MAPPING, MAPPING)
        service = ImportService(db, oracle=oracle)
        service.run(USER_ID, "export.csv", read_rows("export.csv", CSV))
        audit_count = db.query(AuditLogEntry).count()

        second = service.run(USER_ID, "export.csv", read_rows("export.csv", CSV))

        assert second.fields_applied == 0
        assert db.query(AuditLogEntry).count() == audit_count
        assert db.query(Video).count() == 2

    def test_row_failure_does_not_stop_the_batch(self, db, scripted_oracle, make_video):
        make_video("Not mine", user_id="user-2", youtube_video_id="dQw4w9WgXcQ")
        oracle, _ = scripted_oracle({"Video": "youtubeVideoId", "Title": "title", "Views": "views"})
        rows = [
            {"Video": "dQw4w9WgXcQ", "Title": "Stolen", "Views": "10"},
            {"Video": "", "Title": "Mine", "Views": "20"},
        ]

        batch = ImportService(db, oracle=oracle).run(USER_ID, "t.csv", rows)

        assert (batch.rows_imported, batch.rows_failed) == (1, 1)
        failed = db.query(ImportedRow).filter(ImportedRow.row_index == 0).one()
        assert "another account" in failed.error_message
        assert db.query(Video).filter(Video.title == "Mine").one().user_id == USER_ID

    def test_oversized_number_skips_only_that_cell(self, db, scripted_oracle):
        oracle, _ = scripted_oracle({"Title": "title", "Views": "views"})
        content = b"Title,Views\nGood,100\nBad,1e40\nAlso good,200\n"

        batch = ImportService(db, oracle=oracle).run(USER_ID, "t.csv", read_rows("t.csv", content))

        assert batch.status == "completed"
        assert (batch.rows_imported, batch.rows_failed) == (3, 0)
        bad = db.query(ImportedRow).filter(ImportedRow.row_index == 1).one()
        assert bad.parsed_json["skipped"] == ["youtube.views"]
        views = {
            v.title: m.views
            for v, m in db.query(Video, VideoPlatformMetrics).join(
                VideoPlatformMetrics, VideoPlatformMetrics.video_id == Video.id
            )
        }
        assert views == {"Good": 100, "Also good": 200}
