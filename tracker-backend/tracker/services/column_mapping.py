"""
Spreadsheet Import - column-mapping inference and sequential batch merge.

The oracle sees only the header and a few sample rows and answers with a
column -> canonical field mapping. Every row is then parsed with the same
value parsers as text logs and merged with source="import". Columns the
mapping does not cover are kept verbatim on the ImportedRow, so nothing in
the upload is lost even when the mapping call fails.
"""
from __future__ import annotations

import csv
import io
import json
import logging
import os
import time
from datetime import date, datetime
from typing import Any, Optional
from uuid import uuid4

import openpyxl
import xlrd
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tracker.core.enums import ChangeSource, ImportStatus
from tracker.core.errors import ImportFileError, TrackerError
from tracker.core.settings import settings
from tracker.db.repositories import ImportBatchRepository, VideoRepository
from tracker.models import ImportBatch, ImportedRow, Video
from tracker.services.audit import utcnow
from tracker.services.oracle import ExtractionOracle
from tracker.services.reconciliation import FieldSet, ReconciliationEngine
from tracker.services.value_parsers import parse_text

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".csv", ".xlsx", ".xls", ".json", ".txt")

# Canonical import field -> (namespace, stored field)
FIELD_TARGETS = {
    "title": ("video", "title"),
    "description": ("video", "description"),
    "postedAt": ("video", "published_at"),
    "duration": ("video", "duration_seconds"),
    "hook": ("manual", "hook"),
    "caption": ("manual", "caption"),
    "hashtags": ("manual", "hashtags"),
    "topic": ("manual", "topic"),
    "format": ("manual", "format"),
    "wearingOutfit": ("manual", "wearing_outfit"),
    "views": ("metrics", "views"),
    "likes": ("metrics", "likes"),
    "comments": ("metrics", "comments"),
    "shares": ("metrics", "shares"),
    "saves": ("metrics", "saves"),
    "watchTimeSeconds": ("metrics", "watch_time_seconds"),
    "followersGained": ("metrics", "followers_gained"),
    "posted": ("posts", "posted"),
    "platformPostedAt": ("posts", "posted_at"),
}


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def _header(cells) -> list[str]:
    names = []
    for i, cell in enumerate(cells):
        name = str(cell).strip() if cell is not None else ""
        names.append(name or f"column_{i + 1}")
    return names


def _is_blank(values) -> bool:
    return all(v is None or (isinstance(v, str) and not v.strip()) for v in values)


def _read_csv(content: bytes) -> list[dict]:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ImportFileError("CSV file is not UTF-8 encoded", cause=e)
    reader = csv.reader(io.StringIO(text))
    header = None
    rows = []
    for values in reader:
        if _is_blank(values):
            continue
        if header is None:
            header = _header(values)
            continue
        rows.append({name: (values[i] if i < len(values) else None) for i, name in enumerate(header)})
    return rows


def _read_xlsx(content: bytes) -> list[dict]:
    try:
        wb = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise ImportFileError(f"Could not open workbook: {e}", cause=e)

    rows = []
    try:
        # Every sheet is read with its own header row
        for ws in wb.worksheets:
            header = None
            for values in ws.iter_rows(values_only=True):
                if _is_blank(values):
                    continue
                if header is None:
                    header = _header(values)
                    continue
                rows.append({name: (values[i] if i < len(values) else None) for i, name in enumerate(header)})
    finally:
        wb.close()
    return rows


def _xls_value(cell, datemode: int) -> Any:
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
        return None
    if cell.ctype == xlrd.XL_CELL_DATE:
        return xlrd.xldate_as_datetime(cell.value, datemode)
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(cell.value)
    if cell.ctype == xlrd.XL_CELL_NUMBER and float(cell.value).is_integer():
        return int(cell.value)
    return cell.value


def _read_xls(content: bytes) -> list[dict]:
    """Legacy Excel 97-2003 workbooks."""
    try:
        book = xlrd.open_workbook(file_contents=content)
    except Exception as e:
        raise ImportFileError(f"Could not open workbook: {e}", cause=e)

    rows = []
    for sheet in book.sheets():
        header = None
        for r in range(sheet.nrows):
            values = [_xls_value(cell, book.datemode) for cell in sheet.row(r)]
            if _is_blank(values):
                continue
            if header is None:
                header = _header(values)
                continue
            rows.append({name: (values[i] if i < len(values) else None) for i, name in enumerate(header)})
    return rows


def _read_json(content: bytes) -> list[dict]:
    try:
        data = json.loads(content.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ImportFileError(f"Invalid JSON file: {e}", cause=e)
    if isinstance(data, dict):
        return [data]
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    raise ImportFileError("JSON import must be an object or an array of objects")


def _read_txt(content: bytes) -> list[dict]:
    text = content.decode("utf-8-sig", errors="replace")
    return [{"raw_content": line.strip()} for line in text.splitlines() if line.strip()]


def read_rows(file_name: str, content: bytes) -> list[dict]:
    """Turn an uploaded file into a list of header -> cell dicts."""
    ext = os.path.splitext(file_name.lower())[1]
    readers = {
        ".csv": _read_csv,
        ".xlsx": _read_xlsx,
        ".xls": _read_xls,
        ".json": _read_json,
        ".txt": _read_txt,
    }
    reader = readers.get(ext)
    if reader is None:
        raise ImportFileError(
            f"Unsupported file type '{ext or file_name}'. Upload one of: {', '.join(SUPPORTED_EXTENSIONS)}"
        )
    rows = reader(content)
    if not rows:
        raise ImportFileError(f"No rows found in {file_name}")
    return rows


def columns_of(rows: list[dict]) -> list[str]:
    """Header names in first-seen order across all rows."""
    seen: dict[str, None] = {}
    for row in rows:
        for name in row:
            seen.setdefault(name, None)
    return list(seen)


class ImportService:
    def __init__(self, db: Session, oracle: Optional[ExtractionOracle] = None):
        self.db = db
        self.oracle = oracle or ExtractionOracle()
        self.batches = ImportBatchRepository(db)
        self.videos = VideoRepository(db)
        self.engine = ReconciliationEngine(db)

    def run(self, user_id: str, file_name: str, rows: list[dict]) -> ImportBatch:
        batch = self.batches.create(
            user_id=user_id,
            file_name=file_name,
            status=ImportStatus.PROCESSING.value,
            total_rows=len(rows),
            rows_imported=0,
            rows_failed=0,
            fields_applied=0,
            created_at=utcnow(),
        )
        self.db.commit()

        columns = columns_of(rows)
        sample = [_jsonable(r) for r in rows[: settings.import_sample_rows]]
        mapping = self.oracle.infer_column_mapping(columns, sample)
        batch.column_mapping = mapping
        self.db.commit()
        logger.info(f"[import] {file_name}: {len(rows)} rows, mapped {len(mapping)}/{len(columns)} columns")

        titles = {
            v.title.strip().casefold(): v
            for v in self.videos.list_for_user(user_id)
            if v.title
        }
        delay = settings.import_row_delay_ms / 1000.0

        for index, row in enumerate(rows):
            if index and delay:
                time.sleep(delay)
            self._import_row(batch, index, row, mapping, titles)

        batch.status = ImportStatus.COMPLETED.value
        self.db.commit()
        logger.info(
            f"[import] {file_name} done: {batch.rows_imported} imported, "
            f"{batch.rows_failed} failed, {batch.fields_applied} fields applied"
        )
        return batch

    def _import_row(self, batch: ImportBatch, index: int, row: dict, mapping: dict[str, str], titles: dict):
        mapped = {target: row.get(column) for column, target in mapping.items() if column in row}
        unmapped = {column: value for column, value in row.items() if column not in mapping}

        record = ImportedRow(
            id=str(uuid4()),
            batch_id=batch.id,
            row_index=index,
            raw_json=_jsonable(row),
            unmapped_json=_jsonable(unmapped) or None,
        )

        field_set = self.field_set_for(mapped)
        youtube_id = parse_text(mapped.get("youtubeVideoId"))
        if not isinstance(youtube_id, str):
            youtube_id = None
        title = field_set.video.get("title")
        if field_set.is_empty() and not youtube_id:
            record.error_message = "Row has no mapped fields"
            batch.rows_failed += 1
            self.db.add(record)
            self.db.commit()
            return

        try:
            video = self._find_or_create_video(batch, index, youtube_id, title, titles)
            merge = self.engine.merge(video.id, field_set, source=ChangeSource.IMPORT, actor_id=batch.user_id)
            self.db.commit()
        except (SQLAlchemyError, TrackerError) as e:
            # Only this row's work is lost; earlier rows are already committed
            self.db.rollback()
            titles.clear()
            titles.update({
                v.title.strip().casefold(): v
                for v in self.videos.list_for_user(batch.user_id)
                if v.title
            })
            logger.warning(f"[import] Row {index} failed: {e}")
            record.error_message = str(e)
            batch.rows_failed += 1
            self.db.add(record)
            self.db.commit()
            return

        record.video_id = video.id
        record.parsed_json = _jsonable({
            "video": field_set.video,
            "manual": field_set.manual,
            "metrics": field_set.metrics,
            "posts": field_set.posts,
            "skipped": merge.skipped,
        })
        batch.rows_imported += 1
        batch.fields_applied += merge.changed_count
        self.db.add(record)
        self.db.commit()

    def field_set_for(self, mapped: dict[str, Any]) -> FieldSet:
        fs = FieldSet()
        metrics = {}
        posts = {}
        for target, value in mapped.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                continue
            namespace, name = FIELD_TARGETS.get(target, (None, None))
            if namespace == "video":
                fs.video[name] = value
            elif namespace == "manual":
                fs.manual[name] = value
            elif namespace == "metrics":
                metrics[name] = value
            elif namespace == "posts":
                posts[name] = value
        platform = mapped.get("platform") or settings.import_default_platform
        if metrics:
            fs.add_metrics(platform, metrics)
        if posts:
            fs.add_post(platform, posts)
        return fs

    def _find_or_create_video(
        self,
        batch: ImportBatch,
        index: int,
        youtube_id: Optional[str],
        title: Any,
        titles: dict,
    ) -> Video:
        if youtube_id:
            video = self.videos.get_by_youtube_id(youtube_id)
            if video and video.user_id != batch.user_id:
                raise TrackerError(f"YouTube video {youtube_id} belongs to another account")
            if video:
                return video

        clean_title = parse_text(title)
        if isinstance(clean_title, str):
            video = titles.get(clean_title.casefold())
            if video:
                return video

        video = self.videos.create(
            user_id=batch.user_id,
            youtube_video_id=youtube_id,
            title=clean_title if isinstance(clean_title, str) else f"Untitled import ({batch.file_name} #{index + 1})",
            source=ChangeSource.IMPORT.value,
            created_at=utcnow(),
        )
        self.db.flush()
        titles[video.title.casefold()] = video
        return video
