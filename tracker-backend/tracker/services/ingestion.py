"""
Ingestion Pipeline - LogEntry state machine.

    processing -> completed (linked | unlinked)
               -> needs_association   (creator must pick the video)
               -> failed              (extraction or persistence failed)

Every processing attempt writes its own Transcript, committed before any
merge, so the extraction survives a failed merge and can be reused by
`associate` without another oracle call.
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tracker.core.enums import ChangeSource, LogEntryStatus, ResolutionOutcome
from tracker.core.errors import (
    ExtractionFailed,
    LogEntryNotFound,
    LogEntryStateError,
    TranscriptionError,
    VideoNotFound,
)
from tracker.core.logging import IngestContext
from tracker.core.settings import settings
from tracker.db.repositories import LogEntryRepository, TranscriptRepository, VideoRepository
from tracker.models import LogEntry
from tracker.schemas.extraction import ExtractionResult
from tracker.services.audit import utcnow
from tracker.services.oracle import ExtractionContext, ExtractionOracle
from tracker.services.reconciliation import FieldSet, MergeResult, ReconciliationEngine
from tracker.services.resolver import resolve_video

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 5


class IngestionService:
    def __init__(
        self,
        db: Session,
        oracle: Optional[ExtractionOracle] = None,
        transcriber=None,
        min_confidence: Optional[float] = None,
        context_limit: Optional[int] = None,
    ):
        self.db = db
        self.oracle = oracle or ExtractionOracle()
        self._transcriber = transcriber
        self.min_confidence = (
            settings.min_identification_confidence if min_confidence is None else min_confidence
        )
        self.context_limit = context_limit or settings.context_video_limit

        self.entries = LogEntryRepository(db)
        self.transcripts = TranscriptRepository(db)
        self.videos = VideoRepository(db)
        self.engine = ReconciliationEngine(db)

    @property
    def transcriber(self):
        if self._transcriber is None:
            from tracker.services.transcriber import get_transcriber
            self._transcriber = get_transcriber(settings.whisper_model)
        return self._transcriber

    def create_log_entry(self, user_id: str, raw_text: Optional[str], audio_url: Optional[str] = None) -> LogEntry:
        entry = self.entries.create(
            user_id=user_id,
            raw_text=raw_text,
            audio_url=audio_url,
            status=LogEntryStatus.PROCESSING.value,
            attempts=0,
            created_at=utcnow(),
            queued_at=utcnow(),
        )
        self.db.commit()
        logger.info(f"[ingest] Created log entry {entry.id}")
        return entry

    def process(self, log_entry_id: str) -> Optional[LogEntry]:
        entry = self.entries.get_by_id(log_entry_id)
        if not entry:
            logger.warning(f"[ingest] Log entry not found: {log_entry_id}")
            return None
        if entry.status != LogEntryStatus.PROCESSING.value:
            logger.info(f"[ingest] Skipping {log_entry_id}, status={entry.status}")
            return entry

        with IngestContext(log_entry_id=entry.id) as ctx:
            entry.attempts = (entry.attempts or 0) + 1
            self.db.commit()

            try:
                text = self._entry_text(entry)
            except TranscriptionError as e:
                return self._fail(entry, str(e))
            if not text:
                return self._fail(entry, "Log entry has no text or audio")

            context = ExtractionContext(
                known_videos=self.videos.known_videos(entry.user_id, self.context_limit),
                history=self.entries.recent_texts(entry.user_id, exclude_id=entry.id, limit=HISTORY_LIMIT),
            )

            try:
                result = self.oracle.extract(text, context)
            except ExtractionFailed as e:
                logger.warning(f"[ingest] Extraction failed after {e.attempts} attempts")
                return self._fail(entry, str(e))

            self.transcripts.create(
                log_entry_id=entry.id,
                raw_transcript=text,
                extracted_json=result.model_dump(mode="json", by_alias=True),
                confidence_json=result.confidence or None,
                created_at=utcnow(),
            )
            self.db.commit()

            resolution = resolve_video(result, context.known_videos, self.min_confidence)
            logger.info(f"[ingest] Resolution {resolution.outcome.value}: {resolution.reason}")

            if resolution.outcome == ResolutionOutcome.NEEDS_ASSOCIATION:
                entry.status = LogEntryStatus.NEEDS_ASSOCIATION.value
                entry.error_message = None
                self.db.commit()
                return entry

            if resolution.outcome == ResolutionOutcome.UNLINKED:
                return self._complete(entry, None)

            ctx.bind_video(resolution.video_id)
            try:
                self.engine.merge(
                    resolution.video_id,
                    FieldSet.from_extraction(result.extracted_data),
                    source=ChangeSource.TRANSCRIPT,
                    actor_id=entry.user_id,
                    log_entry_id=entry.id,
                )
                return self._complete(entry, resolution.video_id)
            except (SQLAlchemyError, VideoNotFound) as e:
                logger.exception("[ingest] Merge failed, rolling back")
                self.db.rollback()
                return self._fail(entry, f"Failed to save extracted fields: {e}")

    def associate(self, log_entry_id: str, video_id: str, actor_id: Optional[str] = None) -> MergeResult:
        """Attach a needs_association entry to the video the creator picked."""
        entry = self.entries.get_by_id(log_entry_id)
        if not entry:
            raise LogEntryNotFound(log_entry_id)
        if entry.status != LogEntryStatus.NEEDS_ASSOCIATION.value:
            raise LogEntryStateError(f"Log entry {log_entry_id} is {entry.status}, not needs_association")

        video = self.videos.get_for_user(video_id, entry.user_id)
        if not video:
            raise VideoNotFound(video_id)

        transcript = self.transcripts.latest_for_log_entry(entry.id)
        if not transcript:
            raise LogEntryStateError(f"Log entry {log_entry_id} has no extraction to apply")

        result = ExtractionResult.model_validate(transcript.extracted_json)
        with IngestContext(log_entry_id=entry.id, video_id=video_id):
            try:
                merge = self.engine.merge(
                    video_id,
                    FieldSet.from_extraction(result.extracted_data),
                    source=ChangeSource.TRANSCRIPT,
                    actor_id=actor_id or entry.user_id,
                    log_entry_id=entry.id,
                )
                self._complete(entry, video_id)
            except SQLAlchemyError:
                self.db.rollback()
                raise
            logger.info(f"[ingest] Associated, {merge.changed_count} fields changed")
        return merge

    def retry(self, log_entry_id: str) -> LogEntry:
        """Put a failed entry back into processing. The caller enqueues it."""
        entry = self.entries.get_by_id(log_entry_id)
        if not entry:
            raise LogEntryNotFound(log_entry_id)
        if entry.status != LogEntryStatus.FAILED.value:
            raise LogEntryStateError(f"Only failed log entries can be retried (status={entry.status})")

        entry.status = LogEntryStatus.PROCESSING.value
        entry.error_message = None
        entry.completed_at = None
        entry.queued_at = utcnow()
        self.db.commit()
        return entry

    def _entry_text(self, entry: LogEntry) -> Optional[str]:
        if entry.raw_text and entry.raw_text.strip():
            return entry.raw_text.strip()
        if entry.audio_url:
            text = self.transcriber.transcribe_url(entry.audio_url)
            entry.raw_text = text
            self.db.commit()
            return text
        return None

    def _complete(self, entry: LogEntry, video_id: Optional[str]) -> LogEntry:
        entry.status = LogEntryStatus.COMPLETED.value
        entry.linked_video_id = video_id
        entry.error_message = None
        entry.completed_at = utcnow()
        self.db.commit()
        return entry

    def _fail(self, entry: LogEntry, message: str) -> LogEntry:
        entry.status = LogEntryStatus.FAILED.value
        entry.error_message = message
        entry.completed_at = utcnow()
        self.db.commit()
        logger.error(f"[ingest] Log entry failed: {message}")
        return entry