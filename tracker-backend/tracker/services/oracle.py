"""
Extraction Oracle Adapter

Wraps an LLM backend behind `extract(text, context)`. The backend answer is
treated as untrusted prose that should contain one JSON object: the adapter
isolates it, validates it, retries once with a stricter instruction, and gives
up with ExtractionFailed instead of guessing.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, TypeVar

from pydantic import TypeAdapter, ValidationError

from tracker.core.errors import ExtractionFailed
from tracker.schemas.extraction import ExtractionResult
from tracker.services.extraction_prompts import (
    IMPORT_FIELDS,
    STRICT_JSON_RETRY,
    format_column_mapping_prompt,
    format_log_entry_prompt,
)
from tracker.services.llm import GroqBackend, LLMBackend

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS = 2  # first try + one strict retry

_mapping_adapter = TypeAdapter(dict[str, str])


@dataclass
class KnownVideo:
    """Abbreviated video as shown to the oracle and used by the resolver."""
    id: str
    title: str
    published_at: Optional[datetime] = None
    youtube_video_id: Optional[str] = None


@dataclass
class ExtractionContext:
    known_videos: list[KnownVideo] = field(default_factory=list)
    history: list[str] = field(default_factory=list)


def _balanced_end(text: str, start: int) -> int:
    """Index just past the brace that closes the one at `start`, or -1."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
    return -1


def find_first_json_object(text: str) -> Optional[dict]:
    """
    Return the first top-level JSON object embedded in `text`.

    Scans every "{" left to right and lets the JSON decoder consume a full
    object from there, so braces inside strings and code fences are handled.
    A malformed object is skipped as a whole: the scan resumes after its
    closing brace, never inside it, so a nested fragment is not mistaken
    for the answer.
    """
    if not text:
        return None
    decoder = json.JSONDecoder()
    idx = text.find("{")
    while idx != -1:
        try:
            obj, _ = decoder.raw_decode(text, idx)
        except json.JSONDecodeError:
            end = _balanced_end(text, idx)
            idx = text.find("{", end if end != -1 else idx + 1)
            continue
        if isinstance(obj, dict):
            return obj
        idx = text.find("{", idx + 1)
    return None


class ExtractionOracle:
    def __init__(self, backend: Optional[LLMBackend] = None):
        self.backend = backend or GroqBackend()

    def extract(self, text: str, context: ExtractionContext) -> ExtractionResult:
        system, prompt = format_log_entry_prompt(text, context.known_videos, context.history)
        result = self._request_json(system, prompt, ExtractionResult.model_validate, "log entry")
        logger.info(
            f"[oracle] Extracted identifier={result.video_identifier} "
            f"ambiguous={result.needs_video_selection} "
            f"platforms={len(result.extracted_data.platform_metrics)}"
        )
        return result

    def infer_column_mapping(self, columns: list[str], sample_rows: list[dict]) -> dict[str, str]:
        """
        Map spreadsheet headers to canonical import fields.

        Unsure or invalid entries are dropped; an unusable answer maps nothing.
        """
        system, prompt = format_column_mapping_prompt(columns, sample_rows)
        try:
            raw = self._request_json(system, prompt, _mapping_adapter.validate_python, "column mapping")
        except ExtractionFailed as e:
            logger.warning(f"[oracle] Column mapping failed, importing unmapped: {e}")
            return {}

        mapping = {}
        for column, target in raw.items():
            if column in columns and target in IMPORT_FIELDS:
                mapping[column] = target
            else:
                logger.debug(f"[oracle] Ignoring mapping {column!r} -> {target!r}")
        return mapping

    def _request_json(self, system: str, prompt: str, validate: Callable[[Any], T], purpose: str) -> T:
        last_error: Optional[Exception] = None

        for attempt in range(1, MAX_ATTEMPTS + 1):
            if attempt > 1:
                prompt = prompt + STRICT_JSON_RETRY
            try:
                response_text = self.backend.complete(system, prompt)
            except Exception as e:
                logger.warning(f"[oracle] {purpose} attempt {attempt} failed: {e}")
                last_error = e
                continue

            payload = find_first_json_object(response_text)
            if payload is None:
                logger.warning(f"[oracle] {purpose} attempt {attempt}: no JSON object in response")
                last_error = ValueError("No JSON object found in response")
                continue

            try:
                return validate(payload)
            except ValidationError as e:
                logger.warning(f"[oracle] {purpose} attempt {attempt}: schema validation failed")
                last_error = e

        raise ExtractionFailed(
            f"Could not extract {purpose} after {MAX_ATTEMPTS} attempts: {last_error}",
            attempts=MAX_ATTEMPTS,
            cause=last_error,
        )
