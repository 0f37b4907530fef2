"""
Video Resolver - decide which known video an extraction refers to, or defer
the decision to the creator.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from tracker.core.enums import ResolutionOutcome
from tracker.schemas.extraction import ExtractedData, ExtractionResult
from tracker.services.oracle import KnownVideo

logger = logging.getLogger(__name__)

# Manual fields that tie a note to one specific video
_VIDEO_BOUND_FIELDS = (
    "hook", "caption", "hashtags", "format", "topic", "cta",
    "target_audience", "why_posted", "content_summary", "wearing_outfit",
)


@dataclass
class Resolution:
    outcome: ResolutionOutcome
    video_id: Optional[str] = None
    reason: str = ""

    @property
    def is_linked(self) -> bool:
        return self.outcome == ResolutionOutcome.LINKED


def match_known_video(identifier: Optional[str], known_videos: list[KnownVideo]) -> Optional[KnownVideo]:
    """Match by internal id, then external (YouTube) id, then exact title ignoring case."""
    if not identifier:
        return None
    ident = identifier.strip()
    if not ident:
        return None

    for v in known_videos:
        if v.id == ident:
            return v
    for v in known_videos:
        if v.youtube_video_id and v.youtube_video_id == ident:
            return v

    folded = ident.casefold()
    title_matches = [v for v in known_videos if v.title and v.title.strip().casefold() == folded]
    if len(title_matches) == 1:
        return title_matches[0]
    return None


def has_video_bound_data(data: ExtractedData) -> bool:
    if data.platform_metrics:
        return True
    return any(getattr(data, name) for name in _VIDEO_BOUND_FIELDS)


def resolve_video(
    result: ExtractionResult,
    known_videos: list[KnownVideo],
    min_confidence: float = 0.0,
) -> Resolution:
    if result.needs_video_selection:
        return Resolution(ResolutionOutcome.NEEDS_ASSOCIATION, reason="oracle flagged ambiguity")

    if result.video_identifier:
        match = match_known_video(result.video_identifier, known_videos)
        if match is None:
            logger.warning(f"[resolver] Oracle named unknown video {result.video_identifier!r}")
            return Resolution(ResolutionOutcome.NEEDS_ASSOCIATION, reason="identifier matches no known video")

        confidence = result.video_identifier_confidence
        if confidence is not None and confidence < min_confidence:
            return Resolution(
                ResolutionOutcome.NEEDS_ASSOCIATION,
                reason=f"identification confidence {confidence:.2f} below {min_confidence:.2f}",
            )
        return Resolution(ResolutionOutcome.LINKED, video_id=match.id, reason="identified by oracle")

    if not has_video_bound_data(result.extracted_data):
        return Resolution(ResolutionOutcome.UNLINKED, reason="nothing to attach")

    if len(known_videos) == 1:
        return Resolution(ResolutionOutcome.LINKED, video_id=known_videos[0].id, reason="only known video")

    return Resolution(ResolutionOutcome.NEEDS_ASSOCIATION, reason="no identifier for video-bound data")
