"""
yt-dlp Metadata Probe Service
Read an upload's metadata (duration, title, uploader) via yt-dlp JSON without downloading it.
"""
from __future__ import annotations

import json
import subprocess
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

@dataclass
class YtdlpMeta:
    video_id: str
    title: str
    duration: Optional[float]
    uploader: Optional[str]
    raw: Dict[str, Any]

def _watch_url(url_or_id: str) -> str:
    if url_or_id.startswith("http"):
        return url_or_id
    return f"https://www.youtube.com/watch?v={url_or_id}"

def probe_video_metadata(url_or_id: str) -> YtdlpMeta:
    """
    Uses yt-dlp JSON output to fetch video metadata quickly.

    Raises RuntimeError when yt-dlp fails, times out or prints invalid JSON.
    """
    url = _watch_url(url_or_id)
    logger.info(f"Probing metadata for: {url}")

    cmd = ["yt-dlp", "-J", "--no-download", "--no-playlist", url]

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=True,
            timeout=60
        )
        data = json.loads(result.stdout)
    except FileNotFoundError:
        raise RuntimeError("yt-dlp is not installed")
    except subprocess.TimeoutExpired:
        logger.error(f"Timeout probing metadata for: {url}")
        raise RuntimeError("yt-dlp metadata probe timed out")
    except subprocess.CalledProcessError as e:
        logger.error(f"yt-dlp failed: {e.stderr}")
        raise RuntimeError(f"yt-dlp failed: {e.stderr}")
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse yt-dlp JSON: {e}")
        raise RuntimeError("Invalid JSON from yt-dlp")

    return YtdlpMeta(
        video_id=str(data.get("id") or ""),
        title=str(data.get("title") or ""),
        duration=(float(data["duration"]) if data.get("duration") is not None else None),
        uploader=(str(data.get("uploader")) if data.get("uploader") else None),
        raw=data,
    )


def probe_duration(url_or_id: str) -> Optional[int]:
    """Duration in whole seconds, or None when yt-dlp reports none."""
    meta = probe_video_metadata(url_or_id)
    if meta.duration is None:
        return None
    return int(round(meta.duration))
