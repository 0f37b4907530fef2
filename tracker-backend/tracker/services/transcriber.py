import logging
import os
import tempfile
from functools import lru_cache
from urllib.parse import urlparse

import requests

from tracker.core.errors import TranscriptionError

logger = logging.getLogger(__name__)

class Transcriber:
    """Whisper speech-to-text for voice log entries. Needs the `voice` extra."""

    def __init__(self, model_size: str = "base"):
        try:
            import torch
            import whisper
        except ImportError as e:
            raise TranscriptionError(
                "Voice transcription is not installed (install the 'voice' extra)", cause=e
            )

        # Auto-detect GPU (CUDA) for production, fallback to CPU
        if torch.cuda.is_available():
            self.device = "cuda"
            logger.info("CUDA GPU detected! Using GPU for transcription.")
        else:
            self.device = "cpu"
            logger.info("CUDA not found. Using CPU.")

        logger.info(f"Loading Whisper model '{model_size}' on {self.device}...")
        self.model = whisper.load_model(model_size, device=self.device)

    def transcribe(self, audio_path: str) -> str:
        """Transcribe a local audio file into one block of text."""
        logger.info(f"Transcribing {audio_path}...")
        try:
            result = self.model.transcribe(audio_path)
        except Exception as e:
            logger.error(f"Transcription failed: {e}")
            raise TranscriptionError(f"Transcription failed: {e}", cause=e)

        text = " ".join(seg["text"].strip() for seg in result.get("segments", []))
        return text.strip() or str(result.get("text", "")).strip()

    def transcribe_url(self, audio_url: str) -> str:
        """Download an uploaded recording and transcribe it."""
        suffix = os.path.splitext(urlparse(audio_url).path)[1] or ".m4a"
        try:
            resp = requests.get(audio_url, timeout=60)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise TranscriptionError(f"Failed to fetch audio: {e}", cause=e)

        fd, path = tempfile.mkstemp(suffix=suffix)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(resp.content)
            return self.transcribe(path)
        finally:
            os.remove(path)


@lru_cache(maxsize=1)
def get_transcriber(model_size: str = "base") -> Transcriber:
    """One Whisper model per worker process."""
    return Transcriber(model_size=model_size)
