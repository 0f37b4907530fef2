"""
LLM backend - raw text completion behind one method, so the extraction
adapter does not care which hosted (or local) model answers.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from tracker.core.settings import settings

logger = logging.getLogger(__name__)


class LLMBackend(ABC):
    """Text in, text out. Implementations may raise on transport errors."""

    @abstractmethod
    def complete(self, system: str, prompt: str) -> str:
        ...


class GroqBackend(LLMBackend):
    def __init__(self, api_key: str | None = None, model: str | None = None,
                 temperature: float | None = None):
        self.api_key = api_key if api_key is not None else settings.groq_api_key
        self.model = model or settings.extraction_model
        self.temperature = settings.extraction_temperature if temperature is None else temperature
        self._client = None

    @property
    def client(self):
        # Created lazily so importing the worker does not require an API key
        if self._client is None:
            from groq import Groq
            self._client = Groq(api_key=self.api_key)
        return self._client

    def complete(self, system: str, prompt: str) -> str:
        logger.info(f"Sending extraction prompt to Groq ({self.model}), {len(prompt)} chars")
        completion = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
            stream=False,
        )
        response_text = completion.choices[0].message.content or ""
        logger.debug(f"Groq response: {response_text[:200]}...")
        return response_text
