"""
Response contract of the extraction oracle (camelCase on the wire).

Numbers are typed loosely on purpose: the oracle may answer "12k" or 12000,
the value parsers decide what is usable.
"""
from typing import Any

from pydantic import BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel

Scalar = int | float | str | None

CONTRACT_KEYS = ("extractedData", "extracted_data", "needsVideoSelection", "needs_video_selection")


class OracleModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "ignore"


class PlatformMetricsGuess(OracleModel):
    platform: str
    views: Scalar = None
    likes: Scalar = None
    comments: Scalar = None
    shares: Scalar = None
    saves: Scalar = None
    watch_time_seconds: Scalar = None
    followers_gained: Scalar = None
    posted: bool | str | None = None
    posted_at: str | None = None


class ExtractedData(OracleModel):
    title: str | None = None
    posted_at: str | None = None
    duration: Scalar = None

    hook: str | None = None
    caption: str | None = None
    hashtags: list[str] | str | None = None
    format: str | None = None
    topic: str | None = None
    cta: str | None = None
    target_audience: str | None = None
    why_posted: str | None = None
    content_summary: str | None = None
    wearing_outfit: str | None = None
    notes: str | None = None

    platform_metrics: list[PlatformMetricsGuess] = Field(default_factory=list)


class ExtractionResult(OracleModel):
    video_identifier: str | None = None
    video_identifier_confidence: float | None = Field(default=None, ge=0, le=1)
    needs_video_selection: bool = False
    extracted_data: ExtractedData = Field(default_factory=ExtractedData)
    confidence: dict[str, float] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def require_contract_key(cls, data: Any) -> Any:
        """An answer must carry extractedData or needsVideoSelection to count."""
        if isinstance(data, dict) and not any(key in data for key in CONTRACT_KEYS):
            raise ValueError("Response has neither extractedData nor needsVideoSelection")
        return data
