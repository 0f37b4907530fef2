from datetime import datetime
from pydantic import BaseModel, Field, model_validator

from tracker.schemas.video import MergeReport


class LogEntryCreate(BaseModel):
    raw_text: str | None = None
    audio_url: str | None = None

    @model_validator(mode="after")
    def check_content(self):
        if not (self.raw_text and self.raw_text.strip()) and not self.audio_url:
            raise ValueError("raw_text or audio_url is required")
        return self


class LogEntryCreated(BaseModel):
    log_entry_id: str = Field(serialization_alias="logEntryId")
    status: str


class TranscriptOut(BaseModel):
    id: str
    raw_transcript: str
    extracted_json: dict
    confidence_json: dict | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class LogEntryOut(BaseModel):
    id: str
    raw_text: str | None = None
    audio_url: str | None = None
    status: str
    linked_video_id: str | None = None
    error_message: str | None = None
    attempts: int = 0
    created_at: datetime | None = None
    completed_at: datetime | None = None

    class Config:
        from_attributes = True


class LogEntryDetailOut(LogEntryOut):
    transcript: TranscriptOut | None = None


class AssociateIn(BaseModel):
    video_id: str


class AssociateOut(BaseModel):
    log_entry: LogEntryOut
    merge: MergeReport
