from datetime import datetime
from typing import Any
from pydantic import BaseModel, Field


class ImportedRowOut(BaseModel):
    row_index: int
    video_id: str | None = None
    raw_json: dict[str, Any]
    unmapped_json: dict[str, Any] | None = None
    parsed_json: dict[str, Any] | None = None
    error_message: str | None = None

    class Config:
        from_attributes = True


class ImportBatchOut(BaseModel):
    id: str
    file_name: str
    status: str
    column_mapping: dict[str, str] | None = None
    total_rows: int
    rows_imported: int
    rows_failed: int
    fields_applied: int
    error_message: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class ImportBatchDetailOut(ImportBatchOut):
    rows: list[ImportedRowOut] = Field(default_factory=list)
