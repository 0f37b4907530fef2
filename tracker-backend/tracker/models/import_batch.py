from datetime import datetime

from sqlalchemy import String, Integer, Text, DateTime, ForeignKey, JSON, func
from sqlalchemy.orm import Mapped, mapped_column
from tracker.db.base import Base

class ImportBatch(Base):
    __tablename__ = "import_batches"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    file_name: Mapped[str] = mapped_column(String, nullable=False)

    status: Mapped[str] = mapped_column(String(20), default="processing")
    column_mapping: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    total_rows: Mapped[int] = mapped_column(Integer, default=0)
    rows_imported: Mapped[int] = mapped_column(Integer, default=0)
    rows_failed: Mapped[int] = mapped_column(Integer, default=0)
    fields_applied: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class ImportedRow(Base):
    __tablename__ = "imported_rows"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    batch_id: Mapped[str] = mapped_column(String, ForeignKey("import_batches.id"), nullable=False, index=True)
    row_index: Mapped[int] = mapped_column(Integer, nullable=False)
    video_id: Mapped[str | None] = mapped_column(String, nullable=True)

    # Original row verbatim, plus the columns the mapping did not cover
    raw_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    unmapped_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    parsed_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
