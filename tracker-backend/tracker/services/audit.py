"""
Audit Log - append-only, field-granular change records.

Rows are only ever added here; nothing in the codebase updates or deletes them.
"""
from __future__ import annotations

import json
from datetime import date, datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from tracker.models import AuditLogEntry


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def serialize_audit_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


class AuditTrail:
    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        *,
        entity_type: str,
        entity_id: str,
        field: str,
        old_value: Any,
        new_value: Any,
        source: str,
        changed_by: Optional[str],
        changed_at: Optional[datetime] = None,
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            id=str(uuid4()),
            entity_type=entity_type,
            entity_id=entity_id,
            field=field,
            old_value=serialize_audit_value(old_value),
            new_value=serialize_audit_value(new_value),
            source=source,
            changed_by=changed_by,
            changed_at=changed_at or utcnow(),
        )
        self.db.add(entry)
        return entry

    def for_entity(self, entity_id: str, limit: int = 50, field: Optional[str] = None) -> list[AuditLogEntry]:
        q = self.db.query(AuditLogEntry).filter(AuditLogEntry.entity_id == entity_id)
        if field:
            q = q.filter(AuditLogEntry.field == field)
        return q.order_by(AuditLogEntry.changed_at.desc()).limit(limit).all()
