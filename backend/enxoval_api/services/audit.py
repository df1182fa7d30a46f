"""
Audit logging service.
Records admin mutations for traceability.

Audit rows are written after the business change has been committed,
in their own commit. A failure between the two leaves the mutation
unlogged; the business change is never rolled back because of it.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from enxoval_api.models import AuditLog
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit

logger = get_logger(__name__)


def log_change(
    db: Session,
    *,
    user_ctx: Optional[dict],
    action: str,
    entity: str,
    entity_id: Any = None,
    meta: Optional[dict] = None,
    commit: bool = True,
) -> AuditLog:
    """
    Append one audit row.

    Args:
        db: Database session
        user_ctx: Decoded token claims of the acting admin (sub, email)
        action: Operation name (e.g. "create", "reorder", "mark_status")
        entity: Table or resource name
        entity_id: Affected row id, if any
        meta: Extra context (old/new values, filters, counts)
        commit: Commit immediately (default) or leave it to the caller
    """
    user_ctx = user_ctx or {}
    sub = user_ctx.get("sub")

    entry = AuditLog(
        user_id=int(sub) if sub is not None else None,
        user_email=user_ctx.get("email"),
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta=_json_safe(meta) if meta else None,
    )
    db.add(entry)
    if commit:
        safe_commit(db)

    logger.info("Audit", action=action, entity=entity, entity_id=entity_id, user_id=entry.user_id)
    return entry


def serialize_model(obj: Any, exclude: list[str] | None = None) -> dict:
    """
    Serialize a SQLAlchemy model row to a JSON-safe dict for audit metadata.
    """
    exclude = exclude or []

    result = {}
    for column in obj.__table__.columns:
        if column.name in exclude:
            continue
        result[column.name] = _json_safe(getattr(obj, column.name))
    return result


def diff_values(old_values: dict, new_values: dict) -> dict:
    """Fields whose value changed, as {field: {"old": ..., "new": ...}}."""
    changes = {}
    for key in set(old_values) | set(new_values):
        if old_values.get(key) != new_values.get(key):
            changes[key] = {"old": old_values.get(key), "new": new_values.get(key)}
    return changes


def _json_safe(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value
