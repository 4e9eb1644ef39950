"""
Audit service — records data changes and queries the audit trail.

Every mutating service operation calls ``log_change`` before it commits,
so the audit row lands in the same transaction as the change it
describes.
"""

import json
import logging
from datetime import datetime
from typing import Any

from flask import has_request_context, request
from sqlalchemy import desc

from app.extensions import db
from app.models.audit import AuditLog

logger = logging.getLogger(__name__)


# -- Write audit entries ---------------------------------------------------


def log_change(
    user_id: int | None,
    action_type: str,
    entity_type: str,
    entity_id: int | None,
    previous_value: dict[str, Any] | None = None,
    new_value: dict[str, Any] | None = None,
) -> AuditLog:
    """
    Record a data change in the audit log.

    Args:
        user_id:        ID of the acting user, or None for guests and
                        system actions (CLI seeding).
        action_type:    One of CREATE, UPDATE, DELETE, LOGIN, LOGOUT.
        entity_type:    Dot-notation entity name (e.g., 'booking.reservation').
        entity_id:      Primary key of the affected record.
        previous_value: Dict of the record state before the change.
        new_value:      Dict of the record state after the change.

    Returns:
        The newly created AuditLog record (flushed, not committed).
    """
    ip_address = None
    user_agent = None
    if has_request_context():
        ip_address = request.remote_addr
        user_agent = str(request.user_agent)[:500]

    entry = AuditLog(
        user_id=user_id,
        action_type=action_type,
        entity_type=entity_type,
        entity_id=entity_id,
        previous_value=_dump(previous_value),
        new_value=_dump(new_value),
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.session.add(entry)
    db.session.flush()

    logger.info(
        "Audit: %s %s:%s by user %s",
        action_type,
        entity_type,
        entity_id,
        user_id,
    )
    return entry


def log_login(user_id: int) -> AuditLog:
    """Record a successful user login."""
    return log_change(
        user_id=user_id,
        action_type="LOGIN",
        entity_type="auth.user",
        entity_id=user_id,
    )


def log_logout(user_id: int) -> AuditLog:
    """Record a user logout."""
    return log_change(
        user_id=user_id,
        action_type="LOGOUT",
        entity_type="auth.user",
        entity_id=user_id,
    )


def _dump(value: dict[str, Any] | None) -> str | None:
    # default=str covers Decimal prices and datetimes in snapshots.
    return json.dumps(value, default=str) if value else None


# -- Query audit logs ------------------------------------------------------


def get_audit_logs(
    page: int = 1,
    per_page: int = 50,
    user_id: int | None = None,
    action_type: str | None = None,
    entity_type: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
):
    """
    Query audit logs with optional filters and pagination.

    Returns:
        A SQLAlchemy pagination object with ``.items``, ``.pages``,
        ``.total``, etc.
    """
    query = AuditLog.query.order_by(desc(AuditLog.created_at), desc(AuditLog.id))

    if user_id is not None:
        query = query.filter(AuditLog.user_id == user_id)
    if action_type:
        query = query.filter(AuditLog.action_type == action_type)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if start_date:
        query = query.filter(AuditLog.created_at >= start_date)
    if end_date:
        query = query.filter(AuditLog.created_at <= end_date)

    return query.paginate(page=page, per_page=per_page, error_out=False)


def audit_log_to_dict(entry: AuditLog) -> dict[str, Any]:
    """Serialize an audit entry for the admin API."""
    return {
        "id": entry.id,
        "user_id": entry.user_id,
        "action_type": entry.action_type,
        "entity_type": entry.entity_type,
        "entity_id": entry.entity_id,
        "previous_value": (
            json.loads(entry.previous_value) if entry.previous_value else None
        ),
        "new_value": json.loads(entry.new_value) if entry.new_value else None,
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
    }
