"""
Audit Logging Service
Helpers for writing to the audit log. Writes are best-effort: a failed
audit insert is logged and never surfaces to the caller.
"""
import logging
from sqlalchemy.orm import Session
from fastapi import Request
from typing import Optional, Any, Dict

from ..models.audit_log import AuditLog, AuditAction, _serialize_for_json
from ..models.user import User

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> Optional[str]:
    """Client IP, honouring proxy headers"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host
    return None


def log_activity(
    db: Session,
    user: Optional[User],
    action: AuditAction,
    table_name: str,
    record_id: Optional[str] = None,
    change_summary: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None
) -> Optional[AuditLog]:
    """
    Record one action in the audit log.

    Must be called after the primary write has been committed; on failure
    the session is rolled back and None is returned.

    Args:
        db: Database session
        user: Acting user (None for system jobs)
        action: What happened
        table_name: Affected table ("bookings", "guests", ...)
        record_id: Affected row
        change_summary: Free-form details, serialised to JSON types
        request: Used for the client IP
    """
    try:
        entry = AuditLog(
            action=action.value,
            table_name=table_name,
            record_id=record_id,
            user_id=user.id if user else None,
            user_email=user.email if user else "system",
            change_summary=_serialize_for_json(change_summary),
            ip_address=get_client_ip(request) if request else None,
        )
        db.add(entry)
        db.commit()
        return entry
    except Exception as e:
        db.rollback()
        logger.warning(f"Audit log write failed for {action.value} {table_name}:{record_id}: {e}")
        return None
