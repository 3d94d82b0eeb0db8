"""
Storefront Audit Logging Utilities

Convenience helpers that create ``AuditLog`` rows for authentication and
user-management events.  Nothing secret (passwords, hashes, tokens) is
ever written here.
"""

import uuid
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from storefront.db.models import AuditLog


# ── Core helper ──────────────────────────────────────────────────────────────

def log_action(
    db_session: Session,
    user_id: Optional[uuid.UUID],
    action_type: str,
    action_details: Optional[Dict[str, Any]] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> AuditLog:
    """
    Create an ``AuditLog`` entry and add it to the given *db_session*.

    The caller is responsible for committing the session.
    """
    entry = AuditLog(
        user_id=user_id,
        action_type=action_type,
        action_details=action_details,
        resource_type=resource_type,
        resource_id=resource_id,
        ip_address=ip_address,
    )
    db_session.add(entry)
    return entry


# ── Convenience wrappers ─────────────────────────────────────────────────────

def log_register(db: Session, user_id: uuid.UUID) -> AuditLog:
    return log_action(db, user_id=user_id, action_type="user.register",
                      resource_type="user", resource_id=str(user_id))


def log_login(db: Session, user_id: uuid.UUID, ip: Optional[str] = None) -> AuditLog:
    return log_action(db, user_id=user_id, action_type="user.login",
                      resource_type="user", resource_id=str(user_id), ip_address=ip)


def log_logout(db: Session, user_id: uuid.UUID) -> AuditLog:
    return log_action(db, user_id=user_id, action_type="user.logout",
                      resource_type="user", resource_id=str(user_id))


def log_session_expired(db: Session, user_id: uuid.UUID, idle_secs: float) -> AuditLog:
    return log_action(db, user_id=user_id, action_type="session.expired",
                      action_details={"idle_secs": round(idle_secs, 1)},
                      resource_type="user", resource_id=str(user_id))


def log_user_updated(
    db: Session, actor_id: Optional[uuid.UUID], user_id: uuid.UUID,
    fields: Optional[list] = None,
) -> AuditLog:
    return log_action(db, user_id=actor_id, action_type="user.updated",
                      action_details={"fields": fields or []},
                      resource_type="user", resource_id=str(user_id))


def log_user_deleted(
    db: Session, actor_id: Optional[uuid.UUID], user_id: uuid.UUID,
) -> AuditLog:
    return log_action(db, user_id=actor_id, action_type="user.deleted",
                      resource_type="user", resource_id=str(user_id))
