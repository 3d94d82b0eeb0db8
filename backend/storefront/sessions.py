"""
Session store: server-side session rows keyed by an opaque token.

The inactivity check is a compare-and-swap on ``last_activity``: refresh and
expiry writes only apply if the row still holds the value that was read, and
a lost race is retried against the fresh row.  Two concurrent requests on one
session therefore can never reach contradicting verdicts.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from storefront.db.connection import store_errors
from storefront.db.models import SessionRecord, User
from storefront.errors import SessionExpired, StoreUnavailable

logger = logging.getLogger(__name__)

CAS_ATTEMPTS = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored here is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _matches_observed(observed: Optional[datetime]):
    if observed is None:
        return SessionRecord.last_activity.is_(None)
    return SessionRecord.last_activity == observed


def idle_since(record: SessionRecord) -> datetime:
    """Start of the current idle period; ``created_at`` when never refreshed."""
    return _as_utc(record.last_activity or record.created_at)


def create_session(
    db: Session,
    user: User,
    now: Optional[datetime] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> SessionRecord:
    """
    Create a session row holding a snapshot of *user*.

    Generates a cryptographically random 64-character hex token.
    """
    now = now or _utcnow()
    record = SessionRecord(
        session_token=secrets.token_hex(32),
        user_id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        role=user.role,
        created_at=now,
        last_activity=now,
        ip_address=ip_address,
        user_agent=user_agent[:512] if user_agent else None,
    )
    db.add(record)
    with store_errors("create_session"):
        db.flush()
    return record


def get_session(db: Session, session_token: str) -> Optional[SessionRecord]:
    with store_errors("get_session"):
        return db.execute(
            select(SessionRecord)
            .where(SessionRecord.session_token == session_token)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()


def touch_session(
    db: Session,
    session_token: str,
    timeout: timedelta,
    now: Optional[datetime] = None,
) -> Optional[SessionRecord]:
    """
    Evaluate and refresh a session in one atomic step.

    Returns the refreshed record, or ``None`` if no such session exists.
    Raises ``SessionExpired`` after deleting a session idle for longer than
    *timeout*.  An idle time exactly equal to *timeout* is still valid.
    """
    now = now or _utcnow()

    for _ in range(CAS_ATTEMPTS):
        record = get_session(db, session_token)
        if record is None:
            return None

        observed = record.last_activity
        idle = now - idle_since(record)
        guard = (SessionRecord.session_token == session_token, _matches_observed(observed))

        if idle > timeout:
            with store_errors("expire_session"):
                result = db.execute(
                    delete(SessionRecord)
                    .where(*guard)
                    .execution_options(synchronize_session=False)
                )
            if result.rowcount == 1:
                db.expunge(record)
                raise SessionExpired(
                    f"Session idle for {idle.total_seconds():.0f}s",
                    user_id=record.user_id,
                    idle_secs=idle.total_seconds(),
                )
            continue

        with store_errors("refresh_session"):
            result = db.execute(
                update(SessionRecord)
                .where(*guard)
                .values(last_activity=now)
                .execution_options(synchronize_session=False)
            )
        if result.rowcount == 1:
            set_committed_value(record, "last_activity", now)
            return record

    logger.warning("Gave up refreshing a session after %d contended attempts", CAS_ATTEMPTS)
    raise StoreUnavailable("Session refresh contended")


def destroy_session(db: Session, session_token: str) -> Optional[SessionRecord]:
    """
    Delete a session. Returns the removed record, or ``None`` if it was
    already gone; destroying twice is not an error.
    """
    record = get_session(db, session_token)
    if record is None:
        return None
    with store_errors("destroy_session"):
        db.delete(record)
        db.flush()
    return record


def purge_idle_sessions(
    db: Session,
    timeout: timedelta,
    now: Optional[datetime] = None,
) -> int:
    """Delete every session idle longer than *timeout*. Returns the count removed."""
    cutoff = (now or _utcnow()) - timeout
    last_seen = func.coalesce(SessionRecord.last_activity, SessionRecord.created_at)
    with store_errors("purge_idle_sessions"):
        result = db.execute(
            delete(SessionRecord)
            .where(last_seen < cutoff)
            .execution_options(synchronize_session=False)
        )
    return result.rowcount
