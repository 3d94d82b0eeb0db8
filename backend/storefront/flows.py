"""
Auth flow controller: register, login and logout.

Login never reveals whether an email is registered: an unknown email and a
wrong password both raise ``InvalidCredentials``, and the unknown-email
branch still pays for one bcrypt verification.
"""

import logging
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Optional

from sqlalchemy.orm import Session

from storefront.db.audit import log_login, log_logout, log_register
from storefront.db.models import ROLE_CUSTOMER, STATUS_ACTIVE, SessionRecord, User
from storefront.directory import create_user, find_by_email
from storefront.errors import AccountInactive, DuplicateEmail, InvalidCredentials, NotFound
from storefront.sessions import create_session, destroy_session, purge_idle_sessions
from storefront.vault import hash_password, verify_password

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_password("storefront-timing-equaliser")


def prime_dummy_hash() -> None:
    """Compute the unknown-email dummy hash up front (called at startup)."""
    _dummy_hash()


def register(
    db: Session,
    first_name: str,
    last_name: str,
    email: str,
    password: str,
) -> User:
    """
    Create a customer account.

    The lookup only spares a bcrypt round for the common duplicate case;
    concurrent registrations are settled by the unique index inside
    ``create_user``, which raises ``DuplicateEmail`` for the loser.
    """
    try:
        find_by_email(db, email)
    except NotFound:
        pass
    else:
        raise DuplicateEmail(email.strip())

    user = create_user(
        db,
        first_name=first_name,
        last_name=last_name,
        email=email,
        password_hash=hash_password(password),
        role=ROLE_CUSTOMER,
        account_status=STATUS_ACTIVE,
        is_email_verified=False,
    )
    log_register(db, user.id)
    logger.info("Registered user %s", user.id)
    return user


def login(
    db: Session,
    email: str,
    password: str,
    now: Optional[datetime] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    purge_idle_after: Optional[timedelta] = None,
) -> SessionRecord:
    """
    Validate credentials and open a session.

    Raises ``InvalidCredentials`` for an unknown email or wrong password and
    ``AccountInactive`` only once the password has been proven correct.

    With ``purge_idle_after`` set, sessions idle for longer than that are
    swept in the same unit of work, so abandoned rows do not pile up.
    """
    try:
        user = find_by_email(db, email)
    except NotFound:
        verify_password(password, _dummy_hash())
        raise InvalidCredentials() from None

    if not verify_password(password, user.password_hash):
        raise InvalidCredentials()

    if user.account_status != STATUS_ACTIVE:
        raise AccountInactive(user.account_status)

    if purge_idle_after is not None:
        removed = purge_idle_sessions(db, purge_idle_after, now=now)
        if removed:
            logger.info("Purged %d idle session(s) on login", removed)

    record = create_session(
        db, user, now=now, ip_address=ip_address, user_agent=user_agent
    )
    log_login(db, user_id=user.id, ip=ip_address)
    logger.info("User %s logged in", user.id)
    return record


def logout(db: Session, session_token: Optional[str]) -> None:
    """Destroy the session. Unknown or already-destroyed tokens are a no-op."""
    if not session_token:
        return
    record = destroy_session(db, session_token)
    if record is not None:
        log_logout(db, user_id=record.user_id)
