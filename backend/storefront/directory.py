"""
User directory: CRUD over user records keyed by id or email.

Every function takes an open SQLAlchemy ``Session``; the caller owns the
transaction.  ``find_by_*`` return the ORM ``User`` (including its hash) for
use inside the auth core only.  Anything handed outward goes through
``UserProfile``, which has no password field.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.db.connection import store_errors
from storefront.db.models import (
    ROLE_CUSTOMER,
    STATUS_ACTIVE,
    User,
)
from storefront.errors import DuplicateEmail, NotFound
from storefront.schemas import UserProfile

logger = logging.getLogger(__name__)

# Fields update_user() will write.  password_hash is intentionally absent.
UPDATABLE_FIELDS = frozenset(
    {"first_name", "last_name", "email", "role", "account_status", "is_email_verified"}
)


def _coerce_id(user_id: Union[str, uuid.UUID]) -> uuid.UUID:
    if isinstance(user_id, uuid.UUID):
        return user_id
    try:
        return uuid.UUID(str(user_id))
    except ValueError:
        raise NotFound() from None


def find_by_email(db: Session, email: str) -> User:
    """Return the user with exactly this (stripped) email. Raises ``NotFound``."""
    with store_errors("find_by_email"):
        user = db.execute(
            select(User).where(User.email == email.strip())
        ).scalar_one_or_none()
    if user is None:
        raise NotFound()
    return user


def find_by_id(db: Session, user_id: Union[str, uuid.UUID]) -> User:
    """Return the user with this id. Raises ``NotFound`` (also for malformed ids)."""
    uid = _coerce_id(user_id)
    with store_errors("find_by_id"):
        user = db.get(User, uid)
    if user is None:
        raise NotFound()
    return user


def create_user(
    db: Session,
    *,
    first_name: str,
    last_name: str,
    email: str,
    password_hash: str,
    role: str = ROLE_CUSTOMER,
    account_status: str = STATUS_ACTIVE,
    is_email_verified: bool = False,
) -> User:
    """
    Insert a new user and flush so ``user.id`` is populated.

    The unique index on ``email`` is the uniqueness guarantee; a violation
    rolls the session back and raises ``DuplicateEmail``.
    """
    now = datetime.now(timezone.utc)
    user = User(
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        email=email.strip(),
        password_hash=password_hash,
        role=role,
        account_status=account_status,
        is_email_verified=is_email_verified,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    try:
        with store_errors("create_user"):
            db.flush()
    except IntegrityError:
        db.rollback()
        raise DuplicateEmail(email.strip()) from None
    return user


def update_user(db: Session, user_id: Union[str, uuid.UUID], **fields) -> User:
    """
    Apply a partial update and stamp ``updated_at``.

    Raises ``NotFound`` if the user is absent, ``DuplicateEmail`` if the new
    email belongs to someone else, ``ValueError`` for unknown fields.
    """
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

    user = find_by_id(db, user_id)
    for name, value in fields.items():
        if value is None:
            continue
        if isinstance(value, str):
            value = value.strip()
        setattr(user, name, value)
    user.updated_at = datetime.now(timezone.utc)

    try:
        with store_errors("update_user"):
            db.flush()
    except IntegrityError:
        db.rollback()
        raise DuplicateEmail(fields.get("email")) from None
    return user


def delete_user(db: Session, user_id: Union[str, uuid.UUID]) -> None:
    """Delete a user. Raises ``NotFound`` if absent, including on a second delete."""
    user = find_by_id(db, user_id)
    with store_errors("delete_user"):
        db.delete(user)
        db.flush()


def list_users(db: Session, exclude_secrets: bool = True) -> List[UserProfile]:
    """
    Return every user as a ``UserProfile``.

    The password hash is never included; *exclude_secrets* is accepted for
    call-site readability only.
    """
    with store_errors("list_users"):
        users = db.execute(select(User).order_by(User.created_at)).scalars().all()
    return [UserProfile.model_validate(u) for u in users]
