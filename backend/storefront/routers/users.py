"""
User management endpoints: list, edit, delete.

These keep their explicit "User not found." responses; only login and
register hide whether an account exists.
"""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from storefront import directory
from storefront.auth import require_identity
from storefront.context import Identity
from storefront.db.audit import log_user_deleted, log_user_updated
from storefront.db.connection import get_db_session, store_errors
from storefront.errors import DuplicateEmail, NotFound
from storefront.schemas import MessageResponse, UserProfile, UserUpdateRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/users", tags=["users"])


@router.get("/list", response_model=List[UserProfile])
def list_users(
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db_session),
) -> List[UserProfile]:
    return directory.list_users(db, exclude_secrets=True)


@router.get("/edit/{user_id}", response_model=UserProfile)
def get_user(
    user_id: str,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db_session),
) -> UserProfile:
    try:
        user = directory.find_by_id(db, user_id)
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return UserProfile.model_validate(user)


@router.post("/edit/{user_id}", response_model=UserProfile)
def update_user(
    user_id: str,
    body: UserUpdateRequest,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db_session),
) -> UserProfile:
    """Update names and/or email. Live sessions keep their login-time snapshot."""
    changes = body.model_dump(exclude_none=True)
    try:
        user = directory.update_user(db, user_id, **changes)
        log_user_updated(db, identity.user_id, user.id, fields=sorted(changes))
        with store_errors("commit"):
            db.commit()
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except DuplicateEmail as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return UserProfile.model_validate(user)


@router.post("/delete/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: str,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db_session),
) -> MessageResponse:
    try:
        target = directory.find_by_id(db, user_id)
        target_id = target.id
        directory.delete_user(db, target_id)
        log_user_deleted(db, identity.user_id, target_id)
        with store_errors("commit"):
            db.commit()
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    logger.info("User %s deleted by %s", target_id, identity.user_id)
    return MessageResponse(message="User deleted")
