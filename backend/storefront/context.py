"""
Per-request authentication context.

The access-control middleware builds one ``RequestContext`` per request and
stores it on ``request.state``; handlers receive it through the
``get_request_context`` / ``require_identity`` dependencies instead of
reaching for global request state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import UUID

from storefront.db.models import ROLE_ADMIN, SessionRecord


@dataclass(frozen=True)
class Identity:
    """Snapshot of the user taken at login. Not refreshed by later edits."""

    user_id: UUID
    first_name: str
    last_name: str
    email: str
    role: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @classmethod
    def from_session(cls, record: SessionRecord) -> "Identity":
        return cls(
            user_id=record.user_id,
            first_name=record.first_name,
            last_name=record.last_name,
            email=record.email,
            role=record.role,
        )

    def as_dict(self) -> dict:
        return {
            "user_id": str(self.user_id),
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "role": self.role,
        }


@dataclass
class RequestContext:
    """Authentication state for one request. ``identity is None`` means anonymous."""

    path: str
    identity: Optional[Identity] = None
    session_token: Optional[str] = field(default=None, repr=False)
    last_activity: Optional[datetime] = None

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None
