"""
Access policy engine.

Every request is classified exactly once:

    PUBLIC             path is on the allow-list; the session is never read
    PROTECTED_MISSING  no usable session -> plain login redirect
    PROTECTED_EXPIRED  session idled past the timeout -> destroyed, redirect
                       with ``expired=true``
    PROTECTED_VALID    session refreshed (sliding window), identity exposed

The timeout is a sliding window: each allowed protected request restarts
the idle clock.  Public requests never restart it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, Optional
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from storefront.config import Settings
from storefront.context import Identity, RequestContext
from storefront.db.audit import log_session_expired
from storefront.errors import SessionExpired
from storefront.sessions import touch_session

logger = logging.getLogger(__name__)


class AccessState(str, Enum):
    PUBLIC = "public"
    PROTECTED_VALID = "protected_valid"
    PROTECTED_EXPIRED = "protected_expired"
    PROTECTED_MISSING = "protected_missing"


@dataclass(frozen=True)
class AccessDecision:
    state: AccessState
    context: RequestContext
    redirect_url: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.state in (AccessState.PUBLIC, AccessState.PROTECTED_VALID)

    @property
    def expired(self) -> bool:
        return self.state is AccessState.PROTECTED_EXPIRED


def _normalise(path: str) -> str:
    return path.rstrip("/") or "/"


class AccessPolicy:
    """Classifies request paths and applies the inactivity timeout."""

    def __init__(
        self,
        public_paths: Iterable[str],
        public_prefixes: Iterable[str],
        timeout: timedelta,
        login_path: str = "/users/login",
    ) -> None:
        self.public_paths = frozenset(_normalise(p) for p in public_paths)
        self.public_prefixes = tuple(public_prefixes)
        self.timeout = timeout
        self.login_path = login_path

    @classmethod
    def from_settings(cls, settings: Settings) -> "AccessPolicy":
        return cls(
            public_paths=settings.PUBLIC_PATHS,
            public_prefixes=settings.PUBLIC_PREFIXES,
            timeout=settings.session_timeout,
            login_path=settings.LOGIN_PATH,
        )

    def is_public(self, path: str) -> bool:
        return _normalise(path) in self.public_paths or path.startswith(self.public_prefixes)

    def login_url(self, expired: bool = False) -> str:
        if expired:
            return f"{self.login_path}?{urlencode({'expired': 'true'})}"
        return self.login_path

    def evaluate(
        self,
        db: Session,
        path: str,
        session_token: Optional[str],
        now: Optional[datetime] = None,
    ) -> AccessDecision:
        """
        Decide allow/deny for one request.

        *session_token* is the already-verified token from the cookie, or
        ``None``.  The caller commits *db* afterwards; on ``PROTECTED_EXPIRED``
        the session row has been deleted in that same transaction.
        """
        context = RequestContext(path=path)

        if self.is_public(path):
            return AccessDecision(AccessState.PUBLIC, context)

        if not session_token:
            return AccessDecision(
                AccessState.PROTECTED_MISSING, context, redirect_url=self.login_url()
            )

        try:
            record = touch_session(db, session_token, self.timeout, now=now)
        except SessionExpired as exc:
            logger.info("Session expired after %.0fs idle", exc.idle_secs or 0)
            log_session_expired(db, exc.user_id, exc.idle_secs or 0.0)
            return AccessDecision(
                AccessState.PROTECTED_EXPIRED,
                context,
                redirect_url=self.login_url(expired=True),
            )

        if record is None:
            return AccessDecision(
                AccessState.PROTECTED_MISSING, context, redirect_url=self.login_url()
            )

        context.identity = Identity.from_session(record)
        context.session_token = session_token
        context.last_activity = record.last_activity
        return AccessDecision(AccessState.PROTECTED_VALID, context)
