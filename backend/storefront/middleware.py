"""
Access-control middleware.

Raw ASGI rather than ``BaseHTTPMiddleware`` so the request body stream is
left untouched and client disconnects don't surface as ``CancelledError``.

Store work runs in the threadpool.  A worker thread is never abandoned on
cancellation, so a session refresh or expiry always commits or rolls back
as a whole even if the client goes away mid-request.
"""

import logging
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from storefront.auth_utils import (
    clear_session_cookie,
    cookie_is_secure,
    create_jwt,
    read_session_token,
    session_cookie_header,
)
from storefront.config import Settings, get_settings
from storefront.context import RequestContext
from storefront.db.connection import get_db
from storefront.errors import StoreUnavailable
from storefront.policy import AccessDecision, AccessPolicy

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Something went wrong. Please try again."
STORE_FAILURE = "Service temporarily unavailable. Please try again."


def wants_html(request: Request) -> bool:
    """Browser-style caller (rendered views, redirects) rather than an API client."""
    return "text/html" in request.headers.get("accept", "")


def failure_response(request: Request, status_code: int, message: str) -> Response:
    if wants_html(request):
        return PlainTextResponse(message, status_code=status_code)
    return JSONResponse({"detail": message}, status_code=status_code)


class AccessControlMiddleware:
    """Gate every HTTP request through ``AccessPolicy`` before any route runs."""

    def __init__(
        self,
        app: ASGIApp,
        settings: Optional[Settings] = None,
        policy: Optional[AccessPolicy] = None,
    ) -> None:
        self.app = app
        self._settings = settings
        self._policy = policy

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def policy(self) -> AccessPolicy:
        if self._policy is None:
            self._policy = AccessPolicy.from_settings(self.settings)
        return self._policy

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        path = scope.get("path") or "/"
        state = scope.setdefault("state", {})

        if self.policy.is_public(path):
            state["auth"] = RequestContext(path=path)
            await self._call_app(request, scope, receive, send)
            return

        token = read_session_token(request, self.settings)
        try:
            decision = await run_in_threadpool(self._evaluate, path, token)
        except StoreUnavailable:
            logger.exception("Session store unavailable while checking %s", path)
            await failure_response(request, 503, STORE_FAILURE)(scope, receive, send)
            return
        except Exception:
            logger.exception("Access check failed for %s", path)
            await failure_response(request, 500, GENERIC_FAILURE)(scope, receive, send)
            return

        if not decision.allowed:
            await self._deny(request, decision)(scope, receive, send)
            return

        state["auth"] = decision.context
        await self._call_app(
            request, scope, receive, self._refreshing_send(request, send, decision.context)
        )

    def _evaluate(self, path: str, token: Optional[str]) -> AccessDecision:
        with get_db() as db:
            return self.policy.evaluate(db, path, token)

    def _deny(self, request: Request, decision: AccessDecision) -> Response:
        if wants_html(request):
            response: Response = RedirectResponse(decision.redirect_url, status_code=302)
        else:
            detail = "Session expired" if decision.expired else "Not authenticated"
            response = JSONResponse(
                {
                    "detail": detail,
                    "expired": decision.expired,
                    "login_url": decision.redirect_url,
                },
                status_code=401,
            )
        if self.settings.SESSION_COOKIE_NAME in request.cookies:
            clear_session_cookie(response, self.settings, cookie_is_secure(request, self.settings))
        return response

    def _refreshing_send(
        self, request: Request, send: Send, context: RequestContext
    ) -> Send:
        """
        Re-issue the cookie with a freshly signed JWT, so both its Max-Age and
        the token's ``exp`` slide with the server-side window.
        """
        prefix = f"{self.settings.SESSION_COOKIE_NAME}="
        token = create_jwt(
            context.session_token, str(context.identity.user_id), self.settings
        )
        header = session_cookie_header(
            token, self.settings, cookie_is_secure(request, self.settings)
        )

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                # Handlers such as logout set or clear the cookie themselves.
                if not any(v.startswith(prefix) for v in headers.getlist("set-cookie")):
                    headers.append("set-cookie", header)
            await send(message)

        return send_wrapper

    async def _call_app(
        self, request: Request, scope: Scope, receive: Receive, send: Send
    ) -> None:
        started = False

        async def tracking_send(message: Message) -> None:
            nonlocal started
            if message["type"] == "http.response.start":
                started = True
            await send(message)

        try:
            await self.app(scope, receive, tracking_send)
        except Exception:
            logger.exception("Unhandled error processing %s", request.url.path)
            if started:
                raise
            await failure_response(request, 500, GENERIC_FAILURE)(scope, receive, send)
