"""
FastAPI authentication dependencies.

The access-control middleware has already decided allow/deny by the time a
route runs; these dependencies only hand the per-request context to the
handler.
"""

from fastapi import Depends, HTTPException, Request

from storefront.context import Identity, RequestContext


def get_request_context(request: Request) -> RequestContext:
    """Return the ``RequestContext`` built by the middleware (anonymous if absent)."""
    context = getattr(request.state, "auth", None)
    if context is None:
        return RequestContext(path=request.url.path)
    return context


def require_identity(
    context: RequestContext = Depends(get_request_context),
) -> Identity:
    """
    Return the authenticated identity snapshot.

    Raises:
        HTTPException 401 if the request is anonymous.
    """
    if context.identity is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return context.identity
