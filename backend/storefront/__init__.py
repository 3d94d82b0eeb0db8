"""
Storefront session authentication layer.

Public API:
    AccessPolicy            -- classify paths, enforce the inactivity timeout
    AccessControlMiddleware -- ASGI gate in front of every route
    register / login / logout -- auth flows
"""

from .flows import login, logout, register  # noqa: F401
from .middleware import AccessControlMiddleware  # noqa: F401
from .policy import AccessPolicy, AccessState  # noqa: F401
