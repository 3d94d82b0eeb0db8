"""Exception taxonomy for the storefront auth core."""

from typing import Optional


class StorefrontError(Exception):
    """Base exception for the storefront auth core"""
    pass


# ---- Expected business outcomes ----

class InvalidCredentials(StorefrontError):
    """Unknown email or wrong password. The two are deliberately not told apart."""

    def __init__(self, message: str = "Invalid email or password."):
        super().__init__(message)


class AccountInactive(StorefrontError):
    """Correct credentials, but the account status is not ``active``."""

    def __init__(self, status: Optional[str] = None):
        self.status = status
        super().__init__("Account is not active.")


class DuplicateEmail(StorefrontError):
    """A user with this email already exists."""

    def __init__(self, email: Optional[str] = None):
        self.email = email
        super().__init__("User already exists with this email.")


class NotFound(StorefrontError):
    """Requested user record does not exist."""

    def __init__(self, message: str = "User not found."):
        super().__init__(message)


class SessionExpired(StorefrontError):
    """Session idled past the inactivity timeout and has been destroyed."""

    def __init__(self, message: str, user_id=None, idle_secs: Optional[float] = None):
        self.user_id = user_id
        self.idle_secs = idle_secs
        super().__init__(message)


# ---- Infrastructure failures ----

class HashingError(StorefrontError):
    """bcrypt could not produce a hash."""
    pass


class StoreUnavailable(StorefrontError):
    """The backing database timed out or refused the connection."""
    pass
