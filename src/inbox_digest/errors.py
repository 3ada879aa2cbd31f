from __future__ import annotations

from typing import Optional


class InboxDigestError(Exception):
    """Base class for errors raised by inbox_digest."""


class ConfigError(InboxDigestError):
    pass


class AuthError(InboxDigestError):
    """Credentials are missing or were rejected; the user has to sign in again."""


class UnauthorizedError(AuthError):
    def __init__(self, message: str = "Authentication failed - token may be expired") -> None:
        super().__init__(message)
        self.status = 401


class ProviderError(InboxDigestError):
    """The message provider failed; not retried here."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class ForbiddenError(ProviderError):
    def __init__(self, message: str = "Insufficient permissions or quota exceeded") -> None:
        super().__init__(message, status=403)


class NotFoundError(ProviderError):
    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, status=404)


class RateLimitedError(ProviderError):
    def __init__(self, message: str = "Rate limit exceeded") -> None:
        super().__init__(message, status=429)
