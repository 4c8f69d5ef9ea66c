"""Custom exceptions for Gmail Bridge authentication.

Every failure of the token lifecycle surfaces as one of these types. All of
them inherit from GmailBridgeAuthError.
"""
from typing import Optional


class GmailBridgeAuthError(Exception):
    """Base exception for all gmail-bridge authentication errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotConfigured(GmailBridgeAuthError):
    """Raised when the registration or token document is absent."""
    pass


class MissingRegistration(NotConfigured):
    """Raised when authorization is attempted without a registration document."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(
            f"Credentials not found. Please place your credentials.json in {path}"
        )


class ExchangeError(GmailBridgeAuthError):
    """Raised when the token endpoint rejects an authorization code."""
    pass


class RefreshError(GmailBridgeAuthError):
    """Raised when a refresh token is revoked or the endpoint is unreachable."""
    pass


class TokenPersistError(GmailBridgeAuthError):
    """Raised when a granted token cannot be written to disk."""
    pass


class ListenerError(GmailBridgeAuthError):
    """Base class for local callback listener failures."""
    pass


class ListenerBindError(ListenerError):
    """Raised when the callback port cannot be bound."""

    def __init__(self, host: str, port: int, reason: str = "") -> None:
        self.host = host
        self.port = port
        message = f"Port {port} on {host} is already in use"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class NoCodeReceived(ListenerError):
    """Raised when the callback arrives without an authorization code."""
    pass


class ListenerCancelled(ListenerError):
    """Raised when the callback wait times out or is aborted."""
    pass


class AuthorizationInProgress(GmailBridgeAuthError):
    """Raised when a second authorization starts while one is running."""
    pass


class AuthorizationFailed(GmailBridgeAuthError):
    """Raised when any stage of an authorization flow fails.

    Attributes:
        cause: The underlying error (bind error, no code, exchange error...).
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        self.cause = cause
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
