"""
OAuth2 Authentication Package for Gmail Bridge.

This package turns a one-time authorization grant into a durable,
auto-refreshing token:
- Registration and token persistence with atomic token writes
- Consent URL, code exchange and token refresh against Google
- Loopback callback listener for interactive authorization
- Session orchestration with headless fallback
"""

from .scopes import SCOPES, get_scopes
from .oauth_config import OAuthConfig
from .models import AuthorizedSession, ClientRegistration, GrantedToken, RegistrationKind
from .credential_store import CredentialStore, LocalDirectoryCredentialStore
from .google_auth import AuthorizationClient
from .oauth_callback_server import CallbackListener, ListenerState
from .session import AuthSession
from .errors import (
    AuthorizationFailed,
    AuthorizationInProgress,
    ExchangeError,
    GmailBridgeAuthError,
    ListenerBindError,
    ListenerCancelled,
    MissingRegistration,
    NoCodeReceived,
    NotConfigured,
    RefreshError,
    TokenPersistError,
)

__all__ = [
    # Scopes
    "SCOPES",
    "get_scopes",
    # Config
    "OAuthConfig",
    # Models
    "AuthorizedSession",
    "ClientRegistration",
    "GrantedToken",
    "RegistrationKind",
    # Components
    "CredentialStore",
    "LocalDirectoryCredentialStore",
    "AuthorizationClient",
    "CallbackListener",
    "ListenerState",
    "AuthSession",
    # Errors
    "AuthorizationFailed",
    "AuthorizationInProgress",
    "ExchangeError",
    "GmailBridgeAuthError",
    "ListenerBindError",
    "ListenerCancelled",
    "MissingRegistration",
    "NoCodeReceived",
    "NotConfigured",
    "RefreshError",
    "TokenPersistError",
]
