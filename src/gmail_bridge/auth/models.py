"""
Data model for Gmail Bridge authentication.

ClientRegistration and GrantedToken mirror the two persisted JSON documents.
AuthorizedSession is the in-memory handle handed to API callers.
"""

import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, MutableMapping, Optional

from google.auth.transport.requests import AuthorizedSession as RequestsAuthorizedSession
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from .oauth_config import DEFAULT_REDIRECT_URI

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def expiry_to_datetime(expiry_date: Optional[int]) -> Optional[datetime]:
    """Convert epoch milliseconds to the naive UTC datetime google-auth expects."""
    if expiry_date is None:
        return None
    aware = datetime.fromtimestamp(expiry_date / 1000, tz=timezone.utc)
    return aware.replace(tzinfo=None)


def datetime_to_expiry(expiry: Optional[datetime]) -> Optional[int]:
    """Convert a google-auth expiry (naive UTC) to epoch milliseconds."""
    if expiry is None:
        return None
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return int(expiry.timestamp() * 1000)


class RegistrationKind(str, Enum):
    """Which shape the registration document used."""

    INSTALLED = "installed"
    WEB = "web"


@dataclass(frozen=True)
class ClientRegistration:
    """OAuth client identity as issued by the identity provider."""

    client_id: str
    client_secret: str
    redirect_uri: str
    kind: RegistrationKind = RegistrationKind.INSTALLED
    auth_uri: str = GOOGLE_AUTH_URI
    token_uri: str = GOOGLE_TOKEN_URI

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "ClientRegistration":
        """
        Resolve the registration document into a tagged registration.

        The "installed" shape is checked first; if both are present the
        "web" shape is ignored.

        Raises:
            ValueError: If neither shape is present or required fields are missing.
        """
        if not isinstance(document, Mapping):
            raise ValueError("Registration document must be a JSON object")

        for kind in (RegistrationKind.INSTALLED, RegistrationKind.WEB):
            section = document.get(kind.value)
            if section:
                break
        else:
            raise ValueError("Invalid credentials format. Expected 'installed' or 'web' key.")

        client_id = section.get("client_id")
        client_secret = section.get("client_secret")
        if not client_id or not client_secret:
            raise ValueError(f"'{kind.value}' section is missing client_id or client_secret")

        redirect_uris = section.get("redirect_uris") or []
        return cls(
            client_id=client_id,
            client_secret=client_secret,
            redirect_uri=redirect_uris[0] if redirect_uris else DEFAULT_REDIRECT_URI,
            kind=kind,
            auth_uri=section.get("auth_uri") or GOOGLE_AUTH_URI,
            token_uri=section.get("token_uri") or GOOGLE_TOKEN_URI,
        )

    def to_client_config(self, redirect_uri: Optional[str] = None) -> Dict[str, Any]:
        """Client config in the layout google_auth_oauthlib expects."""
        return {
            self.kind.value: {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": self.auth_uri,
                "token_uri": self.token_uri,
                "redirect_uris": [redirect_uri or self.redirect_uri],
            }
        }


@dataclass(frozen=True)
class GrantedToken:
    """Access/refresh token pair with an absolute expiry in epoch milliseconds."""

    access_token: str
    refresh_token: Optional[str] = None
    scope: str = ""
    token_type: str = "Bearer"
    expiry_date: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GrantedToken":
        """
        Parse a token document. Unknown fields are ignored.

        Raises:
            ValueError: If the document has no access token.
        """
        if not isinstance(data, Mapping):
            raise ValueError("Token document must be a JSON object")
        access_token = data.get("access_token")
        if not access_token:
            raise ValueError("Token document has no access_token")

        scope = data.get("scope") or ""
        if isinstance(scope, (list, tuple)):
            scope = " ".join(scope)

        expiry_date = data.get("expiry_date")
        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or None,
            scope=scope,
            token_type=data.get("token_type") or "Bearer",
            expiry_date=int(expiry_date) if expiry_date is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "access_token": self.access_token,
            "scope": self.scope,
            "token_type": self.token_type,
            "expiry_date": self.expiry_date,
        }
        if self.refresh_token:
            data["refresh_token"] = self.refresh_token
        return data

    @property
    def scopes(self) -> List[str]:
        return self.scope.split() if self.scope else []

    def with_refresh_token_from(self, previous: Optional["GrantedToken"]) -> "GrantedToken":
        """Keep the previous refresh token when a refresh did not issue a new one."""
        if self.refresh_token or previous is None or not previous.refresh_token:
            return self
        return replace(self, refresh_token=previous.refresh_token)


class AuthorizedSession:
    """
    Authenticated handle combining a registration with the current token.

    Downstream API code signs requests with it and checks its expiry before
    each batch of calls.
    """

    def __init__(self, registration: ClientRegistration, token: GrantedToken) -> None:
        self.registration = registration
        self._token = token
        self._credentials = self._build_credentials(token)

    def _build_credentials(self, token: GrantedToken) -> Credentials:
        return Credentials(
            token=token.access_token,
            refresh_token=token.refresh_token,
            token_uri=self.registration.token_uri,
            client_id=self.registration.client_id,
            client_secret=self.registration.client_secret,
            scopes=token.scopes or None,
            expiry=expiry_to_datetime(token.expiry_date),
        )

    @property
    def token(self) -> GrantedToken:
        return self._token

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    @property
    def expiry_date(self) -> Optional[int]:
        return self._token.expiry_date

    @property
    def expired(self) -> bool:
        """True when the token has a past expiry. Non-expiring tokens never expire."""
        return self.expiry_date is not None and self.expiry_date <= now_ms()

    def adopt(self, token: GrantedToken) -> None:
        """Switch to a freshly granted token, keeping the old refresh token if needed."""
        self._token = token.with_refresh_token_from(self._token)
        self._credentials = self._build_credentials(self._token)

    def apply(self, headers: MutableMapping[str, str]) -> MutableMapping[str, str]:
        """Attach the bearer token to an outbound request's headers."""
        self._credentials.apply(headers)
        return headers

    def build_service(self, service_name: str = "gmail", version: str = "v1") -> Any:
        """Build a Google API service bound to the current credentials."""
        return build(service_name, version, credentials=self._credentials, cache_discovery=False)

    def requests_session(self) -> RequestsAuthorizedSession:
        """A requests session that signs every call with the current credentials."""
        return RequestsAuthorizedSession(self._credentials)
