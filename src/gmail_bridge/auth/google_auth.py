"""
Core Google OAuth Logic for Gmail Bridge.

This module wraps the OAuth2 authorization code grant: it builds the consent
URL, exchanges an authorization code for tokens and refreshes an expired
access token. It performs no persistence; AuthSession decides what to store.
"""

import logging
import os
import time
from typing import Any, List, Mapping, Optional

import google.auth.exceptions
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from oauthlib.oauth2.rfc6749.errors import OAuth2Error
from requests.exceptions import RequestException

from .errors import ExchangeError, RefreshError
from .models import ClientRegistration, GrantedToken, datetime_to_expiry

logger = logging.getLogger(__name__)


def _token_from_response(data: Mapping[str, Any]) -> GrantedToken:
    """Convert an oauthlib token response into a GrantedToken."""
    expiry_date: Optional[int] = None
    if data.get("expires_at") is not None:
        expiry_date = int(float(data["expires_at"]) * 1000)
    elif data.get("expires_in") is not None:
        expiry_date = int((time.time() + float(data["expires_in"])) * 1000)

    scope = data.get("scope") or ""
    if isinstance(scope, (list, tuple)):
        scope = " ".join(scope)

    return GrantedToken(
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token") or None,
        scope=scope,
        token_type=data.get("token_type") or "Bearer",
        expiry_date=expiry_date,
    )


class AuthorizationClient:
    """
    OAuth2 authorization code grant against Google's endpoints.

    Every method is a plain blocking call; AuthSession runs the network
    bound ones off the event loop.
    """

    def create_oauth_flow(
        self,
        registration: ClientRegistration,
        scopes: List[str],
        redirect_uri: Optional[str] = None,
        state: Optional[str] = None,
    ) -> Flow:
        """
        Create an OAuth flow for a registration.

        PKCE verifier autogeneration is off so the consent URL depends only on
        its inputs and a code can be exchanged by a fresh flow (headless mode).
        """
        redirect_uri = redirect_uri or registration.redirect_uri
        return Flow.from_client_config(
            registration.to_client_config(redirect_uri),
            scopes=scopes,
            redirect_uri=redirect_uri,
            state=state,
            autogenerate_code_verifier=False,
        )

    def build_consent_url(
        self,
        registration: ClientRegistration,
        scopes: List[str],
        state: Optional[str] = None,
        redirect_uri: Optional[str] = None,
    ) -> str:
        """
        Build the consent URL.

        Always requests offline access and forces the consent prompt, so a
        refresh token is issued even when the account already approved the
        app.
        """
        flow = self.create_oauth_flow(registration, scopes, redirect_uri, state)
        auth_url, _ = flow.authorization_url(access_type="offline", prompt="consent")
        return auth_url

    def exchange_code(
        self,
        registration: ClientRegistration,
        code: str,
        scopes: List[str],
        redirect_uri: Optional[str] = None,
    ) -> GrantedToken:
        """
        Exchange an authorization code for tokens.

        Raises:
            ExchangeError: If the code is empty, expired, already used, was
                issued for another redirect URI, or the endpoint is unreachable.
        """
        if not code:
            raise ExchangeError("Authorization code is empty")

        # Google may grant a superset of the requested scopes
        os.environ.setdefault("OAUTHLIB_RELAX_TOKEN_SCOPE", "1")

        flow = self.create_oauth_flow(registration, scopes, redirect_uri)
        try:
            response = flow.fetch_token(code=code)
        except OAuth2Error as e:
            logger.error(f"Token endpoint rejected authorization code: {e.error}")
            raise ExchangeError(f"Authorization code rejected: {e.description or e.error}") from e
        except RequestException as e:
            logger.error(f"Network error during code exchange: {e}")
            raise ExchangeError(f"Token endpoint unreachable: {e}") from e

        if not response or not response.get("access_token"):
            raise ExchangeError("Token endpoint returned no access token")

        logger.info("Successfully exchanged authorization code for tokens")
        return _token_from_response(response)

    def refresh(self, registration: ClientRegistration, token: GrantedToken) -> GrantedToken:
        """
        Mint a new access token from the refresh token.

        The result's refresh token is whatever the endpoint returned and may
        be None; callers splice in the previous one before persisting.

        Raises:
            RefreshError: If there is no refresh token, it was revoked, or the
                endpoint is unreachable.
        """
        if not token.refresh_token:
            raise RefreshError("Token has no refresh token")

        credentials = Credentials(
            token=token.access_token,
            refresh_token=token.refresh_token,
            token_uri=registration.token_uri,
            client_id=registration.client_id,
            client_secret=registration.client_secret,
        )

        try:
            credentials.refresh(Request())
        except google.auth.exceptions.RefreshError as e:
            logger.warning(f"Token refresh rejected: {e}")
            raise RefreshError(f"Refresh token rejected: {e}") from e
        except google.auth.exceptions.GoogleAuthError as e:
            logger.warning(f"Token refresh failed: {e}")
            raise RefreshError(f"Token endpoint unreachable: {e}") from e

        granted = getattr(credentials, "granted_scopes", None)
        scope = " ".join(granted) if granted else token.scope

        logger.info("Credentials refreshed successfully")
        return GrantedToken(
            access_token=credentials.token,
            refresh_token=credentials.refresh_token or None,
            scope=scope,
            token_type=token.token_type or "Bearer",
            expiry_date=datetime_to_expiry(credentials.expiry),
        )

    @staticmethod
    def is_expired(token: GrantedToken, now: int) -> bool:
        """
        Check whether a token has expired at `now` (epoch milliseconds).

        A token without an expiry is treated as non-expiring.
        """
        if token.expiry_date is None:
            return False
        return token.expiry_date <= now
