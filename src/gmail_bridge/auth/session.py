"""
Authentication session for Gmail Bridge.

AuthSession is the single entry point callers use to obtain something that
can call the Gmail API right now: it reuses a stored token, refreshes it when
it has expired, or drives a new interactive or headless authorization.
"""

import asyncio
import logging
import os
import sys
import threading
import time
import webbrowser
from contextlib import contextmanager
from typing import Callable, Iterator, Optional
from urllib.parse import parse_qs, urlparse

from .credential_store import CredentialStore, LocalDirectoryCredentialStore
from .errors import (
    AuthorizationFailed,
    AuthorizationInProgress,
    ExchangeError,
    GmailBridgeAuthError,
    MissingRegistration,
    RefreshError,
)
from .google_auth import AuthorizationClient
from .models import AuthorizedSession, ClientRegistration, GrantedToken
from .oauth_callback_server import CallbackListener
from .oauth_config import OAuthConfig

logger = logging.getLogger(__name__)

CodeSource = Callable[[str], str]

# One authorization per process, whichever session or event loop starts it
_authorization_lock = threading.Lock()


@contextmanager
def _authorization_slot() -> Iterator[None]:
    if not _authorization_lock.acquire(blocking=False):
        raise AuthorizationInProgress("An authorization is already in progress")
    try:
        yield
    finally:
        _authorization_lock.release()


def extract_code(value: str) -> str:
    """Accept either a bare authorization code or a pasted redirect URL."""
    value = value.strip()
    if "code=" in value:
        codes = parse_qs(urlparse(value).query).get("code")
        if codes:
            return codes[0]
    return value


def _prompt_for_code(auth_url: str) -> str:
    """Default headless code source: print the URL and read the code from stdin."""
    print("\nAuthorize this app by visiting this URL:\n", file=sys.stderr)
    print(auth_url, file=sys.stderr)
    print(
        "\nAfter approving, paste the authorization code "
        "(or the full URL you were redirected to):",
        file=sys.stderr,
    )
    return input("> ")


class AuthSession:
    """
    Orchestrates the token lifecycle for one process.

    Args:
        config: Explicit OAuth configuration.
        store: Credential storage; defaults to the config directory.
        client: OAuth grant client.
        open_browser: Callable used to open the consent URL.
        listener_factory: Builds the loopback callback listener.
        clock: Returns the current time in epoch seconds.
    """

    def __init__(
        self,
        config: Optional[OAuthConfig] = None,
        store: Optional[CredentialStore] = None,
        client: Optional[AuthorizationClient] = None,
        open_browser: Callable[[str], bool] = webbrowser.open,
        listener_factory: Callable[..., CallbackListener] = CallbackListener,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or OAuthConfig()
        self.store = store or LocalDirectoryCredentialStore(self.config)
        self.client = client or AuthorizationClient()
        self._open_browser = open_browser
        self._listener_factory = listener_factory
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def is_authenticated(self) -> bool:
        """True iff both the registration and the token documents exist."""
        return self.store.registration_exists() and self.store.token_exists()

    async def get_authorized_client(self) -> Optional[AuthorizedSession]:
        """
        Get an authorized session from stored credentials, refreshing if necessary.

        Returns:
            AuthorizedSession, or None if authorization must be run (missing
            documents or a failed refresh).
        """
        registration = self.store.load_registration()
        if registration is None:
            logger.info("No client registration found")
            return None

        token = self.store.load_token()
        if token is None:
            logger.info("No stored token found")
            return None

        if not self.client.is_expired(token, self._now_ms()):
            return AuthorizedSession(registration, token)

        logger.info("Token expired, attempting refresh")
        try:
            refreshed = await asyncio.to_thread(self.client.refresh, registration, token)
        except RefreshError as e:
            logger.warning(f"Token refresh failed, re-authorization required: {e}")
            return None

        refreshed = refreshed.with_refresh_token_from(token)
        self.store.save_token(refreshed)

        session = AuthorizedSession(registration, token)
        session.adopt(refreshed)
        return session

    def _require_registration(self) -> ClientRegistration:
        registration = self.store.load_registration()
        if registration is None:
            logger.error(f"Client registration missing at {self.config.credentials_path}")
            raise MissingRegistration(self.config.credentials_path)
        return registration

    async def _complete(
        self, registration: ClientRegistration, code: str, redirect_uri: str
    ) -> AuthorizedSession:
        token: GrantedToken = await asyncio.to_thread(
            self.client.exchange_code, registration, code, self.config.scopes, redirect_uri
        )
        self.store.save_token(token)
        logger.info("Authentication successful! Token saved.")
        return AuthorizedSession(registration, token)

    async def authorize_interactive(self, timeout: Optional[float] = None) -> AuthorizedSession:
        """
        Run the browser-based authorization with a loopback callback listener.

        Raises:
            MissingRegistration: If there is no registration document.
            AuthorizationInProgress: If another authorization is running.
            AuthorizationFailed: If binding, the callback or the exchange fails.
        """
        with _authorization_slot():
            registration = self._require_registration()
            host, port, path, redirect_uri = self.config.resolve_callback(
                registration.redirect_uri
            )
            state = os.urandom(16).hex()
            auth_url = self.client.build_consent_url(
                registration, self.config.scopes, state=state, redirect_uri=redirect_uri
            )

            listener = self._listener_factory(
                host=host, port=port, callback_path=path, expected_state=state
            )
            try:
                await listener.start()

                print("\nAuthorize this app by visiting this URL:\n", file=sys.stderr)
                print(auth_url, file=sys.stderr)
                print("\nWaiting for authorization...\n", file=sys.stderr)
                self._launch_browser(auth_url)

                wait = self.config.callback_timeout if timeout is None else timeout
                code = await listener.await_code(timeout=wait)
                return await self._complete(registration, code, redirect_uri)
            except GmailBridgeAuthError as e:
                raise AuthorizationFailed("Interactive authorization failed", cause=e) from e
            finally:
                await listener.close()

    def _launch_browser(self, auth_url: str) -> None:
        try:
            if not self._open_browser(auth_url):
                logger.warning("Could not open a browser; open the URL manually")
        except Exception as e:
            logger.warning(f"Could not open a browser ({e}); open the URL manually")

    async def authorize_headless(self, code_source: Optional[CodeSource] = None) -> AuthorizedSession:
        """
        Run the authorization without a browser or local listener.

        The operator visits the printed URL elsewhere and supplies the code
        through `code_source`, which receives the consent URL.

        Raises:
            MissingRegistration: If there is no registration document.
            AuthorizationInProgress: If another authorization is running.
            AuthorizationFailed: If no code is supplied or the exchange fails.
        """
        with _authorization_slot():
            registration = self._require_registration()
            _, _, _, redirect_uri = self.config.resolve_callback(registration.redirect_uri)
            auth_url = self.client.build_consent_url(
                registration, self.config.scopes, redirect_uri=redirect_uri
            )

            source = code_source or _prompt_for_code
            try:
                code = extract_code(await asyncio.to_thread(source, auth_url))
                if not code:
                    raise ExchangeError("No authorization code was entered")
                return await self._complete(registration, code, redirect_uri)
            except GmailBridgeAuthError as e:
                raise AuthorizationFailed("Headless authorization failed", cause=e) from e

    async def authorize(self, timeout: Optional[float] = None) -> AuthorizedSession:
        """Run the headless or interactive flow according to the configuration."""
        if self.config.headless:
            return await self.authorize_headless()
        return await self.authorize_interactive(timeout=timeout)
