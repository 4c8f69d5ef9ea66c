"""
OAuth Configuration Management for Gmail Bridge.

This module centralizes OAuth-related configuration to eliminate hardcoded values.
Configuration is resolved once from the environment and passed explicitly into
the store, the listener and the session.
"""

import os
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from .scopes import get_scopes

DEFAULT_CONFIG_DIRNAME = ".gmail-bridge"
CREDENTIALS_FILENAME = "credentials.json"
TOKEN_FILENAME = "token.json"

DEFAULT_CALLBACK_HOST = "127.0.0.1"
DEFAULT_CALLBACK_PORT = 3000
DEFAULT_CALLBACK_PATH = "/oauth2callback"
DEFAULT_CALLBACK_TIMEOUT = 300.0
DEFAULT_REDIRECT_URI = f"http://localhost:{DEFAULT_CALLBACK_PORT}{DEFAULT_CALLBACK_PATH}"

LOOPBACK_HOSTS = ("localhost", "127.0.0.1", "::1")

_TRUTHY = ("1", "true", "yes", "on")


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in _TRUTHY


def resolve_config_dir() -> str:
    """
    Resolve the storage directory without touching the filesystem.

    GMAIL_BRIDGE_CONFIG_DIR wins; otherwise ~/.gmail-bridge.
    """
    env_dir = os.getenv("GMAIL_BRIDGE_CONFIG_DIR")
    if env_dir:
        return os.path.expanduser(env_dir)
    return os.path.join(os.path.expanduser("~"), DEFAULT_CONFIG_DIRNAME)


class OAuthConfig:
    """
    Centralized OAuth configuration management.

    Provides a single source of truth for all OAuth-related configuration values.
    """

    def __init__(
        self,
        config_dir: Optional[str] = None,
        scopes: Optional[List[str]] = None,
        callback_host: Optional[str] = None,
        callback_port: Optional[int] = None,
        callback_path: str = DEFAULT_CALLBACK_PATH,
        callback_timeout: Optional[float] = None,
        headless: Optional[bool] = None,
    ) -> None:
        # Storage location
        self.config_dir = config_dir or resolve_config_dir()
        self.credentials_path = os.path.join(self.config_dir, CREDENTIALS_FILENAME)
        self.token_path = os.path.join(self.config_dir, TOKEN_FILENAME)

        self.scopes = list(scopes) if scopes else get_scopes()

        # Local callback listener
        self.callback_host = callback_host or os.getenv(
            "GMAIL_BRIDGE_CALLBACK_HOST", DEFAULT_CALLBACK_HOST
        )
        if callback_port is None:
            callback_port = int(
                os.getenv("GMAIL_BRIDGE_CALLBACK_PORT", str(DEFAULT_CALLBACK_PORT))
            )
        self.callback_port = callback_port
        self.callback_path = callback_path

        if callback_timeout is None:
            callback_timeout = float(
                os.getenv("GMAIL_BRIDGE_CALLBACK_TIMEOUT", str(DEFAULT_CALLBACK_TIMEOUT))
            )
        self.callback_timeout = callback_timeout

        # Headless mode skips the browser and the loopback listener
        self.headless = _env_flag("GMAIL_BRIDGE_HEADLESS") if headless is None else headless

    def resolve_callback(self, redirect_uri: str) -> Tuple[str, int, str, str]:
        """
        Work out where the local listener must bind for a redirect URI.

        A loopback redirect URI with an explicit port decides the port and
        path. A portless loopback URI (the default for desktop clients) is
        rewritten onto the configured callback port and path.

        Returns:
            Tuple of (host, port, path, effective_redirect_uri)
        """
        parsed = urlparse(redirect_uri)
        hostname = parsed.hostname or "localhost"

        if hostname in LOOPBACK_HOSTS and parsed.port:
            path = parsed.path or "/"
            return self.callback_host, parsed.port, path, redirect_uri

        effective = f"http://localhost:{self.callback_port}{self.callback_path}"
        return self.callback_host, self.callback_port, self.callback_path, effective

    def get_environment_summary(self) -> Dict[str, Any]:
        """Get a summary of the current OAuth configuration (excluding secrets)."""
        return {
            "config_dir": self.config_dir,
            "credentials_path": self.credentials_path,
            "token_path": self.token_path,
            "scopes": list(self.scopes),
            "callback": f"{self.callback_host}:{self.callback_port}{self.callback_path}",
            "callback_timeout": self.callback_timeout,
            "headless": self.headless,
        }
