"""Shared fixtures for Gmail Bridge tests."""

import json
import os
import socket

import pytest

from gmail_bridge.auth import ClientRegistration, GrantedToken, OAuthConfig

CLIENT_ID = "test-client-id.apps.googleusercontent.com"
CLIENT_SECRET = "test-client-secret"


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def unused_port():
    """A loopback port that was free a moment ago."""
    return free_port()


@pytest.fixture
def config(tmp_path):
    """Configuration rooted in a temporary directory."""
    return OAuthConfig(
        config_dir=str(tmp_path / "gmail-bridge"),
        callback_host="127.0.0.1",
        callback_port=free_port(),
        callback_timeout=5,
        headless=False,
    )


@pytest.fixture
def write_registration(config):
    """Write a registration document into the config directory."""

    def _write(document=None):
        if document is None:
            document = {
                "installed": {
                    "client_id": CLIENT_ID,
                    "client_secret": CLIENT_SECRET,
                    "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                    "token_uri": "https://oauth2.googleapis.com/token",
                    "redirect_uris": ["http://localhost"],
                }
            }

        os.makedirs(config.config_dir, exist_ok=True)
        with open(config.credentials_path, "w") as f:
            json.dump(document, f)
        return config.credentials_path

    return _write


@pytest.fixture
def write_token(config):
    """Write a token document into the config directory."""

    def _write(**overrides):
        document = {
            "access_token": "stored-access-token",
            "refresh_token": "stored-refresh-token",
            "scope": "https://www.googleapis.com/auth/gmail.readonly",
            "token_type": "Bearer",
            "expiry_date": 4102444800000,
        }
        document.update(overrides)

        os.makedirs(config.config_dir, exist_ok=True)
        with open(config.token_path, "w") as f:
            json.dump(document, f)
        return config.token_path

    return _write


@pytest.fixture
def registration():
    return ClientRegistration(
        client_id=CLIENT_ID,
        client_secret=CLIENT_SECRET,
        redirect_uri="http://localhost:3000/oauth2callback",
    )


@pytest.fixture
def granted_token():
    return GrantedToken(
        access_token="access-1",
        refresh_token="refresh-1",
        scope="https://www.googleapis.com/auth/gmail.readonly",
        token_type="Bearer",
        expiry_date=1_700_000_000_000,
    )
