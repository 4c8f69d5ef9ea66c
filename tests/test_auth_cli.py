"""Tests for the authorization entry point."""

import json
import logging
from unittest.mock import AsyncMock, patch

from gmail_bridge import auth_cli
from gmail_bridge.auth import AuthorizationFailed, NoCodeReceived


def _prepare(monkeypatch, tmp_path, with_token=False):
    config_dir = tmp_path / "cfg"
    config_dir.mkdir()
    monkeypatch.setenv("GMAIL_BRIDGE_CONFIG_DIR", str(config_dir))
    monkeypatch.delenv("GMAIL_BRIDGE_HEADLESS", raising=False)
    (config_dir / "credentials.json").write_text(
        json.dumps({"installed": {"client_id": "id", "client_secret": "secret"}})
    )
    if with_token:
        (config_dir / "token.json").write_text(json.dumps({"access_token": "a"}))
    return config_dir


class TestAuthCli:
    def test_already_authenticated(self, monkeypatch, tmp_path, capsys):
        _prepare(monkeypatch, tmp_path, with_token=True)

        with patch("gmail_bridge.auth_cli.AuthSession.authorize", new_callable=AsyncMock) as authorize:
            assert auth_cli.main([]) == 0

        authorize.assert_not_called()
        assert "Already authenticated" in capsys.readouterr().out

    def test_headless_flag(self, monkeypatch, tmp_path):
        _prepare(monkeypatch, tmp_path)

        with patch("gmail_bridge.auth_cli.AuthSession.authorize_headless", new_callable=AsyncMock) as headless:
            assert auth_cli.main(["--headless"]) == 0

        headless.assert_awaited_once()

    def test_headless_env(self, monkeypatch, tmp_path):
        _prepare(monkeypatch, tmp_path)
        monkeypatch.setenv("GMAIL_BRIDGE_HEADLESS", "true")

        with patch("gmail_bridge.auth_cli.AuthSession.authorize_headless", new_callable=AsyncMock) as headless:
            assert auth_cli.main([]) == 0

        headless.assert_awaited_once()

    def test_failure_exit_code(self, monkeypatch, tmp_path, capsys):
        _prepare(monkeypatch, tmp_path)
        error = AuthorizationFailed("Interactive authorization failed", cause=NoCodeReceived("no code"))

        with patch(
            "gmail_bridge.auth_cli.AuthSession.authorize_interactive",
            new_callable=AsyncMock,
            side_effect=error,
        ):
            assert auth_cli.main([]) == 1

        assert "Authentication failed" in capsys.readouterr().err

    def test_logs_configuration_summary(self, monkeypatch, tmp_path, caplog):
        config_dir = _prepare(monkeypatch, tmp_path, with_token=True)
        caplog.set_level(logging.DEBUG, logger="gmail_bridge.auth_cli")

        assert auth_cli.main([]) == 0

        assert "OAuth configuration" in caplog.text
        assert str(config_dir) in caplog.text
        assert "secret" not in caplog.text
