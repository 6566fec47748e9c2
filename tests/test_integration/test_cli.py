"""Integration tests for the clisso command line.

Drives the real Typer application with ``CliRunner``. Network calls are
cut at the plugin boundary (``LoginPlugin.login``) or at the broker's
``serve`` function; profiles are written to an isolated config dir.
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from clisso import __version__
from clisso.app import app
from clisso.config import get_profiles_dir, load_profile, profile_exists, save_profile
from clisso.exceptions import LoginError
from clisso.models import LoginProfile, LoginResult
from clisso.plugins.device_grant import DeviceGrantPlugin
from clisso.plugins.relay import RelayLoginPlugin

RELAY_URL = "https://broker.example.com/cli-login"
TOKENS = LoginResult(access_token="AT", refresh_token="RT", expiration=600)


@pytest.fixture
def runner(
    cli_runner: CliRunner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
) -> CliRunner:
    # Plain prints only; Rich would wrap long error lines at 80 columns
    monkeypatch.setenv("NO_COLOR", "1")
    return cli_runner


# ---------------------------------------------------------------------------
# Root options
# ---------------------------------------------------------------------------


class TestRoot:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"clisso {__version__}" in result.output

    def test_help_lists_commands(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("login", "serve", "profile"):
            assert command in result.output


# ---------------------------------------------------------------------------
# profile
# ---------------------------------------------------------------------------


class TestProfileCommands:
    def test_add_relay_profile(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["profile", "add", "work", "--relay-url", RELAY_URL])

        assert result.exit_code == 0, result.output
        assert 'Profile "work" saved.' in result.output
        profile = load_profile("work")
        assert profile.grant == "relay"
        assert profile.relay_login_url == RELAY_URL
        assert profile.open_browser is True

    def test_add_device_grant_profile(self, runner: CliRunner) -> None:
        result = runner.invoke(
            app,
            [
                "profile", "add", "kc",
                "--grant", "device_grant",
                "--device-authorization-url", "https://idp.example.com/device",
                "--token-url", "https://idp.example.com/token",
                "--client-id-source", "value:cli",
                "--scope", "openid",
                "--scope", "offline_access",
                "--no-browser",
            ],
        )

        assert result.exit_code == 0, result.output
        profile = load_profile("kc")
        assert profile.scopes == ["openid", "offline_access"]
        assert profile.open_browser is False

    def test_add_incomplete_profile_is_rejected(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["profile", "add", "kc", "--grant", "device_grant"])

        assert result.exit_code == 2
        assert "token_url" in result.output
        assert not profile_exists("kc")

    def test_add_unknown_grant(self, runner: CliRunner) -> None:
        result = runner.invoke(
            app, ["profile", "add", "x", "--grant", "password", "--relay-url", RELAY_URL]
        )
        assert result.exit_code == 2
        assert "Unknown login grant 'password'" in result.output

    def test_add_existing_requires_force(self, runner: CliRunner) -> None:
        save_profile(LoginProfile(name="work", relay_login_url=RELAY_URL))
        other_url = "https://other.example.com/cli-login"

        result = runner.invoke(app, ["profile", "add", "work", "--relay-url", other_url])
        assert result.exit_code == 2
        assert "already exists" in result.output

        result = runner.invoke(
            app, ["profile", "add", "work", "--relay-url", other_url, "--force"]
        )
        assert result.exit_code == 0
        assert load_profile("work").relay_login_url == other_url

    def test_list_empty(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["profile", "list"])
        assert result.exit_code == 0
        assert "No profiles configured." in result.output

    def test_list_json(self, runner: CliRunner) -> None:
        save_profile(LoginProfile(name="work", relay_login_url=RELAY_URL))
        save_profile(
            LoginProfile(
                name="kc",
                grant="device_grant",
                device_authorization_url="https://idp.example.com/device",
            )
        )

        result = runner.invoke(app, ["--json", "profile", "list"])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == [
            {"Profile": "kc", "Grant": "device_grant", "Endpoint": "https://idp.example.com/device"},
            {"Profile": "work", "Grant": "relay", "Endpoint": RELAY_URL},
        ]

    def test_list_marks_broken_profiles(self, runner: CliRunner) -> None:
        (get_profiles_dir() / "broken.json").write_text("{oops", encoding="utf-8")

        result = runner.invoke(app, ["--plain", "profile", "list"])

        assert result.exit_code == 0
        assert "broken\terror\t-" in result.output

    def test_show(self, runner: CliRunner) -> None:
        save_profile(LoginProfile(name="work", relay_login_url=RELAY_URL))

        result = runner.invoke(app, ["--json", "profile", "show", "work"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["name"] == "work"
        assert data["relay_login_url"] == RELAY_URL

    def test_show_missing(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["profile", "show", "ghost"])
        assert result.exit_code == 2
        assert "not found" in result.output

    def test_remove_with_confirmation(self, runner: CliRunner) -> None:
        save_profile(LoginProfile(name="work", relay_login_url=RELAY_URL))

        result = runner.invoke(app, ["profile", "remove", "work"], input="y\n")

        assert result.exit_code == 0
        assert 'Profile "work" removed.' in result.output
        assert not profile_exists("work")

    def test_remove_declined(self, runner: CliRunner) -> None:
        save_profile(LoginProfile(name="work", relay_login_url=RELAY_URL))

        result = runner.invoke(app, ["profile", "remove", "work"], input="n\n")

        assert result.exit_code == 0
        assert profile_exists("work")

    def test_remove_missing(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["profile", "remove", "ghost", "--force"])
        assert result.exit_code == 2


# ---------------------------------------------------------------------------
# login
# ---------------------------------------------------------------------------


class TestLoginCommand:
    def test_relay_login_from_options(self, runner: CliRunner) -> None:
        with patch.object(RelayLoginPlugin, "login", return_value=TOKENS) as mock_login:
            result = runner.invoke(app, ["--json", "--quiet", "login", "--relay-url", RELAY_URL])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {
            "access_token": "AT",
            "refresh_token": "RT",
            "expiration": 600,
        }
        profile = mock_login.call_args[0][0]
        assert profile.grant == "relay"
        assert profile.relay_login_url == RELAY_URL

    def test_plain_output(self, runner: CliRunner) -> None:
        with patch.object(RelayLoginPlugin, "login", return_value=TOKENS):
            result = runner.invoke(app, ["--plain", "login", "--relay-url", RELAY_URL])

        assert result.exit_code == 0
        assert "Login successful." in result.output
        assert "access_token\tAT" in result.output

    def test_device_grant_inferred(self, runner: CliRunner) -> None:
        with patch.object(DeviceGrantPlugin, "login", return_value=TOKENS) as mock_login:
            result = runner.invoke(
                app,
                [
                    "login",
                    "--device-authorization-url", "https://idp.example.com/device",
                    "--token-url", "https://idp.example.com/token",
                    "--client-id-source", "value:cli",
                ],
            )

        assert result.exit_code == 0, result.output
        assert mock_login.call_args[0][0].grant == "device_grant"

    def test_profile_with_overrides(self, runner: CliRunner) -> None:
        save_profile(LoginProfile(name="work", relay_login_url=RELAY_URL))

        with patch.object(RelayLoginPlugin, "login", return_value=TOKENS) as mock_login:
            result = runner.invoke(app, ["login", "--profile", "work", "--no-browser"])

        assert result.exit_code == 0, result.output
        profile = mock_login.call_args[0][0]
        assert profile.name == "work"
        assert profile.relay_login_url == RELAY_URL
        assert profile.open_browser is False

    def test_nothing_to_log_in_to(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["login"])
        assert result.exit_code == 2
        assert "Nothing to log in to" in result.output

    def test_incomplete_options(self, runner: CliRunner) -> None:
        result = runner.invoke(
            app, ["login", "--device-authorization-url", "https://idp.example.com/device"]
        )
        assert result.exit_code == 2
        assert "not usable" in result.output

    def test_missing_profile(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["login", "--profile", "ghost"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_login_failure_exit_code(self, runner: CliRunner) -> None:
        with patch.object(
            RelayLoginPlugin,
            "login",
            side_effect=LoginError("Login failed: OIDC login failed, reason: user's login session timed out"),
        ):
            result = runner.invoke(app, ["login", "--relay-url", RELAY_URL])

        assert result.exit_code == 3
        assert "timed out" in result.output


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


class TestServeCommand:
    @pytest.fixture(autouse=True)
    def _no_logging_setup(self):
        with patch("clisso.commands.serve._configure_logging"):
            yield

    @pytest.fixture
    def broker_env(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OIDC_BASE_URI", "https://idp.example.com/oidc")
        monkeypatch.setenv("OIDC_REDIRECT_URI", "https://broker.example.com/cli-logged-in")
        monkeypatch.setenv("OIDC_AUTHORIZATION_URI", "https://idp.example.com/oidc/auth")
        monkeypatch.setenv("OIDC_CLIENT_ID", "cli")
        monkeypatch.setenv("OIDC_CLIENT_SECRET", "s3cret")

    def test_serve_with_env_config(
        self, runner: CliRunner, broker_env: None, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("HTTP_PORT", "9123")

        with patch("clisso.broker.serve") as mock_serve:
            result = runner.invoke(app, ["serve"])

        assert result.exit_code == 0, result.output
        config = mock_serve.call_args[0][0]
        assert config.client_id == "cli"
        assert mock_serve.call_args[1] == {
            "host": "0.0.0.0",
            "port": 9123,
            "login_path": "/cli-login",
            "redirect_path": None,
        }

    def test_serve_options(self, runner: CliRunner, broker_env: None) -> None:
        with patch("clisso.broker.serve") as mock_serve:
            result = runner.invoke(
                app,
                ["serve", "--host", "127.0.0.1", "--port", "8080", "--redirect-path", "/cb"],
            )

        assert result.exit_code == 0, result.output
        kwargs = mock_serve.call_args[1]
        assert kwargs["host"] == "127.0.0.1"
        assert kwargs["port"] == 8080
        assert kwargs["redirect_path"] == "/cb"

    def test_serve_invalid_config(self, runner: CliRunner) -> None:
        with patch("clisso.broker.serve") as mock_serve:
            result = runner.invoke(app, ["serve"])

        assert result.exit_code == 1
        assert "Invalid broker configuration" in result.output
        mock_serve.assert_not_called()

    def test_serve_port_in_use(self, runner: CliRunner, broker_env: None) -> None:
        with patch("clisso.broker.serve", side_effect=OSError("Address already in use")):
            result = runner.invoke(app, ["serve"])

        assert result.exit_code == 1
        assert "Address already in use" in result.output
