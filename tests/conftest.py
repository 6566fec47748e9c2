"""Fixtures shared by every clisso test module."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from clisso.models import BrokerConfig
from clisso.output import OutputFormat, OutputManager, reset_output, set_output

_BROKER_ENV_VARS = (
    "OIDC_BASE_URI",
    "OIDC_REDIRECT_URI",
    "OIDC_AUTHORIZATION_URI",
    "OIDC_CLIENT_ID",
    "OIDC_CLIENT_SECRET",
    "OIDC_SCOPES",
    "CLISSO_LOGIN_TIMEOUT",
    "CLISSO_SUCCESS_REDIRECT_URI",
    "CLISSO_FAILED_REDIRECT_URI",
    "HTTP_PORT",
)


@pytest.fixture(autouse=True)
def _fresh_output_manager() -> None:
    # A manager built inside CliRunner holds streams that are closed afterwards
    yield
    reset_output()


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the XDG dirs into *tmp_path* and clear the broker environment."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for name in _BROKER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def broker_config() -> BrokerConfig:
    return BrokerConfig(
        base_uri="https://idp.example.com/oidc",
        redirect_uri="https://broker.example.com/cli-logged-in",
        authorization_uri="https://idp.example.com/oidc/auth?response_type=code&client_id=cli",
        client_id="cli",
        client_secret="s3cret",
        login_timeout=5.0,
    )


def _installed(manager: OutputManager):
    set_output(manager)
    yield manager
    reset_output()


@pytest.fixture
def quiet_output() -> OutputManager:
    yield from _installed(OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True))


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()
