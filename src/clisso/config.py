"""Where clisso keeps its files, and how the broker gets its settings.

Client side, every login profile is one JSON document under
``<config dir>/profiles``. The config dir follows XDG on Linux and the
BSDs and is ``~/.clisso`` elsewhere.

Broker side, :func:`load_broker_config` reads an optional JSON file and
lays the ``OIDC_*`` / ``CLISSO_*`` environment on top of it.
"""

from __future__ import annotations

import getpass
import json
import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import ValidationError

from clisso.exceptions import ConfigError
from clisso.models import BrokerConfig, LoginProfile, validation_summary

_APP_NAME = "clisso"

# (XDG variable, default under $HOME, subdirectory of ~/.clisso elsewhere)
_DIR_KINDS: dict[str, tuple[str, str, str]] = {
    "config": ("XDG_CONFIG_HOME", ".config", ""),
    "data": ("XDG_DATA_HOME", ".local/share", "logs"),
}

_BROKER_ENV_VARS: dict[str, str] = {
    "OIDC_BASE_URI": "base_uri",
    "OIDC_REDIRECT_URI": "redirect_uri",
    "OIDC_AUTHORIZATION_URI": "authorization_uri",
    "OIDC_CLIENT_ID": "client_id",
    "OIDC_CLIENT_SECRET": "client_secret",
    "OIDC_SCOPES": "scopes",
    "CLISSO_LOGIN_TIMEOUT": "login_timeout",
    "CLISSO_SUCCESS_REDIRECT_URI": "success_redirect_uri",
    "CLISSO_FAILED_REDIRECT_URI": "failed_redirect_uri",
}


def _is_xdg_platform() -> bool:
    return sys.platform.startswith(("linux", "freebsd", "openbsd", "netbsd"))


def _app_dir(kind: str) -> Path:
    env_var, home_default, fallback_sub = _DIR_KINDS[kind]
    if _is_xdg_platform():
        root = Path(os.environ.get(env_var) or Path.home() / home_default)
        path = root / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
        if fallback_sub:
            path = path / fallback_sub
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """``$XDG_CONFIG_HOME/clisso`` (or ``~/.clisso``). Created on demand."""
    return _app_dir("config")


def get_data_dir() -> Path:
    """Crash logs live here: ``$XDG_DATA_HOME/clisso`` or ``~/.clisso/logs``."""
    return _app_dir("data")


def get_profiles_dir() -> Path:
    path = get_config_dir() / "profiles"
    path.mkdir(exist_ok=True)
    return path


def _atomic_write(path: Path, data: str) -> None:
    """Replace *path* with *data* so readers see either the old or the new file.

    The temp file sits next to *path*; ``os.replace`` is only atomic within
    one filesystem.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


# --- profiles ---


def _profile_path(name: str) -> Path:
    return get_profiles_dir() / f"{name}.json"


def _existing_profile_path(name: str) -> Path:
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found (looked in {path})")
    return path


def list_profiles() -> list[str]:
    return sorted(entry.stem for entry in get_profiles_dir().glob("*.json") if entry.is_file())


def profile_exists(name: str) -> bool:
    return _profile_path(name).is_file()


def load_profile(name: str) -> LoginProfile:
    """Read ``<name>.json`` back into a :class:`~clisso.models.LoginProfile`.

    Raises:
        ConfigError: the file is missing, is not JSON, or does not validate.
    """
    path = _existing_profile_path(name)
    try:
        return LoginProfile.model_validate_json(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise ConfigError(f"Invalid profile '{name}' in {path}: {exc}") from exc


def save_profile(profile: LoginProfile) -> None:
    body = json.dumps(profile.model_dump(mode="json"), indent=2)
    _atomic_write(_profile_path(profile.name), body + "\n")


def delete_profile(name: str) -> None:
    _existing_profile_path(name).unlink()


# --- broker ---


def _read_broker_file(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise ConfigError(f"Broker config file {path} not found")
    try:
        loaded = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Invalid broker config file {path}: {exc}") from exc
    if not isinstance(loaded, dict):
        raise ConfigError(f"Invalid broker config file {path}: expected a JSON object")
    return loaded


def load_broker_config(path: Optional[Path] = None) -> BrokerConfig:
    """Assemble the broker's :class:`~clisso.models.BrokerConfig`.

    Non-empty environment variables win over the file at *path*, which
    wins over model defaults. ``OIDC_SCOPES`` is split on whitespace and
    ``CLISSO_LOGIN_TIMEOUT`` is in seconds.

    Raises:
        ConfigError: the file is unusable or the merged settings do not
            validate (missing endpoint, non-positive timeout, ...).
    """
    settings = _read_broker_file(path) if path is not None else {}

    for env_var, field in _BROKER_ENV_VARS.items():
        raw = os.environ.get(env_var)
        if raw:
            settings[field] = raw.split() if field == "scopes" else raw

    try:
        return BrokerConfig.model_validate(settings)
    except ValidationError as exc:
        raise ConfigError(f"Invalid broker configuration: {validation_summary(exc)}") from exc


# --- credential sources ---


def _from_env(var_name: str) -> str:
    try:
        return os.environ[var_name]
    except KeyError:
        raise ConfigError(f"Credential variable '{var_name}' is not set") from None


def _from_file(file_name: str) -> str:
    path = Path(file_name).expanduser()
    if not path.is_file():
        raise ConfigError(f"Credential file {path} not found")
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc


def _from_prompt() -> str:
    if not sys.stdin.isatty():
        raise ConfigError("Cannot prompt for a client id: stdin is not a TTY")
    return getpass.getpass("Client id: ")


_PREFIXED_SOURCES: dict[str, Callable[[str], str]] = {
    "env": _from_env,
    "file": _from_file,
    "value": lambda literal: literal,
}


def resolve_credential(source: str) -> str:
    """Turn a source descriptor into the credential it names.

    ``env:NAME`` reads an environment variable, ``file:PATH`` a file
    (whitespace stripped), ``value:TEXT`` is taken literally and
    ``prompt`` asks on the terminal.
    """
    if source == "prompt":
        return _from_prompt()
    kind, sep, rest = source.partition(":")
    reader = _PREFIXED_SOURCES.get(kind) if sep else None
    if reader is None:
        raise ConfigError(f"Unknown credential source '{source}'")
    return reader(rest)
