"""Settings loading, credential resolution, and CLI parameter parsing.

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.oauth2view/`` on macOS and Windows. See :func:`get_config_dir`.
* **Settings** -- :func:`load_settings` reads an
  :class:`~oauth2view.models.OAuth2Settings` JSON file and layers
  ``OAUTH2VIEW_*`` environment variables over it.
* **Credential resolution** -- :func:`resolve_credential` reads secrets from
  env vars, files, or an interactive prompt.
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from oauth2view.exceptions import ConfigurationError, InvalidUsageError
from oauth2view.models import OAuth2Settings

_APP_NAME = "oauth2view"
_SETTINGS_FILENAME = "settings.json"

ENV_OVERRIDES = {
    "OAUTH2VIEW_CLIENT_ID": "client_id",
    "OAUTH2VIEW_CLIENT_SECRET": "client_secret",
    "OAUTH2VIEW_AUTHORIZE_URI": "authorize_uri",
    "OAUTH2VIEW_TOKEN_URI": "token_uri",
    "OAUTH2VIEW_REDIRECT_URI": "redirect_uri",
    "OAUTH2VIEW_SCOPE": "scope",
}
"""Environment variables that override the matching settings field."""


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/oauth2view/`` (default
    ``~/.config/oauth2view/``). On macOS/Windows: ``~/.oauth2view/``.
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_CONFIG_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".config"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


def default_settings_path() -> Path:
    """Path of the settings file used when none is given explicitly."""
    return get_config_dir() / _SETTINGS_FILENAME


# --- Settings ---


def load_settings(path: Optional[Path | str] = None) -> OAuth2Settings:
    """Load provider settings from a JSON file and the environment.

    Args:
        path: Settings file. Defaults to :func:`default_settings_path`.

    Returns:
        The validated :class:`~oauth2view.models.OAuth2Settings`.

    Raises:
        ConfigurationError: If the file is missing, is not valid JSON, is not
            a JSON object, or fails validation.
    """
    settings_path = Path(path).expanduser() if path is not None else default_settings_path()
    if not settings_path.is_file():
        raise ConfigurationError(f"Settings file not found: {settings_path}")
    try:
        data = json.loads(settings_path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        raise ConfigurationError(f"Cannot read settings at {settings_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings at {settings_path} must be a JSON object")

    for env_var, field in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            data[field] = value

    try:
        return OAuth2Settings.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid settings at {settings_path}: {exc}") from exc


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - ``"prompt"`` -- prompts user interactively (requires a TTY)

    Raises:
        ConfigurationError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigurationError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigurationError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigurationError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigurationError(
                "Cannot prompt for credentials: stdin is not a TTY (source: prompt)"
            )
        return getpass.getpass("Enter credential: ")

    raise ConfigurationError(f"Unknown credential source format: {source}")


# --- CLI helpers ---


def parse_params(items: Optional[list[str]]) -> dict[str, str]:
    """Turn repeated ``key=value`` CLI arguments into a dict.

    Raises:
        InvalidUsageError: If an item has no ``=`` or an empty key.
    """
    params: dict[str, str] = {}
    for item in items or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise InvalidUsageError(f"Expected key=value, got '{item}'")
        params[key.strip()] = value
    return params
