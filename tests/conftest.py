"""Shared test fixtures for oauth2view.

Provides a recording presentation environment, provider settings, an
OAuth2 client, and output/CLI helpers. These fixtures are automatically
discovered by pytest and available to all test modules without explicit
imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional
from unittest.mock import MagicMock

import httpx
import pytest

from oauth2view.environment import PresentationEnvironment, Surface, Window
from oauth2view.models import NavigationPolicy, OAuth2Settings
from oauth2view.oauth2 import OAuth2Client
from oauth2view.output import OutputFormat, OutputManager, reset_output, set_output

REDIRECT_URI = "myapp://callback"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams the
    cached references go stale, so a fresh manager is created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Recording presentation environment
# ---------------------------------------------------------------------------


class FakeSurface(Surface):
    """Surface that visits the loaded URL followed by a scripted chain.

    Each URL is offered to the navigation hook first; a cancelled URL ends
    the chain, just like a web view that stops a redirect.
    """

    def __init__(self, script: Optional[list[str]] = None) -> None:
        super().__init__()
        self.script = list(script or [])
        self.loads: list[str] = []
        self.visited: list[str] = []

    def load(self, url: str) -> None:
        self.loads.append(url)
        for next_url in [url, *self.script]:
            if self.decide(next_url) is NavigationPolicy.CANCEL:
                return
            self.visited.append(next_url)


class FakeEnvironment(PresentationEnvironment):
    """Environment that records every window operation."""

    def __init__(self, supported: bool = True, script: Optional[list[str]] = None) -> None:
        self.supported = supported
        self.script = script
        self.surfaces: list[FakeSurface] = []
        self.windows: list[Window] = []
        self.shown: list[Window] = []
        self.closed: list[Window] = []

    def supports_embedded_presentation(self) -> bool:
        return self.supported

    def create_surface(self) -> FakeSurface:
        surface = FakeSurface(self.script)
        self.surfaces.append(surface)
        return surface

    def create_window(
        self,
        surface: Surface,
        *,
        title: Optional[str],
        width: int,
        height: int,
    ) -> Window:
        window = Window(surface=surface, width=width, height=height, title=title)
        self.windows.append(window)
        return window

    def show_window(self, window: Window, *, center: bool = True) -> None:
        window.visible = True
        window.centered = center
        self.shown.append(window)

    def close_window(self, window: Window) -> None:
        window.visible = False
        window.closed = True
        self.closed.append(window)
        window.surface.notify_closed()


@pytest.fixture
def environment() -> FakeEnvironment:
    return FakeEnvironment()


# ---------------------------------------------------------------------------
# OAuth2 fixtures
# ---------------------------------------------------------------------------


def make_settings(**kwargs: Any) -> OAuth2Settings:
    """Build OAuth2Settings with sensible defaults overridden by kwargs."""
    defaults: dict[str, Any] = {
        "client_id": "my-client-id",
        "authorize_uri": "https://auth.example.com/authorize",
        "token_uri": "https://auth.example.com/token",
        "redirect_uri": REDIRECT_URI,
        "scope": "read write",
    }
    defaults.update(kwargs)
    return OAuth2Settings(**defaults)


def make_token_response(
    access_token: str = "test-access-token",
    expires_in: Optional[int] = 3600,
    refresh_token: Optional[str] = "test-refresh-token",
    token_type: str = "Bearer",
) -> dict[str, object]:
    """Build a token endpoint JSON body."""
    data: dict[str, object] = {"access_token": access_token, "token_type": token_type}
    if expires_in is not None:
        data["expires_in"] = expires_in
    if refresh_token is not None:
        data["refresh_token"] = refresh_token
    return data


def mock_httpx_post(
    token_response: Optional[dict[str, object]] = None,
    status_code: int = 200,
) -> MagicMock:
    """Create a mock httpx.Response for a token endpoint call."""
    if token_response is None:
        token_response = make_token_response()

    mock_response = MagicMock(spec=httpx.Response)
    mock_response.status_code = status_code
    mock_response.json.return_value = token_response
    mock_response.text = str(token_response)

    if status_code >= 400:
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            message=f"HTTP {status_code}",
            request=MagicMock(),
            response=mock_response,
        )
    else:
        mock_response.raise_for_status.return_value = None

    return mock_response


@pytest.fixture
def oauth2() -> OAuth2Client:
    return OAuth2Client(make_settings())


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG_CONFIG_HOME at tmp_path and clear OAUTH2VIEW_* variables."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setattr("oauth2view.config._is_xdg_platform", lambda: True)
    for var in [
        "OAUTH2VIEW_CLIENT_ID",
        "OAUTH2VIEW_CLIENT_SECRET",
        "OAUTH2VIEW_AUTHORIZE_URI",
        "OAUTH2VIEW_TOKEN_URI",
        "OAUTH2VIEW_REDIRECT_URI",
        "OAUTH2VIEW_SCOPE",
    ]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for the test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
