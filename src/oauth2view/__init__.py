"""oauth2view -- run OAuth2 authorization-code flows in a browser or embedded view.

The package presents the provider's authorize page either in the system
browser or in an embedded browsing surface, watches the surface's navigation
for the registered redirect URL and hands the intercepted URL to the OAuth2
core exactly once.

Typical usage::

    from oauth2view import OAuth2Client, present_embedded
    from oauth2view.headless import HeadlessEnvironment
    from oauth2view.config import load_settings

    oauth2 = OAuth2Client(load_settings("github.json"))
    present_embedded(oauth2, HeadlessEnvironment())

Modules:
    oauth2: OAuth2 core (authorize URL, redirect handling, token exchange).
    interceptor: One-shot redirect interceptor for embedded surfaces.
    host: Presentation host that owns the window around the interceptor.
    environment: Presentation environment and surface interfaces.
    headless: ``httpx``-backed environment without a GUI.
    loopback: Local HTTP receiver for the system-browser path.
    ui: Caller-facing entry points.
    app: Typer CLI.
"""

__version__ = "0.3.0"

from oauth2view.models import AuthUIConfig, OAuth2Settings, RedirectRule  # noqa: E402
from oauth2view.oauth2 import OAuth2Client  # noqa: E402
from oauth2view.ui import (  # noqa: E402
    authorize_in_browser,
    open_in_external_browser,
    present_embedded,
)

__all__ = [
    "AuthUIConfig",
    "OAuth2Client",
    "OAuth2Settings",
    "RedirectRule",
    "authorize_in_browser",
    "open_in_external_browser",
    "present_embedded",
]
