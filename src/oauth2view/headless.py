"""Presentation environment without a GUI, backed by ``httpx``.

:class:`HeadlessSurface` "browses" by issuing GET requests with redirects
disabled and walking the ``Location`` chain itself, so every hop passes
through the navigation hook exactly like a web view's navigation delegate.
That is enough for providers that answer the authorize request with an
immediate redirect (an existing session, a pre-approved client, a test
identity provider). A page that needs user interaction ends the load with
the interceptor still pending.

Windows are plain :class:`~oauth2view.environment.Window` records.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urljoin, urlsplit

import httpx

from oauth2view.environment import PresentationEnvironment, Surface, Window
from oauth2view.models import NavigationPolicy

logger = logging.getLogger(__name__)

DEFAULT_MAX_REDIRECTS = 20


class HeadlessSurface(Surface):
    """A surface that follows HTTP redirects one hop at a time.

    Args:
        client: The HTTP client used for every request.
        max_redirects: Hops allowed per :meth:`load` before giving up.
    """

    def __init__(self, client: httpx.Client, max_redirects: int = DEFAULT_MAX_REDIRECTS) -> None:
        super().__init__()
        self._client = client
        self._max_redirects = max_redirects
        self.current_url: Optional[str] = None
        self.last_response: Optional[httpx.Response] = None
        self.history: list[str] = []

    def load(self, url: str) -> None:
        next_url: Optional[str] = url
        hops = 0
        while next_url is not None:
            if hops > self._max_redirects:
                logger.warning("Stopped after %d redirects at %s", self._max_redirects, next_url)
                return
            next_url = self._navigate(next_url)
            hops += 1

    def _navigate(self, url: str) -> Optional[str]:
        """Load one URL; return the redirect target or ``None`` when done."""
        if self.decide(url) is NavigationPolicy.CANCEL:
            return None

        scheme = urlsplit(url).scheme.lower()
        if scheme not in ("http", "https"):
            logger.warning("Cannot load non-HTTP URL %s", url)
            return None

        try:
            response = self._client.get(url, follow_redirects=False)
        except httpx.HTTPError as exc:
            logger.warning("Loading %s failed: %s", url, exc)
            return None

        self.current_url = url
        self.last_response = response
        self.history.append(url)

        if not response.is_redirect:
            logger.debug("Load of %s ended with status %d", url, response.status_code)
            return None
        return urljoin(url, response.headers["location"])


class HeadlessEnvironment(PresentationEnvironment):
    """Environment whose surfaces share one ``httpx.Client``.

    Args:
        client: Optional preconfigured client (cookies, transport, proxies).
            A default client is created when omitted.
        max_redirects: Passed to every :class:`HeadlessSurface`.
    """

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
    ) -> None:
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=30.0)
        self.max_redirects = max_redirects
        self.windows: list[Window] = []

    def supports_embedded_presentation(self) -> bool:
        return True

    def create_surface(self) -> HeadlessSurface:
        return HeadlessSurface(self.client, self.max_redirects)

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
        window.centered = center
        window.visible = True

    def close_window(self, window: Window) -> None:
        if window.closed:
            return
        window.visible = False
        window.closed = True
        window.surface.notify_closed()

    def close(self) -> None:
        """Close the HTTP client if this environment created it."""
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> HeadlessEnvironment:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
