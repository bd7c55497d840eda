"""Caller-facing entry points for running an authorization.

* :func:`open_in_external_browser` -- open the authorize URL in the system
  browser and return immediately. Capturing the redirect is left to the
  caller.
* :func:`authorize_in_browser` -- the same, plus a
  :class:`~oauth2view.loopback.LoopbackReceiver` that captures the redirect
  and completes the code exchange.
* :func:`present_embedded` -- show the authorize page in an embedded surface
  from a :class:`~oauth2view.environment.PresentationEnvironment` and
  intercept the redirect.

None of these raise :class:`~oauth2view.exceptions.OAuth2ViewError`; a
failure is logged through :meth:`OAuth2Client.log_verbose` and reported as
``False``.
"""

from __future__ import annotations

import threading
import webbrowser
from typing import Callable, Optional

from oauth2view.environment import PresentationEnvironment
from oauth2view.exceptions import ConfigurationError, OAuth2ViewError
from oauth2view.host import PresentationHost, build_interceptor
from oauth2view.loopback import DEFAULT_TIMEOUT, LoopbackReceiver
from oauth2view.models import AuthUIConfig, InterceptionState
from oauth2view.oauth2 import OAuth2Client


def open_in_external_browser(oauth2: OAuth2Client, params: Optional[dict[str, str]] = None) -> bool:
    """Open the authorize URL in the system browser.

    Args:
        oauth2: The OAuth2 core that builds the URL.
        params: Additional parameters to pass to the authorize URL.

    Returns:
        Whether the browser could be launched.
    """
    try:
        url = oauth2.authorize_url(params)
    except OAuth2ViewError as err:
        oauth2.log_verbose(f"Cannot open authorize URL: {err}")
        return False
    return webbrowser.open(url)


def authorize_in_browser(
    oauth2: OAuth2Client,
    params: Optional[dict[str, str]] = None,
    timeout: float = DEFAULT_TIMEOUT,
    url_handler: Optional[Callable[[str], None]] = None,
) -> bool:
    """Run the whole flow through the system browser and a loopback receiver.

    ``oauth2.redirect`` must be a loopback URI with an explicit port, e.g.
    ``http://127.0.0.1:8765/callback``.

    Args:
        oauth2: The OAuth2 core.
        params: Additional parameters to pass to the authorize URL.
        timeout: Seconds to wait for the redirect.
        url_handler: Called with the authorize URL instead of launching
            the system browser (e.g. to print it for a remote session).

    Returns:
        ``True`` if the redirect arrived and the code exchange succeeded.
        A setup failure (no loopback redirect, port in use, ...) is also
        reported to the outcome observers through :meth:`OAuth2Client.did_fail`.
    """
    try:
        redirect = oauth2.redirect
        if not redirect:
            raise ConfigurationError("`redirect_uri` is not set, cannot authorize")
        interceptor = build_interceptor(oauth2)
        receiver = LoopbackReceiver(interceptor, redirect, timeout=timeout)
        url = oauth2.authorize_url(params)
        receiver.open()
    except OAuth2ViewError as err:
        oauth2.log_verbose(f"Cannot authorize in browser: {err}")
        oauth2.did_fail(err)
        return False

    if url_handler is not None:
        url_handler(url)
    else:
        # Open browser in a separate thread to avoid blocking
        browser_thread = threading.Thread(target=webbrowser.open, args=(url,), daemon=True)
        browser_thread.start()

    state = receiver.serve()
    return state is InterceptionState.INTERCEPTED and bool(interceptor.result)


def present_embedded(
    oauth2: OAuth2Client,
    environment: PresentationEnvironment,
    config: Optional[AuthUIConfig] = None,
    params: Optional[dict[str, str]] = None,
    auto_dismiss: bool = True,
) -> bool:
    """Present the authorize page in an embedded surface.

    Args:
        oauth2: The OAuth2 core.
        environment: Provides the surface and, unless
            ``config.presentation_function`` is set, the window.
        config: Title and optional custom presentation function.
        params: Additional parameters to pass to the authorize URL.
        auto_dismiss: Close the window after a successful authorization.

    Returns:
        Whether the authorize screen could be shown.
    """
    host = PresentationHost(environment, oauth2)
    return host.present(
        config or AuthUIConfig(),
        lambda: oauth2.authorize_url(params),
        auto_dismiss=auto_dismiss,
    )
