"""Loopback redirect receiver for the system-browser path.

The system browser cannot report its navigation to us, so the redirect URL
has to point at a local HTTP listener (``http://127.0.0.1:<port>/callback``,
:rfc:`8252#section-7.3`). :class:`LoopbackReceiver` runs that listener and
feeds every request URL it receives into a
:class:`~oauth2view.interceptor.RedirectInterceptor` as if it were a
navigation event, so the browser path and the embedded path share one
matching and one-shot implementation.
"""

from __future__ import annotations

import logging
import socket
import time
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional
from urllib.parse import urlsplit

from oauth2view.exceptions import ConfigurationError
from oauth2view.interceptor import RedirectInterceptor
from oauth2view.models import InterceptionState, NavigationPolicy

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120.0
REQUEST_TIMEOUT = 5.0
LOOPBACK_HOSTS = ("127.0.0.1", "localhost", "::1")

_SUCCESS_BODY = "Authorization successful! You can close this window and return to the application."
_FAILURE_BODY = "Authorization failed. You can close this window and return to the application."


class _IPv6HTTPServer(HTTPServer):
    address_family = socket.AF_INET6


class LoopbackReceiver:
    """Serve the loopback redirect URI until the interceptor is done.

    Args:
        interceptor: A configured interceptor without a surface.
        redirect_uri: The registered redirect URI; must be ``http`` on a
            loopback host with an explicit port.
        timeout: Seconds to wait for the matching request.

    Raises:
        ConfigurationError: If *redirect_uri* is not a loopback URI.
    """

    def __init__(
        self,
        interceptor: RedirectInterceptor,
        redirect_uri: str,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        parts = urlsplit(redirect_uri)
        if parts.scheme != "http":
            raise ConfigurationError(
                f"Loopback redirect must use http, got '{parts.scheme}' ({redirect_uri})"
            )
        if parts.hostname not in LOOPBACK_HOSTS:
            raise ConfigurationError(
                f"Loopback redirect must point at {', '.join(LOOPBACK_HOSTS)} ({redirect_uri})"
            )
        try:
            port = parts.port
        except ValueError as exc:
            raise ConfigurationError(f"Invalid port in redirect URI {redirect_uri}") from exc
        if not port:
            raise ConfigurationError(f"Loopback redirect needs an explicit port ({redirect_uri})")

        self.interceptor = interceptor
        self.host = parts.hostname
        self.port = port
        self.timeout = timeout
        self._netloc = parts.netloc
        self._server: Optional[HTTPServer] = None
        self._handler_class: Optional[type[BaseHTTPRequestHandler]] = None

    def open(self) -> None:
        """Bind the listening socket. Called by :meth:`serve` if needed.

        Raises:
            ConfigurationError: If the port cannot be bound.
        """
        if self._server is not None:
            return
        interceptor = self.interceptor
        netloc = self._netloc

        class CallbackHandler(BaseHTTPRequestHandler):
            # Socket timeout for one request; an idle connection must not
            # hold up the deadline check in serve().
            timeout = REQUEST_TIMEOUT

            def do_GET(self) -> None:
                url = f"http://{netloc}{self.path}"
                decision = interceptor.navigate(url)
                if decision is NavigationPolicy.CANCEL and interceptor.intercepted_url == url:
                    body = _SUCCESS_BODY if interceptor.result else _FAILURE_BODY
                    self._respond(200, body)
                else:
                    self._respond(404, "Not found.")

            def _respond(self, status: int, body: str) -> None:
                self.send_response(status)
                self.send_header("Content-Type", "text/html; charset=utf-8")
                self.end_headers()
                self.wfile.write(f"<html><body><h2>{body}</h2></body></html>".encode("utf-8"))

            def log_message(self, format: str, *args: Any) -> None:
                logger.debug("loopback: " + format, *args)

        bind_host = "127.0.0.1" if self.host == "localhost" else self.host
        server_class = _IPv6HTTPServer if bind_host == "::1" else HTTPServer
        try:
            self._server = server_class((bind_host, self.port), CallbackHandler)
        except OSError as exc:
            raise ConfigurationError(f"Cannot listen on {bind_host}:{self.port}: {exc}") from exc
        self._handler_class = CallbackHandler

    def serve(self) -> InterceptionState:
        """Handle requests until interception, or dismiss on timeout.

        The socket is closed when this returns.

        Returns:
            The interceptor's final state.

        Raises:
            ConfigurationError: If the port cannot be bound.
        """
        self.open()
        server = self._server
        assert server is not None
        interceptor = self.interceptor

        deadline = time.monotonic() + self.timeout
        try:
            while interceptor.state is InterceptionState.PENDING:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.info("No redirect received within %.0f seconds", self.timeout)
                    interceptor.dismiss(user_initiated=False)
                    break
                server.timeout = remaining
                assert self._handler_class is not None
                self._handler_class.timeout = min(REQUEST_TIMEOUT, remaining)
                server.handle_request()
        finally:
            server.server_close()
            self._server = None
        return interceptor.state
