"""Presentation host -- puts an intercepting surface on screen.

:class:`PresentationHost` checks the preconditions for embedded
authorization, builds the surface and its
:class:`~oauth2view.interceptor.RedirectInterceptor`, and either shows it in
a window from the :class:`~oauth2view.environment.PresentationEnvironment`
or hands it to a caller-supplied presentation function.

With auto-dismiss on, the host watches the OAuth2 outcome rather than the
interception itself: the window closes once the code exchange succeeded, not
when the redirect was merely seen.

State machine::

    IDLE -> PRESENTING -> COMPLETED | DISMISSED | FAILED
    IDLE -> FAILED          (preconditions or URL construction failed)
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from oauth2view.environment import PresentationEnvironment, Surface, Window
from oauth2view.exceptions import (
    AuthorizationError,
    ConfigurationError,
    OAuth2ViewError,
    PlatformUnsupportedError,
    RedirectTimeoutError,
)
from oauth2view.interceptor import RedirectInterceptor
from oauth2view.models import (
    AuthUIConfig,
    HostState,
    InterceptionState,
    RedirectRule,
)
from oauth2view.oauth2 import OAuth2Client

logger = logging.getLogger(__name__)

WEB_VIEW_WINDOW_WIDTH = 600
WEB_VIEW_WINDOW_HEIGHT = 500


def build_interceptor(oauth2: OAuth2Client, surface: Optional[Surface] = None) -> RedirectInterceptor:
    """Create an interceptor for ``oauth2.redirect`` wired to the OAuth2 core.

    The intercepted URL goes to :meth:`OAuth2Client.handle_redirect_url`;
    failures are logged and reported as ``False``. A user dismissal is
    reported to :meth:`OAuth2Client.did_fail` as a cancellation, any other
    dismissal as a :class:`RedirectTimeoutError`.

    Raises:
        ConfigurationError: If the redirect URL is unset or invalid.
    """
    interceptor = RedirectInterceptor(surface)

    def on_intercept(url: str) -> bool:
        try:
            oauth2.handle_redirect_url(url)
            return True
        except OAuth2ViewError as err:
            oauth2.log_verbose(f"Cannot intercept redirect URL: {err}")
        return False

    def on_dismiss(user_initiated: bool) -> None:
        if user_initiated:
            oauth2.did_fail(None)
        else:
            oauth2.did_fail(RedirectTimeoutError("Timed out waiting for the redirect"))

    interceptor.configure(RedirectRule.parse(oauth2.redirect or ""), on_intercept, on_dismiss)
    return interceptor


class PresentationHost:
    """Owns the window (if any) around one embedded authorization.

    Args:
        environment: Where surfaces and windows come from.
        oauth2: The OAuth2 core the interceptor reports to.
    """

    def __init__(self, environment: PresentationEnvironment, oauth2: OAuth2Client) -> None:
        self.environment = environment
        self.oauth2 = oauth2
        self._state = HostState.IDLE
        self._window: Optional[Window] = None
        self._interceptor: Optional[RedirectInterceptor] = None
        self._auto_dismiss = True

    @property
    def state(self) -> HostState:
        return self._state

    @property
    def window(self) -> Optional[Window]:
        """The window this host currently retains, if it created one."""
        return self._window

    @property
    def interceptor(self) -> Optional[RedirectInterceptor]:
        return self._interceptor

    def present(
        self,
        config: AuthUIConfig,
        start_url_provider: Callable[[], str],
        auto_dismiss: bool = True,
    ) -> bool:
        """Present the authorize page and start watching for the redirect.

        Args:
            config: Title and optional custom presentation function.
            start_url_provider: Computes the authorize URL; may raise
                :class:`~oauth2view.exceptions.OAuth2ViewError`.
            auto_dismiss: Close the host's own window after a successful
                authorization.

        Returns:
            ``True`` if the surface was presented. ``False`` means nothing
            was shown; the reason has been logged.
        """
        if self._state is not HostState.IDLE:
            self.oauth2.log_verbose(f"Presentation host is already {self._state.value}")
            return False

        if not self.environment.supports_embedded_presentation():
            err = PlatformUnsupportedError(
                "Embedded authorization is not supported by this presentation environment"
            )
            return self._fail(err)

        if not self.oauth2.redirect:
            return self._fail(ConfigurationError("`redirect_uri` is not set, cannot authorize"))

        try:
            RedirectRule.parse(self.oauth2.redirect)
            url = start_url_provider()
        except OAuth2ViewError as err:
            self.oauth2.log_verbose(f"Cannot get authorize URL for embedded authorization: {err}")
            self._state = HostState.FAILED
            return False

        surface = self.environment.create_surface()
        self._interceptor = build_interceptor(self.oauth2, surface)
        self._auto_dismiss = auto_dismiss

        if config.presentation_function is not None:
            try:
                config.presentation_function(surface)
            except Exception as err:
                self.oauth2.log_verbose(f"Custom presentation function failed: {err}")
                self._state = HostState.FAILED
                return False
        else:
            window = self.environment.create_window(
                surface,
                title=config.title,
                width=WEB_VIEW_WINDOW_WIDTH,
                height=WEB_VIEW_WINDOW_HEIGHT,
            )
            self._window = window
            self.environment.show_window(window, center=True)

        # Registered before start(): a surface may finish synchronously.
        self.oauth2.add_outcome_observer(self._after_authorize_or_failure)
        self._state = HostState.PRESENTING
        self._interceptor.start(url)
        return True

    def _fail(self, err: OAuth2ViewError) -> bool:
        self.oauth2.log_verbose(str(err))
        self._state = HostState.FAILED
        return False

    def _after_authorize_or_failure(self, succeeded: bool, error: Optional[Exception]) -> None:
        # Other presentations on the same client report through the same
        # observers; only an outcome of this host's own interceptor counts.
        interceptor = self._interceptor
        if interceptor is None or not interceptor.state.is_terminal:
            return
        self.oauth2.remove_outcome_observer(self._after_authorize_or_failure)

        if succeeded:
            self._state = HostState.COMPLETED
        elif interceptor.state is InterceptionState.DISMISSED:
            self._state = HostState.DISMISSED
        else:
            self._state = HostState.FAILED
            if isinstance(error, AuthorizationError):
                logger.info("Embedded authorization failed: %s", error)

        if not self._auto_dismiss:
            return
        window = self._window
        self._window = None
        if succeeded and window is not None and not window.closed:
            self.environment.close_window(window)
