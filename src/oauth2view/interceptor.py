"""One-shot redirect interceptor for embedded browsing surfaces.

:class:`RedirectInterceptor` sits between a :class:`~oauth2view.environment.Surface`
and the OAuth2 core. It sees every navigation attempt of the surface and, on
the first one whose URL starts with the redirect rule, vetoes the navigation
and reports the URL exactly once. If the surface is closed before that, it
reports a dismissal instead. Both outcomes are terminal.

The one-shot guarantee comes from a plain state check at the top of
:meth:`RedirectInterceptor.navigate`; the state is switched before any
callback runs, so a callback that triggers further navigation (or a surface
that delivers a burst of redirect events) can never produce a second report.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from oauth2view.environment import Surface
from oauth2view.exceptions import ConfigurationError
from oauth2view.models import InterceptionState, NavigationPolicy, RedirectRule

logger = logging.getLogger(__name__)

InterceptHandler = Callable[[str], bool]
"""Receives the matched URL; returns whether handling it succeeded."""

DismissHandler = Callable[[bool], None]
"""Receives ``True`` when the user closed the surface."""


class RedirectInterceptor:
    """Watch a surface's navigation for the redirect URL.

    Args:
        surface: The surface to drive. May be ``None`` when navigation events
            come from elsewhere (e.g. :class:`~oauth2view.loopback.LoopbackReceiver`),
            in which case :meth:`start` is unavailable.

    Example::

        interceptor = RedirectInterceptor(surface)
        interceptor.configure("myapp://callback", on_intercept, on_dismiss)
        interceptor.start(authorize_url)
    """

    def __init__(self, surface: Optional[Surface] = None) -> None:
        self.surface = surface
        self._rule: Optional[RedirectRule] = None
        self._on_intercept: Optional[InterceptHandler] = None
        self._on_dismiss: Optional[DismissHandler] = None
        self._state = InterceptionState.PENDING
        self.intercepted_url: Optional[str] = None
        self.result: Optional[bool] = None

    @property
    def state(self) -> InterceptionState:
        return self._state

    @property
    def rule(self) -> Optional[RedirectRule]:
        return self._rule

    def configure(
        self,
        redirect_rule: RedirectRule | str,
        on_intercept: InterceptHandler,
        on_dismiss: DismissHandler,
    ) -> None:
        """Set the redirect rule and callbacks. May only be called once.

        Raises:
            ConfigurationError: If already configured or the rule is invalid.
        """
        if self._rule is not None:
            raise ConfigurationError("Interceptor is already configured")
        self._rule = RedirectRule.parse(redirect_rule)
        self._on_intercept = on_intercept
        self._on_dismiss = on_dismiss
        if self.surface is not None:
            self.surface.navigation_hook = self.navigate
            self.surface.close_hook = self.dismiss

    def start(self, url: str) -> None:
        """Load *url* into the surface. Calling it again simply reloads.

        Raises:
            ConfigurationError: If :meth:`configure` has not been called or
                there is no surface.
        """
        if self._rule is None:
            raise ConfigurationError("Interceptor must be configured before start()")
        if self.surface is None:
            raise ConfigurationError("Interceptor has no surface to load into")
        logger.debug("Loading %s", url)
        self.surface.load(url)

    def navigate(self, url: str) -> NavigationPolicy:
        """Navigation hook: decide whether the surface may load *url*."""
        if self._state.is_terminal:
            return NavigationPolicy.CANCEL
        if self._rule is None or not self._rule.matches(url):
            return NavigationPolicy.ALLOW

        self._state = InterceptionState.INTERCEPTED
        self.intercepted_url = str(url)
        logger.debug("Intercepted redirect to %s", self._rule.url)
        assert self._on_intercept is not None
        self.result = self._on_intercept(self.intercepted_url)
        if not self.result:
            logger.info("Intercepted redirect could not be handled")
        return NavigationPolicy.CANCEL

    def dismiss(self, user_initiated: bool = True) -> None:
        """Dismiss hook: the surface went away while still waiting."""
        if self._state.is_terminal:
            return
        self._state = InterceptionState.DISMISSED
        logger.debug("Surface dismissed before redirect (user_initiated=%s)", user_initiated)
        if self._on_dismiss is not None:
            self._on_dismiss(user_initiated)
