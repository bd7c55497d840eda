"""Presentation environment and embeddable surface interfaces.

The host never reaches for a UI toolkit directly. Everything it needs --
whether embedding is possible at all, creating a browsing surface, creating,
showing and closing a window -- comes from a :class:`PresentationEnvironment`
passed in by the caller. :mod:`oauth2view.headless` provides an
implementation without a GUI; tests use a recording fake.

A :class:`Surface` reports two kinds of events upward:

* every navigation attempt, through :attr:`Surface.navigation_hook`, which
  answers :attr:`~oauth2view.models.NavigationPolicy.ALLOW` or
  :attr:`~oauth2view.models.NavigationPolicy.CANCEL`;
* its own closing, through :attr:`Surface.close_hook`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from oauth2view.models import NavigationPolicy

NavigationHook = Callable[[str], NavigationPolicy]
CloseHook = Callable[[], None]


class Surface(ABC):
    """An in-process browsing view that can load URLs.

    Implementations must call :meth:`decide` before every navigation,
    including the initial load and each redirect hop, and must not load a
    URL the hook cancelled.
    """

    def __init__(self) -> None:
        self.navigation_hook: Optional[NavigationHook] = None
        self.close_hook: Optional[CloseHook] = None

    @abstractmethod
    def load(self, url: str) -> None:
        """Start loading *url*."""
        ...

    def decide(self, url: str) -> NavigationPolicy:
        """Ask the navigation hook whether *url* may be loaded."""
        if self.navigation_hook is None:
            return NavigationPolicy.ALLOW
        return self.navigation_hook(url)

    def notify_closed(self) -> None:
        """Tell the close hook that the surface went away."""
        if self.close_hook is not None:
            self.close_hook()


@dataclass
class Window:
    """A window created by a :class:`PresentationEnvironment` around a surface."""

    surface: Surface
    width: int
    height: int
    title: Optional[str] = None
    visible: bool = False
    centered: bool = False
    closed: bool = False


class PresentationEnvironment(ABC):
    """Capability object the presentation host uses to display surfaces."""

    @abstractmethod
    def supports_embedded_presentation(self) -> bool:
        """Return True if surfaces can be embedded in this environment."""
        ...

    @abstractmethod
    def create_surface(self) -> Surface:
        """Create a new, empty browsing surface."""
        ...

    @abstractmethod
    def create_window(
        self,
        surface: Surface,
        *,
        title: Optional[str],
        width: int,
        height: int,
    ) -> Window:
        """Create a hidden window whose content is *surface*."""
        ...

    @abstractmethod
    def show_window(self, window: Window, *, center: bool = True) -> None:
        """Display *window*, centering it on screen by default."""
        ...

    @abstractmethod
    def close_window(self, window: Window) -> None:
        """Close *window*.

        Implementations must call ``window.surface.notify_closed()`` so the
        surface's owner learns about the closing whether it was requested
        by code or by the user.
        """
        ...
