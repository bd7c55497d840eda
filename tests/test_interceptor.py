"""Tests for oauth2view.interceptor -- one-shot redirect interception."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from conftest import FakeSurface
from oauth2view.exceptions import ConfigurationError
from oauth2view.interceptor import RedirectInterceptor
from oauth2view.models import InterceptionState, NavigationPolicy


def _configured(surface: FakeSurface | None = None, result: bool = True):
    on_intercept = MagicMock(return_value=result)
    on_dismiss = MagicMock()
    interceptor = RedirectInterceptor(surface)
    interceptor.configure("myapp://callback", on_intercept, on_dismiss)
    return interceptor, on_intercept, on_dismiss


class TestConfigure:
    def test_installs_hooks_on_surface(self) -> None:
        surface = FakeSurface()
        interceptor, _, _ = _configured(surface)
        assert surface.navigation_hook == interceptor.navigate
        assert surface.close_hook == interceptor.dismiss
        assert interceptor.rule is not None
        assert interceptor.rule.url == "myapp://callback"

    def test_configure_twice(self) -> None:
        interceptor, on_intercept, on_dismiss = _configured()
        with pytest.raises(ConfigurationError, match="already configured"):
            interceptor.configure("myapp://other", on_intercept, on_dismiss)

    def test_invalid_rule(self) -> None:
        interceptor = RedirectInterceptor()
        with pytest.raises(ConfigurationError):
            interceptor.configure("", MagicMock(), MagicMock())


class TestStart:
    def test_start_before_configure(self) -> None:
        interceptor = RedirectInterceptor(FakeSurface())
        with pytest.raises(ConfigurationError, match="configured before start"):
            interceptor.start("https://auth.example.com/authorize")

    def test_start_without_surface(self) -> None:
        interceptor, _, _ = _configured()
        with pytest.raises(ConfigurationError, match="no surface"):
            interceptor.start("https://auth.example.com/authorize")

    def test_start_loads_url(self) -> None:
        surface = FakeSurface()
        interceptor, on_intercept, _ = _configured(surface)
        interceptor.start("https://auth.example.com/authorize")
        assert surface.loads == ["https://auth.example.com/authorize"]
        assert surface.visited == ["https://auth.example.com/authorize"]
        on_intercept.assert_not_called()
        assert interceptor.state is InterceptionState.PENDING


class TestNavigate:
    def test_non_matching_is_allowed(self) -> None:
        interceptor, on_intercept, _ = _configured()
        assert interceptor.navigate("https://auth.example.com/login") is NavigationPolicy.ALLOW
        on_intercept.assert_not_called()

    def test_match_is_cancelled_and_reported(self) -> None:
        interceptor, on_intercept, _ = _configured()
        decision = interceptor.navigate("myapp://callback?code=abc123")
        assert decision is NavigationPolicy.CANCEL
        on_intercept.assert_called_once_with("myapp://callback?code=abc123")
        assert interceptor.state is InterceptionState.INTERCEPTED
        assert interceptor.intercepted_url == "myapp://callback?code=abc123"
        assert interceptor.result is True

    def test_redirect_chain_reports_once(self) -> None:
        surface = FakeSurface(
            [
                "https://auth.example.com/login",
                "myapp://callback?code=abc123",
                "myapp://callback?code=abc123",
            ]
        )
        interceptor, on_intercept, on_dismiss = _configured(surface)
        interceptor.start("https://auth.example.com/authorize")

        on_intercept.assert_called_once_with("myapp://callback?code=abc123")
        on_dismiss.assert_not_called()
        assert "myapp://callback?code=abc123" not in surface.visited

    def test_duplicate_redirect_event_is_cancelled_silently(self) -> None:
        interceptor, on_intercept, _ = _configured()
        interceptor.navigate("myapp://callback?code=abc123")
        assert interceptor.navigate("myapp://callback?code=abc123") is NavigationPolicy.CANCEL
        assert on_intercept.call_count == 1

    def test_after_interception_everything_is_cancelled(self) -> None:
        interceptor, _, _ = _configured()
        interceptor.navigate("myapp://callback?code=abc123")
        assert interceptor.navigate("https://elsewhere.example.com") is NavigationPolicy.CANCEL

    def test_reentrant_navigation_from_callback(self) -> None:
        interceptor = RedirectInterceptor()
        calls: list[str] = []

        def on_intercept(url: str) -> bool:
            calls.append(url)
            interceptor.navigate(url + "&again=1")
            return True

        interceptor.configure("myapp://callback", on_intercept, MagicMock())
        interceptor.navigate("myapp://callback?code=1")
        assert calls == ["myapp://callback?code=1"]

    def test_failed_handling_is_still_terminal(self) -> None:
        interceptor, on_intercept, on_dismiss = _configured(result=False)
        assert interceptor.navigate("myapp://callback?error=x") is NavigationPolicy.CANCEL
        assert interceptor.result is False
        assert interceptor.state is InterceptionState.INTERCEPTED
        interceptor.dismiss()
        on_dismiss.assert_not_called()


class TestDismiss:
    def test_dismiss_while_pending(self) -> None:
        interceptor, on_intercept, on_dismiss = _configured()
        interceptor.dismiss()
        on_dismiss.assert_called_once_with(True)
        assert interceptor.state is InterceptionState.DISMISSED

        assert interceptor.navigate("myapp://callback?code=late") is NavigationPolicy.CANCEL
        on_intercept.assert_not_called()

    def test_dismiss_twice(self) -> None:
        interceptor, _, on_dismiss = _configured()
        interceptor.dismiss()
        interceptor.dismiss()
        on_dismiss.assert_called_once()

    def test_programmatic_dismiss(self) -> None:
        interceptor, _, on_dismiss = _configured()
        interceptor.dismiss(user_initiated=False)
        on_dismiss.assert_called_once_with(False)

    def test_surface_close_dismisses(self) -> None:
        surface = FakeSurface()
        interceptor, _, on_dismiss = _configured(surface)
        surface.notify_closed()
        on_dismiss.assert_called_once_with(True)
        assert interceptor.state is InterceptionState.DISMISSED

    def test_dismiss_after_interception_is_ignored(self) -> None:
        interceptor, _, on_dismiss = _configured()
        interceptor.navigate("myapp://callback?code=abc123")
        interceptor.dismiss()
        on_dismiss.assert_not_called()
        assert interceptor.state is InterceptionState.INTERCEPTED
