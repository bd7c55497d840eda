"""Exception hierarchy for oauth2view.

All exceptions inherit from :class:`OAuth2ViewError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`oauth2view.exit_codes`.
Library entry points (:func:`~oauth2view.ui.present_embedded`,
:func:`~oauth2view.ui.open_in_external_browser`, ...) catch these at their
boundary and return ``False``; the CLI in :func:`oauth2view.app.main` turns
them into an error line and the matching exit code.

Subclass hierarchy::

    OAuth2ViewError (exit 1)
    +-- InvalidUsageError          (exit 2)
    +-- ConfigurationError         (exit 1)
    +-- AuthorizationError         (exit 3)
    |   +-- RedirectParseError     (exit 3)
    |   +-- RedirectTimeoutError   (exit 3)
    +-- PlatformUnsupportedError   (exit 4)
"""

from __future__ import annotations

from oauth2view.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_PLATFORM_UNSUPPORTED,
)


class OAuth2ViewError(Exception):
    """Base exception for all oauth2view errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(OAuth2ViewError):
    """Raised for invalid CLI arguments (e.g. a malformed ``--param``)."""

    exit_code = EXIT_INVALID_USAGE


class ConfigurationError(OAuth2ViewError):
    """Raised when required settings are missing or invalid.

    Typical causes: no redirect URI, no client id, an unreadable settings
    file, or a credential source that cannot be resolved.
    """

    exit_code = EXIT_GENERIC_FAILURE


class AuthorizationError(OAuth2ViewError):
    """Raised when the provider denies access or the code exchange fails.

    Args:
        message: Human-readable error description.
        error: The OAuth2 ``error`` code reported by the provider, if any.
    """

    exit_code = EXIT_AUTH_FAILURE

    def __init__(self, message: str, error: str | None = None):
        super().__init__(message)
        self.error = error


class RedirectParseError(AuthorizationError):
    """Raised when a redirect URL cannot be turned into an authorization response."""


class RedirectTimeoutError(AuthorizationError):
    """Raised when no matching redirect arrived before the caller's deadline."""


class PlatformUnsupportedError(OAuth2ViewError):
    """Raised when the presentation environment cannot embed a browsing surface."""

    exit_code = EXIT_PLATFORM_UNSUPPORTED
