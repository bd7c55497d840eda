"""Pydantic models and enums shared across oauth2view.

**Settings models** -- loaded from JSON by :mod:`oauth2view.config`:
    :class:`OAuth2Settings`.

**Presentation models** -- passed to the host and interceptor:
    :class:`RedirectRule`, :class:`AuthUIConfig`, :class:`NavigationPolicy`,
    :class:`InterceptionState`, :class:`HostState`.

**Provider responses**:
    :class:`TokenResponse`.
"""

from __future__ import annotations

import enum
from typing import Any, Callable, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from oauth2view.exceptions import ConfigurationError


# --- States ---


class InterceptionState(str, enum.Enum):
    """Lifecycle of a :class:`~oauth2view.interceptor.RedirectInterceptor`.

    ``PENDING`` is the only non-terminal state.
    """

    PENDING = "pending"
    INTERCEPTED = "intercepted"
    DISMISSED = "dismissed"

    @property
    def is_terminal(self) -> bool:
        return self is not InterceptionState.PENDING


class HostState(str, enum.Enum):
    """Lifecycle of a :class:`~oauth2view.host.PresentationHost`."""

    IDLE = "idle"
    PRESENTING = "presenting"
    COMPLETED = "completed"
    DISMISSED = "dismissed"
    FAILED = "failed"


class NavigationPolicy(str, enum.Enum):
    """Answer a navigation hook gives the surface for one navigation attempt."""

    ALLOW = "allow"
    CANCEL = "cancel"


# --- Redirect rule ---


class RedirectRule(BaseModel):
    """The redirect URL a flow was registered with, used as a match prefix.

    Matching is a plain string prefix test, so query strings and fragments
    appended by the provider still match. Custom schemes such as
    ``myapp://callback`` are accepted.

    Example::

        rule = RedirectRule.parse("myapp://callback")
        assert rule.matches("myapp://callback?code=abc123")
    """

    model_config = ConfigDict(frozen=True)

    url: str

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("redirect URL must not be empty")
        if value != value.strip() or any(ch.isspace() for ch in value):
            raise ValueError(f"redirect URL must not contain whitespace: {value!r}")
        parts = urlsplit(value)
        if not parts.scheme:
            raise ValueError(f"redirect URL has no scheme: {value!r}")
        if not (parts.netloc or parts.path):
            raise ValueError(f"redirect URL has no host or path: {value!r}")
        return value

    @classmethod
    def parse(cls, value: str | RedirectRule) -> RedirectRule:
        """Build a rule from *value*, raising :class:`ConfigurationError` if invalid."""
        if isinstance(value, RedirectRule):
            return value
        try:
            return cls(url=value)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid redirect URL {value!r}: {exc}") from exc

    def matches(self, url: Any) -> bool:
        """Return ``True`` when ``str(url)`` starts with the redirect URL."""
        return str(url).startswith(self.url)


# --- Presentation config ---


class AuthUIConfig(BaseModel):
    """Options for :func:`~oauth2view.ui.present_embedded`.

    Args:
        title: Window title for the auto-presented window.
        presentation_function: Callable that receives the embeddable
            :class:`~oauth2view.environment.Surface` and displays it itself.
            When set, no default window is created and the window lifecycle
            belongs to the caller.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    title: Optional[str] = None
    presentation_function: Optional[Callable[..., Any]] = None


# --- Settings ---


class OAuth2Settings(BaseModel):
    """Client registration and endpoints for one OAuth2 provider.

    Client credentials can be given inline or through a credential source
    (``env:VAR``, ``file:/path``, ``prompt``) resolved by
    :func:`~oauth2view.config.resolve_credential`; inline values win.

    Example::

        OAuth2Settings(
            client_id="abc",
            authorize_uri="https://github.com/login/oauth/authorize",
            token_uri="https://github.com/login/oauth/access_token",
            redirect_uri="http://127.0.0.1:8765/callback",
            scope="repo",
        )
    """

    model_config = ConfigDict(extra="forbid")

    client_id: Optional[str] = None
    client_id_source: Optional[str] = Field(
        default=None, description="Credential source for the client id"
    )
    client_secret: Optional[str] = None
    client_secret_source: Optional[str] = Field(
        default=None, description="Credential source for the client secret"
    )
    authorize_uri: Optional[str] = None
    token_uri: Optional[str] = None
    redirect_uri: Optional[str] = Field(
        default=None, description="Redirect URL registered with the provider"
    )
    scope: Optional[str] = None
    use_pkce: bool = Field(default=True, description="Send a S256 PKCE challenge")
    authorize_params: dict[str, str] = Field(
        default_factory=dict, description="Extra parameters for every authorize URL"
    )
    verbose: bool = Field(default=False, description="Log flow details at INFO")
    timeout: float = Field(default=30.0, description="HTTP timeout in seconds")


class TokenResponse(BaseModel):
    """Successful response of the token endpoint (:rfc:`6749#section-5.1`)."""

    model_config = ConfigDict(extra="allow")

    access_token: str
    token_type: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    scope: Optional[str] = None
