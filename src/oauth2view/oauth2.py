"""OAuth2 Authorization Code core with PKCE.

:class:`OAuth2Client` owns everything the presentation layer delegates:

1. Builds the authorize URL (``state`` plus an S256 PKCE challenge, :rfc:`7636`).
2. Parses the intercepted redirect URL and validates ``state``.
3. Exchanges the authorization code for tokens with :func:`httpx.post`.
4. Keeps the tokens in memory and refreshes them on request.
5. Reports every authorization outcome to registered observers, which is
   what :class:`~oauth2view.host.PresentationHost` uses to close its window.

Also exports :func:`generate_pkce_pair`.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, urlencode, urlsplit

import httpx
from pydantic import ValidationError

from oauth2view.config import resolve_credential
from oauth2view.exceptions import (
    AuthorizationError,
    ConfigurationError,
    OAuth2ViewError,
    RedirectParseError,
)
from oauth2view.models import OAuth2Settings, TokenResponse

logger = logging.getLogger(__name__)

OutcomeObserver = Callable[[bool, Optional[Exception]], None]
"""Called with ``(succeeded, error)`` after every authorization attempt."""

EXPIRY_MARGIN = timedelta(seconds=30)


def generate_pkce_pair() -> tuple[str, str]:
    """Generate a PKCE code_verifier and code_challenge (S256).

    Returns:
        A tuple of ``(code_verifier, code_challenge)``.
    """
    # RFC 7636: 43-128 characters from unreserved character set
    code_verifier = secrets.token_urlsafe(64)[:128]
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    code_challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return code_verifier, code_challenge


@dataclass
class _PendingAuthorization:
    state: str
    redirect_uri: str
    code_verifier: Optional[str] = None


class OAuth2Client:
    """Authorization-code client for a single provider registration.

    Args:
        settings: Provider endpoints and client registration.

    Example::

        oauth2 = OAuth2Client(settings)
        url = oauth2.authorize_url({"prompt": "consent"})
        # ... user approves, the redirect is intercepted ...
        oauth2.handle_redirect_url("myapp://callback?code=abc&state=...")
        print(oauth2.access_token)
    """

    def __init__(self, settings: OAuth2Settings) -> None:
        self.settings = settings
        self._pending: Optional[_PendingAuthorization] = None
        self._observers: list[OutcomeObserver] = []
        self._access_token: Optional[str] = None
        self._refresh_token: Optional[str] = None
        self._expires_at: Optional[datetime] = None
        self._token: Optional[TokenResponse] = None

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    @property
    def redirect(self) -> Optional[str]:
        """The redirect URL the flow is registered with, if configured."""
        return self.settings.redirect_uri

    @property
    def client_id(self) -> str:
        """The client id, resolved from its source when not given inline.

        Raises:
            ConfigurationError: If neither ``client_id`` nor
                ``client_id_source`` is set, or the source cannot be read.
        """
        if self.settings.client_id:
            return self.settings.client_id
        if self.settings.client_id_source:
            return resolve_credential(self.settings.client_id_source)
        raise ConfigurationError("`client_id` is not set")

    @property
    def client_secret(self) -> Optional[str]:
        if self.settings.client_secret:
            return self.settings.client_secret
        if self.settings.client_secret_source:
            return resolve_credential(self.settings.client_secret_source)
        return None

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    @property
    def token(self) -> Optional[TokenResponse]:
        """The most recent token response, if any."""
        return self._token

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    @property
    def refresh_token(self) -> Optional[str]:
        return self._refresh_token

    @property
    def expires_at(self) -> Optional[datetime]:
        return self._expires_at

    def has_unexpired_access_token(self) -> bool:
        """Return True if an access token is held and not about to expire."""
        if not self._access_token:
            return False
        if self._expires_at is None:
            return True
        return datetime.now(timezone.utc) < self._expires_at - EXPIRY_MARGIN

    def forget_tokens(self) -> None:
        """Drop the access and refresh tokens held in memory."""
        self._token = None
        self._access_token = None
        self._refresh_token = None
        self._expires_at = None

    # ------------------------------------------------------------------
    # Authorize URL
    # ------------------------------------------------------------------

    def authorize_url(self, params: Optional[dict[str, str]] = None) -> str:
        """Build the authorize URL and remember the state it was issued with.

        Parameters are layered in this order: the standard ones
        (``response_type``, ``client_id``, ``redirect_uri``, ``scope``,
        ``state``, PKCE), then ``settings.authorize_params``, then *params*.

        Args:
            params: Additional parameters to pass to the authorize URL.

        Returns:
            The fully-formed authorize URL.

        Raises:
            ConfigurationError: If ``authorize_uri``, the client id or the
                redirect URL is missing.
        """
        authorize_uri = self.settings.authorize_uri
        if not authorize_uri:
            raise ConfigurationError("`authorize_uri` is not set, cannot build authorize URL")
        redirect = self.redirect
        if not redirect:
            raise ConfigurationError("`redirect_uri` is not set, cannot build authorize URL")

        query: dict[str, str] = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": redirect,
        }
        if self.settings.scope:
            query["scope"] = self.settings.scope
        query["state"] = secrets.token_urlsafe(24)

        code_verifier: Optional[str] = None
        if self.settings.use_pkce:
            code_verifier, code_challenge = generate_pkce_pair()
            query["code_challenge"] = code_challenge
            query["code_challenge_method"] = "S256"

        query.update(self.settings.authorize_params)
        if params:
            query.update(params)

        self._pending = _PendingAuthorization(
            state=query["state"],
            redirect_uri=query["redirect_uri"],
            code_verifier=code_verifier,
        )
        separator = "&" if "?" in authorize_uri else "?"
        url = f"{authorize_uri}{separator}{urlencode(query)}"
        self.log_verbose(f"Authorizing against {authorize_uri}")
        return url

    # ------------------------------------------------------------------
    # Redirect handling
    # ------------------------------------------------------------------

    def handle_redirect_url(self, url: Any) -> TokenResponse:
        """Extract the code from an intercepted redirect and exchange it.

        On success the tokens are stored and observers are told about the
        success. On failure observers get the error through
        :meth:`did_fail` and the error is re-raised.

        Args:
            url: The redirect URL as intercepted (anything with a URL ``str``).

        Returns:
            The parsed token response.

        Raises:
            RedirectParseError: If no authorization is pending, ``state`` is
                missing or does not match, or there is no ``code``.
            AuthorizationError: If the provider reported an error or the
                code exchange failed.
        """
        pending, self._pending = self._pending, None
        try:
            code = self._extract_code(str(url), pending)
            assert pending is not None
            token = self._exchange_code(code, pending)
        except OAuth2ViewError as exc:
            self.did_fail(exc)
            raise
        self.did_authorize(token)
        return token

    def _extract_code(self, url: str, pending: Optional[_PendingAuthorization]) -> str:
        """Return the ``code`` parameter of a redirect URL after validating it."""
        if pending is None:
            raise RedirectParseError("No authorization in progress, call authorize_url() first")

        parts = urlsplit(url)
        params = parse_qs(parts.query)
        if not params and parts.fragment:
            params = parse_qs(parts.fragment)
        if not params:
            raise RedirectParseError(f"Redirect URL carries no parameters: {url}")

        state = params.get("state", [""])[0]
        if not state:
            raise RedirectParseError("Redirect URL is missing the 'state' parameter")
        if not secrets.compare_digest(state, pending.state):
            raise RedirectParseError("Redirect 'state' does not match the authorize request")

        if "error" in params:
            error = params["error"][0]
            message = f"Provider returned error: {error}"
            description = params.get("error_description", [""])[0]
            if description:
                message += f" - {description}"
            raise AuthorizationError(message, error=error)

        code = params.get("code", [""])[0]
        if not code:
            raise RedirectParseError("Redirect URL is missing the 'code' parameter")
        return code

    def _exchange_code(self, code: str, pending: _PendingAuthorization) -> TokenResponse:
        """Exchange an authorization code for access and refresh tokens."""
        data: dict[str, str] = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": pending.redirect_uri,
            "client_id": self.client_id,
        }
        if pending.code_verifier:
            data["code_verifier"] = pending.code_verifier

        token = self._request_token(data, "Token exchange")
        self._store_token(token)
        return token

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self) -> TokenResponse:
        """Use the refresh token to obtain a new access token.

        The previous refresh token is kept when the response omits one.

        Raises:
            AuthorizationError: If no refresh token is held or the request
                fails.
            ConfigurationError: If ``token_uri`` is not set.
        """
        if not self._refresh_token:
            raise AuthorizationError("No refresh token available")

        data: dict[str, str] = {
            "grant_type": "refresh_token",
            "refresh_token": self._refresh_token,
            "client_id": self.client_id,
        }
        token = self._request_token(data, "Token refresh")
        if not token.refresh_token:
            token = token.model_copy(update={"refresh_token": self._refresh_token})
        self._store_token(token)
        self.log_verbose("Did refresh access token")
        return token

    def _request_token(self, data: dict[str, str], action: str) -> TokenResponse:
        """POST *data* to the token endpoint and validate the response.

        Args:
            data: Form fields of the grant request.
            action: Label used in error messages (``"Token exchange"``, ...).

        Raises:
            ConfigurationError: If ``token_uri`` is not set.
            AuthorizationError: On HTTP errors, a non-JSON body, an ``error``
                field, or a missing ``access_token``.
        """
        if not self.settings.token_uri:
            raise ConfigurationError("`token_uri` is not set")

        client_secret = self.client_secret
        if client_secret:
            data["client_secret"] = client_secret

        try:
            response = httpx.post(
                self.settings.token_uri,
                data=data,
                headers={"Accept": "application/json"},
                timeout=self.settings.timeout,
            )
            response.raise_for_status()
            token_data: Any = response.json()
        except httpx.HTTPStatusError as exc:
            raise AuthorizationError(
                f"{action} failed with status {exc.response.status_code}: "
                f"{exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            raise AuthorizationError(f"{action} failed: {exc}") from exc
        except ValueError as exc:
            raise AuthorizationError(f"{action} returned a non-JSON body: {exc}") from exc

        if not isinstance(token_data, dict):
            raise AuthorizationError(f"{action} returned an unexpected body")
        if "error" in token_data:
            error = str(token_data["error"])
            raise AuthorizationError(f"{action} failed: {error}", error=error)
        if "access_token" not in token_data:
            raise AuthorizationError(f"{action} response missing 'access_token' field")

        try:
            return TokenResponse.model_validate(token_data)
        except ValidationError as exc:
            raise AuthorizationError(f"{action} returned an invalid token: {exc}") from exc

    def _store_token(self, token: TokenResponse) -> None:
        self._token = token
        self._access_token = token.access_token
        if token.refresh_token:
            self._refresh_token = token.refresh_token
        if token.expires_in is not None:
            self._expires_at = datetime.now(timezone.utc) + timedelta(seconds=token.expires_in)
        else:
            self._expires_at = None

    # ------------------------------------------------------------------
    # Outcome reporting
    # ------------------------------------------------------------------

    def add_outcome_observer(self, observer: OutcomeObserver) -> None:
        """Register *observer* for ``(succeeded, error)`` notifications."""
        self._observers.append(observer)

    def remove_outcome_observer(self, observer: OutcomeObserver) -> None:
        """Unregister *observer*; unknown observers are ignored."""
        if observer in self._observers:
            self._observers.remove(observer)

    def did_authorize(self, token: TokenResponse) -> None:
        """Report a successful authorization to all observers."""
        self.log_verbose(f"Did authorize, token type {token.token_type or 'unknown'}")
        self._notify(True, None)

    def did_fail(self, error: Optional[Exception] = None) -> None:
        """Report a failed or cancelled authorization to all observers.

        Args:
            error: The failure, or ``None`` when the user cancelled.
        """
        self._pending = None
        if error is None:
            self.log_verbose("Authorization was cancelled")
        else:
            self.log_verbose(f"Authorization failed: {error}")
        self._notify(False, error)

    def _notify(self, succeeded: bool, error: Optional[Exception]) -> None:
        # Observers may unregister themselves while being notified.
        for observer in list(self._observers):
            observer(succeeded, error)

    def log_verbose(self, message: str) -> None:
        """Log *message* at INFO when ``settings.verbose`` is on, else at DEBUG."""
        level = logging.INFO if self.settings.verbose else logging.DEBUG
        logger.log(level, "%s", message)
