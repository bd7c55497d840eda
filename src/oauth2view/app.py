"""Typer application and CLI entry point for oauth2view.

Commands:

* ``oauth2view url`` -- print the authorize URL for a settings file.
* ``oauth2view authorize`` -- run the authorization-code flow through the
  system browser and a loopback receiver (``--mode browser``), or through
  the headless embedded surface (``--mode headless``), and print the token
  response.

:func:`main` is the console-script entry point declared in
``pyproject.toml``. Errors derived from
:class:`~oauth2view.exceptions.OAuth2ViewError` exit with their
``exit_code``.
"""

from __future__ import annotations

import logging
import signal
import sys
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from oauth2view import __version__
from oauth2view.exceptions import (
    AuthorizationError,
    InvalidUsageError,
    OAuth2ViewError,
    PlatformUnsupportedError,
)
from oauth2view.exit_codes import EXIT_GENERIC_FAILURE
from oauth2view.oauth2 import OAuth2Client
from oauth2view.output import debug, error, format_result, info, success, warning

app = typer.Typer(
    name="oauth2view",
    help="Run OAuth2 authorization-code flows in a browser or embedded view.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

MODES = ("browser", "headless")

_SETTINGS_OPTION = typer.Option(
    None, "--settings", "-s", help="Provider settings JSON (default: config dir)."
)
_PARAM_OPTION = typer.Option(
    None, "--param", "-P", help="Extra authorize parameter as key=value (repeatable)."
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"oauth2view {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    """Send library logs to stderr through Rich."""
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    logging.basicConfig(level=logging.WARNING, format="%(message)s", handlers=[handler], force=True)
    logging.getLogger("oauth2view").setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Initialise output and logging from the global flags."""
    from oauth2view.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    _configure_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


def _fail(exc: OAuth2ViewError) -> typer.Exit:
    error(str(exc))
    return typer.Exit(exc.exit_code)


def _load_client(settings: Optional[Path]) -> OAuth2Client:
    """Build the OAuth2 client from *settings* or the default settings file."""
    from oauth2view.config import default_settings_path, load_settings

    path = settings if settings is not None else default_settings_path()
    loaded = load_settings(path)
    debug(f"Loaded settings from {path}")
    if not loaded.use_pkce:
        warning("PKCE is disabled; the authorization code is not bound to this client")
    return OAuth2Client(loaded)


@app.command("url")
def url_command(
    settings: Optional[Path] = _SETTINGS_OPTION,
    param: Optional[list[str]] = _PARAM_OPTION,
) -> None:
    """Print the authorize URL.

    Example:
        ::

            oauth2view url -s github.json -P prompt=consent
    """
    from oauth2view.config import parse_params

    try:
        oauth2 = _load_client(settings)
        url = oauth2.authorize_url(parse_params(param))
    except OAuth2ViewError as exc:
        raise _fail(exc) from exc
    format_result(url)


@app.command("authorize")
def authorize_command(
    settings: Optional[Path] = _SETTINGS_OPTION,
    param: Optional[list[str]] = _PARAM_OPTION,
    mode: str = typer.Option("browser", "--mode", "-m", help="browser or headless."),
    timeout: float = typer.Option(
        120.0, "--timeout", "-t", help="Seconds to wait for the redirect (browser mode)."
    ),
    no_open: bool = typer.Option(
        False, "--no-open", help="Print the authorize URL instead of opening a browser."
    ),
) -> None:
    """Run the authorization-code flow and print the token response.

    Browser mode needs a loopback ``redirect_uri`` such as
    ``http://127.0.0.1:8765/callback``.
    """
    from oauth2view.config import parse_params

    try:
        if mode not in MODES:
            raise InvalidUsageError(f"Unknown mode '{mode}': must be one of {', '.join(MODES)}")
        oauth2 = _load_client(settings)
        params = parse_params(param)

        outcome: dict[str, Any] = {}

        def record(succeeded: bool, err: Optional[Exception]) -> None:
            outcome["succeeded"] = succeeded
            outcome["error"] = err

        oauth2.add_outcome_observer(record)
        if mode == "browser":
            presented = _authorize_browser(oauth2, params, timeout, no_open)
        else:
            presented = _authorize_headless(oauth2, params)
        oauth2.remove_outcome_observer(record)

        if not outcome.get("succeeded"):
            err = outcome.get("error")
            if isinstance(err, OAuth2ViewError):
                raise err
            if "succeeded" in outcome:
                raise AuthorizationError("Authorization was cancelled")
            if presented and mode == "headless":
                raise AuthorizationError(
                    "The provider needs user interaction; use --mode browser instead"
                )
            raise AuthorizationError("Authorization could not be started; run with --verbose")
    except OAuth2ViewError as exc:
        raise _fail(exc) from exc

    success("Authorization complete.")
    assert oauth2.token is not None
    format_result(oauth2.token.model_dump(exclude_none=True))


def _authorize_browser(
    oauth2: OAuth2Client, params: dict[str, str], timeout: float, no_open: bool
) -> bool:
    from oauth2view.ui import authorize_in_browser

    def show_url(url: str) -> None:
        info("Open this URL in a browser to authorize:")
        format_result(url)

    info(f"Waiting up to {timeout:.0f}s for the authorization redirect...")
    authorize_in_browser(oauth2, params, timeout=timeout, url_handler=show_url if no_open else None)
    return True


def _authorize_headless(oauth2: OAuth2Client, params: dict[str, str]) -> bool:
    """Present the authorize URL in a headless surface; True if it was loaded."""
    from oauth2view.headless import HeadlessEnvironment
    from oauth2view.models import AuthUIConfig
    from oauth2view.ui import present_embedded

    with HeadlessEnvironment() as environment:
        if not environment.supports_embedded_presentation():
            raise PlatformUnsupportedError("Headless presentation is unavailable")
        return present_embedded(oauth2, environment, AuthUIConfig(title="oauth2view"), params)


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """CLI entry point invoked by the ``oauth2view`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except OAuth2ViewError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        error(f"Unexpected error: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
