"""Typer application and CLI entry point for gateauth.

The application exposes two commands:

- ``login`` -- resolve the configured credentials against Gate, establish
  a session, and report which scheme ended up on the client.
- ``status`` -- report what the config file would do, without any network
  access.

Global options (``--gate-endpoint``, ``--config``, ``--insecure``) are
collected in :func:`main_callback` and handed to
:func:`~gateauth.auth.build_client` through ``ctx.obj``.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs a SIGINT handler, maps
:class:`~gateauth.exceptions.GateAuthError` to its exit code, and writes a
crash log for anything unexpected.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from gateauth import __version__
from gateauth.exit_codes import EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="gateauth",
    help="Resolve Gate API credentials and establish a session.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"gateauth {__version__}")
        raise typer.Exit()


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
    gate_endpoint: Optional[str] = typer.Option(
        None, "--gate-endpoint", help="Gate API base URL."
    ),
    config_path: Optional[str] = typer.Option(
        None, "--config", help="Path to the config file."
    ),
    insecure: bool = typer.Option(
        False, "--insecure", help="Skip TLS certificate verification."
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~gateauth.output.OutputManager` and stores
    the connection options in ``ctx.obj``.
    """
    from gateauth.output import OutputManager, set_output

    set_output(
        OutputManager(
            json_output=json_output,
            no_color=no_color,
            quiet=quiet,
            verbose=verbose,
        )
    )

    ctx.ensure_object(dict)
    ctx.obj["gate_endpoint"] = gate_endpoint
    ctx.obj["config_path"] = config_path
    ctx.obj["insecure"] = insecure


@app.command("login")
def login_command(ctx: typer.Context) -> None:
    """Authenticate against Gate with the configured credentials."""
    from gateauth.auth import build_client
    from gateauth.output import info, print_mapping, success

    client, context = build_client(
        config_path=ctx.obj["config_path"],
        endpoint=ctx.obj["gate_endpoint"],
        insecure=ctx.obj["insecure"],
    )
    try:
        if context.scheme:
            success(f"Authenticated with {context.scheme}.")
        else:
            info("No authentication configured.")
        print_mapping(context.describe(), title="Session")
    finally:
        client.close()


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Show the configured auth schemes without contacting Gate."""
    from gateauth.auth import create_default_resolver
    from gateauth.config import load_config, resolve_config_path, resolve_endpoint
    from gateauth.output import print_mapping

    path = resolve_config_path(ctx.obj["config_path"])
    config = load_config(path)
    resolver = create_default_resolver()
    auth = config.auth

    report: dict[str, Any] = {
        "endpoint": resolve_endpoint(config, ctx.obj["gate_endpoint"]),
        "config": str(path),
        "auth_enabled": bool(auth and auth.enabled),
        "schemes": [stage.name for stage in resolver.enabled_stages(auth)],
    }
    if auth is not None:
        for key, section in (
            ("oauth2_token_expiry", auth.oauth2),
            ("google_service_account_token_expiry", auth.google_service_account),
        ):
            token = section.cached_token if section is not None else None
            if token is not None:
                report[key] = token.expiry.isoformat() if token.expiry else "never"
    print_mapping(report, title="Configuration")


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from gateauth.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``gateauth`` console script.

    :class:`~gateauth.exceptions.GateAuthError` instances exit with the
    error's ``exit_code``. All other exceptions produce a crash log and a
    generic failure exit.

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
    except Exception as exc:
        from gateauth.exceptions import GateAuthError
        from gateauth.output import error

        if isinstance(exc, GateAuthError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
