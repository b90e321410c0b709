"""Typer application and CLI entry point for opscribe.

This module wires together the top-level Typer application and registers the
built-in commands (``projects``, ``endpoints``, ``resolve``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
:class:`~opscribe.exceptions.OpscribeError` exits with its own code;
unhandled exceptions are written to a crash log under the data directory.

See Also:
    :mod:`opscribe.config`: Global configuration and precedence resolution.
    :mod:`opscribe.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any

import typer

from opscribe import __version__
from opscribe.commands.config import config_app
from opscribe.commands.projects import endpoints_command, projects_command
from opscribe.commands.resolve import resolve_command
from opscribe.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="opscribe",
    help="Resolve operations of multi-file OpenAPI projects into expanded descriptions.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("projects")(projects_command)
app.command("endpoints")(endpoints_command)
app.command("resolve")(resolve_command)
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"opscribe {__version__}")
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
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
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

    Initialises the global :class:`~opscribe.output.OutputManager` from CLI
    flags (falling back to ``output.format`` of the global config), routes
    library logging to stderr, and stores shared flags in ``ctx.obj``.
    """
    from opscribe.config import resolve_config
    from opscribe.exceptions import ConfigError
    from opscribe.output import OutputFormat, OutputManager, set_output

    cli_format = "json" if json_output else "plain" if plain_output else None
    try:
        fmt = OutputFormat(resolve_config(cli_format=cli_format).output.format)
    except (ConfigError, ValueError):
        # An invalid config file still lets `config set` repair it.
        fmt = OutputFormat(cli_format or "auto")

    output = OutputManager(
        format=fmt,
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
    )
    set_output(output)
    output.configure_logging()

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from opscribe.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``opscribe`` console script.

    Unhandled :class:`~opscribe.exceptions.OpscribeError` instances cause a
    clean exit with the error's ``exit_code``. All other exceptions produce a
    crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app(standalone_mode=True)
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from opscribe.exceptions import OpscribeError
        from opscribe.output import error

        if isinstance(exc, OpscribeError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
