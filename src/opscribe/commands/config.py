"""Config commands -- view and modify global configuration.

Provides the ``opscribe config`` sub-command group for reading and updating
the user's global configuration file (:class:`~opscribe.models.GlobalConfig`).
Settings are persisted in the opscribe config directory and control the
resolver limits and the default output format.
"""

from __future__ import annotations

import typer

from opscribe.output import format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show the effective configuration.

    Prints the config directory path on stderr and the configuration, after
    project-local and environment overrides, on stdout.

    Example::

        opscribe config show
        opscribe --json config show
    """
    from opscribe.config import get_config_dir, resolve_config

    config = resolve_config()
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g. 'resolver.max_depth')."
    ),
    value: str = typer.Argument(help="Value to set ('none' clears optional keys)."),
) -> None:
    """Set a configuration value in the global config file.

    The value is validated against the target model before saving; an
    invalid key or value exits with code 1 and leaves the file untouched.

    Example::

        opscribe config set resolver.max_depth 16
        opscribe config set resolver.concurrency reject
        opscribe config set output.format json
    """
    from opscribe.config import load_global_config, save_global_config, set_config_value

    config = set_config_value(load_global_config(), key, value)
    save_global_config(config)
    success(f"Set {key} = {value}")
