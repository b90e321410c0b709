"""Resolve command -- expand one operation of a project.

Indexes the project, resolves the requested endpoint and method with
:class:`~opscribe.engine.OperationResolver`, and prints the merged
description in the active output format.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer

from opscribe.models import OperationDescription
from opscribe.output import debug, get_output


def resolve_command(
    root: str = typer.Argument(
        help="Root document path, as listed by 'opscribe projects'."
    ),
    endpoint: str = typer.Argument(
        help="Endpoint name (e.g. users_{id}) or API path (e.g. /users/{id})."
    ),
    method: Optional[str] = typer.Argument(
        None, help="HTTP method. Defaults to the endpoint's first method."
    ),
    base: Optional[Path] = typer.Option(
        None, "--base", help="Directory the root path is relative to."
    ),
    remote: Optional[str] = typer.Option(
        None, "--remote", help="Base URL of a remote document service."
    ),
    max_depth: Optional[int] = typer.Option(
        None, "--max-depth", min=1, help="Maximum schema nesting depth."
    ),
    max_files: Optional[int] = typer.Option(
        None, "--max-files", min=1, help="Maximum files read per resolution."
    ),
) -> None:
    """Resolve one operation into its fully expanded description.

    Example::

        opscribe resolve Main/openapi.yaml users get --base ./apis
        opscribe --json resolve Main/openapi.yaml /users/{id} --base ./apis
    """
    from opscribe.commands.projects import open_index
    from opscribe.config import resolve_config
    from opscribe.engine import OperationResolver

    config = resolve_config(cli_max_depth=max_depth, cli_max_files=max_files)
    debug(
        f"Limits: max_depth={config.resolver.max_depth} "
        f"max_files={config.resolver.max_files}"
    )

    async def _resolve() -> OperationDescription:
        async with open_index(root, base, remote) as index:
            resolver = OperationResolver(index, config.resolver)
            return await resolver.resolve(endpoint, method)

    description = asyncio.run(_resolve())
    get_output().print_operation(description)
