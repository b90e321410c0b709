"""Project commands -- discover projects and list their endpoints.

``opscribe projects`` searches a directory for ``redocly.yaml`` entries and
``openapi.yaml`` files. ``opscribe endpoints`` indexes one project, either
from the local disk (``--base``) or from a remote document service
(``--remote``), and lists every endpoint with its methods.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import httpx
import typer

from opscribe.exceptions import InvalidUsageError
from opscribe.models import ProjectIndex
from opscribe.output import debug, get_output, info, suggest, warning


@asynccontextmanager
async def open_index(
    root: str, base: Optional[Path], remote: Optional[str]
) -> AsyncIterator[ProjectIndex]:
    """Index a project and keep its content store open while in use.

    Remote projects read through one :class:`httpx.AsyncClient`, which is
    closed when the context exits.

    Raises:
        InvalidUsageError: If both ``--base`` and ``--remote`` are given.
    """
    from opscribe.indexer import index_local_project, index_remote_project

    if base is not None and remote is not None:
        raise InvalidUsageError("Use either --base or --remote, not both")

    if remote is not None:
        debug(f"Indexing {root} from {remote}")
        async with httpx.AsyncClient(timeout=30.0) as client:
            yield await index_remote_project(remote, root, client)
        return

    base_dir = base or Path.cwd()
    debug(f"Indexing {root} under {base_dir}")
    yield await index_local_project(base_dir, root)


def projects_command(
    base_dir: Path = typer.Argument(
        Path("."), help="Directory to search for projects."
    ),
) -> None:
    """List the OpenAPI projects found under BASE_DIR.

    Example::

        opscribe projects
        opscribe projects ./apis --json
    """
    from opscribe.indexer import discover_projects

    projects = discover_projects(base_dir)
    if not projects:
        info(f"No projects found under {base_dir}")
        return
    get_output().print_table(
        ["name", "rootPath", "fileCount"],
        [[p.name, p.root_path, str(p.file_count)] for p in projects],
        title=f"Projects ({len(projects)})",
    )
    suggest(f"List endpoints with: opscribe endpoints <rootPath> --base {base_dir}")


def endpoints_command(
    root: str = typer.Argument(
        help="Root document path, as listed by 'opscribe projects'."
    ),
    base: Optional[Path] = typer.Option(
        None, "--base", help="Directory the root path is relative to."
    ),
    remote: Optional[str] = typer.Option(
        None, "--remote", help="Base URL of a remote document service."
    ),
) -> None:
    """List the endpoints of one project.

    Example::

        opscribe endpoints Main/openapi.yaml --base ./apis
        opscribe endpoints Main/openapi.yaml --remote http://docs.local/api
    """
    from opscribe.indexer import list_endpoints

    async def _list() -> list[list[str]]:
        async with open_index(root, base, remote) as index:
            return [
                [e.api_path, e.file_path, ", ".join(m.upper() for m in e.methods)]
                for e in list_endpoints(index)
            ]

    rows = asyncio.run(_list())
    if not rows:
        warning(f"No endpoints found in {root}")
        return
    get_output().print_table(
        ["apiPath", "filePath", "methods"], rows, title=f"{root} ({len(rows)})"
    )
