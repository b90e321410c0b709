"""Discover OpenAPI projects and build their :class:`~opscribe.models.ProjectIndex`.

A *project* is a root OpenAPI document plus every YAML and Markdown file in
its directory tree. Projects are found two ways under a base directory:

* each ``apis.<name>.root`` entry of a ``redocly.yaml`` (or ``.yml``);
* any other ``openapi.yaml`` / ``openapi.yml``, named after its directory.

Indexing reads the root document once, maps every ``paths`` entry to the
file it references and classifies that file's layout:

* **split** -- the file's methods are only ``$ref`` s to per-method files,
  or the reference points at a directory holding ``<method>.yaml`` files;
* **flat** -- every method is written out in the file itself.

Registry paths are ``<root>/<path relative to the project directory>``,
forward slashes throughout. Files may come from the local disk
(:func:`index_local_project`) or from a remote document service
(:func:`index_remote_project`).
"""

from __future__ import annotations

import logging
import posixpath
from pathlib import Path
from typing import Optional

import httpx
import yaml

from opscribe.exceptions import ContentReadError, ProjectIndexError
from opscribe.models import (
    EndpointLayout,
    EndpointSummary,
    HTTPMethod,
    ProjectIndex,
    ProjectSummary,
)
from opscribe.parser.methods import detect_methods, method_ref
from opscribe.parser.paths import parse_paths
from opscribe.parser.refs import resolve_ref_path
from opscribe.store import ContentHandle, FileRegistry, LocalFileHandle, RemoteFileHandle

logger = logging.getLogger(__name__)

ROOT_DOCUMENTS = ("openapi.yaml", "openapi.yml")
REDOCLY_CONFIGS = ("redocly.yaml", "redocly.yml")
INDEXED_SUFFIXES = (".yaml", ".yml", ".md")

_METHOD_FILES = {
    f"{m.value}{suffix}": m.value for m in HTTPMethod for suffix in (".yaml", ".yml")
}


def _join(root: str, relative: str) -> str:
    return f"{root}/{relative}" if root else relative


def _strip_extension(name: str) -> str:
    for suffix in (".yaml", ".yml"):
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


# --- Discovery ---


def _count_files(directory: Path) -> int:
    return sum(
        1 for p in directory.rglob("*") if p.is_file() and p.suffix in INDEXED_SUFFIXES
    )


def _redocly_projects(base_dir: Path) -> list[ProjectSummary]:
    projects = []
    configs = sorted(
        p for name in REDOCLY_CONFIGS for p in base_dir.rglob(name) if p.is_file()
    )
    for config_path in configs:
        try:
            data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("Cannot read %s: %s", config_path, exc)
            continue
        apis = data.get("apis") if isinstance(data, dict) else None
        if not isinstance(apis, dict):
            logger.warning("No 'apis' section in %s", config_path)
            continue
        for name, entry in apis.items():
            if not isinstance(entry, dict) or not entry.get("root"):
                continue
            document = (config_path.parent / str(entry["root"])).resolve()
            try:
                root_path = document.relative_to(base_dir.resolve()).as_posix()
            except ValueError:
                logger.warning("Project %s root %s lies outside %s", name, document, base_dir)
                continue
            projects.append(
                ProjectSummary(
                    name=str(name),
                    root_path=root_path,
                    file_count=_count_files(document.parent) if document.parent.is_dir() else 0,
                )
            )
    return projects


def discover_projects(base_dir: Path) -> list[ProjectSummary]:
    """Return every project found under *base_dir*, sorted by name.

    Args:
        base_dir: Directory to search recursively.

    Returns:
        One :class:`ProjectSummary` per project. ``root_path`` is the path of
        the root document relative to *base_dir*.

    Raises:
        ProjectIndexError: If *base_dir* is not a directory.
    """
    if not base_dir.is_dir():
        raise ProjectIndexError(f"Not a directory: {base_dir}")

    projects = _redocly_projects(base_dir)
    known = {p.root_path for p in projects}
    for name in ROOT_DOCUMENTS:
        for document in sorted(base_dir.rglob(name)):
            root_path = document.relative_to(base_dir).as_posix()
            if root_path in known or not document.is_file():
                continue
            directory = document.parent
            projects.append(
                ProjectSummary(
                    name=directory.name if directory != base_dir else base_dir.resolve().name,
                    root_path=root_path,
                    file_count=_count_files(directory),
                )
            )
            known.add(root_path)
    return sorted(projects, key=lambda p: p.name)


# --- Indexing ---


def _project_root(root_path: str) -> str:
    root = posixpath.dirname(root_path.strip("/"))
    return "" if root == "." else root


async def _classify(
    api_path: str, ref: str, root: str, root_document: str, registry: FileRegistry
) -> Optional[EndpointLayout]:
    file_path = resolve_ref_path(ref, root_document, root)
    if file_path is None:
        logger.warning("Path %s references %s, which is not a file", api_path, ref)
        return None
    name = _strip_extension(posixpath.basename(file_path.rstrip("/")))

    if file_path in registry:
        try:
            text = await registry.read(file_path)
        except ContentReadError as exc:
            logger.warning("Skipping %s: %s", api_path, exc)
            return None
        methods = detect_methods(text)
        refs = {m: method_ref(text, m) for m in methods}
        if methods and all(refs.values()):
            method_files = {}
            for method, target in refs.items():
                resolved = resolve_ref_path(target, file_path, root)
                if resolved is not None:
                    method_files[method] = resolved
            return EndpointLayout(
                name=name,
                api_path=api_path,
                file_path=file_path,
                flat=False,
                methods=methods,
                method_files=method_files,
            )
        return EndpointLayout(
            name=name, api_path=api_path, file_path=file_path, methods=methods
        )

    for directory in (file_path.rstrip("/"), _strip_extension(file_path)):
        method_files = {}
        for path in registry:
            if posixpath.dirname(path) == directory:
                method = _METHOD_FILES.get(posixpath.basename(path))
                if method is not None:
                    method_files.setdefault(method, path)
        if method_files:
            methods = [m.value for m in HTTPMethod if m.value in method_files]
            return EndpointLayout(
                name=name,
                api_path=api_path,
                file_path=directory,
                flat=False,
                methods=methods,
                method_files={m: method_files[m] for m in methods},
            )

    logger.warning("Endpoint file not found for %s: %s", api_path, file_path)
    return None


async def build_project_index(
    root: str, registry: FileRegistry, root_document: str
) -> ProjectIndex:
    """Index the endpoints of a project whose files are already registered.

    Args:
        root: Registry prefix of the project (``""`` for none).
        registry: Every file of the project.
        root_document: Registry path of the root OpenAPI document.

    Raises:
        ProjectIndexError: If the root document cannot be read.
    """
    try:
        text = await registry.read(root_document)
    except ContentReadError as exc:
        raise ProjectIndexError(f"Root document not found: {root_document}") from exc

    paths = parse_paths(text)
    if not paths:
        logger.warning("No path references in %s", root_document)

    endpoints: dict[str, EndpointLayout] = {}
    for api_path, ref in paths.items():
        layout = await _classify(api_path, ref, root, root_document, registry)
        if layout is None:
            continue
        key = layout.name
        if key in endpoints:
            logger.warning("Endpoint name %s is used twice, keeping %s by path", key, api_path)
            key = api_path
        endpoints[key] = layout

    logger.debug("Indexed %d endpoints from %s", len(endpoints), root_document)
    return ProjectIndex(root=root, registry=registry, endpoints=endpoints)


async def index_local_project(base_dir: Path, root_path: str) -> ProjectIndex:
    """Register the files of a local project and index it.

    Args:
        base_dir: Directory the project was discovered in.
        root_path: Root document path relative to *base_dir*, as reported by
            :func:`discover_projects`.

    Raises:
        ProjectIndexError: If the root document does not exist.
    """
    document = base_dir / root_path
    if not document.is_file():
        raise ProjectIndexError(f"Root document not found: {document}")

    root = _project_root(root_path)
    directory = document.parent
    entries: dict[str, ContentHandle] = {}
    for path in sorted(directory.rglob("*")):
        if path.is_file() and path.suffix in INDEXED_SUFFIXES:
            entries[_join(root, path.relative_to(directory).as_posix())] = LocalFileHandle(path)

    registry = FileRegistry(entries)
    return await build_project_index(
        root, registry, _join(root, document.name)
    )


async def index_remote_project(
    base_url: str, root_path: str, client: httpx.AsyncClient
) -> ProjectIndex:
    """Register the files of a project served by a remote document service.

    The service lists files with ``GET {base_url}/files?root=<root>`` (a JSON
    array of project-relative paths) and serves each one with
    ``GET {base_url}/file?path=<registry path>``.

    Raises:
        ProjectIndexError: If the file list cannot be fetched or decoded.
    """
    base_url = base_url.rstrip("/")
    root = _project_root(root_path)
    try:
        response = await client.get(f"{base_url}/files", params={"root": root})
        response.raise_for_status()
        listing = response.json()
    except httpx.HTTPStatusError as exc:
        raise ProjectIndexError(
            f"HTTP {exc.response.status_code} listing files of {root_path}"
        ) from exc
    except httpx.RequestError as exc:
        raise ProjectIndexError(f"Cannot reach {base_url}: {exc}") from exc
    except ValueError as exc:
        raise ProjectIndexError(f"Invalid file list for {root_path}: {exc}") from exc

    if not isinstance(listing, list):
        raise ProjectIndexError(f"Invalid file list for {root_path}: expected a list")

    entries: dict[str, ContentHandle] = {}
    for relative in listing:
        key = _join(root, str(relative).lstrip("/"))
        entries[key] = RemoteFileHandle(client, f"{base_url}/file", params={"path": key})

    registry = FileRegistry(entries)
    return await build_project_index(
        root, registry, _join(root, posixpath.basename(root_path))
    )


def list_endpoints(index: ProjectIndex) -> list[EndpointSummary]:
    """Summaries of every endpoint of *index*, in root document order."""
    return [
        EndpointSummary(
            api_path=layout.api_path, file_path=layout.file_path, methods=layout.methods
        )
        for layout in index.endpoints.values()
    ]
