"""Content handles and the immutable file registry.

A resolution never touches the filesystem or the network directly. It reads
through *content handles* looked up in a :class:`FileRegistry`, a read-only
mapping of registry path (``<project root>/<relative path>``, always with
forward slashes) to handle. The registry is built once by
:mod:`opscribe.indexer` and shared by reference with every resolution.

Two handle kinds exist:

* :class:`LocalFileHandle` -- a file on the local disk, read in a worker
  thread so the event loop is never blocked.
* :class:`RemoteFileHandle` -- a document served over HTTP by a remote
  document service, read with :class:`httpx.AsyncClient`.

Both raise :class:`~opscribe.exceptions.ContentReadError` on failure.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Protocol

import httpx

from opscribe.exceptions import ContentReadError


class ContentHandle(Protocol):
    """Anything that can asynchronously produce the text of one document."""

    async def read(self) -> str: ...


class LocalFileHandle:
    """Handle for a UTF-8 text file on the local filesystem.

    Args:
        path: Absolute or working-directory-relative path of the file.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    async def read(self) -> str:
        try:
            return await asyncio.to_thread(self.path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ContentReadError(f"Failed to read {self.path}: {exc}") from exc

    def __repr__(self) -> str:
        return f"LocalFileHandle({str(self.path)!r})"


class RemoteFileHandle:
    """Handle for a document held by a remote document service.

    The service is expected to answer ``GET <url>`` with the raw document
    text. The shared client is owned by the caller, which keeps connection
    pooling across every handle of one project.

    Args:
        client: An open :class:`httpx.AsyncClient`.
        url: Absolute URL of the document, or a path relative to the
            client's ``base_url``.
        params: Optional query parameters sent with the request.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        params: dict[str, str] | None = None,
    ) -> None:
        self.client = client
        self.url = url
        self.params = params or {}

    async def read(self) -> str:
        try:
            response = await self.client.get(self.url, params=self.params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ContentReadError(
                f"HTTP {exc.response.status_code} fetching {self.url}"
            ) from exc
        except httpx.RequestError as exc:
            raise ContentReadError(f"Failed to fetch {self.url}: {exc}") from exc
        return response.text

    def __repr__(self) -> str:
        return f"RemoteFileHandle({self.url!r}, params={self.params!r})"


class FileRegistry(Mapping[str, ContentHandle]):
    """Immutable mapping of registry path to :class:`ContentHandle`.

    Iteration follows insertion order, which the basename fallback of
    :func:`~opscribe.parser.refs.lookup_ref` relies on.

    Example::

        registry = FileRegistry({
            "Main/openapi.yaml": LocalFileHandle(Path("apis/Main/openapi.yaml")),
        })
        text = await registry.read("Main/openapi.yaml")
    """

    def __init__(self, entries: Mapping[str, ContentHandle] | None = None) -> None:
        self._entries = MappingProxyType(dict(entries or {}))

    def __getitem__(self, path: str) -> ContentHandle:
        return self._entries[path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"FileRegistry({len(self._entries)} files)"

    async def read(self, path: str) -> str:
        """Read the document registered under *path*.

        Raises:
            ContentReadError: If *path* is not registered or cannot be read.
        """
        handle = self._entries.get(path)
        if handle is None:
            raise ContentReadError(f"File not registered: {path}")
        return await handle.read()
