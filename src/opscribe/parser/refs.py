"""Turn ``$ref`` strings into registry paths.

A reference is resolved against the file that contains it:

* ``./x.yaml`` and ``../x.yaml`` -- relative to the containing file's
  directory, one directory popped per ``../`` segment. Popping stops at the
  project root and never escapes above it.
* ``/x.yaml`` -- relative to the project root.
* ``x.yaml`` -- relative to the containing file's directory.

The computed path is looked up exactly in the
:class:`~opscribe.store.FileRegistry`. On a miss, :func:`lookup_ref` falls
back to any registered path ending in ``/<basename>``; when several match,
the last one in registry order wins. This keeps relocated files working but
can pick the wrong file when two schemas share a basename.
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Mapping
from typing import Any, Optional

logger = logging.getLogger(__name__)


def _segments(path: str) -> list[str]:
    return [part for part in path.split("/") if part]


def resolve_ref_path(
    ref: str, containing: str, root: Optional[str] = None
) -> Optional[str]:
    """Compute the registry path *ref* points to, without looking it up.

    Args:
        ref: The ``$ref`` value. A ``#/...`` fragment is ignored.
        containing: Registry path of the file holding the reference.
        root: Project root prefix of every registry path. When omitted, the
            first segment of *containing* acts as the root.

    Returns:
        The candidate registry path, or ``None`` for a fragment-only ref
        such as ``#/components/schemas/User``.

    Example::

        >>> resolve_ref_path("../common/Error.yaml", "/proj/paths/foo/get.yaml")
        '/proj/paths/common/Error.yaml'
        >>> resolve_ref_path("/schemas/User.yaml", "Main/paths/users.yaml", "Main")
        'Main/schemas/User.yaml'
    """
    target = ref.split("#", 1)[0].strip()
    if not target:
        return None

    absolute = containing.startswith("/")
    directory = _segments(posixpath.dirname(containing))
    if root is not None:
        root_parts = _segments(root)
    else:
        root_parts = directory[:1]

    if target.startswith("/"):
        parts = root_parts + _segments(target)
    else:
        parts = list(directory)
        floor = len(root_parts) if parts[: len(root_parts)] == root_parts else 0
        for segment in target.split("/"):
            if segment in ("", "."):
                continue
            if segment == "..":
                if len(parts) > floor:
                    parts.pop()
                continue
            parts.append(segment)

    joined = "/".join(parts)
    return "/" + joined if absolute else joined


def lookup_ref(
    ref: str,
    containing: str,
    registry: Mapping[str, Any],
    root: Optional[str] = None,
) -> Optional[str]:
    """Return the registry path *ref* resolves to, or ``None`` if unresolved.

    The exact candidate from :func:`resolve_ref_path` is tried first, then
    the basename fallback described in the module docstring.
    """
    candidate = resolve_ref_path(ref, containing, root)
    if candidate is None:
        return None
    if candidate in registry:
        return candidate

    suffix = "/" + posixpath.basename(candidate)
    found = None
    for path in registry:
        if path.endswith(suffix):
            found = path
    if found is not None:
        logger.debug("Resolved %s from %s by basename to %s", ref, containing, found)
    return found
