"""Isolate one HTTP method's block from an endpoint file.

Endpoints come in two layouts:

* **split** -- one file per method (``paths/users/get.yaml``). The whole file
  is the method block and no extraction is needed.
* **flat** -- every method of a path in one file, each under a column-0 key::

      get:
        summary: List users
      post:
        summary: Create a user

:func:`extract_method` slices a flat file and re-bases the slice to column 0,
so the result reads exactly like a split per-method file.
"""

from __future__ import annotations

from typing import Optional

from opscribe.models import HTTPMethod
from opscribe.parser.scanner import LineKind, base_indent, flow_ref, rebase, scan, unquote

_METHOD_NAMES = tuple(m.value for m in HTTPMethod)


def extract_method(text: str, method: str) -> Optional[str]:
    """Return the block of *method* from a flat endpoint file.

    Capturing starts after the column-0 ``<method>:`` key and stops at the
    next significant column-0 line or at end of input. The first non-blank
    captured line sets the base indentation, which is stripped from every
    captured line.

    Args:
        text: Full text of the flat endpoint file.
        method: HTTP method name, case-insensitive.

    Returns:
        The re-based block, ``""`` when the method key exists but has no
        body, or ``None`` when the method is not defined at all.
    """
    method = method.lower()
    lines = scan(text)

    start = None
    for i, line in enumerate(lines):
        if (
            line.indent == 0
            and line.kind in (LineKind.KEY, LineKind.BLOCK)
            and line.key == method
        ):
            start = i
            break
    if start is None:
        return None

    captured = []
    for line in lines[start + 1 :]:
        if line.indent == 0 and line.significant:
            break
        captured.append(line)

    # Comments count when picking the base indentation; blank lines do not.
    indent = next(
        (line.indent for line in captured if line.raw.strip()), None
    )
    if indent is None:
        return ""
    return rebase(captured, indent).rstrip("\n")


def detect_methods(text: str) -> list[str]:
    """Return the HTTP methods defined as column-0 keys of *text*.

    The result follows :class:`~opscribe.models.HTTPMethod` order regardless
    of the order in the file.
    """
    found = {
        line.key
        for line in scan(text)
        if line.indent == 0 and line.kind in (LineKind.KEY, LineKind.BLOCK)
    }
    return [name for name in _METHOD_NAMES if name in found]


def method_ref(text: str, method: str) -> Optional[str]:
    """Return the file a method of a flat file points to, if it is only a ``$ref``.

    Redocly-style split projects keep ``get: {$ref: users/get.yaml}`` or
    ``get:`` followed by a lone ``$ref`` line in the path file; such a method
    carries no operation of its own.
    """
    method = method.lower()
    for line in scan(text):
        if line.indent == 0 and line.kind == LineKind.KEY and line.key == method:
            return flow_ref(line.value)

    block = extract_method(text, method)
    if not block:
        return None
    lines = [line for line in scan(block) if line.significant]
    indent = base_indent(lines)
    top = [line for line in lines if line.indent == indent]
    if len(top) == 1 and top[0].key == "$ref" and top[0].value:
        return unquote(top[0].value)
    return None
