"""Extract the API path -> file reference mapping from a root OpenAPI document.

Multi-file projects keep only references in the root document::

    paths:
      /users:
        $ref: './paths/users.yaml'
      /users/{id}: { $ref: './paths/users_{id}.yaml' }

:func:`parse_paths` walks the ``paths`` section with the line scanner and
returns those references in declaration order. Inline path items (with
operations written directly in the root document) yield no entry unless a
``$ref`` appears somewhere inside them.
"""

from __future__ import annotations

import re

from opscribe.parser.scanner import LineKind, flow_ref, scan

_BARE_REF_RE = re.compile(r"""^['"]?([^\s'"#]+)['"]?""")


def parse_paths(text: str) -> dict[str, str]:
    """Return the ordered mapping of API path to file reference.

    The section starts at the first ``paths:`` key and ends at the next
    significant line indented no deeper than that key. A path key with a
    ``$ref`` on the same line is recorded immediately. Otherwise the path stays
    open and every later ``$ref:`` line (at any depth) is bound to it until the
    next path key, so the last one wins.

    Args:
        text: Root document text.

    Returns:
        Mapping of API path (e.g. ``"/users"``) to reference string (e.g.
        ``"./paths/users.yaml"``). Fragments (``#/...``) are dropped.

    Example::

        >>> parse_paths("paths:\\n  /a:\\n    $ref: './x.yaml'\\n")
        {'/a': './x.yaml'}
    """
    result: dict[str, str] = {}
    paths_indent: int | None = None
    current: str | None = None

    for line in scan(text):
        if not line.significant:
            continue

        if paths_indent is None:
            if line.key == "paths" and line.kind in (LineKind.KEY, LineKind.BLOCK):
                paths_indent = line.indent
            continue

        if line.indent <= paths_indent:
            break

        if line.kind in (LineKind.KEY, LineKind.BLOCK) and line.key.startswith("/"):
            current = line.key
            inline = (flow_ref(line.value) or "").split("#", 1)[0]
            if inline:
                result[current] = inline
                current = None
            continue

        if current is not None and line.key == "$ref" and line.value:
            match = _BARE_REF_RE.match(line.value)
            if match:
                result[current] = match.group(1)

    return result
