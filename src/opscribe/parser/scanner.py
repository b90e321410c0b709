"""Indentation-tracking line scanner for block-style OpenAPI YAML.

The resolver never builds a full YAML tree. OpenAPI documents are written in
a conventional block style, and every component only needs to answer
questions such as "which lines belong to the ``responses`` key" or "what is
the ``$ref`` directly under ``schema``". This module turns text into a flat
list of :class:`ScanLine` records tagged with a :class:`LineKind`, and offers
a handful of primitives over that list.

The one block rule used everywhere lives in :func:`block_end`: the block
opened by a line ends at the next *significant* line (not blank, not a
comment) whose indentation is less than or equal to the opener's.

Anchors, multi-document streams and multi-line flow collections are not
supported.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Optional

_KEY_RE = re.compile(
    r"""^(?P<key>"[^"]*"|'[^']*'|[^\s'"#\-][^#]*?|-[^\s][^#]*?)\s*:(?:\s+(?P<value>.*))?$"""
)
_FLOW_LIST_RE = re.compile(r"^\[(?P<body>.*)\]$")
_FLOW_REF_RE = re.compile(
    r"""\$ref['"]?\s*:\s*(?:'(?P<single>[^']*)'|"(?P<double>[^"]*)"|(?P<bare>[^\s,}]+))"""
)
_BLOCK_SCALAR_RE = re.compile(r"^[|>][-+]?\d*$")


class LineKind(str, enum.Enum):
    """Tag of one scanned line."""

    BLANK = "blank"
    COMMENT = "comment"
    KEY = "key"  # ``key: value``
    BLOCK = "block"  # ``key:`` opening a nested block
    ITEM = "item"  # ``- value`` or ``- key: value``
    TEXT = "text"  # continuation text, e.g. a block scalar line


@dataclass(frozen=True)
class ScanLine:
    """One line of input with its indentation and parsed key/value.

    For ``ITEM`` lines ``key``/``value`` describe what follows the dash, so
    ``- name: id`` has key ``name`` and value ``id`` while ``- required`` has
    no key and value ``required``.
    """

    number: int
    raw: str
    indent: int
    kind: LineKind
    key: Optional[str] = None
    value: Optional[str] = None

    @property
    def significant(self) -> bool:
        return self.kind not in (LineKind.BLANK, LineKind.COMMENT)


def unquote(value: str) -> str:
    """Strip one pair of matching single or double quotes."""
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _strip_comment(value: str) -> str:
    """Drop a trailing ``# comment`` from an unquoted scalar."""
    if value[:1] in ("'", '"'):
        return value
    idx = value.find(" #")
    return value[:idx].rstrip() if idx != -1 else value


def _split_key(text: str) -> tuple[Optional[str], Optional[str]]:
    match = _KEY_RE.match(text)
    if match is None:
        return None, None
    key = unquote(match.group("key"))
    value = match.group("value")
    if value is not None:
        value = _strip_comment(value.strip())
    return key, value or None


def scan_line(number: int, raw: str) -> ScanLine:
    """Tag a single line."""
    raw = raw.rstrip("\r")
    stripped = raw.lstrip(" \t")
    indent = len(raw) - len(stripped)
    stripped = stripped.rstrip()

    if not stripped:
        return ScanLine(number, raw, indent, LineKind.BLANK)
    if stripped.startswith("#"):
        return ScanLine(number, raw, indent, LineKind.COMMENT)

    if stripped == "-" or stripped.startswith("- "):
        rest = stripped[1:].strip()
        key, value = _split_key(rest)
        if key is not None:
            return ScanLine(number, raw, indent, LineKind.ITEM, key, value)
        return ScanLine(number, raw, indent, LineKind.ITEM, None, _strip_comment(rest) or None)

    key, value = _split_key(stripped)
    if key is None:
        return ScanLine(number, raw, indent, LineKind.TEXT, None, stripped)
    kind = LineKind.BLOCK if value is None else LineKind.KEY
    return ScanLine(number, raw, indent, kind, key, value)


def scan(text: str) -> list[ScanLine]:
    """Scan *text* into one :class:`ScanLine` per input line."""
    return [scan_line(i, raw) for i, raw in enumerate(text.split("\n"))]


# --- Block primitives ---


def block_end(lines: list[ScanLine], start: int) -> int:
    """Return the index one past the last line of the block opened at *start*.

    The block ends at the first significant line after *start* whose
    indentation is ``<=`` that of ``lines[start]``. Trailing blank and comment
    lines are not part of the block.

    A key whose sequence entries sit at its own indentation (``required:``
    followed by ``- id`` in the same column) keeps those entries in its block.
    """
    opener = lines[start]
    compact = False
    if opener.kind == LineKind.BLOCK:
        following = next((ln for ln in lines[start + 1 :] if ln.significant), None)
        compact = (
            following is not None
            and following.kind == LineKind.ITEM
            and following.indent == opener.indent
        )
    end = start + 1
    last = start
    while end < len(lines):
        line = lines[end]
        if line.significant:
            if line.indent < opener.indent:
                break
            if line.indent == opener.indent and not (
                compact and line.kind == LineKind.ITEM
            ):
                break
            last = end
        end += 1
    return last + 1


def child_lines(lines: list[ScanLine], start: int) -> list[ScanLine]:
    """Return the lines nested under ``lines[start]`` (the opener excluded)."""
    return lines[start + 1 : block_end(lines, start)]


def item_lines(lines: list[ScanLine], start: int) -> list[ScanLine]:
    """Return a sequence entry together with its nested lines."""
    return lines[start : block_end(lines, start)]


def base_indent(lines: list[ScanLine]) -> Optional[int]:
    """Indentation of the first significant line, or ``None`` if there is none."""
    for line in lines:
        if line.significant:
            return line.indent
    return None


def direct_children(lines: list[ScanLine]) -> list[int]:
    """Indexes of the significant lines sitting at the block's base indentation."""
    indent = base_indent(lines)
    return [
        i for i, line in enumerate(lines) if line.significant and line.indent == indent
    ]


def find_key(
    lines: list[ScanLine], key: str, indent: Optional[int] = None
) -> Optional[int]:
    """Index of the first ``KEY``/``BLOCK`` line named *key*.

    Args:
        lines: Lines to search.
        key: The mapping key to look for.
        indent: When given, only lines at exactly this indentation match.
    """
    for i, line in enumerate(lines):
        if line.kind not in (LineKind.KEY, LineKind.BLOCK) or line.key != key:
            continue
        if indent is None or line.indent == indent:
            return i
    return None


def find_child(lines: list[ScanLine], key: str) -> Optional[int]:
    """Index of *key* among the direct children of a block."""
    return find_key(lines, key, base_indent(lines))


def scalar_at(lines: list[ScanLine], index: int) -> str:
    """Return the scalar value of ``lines[index]`` as a single line of text.

    Quotes are removed. Literal (``|``) and folded (``>``) block scalars are
    joined with spaces from their nested lines.
    """
    value = lines[index].value or ""
    if _BLOCK_SCALAR_RE.match(value):
        parts = [
            line.raw.strip() for line in child_lines(lines, index) if line.raw.strip()
        ]
        return " ".join(parts)
    return unquote(value)


def flow_list(value: str) -> list[str]:
    """Parse a one-line flow sequence such as ``[a, 'b']``."""
    match = _FLOW_LIST_RE.match(value.strip())
    if match is None:
        return []
    return [unquote(part) for part in match.group("body").split(",") if part.strip()]


def flow_ref(value: Optional[str]) -> Optional[str]:
    """Return the ``$ref`` of a one-line flow mapping such as ``{ $ref: 'a.yaml' }``.

    Quoted references are taken whole, so braces inside them survive
    (``'./users_{id}.yaml'``).
    """
    match = _FLOW_REF_RE.search(value or "")
    if match is None:
        return None
    return match.group("single") or match.group("double") or match.group("bare")


def sequence_values(lines: list[ScanLine], index: int) -> list[str]:
    """Values of the sequence held by ``lines[index]``.

    Handles both the block form (``- a`` entries) and the one-line flow form
    (``[a, b]``).
    """
    line = lines[index]
    if line.kind == LineKind.KEY:
        return flow_list(line.value or "")
    values = []
    for child in child_lines(lines, index):
        if child.kind == LineKind.ITEM and child.key is None and child.value:
            values.append(unquote(child.value))
    return values


def rebase(lines: list[ScanLine], indent: Optional[int] = None) -> str:
    """Re-join *lines* into text shifted left by *indent* columns.

    *indent* defaults to the indentation of the first significant line. Only
    leading whitespace is removed; lines shorter than *indent*, or whose
    leading columns are not all whitespace, are kept unchanged.
    """
    if indent is None:
        indent = base_indent(lines) or 0
    out = []
    for line in lines:
        raw = line.raw
        if indent > 0 and len(raw) >= indent and raw[:indent].isspace():
            out.append(raw[indent:])
        else:
            out.append(raw)
    return "\n".join(out)


def item_body(lines: list[ScanLine], index: int) -> list[ScanLine]:
    """Return a sequence entry re-scanned as a plain mapping.

    The dash of ``lines[index]`` is blanked out, so ``- name: id`` followed
    by ``  in: query`` becomes two sibling ``KEY`` lines at the same
    indentation and the usual block primitives apply to the entry.
    """
    entry = item_lines(lines, index)
    first = entry[0]
    raw = first.raw[: first.indent] + " " + first.raw[first.indent + 1 :]
    return [scan_line(first.number, raw)] + entry[1:]
