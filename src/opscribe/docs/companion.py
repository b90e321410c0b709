"""Parse the human-authored parts of a companion document.

A companion document (``<endpoint>_read.md``) is the Markdown description of
an operation that people edit by hand. Regenerating the operation must keep
those edits, so :func:`parse_companion` extracts them:

* source annotations -- last column of the ``### Request Body`` table;
* external dependencies -- ``## 4. External dependencies`` (older documents
  number it ``## 5.``), one ``### 4.N `name` - description`` subsection each;
* the ``### Algorithm`` code block;
* notes -- ``## 7. Notes`` (older: ``## 9.``), where ``None.`` means none;
* the ``### Request example`` / ``### Response example`` JSON blocks.

Every section is optional. Only structurally broken Markdown (an unterminated
code fence) raises :class:`~opscribe.exceptions.CompanionDocumentError`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from opscribe.exceptions import CompanionDocumentError
from opscribe.models import Dependency

NONE_SENTINEL = "None."

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.*?)\s*$")
_FENCE_RE = re.compile(r"^\s*```")
_SEPARATOR_RE = re.compile(r"^\|[\s:|-]+\|$")
_TREE_PREFIX_RE = re.compile(r"^[│├└─\s]+")

_REQUEST_BODY_RE = re.compile(r"^Request Body$", re.IGNORECASE)
_DEPENDENCIES_RE = re.compile(r"^(?:4|5)\.\s*External dependencies$", re.IGNORECASE)
_DEPENDENCY_RE = re.compile(r"^(?:4|5)\.\d+\s+`([^`]+)`\s*(?:—|-)\s*(.*)$")
_ALGORITHM_RE = re.compile(r"^Algorithm$", re.IGNORECASE)
_NOTES_RE = re.compile(r"^(?:7|9)\.\s*Notes$", re.IGNORECASE)
_REQUEST_EXAMPLE_RE = re.compile(r"^Request example$", re.IGNORECASE)
_RESPONSE_EXAMPLE_RE = re.compile(r"^Response example$", re.IGNORECASE)
_INPUT_PARAMS_RE = re.compile(r"^Input parameters$", re.IGNORECASE)
_OUTPUT_FIELDS_RE = re.compile(r"^Response fields$", re.IGNORECASE)

_EMPTY_SOURCES = ("", "—", "-")


@dataclass(frozen=True)
class _Heading:
    index: int
    level: int
    title: str


@dataclass
class CompanionDocument:
    """Authored content recovered from a companion document.

    Empty strings and empty collections mean the section was absent.
    """

    sources: dict[str, str] = field(default_factory=dict)
    dependencies: list[Dependency] = field(default_factory=list)
    algorithm: str = ""
    notes: str = ""
    example_request: str = ""
    example_response: str = ""


class _Outline:
    """Headings of a Markdown text, ignoring ``#`` lines inside code fences."""

    def __init__(self, text: str) -> None:
        self.lines = text.replace("\r\n", "\n").split("\n")
        self.headings: list[_Heading] = []
        fence_start: Optional[int] = None
        for i, line in enumerate(self.lines):
            if _FENCE_RE.match(line):
                fence_start = i if fence_start is None else None
                continue
            if fence_start is not None:
                continue
            match = _HEADING_RE.match(line)
            if match:
                self.headings.append(_Heading(i, len(match.group(1)), match.group(2)))
        if fence_start is not None:
            raise CompanionDocumentError(
                f"Unterminated code block starting at line {fence_start + 1}"
            )

    def find(
        self,
        pattern: re.Pattern[str],
        level: Optional[int] = None,
        within: Optional[tuple[int, int]] = None,
    ) -> list[tuple[_Heading, re.Match[str]]]:
        found = []
        for heading in self.headings:
            if level is not None and heading.level != level:
                continue
            if within is not None and not within[0] <= heading.index < within[1]:
                continue
            match = pattern.match(heading.title)
            if match:
                found.append((heading, match))
        return found

    def span(self, heading: _Heading) -> tuple[int, int]:
        """Line range under *heading*, up to the next heading of equal or higher rank."""
        end = len(self.lines)
        for other in self.headings:
            if other.index > heading.index and other.level <= heading.level:
                end = other.index
                break
        return heading.index + 1, end

    def body(self, heading: _Heading) -> list[str]:
        start, end = self.span(heading)
        return self.lines[start:end]

    def first(
        self, pattern: re.Pattern[str], level: Optional[int] = None
    ) -> Optional[_Heading]:
        found = self.find(pattern, level)
        return found[0][0] if found else None


def _fenced_block(lines: list[str]) -> Optional[str]:
    """Content of the first fenced code block in *lines*, stripped."""
    start = None
    for i, line in enumerate(lines):
        if _FENCE_RE.match(line):
            if start is None:
                start = i
            else:
                return "\n".join(lines[start + 1 : i]).strip()
    return None


def _table_rows(lines: list[str], header: bool = False) -> list[str]:
    """Rows of the first Markdown table in *lines*.

    The separator rule is always dropped; the header row only when *header*
    is false.
    """
    rows: list[str] = []
    for line in lines:
        stripped = line.strip()
        if stripped.startswith("|"):
            rows.append(stripped)
        elif rows:
            break
    if len(rows) >= 2 and _SEPARATOR_RE.match(rows[1]):
        return rows[:1] + rows[2:] if header else rows[2:]
    return []


def _cells(row: str) -> list[str]:
    return [cell.strip() for cell in row.split("|")][1:-1]


def _parse_sources(outline: _Outline) -> dict[str, str]:
    heading = outline.first(_REQUEST_BODY_RE, level=3)
    if heading is None:
        return {}
    sources = {}
    for row in _table_rows(outline.body(heading)):
        cells = _cells(row)
        if len(cells) < 6:
            continue
        name = _TREE_PREFIX_RE.sub("", cells[0].replace("`", "")).strip()
        source = cells[5]
        if name and source not in _EMPTY_SOURCES:
            sources[name] = source
    return sources


def _parse_dependency(
    outline: _Outline, heading: _Heading, match: re.Match[str]
) -> Dependency:
    body = outline.body(heading)
    attrs = {}
    for row in _table_rows(body, header=True):
        cells = _cells(row)
        if len(cells) >= 2:
            attrs[cells[0].strip("*").lower()] = cells[1]

    def table_text(pattern: re.Pattern[str]) -> str:
        for sub, _ in outline.find(pattern, level=4, within=outline.span(heading)):
            return "\n".join(_table_rows(outline.body(sub)))
        return ""

    return Dependency(
        name=match.group(1),
        description=match.group(2).strip(),
        method=attrs.get("method", "").replace("`", ""),
        url=attrs.get("url", "").replace("`", ""),
        when=attrs.get("when", ""),
        input_params=table_text(_INPUT_PARAMS_RE),
        output_fields=table_text(_OUTPUT_FIELDS_RE),
    )


def _parse_dependencies(outline: _Outline) -> list[Dependency]:
    heading = outline.first(_DEPENDENCIES_RE, level=2)
    if heading is None:
        return []
    span = outline.span(heading)
    body = "\n".join(outline.lines[span[0] : span[1]]).strip()
    if body.startswith(NONE_SENTINEL):
        return []
    return [
        _parse_dependency(outline, sub, match)
        for sub, match in outline.find(_DEPENDENCY_RE, level=3, within=span)
    ]


def _parse_notes(outline: _Outline) -> str:
    heading = outline.first(_NOTES_RE, level=2)
    if heading is None:
        return ""
    notes = "\n".join(outline.body(heading)).strip()
    return "" if notes == NONE_SENTINEL else notes


def _fenced_under(outline: _Outline, pattern: re.Pattern[str]) -> str:
    heading = outline.first(pattern, level=3)
    if heading is None:
        return ""
    return _fenced_block(outline.body(heading)) or ""


def parse_companion(text: str) -> CompanionDocument:
    """Extract the authored sections of a companion document.

    Raises:
        CompanionDocumentError: If the document has an unterminated code
            fence, which makes every section boundary after it ambiguous.
    """
    outline = _Outline(text)
    return CompanionDocument(
        sources=_parse_sources(outline),
        dependencies=_parse_dependencies(outline),
        algorithm=_fenced_under(outline, _ALGORITHM_RE),
        notes=_parse_notes(outline),
        example_request=_fenced_under(outline, _REQUEST_EXAMPLE_RE),
        example_response=_fenced_under(outline, _RESPONSE_EXAMPLE_RE),
    )
