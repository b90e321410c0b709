"""Read operation metadata, parameters, request body and responses from a method block.

Every function here takes a method block as returned by
:func:`~opscribe.parser.methods.extract_method` (or the whole text of a
per-method file) and looks only at its column-0 keys::

    tags: [Users]
    summary: Get a user
    operationId: getUser
    parameters:
      - name: id
        in: path
        schema:
          type: integer
    requestBody: ...
    responses:
      '200':
        description: OK
        content:
          application/json:
            schema:
              $ref: '../schemas/User.yaml'

Schemas are not expanded here. :func:`parse_request_body` and
:func:`parse_responses` only return a :class:`SchemaLocator` telling the
schema tree builder where to start.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from opscribe.models import Parameter
from opscribe.parser.scanner import (
    LineKind,
    ScanLine,
    child_lines,
    direct_children,
    find_child,
    find_key,
    flow_ref,
    item_body,
    rebase,
    scalar_at,
    scan,
    sequence_values,
    unquote,
)

logger = logging.getLogger(__name__)

_STATUS_CODE_RE = re.compile(r"^\d{3}$")


@dataclass(frozen=True)
class OperationMetadata:
    """Operation-level scalars of a method block."""

    tag: str = ""
    summary: str = ""
    description: str = ""
    operation_id: str = ""
    deprecated: bool = False
    request_body_required: bool = False


@dataclass(frozen=True)
class SchemaLocator:
    """Where the schema of a request body or response lives.

    Exactly one of ``ref`` (a ``$ref`` string, relative to the method file)
    and ``inline`` (schema text re-based to column 0) is set, or neither when
    the body declares no schema.
    """

    ref: Optional[str] = None
    inline: Optional[str] = None

    @property
    def empty(self) -> bool:
        return self.ref is None and self.inline is None

    @property
    def schema_name(self) -> str:
        return schema_name_from_ref(self.ref) if self.ref else ""


@dataclass(frozen=True)
class RequestBody:
    required: bool = False
    schema: SchemaLocator = field(default_factory=SchemaLocator)


@dataclass(frozen=True)
class ResponseEntry:
    code: str
    description: str = "OK"
    schema: SchemaLocator = field(default_factory=SchemaLocator)


def schema_name_from_ref(ref: str) -> str:
    """Return the schema name a ``$ref`` points to.

    The name is the last ``/`` segment with ``.yaml``/``.yml`` removed. When
    the ref carries a JSON pointer fragment, the last segment of the fragment
    names the schema instead.

    Example::

        >>> schema_name_from_ref("../schemas/User.yaml")
        'User'
        >>> schema_name_from_ref("./common.yaml#/components/schemas/Error")
        'Error'
    """
    path, _, fragment = ref.partition("#")
    target = fragment.rstrip("/") if fragment.strip("/") else path
    name = target.rsplit("/", 1)[-1]
    for suffix in (".yaml", ".yml"):
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


def _to_bool(value: str) -> bool:
    return unquote(value).lower() == "true"


def _top(lines: list[ScanLine], key: str) -> Optional[int]:
    return find_key(lines, key, 0)


def _scalar(lines: list[ScanLine], key: str) -> str:
    """Scalar of a direct child *key* of the block, or ``""``."""
    index = find_child(lines, key)
    if index is None:
        return ""
    return scalar_at(lines, index)


def parse_metadata(block: str) -> OperationMetadata:
    """Return the tag, summary, operation id and flags of a method block.

    ``tag`` is the first entry of ``tags``. ``request_body_required`` comes
    from the ``required`` key directly under ``requestBody``.
    """
    lines = scan(block)
    tag = ""
    tags = _top(lines, "tags")
    if tags is not None:
        values = sequence_values(lines, tags)
        tag = values[0] if values else ""

    def top_scalar(key: str) -> str:
        index = _top(lines, key)
        return scalar_at(lines, index) if index is not None else ""

    return OperationMetadata(
        tag=tag,
        summary=top_scalar("summary"),
        description=top_scalar("description"),
        operation_id=top_scalar("operationId"),
        deprecated=_to_bool(top_scalar("deprecated")),
        request_body_required=parse_request_body(block).required,
    )


def parse_parameters(block: str) -> list[Parameter]:
    """Return the parameters declared under the top-level ``parameters`` key.

    Type, format and example are read from the entry itself or from its
    nested ``schema``. Path parameters are always required. Entries that are
    only a ``$ref`` to a shared parameter are skipped.
    """
    lines = scan(block)
    start = _top(lines, "parameters")
    if start is None:
        return []
    section = child_lines(lines, start)

    parameters = []
    for index in direct_children(section):
        if section[index].kind != LineKind.ITEM:
            continue
        entry = item_body(section, index)
        name = _scalar(entry, "name")
        if not name:
            ref = _scalar(entry, "$ref")
            if ref:
                logger.debug("Skipping referenced parameter %s", ref)
            continue

        schema: list[ScanLine] = []
        schema_index = find_child(entry, "schema")
        if schema_index is not None:
            schema = child_lines(entry, schema_index)

        def attr(key: str) -> str:
            return _scalar(entry, key) or (_scalar(schema, key) if schema else "")

        location = _scalar(entry, "in") or "query"
        parameters.append(
            Parameter(
                name=name,
                location=location,
                required=location == "path" or _to_bool(_scalar(entry, "required")),
                type=attr("type") or "string",
                format=attr("format"),
                description=_scalar(entry, "description"),
                example=attr("example"),
            )
        )
    return parameters


def _schema_line(lines: list[ScanLine]) -> Optional[tuple[list[ScanLine], int]]:
    """Locate ``content.<media>.schema``, or a ``schema`` key directly in *lines*.

    Schemas of ``headers`` and ``links`` entries never match.
    """
    content = find_child(lines, "content")
    if content is not None:
        media_types = child_lines(lines, content)
        for i in direct_children(media_types):
            media = child_lines(media_types, i)
            index = find_child(media, "schema") if media else None
            if index is not None:
                return media, index
        return None
    index = find_child(lines, "schema")
    return (lines, index) if index is not None else None


def _locate_schema(lines: list[ScanLine]) -> SchemaLocator:
    """Find the schema of a request body or response block."""
    located = _schema_line(lines)
    if located is not None:
        section, index = located
        line = section[index]
        if line.kind == LineKind.KEY:
            ref = flow_ref(line.value)
            return SchemaLocator(ref=ref) if ref else SchemaLocator()
        body = child_lines(section, index)
        ref = find_child(body, "$ref")
        if ref is not None:
            return SchemaLocator(ref=scalar_at(body, ref))
        text = rebase(body).strip("\n")
        return SchemaLocator(inline=text) if text.strip() else SchemaLocator()

    # A response that is itself only a $ref to a shared response.
    ref = find_child(lines, "$ref")
    if ref is not None:
        return SchemaLocator(ref=scalar_at(lines, ref))
    return SchemaLocator()


def parse_request_body(block: str) -> RequestBody:
    """Return the ``requestBody`` of a method block (empty when absent)."""
    lines = scan(block)
    start = _top(lines, "requestBody")
    if start is None:
        return RequestBody()
    body = child_lines(lines, start)
    return RequestBody(
        required=_to_bool(_scalar(body, "required")),
        schema=_locate_schema(body),
    )


def parse_responses(block: str) -> list[ResponseEntry]:
    """Return the status-code entries of the ``responses`` block in order.

    Only three-digit keys (quoted or not) count as status codes. A response
    without a ``description`` is described as ``OK``.
    """
    lines = scan(block)
    start = _top(lines, "responses")
    if start is None:
        return []
    section = child_lines(lines, start)

    entries = []
    for index in direct_children(section):
        line = section[index]
        if line.key is None or not _STATUS_CODE_RE.match(line.key):
            continue
        body = child_lines(section, index)
        entries.append(
            ResponseEntry(
                code=line.key,
                description=_scalar(body, "description") or "OK",
                schema=_locate_schema(body),
            )
        )
    return entries
