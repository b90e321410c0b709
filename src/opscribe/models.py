"""Canonical Pydantic models shared across all opscribe modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into three groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`ResolverConfig`, :class:`OutputConfig`, and :class:`GlobalConfig`.

**Project models** -- produced by the indexer and read-only during a
resolution:
    :class:`HTTPMethod`, :class:`EndpointLayout`, :class:`ProjectIndex`,
    :class:`ProjectSummary`, and :class:`EndpointSummary`.

**Resolution output models** -- produced by the engine and handed to the
rendering boundary:
    :class:`SchemaField`, :class:`Parameter`, :class:`ResponseSummary`,
    :class:`ResponseSchema`, :class:`ErrorResponse`, :class:`Dependency`,
    and :class:`OperationDescription`.

Output models serialise with camelCase aliases (``operationId``,
``requestFields``, ``refName``) so that ``model_dump(by_alias=True)`` yields the
payload shape the serving layer expects. ``SchemaField`` and
``OperationDescription`` are frozen: a description is assembled once and never
mutated afterwards.
"""

from __future__ import annotations

import asyncio
import enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from pydantic.alias_generators import to_camel

from opscribe.store import FileRegistry


# --- Config ---


class ResolverConfig(BaseModel):
    """Settings that bound and shape a single operation resolution.

    The limits guarantee that a pathological schema graph fails one
    resolution instead of hanging the process.
    """

    max_depth: int = Field(
        default=32, ge=1, description="Maximum nesting depth of expanded fields"
    )
    max_files: int = Field(
        default=256, ge=1, description="Maximum distinct files read per resolution"
    )
    concurrency: Literal["queue", "reject"] = Field(
        default="queue",
        description="What to do with a second resolution on a busy project",
    )
    default_source: str = Field(
        default="Direct input",
        description="Source annotation given to request fields with none",
    )
    companion_suffix: str = Field(
        default="_read.md", description="File suffix of companion documents"
    )
    timeout_seconds: Optional[float] = Field(
        default=None, gt=0, description="Wall-clock limit for one resolution"
    )


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/opscribe/config.json``.

    Loaded and saved by :func:`~opscribe.config.load_global_config` and
    :func:`~opscribe.config.save_global_config`. Fields here have the
    lowest precedence and can be overridden by project config, environment
    variables, or CLI flags. See :func:`~opscribe.config.resolve_config`
    for the full precedence chain.
    """

    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Project models ---


class HTTPMethod(str, enum.Enum):
    """HTTP methods recognised as top-level keys of an endpoint file."""

    GET = "get"
    POST = "post"
    PUT = "put"
    DELETE = "delete"
    PATCH = "patch"
    HEAD = "head"
    OPTIONS = "options"
    TRACE = "trace"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EndpointLayout(_CamelModel):
    """How one endpoint is laid out on disk.

    A **flat** layout keeps every method in ``file_path``; a **split** layout
    maps each method to its own file in ``method_files``.
    """

    name: str
    api_path: str
    file_path: str
    flat: bool = True
    methods: list[str] = Field(default_factory=list)
    method_files: dict[str, str] = Field(default_factory=dict)


class ProjectIndex(BaseModel):
    """Read-only view of one indexed project.

    Built once per project selection by :mod:`opscribe.indexer` and shared by
    reference with every resolution against that project.

    Resolutions against the project are serialised on :attr:`lock`, whichever
    resolver runs them.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    root: str
    registry: FileRegistry
    endpoints: dict[str, EndpointLayout] = Field(default_factory=dict)

    _lock: asyncio.Lock = PrivateAttr(default_factory=asyncio.Lock)

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock

    def find_endpoint(self, key: str) -> Optional[EndpointLayout]:
        """Look up an endpoint by name, falling back to its API path."""
        if key in self.endpoints:
            return self.endpoints[key]
        for layout in self.endpoints.values():
            if layout.api_path == key:
                return layout
        return None


class ProjectSummary(_CamelModel):
    """One discovered project, as listed by ``opscribe projects``."""

    name: str
    root_path: str
    file_count: int = 0


class EndpointSummary(_CamelModel):
    """One indexed endpoint, as listed by ``opscribe endpoints``."""

    api_path: str
    file_path: str
    methods: list[str] = Field(default_factory=list)


# --- Resolution output models ---


class SchemaField(_CamelModel):
    """One node of an expanded field tree.

    ``depth`` is 0 for properties of the root schema and grows by exactly one
    per nesting level. ``required`` reflects the ``required`` list of the
    schema that declares the property, never an ancestor's. For arrays the
    field keeps type ``array`` and ``children`` describe one element.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    name: str
    type: str = ""
    format: str = ""
    description: str = ""
    example: str = ""
    required: bool = False
    depth: int = 0
    ref_name: Optional[str] = None
    is_array: bool = False
    children: list[SchemaField] = Field(default_factory=list)
    source: str = ""

    @property
    def has_children(self) -> bool:
        return bool(self.children)


class Parameter(_CamelModel):
    """A query, path, header or cookie parameter of an operation."""

    name: str
    location: str = Field(default="query", alias="in")
    required: bool = False
    type: str = "string"
    format: str = ""
    description: str = ""
    example: str = ""


class ResponseSummary(_CamelModel):
    description: str = "OK"


class ResponseSchema(_CamelModel):
    """A response status code together with its expanded body schema."""

    code: str
    description: str = "OK"
    schema_name: str = ""
    fields: list[SchemaField] = Field(default_factory=list)


class ErrorResponse(_CamelModel):
    code: str
    description: str


class Dependency(_CamelModel):
    """An external call the operation depends on, as authored in a companion document."""

    name: str
    description: str = ""
    method: str = ""
    url: str = ""
    when: str = ""
    input_params: str = ""
    output_fields: str = ""


class OperationDescription(_CamelModel):
    """The fully resolved and merged description of one operation.

    Produced by :class:`~opscribe.engine.OperationResolver` and treated as
    read-only by every consumer.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    method: str
    url: str
    tag: str = ""
    summary: str = ""
    description: str = ""
    operation_id: str = ""
    deprecated: bool = False
    request_body_required: bool = False
    parameters: list[Parameter] = Field(default_factory=list)
    request_schema_name: str = ""
    request_fields: list[SchemaField] = Field(default_factory=list)
    responses: dict[str, ResponseSummary] = Field(default_factory=dict)
    response_schemas: list[ResponseSchema] = Field(default_factory=list)
    error_responses: list[ErrorResponse] = Field(default_factory=list)
    example_request: str = ""
    example_response: str = ""
    algorithm: str = ""
    dependencies: list[Dependency] = Field(default_factory=list)
    notes: str = ""
