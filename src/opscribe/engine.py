"""Resolve one (endpoint, method) pair of an indexed project.

:class:`OperationResolver` drives the whole pipeline for one project:

1. locate the method block (split file, or slice of a flat file);
2. parse metadata, parameters, request body and responses;
3. expand the request and every response schema across files;
4. compute the default documentation;
5. overlay the companion document, if one exists.

Resolutions against the same project are serialised on the
:attr:`~opscribe.models.ProjectIndex.lock` of its index, so separate
resolvers of one project still take turns. With ``concurrency="reject"`` a resolution started
while another one runs fails with
:class:`~opscribe.exceptions.ConcurrentResolutionError` instead of waiting.

Typical usage::

    index = await index_local_project(Path("apis"), "Main/openapi.yaml")
    resolver = OperationResolver(index)
    description = await resolver.resolve("users", "get")
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
from typing import Any, Optional

from opscribe.docs.defaults import generate_defaults
from opscribe.docs.merger import merge_companion_text
from opscribe.exceptions import (
    ConcurrentResolutionError,
    ContentReadError,
    MissingFolderError,
    MissingMethodError,
    MissingMethodFileError,
    ResolutionError,
    ResolutionLimitError,
)
from opscribe.models import (
    EndpointLayout,
    OperationDescription,
    ProjectIndex,
    ResolverConfig,
    ResponseSchema,
    ResponseSummary,
)
from opscribe.parser.metadata import (
    parse_metadata,
    parse_parameters,
    parse_request_body,
    parse_responses,
)
from opscribe.parser.methods import extract_method
from opscribe.parser.schema import ResolutionContext, SchemaTreeBuilder

logger = logging.getLogger(__name__)


def companion_paths(
    layout: EndpointLayout, method: str, suffix: str = "_read.md"
) -> list[str]:
    """Registry paths where the companion document of an operation may live.

    Flat endpoints look for ``<endpoint>_<method>_read.md`` and then for
    ``<endpoint>_read.md`` next to the endpoint file; split endpoints for
    ``<method>_read.md`` next to the method file.
    """
    if layout.flat:
        directory = posixpath.dirname(layout.file_path)
        return [
            posixpath.join(directory, f"{layout.name}_{method}{suffix}"),
            posixpath.join(directory, f"{layout.name}{suffix}"),
        ]
    method_file = layout.method_files.get(method)
    if method_file is None:
        return []
    return [posixpath.join(posixpath.dirname(method_file), f"{method}{suffix}")]


class OperationResolver:
    """Resolves operations of one :class:`~opscribe.models.ProjectIndex`.

    Args:
        index: The indexed project. Only read, never modified.
        config: Resolver settings; defaults to :class:`ResolverConfig`.
    """

    def __init__(
        self, index: ProjectIndex, config: Optional[ResolverConfig] = None
    ) -> None:
        self.index = index
        self.config = config or ResolverConfig()

    @property
    def busy(self) -> bool:
        return self.index.lock.locked()

    async def resolve(
        self, endpoint: str, method: Optional[str] = None
    ) -> OperationDescription:
        """Resolve *method* of *endpoint* into an :class:`OperationDescription`.

        Args:
            endpoint: Endpoint name (``users_{id}``) or API path (``/users/{id}``).
            method: HTTP method, case-insensitive. Defaults to the first
                method of the endpoint.

        Raises:
            MissingFolderError: The endpoint has no layout in the index.
            MissingMethodError: The method is not defined for the endpoint.
            MissingMethodFileError: A split endpoint lacks the method's file.
            ResolutionLimitError: ``max_depth``, ``max_files`` or the timeout
                was exceeded.
            ConcurrentResolutionError: Another resolution is running and
                ``concurrency`` is ``"reject"``.
        """
        if self.config.concurrency == "reject" and self.index.lock.locked():
            raise ConcurrentResolutionError(
                f"A resolution is already running for project {self.index.root}"
            )
        async with self.index.lock:
            if self.config.timeout_seconds is None:
                return await self._resolve(endpoint, method)
            try:
                return await asyncio.wait_for(
                    self._resolve(endpoint, method), self.config.timeout_seconds
                )
            except asyncio.TimeoutError as exc:
                raise ResolutionLimitError(
                    f"Resolution of {endpoint} exceeded "
                    f"{self.config.timeout_seconds}s"
                ) from exc

    async def _load_block(
        self, layout: EndpointLayout, method: str, context: ResolutionContext
    ) -> tuple[str, str]:
        """Return the method block and the registry path it was read from."""
        if method not in layout.methods:
            raise MissingMethodError(
                f"Method {method.upper()} not found for {layout.api_path or layout.name}"
            )

        if layout.flat:
            try:
                text = await context.read(layout.file_path)
            except ContentReadError as exc:
                raise MissingFolderError(str(exc)) from exc
            block = extract_method(text, method)
            if block is None:
                raise MissingMethodError(
                    f"Method {method.upper()} not found in {layout.file_path}"
                )
            return block, layout.file_path

        path = layout.method_files.get(method)
        if path is None or path not in context.registry:
            raise MissingMethodFileError(
                f"Method file for {method.upper()} not found in {layout.name}"
            )
        try:
            return await context.read(path), path
        except ContentReadError as exc:
            raise MissingMethodFileError(str(exc)) from exc

    async def _resolve(
        self, endpoint: str, method: Optional[str]
    ) -> OperationDescription:
        layout = self.index.find_endpoint(endpoint)
        if layout is None:
            raise MissingFolderError(f"Endpoint not found: {endpoint}")
        if method is None:
            if not layout.methods:
                raise MissingMethodError(f"No methods defined for {endpoint}")
            method = layout.methods[0]
        method = method.lower()

        context = ResolutionContext(self.index.registry, self.index.root, self.config)
        block, method_path = await self._load_block(layout, method, context)
        logger.debug("Resolving %s %s from %s", method.upper(), endpoint, method_path)

        metadata = parse_metadata(block)
        builder = SchemaTreeBuilder(context)

        body = parse_request_body(block)
        request = await builder.build_locator(body.schema, method_path)

        responses = {}
        response_schemas = []
        for entry in parse_responses(block):
            responses[entry.code] = ResponseSummary(description=entry.description)
            if entry.schema.empty:
                continue
            tree = await builder.build_locator(entry.schema, method_path)
            response_schemas.append(
                ResponseSchema(
                    code=entry.code,
                    description=entry.description,
                    schema_name=tree.schema_name,
                    fields=tree.fields,
                )
            )

        defaults = generate_defaults(
            request.schema_name,
            request.fields,
            list(responses),
            response_schemas,
            self.config.default_source,
        )
        logger.debug(
            "Expanded %d schema levels over %d files",
            context.expansions,
            context.files_read,
        )

        description = OperationDescription(
            method=method.upper(),
            url=layout.api_path or "/" + layout.name.replace("_", "/"),
            tag=metadata.tag,
            summary=metadata.summary,
            description=metadata.description,
            operation_id=metadata.operation_id,
            deprecated=metadata.deprecated,
            request_body_required=metadata.request_body_required,
            parameters=parse_parameters(block),
            request_schema_name=request.schema_name,
            request_fields=defaults.request_fields,
            responses=responses,
            response_schemas=response_schemas,
            error_responses=defaults.error_responses,
            example_request=defaults.example_request,
            example_response=defaults.example_response,
            algorithm=defaults.algorithm,
        )
        return await self._merge_companion(layout, method, description)

    async def _merge_companion(
        self, layout: EndpointLayout, method: str, description: OperationDescription
    ) -> OperationDescription:
        for path in companion_paths(layout, method, self.config.companion_suffix):
            if path not in self.index.registry:
                continue
            try:
                text = await self.index.registry.read(path)
            except ContentReadError as exc:
                logger.warning("Cannot read companion document %s: %s", path, exc)
                return description
            logger.debug("Merging companion document %s", path)
            return merge_companion_text(text, description, origin=path)
        return description


async def resolve_operation(
    index: ProjectIndex,
    endpoint: str,
    method: Optional[str] = None,
    config: Optional[ResolverConfig] = None,
) -> OperationDescription:
    """Resolve one operation with a throwaway :class:`OperationResolver`."""
    return await OperationResolver(index, config).resolve(endpoint, method)


async def resolve_operation_payload(
    index: ProjectIndex,
    endpoint: str,
    method: Optional[str] = None,
    config: Optional[ResolverConfig] = None,
    resolver: Optional[OperationResolver] = None,
) -> dict[str, Any]:
    """Resolve one operation into the serving-layer payload.

    Returns the camelCase dump of the :class:`OperationDescription`, or
    ``{"error": message}`` when the resolution fails.
    """
    resolver = resolver or OperationResolver(index, config)
    try:
        description = await resolver.resolve(endpoint, method)
    except ResolutionError as exc:
        logger.info("Resolution of %s failed: %s", endpoint, exc)
        return {"error": str(exc)}
    return description.model_dump(by_alias=True)
