"""Expand schema documents into field trees, following ``$ref`` across files.

:class:`SchemaTreeBuilder` walks the ``properties`` of a schema document and
produces one :class:`~opscribe.models.SchemaField` per property, recursing
into referenced schemas (another file read, hence ``async``), inline object
properties and array ``items``.

Cycle protection is carried by :class:`SchemaBranch`, an immutable value
holding the names of the schemas being expanded on the current branch. Each
recursive call receives its own copy, so sibling properties never see each
other's markers. A ``$ref`` whose schema name is already in flight becomes a
leaf field carrying ``ref_name`` and no children.

Per-branch markers alone would let a densely connected graph expand the same
schema once per path through it. :class:`ResolutionContext` therefore also
keeps the children of every referenced schema it has expanded, keyed by
schema name and file, and later references reuse them re-based to their own
depth. Each distinct schema is expanded at most once per resolution.

:class:`ResolutionContext` also holds the per-resolution limits
(``max_depth``, ``max_files``) and memoises file reads within one resolution.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from opscribe.exceptions import ContentReadError, ResolutionLimitError
from opscribe.models import ResolverConfig, SchemaField
from opscribe.parser.metadata import SchemaLocator, schema_name_from_ref
from opscribe.parser.refs import lookup_ref
from opscribe.parser.scanner import (
    LineKind,
    ScanLine,
    child_lines,
    direct_children,
    find_child,
    flow_ref,
    item_body,
    rebase,
    scalar_at,
    scan,
    sequence_values,
)
from opscribe.store import FileRegistry

logger = logging.getLogger(__name__)

_COMPOSITIONS = ("allOf", "oneOf", "anyOf")


@dataclass(frozen=True)
class SchemaBranch:
    """Position of one expansion call in the schema graph.

    Attributes:
        file_path: Registry path of the document being expanded; relative
            refs inside it resolve against this path.
        depth: Depth given to the fields produced at this level.
        in_flight: Names of the schemas being expanded on this branch.
        schema_name: Name of the schema at this level (``""`` when inline).
    """

    file_path: str
    depth: int = 0
    in_flight: frozenset[str] = frozenset()
    schema_name: str = ""

    @classmethod
    def root(cls, file_path: str, schema_name: str = "") -> SchemaBranch:
        names = frozenset({schema_name}) if schema_name else frozenset()
        return cls(file_path=file_path, in_flight=names, schema_name=schema_name)

    def descend(self, schema_name: str, file_path: str) -> SchemaBranch:
        """Branch for the children of a property referencing *schema_name*."""
        return SchemaBranch(
            file_path=file_path,
            depth=self.depth + 1,
            in_flight=self.in_flight | {schema_name},
            schema_name=schema_name,
        )

    def deeper(self) -> SchemaBranch:
        """Branch for the children of an inline object in the same file."""
        return SchemaBranch(
            file_path=self.file_path,
            depth=self.depth + 1,
            in_flight=self.in_flight,
            schema_name="",
        )

    def merge(self, schema_name: str, file_path: str) -> SchemaBranch:
        """Branch for a schema composed into this level (same depth)."""
        return SchemaBranch(
            file_path=file_path,
            depth=self.depth,
            in_flight=self.in_flight | {schema_name},
            schema_name=self.schema_name or schema_name,
        )


@dataclass
class SchemaTree:
    """Result of one expansion: the ordered fields and the schema's name."""

    fields: list[SchemaField] = field(default_factory=list)
    schema_name: str = ""


class ResolutionContext:
    """Limits and read memo shared by every expansion of one resolution.

    Never shared between resolutions: create one per
    :meth:`~opscribe.engine.OperationResolver.resolve` call.

    Args:
        registry: The project's file registry.
        root: Project root prefix of the registry paths.
        config: Resolver settings providing ``max_depth`` and ``max_files``.
    """

    def __init__(
        self,
        registry: FileRegistry,
        root: Optional[str] = None,
        config: Optional[ResolverConfig] = None,
    ) -> None:
        self.registry = registry
        self.root = root
        self.config = config or ResolverConfig()
        self.expansions = 0
        self._texts: dict[str, str] = {}
        self._subtrees: dict[tuple[str, str], tuple[int, list[SchemaField]]] = {}

    @property
    def files_read(self) -> int:
        return len(self._texts)

    async def read(self, path: str) -> str:
        """Read *path* once per resolution, counting it against ``max_files``.

        Raises:
            ResolutionLimitError: If reading a new file would exceed the limit.
            ContentReadError: If the file is not registered or unreadable.
        """
        if path in self._texts:
            return self._texts[path]
        if len(self._texts) >= self.config.max_files:
            raise ResolutionLimitError(
                f"Resolution touched more than {self.config.max_files} files "
                f"(next: {path})"
            )
        text = await self.registry.read(path)
        self._texts[path] = text
        return text

    def enter(self, branch: SchemaBranch) -> None:
        """Count one expansion call and enforce ``max_depth``."""
        self.expansions += 1
        if branch.depth > self.config.max_depth:
            raise ResolutionLimitError(
                f"Schema nesting deeper than {self.config.max_depth} levels "
                f"in {branch.file_path}"
            )

    def cached_fields(
        self, name: str, path: str, depth: int
    ) -> Optional[list[SchemaField]]:
        """Fields of an already expanded schema, re-based to *depth*.

        Raises:
            ResolutionLimitError: If the re-based fields nest deeper than
                ``max_depth``.
        """
        entry = self._subtrees.get((name, path))
        if entry is None:
            return None
        base, fields = entry
        shifted = _shift_depth(fields, depth - base)
        if _deepest(shifted, depth) > self.config.max_depth:
            raise ResolutionLimitError(
                f"Schema nesting deeper than {self.config.max_depth} levels "
                f"in {path}"
            )
        return shifted

    def remember_fields(
        self, name: str, path: str, depth: int, fields: list[SchemaField]
    ) -> None:
        self._subtrees[(name, path)] = (depth, fields)


def _shift_depth(fields: list[SchemaField], delta: int) -> list[SchemaField]:
    if delta == 0:
        return list(fields)
    return [
        f.model_copy(
            update={"depth": f.depth + delta, "children": _shift_depth(f.children, delta)}
        )
        for f in fields
    ]


def _deepest(fields: list[SchemaField], floor: int) -> int:
    """Greatest ``depth`` in a field tree, or *floor* when it is empty."""
    deepest = floor
    for f in fields:
        deepest = max(deepest, f.depth, _deepest(f.children, f.depth))
    return deepest


def _inline_ref(line: ScanLine) -> Optional[str]:
    """``$ref`` of a one-line flow mapping such as ``user: { $ref: u.yaml }``."""
    if line.kind != LineKind.KEY:
        return None
    return flow_ref(line.value)


def _ref_of(lines: list[ScanLine]) -> Optional[str]:
    """Direct ``$ref`` of a schema body, also through a single-entry composition."""
    index = find_child(lines, "$ref")
    if index is not None:
        return scalar_at(lines, index)
    for key in _COMPOSITIONS:
        index = find_child(lines, key)
        if index is None:
            continue
        section = child_lines(lines, index)
        entries = [i for i in direct_children(section) if section[i].kind == LineKind.ITEM]
        if len(entries) == 1:
            entry = item_body(section, entries[0])
            ref = find_child(entry, "$ref")
            if ref is not None:
                return scalar_at(entry, ref)
    return None


class SchemaTreeBuilder:
    """Expand schema documents of one resolution into field trees.

    Example::

        context = ResolutionContext(index.registry, index.root)
        builder = SchemaTreeBuilder(context)
        tree = await builder.build_ref("../schemas/User.yaml", "Main/paths/users.yaml")
        for f in tree.fields:
            print(f.depth, f.name, f.type)
    """

    def __init__(self, context: ResolutionContext) -> None:
        self.context = context

    async def build_locator(self, locator: SchemaLocator, file_path: str) -> SchemaTree:
        """Expand the schema a request body or response points to."""
        if locator.ref is not None:
            return await self.build_ref(locator.ref, file_path)
        if locator.inline is not None:
            return await self.build(locator.inline, SchemaBranch.root(file_path))
        return SchemaTree()

    async def build_ref(self, ref: str, file_path: str) -> SchemaTree:
        """Resolve *ref* from *file_path* and expand the schema it names.

        An unresolved or unreadable reference yields an empty tree that still
        carries the schema name.
        """
        name = schema_name_from_ref(ref)
        target = await self._load(ref, file_path)
        if target is None:
            return SchemaTree(schema_name=name)
        path, text = target
        tree = await self.build(text, SchemaBranch.root(path, name))
        return SchemaTree(fields=tree.fields, schema_name=name)

    async def build(self, text: str, branch: SchemaBranch) -> SchemaTree:
        """Expand the schema document *text* at the position *branch*."""
        self.context.enter(branch)
        lines = scan(text)
        fields: list[SchemaField] = []

        # Compositions and aliases at the root contribute fields at this level.
        index = find_child(lines, "allOf")
        if index is not None:
            fields.extend(await self._compose(child_lines(lines, index), branch))

        ref = find_child(lines, "$ref")
        if ref is not None and find_child(lines, "properties") is None:
            fields.extend(await self._merge_ref(scalar_at(lines, ref), branch))

        if _scalar(lines, "type") == "array":
            items = find_child(lines, "items")
            if items is not None:
                fields.extend(await self._items_level(lines, items, branch))

        fields.extend(await self._properties(lines, branch))
        return SchemaTree(fields=fields, schema_name=branch.schema_name)

    # --- Levels ---

    async def _properties(
        self, lines: list[ScanLine], branch: SchemaBranch
    ) -> list[SchemaField]:
        index = find_child(lines, "properties")
        if index is None:
            return []
        required = set()
        req = find_child(lines, "required")
        if req is not None:
            required = set(sequence_values(lines, req))

        section = child_lines(lines, index)
        fields = []
        for i in direct_children(section):
            line = section[i]
            if line.key is None or line.kind not in (LineKind.KEY, LineKind.BLOCK):
                continue
            fields.append(
                await self._property(
                    line.key, line, child_lines(section, i), line.key in required, branch
                )
            )
        return fields

    async def _compose(
        self, section: list[ScanLine], branch: SchemaBranch
    ) -> list[SchemaField]:
        fields = []
        for i in direct_children(section):
            if section[i].kind != LineKind.ITEM:
                continue
            entry = item_body(section, i)
            ref = find_child(entry, "$ref")
            if ref is not None:
                fields.extend(await self._merge_ref(scalar_at(entry, ref), branch))
            else:
                tree = await self.build(rebase(entry), branch)
                fields.extend(tree.fields)
        return fields

    async def _merge_ref(self, ref: str, branch: SchemaBranch) -> list[SchemaField]:
        name = schema_name_from_ref(ref)
        if name in branch.in_flight:
            logger.debug("Skipping cyclic composition of %s in %s", name, branch.file_path)
            return []
        target = await self._load(ref, branch.file_path)
        if target is None:
            return []
        path, text = target
        return await self._expand_once(name, path, text, branch.merge(name, path))

    async def _items_level(
        self, lines: list[ScanLine], index: int, branch: SchemaBranch
    ) -> list[SchemaField]:
        line = lines[index]
        ref = _inline_ref(line)
        body = child_lines(lines, index)
        if ref is None and body:
            ref = _ref_of(body)
        if ref is not None:
            return await self._merge_ref(ref, branch)
        if body:
            return (await self.build(rebase(body), branch)).fields
        return []

    # --- Single property ---

    async def _property(
        self,
        name: str,
        line: ScanLine,
        body: list[ScanLine],
        required: bool,
        branch: SchemaBranch,
    ) -> SchemaField:
        ref = _inline_ref(line) or (_ref_of(body) if body else None)
        type_ = _scalar(body, "type")
        attrs = dict(
            name=name,
            format=_scalar(body, "format"),
            description=_scalar(body, "description"),
            example=_scalar(body, "example"),
            required=required,
            depth=branch.depth,
        )

        if type_ == "array":
            items = find_child(body, "items")
            children: list[SchemaField] = []
            ref_name = None
            if items is not None:
                children, ref_name = await self._array_items(body, items, branch)
            return SchemaField(
                type="array", is_array=True, ref_name=ref_name, children=children, **attrs
            )

        if ref is not None:
            ref_name = schema_name_from_ref(ref)
            children = await self._expand_ref(ref, ref_name, branch)
            return SchemaField(
                type=type_ or "object", ref_name=ref_name, children=children, **attrs
            )

        if find_child(body, "properties") is not None or find_child(body, "allOf") is not None:
            tree = await self.build(rebase(body), branch.deeper())
            return SchemaField(type=type_ or "object", children=tree.fields, **attrs)

        return SchemaField(type=type_, **attrs)

    async def _array_items(
        self, body: list[ScanLine], index: int, branch: SchemaBranch
    ) -> tuple[list[SchemaField], Optional[str]]:
        line = body[index]
        items = child_lines(body, index)
        ref = _inline_ref(line) or (_ref_of(items) if items else None)
        if ref is not None:
            ref_name = schema_name_from_ref(ref)
            return await self._expand_ref(ref, ref_name, branch), ref_name
        if items and (
            find_child(items, "properties") is not None
            or find_child(items, "allOf") is not None
        ):
            tree = await self.build(rebase(items), branch.deeper())
            return tree.fields, None
        return [], None

    async def _expand_ref(
        self, ref: str, ref_name: str, branch: SchemaBranch
    ) -> list[SchemaField]:
        """Children of a property referencing *ref*, empty on a cycle or miss."""
        if ref_name in branch.in_flight:
            logger.debug("Cycle on %s in %s, not expanding", ref_name, branch.file_path)
            return []
        target = await self._load(ref, branch.file_path)
        if target is None:
            return []
        path, text = target
        return await self._expand_once(
            ref_name, path, text, branch.descend(ref_name, path)
        )

    async def _expand_once(
        self, name: str, path: str, text: str, branch: SchemaBranch
    ) -> list[SchemaField]:
        """Fields of schema *name* at ``branch.depth``, expanded once per resolution."""
        cached = self.context.cached_fields(name, path, branch.depth)
        if cached is not None:
            return cached
        tree = await self.build(text, branch)
        self.context.remember_fields(name, path, branch.depth, tree.fields)
        return tree.fields

    async def _load(self, ref: str, file_path: str) -> Optional[tuple[str, str]]:
        """Resolve and read *ref*; ``None`` when it cannot be located or read."""
        path = lookup_ref(ref, file_path, self.context.registry, self.context.root)
        if path is None:
            logger.warning("Unresolved $ref %s in %s", ref, file_path)
            return None
        try:
            return path, await self.context.read(path)
        except ContentReadError as exc:
            logger.warning("Cannot read $ref %s in %s: %s", ref, file_path, exc)
            return None


def _scalar(lines: list[ScanLine], key: str) -> str:
    if not lines:
        return ""
    index = find_child(lines, key)
    return scalar_at(lines, index) if index is not None else ""
