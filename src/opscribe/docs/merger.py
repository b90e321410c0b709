"""Overlay a companion document onto a freshly resolved operation."""

from __future__ import annotations

import logging

from opscribe.docs.companion import CompanionDocument, parse_companion
from opscribe.exceptions import CompanionDocumentError
from opscribe.models import OperationDescription, SchemaField

logger = logging.getLogger(__name__)


def apply_sources(
    fields: list[SchemaField], sources: dict[str, str]
) -> list[SchemaField]:
    """Return *fields* with authored source annotations applied.

    Matching is by bare field name at any depth, so two nested fields sharing
    a name receive the same annotation. Unmatched fields keep their source.
    """
    return [
        f.model_copy(
            update={
                "source": sources.get(f.name, f.source),
                "children": apply_sources(f.children, sources),
            }
        )
        for f in fields
    ]


def merge_companion(
    document: CompanionDocument, description: OperationDescription
) -> OperationDescription:
    """Return *description* with the authored content of *document* applied.

    Source annotations are merged field by field. Dependencies, algorithm,
    notes and examples replace the generated ones only when the document
    has them.
    """
    update: dict[str, object] = {}
    if document.sources:
        update["request_fields"] = apply_sources(
            description.request_fields, document.sources
        )
    if document.dependencies:
        update["dependencies"] = list(document.dependencies)
    if document.algorithm:
        update["algorithm"] = document.algorithm
    if document.notes:
        update["notes"] = document.notes
    if document.example_request:
        update["example_request"] = document.example_request
    if document.example_response:
        update["example_response"] = document.example_response
    return description.model_copy(update=update)


def merge_companion_text(
    text: str, description: OperationDescription, origin: str = "<companion>"
) -> OperationDescription:
    """Parse *text* and merge it; a malformed document leaves *description* as is."""
    try:
        document = parse_companion(text)
    except CompanionDocumentError as exc:
        logger.warning("Ignoring malformed companion document %s: %s", origin, exc)
        return description
    return merge_companion(document, description)
