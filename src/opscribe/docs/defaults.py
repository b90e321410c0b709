"""Generate the default documentation of a freshly resolved operation.

The defaults stand wherever no companion document overrides them: a source
annotation on every request field, the standard error responses, request and
response examples, and a one-step-per-field algorithm.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from opscribe.docs.examples import example_json
from opscribe.models import ErrorResponse, ResponseSchema, SchemaField

NOT_FOUND = ErrorResponse(code="404", description="Resource not found")
SERVER_ERROR = ErrorResponse(code="500", description="Internal server error")


@dataclass(frozen=True)
class GeneratedDocs:
    """Defaults computed for one operation, before the companion merge."""

    request_fields: list[SchemaField] = field(default_factory=list)
    error_responses: list[ErrorResponse] = field(default_factory=list)
    example_request: str = "{}"
    example_response: str = ""
    algorithm: str = ""


def apply_default_source(fields: list[SchemaField], source: str) -> list[SchemaField]:
    """Return *fields* with *source* set on every field that has none."""
    return [
        f.model_copy(
            update={
                "source": f.source if f.source.strip() else source,
                "children": apply_default_source(f.children, source),
            }
        )
        for f in fields
    ]


def error_responses(request_fields: list[SchemaField]) -> list[ErrorResponse]:
    """Return 400 (only for required top-level fields), 404 and 500 entries."""
    required = [f.name for f in request_fields if f.required and f.depth == 0]
    errors = []
    if required:
        errors.append(
            ErrorResponse(
                code="400",
                description=f"Required parameter not provided ({', '.join(required)})",
            )
        )
    errors.extend([NOT_FOUND, SERVER_ERROR])
    return errors


def default_algorithm(
    request_schema_name: str,
    request_fields: list[SchemaField],
    response_codes: list[str],
) -> str:
    """Return the trivial algorithm narrative of an operation.

    Example::

        INPUT: CreateUser from client

        STEP 1: name - used directly
        STEP 2: email - used directly

        OUTPUT: 201 OK
    """
    lines = [f"INPUT: {request_schema_name or 'RequestDto'} from client", ""]
    step = 1
    for f in request_fields:
        if f.depth != 0:
            continue
        lines.append(f"STEP {step}: {f.name} - used directly")
        step += 1
    code = response_codes[0] if response_codes else "200"
    lines.extend(["", f"OUTPUT: {code} OK"])
    return "\n".join(lines)


def generate_defaults(
    request_schema_name: str,
    request_fields: list[SchemaField],
    response_codes: list[str],
    response_schemas: list[ResponseSchema],
    default_source: str = "Direct input",
) -> GeneratedDocs:
    """Compute every default of one operation.

    Args:
        request_schema_name: Name of the request body schema, may be empty.
        request_fields: Expanded request field tree.
        response_codes: Declared response codes in declaration order.
        response_schemas: Responses with an expanded body; the first one
            drives the response example.
        default_source: Source annotation given to request fields with none.
    """
    sourced = apply_default_source(request_fields, default_source)
    return GeneratedDocs(
        request_fields=sourced,
        error_responses=error_responses(sourced),
        example_request=example_json(sourced),
        example_response=(
            example_json(response_schemas[0].fields) if response_schemas else ""
        ),
        algorithm=default_algorithm(request_schema_name, sourced, response_codes),
    )
