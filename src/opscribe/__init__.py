"""opscribe -- Resolve multi-file OpenAPI operations into documented descriptions.

This package turns one (path, method) pair of an OpenAPI definition that is
spread across many files into a fully expanded
:class:`~opscribe.models.OperationDescription`: operation metadata,
parameters, and recursively expanded field trees for the request body and
every response. Hand-written documentation kept in a companion markdown file
(field sources, dependencies, algorithm, notes, examples) is merged back on
top, so regenerating a description never loses human edits.

Typical workflow::

    opscribe projects ./apis                  # find API projects
    opscribe endpoints Main/openapi.yaml --base ./apis
    opscribe resolve Main/openapi.yaml users post --base ./apis

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration with precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    store: Content handles and the immutable file registry.
    indexer: Project discovery and endpoint indexing.
    engine: Operation resolution pipeline.
"""

__version__ = "0.3.0"
