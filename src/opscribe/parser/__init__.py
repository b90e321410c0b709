"""Line-scanning parsers for multi-file OpenAPI projects.

Submodules:

* :mod:`~opscribe.parser.scanner` -- tags lines and provides the block rules.
* :mod:`~opscribe.parser.paths` -- the ``paths`` section of a root document.
* :mod:`~opscribe.parser.methods` -- one HTTP method's block of a flat file.
* :mod:`~opscribe.parser.metadata` -- metadata, parameters, bodies, responses.
* :mod:`~opscribe.parser.refs` -- ``$ref`` to registry path resolution.
* :mod:`~opscribe.parser.schema` -- recursive, cycle-safe schema expansion.
"""

from opscribe.parser.methods import detect_methods, extract_method
from opscribe.parser.metadata import (
    parse_metadata,
    parse_parameters,
    parse_request_body,
    parse_responses,
)
from opscribe.parser.paths import parse_paths
from opscribe.parser.refs import lookup_ref, resolve_ref_path
from opscribe.parser.schema import ResolutionContext, SchemaBranch, SchemaTreeBuilder

__all__ = [
    "ResolutionContext",
    "SchemaBranch",
    "SchemaTreeBuilder",
    "detect_methods",
    "extract_method",
    "lookup_ref",
    "parse_metadata",
    "parse_parameters",
    "parse_paths",
    "parse_request_body",
    "parse_responses",
    "resolve_ref_path",
]
