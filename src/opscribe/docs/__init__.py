"""Generated and authored documentation of a resolved operation.

* :mod:`~opscribe.docs.examples` -- example JSON from a field tree.
* :mod:`~opscribe.docs.defaults` -- default errors, examples and algorithm.
* :mod:`~opscribe.docs.companion` -- parsing of companion documents.
* :mod:`~opscribe.docs.merger` -- overlay of authored content.
"""

from opscribe.docs.companion import CompanionDocument, parse_companion
from opscribe.docs.defaults import GeneratedDocs, generate_defaults
from opscribe.docs.examples import example_json, synthesize_example
from opscribe.docs.merger import merge_companion, merge_companion_text

__all__ = [
    "CompanionDocument",
    "GeneratedDocs",
    "example_json",
    "generate_defaults",
    "merge_companion",
    "merge_companion_text",
    "parse_companion",
    "synthesize_example",
]
