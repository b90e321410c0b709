"""Exception hierarchy for opscribe.

All exceptions inherit from :class:`OpscribeError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`opscribe.exit_codes`.
The top-level error handler in :func:`opscribe.app.main` catches
``OpscribeError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    OpscribeError (exit 1)
    +-- InvalidUsageError          (exit 2)
    +-- ConfigError                (exit 1)
    +-- ProjectIndexError          (exit 3)
    +-- ContentReadError           (exit 3)
    +-- CompanionDocumentError     (exit 1)
    +-- ResolutionError            (exit 4)
        +-- MissingFolderError
        +-- MissingMethodError
        +-- MissingMethodFileError
        +-- ResolutionLimitError       (exit 5)
        +-- ConcurrentResolutionError  (exit 6)

Only :class:`ResolutionError` and its subclasses abort a resolution.
Unresolved ``$ref`` pointers and malformed companion documents are logged and
degrade to generated defaults.
"""

from opscribe.exit_codes import (
    EXIT_CONFLICT,
    EXIT_GENERIC_FAILURE,
    EXIT_INDEX_ERROR,
    EXIT_INVALID_USAGE,
    EXIT_LIMIT_EXCEEDED,
    EXIT_RESOLUTION_FAILURE,
)


class OpscribeError(Exception):
    """Base exception for all opscribe errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`opscribe.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(OpscribeError):
    """Raised for invalid CLI arguments or option combinations."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(OpscribeError):
    """Raised for configuration problems (invalid JSON, unknown keys, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE


class ProjectIndexError(OpscribeError):
    """Raised when a project cannot be indexed (e.g. no ``openapi.yaml`` in its root)."""

    exit_code = EXIT_INDEX_ERROR


class ContentReadError(OpscribeError):
    """Raised when a content handle cannot be read (I/O error, HTTP error, bad encoding)."""

    exit_code = EXIT_INDEX_ERROR


class CompanionDocumentError(OpscribeError):
    """Raised when a companion document cannot be parsed.

    Never escapes a resolution: the merger logs it as a warning and keeps
    the freshly generated documentation.
    """

    exit_code = EXIT_GENERIC_FAILURE


class ResolutionError(OpscribeError):
    """Base class for conditions that abort the resolution of one operation."""

    exit_code = EXIT_RESOLUTION_FAILURE


class MissingFolderError(ResolutionError):
    """Raised when the chosen endpoint has no backing layout in the project index."""


class MissingMethodError(ResolutionError):
    """Raised when the requested HTTP method is absent from the endpoint."""


class MissingMethodFileError(ResolutionError):
    """Raised when a split layout lacks the file for the requested method."""


class ResolutionLimitError(ResolutionError):
    """Raised when a resolution exceeds its depth, file-count, or time limit."""

    exit_code = EXIT_LIMIT_EXCEEDED


class ConcurrentResolutionError(ResolutionError):
    """Raised when a second resolution is started while one is running and queueing is off."""

    exit_code = EXIT_CONFLICT
