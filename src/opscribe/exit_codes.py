"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~opscribe.exceptions.OpscribeError` subclass.
Shell wrappers can inspect the exit code to tell a missing method apart from
a broken project without parsing stderr.

Example::

    $ opscribe resolve Main users trace
    $ echo $?
    4   # EXIT_RESOLUTION_FAILURE -- the method is not defined
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_INDEX_ERROR = 3
"""The project could not be indexed or a file could not be read."""

EXIT_RESOLUTION_FAILURE = 4
"""The requested operation does not exist in the project layout."""

EXIT_LIMIT_EXCEEDED = 5
"""A resolution hit its depth, file-count, or time limit."""

EXIT_CONFLICT = 6
"""A concurrent resolution was rejected."""
