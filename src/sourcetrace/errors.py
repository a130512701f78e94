"""Errors raised while resolving source maps for stack frames.

Every failure in the decoration pipeline is a ``SourceTraceError``. The
decorator converts them to "no annotation" for the affected frame, and the
source map cache stores them as failed outcomes.
"""


class SourceTraceError(Exception):
    """Base exception for source map resolution failures."""


class ForbiddenAccessError(SourceTraceError):
    """Raised when a path or URL is outside the allowed roots.

    Also raised for any URL scheme other than local files and inline
    ``data:`` URIs, before any I/O is attempted.
    """


class ResourceIOError(SourceTraceError):
    """Raised when a script or source map cannot be read or decoded."""


class ResourceNotFoundError(ResourceIOError):
    """Raised when a script or source map file does not exist."""


class MissingReferenceError(SourceTraceError):
    """Raised when a script has no sourceMappingURL directive."""


class MalformedReferenceError(SourceTraceError):
    """Raised when a sourceMappingURL directive cannot be decoded."""


class MalformedSourceMapError(SourceTraceError):
    """Raised when source map content cannot be parsed."""


class NoMappingError(SourceTraceError):
    """Raised when a source map has no entry for a generated position."""

    def __init__(self, line: int, column: int) -> None:
        """Initialize the error.

        Args:
            line: Generated line (0-based).
            column: Generated column (0-based).

        """
        self.line = line
        self.column = column
        super().__init__(f"No mapping at generated position {line}:{column}")
