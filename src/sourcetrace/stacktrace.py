"""Stack trace decoration with source maps.

Translate frames of V8-style JavaScript stack traces that point into
generated files back to the original source, and insert the original
location below each translated frame.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from sourcetrace.errors import NoMappingError
from sourcetrace.log import get_logger
from sourcetrace.paths import PathAuthorizer
from sourcetrace.sourcemap.cache import SourceMapCache
from sourcetrace.sourcemap.loader import ResourceLoader
from sourcetrace.sourcemap.locators import FileReader, read_file_bytes
from sourcetrace.sourcemap.parser import (
    ParsedSourceMap,
    SourceMapParser,
    parse_source_map,
)
from sourcetrace.sourcemap.reference import ReferenceResolver

if TYPE_CHECKING:
    from sourcetrace.config_loader import TraceSettings

logger = get_logger(__name__)

_STACK_FRAME_RE = re.compile(r"^(\s*)at (?:\S+ )?\(?([^\s():]+):(\d+):(\d+)\)?\s*$")

ANONYMOUS_SYMBOL = "<anonymous>"
"""Symbol name shown when the source map records none."""

ANNOTATION_PREFIX = "    -> "
"""Inserted after the frame indentation on annotation lines."""


@dataclass(frozen=True)
class StackFrame:
    """A frame line of a stack trace."""

    indent: str
    """Leading whitespace of the frame line."""

    path: str
    """Path of the generated file."""

    line: int
    """Line in the generated file (1-based)."""

    column: int
    """Column in the generated file (1-based)."""


@dataclass(frozen=True)
class SourceFrame:
    """Original source location of a stack frame."""

    name: str
    source_file: str
    line: int
    """Line in the source file (1-based)."""

    column: int
    """Column in the source file (1-based)."""

    def __str__(self) -> str:
        """Format the frame the way Node.js prints stack frames."""
        return f"{self.name} ({self.source_file}:{self.line}:{self.column})"


def parse_frame_line(line: str) -> StackFrame | None:
    """Parse a single stack trace line.

    Args:
        line: Line of a stack trace, without the line terminator.

    Returns:
        The parsed frame, or None if the line is not a frame with a
        positive line and column.

    """
    match = _STACK_FRAME_RE.match(line)
    if match is None:
        return None

    indent, path, line_no, column = match.groups()
    try:
        frame = StackFrame(
            indent=indent,
            path=path,
            line=int(line_no),
            column=int(column),
        )
    except ValueError:
        # Positions too long for int conversion
        return None
    if frame.line < 1 or frame.column < 1:
        return None
    return frame


def lookup_source_frame(
    source_map: ParsedSourceMap,
    line: int,
    column: int,
) -> SourceFrame:
    """Find the original source frame for a generated position.

    Args:
        source_map: Parsed source map of the generated file.
        line: Generated line (1-based).
        column: Generated column (1-based).

    Returns:
        The original source frame.

    Raises:
        NoMappingError: If the source map has no entry at the position.

    """
    mapping = source_map.lookup(line - 1, column - 1)
    if mapping is None:
        raise NoMappingError(line - 1, column - 1)

    return SourceFrame(
        name=mapping.name or ANONYMOUS_SYMBOL,
        source_file=mapping.source_file,
        line=mapping.source_line + 1,
        column=mapping.source_column + 1,
    )


def format_source_frame(
    source_map: ParsedSourceMap,
    line: int,
    column: int,
) -> str | None:
    """Format the original source frame for a generated position.

    Args:
        source_map: Parsed source map of the generated file.
        line: Generated line (1-based).
        column: Generated column (1-based).

    Returns:
        ``name (file:line:column)``, or None if the source map has no entry
        at the position.

    """
    try:
        return str(lookup_source_frame(source_map, line, column))
    except NoMappingError:
        return None


class StackTraceDecorator:
    """Annotate stack traces with original source locations.

    A decorator keeps its own source map cache. Create one per JavaScript
    execution context and discard it afterwards so that files changed on
    disk are picked up. A single decorator may be shared between threads.
    """

    def __init__(
        self,
        allowed_roots: Iterable[str | Path],
        parser: SourceMapParser = parse_source_map,
        reader: FileReader = read_file_bytes,
    ) -> None:
        """Initialize the decorator.

        Args:
            allowed_roots: Directories scripts and source maps may be read
                from. An empty set disables all annotations.
            parser: Parses source map text.
            reader: File reader used for scripts and source maps.

        """
        authorizer = PathAuthorizer(allowed_roots)
        self._cache = SourceMapCache(
            authorizer,
            ReferenceResolver(authorizer, reader),
            ResourceLoader(authorizer, reader),
            parser,
        )

    @classmethod
    def from_settings(
        cls,
        settings: "TraceSettings",
        parser: SourceMapParser = parse_source_map,
    ) -> "StackTraceDecorator":
        """Create a decorator from loaded settings."""
        return cls(settings.allowed_roots, parser=parser)

    @property
    def cache(self) -> SourceMapCache:
        """Source map cache of this decorator."""
        return self._cache

    def lookup_frame(self, frame: StackFrame) -> SourceFrame:
        """Find the original source frame of a stack frame.

        Args:
            frame: Parsed stack frame.

        Returns:
            The original source frame.

        Raises:
            SourceTraceError: If the frame cannot be translated.

        """
        source_map = self._cache.source_map_for(frame.path).unwrap()
        return lookup_source_frame(source_map, frame.line, frame.column)

    def decorate(self, stack_trace: str) -> str:
        """Insert original source locations below stack frames.

        Frames that cannot be translated are left as they are. Decorating
        already decorated output is not supported. Annotation lines end the
        same way as the frame line above them, so CRLF input stays CRLF.

        Args:
            stack_trace: Stack trace text.

        Returns:
            The stack trace with an annotation line below each translated
            frame.

        """
        output: list[str] = []
        for line in stack_trace.split("\n"):
            output.append(line)

            frame = parse_frame_line(line)
            if frame is None:
                continue

            # Cached failures are inspected, not raised
            entry = self._cache.source_map_for(frame.path)
            if entry.error is not None:
                logger.debug("No source map for %s: %s", line.strip(), entry.error)
                continue

            try:
                source_frame = lookup_source_frame(
                    entry.unwrap(),
                    frame.line,
                    frame.column,
                )
            except NoMappingError as e:
                logger.debug("No source frame for %s: %s", line.strip(), e)
                continue

            eol = "\r" if line.endswith("\r") else ""
            output.append(f"{frame.indent}{ANNOTATION_PREFIX}{source_frame}{eol}")

        return "\n".join(output)
