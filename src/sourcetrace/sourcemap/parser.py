"""Adapter over the ``sourcemap`` library.

Decoding the mappings is left to the library. This module narrows its
interface to ``parse(content)`` and ``lookup(line, column)`` and converts
its failures to ``SourceTraceError``.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, TypeAlias

import sourcemap

from sourcetrace.errors import MalformedSourceMapError
from sourcetrace.log import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SourceMapping:
    """Single mapping entry from generated code to source.

    All positions are 0-based, as stored in the source map.
    """

    generated_line: int
    generated_column: int
    source_file: str
    source_line: int
    source_column: int
    name: str | None = None
    """Original symbol name, if the map records one."""


class ParsedSourceMap(Protocol):
    """Parsed source map supporting position lookup."""

    def lookup(self, line: int, column: int) -> SourceMapping | None:
        """Find the mapping for a 0-based generated position."""
        ...


SourceMapParser: TypeAlias = Callable[[str], ParsedSourceMap]
"""Callable turning source map text into a parsed source map."""


class IndexedSourceMap:
    """Parsed source map backed by a ``sourcemap.SourceMapIndex``."""

    def __init__(self, index: Any) -> None:
        self._index = index

    def lookup(self, line: int, column: int) -> SourceMapping | None:
        """Find the mapping covering a generated position.

        The closest mapping at or before ``column`` on the same line is
        used. Positions before the first mapping of a line, or on lines
        without mappings, have no mapping.

        Args:
            line: Generated line (0-based).
            column: Generated column (0-based).

        Returns:
            The mapping, or None if the position is not mapped.

        """
        if line < 0 or column < 0:
            return None
        try:
            token = self._index.lookup(line=line, column=column)
        except (IndexError, KeyError):
            return None

        if token is None:
            return None
        # The library falls back to unrelated tokens for unmapped columns
        if token.dst_line != line or token.dst_col > column or token.src is None:
            return None

        return SourceMapping(
            generated_line=token.dst_line,
            generated_column=token.dst_col,
            source_file=token.src,
            source_line=token.src_line,
            source_column=token.src_col,
            name=token.name,
        )


def parse_source_map(content: str) -> IndexedSourceMap:
    """Parse source map JSON.

    Args:
        content: Source map text.

    Returns:
        The parsed source map.

    Raises:
        MalformedSourceMapError: If the content is not a valid source map.

    """
    try:
        index = sourcemap.loads(content)
    except (ValueError, KeyError, TypeError, IndexError, AttributeError) as e:
        # The decoder fails with AttributeError on negative source offsets
        msg = f"Failed to parse source map: {e!s}"
        raise MalformedSourceMapError(msg) from e
    logger.debug("Parsed source map of %d characters", len(content))
    return IndexedSourceMap(index)
