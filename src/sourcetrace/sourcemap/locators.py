"""Resolved source map locations and file reading helpers."""

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypeAlias

from sourcetrace.errors import ResourceIOError, ResourceNotFoundError

FileReader: TypeAlias = Callable[[Path], bytes]
"""Callable returning the raw content of a file."""


@dataclass(frozen=True)
class FileLocator:
    """Source map stored in a local file."""

    path: Path
    """Normalized absolute path of the source map file."""


@dataclass(frozen=True)
class InlineLocator:
    """Source map embedded in the script as a base64 data URI."""

    content: bytes = field(repr=False)
    """Decoded source map content."""


ResolvedLocator: TypeAlias = FileLocator | InlineLocator


def read_file_bytes(path: Path) -> bytes:
    """Read the raw content of a file."""
    return path.read_bytes()


def read_resource(path: Path, reader: FileReader) -> bytes:
    """Read a file, converting OS errors to resource errors.

    Args:
        path: Absolute path to read.
        reader: File reader to use.

    Returns:
        Raw file content.

    Raises:
        ResourceNotFoundError: If the file does not exist.
        ResourceIOError: If the file cannot be read.

    """
    try:
        return reader(path)
    except FileNotFoundError as e:
        msg = f"File not found: '{path}'"
        raise ResourceNotFoundError(msg) from e
    except (ValueError, OSError) as e:
        msg = f"Failed to read '{path}': {e!s}"
        raise ResourceIOError(msg) from e


def decode_text(content: bytes, origin: object) -> str:
    """Decode UTF-8 content read from ``origin``.

    Raises:
        ResourceIOError: If the content is not valid UTF-8.

    """
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError as e:
        msg = f"Content of {origin} is not valid UTF-8: {e!s}"
        raise ResourceIOError(msg) from e
