"""Access control for script and source map paths."""

from collections.abc import Iterable
from pathlib import Path

from sourcetrace.errors import ForbiddenAccessError
from sourcetrace.log import get_logger

logger = get_logger(__name__)


def normalize_path(path: str | Path) -> Path:
    """Normalize a path to its absolute, resolved form.

    This function performs the following:
    1. Expands a leading ``~``
    2. Converts relative paths to absolute based on the current directory
    3. Resolves '..', '.' and symlinks

    Args:
        path: Path to normalize. Can be relative or absolute.

    Returns:
        The normalized absolute path. The path does not need to exist.

    Raises:
        ValueError: If the path contains a null byte.

    """
    if "\x00" in str(path):
        msg = "embedded null byte"
        raise ValueError(msg)
    if isinstance(path, str):
        path = Path(path)
    return path.expanduser().resolve()


class PathAuthorizer:
    """Decide whether a path lies under one of the allowed root directories.

    Roots are normalized once at construction. Every check normalizes the
    candidate path as well, so relative traversal and symlinks cannot escape
    the roots.
    """

    def __init__(self, roots: Iterable[str | Path]) -> None:
        """Initialize the authorizer.

        Args:
            roots: Allowed root directories. An empty set rejects every path.

        """
        normalized: list[Path] = []
        for root in roots:
            abs_root = normalize_path(root)
            if abs_root not in normalized:
                normalized.append(abs_root)
        self._roots = tuple(normalized)
        if not self._roots:
            logger.warning("No allowed roots configured, all lookups will fail")

    @property
    def roots(self) -> tuple[Path, ...]:
        """Normalized allowed roots, in configuration order."""
        return self._roots

    def is_allowed(self, path: str | Path) -> bool:
        """Check whether the path equals or is nested under an allowed root."""
        try:
            abs_path = normalize_path(path)
        except ValueError:
            return False
        return any(abs_path.is_relative_to(root) for root in self._roots)

    def check(self, path: str | Path) -> Path:
        """Normalize and validate a path.

        Args:
            path: Path to validate.

        Returns:
            The normalized absolute path.

        Raises:
            ForbiddenAccessError: If the path is outside all allowed roots or
                cannot be represented on the filesystem.

        """
        try:
            abs_path = normalize_path(path)
        except ValueError as e:
            # Embedded null bytes and the like
            msg = f"Security error: Path {path!r} is not a valid filesystem path."
            raise ForbiddenAccessError(msg) from e
        if not any(abs_path.is_relative_to(root) for root in self._roots):
            msg = (
                f"Security error: Path '{path}' resolves to a location outside the "
                "allowed root directories."
            )
            raise ForbiddenAccessError(msg)
        return abs_path
