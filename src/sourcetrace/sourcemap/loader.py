"""Load source map content from resolved locations."""

from pathlib import Path

from sourcetrace.errors import ForbiddenAccessError
from sourcetrace.log import get_logger
from sourcetrace.paths import PathAuthorizer
from sourcetrace.sourcemap.locators import (
    FileLocator,
    FileReader,
    InlineLocator,
    ResolvedLocator,
    decode_text,
    read_file_bytes,
    read_resource,
)
from sourcetrace.sourcemap.reference import resolve_reference

logger = get_logger(__name__)


class ResourceLoader:
    """Read source maps from local files or inline data.

    File locations are validated against the allowed roots on every load,
    including locations that were resolved and cached earlier.
    """

    def __init__(
        self,
        authorizer: PathAuthorizer,
        reader: FileReader = read_file_bytes,
    ) -> None:
        """Initialize the loader.

        Args:
            authorizer: Access control for source map paths.
            reader: File reader used to read source map files.

        """
        self._authorizer = authorizer
        self._reader = reader

    def load(self, locator: ResolvedLocator) -> bytes:
        """Load the raw content of a source map.

        Args:
            locator: Resolved source map location.

        Returns:
            Raw source map content.

        Raises:
            ForbiddenAccessError: If the location is not allowed.
            ResourceIOError: If the file cannot be read.

        """
        if isinstance(locator, InlineLocator):
            return locator.content

        if not isinstance(locator, FileLocator):
            msg = f"Cannot load source map from {locator!r}"
            raise ForbiddenAccessError(msg)

        abs_path = self._authorizer.check(locator.path)
        content = read_resource(abs_path, self._reader)
        logger.debug("Loaded %d bytes from %s", len(content), abs_path)
        return content

    def load_text(self, locator: ResolvedLocator) -> str:
        """Load a source map as UTF-8 text.

        Raises:
            ForbiddenAccessError: If the location is not allowed.
            ResourceIOError: If the content cannot be read or decoded.

        """
        return decode_text(self.load(locator), locator)

    def load_reference(self, reference: str, base_path: str | Path) -> str:
        """Resolve a source map reference and load it as text.

        Args:
            reference: Local file URL or path, or a base64 ``data:`` URI.
            base_path: Path of the script the reference is relative to.

        Returns:
            Contents of the source map.

        Raises:
            ForbiddenAccessError: If the reference uses a scheme other than
                ``file:`` or ``data:``, or points outside the allowed roots.
            MalformedReferenceError: If a data URI cannot be decoded.
            ResourceIOError: If the file cannot be read.

        """
        locator = resolve_reference(reference, self._authorizer.check(base_path))
        return self.load_text(locator)
