"""Find and resolve the source map referenced by a generated script.

A generated script names its source map with a trailing
``//# sourceMappingURL=<ref>`` (or ``/*# ... */``) comment. The reference is
either a base64 JSON data URI or a URL relative to the script location.
"""

import base64
import binascii
import re
from pathlib import Path
from urllib.parse import urljoin, urlsplit
from urllib.request import url2pathname

from sourcetrace.errors import (
    ForbiddenAccessError,
    MalformedReferenceError,
    MissingReferenceError,
)
from sourcetrace.log import get_logger
from sourcetrace.paths import PathAuthorizer, normalize_path
from sourcetrace.sourcemap.locators import (
    FileLocator,
    FileReader,
    InlineLocator,
    ResolvedLocator,
    decode_text,
    read_file_bytes,
    read_resource,
)

logger = get_logger(__name__)

# Patterns from node-source-map-support v0.5.16 by Evan Wallace
_SOURCE_MAPPING_URL_RE = re.compile(
    r"(?://[@#][\s]*sourceMappingURL=([^\s'\"]+)[\s]*$)"
    r"|(?:/\*[@#][\s]*sourceMappingURL=([^\s*'\"]+)[\s]*(?:\*/)[\s]*$)",
    re.MULTILINE,
)
_DATA_URI_RE = re.compile(r"^data:application/json[^,]+base64,")

_LOCAL_HOSTS = ("", "localhost")


def extract_reference(text: str) -> str | None:
    """Extract the first source map reference embedded in JavaScript code.

    Args:
        text: JavaScript source code.

    Returns:
        The source map reference, or None if the code has no directive.

    """
    match = _SOURCE_MAPPING_URL_RE.search(text)
    if match is None:
        return None
    return match.group(1) or match.group(2)


def is_data_uri(reference: str) -> bool:
    """Check whether the reference is a base64-encoded JSON data URI."""
    return _DATA_URI_RE.match(reference) is not None


def decode_data_uri(reference: str) -> bytes:
    """Decode the payload of a base64 JSON data URI.

    Raises:
        MalformedReferenceError: If the URI is not a base64 JSON data URI,
            or the payload is not valid base64.

    """
    if not is_data_uri(reference):
        msg = "Only base64-encoded application/json data URIs are supported"
        raise MalformedReferenceError(msg)
    payload = reference[reference.index(",") + 1 :]
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        msg = f"Invalid base64 payload in source map data URI: {e!s}"
        raise MalformedReferenceError(msg) from e


def resolve_reference(reference: str, script_path: Path) -> ResolvedLocator:
    """Resolve a source map reference against the script that declares it.

    Relative references are resolved against the script's own directory,
    the same way a browser resolves them against the script URL.

    Args:
        reference: Reference taken from the sourceMappingURL directive.
        script_path: Absolute path of the generated script.

    Returns:
        Inline locator for data URIs, file locator otherwise. File locators
        are not checked for existence.

    Raises:
        ForbiddenAccessError: If the reference uses a scheme other than
            ``file:`` or points to a remote host.
        MalformedReferenceError: If a data URI cannot be decoded, or the
            reference is not a valid URL or file path.

    """
    if reference.startswith("data:"):
        return InlineLocator(decode_data_uri(reference))

    try:
        url = urljoin(script_path.as_uri(), reference)
        parts = urlsplit(url)
    except ValueError as e:
        msg = f"Invalid source map URL '{reference}': {e!s}"
        raise MalformedReferenceError(msg) from e

    # Rudimentary security measure, only local files are ever loaded
    if parts.scheme != "file" or parts.netloc not in _LOCAL_HOSTS:
        msg = f"Cannot load URL: {url}"
        raise ForbiddenAccessError(msg)

    try:
        return FileLocator(normalize_path(url2pathname(parts.path)))
    except ValueError as e:
        msg = f"Invalid source map path '{reference}': {e!s}"
        raise MalformedReferenceError(msg) from e


class ReferenceResolver:
    """Resolve generated scripts to the location of their source maps."""

    def __init__(
        self,
        authorizer: PathAuthorizer,
        reader: FileReader = read_file_bytes,
    ) -> None:
        """Initialize the resolver.

        Args:
            authorizer: Access control for script paths.
            reader: File reader used to read scripts.

        """
        self._authorizer = authorizer
        self._reader = reader

    def resolve(self, script_path: str | Path) -> ResolvedLocator:
        """Read a generated script and resolve its source map reference.

        Args:
            script_path: Path of the generated script.

        Returns:
            Location of the script's source map.

        Raises:
            ForbiddenAccessError: If the script or reference is not allowed.
            ResourceIOError: If the script cannot be read.
            MissingReferenceError: If the script has no directive.
            MalformedReferenceError: If the directive cannot be decoded.

        """
        abs_path = self._authorizer.check(script_path)
        text = decode_text(read_resource(abs_path, self._reader), abs_path)

        reference = extract_reference(text)
        if reference is None:
            msg = f"No sourceMappingURL directive in '{abs_path}'"
            raise MissingReferenceError(msg)

        locator = resolve_reference(reference, abs_path)
        logger.debug("Resolved source map of %s to %s", abs_path, locator)
        return locator
