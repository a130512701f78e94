"""Source map lookup for generated JavaScript files.

Locate the source map a generated script references, load it from a local
file or inline data URI, parse it, and memoize every step.
"""

from sourcetrace.sourcemap.cache import CacheEntry, MemoTable, SourceMapCache
from sourcetrace.sourcemap.loader import ResourceLoader
from sourcetrace.sourcemap.locators import FileLocator, InlineLocator, ResolvedLocator
from sourcetrace.sourcemap.parser import SourceMapping, parse_source_map
from sourcetrace.sourcemap.reference import (
    ReferenceResolver,
    extract_reference,
    resolve_reference,
)

__all__ = [
    "CacheEntry",
    "FileLocator",
    "InlineLocator",
    "MemoTable",
    "ReferenceResolver",
    "ResolvedLocator",
    "ResourceLoader",
    "SourceMapCache",
    "SourceMapping",
    "extract_reference",
    "parse_source_map",
    "resolve_reference",
]
