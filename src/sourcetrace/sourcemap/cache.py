"""Memoized source map resolution.

Keep two independent in-memory tables: script path to source map location,
and source map location to parsed source map. Both remember failures as
well as successes, so a lookup that failed once is never retried for the
lifetime of the cache.
"""

import threading
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from pathlib import Path
from typing import Generic, TypeVar

from sourcetrace.errors import MalformedSourceMapError, SourceTraceError
from sourcetrace.log import get_logger
from sourcetrace.paths import PathAuthorizer
from sourcetrace.sourcemap.loader import ResourceLoader
from sourcetrace.sourcemap.locators import ResolvedLocator
from sourcetrace.sourcemap.parser import (
    ParsedSourceMap,
    SourceMapParser,
    parse_source_map,
)
from sourcetrace.sourcemap.reference import ReferenceResolver

logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

DEFAULT_LOCK_STRIPES = 16
"""Default number of locks guarding cache misses."""


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    """Memoized outcome of a lookup: a value or the failure that prevented it."""

    value: V | None = None
    error: SourceTraceError | None = None

    @classmethod
    def success(cls, value: V) -> "CacheEntry[V]":
        """Construct an entry for a successful lookup."""
        return cls(value=value)

    @classmethod
    def failure(cls, error: SourceTraceError) -> "CacheEntry[V]":
        """Construct an entry for a failed lookup."""
        return cls(error=error)

    @property
    def ok(self) -> bool:
        """Whether the lookup succeeded."""
        return self.error is None

    def unwrap(self) -> V:
        """Get the value, raising the stored failure if the lookup failed.

        The stored error is raised with a fresh traceback each time, so
        repeated cache hits do not accumulate frames on it.
        """
        if self.error is not None:
            raise self.error.with_traceback(None)
        return self.value  # type: ignore[return-value]


class MemoTable(Generic[K, V]):
    """Thread-safe table computing each key's outcome once.

    Completed entries are read without locking. A miss is computed while
    holding one of a fixed set of locks chosen by the key hash, and the
    entry is checked again under the lock, so concurrent misses on the same
    key do not repeat the work.
    """

    def __init__(self, name: str, stripes: int = DEFAULT_LOCK_STRIPES) -> None:
        """Initialize an empty table.

        Args:
            name: Table name used in log messages.
            stripes: Number of locks guarding cache misses.

        """
        self._name = name
        self._entries: dict[K, CacheEntry[V]] = {}
        self._locks = tuple(threading.Lock() for _ in range(max(stripes, 1)))

    def peek(self, key: K) -> CacheEntry[V] | None:
        """Get the stored entry for a key, or None if it was never computed."""
        return self._entries.get(key)

    def get_or_compute(self, key: K, compute: Callable[[], V]) -> CacheEntry[V]:
        """Get the stored outcome for a key, computing it on the first query.

        Args:
            key: Cache key.
            compute: Produces the value; a ``SourceTraceError`` it raises is
                stored as the key's outcome. Other exceptions propagate and
                leave the key uncomputed.

        Returns:
            The memoized outcome.

        """
        entry = self._entries.get(key)
        if entry is not None:
            logger.debug("%s cache hit for %s", self._name, key)
            return entry

        with self._locks[hash(key) % len(self._locks)]:
            entry = self._entries.get(key)
            if entry is not None:
                logger.debug("%s cache hit for %s", self._name, key)
                return entry

            logger.debug("%s cache miss for %s", self._name, key)
            try:
                entry = CacheEntry.success(compute())
            except SourceTraceError as e:
                logger.warning("%s lookup failed for %s: %s", self._name, key, e)
                entry = CacheEntry.failure(e)
            self._entries[key] = entry
            return entry

    def __contains__(self, key: object) -> bool:
        """Check whether the key's outcome has been computed."""
        return key in self._entries

    def __len__(self) -> int:
        """Get the number of computed entries."""
        return len(self._entries)


class SourceMapCache:
    """Two-level cache of source map locations and parsed source maps.

    Meant to live for a single JavaScript execution context. Entries are
    never invalidated, so files edited on disk are only observed by a new
    cache.
    """

    def __init__(
        self,
        authorizer: PathAuthorizer,
        resolver: ReferenceResolver,
        loader: ResourceLoader,
        parser: SourceMapParser = parse_source_map,
    ) -> None:
        """Initialize the cache.

        Args:
            authorizer: Access control applied before every lookup.
            resolver: Resolves script paths to source map locations.
            loader: Loads source map content.
            parser: Parses source map content.

        """
        self._authorizer = authorizer
        self._resolver = resolver
        self._loader = loader
        self._parser = parser
        self._locators: MemoTable[Path, ResolvedLocator] = MemoTable("Locator")
        self._source_maps: MemoTable[ResolvedLocator, ParsedSourceMap] = MemoTable(
            "Source map",
        )

    @property
    def locators(self) -> MemoTable[Path, ResolvedLocator]:
        """Table of script path to source map location."""
        return self._locators

    @property
    def source_maps(self) -> MemoTable[ResolvedLocator, ParsedSourceMap]:
        """Table of source map location to parsed source map."""
        return self._source_maps

    def get_or_resolve(self, script_path: str | Path) -> CacheEntry[ResolvedLocator]:
        """Get the source map location of a generated script.

        Forbidden paths are rejected on every call and never stored.

        Args:
            script_path: Path of the generated script.

        Returns:
            The memoized resolution outcome.

        """
        try:
            abs_path = self._authorizer.check(script_path)
        except SourceTraceError as e:
            logger.warning("Rejected script %s: %s", script_path, e)
            return CacheEntry.failure(e)

        return self._locators.get_or_compute(
            abs_path,
            lambda: self._resolver.resolve(abs_path),
        )

    def get_or_load_and_parse(
        self,
        locator: ResolvedLocator,
    ) -> CacheEntry[ParsedSourceMap]:
        """Get the parsed source map at a location.

        Args:
            locator: Resolved source map location.

        Returns:
            The memoized parsing outcome.

        """
        return self._source_maps.get_or_compute(
            locator,
            lambda: self._load_and_parse(locator),
        )

    def _load_and_parse(self, locator: ResolvedLocator) -> ParsedSourceMap:
        content = self._loader.load_text(locator)
        try:
            return self._parser(content)
        except ValueError as e:
            msg = f"Failed to parse source map at {locator}: {e!s}"
            raise MalformedSourceMapError(msg) from e

    def source_map_for(self, script_path: str | Path) -> CacheEntry[ParsedSourceMap]:
        """Get the parsed source map of a generated script."""
        located = self.get_or_resolve(script_path)
        if located.error is not None:
            return CacheEntry.failure(located.error)
        return self.get_or_load_and_parse(located.unwrap())
