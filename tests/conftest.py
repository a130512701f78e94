"""Shared fixtures for sourcetrace tests."""

import base64
import json
from collections.abc import Callable
from pathlib import Path

import pytest

from sourcetrace.sourcemap.parser import SourceMapping

# Maps generated 0:23 to source.js 9:11, symbol callSomeMethod
SOURCE_MAP = {
    "version": 3,
    "file": "generated.js",
    "sources": ["source.js"],
    "names": ["callSomeMethod"],
    "mappings": "uBASWA",
}

GENERATED_CODE = "((a,b)=>{return o(a)+o(b)})(5,10);\n"


class CountingReader:
    """File reader stand-in recording every path it reads."""

    def __init__(self) -> None:
        self.calls: list[Path] = []

    def __call__(self, path: Path) -> bytes:
        self.calls.append(path)
        return path.read_bytes()

    def count(self, path: Path) -> int:
        """Number of times the path was read."""
        return self.calls.count(path.resolve())


class FakeSourceMap:
    """Parsed source map stand-in with explicit mappings."""

    def __init__(self, mappings: dict[tuple[int, int], SourceMapping]) -> None:
        self.mappings = mappings

    def lookup(self, line: int, column: int) -> SourceMapping | None:
        return self.mappings.get((line, column))


class CountingParser:
    """Parser stand-in recording the content it parses."""

    def __init__(
        self,
        mappings: dict[tuple[int, int], SourceMapping] | None = None,
    ) -> None:
        self.calls: list[str] = []
        self.source_map = FakeSourceMap(mappings or {})

    def __call__(self, content: str) -> FakeSourceMap:
        self.calls.append(content)
        return self.source_map


def source_map_json(source_map: dict[str, object] | None = None) -> str:
    """Serialize a source map, the default one if none is given."""
    return json.dumps(source_map or SOURCE_MAP)


def data_uri(source_map: dict[str, object] | None = None) -> str:
    """Build a base64 data URI embedding a source map."""
    payload = base64.b64encode(source_map_json(source_map).encode("utf-8"))
    return "data:application/json;charset=utf-8;base64," + payload.decode("ascii")


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Allowed root directory holding the generated files."""
    project = tmp_path / "project"
    project.mkdir()
    return project


@pytest.fixture
def outside_dir(tmp_path: Path) -> Path:
    """Directory outside the allowed root."""
    outside = tmp_path / "outside"
    outside.mkdir()
    return outside


@pytest.fixture
def generated_script(project_dir: Path) -> Path:
    """Generated script with a source map file next to it."""
    script = project_dir / "generated.js"
    script.write_text(GENERATED_CODE + "//# sourceMappingURL=generated.js.map\n")
    (project_dir / "generated.js.map").write_text(source_map_json())
    return script


@pytest.fixture
def inline_script(project_dir: Path) -> Path:
    """Generated script with an inline source map."""
    script = project_dir / "inline.js"
    script.write_text(GENERATED_CODE + f"//# sourceMappingURL={data_uri()}\n")
    return script


@pytest.fixture
def reader() -> CountingReader:
    """Counting file reader."""
    return CountingReader()


@pytest.fixture
def make_parser() -> type[CountingParser]:
    """Factory for counting parser stand-ins."""
    return CountingParser


@pytest.fixture
def make_data_uri() -> Callable[[dict[str, object] | None], str]:
    """Factory for base64 source map data URIs."""
    return data_uri
