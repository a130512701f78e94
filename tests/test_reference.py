"""Tests for source map reference extraction and resolution."""

import base64
from pathlib import Path

import pytest

from sourcetrace.errors import (
    ForbiddenAccessError,
    MalformedReferenceError,
    MissingReferenceError,
    ResourceNotFoundError,
)
from sourcetrace.paths import PathAuthorizer
from sourcetrace.sourcemap.locators import FileLocator, InlineLocator
from sourcetrace.sourcemap.reference import (
    ReferenceResolver,
    decode_data_uri,
    extract_reference,
    is_data_uri,
    resolve_reference,
)

# =============================================================================
# extract_reference Tests
# =============================================================================


class TestExtractReference:
    """Test extract_reference."""

    def test_line_comment_with_hash(self) -> None:
        """The //# form is recognized."""
        code = "var a = 1;\n//# sourceMappingURL=app.js.map\n"
        assert extract_reference(code) == "app.js.map"

    def test_line_comment_with_at(self) -> None:
        """The legacy //@ form is recognized."""
        code = "var a = 1;\n//@ sourceMappingURL=app.js.map"
        assert extract_reference(code) == "app.js.map"

    def test_block_comment(self) -> None:
        """The /*# ... */ form is recognized."""
        code = "body{}\n/*# sourceMappingURL=style.css.map */\n"
        assert extract_reference(code) == "style.css.map"

    def test_no_directive(self) -> None:
        """Code without a directive yields None."""
        assert extract_reference("var a = 1;\n// just a comment\n") is None

    def test_first_directive_wins(self) -> None:
        """Only the first directive in document order is used."""
        code = (
            "//# sourceMappingURL=first.js.map\n"
            "var a = 1;\n"
            "//# sourceMappingURL=second.js.map\n"
        )
        assert extract_reference(code) == "first.js.map"

    def test_directive_must_end_the_line(self) -> None:
        """A directive followed by more code on the same line is ignored."""
        code = 'var s = "//# sourceMappingURL=fake.map"; run();\n'
        assert extract_reference(code) is None

    def test_case_sensitive(self) -> None:
        """The directive name is case sensitive."""
        assert extract_reference("//# SourceMappingURL=app.js.map\n") is None

    def test_data_uri_reference(self, make_data_uri) -> None:
        """Inline data URIs are returned as-is."""
        uri = make_data_uri(None)
        assert extract_reference(f"x();\n//# sourceMappingURL={uri}") == uri


class TestDataUri:
    """Test data URI recognition and decoding."""

    def test_base64_json_uri_is_recognized(self) -> None:
        """application/json with base64 encoding is a data URI."""
        assert is_data_uri("data:application/json;base64,e30=")
        assert is_data_uri("data:application/json;charset=utf-8;base64,e30=")

    def test_other_references_are_not_data_uris(self) -> None:
        """Paths and non-base64 data URIs are not recognized."""
        assert not is_data_uri("app.js.map")
        assert not is_data_uri("data:application/json,{}")
        assert not is_data_uri("data:text/plain;base64,e30=")

    def test_decode_payload(self) -> None:
        """The payload after the first comma is base64-decoded."""
        payload = base64.b64encode(b'{"version":3}').decode("ascii")
        assert decode_data_uri(f"data:application/json;base64,{payload}") == (
            b'{"version":3}'
        )

    def test_invalid_base64_is_malformed(self) -> None:
        """Invalid base64 payloads raise MalformedReferenceError."""
        with pytest.raises(MalformedReferenceError):
            decode_data_uri("data:application/json;base64,not*base64")

    def test_plain_data_uri_is_malformed(self) -> None:
        """Non-base64 data URIs are not supported."""
        with pytest.raises(MalformedReferenceError):
            decode_data_uri("data:application/json,{}")


# =============================================================================
# resolve_reference Tests
# =============================================================================


class TestResolveReference:
    """Test resolve_reference."""

    def test_relative_to_script_directory(self, project_dir: Path) -> None:
        """Relative references resolve against the script's directory."""
        script = project_dir / "dist" / "app.js"
        locator = resolve_reference("app.js.map", script)
        assert locator == FileLocator(project_dir.resolve() / "dist" / "app.js.map")

    def test_parent_relative_reference(self, project_dir: Path) -> None:
        """'..' references are resolved and normalized."""
        script = project_dir / "dist" / "app.js"
        locator = resolve_reference("../maps/app.js.map", script)
        assert locator == FileLocator(project_dir.resolve() / "maps" / "app.js.map")

    def test_absolute_path_reference(self, project_dir: Path) -> None:
        """Absolute path references are used as-is."""
        map_path = project_dir.resolve() / "maps" / "app.js.map"
        locator = resolve_reference(str(map_path), project_dir / "app.js")
        assert locator == FileLocator(map_path)

    def test_file_url_reference(self, project_dir: Path) -> None:
        """file: URLs are accepted."""
        map_path = project_dir.resolve() / "app.js.map"
        locator = resolve_reference(map_path.as_uri(), project_dir / "app.js")
        assert locator == FileLocator(map_path)

    @pytest.mark.parametrize(
        "reference",
        [
            "http://example.com/app.js.map",
            "https://example.com/app.js.map",
            "ftp://example.com/app.js.map",
            "//example.com/app.js.map",
            "file://remote-host/share/app.js.map",
        ],
    )
    def test_remote_references_are_forbidden(
        self,
        project_dir: Path,
        reference: str,
    ) -> None:
        """Network schemes and remote hosts are rejected."""
        with pytest.raises(ForbiddenAccessError, match="Cannot load URL"):
            resolve_reference(reference, project_dir / "app.js")

    @pytest.mark.parametrize(
        "reference",
        [
            "http://[::1/app.js.map",
            "app%00.js.map",
            "file:///srv/app%00.js.map",
        ],
    )
    def test_invalid_references_are_malformed(
        self,
        project_dir: Path,
        reference: str,
    ) -> None:
        """Unparsable URLs and null bytes raise MalformedReferenceError."""
        with pytest.raises(MalformedReferenceError):
            resolve_reference(reference, project_dir / "app.js")

    def test_data_uri_is_decoded(self, project_dir: Path, make_data_uri) -> None:
        """Data URIs become inline locators holding the decoded content."""
        locator = resolve_reference(make_data_uri(None), project_dir / "app.js")
        assert isinstance(locator, InlineLocator)
        assert b'"mappings": "uBASWA"' in locator.content


# =============================================================================
# ReferenceResolver Tests
# =============================================================================


class TestReferenceResolver:
    """Test ReferenceResolver."""

    def test_resolves_file_reference(self, project_dir: Path, generated_script) -> None:
        """A script's relative directive resolves next to the script."""
        resolver = ReferenceResolver(PathAuthorizer([project_dir]))
        locator = resolver.resolve(generated_script)
        assert locator == FileLocator(project_dir.resolve() / "generated.js.map")

    def test_resolves_inline_reference(self, project_dir: Path, inline_script) -> None:
        """A script's data URI resolves to an inline locator."""
        resolver = ReferenceResolver(PathAuthorizer([project_dir]))
        assert isinstance(resolver.resolve(inline_script), InlineLocator)

    def test_map_existence_is_not_checked(self, project_dir: Path) -> None:
        """Resolution does not require the source map file to exist."""
        script = project_dir / "app.js"
        script.write_text("x();\n//# sourceMappingURL=missing.js.map\n")
        resolver = ReferenceResolver(PathAuthorizer([project_dir]))
        assert resolver.resolve(script) == FileLocator(
            project_dir.resolve() / "missing.js.map",
        )

    def test_script_outside_roots_is_forbidden(
        self,
        project_dir: Path,
        outside_dir: Path,
        reader,
    ) -> None:
        """Scripts outside the roots are rejected without reading them."""
        script = outside_dir / "app.js"
        script.write_text("x();\n//# sourceMappingURL=app.js.map\n")
        resolver = ReferenceResolver(PathAuthorizer([project_dir]), reader)
        with pytest.raises(ForbiddenAccessError):
            resolver.resolve(script)
        assert reader.calls == []

    def test_missing_script(self, project_dir: Path) -> None:
        """A missing script raises ResourceNotFoundError."""
        resolver = ReferenceResolver(PathAuthorizer([project_dir]))
        with pytest.raises(ResourceNotFoundError):
            resolver.resolve(project_dir / "missing.js")

    def test_script_without_directive(self, project_dir: Path) -> None:
        """A script without a directive raises MissingReferenceError."""
        script = project_dir / "plain.js"
        script.write_text("console.log('hi');\n")
        resolver = ReferenceResolver(PathAuthorizer([project_dir]))
        with pytest.raises(MissingReferenceError):
            resolver.resolve(script)

    def test_remote_directive_is_forbidden(self, project_dir: Path) -> None:
        """A directive naming a remote URL is rejected."""
        script = project_dir / "remote.js"
        script.write_text("x();\n//# sourceMappingURL=https://cdn.example.com/a.map\n")
        resolver = ReferenceResolver(PathAuthorizer([project_dir]))
        with pytest.raises(ForbiddenAccessError):
            resolver.resolve(script)
