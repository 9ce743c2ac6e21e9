"""Tests for request mapping and HTML rewriting in the dev server handler."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from plugcraft.exceptions import PathTraversalError
from plugcraft.server.handler import (
    RELOAD_CHECK_PATH,
    RELOAD_MARKER,
    content_type_for,
    entry_point_for,
    inject_reload_client,
    locate_file,
    map_request_path,
    parse_counter,
    reload_client,
    split_request_target,
)


# ---------------------------------------------------------------------------
# Content types
# ---------------------------------------------------------------------------


class TestContentType:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("index.html", "text/html; charset=utf-8"),
            ("styles.CSS", "text/css; charset=utf-8"),
            ("main.js", "application/javascript; charset=utf-8"),
            ("icon.svg", "image/svg+xml; charset=utf-8"),
            ("logo.png", "image/png"),
            ("font.woff2", "font/woff2"),
            ("archive.bin", "application/octet-stream"),
            ("Makefile", "application/octet-stream"),
        ],
    )
    def test_known_and_unknown_suffixes(self, name: str, expected: str) -> None:
        assert content_type_for(Path(name)) == expected


# ---------------------------------------------------------------------------
# Live-reload client
# ---------------------------------------------------------------------------


class TestReloadClient:
    def test_fragment_is_seeded(self) -> None:
        fragment = reload_client(1234, 1.5)
        assert RELOAD_MARKER in fragment
        assert "var t = 1234;" in fragment
        assert f"'{RELOAD_CHECK_PATH}?t='" in fragment
        assert "}, 1500);" in fragment

    def test_interval_has_a_floor(self) -> None:
        assert "}, 100);" in reload_client(1, 0.001)

    def test_injected_before_last_body_close(self) -> None:
        html = "<body><p>one</p></body><!-- </body> --></BODY >"
        result = inject_reload_client(html, "<x>")
        assert result == "<body><p>one</p></body><!-- </body> --><x></BODY >"

    def test_appended_without_body(self) -> None:
        assert inject_reload_client("<p>fragment</p>", "<x>") == "<p>fragment</p><x>"

    def test_never_injected_twice(self) -> None:
        fragment = reload_client(1)
        once = inject_reload_client("<body></body>", fragment)
        assert inject_reload_client(once, fragment) == once
        assert once.count(RELOAD_MARKER) == 1


class TestRequestParsing:
    @pytest.mark.parametrize(
        "query,expected",
        [("t=42", 42), ("", 0), ("t=abc", 0), ("x=1", 0), ("t=7&t=9", 7)],
    )
    def test_parse_counter(self, query: str, expected: int) -> None:
        assert parse_counter(query) == expected

    def test_split_request_target(self) -> None:
        assert split_request_target("/a/b.js?t=1#frag") == ("/a/b.js", "t=1")
        assert split_request_target("//evil.example/x") == ("//evil.example/x", "")
        assert split_request_target("/") == ("/", "")


# ---------------------------------------------------------------------------
# Path mapping
# ---------------------------------------------------------------------------


class TestMapRequestPath:
    def test_root_maps_to_entry_point(self, tmp_path: Path) -> None:
        (tmp_path / "manifest.json").write_text(json.dumps({"entryPoint": "app.html"}))
        assert map_request_path(tmp_path, "/") == tmp_path / "app.html"

    def test_root_without_manifest_maps_to_index(self, tmp_path: Path) -> None:
        assert map_request_path(tmp_path, "/") == tmp_path / "index.html"

    def test_inner_dot_segments_are_normalised(self, tmp_path: Path) -> None:
        assert map_request_path(tmp_path, "/lib/../main.js") == tmp_path / "main.js"
        assert map_request_path(tmp_path, "/./a//b.js") == tmp_path / "a" / "b.js"

    def test_double_leading_slash_stays_inside(self, tmp_path: Path) -> None:
        assert map_request_path(tmp_path, "//etc/passwd") == tmp_path / "etc" / "passwd"

    @pytest.mark.parametrize(
        "request_path",
        ["/..", "/../secret", "/a/../../secret", "/..\\secret", "/a/\x00.js"],
    )
    def test_escapes_are_refused(self, tmp_path: Path, request_path: str) -> None:
        with pytest.raises(PathTraversalError):
            map_request_path(tmp_path, request_path)

    def test_unsafe_entry_point_falls_back(self, tmp_path: Path) -> None:
        (tmp_path / "manifest.json").write_text(json.dumps({"entryPoint": "../x.html"}))
        assert entry_point_for(tmp_path) == "index.html"

    def test_broken_manifest_falls_back(self, tmp_path: Path) -> None:
        (tmp_path / "manifest.json").write_text("{not json")
        assert entry_point_for(tmp_path) == "index.html"


class TestLocateFile:
    def test_existing_file(self, tmp_path: Path) -> None:
        (tmp_path / "a.js").write_text("")
        assert locate_file(tmp_path / "a.js") == tmp_path / "a.js"

    def test_html_extension_fallback(self, tmp_path: Path) -> None:
        (tmp_path / "about.html").write_text("")
        assert locate_file(tmp_path / "about") == tmp_path / "about.html"

    def test_directory_index(self, tmp_path: Path) -> None:
        (tmp_path / "docs").mkdir()
        (tmp_path / "docs" / "index.html").write_text("")
        assert locate_file(tmp_path / "docs") == tmp_path / "docs" / "index.html"

    def test_directory_without_index(self, tmp_path: Path) -> None:
        (tmp_path / "empty").mkdir()
        assert locate_file(tmp_path / "empty") is None

    def test_missing(self, tmp_path: Path) -> None:
        assert locate_file(tmp_path / "nope.js") is None
