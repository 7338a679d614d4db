"""
livecanvas Paths — normalization and resolution helpers.

normalize_path() is the central invariant of the kernel: equivalent spellings
of a path must produce the same key.
"""

import pytest

from livecanvas.kernel.paths import (
    ancestors,
    basename,
    is_ancestor,
    is_relative_specifier,
    join_path,
    normalize_path,
    parent_path,
    resolve_relative,
    split_extension,
    strip_source_extension,
)

SAMPLE_PATHS = [
    "",
    "/",
    "//",
    "a",
    "a/b",
    "/a/b/",
    "//a///b",
    "/components/ui/Button.jsx",
    "components//ui/",
    "///",
]


class TestNormalizePath:
    def test_equivalent_spellings(self):
        assert normalize_path("a/b") == normalize_path("/a/b/") == normalize_path("//a///b") == "/a/b"

    def test_empty_string_is_root(self):
        assert normalize_path("") == "/"

    def test_root_keeps_its_slash(self):
        assert normalize_path("/") == "/"
        assert normalize_path("///") == "/"

    @pytest.mark.parametrize("path", SAMPLE_PATHS)
    def test_idempotent(self, path):
        once = normalize_path(path)
        assert normalize_path(once) == once

    @pytest.mark.parametrize("path", SAMPLE_PATHS)
    def test_always_absolute_without_trailing_slash(self, path):
        result = normalize_path(path)
        assert result.startswith("/")
        assert "//" not in result
        assert result == "/" or not result.endswith("/")


class TestPathHelpers:
    def test_parent_path(self):
        assert parent_path("/a/b/c.jsx") == "/a/b"
        assert parent_path("/a") == "/"
        assert parent_path("/") == "/"

    def test_basename(self):
        assert basename("/components/Button.jsx") == "Button.jsx"
        assert basename("/") == ""

    def test_join_path(self):
        assert join_path("/", "App.jsx") == "/App.jsx"
        assert join_path("/a/", "b") == "/a/b"

    def test_is_ancestor_is_strict(self):
        assert is_ancestor("/a", "/a/b")
        assert is_ancestor("/", "/a")
        assert not is_ancestor("/a", "/a")
        assert not is_ancestor("/a", "/ab")

    def test_ancestors_from_root_down(self):
        assert ancestors("/a/b/c") == ["/", "/a", "/a/b"]
        assert ancestors("/a") == ["/"]
        assert ancestors("/") == []


class TestResolveRelative:
    def test_sibling(self):
        assert resolve_relative("/components", "./Button") == "/components/Button"

    def test_parent(self):
        assert resolve_relative("/components/ui", "../../lib/utils") == "/lib/utils"

    def test_never_climbs_above_root(self):
        assert resolve_relative("/a", "../../../x") == "/x"

    def test_dot_is_the_directory(self):
        assert resolve_relative("/components", ".") == "/components"

    def test_relative_specifier_shape(self):
        assert is_relative_specifier("./a")
        assert is_relative_specifier("../a")
        assert is_relative_specifier(".")
        assert not is_relative_specifier("react")
        assert not is_relative_specifier("@/a")
        assert not is_relative_specifier(".hidden")


class TestExtensions:
    def test_split_extension(self):
        assert split_extension("/a/Button.jsx") == ("/a/Button", ".jsx")
        assert split_extension("/a/Button") == ("/a/Button", "")
        assert split_extension("/.env") == ("/.env", "")

    def test_strip_source_extension(self):
        assert strip_source_extension("/a/Button.tsx") == "/a/Button"
        assert strip_source_extension("/styles.css") == "/styles.css"
