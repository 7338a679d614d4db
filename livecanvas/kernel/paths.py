"""
livecanvas Kernel — Path Normalization

Every path that enters the kernel goes through normalize_path() before it is
used as a key. Equivalent spellings ("a/b", "/a/b/", "//a///b") must never
diverge in behavior.

Pure functions. No state.
"""

from __future__ import annotations

import re

from livecanvas.kernel.types import ROOT_PATH, SOURCE_EXTENSIONS

_SEPARATOR_RUN = re.compile(r"/{2,}")


def normalize_path(path: str) -> str:
    """
    Canonical form of a path.

    Leading "/" added if absent, runs of "/" collapsed, trailing "/" stripped
    unless the result is the root. The empty string is the root.
    """
    if not path.startswith("/"):
        path = "/" + path
    path = _SEPARATOR_RUN.sub("/", path)
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]
    return path


def parent_path(path: str) -> str:
    """Parent of a canonical path. The root is its own parent."""
    path = normalize_path(path)
    if path == ROOT_PATH:
        return ROOT_PATH
    head = path.rsplit("/", 1)[0]
    return head or ROOT_PATH


def basename(path: str) -> str:
    """Last segment of a canonical path ("" for the root)."""
    return normalize_path(path).rsplit("/", 1)[1]


def join_path(parent: str, name: str) -> str:
    return normalize_path(f"{parent}/{name}")


def is_ancestor(ancestor: str, path: str) -> bool:
    """True if `path` lies strictly inside `ancestor`."""
    ancestor = normalize_path(ancestor)
    path = normalize_path(path)
    if ancestor == path:
        return False
    if ancestor == ROOT_PATH:
        return True
    return path.startswith(ancestor + "/")


def ancestors(path: str) -> list[str]:
    """Ancestors of a path from the root down, excluding the path itself."""
    path = normalize_path(path)
    result: list[str] = []
    current = ROOT_PATH
    for segment in path.split("/")[1:-1]:
        current = join_path(current, segment)
        result.append(current)
    return [ROOT_PATH, *result] if path != ROOT_PATH else []


def resolve_relative(base_dir: str, specifier: str) -> str:
    """
    Resolve a "./" or "../" specifier against a directory.
    ".." never climbs above the root.
    """
    segments = [s for s in normalize_path(base_dir).split("/") if s]
    for part in specifier.split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            if segments:
                segments.pop()
            continue
        segments.append(part)
    return normalize_path("/".join(segments))


def split_extension(path: str) -> tuple[str, str]:
    """("/a/Button", ".jsx") for "/a/Button.jsx". Dotfiles have no extension."""
    name = basename(path)
    dot = name.rfind(".")
    if dot <= 0:
        return path, ""
    return path[: len(path) - len(name) + dot], name[dot:]


def strip_source_extension(path: str, extensions: tuple[str, ...] = SOURCE_EXTENSIONS) -> str:
    stem, ext = split_extension(path)
    return stem if ext in extensions else path


def is_relative_specifier(specifier: str) -> bool:
    return specifier in (".", "..") or specifier.startswith(("./", "../"))
