"""
livecanvas Kernel — Virtual File System

An in-memory tree of files and directories rooted at "/".

Nodes live in one table keyed by canonical path. A directory's children map
names to child paths, so renames and deletes are re-keying operations on the
table and nothing ever holds a reference to a removed node.

Operations: create_file, create_directory, read_file, update_file, delete,
rename, list_files, serialize, load

Every path argument is normalized before lookup. Every successful mutation
bumps `version` and emits a ChangeEvent to subscribers.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from contextlib import suppress
from typing import Any

from livecanvas.kernel.paths import (
    ancestors,
    basename,
    is_ancestor,
    join_path,
    normalize_path,
    parent_path,
)
from livecanvas.kernel.types import (
    ROOT_PATH,
    ChangeEvent,
    DirectoryEntry,
    FileEntry,
    Node,
    NodeKind,
    SerializedNode,
)

logger = logging.getLogger(__name__)

Subscriber = Callable[[ChangeEvent], None]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class VfsError(Exception):
    """Base class for file system errors. `code` is stable for callers."""

    code = "VFS_ERROR"

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class ConflictError(VfsError):
    """Target path is occupied by a node of an incompatible kind."""

    code = "CONFLICT"


class NotFoundError(VfsError):
    """Operation target does not exist."""

    code = "NOT_FOUND"


class InvalidOperationError(VfsError):
    """Structurally illegal request: deleting the root, moving into own subtree."""

    code = "INVALID_OPERATION"


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


class FileListing:
    """
    Lazy, restartable view over the files below a directory.
    Each iteration walks the live tree again.
    """

    def __init__(self, fs: FileSystem, path: str, recursive: bool) -> None:
        self._fs = fs
        self._path = path
        self._recursive = recursive

    def __iter__(self) -> Iterator[FileEntry]:
        return self._fs._walk_files(self._path, self._recursive)

    def __repr__(self) -> str:
        return f"FileListing({self._path!r}, recursive={self._recursive})"


# ---------------------------------------------------------------------------
# File system
# ---------------------------------------------------------------------------


class FileSystem:
    """
    The tree store. Owns every node; mutate only through its methods.
    One instance per session, passed explicitly to whoever needs it.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, Node] = {}
        self._subscribers: list[Subscriber] = []
        self._version = 0
        self._reset_nodes()

    @classmethod
    def from_files(cls, files: Mapping[str, str]) -> FileSystem:
        """Build a store from a flat path → content mapping."""
        fs = cls()
        for path, content in files.items():
            fs._put_file(normalize_path(path), content)
        return fs

    @property
    def version(self) -> int:
        """Incremented on every successful mutation."""
        return self._version

    # -- subscriptions --

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a change callback. Returns a function that unsubscribes it.
        A callback that raises is logged; the mutation and the other callbacks go ahead.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            with suppress(ValueError):
                self._subscribers.remove(callback)

        return unsubscribe

    def _emit(self, kind: str, path: str, old_path: str | None = None) -> None:
        self._version += 1
        event = ChangeEvent(kind=kind, path=path, version=self._version, old_path=old_path)
        logger.debug("vfs: %s %s (version %d)", kind, path, self._version)
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                # the mutation is already applied; the other subscribers still hear about it
                logger.exception("vfs: subscriber failed on %s %s", kind, path)

    # -- queries --

    def exists(self, path: str) -> bool:
        return normalize_path(path) in self._nodes

    def get_node(self, path: str) -> Node | None:
        """A copy of the node at path, or None."""
        node = self._nodes.get(normalize_path(path))
        return node.copy() if node else None

    def read_file(self, path: str) -> str | None:
        """File content, or None if absent or a directory."""
        node = self._nodes.get(normalize_path(path))
        if node is None or not node.is_file:
            return None
        return node.content if node.content is not None else ""

    def list_files(self, path: str = ROOT_PATH, *, recursive: bool = True) -> FileListing:
        """
        Files below a directory. Non-recursive mode yields only direct children.
        Raises NotFoundError if path is not a directory.
        """
        path = normalize_path(path)
        self._require_directory(path)
        return FileListing(self, path, recursive)

    def list_directory(self, path: str = ROOT_PATH) -> list[DirectoryEntry]:
        """Direct children of a directory, both kinds, in insertion order."""
        path = normalize_path(path)
        directory = self._require_directory(path)
        return [
            DirectoryEntry(path=child_path, name=name, kind=self._nodes[child_path].kind)
            for name, child_path in directory.children.items()
        ]

    def get_all_files(self) -> dict[str, str]:
        """Every file in the tree as path → content, pre-order."""
        return {
            entry.path: self._nodes[entry.path].content or ""
            for entry in self._walk_files(ROOT_PATH, recursive=True)
        }

    # -- mutations --

    def create_file(self, path: str, content: str = "") -> None:
        """
        Create or overwrite a file, creating missing parent directories.
        Raises ConflictError if a directory occupies the path or an ancestor is a file.
        """
        path = normalize_path(path)
        existing = self._nodes.get(path)
        if existing is not None and existing.is_directory:
            raise ConflictError(f"A directory already exists at {path}", path)
        existed = existing is not None
        self._put_file(path, content)
        self._emit("update" if existed else "create", path)

    def create_directory(self, path: str) -> None:
        """
        Create a directory and any missing parents. An existing directory is left alone.
        Raises ConflictError if a file occupies the path or an ancestor.
        """
        path = normalize_path(path)
        existing = self._nodes.get(path)
        if existing is not None:
            if existing.is_file:
                raise ConflictError(f"A file already exists at {path}", path)
            return
        self._check_ancestors(path)
        self._ensure_directory(path)
        self._emit("create", path)

    def update_file(self, path: str, content: str) -> None:
        """Replace a file's content. Raises NotFoundError if no file exists there."""
        path = normalize_path(path)
        node = self._nodes.get(path)
        if node is None or not node.is_file:
            raise NotFoundError(f"File not found: {path}", path)
        node.content = content
        self._emit("update", path)

    def delete(self, path: str) -> None:
        """Remove a file, or a directory with its whole subtree."""
        path = normalize_path(path)
        if path == ROOT_PATH:
            raise InvalidOperationError("Cannot delete the root directory", path)
        if path not in self._nodes:
            raise NotFoundError(f"Path not found: {path}", path)

        for doomed in self._subtree(path):
            del self._nodes[doomed]
        parent = self._nodes[parent_path(path)]
        del parent.children[basename(path)]
        self._emit("delete", path)

    def rename(self, old_path: str, new_path: str) -> None:
        """
        Move a node (and its subtree) to a new path, creating missing parents.
        Checks run before anything changes, so a failed rename leaves the tree as it was.
        """
        old_path = normalize_path(old_path)
        new_path = normalize_path(new_path)

        if old_path not in self._nodes:
            raise NotFoundError(f"Path not found: {old_path}", old_path)
        if old_path == new_path:
            return
        if old_path == ROOT_PATH or is_ancestor(old_path, new_path):
            raise InvalidOperationError(f"Cannot move {old_path} into its own subtree ({new_path})", new_path)
        if new_path in self._nodes:
            raise ConflictError(f"Destination already exists: {new_path}", new_path)
        self._check_ancestors(new_path)

        moved = {p: self._nodes.pop(p) for p in self._subtree(old_path)}
        del self._nodes[parent_path(old_path)].children[basename(old_path)]

        for old, node in moved.items():
            node.path = new_path + old[len(old_path):]
            node.name = basename(node.path)
            node.children = {name: join_path(node.path, name) for name in node.children}
            self._nodes[node.path] = node

        new_parent = self._ensure_directory(parent_path(new_path))
        new_parent.children[basename(new_path)] = new_path
        self._emit("rename", new_path, old_path=old_path)

    def reset(self) -> None:
        """Drop everything except the root."""
        self._reset_nodes()
        self._emit("reset", ROOT_PATH)

    # -- persistence --

    def serialize(self) -> dict[str, dict[str, Any]]:
        """
        Flat path → {"kind", "content"?} mapping, pre-order, root excluded.
        This is what the persistence collaborator stores.
        """
        result: dict[str, dict[str, Any]] = {}
        for path in self._walk(ROOT_PATH):
            if path == ROOT_PATH:
                continue
            node = self._nodes[path]
            if node.is_file:
                result[path] = {"kind": NodeKind.FILE.value, "content": node.content or ""}
            else:
                result[path] = {"kind": NodeKind.DIRECTORY.value}
        return result

    def load(self, serialized: Mapping[str, Any]) -> None:
        """
        Replace the whole tree with a serialized mapping.
        Directories may be omitted; they are rebuilt from path prefixes.
        Atomic: on ConflictError or a validation error the current tree is kept.
        """
        staged = FileSystem()
        for raw_path, raw_record in serialized.items():
            record = SerializedNode.model_validate(raw_record)
            path = normalize_path(raw_path)
            if path == ROOT_PATH:
                continue
            if record.kind == NodeKind.FILE.value:
                if path in staged._nodes and staged._nodes[path].is_directory:
                    raise ConflictError(f"A directory already exists at {path}", path)
                staged._put_file(path, record.content or "")
            else:
                existing = staged._nodes.get(path)
                if existing is not None and existing.is_file:
                    raise ConflictError(f"A file already exists at {path}", path)
                staged._check_ancestors(path)
                staged._ensure_directory(path)

        self._nodes = staged._nodes
        logger.info("vfs: loaded %d nodes", len(self._nodes) - 1)
        self._emit("load", ROOT_PATH)

    # ---------------------------------------------------------------------------
    # Internal helpers
    # ---------------------------------------------------------------------------

    def _reset_nodes(self) -> None:
        self._nodes = {ROOT_PATH: Node(path=ROOT_PATH, name="", kind=NodeKind.DIRECTORY)}

    def _require_directory(self, path: str) -> Node:
        node = self._nodes.get(path)
        if node is None or not node.is_directory:
            raise NotFoundError(f"Directory not found: {path}", path)
        return node

    def _check_ancestors(self, path: str) -> None:
        for ancestor in ancestors(path):
            node = self._nodes.get(ancestor)
            if node is not None and node.is_file:
                raise ConflictError(f"A file already exists at {ancestor}", ancestor)

    def _ensure_directory(self, path: str) -> Node:
        """Return the directory at path, creating it and its parents if needed."""
        node = self._nodes.get(path)
        if node is not None:
            return node
        parent = self._ensure_directory(parent_path(path))
        node = Node(path=path, name=basename(path), kind=NodeKind.DIRECTORY)
        self._nodes[path] = node
        parent.children[node.name] = path
        return node

    def _put_file(self, path: str, content: str) -> None:
        """Create or overwrite a file without emitting. Callers check the path first."""
        if path == ROOT_PATH:
            raise ConflictError("A directory already exists at /", path)
        node = self._nodes.get(path)
        if node is not None:
            node.content = content
            return
        self._check_ancestors(path)
        parent = self._ensure_directory(parent_path(path))
        self._nodes[path] = Node(path=path, name=basename(path), kind=NodeKind.FILE, content=content)
        parent.children[basename(path)] = path

    def _subtree(self, path: str) -> list[str]:
        """The path and every descendant path, pre-order."""
        return list(self._walk(path))

    def _walk(self, path: str) -> Iterator[str]:
        stack = [path]
        while stack:
            current = stack.pop()
            node = self._nodes.get(current)
            if node is None:
                # removed while a listing was being iterated
                continue
            yield current
            stack.extend(reversed(list(node.children.values())))

    def _walk_files(self, path: str, recursive: bool) -> Iterator[FileEntry]:
        directory = self._nodes.get(path)
        if directory is None or not directory.is_directory:
            return
        if not recursive:
            for name, child_path in list(directory.children.items()):
                child = self._nodes.get(child_path)
                if child is not None and child.is_file:
                    yield FileEntry(path=child_path, name=name)
            return
        for current in self._walk(path):
            node = self._nodes.get(current)
            if node is not None and node.is_file:
                yield FileEntry(path=node.path, name=node.name)
