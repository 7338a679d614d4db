"""
livecanvas VFS — Serialize / Load Tests

serialize() → load() must reproduce the tree exactly, and a load that fails
partway must leave the current tree untouched.
"""

import random

import pytest
from pydantic import ValidationError

from livecanvas.kernel.vfs import ConflictError, FileSystem, VfsError

NAMES = ["a", "b", "c", "App.jsx", "util.js", "index.tsx"]


def _random_path(rng: random.Random) -> str:
    depth = rng.randint(1, 3)
    return "/" + "/".join(rng.choice(NAMES) for _ in range(depth))


def _random_tree(seed: int) -> FileSystem:
    """Apply a deterministic sequence of operations, ignoring the ones that fail."""
    rng = random.Random(seed)
    fs = FileSystem()
    for step in range(60):
        op = rng.choice(["file", "file", "dir", "update", "delete", "rename"])
        try:
            if op == "file":
                fs.create_file(_random_path(rng), f"content {step}")
            elif op == "dir":
                fs.create_directory(_random_path(rng))
            elif op == "update":
                fs.update_file(_random_path(rng), f"updated {step}")
            elif op == "delete":
                fs.delete(_random_path(rng))
            else:
                fs.rename(_random_path(rng), _random_path(rng))
        except VfsError:
            pass
    return fs


class TestSerialize:
    def test_shape(self, fs):
        fs.create_file("/components/Card.jsx", "card")
        fs.create_directory("/empty")
        assert fs.serialize() == {
            "/components": {"kind": "directory"},
            "/components/Card.jsx": {"kind": "file", "content": "card"},
            "/empty": {"kind": "directory"},
        }

    def test_empty_tree(self, fs):
        assert fs.serialize() == {}

    @pytest.mark.parametrize("seed", [1, 7, 42, 2024])
    def test_round_trip(self, seed):
        original = _random_tree(seed)
        snapshot = original.serialize()

        restored = FileSystem()
        restored.load(snapshot)

        assert restored.serialize() == snapshot
        assert restored.get_all_files() == original.get_all_files()


class TestLoad:
    def test_directories_are_implied(self, fs):
        fs.load({"/src/lib/util.js": {"kind": "file", "content": "u"}})
        assert fs.get_node("/src").is_directory
        assert fs.get_node("/src/lib").is_directory
        assert fs.read_file("/src/lib/util.js") == "u"

    def test_replaces_existing_tree(self, project):
        project.load({"/only.js": {"kind": "file", "content": "x"}})
        assert project.get_all_files() == {"/only.js": "x"}

    def test_legacy_type_key(self, fs):
        fs.load({
            "/App.jsx": {"type": "file", "content": "app"},
            "/assets": {"type": "directory"},
        })
        assert fs.read_file("/App.jsx") == "app"
        assert fs.get_node("/assets").is_directory

    def test_paths_are_normalized(self, fs):
        fs.load({"components//Card.jsx/": {"kind": "file", "content": "c"}})
        assert fs.read_file("/components/Card.jsx") == "c"

    def test_conflict_keeps_current_tree(self, project):
        before = project.serialize()
        version = project.version
        with pytest.raises(ConflictError):
            project.load({
                "/a": {"kind": "file", "content": "x"},
                "/a/b.js": {"kind": "file", "content": "y"},
            })
        assert project.serialize() == before
        assert project.version == version

    def test_invalid_record_keeps_current_tree(self, project):
        before = project.serialize()
        with pytest.raises(ValidationError):
            project.load({"/a.js": {"kind": "symlink"}})
        assert project.serialize() == before
