"""
livecanvas VFS — Rename / Move Tests

A rename re-keys a node and its whole subtree. Every failure mode must leave
the tree exactly as it was.
"""

import pytest

from livecanvas.kernel.vfs import (
    ConflictError,
    InvalidOperationError,
    NotFoundError,
)


@pytest.fixture
def tree(fs):
    fs.create_file("/a/one.js", "1")
    fs.create_file("/a/sub/two.js", "2")
    fs.create_file("/b.js", "b")
    return fs


class TestRename:
    def test_rename_file(self, tree):
        tree.rename("/b.js", "/c.js")
        assert tree.read_file("/c.js") == "b"
        assert tree.read_file("/b.js") is None
        assert tree.get_node("/c.js").name == "c.js"

    def test_move_directory_preserves_structure(self, tree):
        tree.rename("/a", "/lib/a2")

        assert tree.get_all_files() == {
            "/b.js": "b",
            "/lib/a2/one.js": "1",
            "/lib/a2/sub/two.js": "2",
        }
        assert not tree.exists("/a")
        sub = tree.get_node("/lib/a2/sub")
        assert sub.children == {"two.js": "/lib/a2/sub/two.js"}

    def test_children_paths_follow_parent(self, tree):
        tree.rename("/a", "/z")
        for path in tree.serialize():
            node = tree.get_node(path)
            assert node.path == path
            for name, child_path in node.children.items():
                assert child_path == f"{path}/{name}"

    def test_same_path_is_a_no_op(self, tree):
        before = tree.serialize()
        version = tree.version
        tree.rename("/a", "a/")
        assert tree.serialize() == before
        assert tree.version == version


class TestRenameRejections:
    def test_missing_source(self, tree):
        with pytest.raises(NotFoundError):
            tree.rename("/nope", "/x")

    def test_destination_occupied(self, tree):
        before = tree.serialize()
        with pytest.raises(ConflictError):
            tree.rename("/b.js", "/a/one.js")
        assert tree.serialize() == before

    def test_destination_inside_source(self, fs):
        fs.create_file("/a/x.js", "x")
        before = fs.serialize()
        with pytest.raises(InvalidOperationError):
            fs.rename("/a", "/a/b")
        assert fs.serialize() == before

    def test_moving_root(self, tree):
        with pytest.raises(InvalidOperationError):
            tree.rename("/", "/root2")

    def test_destination_under_a_file(self, tree):
        before = tree.serialize()
        with pytest.raises(ConflictError):
            tree.rename("/a", "/b.js/a")
        assert tree.serialize() == before
