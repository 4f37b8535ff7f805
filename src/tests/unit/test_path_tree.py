"""Tests for quire.core.path_tree module."""

import pytest

from quire.core.path_tree import PathTree, is_within, parent_path, sort_nodes
from quire.core.types import FileNode, NodeKind


def folder(path, *children):
    return FileNode.from_path(path, NodeKind.FOLDER, list(children))


def note(path):
    return FileNode.from_path(path, NodeKind.FILE)


@pytest.fixture
def tree():
    return PathTree(
        [
            note("/v/zeta.md"),
            folder("/v/Beta", note("/v/Beta/b.md"), folder("/v/Beta/inner", note("/v/Beta/inner/x.md"))),
            note("/v/Alpha.md"),
            folder("/v/alpha"),
        ]
    )


class TestPathHelpers:
    """Tests for path string helpers."""

    @pytest.mark.parametrize(
        "path,ancestor,expected",
        [
            ("/v/a/b.md", "/v/a", True),
            ("/v/a/b/c.md", "/v/a", True),
            ("/v/a", "/v/a", False),
            ("/v/ab/c.md", "/v/a", False),
            ("C:\\v\\a\\b.md", "C:\\v\\a", True),
            ("/v/a/b.md", "/v/a/", True),
        ],
    )
    def test_is_within(self, path, ancestor, expected):
        """is_within only matches strictly nested paths."""
        assert is_within(path, ancestor) is expected

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/v/a/b.md", "/v/a"),
            ("/v/a/", "/v"),
            ("C:\\v\\note.md", "C:\\v"),
            ("/top", "/"),
            ("name.md", ""),
        ],
    )
    def test_parent_path(self, path, expected):
        """parent_path keeps the separator style of its input."""
        assert parent_path(path) == expected


class TestSortNodes:
    """Tests for display ordering."""

    def test_folders_first_then_case_insensitive(self, tree):
        """Folders precede files; names compare case-insensitively."""
        names = [node.name for node in tree.roots]

        assert names == ["alpha", "Beta", "Alpha.md", "zeta.md"]

    def test_sort_is_recursive(self):
        """Children are sorted too."""
        nodes = sort_nodes([folder("/v/f", note("/v/f/z.md"), folder("/v/f/a"))])

        assert [c.name for c in nodes[0].children] == ["a", "z.md"]


class TestPathTree:
    """Tests for PathTree indexing and lookup."""

    def test_len_counts_every_node(self, tree):
        """Length covers nested nodes."""
        assert len(tree) == 7

    def test_walk_is_depth_first_in_display_order(self, tree):
        """walk yields parents before children, in sorted order."""
        paths = [node.path for node in tree.walk()]

        assert paths == [
            "/v/alpha",
            "/v/Beta",
            "/v/Beta/inner",
            "/v/Beta/inner/x.md",
            "/v/Beta/b.md",
            "/v/Alpha.md",
            "/v/zeta.md",
        ]

    def test_files(self, tree):
        """files returns only leaf file nodes."""
        assert {node.name for node in tree.files()} == {"x.md", "b.md", "Alpha.md", "zeta.md"}

    def test_get_and_contains(self, tree):
        """Nodes are addressable by id."""
        node = tree.find_by_path("/v/Beta/b.md")

        assert node is not None
        assert node.id in tree
        assert tree.get(node.id) == node
        assert tree.get("missing") is None

    def test_find_by_path_ignores_trailing_separator(self, tree):
        """A trailing slash does not change the lookup."""
        assert tree.find_by_path("/v/Beta/") is tree.find_by_path("/v/Beta")

    def test_duplicate_paths_rejected(self):
        """Two nodes with one path make an invalid snapshot."""
        with pytest.raises(ValueError, match="Duplicate path"):
            PathTree([note("/v/a.md"), note("/v/a.md")])

    def test_ancestors_of_nested_file(self, tree):
        """ancestors_of lists containing folders outermost first."""
        chain = tree.ancestors_of("/v/Beta/inner/x.md")

        assert [node.name for node in chain] == ["Beta", "inner"]

    def test_ancestors_of_unknown_path_walks_up(self, tree):
        """A path not yet in the tree still resolves its indexed parents."""
        chain = tree.ancestors_of("/v/Beta/inner/new/Untitled.md")

        assert [node.name for node in chain] == ["Beta", "inner"]

    def test_ancestors_of_root_level(self, tree):
        """Root level paths have no ancestors."""
        assert tree.ancestors_of("/v/zeta.md") == []

    def test_empty_tree(self):
        """An empty tree has no roots."""
        empty = PathTree()

        assert empty.roots == ()
        assert len(empty) == 0
        assert list(empty) == []


class TestFileNode:
    """Tests for the FileNode model."""

    def test_id_derived_from_path(self):
        """Nodes built from the same path share an id."""
        assert note("/v/a.md").id == note("/v/a.md").id
        assert note("/v/a.md").id != note("/v/b.md").id

    def test_accepts_wire_type_field(self):
        """The kind field is also accepted as ``type``."""
        node = FileNode.model_validate({"name": "a.md", "path": "/v/a.md", "type": "file"})

        assert node.kind is NodeKind.FILE
        assert node.id

    def test_files_never_have_children(self):
        """Children are dropped from file nodes and default to empty for folders."""
        assert FileNode(name="a.md", path="/v/a.md", kind="file", children=[]).children is None
        assert FileNode(name="f", path="/v/f", kind="folder").children == ()

    @pytest.mark.parametrize(
        "name,expected",
        [("pic.PNG", True), ("pic.webp", True), ("notes.md", False), (".png", False)],
    )
    def test_is_image(self, name, expected):
        """Image detection uses the lower-cased extension."""
        assert note(f"/v/{name}").is_image is expected
