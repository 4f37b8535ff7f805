"""In-memory forest of file tree nodes.

PathTree is a pure data structure: it never touches the filesystem. A new
instance is built for every scan result and replaces the previous one
wholesale.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from quire.core.types import FileNode

__all__ = ["PathTree", "is_within", "parent_path", "sort_nodes"]


def _normalize(path: str) -> str:
    return path.replace("\\", "/").rstrip("/")


def is_within(path: str, ancestor: str) -> bool:
    """True when ``path`` is strictly nested under ``ancestor``."""
    return _normalize(path).startswith(_normalize(ancestor) + "/")


def parent_path(path: str) -> str:
    """Return the parent of ``path`` using the separator the path itself uses."""
    stripped = path.rstrip("/\\")
    cut = max(stripped.rfind("/"), stripped.rfind("\\"))
    if cut <= 0:
        return stripped[: cut + 1] if cut == 0 else ""
    return stripped[:cut]


def _sort_key(node: FileNode) -> tuple[bool, str, str]:
    return (not node.is_folder, node.name.casefold(), node.name)


def sort_nodes(nodes: Iterable[FileNode]) -> tuple[FileNode, ...]:
    """Sort folders before files, then case-insensitively, recursively."""
    ordered = []
    for node in sorted(nodes, key=_sort_key):
        if node.is_folder and node.children:
            node = node.model_copy(update={"children": sort_nodes(node.children)})
        ordered.append(node)
    return tuple(ordered)


class PathTree:
    """Ordered forest of nodes indexed by id and by path."""

    def __init__(self, roots: Iterable[FileNode] = ()):
        self._roots = sort_nodes(roots)
        self._by_id: dict[str, FileNode] = {}
        self._by_path: dict[str, FileNode] = {}
        self._parent_of: dict[str, str | None] = {}
        for root in self._roots:
            self._index(root, None)

    def _index(self, node: FileNode, parent_id: str | None) -> None:
        key = _normalize(node.path)
        if key in self._by_path:
            raise ValueError(f"Duplicate path in tree snapshot: {node.path}")
        self._by_path[key] = node
        self._by_id[node.id] = node
        self._parent_of[node.id] = parent_id
        for child in node.children or ():
            self._index(child, node.id)

    @property
    def roots(self) -> tuple[FileNode, ...]:
        return self._roots

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[FileNode]:
        return self.walk()

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._by_id

    def walk(self) -> Iterator[FileNode]:
        """Yield every node depth-first, in display order."""
        stack = list(reversed(self._roots))
        while stack:
            node = stack.pop()
            yield node
            if node.children:
                stack.extend(reversed(node.children))

    def files(self) -> list[FileNode]:
        return [node for node in self.walk() if node.is_file]

    def get(self, node_id: str) -> FileNode | None:
        return self._by_id.get(node_id)

    def find_by_path(self, path: str) -> FileNode | None:
        return self._by_path.get(_normalize(path))

    def ancestors_of(self, path: str) -> list[FileNode]:
        """Folder nodes containing ``path``, outermost first.

        ``path`` itself need not be in the tree (e.g. a file created after the
        last scan); the nearest indexed parent is found by walking up.
        """
        current = parent_path(path)
        start: FileNode | None = None
        while current:
            start = self.find_by_path(current)
            if start is not None:
                break
            next_parent = parent_path(current)
            if next_parent == current:
                break
            current = next_parent

        chain: list[FileNode] = []
        node_id = start.id if start else None
        while node_id is not None:
            chain.append(self._by_id[node_id])
            node_id = self._parent_of[node_id]
        chain.reverse()
        return chain

    def __repr__(self) -> str:
        return f"PathTree(roots={len(self._roots)}, nodes={len(self)})"
