"""Read-only traversal helpers over a parsed tree."""

from __future__ import annotations

from typing import Iterator, Optional

from .newick import Clade


def is_leaf(node: Clade) -> bool:
    return not node.children


def leaves_under(node: Clade) -> list[Clade]:
    """Return every leaf below ``node`` in left-to-right order; a leaf returns itself."""

    leaves: list[Clade] = []
    stack = [node]
    while stack:
        current = stack.pop()
        if not current.children:
            leaves.append(current)
            continue
        stack.extend(reversed(current.children))
    return leaves


def count_leaves_under(node: Clade) -> int:
    return len(leaves_under(node))


class PhyloTree:
    """Immutable wrapper around a parsed root.

    Nodes are addressed by identifiers ``n1``, ``n2``, ... assigned in
    pre-order, so the root is always ``n1``.
    """

    def __init__(self, root: Clade, name: Optional[str] = None) -> None:
        self._root = root
        self._name = name
        self._ids: dict[Clade, str] = {}
        self._nodes: dict[str, Clade] = {}
        self._parents: dict[Clade, Clade] = {}

        for index, node in enumerate(self.iter_nodes(), start=1):
            node_id = f"n{index}"
            self._ids[node] = node_id
            self._nodes[node_id] = node
            for child in node.children:
                self._parents[child] = node

    @property
    def root(self) -> Clade:
        return self._root

    @property
    def name(self) -> Optional[str]:
        return self._name

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node: object) -> bool:
        return node in self._ids

    def is_leaf(self, node: Clade) -> bool:
        return is_leaf(node)

    def leaves_under(self, node: Clade) -> list[Clade]:
        return leaves_under(node)

    def count_leaves_under(self, node: Clade) -> int:
        return count_leaves_under(node)

    def iter_nodes(self) -> Iterator[Clade]:
        """Yield every node in pre-order, siblings left to right."""

        stack = [self._root]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def leaf_names(self) -> list[str]:
        return [leaf.name for leaf in leaves_under(self._root)]

    def node_id(self, node: Clade) -> str:
        try:
            return self._ids[node]
        except KeyError:
            raise KeyError(f"Node {node.name!r} does not belong to this tree.") from None

    def get(self, node_id: str) -> Clade:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise KeyError(f"Unknown node id: {node_id}") from None

    def find(self, name: str) -> Optional[Clade]:
        for node in self.iter_nodes():
            if node.name == name:
                return node
        return None

    def parent(self, node: Clade) -> Optional[Clade]:
        return self._parents.get(node)

    def depths(self) -> dict[Clade, float]:
        """Distance from the root along branch lengths; missing lengths count as zero."""

        depths: dict[Clade, float] = {self._root: 0.0}
        for node in self.iter_nodes():
            base = depths[node]
            for child in node.children:
                depths[child] = base + (child.branch_length or 0.0)
        return depths
