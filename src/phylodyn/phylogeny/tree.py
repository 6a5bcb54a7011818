"""Arena-backed rooted tree.

Nodes live in a flat tuple and reference their children by index; the tree
keeps an explicit root index. Heights are distances from the leaves.
"""

from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from Bio.Phylo.BaseTree import Clade, Tree

from ..models import DatedSequence, NodeIndex


@dataclass(frozen=True)
class TreeNode:
    """A node in the tree.

    Attributes:
        id: Leaf sequence id, or ``node_<k>`` for internal nodes.
        is_leaf: True for sampled sequences.
        height: Distance from the leaves (0 for leaves).
        children: Arena indices of the children, empty iff leaf.
        sequence: The leaf's DatedSequence, None for internal nodes.
    """

    id: str
    is_leaf: bool
    height: float
    children: tuple[NodeIndex, ...] = ()
    sequence: DatedSequence | None = None

    def __post_init__(self) -> None:
        if self.height < 0:
            raise ValueError(f"Node {self.id!r} has negative height {self.height}")
        if self.is_leaf and (self.children or self.sequence is None):
            raise ValueError(f"Leaf {self.id!r} must have a sequence and no children")
        if not self.is_leaf and (not self.children or self.sequence is not None):
            raise ValueError(f"Internal node {self.id!r} must have children and no sequence")


class PhyloTree:
    """Rooted tree stored as an arena of TreeNodes.

    Attributes:
        nodes: All nodes; leaves first in input order, then internal nodes in
            the order they were created.
        root_index: Arena index of the root.
    """

    def __init__(self, nodes: Sequence[TreeNode], root_index: NodeIndex) -> None:
        self.nodes: tuple[TreeNode, ...] = tuple(nodes)
        self.root_index = root_index

        parents: list[NodeIndex | None] = [None] * len(self.nodes)
        for index, node in enumerate(self.nodes):
            for child in node.children:
                if parents[child] is not None:
                    raise ValueError(f"Node {self.nodes[child].id!r} has more than one parent")
                parents[child] = index
        self._parents = tuple(parents)

    def __len__(self) -> int:
        return len(self.nodes)

    def __repr__(self) -> str:
        return f"PhyloTree(leaves={self.leaf_count}, height={self.height:.6g})"

    @property
    def root(self) -> TreeNode:
        return self.nodes[self.root_index]

    @property
    def height(self) -> float:
        return self.root.height

    @property
    def leaf_count(self) -> int:
        return sum(1 for i in self.preorder() if self.nodes[i].is_leaf)

    @property
    def node_count(self) -> int:
        return sum(1 for _ in self.preorder())

    def node(self, index: NodeIndex) -> TreeNode:
        return self.nodes[index]

    def index_of(self, node_id: str) -> NodeIndex:
        """Arena index of the node with the given id."""
        for index, node in enumerate(self.nodes):
            if node.id == node_id:
                return index
        raise KeyError(node_id)

    def parent_of(self, index: NodeIndex) -> NodeIndex | None:
        return self._parents[index]

    def children_of(self, index: NodeIndex) -> list[TreeNode]:
        return [self.nodes[c] for c in self.nodes[index].children]

    def branch_length(self, index: NodeIndex) -> float:
        """Length of the branch above a node (0 for the root)."""
        parent = self._parents[index]
        if parent is None:
            return 0.0
        return self.nodes[parent].height - self.nodes[index].height

    def total_branch_length(self) -> float:
        return sum(self.branch_length(i) for i in self.preorder())

    def preorder(self) -> Iterator[NodeIndex]:
        """Indices reachable from the root, parents before children."""
        stack = [self.root_index]
        while stack:
            index = stack.pop()
            yield index
            stack.extend(reversed(self.nodes[index].children))

    def postorder(self) -> list[NodeIndex]:
        """Indices reachable from the root, children before parents."""
        result: list[NodeIndex] = []
        stack: list[tuple[NodeIndex, bool]] = [(self.root_index, False)]
        while stack:
            index, expanded = stack.pop()
            if expanded or self.nodes[index].is_leaf:
                result.append(index)
                continue
            stack.append((index, True))
            stack.extend((c, False) for c in reversed(self.nodes[index].children))
        return result

    def leaf_indices(self) -> list[NodeIndex]:
        """Leaf indices in left-to-right order."""
        return [i for i in self.preorder() if self.nodes[i].is_leaf]

    def leaves(self) -> list[TreeNode]:
        return [self.nodes[i] for i in self.leaf_indices()]

    def internal_indices(self) -> list[NodeIndex]:
        return [i for i in self.preorder() if not self.nodes[i].is_leaf]

    def internal_nodes(self) -> list[TreeNode]:
        return [self.nodes[i] for i in self.internal_indices()]

    @property
    def merge_order(self) -> list[NodeIndex]:
        """Internal node indices in the order they were created (root last)."""
        return [i for i, node in enumerate(self.nodes) if not node.is_leaf]

    def path_to_root(self, index: NodeIndex) -> list[NodeIndex]:
        """Indices from a node up to and including the root."""
        path = [index]
        parent = self._parents[index]
        while parent is not None:
            path.append(parent)
            parent = self._parents[parent]
        return path

    def to_newick(self, precision: int = 6) -> str:
        """Serialize to Newick with branch lengths."""
        rendered: dict[NodeIndex, str] = {}
        for index in self.postorder():
            node = self.nodes[index]
            label = node.id
            if not node.is_leaf:
                label = "(" + ",".join(rendered.pop(c) for c in node.children) + ")" + label
            if index != self.root_index:
                label += f":{self.branch_length(index):.{precision}f}"
            rendered[index] = label
        return rendered[self.root_index] + ";"

    def to_biopython(self) -> Tree:
        """Convert to a Bio.Phylo tree (branch lengths from heights)."""
        clades: dict[NodeIndex, Clade] = {}
        for index in self.postorder():
            node = self.nodes[index]
            clades[index] = Clade(
                branch_length=self.branch_length(index),
                name=node.id,
                clades=[clades.pop(c) for c in node.children],
            )
        return Tree(root=clades[self.root_index], rooted=True)
