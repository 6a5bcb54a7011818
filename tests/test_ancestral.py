"""Tests for phylodyn.phylogeny.ancestral (Fitch parsimony)."""

import numpy as np
import pytest

from phylodyn.phylogeny import PhyloTree, TreeNode, build_tree, reconstruct_ancestors
from phylodyn.phylogeny.alignment import BASE_MASKS

from .conftest import make_sequences


@pytest.fixture
def three_leaf_tree() -> PhyloTree:
    """((s0:AAAA, s1:AAAT)node_1, s2:CAAT)node_2."""
    leaves = [
        TreeNode(id=s.id, is_leaf=True, height=0.0, sequence=s)
        for s in make_sequences(["AAAA", "AAAT", "CAAT"])
    ]
    nodes = [
        *leaves,
        TreeNode(id="node_1", is_leaf=False, height=0.1, children=(0, 1)),
        TreeNode(id="node_2", is_leaf=False, height=0.2, children=(3, 2)),
    ]
    return PhyloTree(nodes, root_index=4)


class TestReconstructAncestors:
    """Tests for ancestral sequence reconstruction."""

    def test_root_sequence(self, three_leaf_tree: PhyloTree) -> None:
        states = reconstruct_ancestors(three_leaf_tree)
        # Site 0: {A, C} at the root, A is more frequent among the leaves.
        assert states.sequence(4) == "AAAT"

    def test_internal_follows_parent(self, three_leaf_tree: PhyloTree) -> None:
        states = reconstruct_ancestors(three_leaf_tree)
        # Site 3 of node_1 is {A, T}; the parent's T is kept.
        assert states.sequence(3) == "AAAT"

    def test_leaves_unchanged(self, three_leaf_tree: PhyloTree) -> None:
        states = reconstruct_ancestors(three_leaf_tree)
        assert [states.sequence(i) for i in range(3)] == ["AAAA", "AAAT", "CAAT"]

    def test_divergence_from_root(self, three_leaf_tree: PhyloTree) -> None:
        states = reconstruct_ancestors(three_leaf_tree)
        assert states.divergence_from_root(0) == pytest.approx(0.25)
        assert states.divergence_from_root(1) == 0.0
        assert states.divergence_from_root(2) == pytest.approx(0.25)
        assert states.divergence_from_root(4) == 0.0

    def test_unresolved_sites_not_compared(self) -> None:
        leaves = [
            TreeNode(id=s.id, is_leaf=True, height=0.0, sequence=s)
            for s in make_sequences(["AC-G", "ACTG"])
        ]
        nodes = [*leaves, TreeNode(id="node_1", is_leaf=False, height=0.0, children=(0, 1))]
        states = reconstruct_ancestors(PhyloTree(nodes, root_index=2))
        assert states.sequence(2) == "ACTG"
        assert states.divergence_from_root(0) == 0.0

    def test_internal_nodes_resolved(self, demo_sequences) -> None:
        tree = build_tree(demo_sequences)
        states = reconstruct_ancestors(tree)
        assert states.length == len(demo_sequences[0])
        internal = states.states[tree.internal_indices()]
        assert np.isin(internal, BASE_MASKS).all()
