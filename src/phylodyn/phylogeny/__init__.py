"""Phylogeny module exports."""

from .ancestral import AncestralStates, reconstruct_ancestors
from .distance import DistanceMatrix, compute_distance_matrix, jukes_cantor
from .tree import PhyloTree, TreeNode
from .tree_builder import build_tree, build_upgma_tree

__all__ = [
    "AncestralStates",
    "DistanceMatrix",
    "PhyloTree",
    "TreeNode",
    "build_tree",
    "build_upgma_tree",
    "compute_distance_matrix",
    "jukes_cantor",
    "reconstruct_ancestors",
]
