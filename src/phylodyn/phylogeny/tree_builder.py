"""
UPGMA tree building.

Builds an ultrametric rooted binary tree from a distance matrix by repeated
average-linkage merging of the closest pair of clusters.
"""

import logging
from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray

from ..errors import InsufficientDataError
from ..models import DatedSequence, DistanceModel
from .distance import DistanceMatrix, compute_distance_matrix
from .tree import PhyloTree, TreeNode

logger = logging.getLogger(__name__)


def _closest_pair(matrix: NDArray[np.float64], active: NDArray[np.bool_]) -> tuple[int, int]:
    """Find the active pair with minimum distance.

    Ties resolve to the first pair in row-major order over active slots, i.e.
    the lowest row index and then the lowest column index.
    """
    slots = np.flatnonzero(active)
    sub = matrix[np.ix_(slots, slots)]
    upper = np.triu(np.ones(sub.shape, dtype=bool), k=1)
    masked = np.where(upper, sub, np.inf)
    row, col = divmod(int(np.argmin(masked)), len(slots))
    return int(slots[row]), int(slots[col])


def build_upgma_tree(
    distances: DistanceMatrix,
    sequences: Sequence[DatedSequence],
) -> PhyloTree:
    """
    Cluster sequences into a rooted binary tree with UPGMA.

    Each merge creates a node at half the merged pair's distance (never
    below either child's height) and replaces the pair by its size-weighted
    average linkage row. The merged cluster keeps the lower slot index.

    Args:
        distances: Pairwise distances in the same order as ``sequences``.
        sequences: The sequences to place at the leaves.

    Returns:
        PhyloTree with leaves at indices 0..N-1 in input order and internal
        nodes ``node_1``..``node_{N-1}`` in merge order; the root is last.
        A single sequence yields a one-leaf tree.

    Raises:
        InsufficientDataError: If no sequence is given.
        ValueError: If the matrix does not match the sequences.
    """
    n = len(sequences)
    if n == 0:
        raise InsufficientDataError("Cannot build a tree without sequences", n_sequences=0)
    if tuple(s.id for s in sequences) != distances.ids:
        raise ValueError("Distance matrix ids do not match the sequence order")

    nodes: list[TreeNode] = [
        TreeNode(id=s.id, is_leaf=True, height=0.0, sequence=s) for s in sequences
    ]
    if n == 1:
        logger.warning("Single sequence: tree has no internal nodes")
        return PhyloTree(nodes, root_index=0)

    matrix = distances.values.astype(float, copy=True)
    active = np.ones(n, dtype=bool)
    sizes = np.ones(n, dtype=float)
    slot_node = list(range(n))

    for step in range(1, n):
        i, j = _closest_pair(matrix, active)
        left, right = slot_node[i], slot_node[j]
        height = max(matrix[i, j] / 2.0, nodes[left].height, nodes[right].height)
        nodes.append(
            TreeNode(
                id=f"node_{step}",
                is_leaf=False,
                height=float(height),
                children=(left, right),
            )
        )
        logger.debug(
            f"Merge {step}: {nodes[left].id} + {nodes[right].id} at height {height:.6g}"
        )

        merged = (sizes[i] * matrix[i] + sizes[j] * matrix[j]) / (sizes[i] + sizes[j])
        matrix[i, :] = merged
        matrix[:, i] = merged
        matrix[i, i] = 0.0
        active[j] = False
        sizes[i] += sizes[j]
        slot_node[i] = len(nodes) - 1

    tree = PhyloTree(nodes, root_index=len(nodes) - 1)
    logger.info(f"UPGMA tree built: {n} leaves, height {tree.height:.6g}")
    return tree


def build_tree(
    sequences: Sequence[DatedSequence],
    model: DistanceModel = DistanceModel.P_DISTANCE,
) -> PhyloTree:
    """Compute distances and build the UPGMA tree in one step.

    Raises:
        InsufficientDataError: If fewer than 2 sequences are given.
    """
    distances = compute_distance_matrix(sequences, model=model)
    return build_upgma_tree(distances, sequences)
