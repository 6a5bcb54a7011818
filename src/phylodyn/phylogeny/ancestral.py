"""Fitch parsimony reconstruction of ancestral sequences on a fixed topology."""

import logging
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from ..models import NodeIndex
from .alignment import BASE_MASKS, decode, encode_alignment, resolved_mask
from .tree import PhyloTree

logger = logging.getLogger(__name__)

_BASE_BITS = np.array(BASE_MASKS, dtype=np.uint8)


@dataclass(frozen=True)
class AncestralStates:
    """Nucleotide masks for every node in the arena.

    Leaves keep their observed masks (which may be ambiguous); internal
    nodes always carry a single resolved base per site.
    """

    tree: PhyloTree
    states: NDArray[np.uint8]

    @property
    def length(self) -> int:
        return int(self.states.shape[1])

    def sequence(self, index: NodeIndex) -> str:
        return decode(self.states[index])

    @property
    def root_states(self) -> NDArray[np.uint8]:
        return self.states[self.tree.root_index]

    def divergence_from_root(self, index: NodeIndex) -> float:
        """p-distance between a node and the root over resolved sites."""
        node_states = self.states[index]
        comparable = resolved_mask(node_states)
        sites = int(comparable.sum())
        if sites == 0:
            return 0.0
        mismatches = int(np.count_nonzero((node_states != self.root_states) & comparable))
        return mismatches / sites


def _pick_base(candidates: NDArray[np.uint8], counts: NDArray[np.int64]) -> NDArray[np.uint8]:
    """Choose one base per site from candidate sets.

    Prefers the candidate most frequent among the leaves, ties in ACGT order.
    """
    allowed = (candidates[None, :] & _BASE_BITS[:, None]) != 0
    scores = np.where(allowed, counts, -1)
    return _BASE_BITS[np.argmax(scores, axis=0)]


def reconstruct_ancestors(tree: PhyloTree) -> AncestralStates:
    """
    Reconstruct internal-node sequences with Fitch parsimony.

    Bottom-up, each internal node takes the intersection of its children's
    state sets, or their union when the intersection is empty. Top-down, a
    node keeps its parent's base when allowed and otherwise takes its most
    frequent allowed base.

    Args:
        tree: Tree whose leaves carry aligned sequences.

    Returns:
        AncestralStates covering every arena index.
    """
    leaf_indices = [i for i, node in enumerate(tree.nodes) if node.is_leaf]
    codes = encode_alignment([tree.nodes[i].sequence for i in leaf_indices])

    sets = np.zeros((len(tree), codes.shape[1]), dtype=np.uint8)
    sets[leaf_indices] = codes
    counts = np.stack([(codes == bit).sum(axis=0) for bit in _BASE_BITS])

    for index in tree.postorder():
        node = tree.nodes[index]
        if node.is_leaf:
            continue
        child_sets = sets[list(node.children)]
        shared = np.bitwise_and.reduce(child_sets, axis=0)
        combined = np.bitwise_or.reduce(child_sets, axis=0)
        sets[index] = np.where(shared != 0, shared, combined)

    states = sets.copy()
    for index in tree.preorder():
        node = tree.nodes[index]
        if node.is_leaf:
            continue
        parent = tree.parent_of(index)
        preferred = _pick_base(sets[index], counts)
        if parent is None:
            states[index] = preferred
        else:
            parent_base = states[parent]
            states[index] = np.where((sets[index] & parent_base) != 0, parent_base, preferred)

    logger.debug(f"Reconstructed ancestral states for {len(tree) - len(leaf_indices)} internal nodes")
    return AncestralStates(tree=tree, states=states)
