"""Codon-aware selection pressure (dN/dS) across a tree.

Every branch is scored by comparing the parsimony-reconstructed parent
sequence with its child codon by codon (Nei-Gojobori counting). Branch
substitution counts are summed over the tree; site counts are averaged over
branches weighted by branch length. Per-window values pool both counts over
branches before the Jukes-Cantor correction.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass

from ..models import (
    DEFAULT_WINDOW_SIZE,
    DNDS_SENTINEL,
    POSITIVE_THRESHOLD,
    PURIFYING_THRESHOLD,
    BranchSelection,
    SelectionClass,
    SelectionResult,
    SelectionWindow,
)
from ..phylogeny.ancestral import AncestralStates, reconstruct_ancestors
from ..phylogeny.distance import jukes_cantor
from ..phylogeny.tree import PhyloTree
from .codons import CODON_LENGTH, codon_sites, is_sense_codon, substitution_counts

logger = logging.getLogger(__name__)


@dataclass
class CodonTally:
    """Running totals of codon comparisons."""

    synonymous_substitutions: float = 0.0
    nonsynonymous_substitutions: float = 0.0
    synonymous_sites: float = 0.0
    nonsynonymous_sites: float = 0.0
    codons: int = 0

    def add(self, source: str, target: str) -> None:
        """Add one codon pair (both must be sense codons)."""
        syn_a, nonsyn_a = codon_sites(source)
        syn_b, nonsyn_b = codon_sites(target)
        self.synonymous_sites += (syn_a + syn_b) / 2.0
        self.nonsynonymous_sites += (nonsyn_a + nonsyn_b) / 2.0
        if source != target:
            syn, nonsyn = substitution_counts(source, target)
            self.synonymous_substitutions += syn
            self.nonsynonymous_substitutions += nonsyn
        self.codons += 1

    @property
    def has_substitutions(self) -> bool:
        return self.synonymous_substitutions + self.nonsynonymous_substitutions > 0


def dnds_ratio(
    synonymous_substitutions: float,
    nonsynonymous_substitutions: float,
    synonymous_sites: float,
    nonsynonymous_sites: float,
) -> tuple[float, bool]:
    """(pN / pS, is_sentinel); DNDS_SENTINEL when no synonymous change was seen."""
    if synonymous_substitutions <= 0 or synonymous_sites <= 0 or nonsynonymous_sites <= 0:
        return DNDS_SENTINEL, True
    p_n = nonsynonymous_substitutions / nonsynonymous_sites
    p_s = synonymous_substitutions / synonymous_sites
    return p_n / p_s, False


def classify_omega(omega: float, has_substitutions: bool) -> SelectionClass:
    if not has_substitutions:
        return SelectionClass.UNKNOWN
    if omega < PURIFYING_THRESHOLD:
        return SelectionClass.PURIFYING
    if omega > POSITIVE_THRESHOLD:
        return SelectionClass.POSITIVE
    return SelectionClass.NEUTRAL


def _weighted_sites(tallies: list[CodonTally], weights: list[float]) -> tuple[float, float]:
    """Branch-length-weighted mean synonymous and nonsynonymous site counts."""
    total = sum(weights)
    if total <= 0:
        weights = [1.0] * len(tallies)
        total = float(len(tallies))
    syn = sum(w * t.synonymous_sites for w, t in zip(weights, tallies, strict=True)) / total
    nonsyn = sum(w * t.nonsynonymous_sites for w, t in zip(weights, tallies, strict=True)) / total
    return syn, nonsyn


def _summarize(tallies: list[CodonTally], weights: list[float]) -> tuple[float, float, float, float]:
    syn_subs = sum(t.synonymous_substitutions for t in tallies)
    nonsyn_subs = sum(t.nonsynonymous_substitutions for t in tallies)
    syn_sites, nonsyn_sites = _weighted_sites(tallies, weights)
    return syn_subs, nonsyn_subs, syn_sites, nonsyn_sites


def _window_result(start: int, end: int, tallies: list[CodonTally]) -> SelectionWindow | None:
    """JC-corrected dN/dS for one window.

    Substitutions and sites are both pooled over branches, so pN and pS are
    per-branch proportions before the correction.
    """
    syn_subs = sum(t.synonymous_substitutions for t in tallies)
    nonsyn_subs = sum(t.nonsynonymous_substitutions for t in tallies)
    syn_sites = sum(t.synonymous_sites for t in tallies)
    nonsyn_sites = sum(t.nonsynonymous_sites for t in tallies)
    if syn_sites <= 0 or nonsyn_sites <= 0:
        return None

    dn = float(jukes_cantor(nonsyn_subs / nonsyn_sites))
    ds = float(jukes_cantor(syn_subs / syn_sites))
    if ds > 0:
        omega = dn / ds
    elif dn > 0:
        omega = DNDS_SENTINEL
    else:
        omega = 1.0
    return SelectionWindow(
        start=start,
        end=end,
        dn=dn,
        ds=ds,
        omega=omega,
        classification=classify_omega(omega, syn_subs + nonsyn_subs > 0),
    )


def estimate_selection(
    tree: PhyloTree,
    window_size: int = DEFAULT_WINDOW_SIZE,
    ancestors: AncestralStates | None = None,
) -> SelectionResult | None:
    """
    Estimate tree-wide dN/dS from aligned coding sequences.

    Codons are read in frame from position 0 of the alignment. Codon pairs
    with an unresolved base or a stop codon on either side are skipped.

    Args:
        tree: UPGMA tree whose leaves carry coding sequences.
        window_size: Width in nucleotides of the per-window breakdown; rounded
            down to whole codons.
        ancestors: Precomputed reconstruction for ``tree``.

    Returns:
        SelectionResult, or None when no codon could be compared.
    """
    if ancestors is None:
        ancestors = reconstruct_ancestors(tree)

    usable = ancestors.length - ancestors.length % CODON_LENGTH
    branch_indices = [i for i in tree.preorder() if tree.parent_of(i) is not None]
    if usable < CODON_LENGTH or not branch_indices:
        logger.warning("Selection not estimated: no complete codons or no branches")
        return None

    window = max(CODON_LENGTH, window_size - window_size % CODON_LENGTH)
    weights = [tree.branch_length(i) for i in branch_indices]

    branch_tallies: list[CodonTally] = []
    window_tallies: dict[int, list[CodonTally]] = defaultdict(
        lambda: [CodonTally() for _ in branch_indices]
    )
    for b, index in enumerate(branch_indices):
        parent_seq = ancestors.sequence(tree.parent_of(index))
        child_seq = ancestors.sequence(index)
        tally = CodonTally()
        for pos in range(0, usable, CODON_LENGTH):
            source = parent_seq[pos : pos + CODON_LENGTH]
            target = child_seq[pos : pos + CODON_LENGTH]
            if not (is_sense_codon(source) and is_sense_codon(target)):
                continue
            tally.add(source, target)
            window_tallies[pos // window][b].add(source, target)
        branch_tallies.append(tally)

    codons_compared = sum(t.codons for t in branch_tallies)
    if codons_compared == 0:
        logger.warning("Selection not estimated: no comparable sense codons")
        return None

    syn_subs, nonsyn_subs, syn_sites, nonsyn_sites = _summarize(branch_tallies, weights)
    tree_dnds, is_sentinel = dnds_ratio(syn_subs, nonsyn_subs, syn_sites, nonsyn_sites)
    has_substitutions = syn_subs + nonsyn_subs > 0

    branches = []
    for index, tally, length in zip(branch_indices, branch_tallies, weights, strict=True):
        ratio, sentinel = dnds_ratio(
            tally.synonymous_substitutions,
            tally.nonsynonymous_substitutions,
            tally.synonymous_sites,
            tally.nonsynonymous_sites,
        )
        branches.append(
            BranchSelection(
                node_id=tree.nodes[index].id,
                parent_id=tree.nodes[tree.parent_of(index)].id,
                length=length,
                synonymous_substitutions=tally.synonymous_substitutions,
                nonsynonymous_substitutions=tally.nonsynonymous_substitutions,
                synonymous_sites=tally.synonymous_sites,
                nonsynonymous_sites=tally.nonsynonymous_sites,
                dnds=ratio,
                is_sentinel=sentinel,
            )
        )

    windows = []
    for key in sorted(window_tallies):
        start = key * window
        result = _window_result(start, min(start + window, usable), window_tallies[key])
        if result is not None:
            windows.append(result)

    if is_sentinel:
        logger.info("No synonymous substitutions observed; reporting dN/dS sentinel")
    logger.info(
        f"Selection: dN/dS={tree_dnds:.3f} over {codons_compared} codon comparisons "
        f"on {len(branches)} branches"
    )
    return SelectionResult(
        tree_dnds=float(tree_dnds),
        synonymous_substitutions=syn_subs,
        nonsynonymous_substitutions=nonsyn_subs,
        synonymous_sites=syn_sites,
        nonsynonymous_sites=nonsyn_sites,
        codons_compared=codons_compared,
        is_sentinel=is_sentinel,
        classification=classify_omega(tree_dnds, has_substitutions),
        branches=tuple(branches),
        windows=tuple(windows),
    )
