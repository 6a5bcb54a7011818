"""Codon translation and Nei-Gojobori site/difference counting.

Uses NCBI translation table 1 (standard code) from Biopython.
"""

import itertools
from functools import lru_cache

from Bio.Data import CodonTable

STOP = "*"
CODON_LENGTH = 3

_STANDARD_TABLE = CodonTable.unambiguous_dna_by_id[1]

GENETIC_CODE: dict[str, str] = {
    **dict(_STANDARD_TABLE.forward_table),
    **{codon: STOP for codon in _STANDARD_TABLE.stop_codons},
}

SENSE_CODONS: tuple[str, ...] = tuple(sorted(c for c, aa in GENETIC_CODE.items() if aa != STOP))


def translate_codon(codon: str) -> str | None:
    """Amino acid for a codon, '*' for stops, None if not a plain ACGT triplet."""
    return GENETIC_CODE.get(codon.upper())


def is_sense_codon(codon: str) -> bool:
    aa = translate_codon(codon)
    return aa is not None and aa != STOP


@lru_cache(maxsize=None)
def codon_sites(codon: str) -> tuple[float, float]:
    """Synonymous and nonsynonymous site counts of a codon.

    Each position contributes the fraction of its three possible single-base
    changes that keep the amino acid; changes to a stop are nonsynonymous.
    Stop and invalid codons have no sites.

    Returns:
        (synonymous_sites, nonsynonymous_sites), summing to 3 for sense codons.
    """
    aa = translate_codon(codon)
    if aa is None or aa == STOP:
        return 0.0, 0.0

    synonymous = 0.0
    for pos in range(CODON_LENGTH):
        same = sum(
            1
            for base in "ACGT"
            if base != codon[pos] and GENETIC_CODE[codon[:pos] + base + codon[pos + 1 :]] == aa
        )
        synonymous += same / 3.0
    return synonymous, CODON_LENGTH - synonymous


def _walk_pathway(source: str, target: str, order: tuple[int, ...]) -> tuple[int, int] | None:
    """Count (syn, nonsyn) steps along one mutational pathway.

    Returns None when the pathway passes through an intermediate stop codon.
    """
    current = list(source)
    syn = nonsyn = 0
    for step, pos in enumerate(order):
        before = GENETIC_CODE["".join(current)]
        current[pos] = target[pos]
        after = GENETIC_CODE["".join(current)]
        if after == STOP and step < len(order) - 1:
            return None
        if before == after:
            syn += 1
        else:
            nonsyn += 1
    return syn, nonsyn


@lru_cache(maxsize=None)
def substitution_counts(source: str, target: str) -> tuple[float, float]:
    """Synonymous and nonsynonymous differences between two sense codons.

    Codons differing at several positions are averaged over every order in
    which the changes could have happened, skipping pathways through stop
    codons.

    Returns:
        (synonymous_differences, nonsynonymous_differences).
    """
    differing = [pos for pos in range(CODON_LENGTH) if source[pos] != target[pos]]
    if not differing:
        return 0.0, 0.0

    walks = []
    for order in itertools.permutations(differing):
        walk = _walk_pathway(source, target, order)
        if walk is not None:
            walks.append(walk)
    if not walks:
        return 0.0, float(len(differing))

    syn = sum(w[0] for w in walks) / len(walks)
    nonsyn = sum(w[1] for w in walks) / len(walks)
    return syn, nonsyn
