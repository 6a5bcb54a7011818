"""Selection pressure (dN/dS) estimation."""

from .codons import GENETIC_CODE, codon_sites, substitution_counts, translate_codon
from .dnds import CodonTally, classify_omega, dnds_ratio, estimate_selection

__all__ = [
    "GENETIC_CODE",
    "CodonTally",
    "classify_omega",
    "codon_sites",
    "dnds_ratio",
    "estimate_selection",
    "substitution_counts",
    "translate_codon",
]
