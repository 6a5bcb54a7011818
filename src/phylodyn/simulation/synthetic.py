"""
Synthetic dated sequences for exercising the pipeline.

A random coding ancestor is placed some years before the first sample. Every
sample evolves independently from it, carrying a number of substitutions
proportional to the time elapsed since the ancestor.
"""

import logging
from enum import Enum

import numpy as np

from ..models import DatedSequence
from ..selection.codons import SENSE_CODONS

logger = logging.getLogger(__name__)

_BASES = np.array(list("ACGT"))


class DivergencePattern(str, Enum):
    """How divergence relates to sampling date.

    LINEAR: Divergence grows linearly with date (clock-like).
    RANDOM: Elapsed times are shuffled across samples (no temporal signal).
    """

    LINEAR = "linear"
    RANDOM = "random"


def _random_ancestor(rng: np.random.Generator, length: int) -> str:
    codons = rng.choice(np.array(SENSE_CODONS), size=length // 3)
    tail = rng.choice(_BASES, size=length % 3)
    return "".join(codons) + "".join(tail)


def _mutate(rng: np.random.Generator, ancestor: str, n_substitutions: int) -> str:
    bases = np.array(list(ancestor))
    positions = rng.choice(len(bases), size=n_substitutions, replace=False)
    current = np.searchsorted(_BASES, bases[positions])
    shifts = rng.integers(1, 4, size=n_substitutions)
    bases[positions] = _BASES[(current + shifts) % 4]
    return "".join(bases)


def generate_demo_data(  # noqa: PLR0913
    n_sequences: int = 15,
    length: int = 300,
    year_span: float = 5.0,
    pattern: DivergencePattern = DivergencePattern.LINEAR,
    substitution_rate: float = 0.01,
    root_lead: float = 2.0,
    end_date: float = 2024.0,
    seed: int | None = 42,
) -> list[DatedSequence]:
    """
    Generate dated sequences with a controllable divergence pattern.

    Args:
        n_sequences: Number of samples.
        length: Sequence length in nucleotides.
        year_span: Years between the first and last sample.
        pattern: LINEAR for clock-like data, RANDOM for no temporal signal.
        substitution_rate: Substitutions per site per year.
        root_lead: Years between the ancestor and the first sample.
        end_date: Date of the most recent sample.
        seed: Seed for the random generator; None for fresh entropy.

    Returns:
        Samples ``seq_001``..``seq_NNN`` with evenly spaced dates.

    Raises:
        ValueError: If sizes or rates are out of range.
    """
    if n_sequences < 1:
        raise ValueError(f"n_sequences must be positive, got {n_sequences}")
    if length < 3:
        raise ValueError(f"length must be at least one codon, got {length}")
    if year_span < 0 or root_lead < 0 or substitution_rate < 0:
        raise ValueError("year_span, root_lead and substitution_rate must be non-negative")

    rng = np.random.default_rng(seed)
    ancestor = _random_ancestor(rng, length)

    start_date = end_date - year_span
    dates = np.linspace(start_date, end_date, n_sequences)
    elapsed = dates - (start_date - root_lead)
    if pattern == DivergencePattern.RANDOM:
        elapsed = rng.permutation(elapsed)

    sequences = []
    for i, (date, years) in enumerate(zip(dates, elapsed, strict=True), start=1):
        n_substitutions = min(length, int(round(substitution_rate * years * length)))
        sequences.append(
            DatedSequence(
                id=f"seq_{i:03d}",
                sequence=_mutate(rng, ancestor, n_substitutions),
                collection_date=round(float(date), 4),
            )
        )

    logger.info(
        f"Generated {n_sequences} {pattern.value} demo sequences of length {length} "
        f"over {year_span} years"
    )
    return sequences
