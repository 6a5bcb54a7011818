"""Pytest configuration and fixtures for phylodyn tests."""

from collections.abc import Sequence

import pytest

from phylodyn.models import DatedSequence
from phylodyn.phylogeny import DistanceMatrix, PhyloTree, build_upgma_tree
from phylodyn.simulation import generate_demo_data

# Four leaves with hand-checkable UPGMA merges:
# (s2, s3) at 0.025, then (s0, s1) at 0.05, root at 0.1125.
SCENARIO_A_IDS = ("s0", "s1", "s2", "s3")
SCENARIO_A_DISTANCES = [
    [0.0, 0.1, 0.2, 0.3],
    [0.1, 0.0, 0.15, 0.25],
    [0.2, 0.15, 0.0, 0.05],
    [0.3, 0.25, 0.05, 0.0],
]


def make_sequences(
    sequences: Sequence[str],
    dates: Sequence[float] | None = None,
    prefix: str = "s",
) -> list[DatedSequence]:
    """Wrap raw strings as DatedSequences with ids s0, s1, ..."""
    if dates is None:
        dates = [2000.0 + i for i in range(len(sequences))]
    return [
        DatedSequence(id=f"{prefix}{i}", sequence=seq, collection_date=date)
        for i, (seq, date) in enumerate(zip(sequences, dates))
    ]


@pytest.fixture
def scenario_a_sequences() -> list[DatedSequence]:
    """Placeholder sequences dated 2000-2003 for the Scenario A matrix."""
    return make_sequences(["ACGT"] * 4)


@pytest.fixture
def scenario_a_tree(scenario_a_sequences: list[DatedSequence]) -> PhyloTree:
    """UPGMA tree built from the Scenario A distance matrix."""
    matrix = DistanceMatrix.from_values(SCENARIO_A_IDS, SCENARIO_A_DISTANCES)
    return build_upgma_tree(matrix, scenario_a_sequences)


@pytest.fixture
def demo_sequences() -> list[DatedSequence]:
    """15 clock-like sequences of 300 nt over 5 years."""
    return generate_demo_data()


@pytest.fixture
def identical_sequences() -> list[DatedSequence]:
    """Identical coding sequences with distinct dates."""
    return make_sequences(["ATGAAACCCGGGTTT"] * 4)
