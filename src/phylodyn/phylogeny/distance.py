"""Pairwise genetic distances between aligned sequences."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
import pandas as pd
from numpy.typing import ArrayLike, NDArray

from ..errors import InsufficientDataError
from ..models import JC_MAX_PROPORTION, DatedSequence, DistanceModel
from .alignment import encode_alignment, resolved_mask

logger = logging.getLogger(__name__)

MIN_SEQUENCES = 2


def jukes_cantor(proportion: ArrayLike) -> NDArray[np.floating]:
    """JC69 correction of a proportion of differing sites.

    Proportions are clamped to JC_MAX_PROPORTION to stay inside the log domain.
    """
    p = np.minimum(np.asarray(proportion, dtype=float), JC_MAX_PROPORTION)
    return -0.75 * np.log1p(-4.0 * p / 3.0)


@dataclass(frozen=True)
class DistanceMatrix:
    """Symmetric pairwise distance matrix.

    Attributes:
        ids: Sequence identifiers in row order.
        values: (N, N) distances with a zero diagonal.
        compared_sites: (N, N) number of sites compared for each pair.
        model: Distance model used.
    """

    ids: tuple[str, ...]
    values: NDArray[np.float64]
    compared_sites: NDArray[np.int64]
    model: DistanceModel = DistanceModel.P_DISTANCE

    def __len__(self) -> int:
        return len(self.ids)

    @classmethod
    def from_values(
        cls,
        ids: Sequence[str],
        values: ArrayLike,
        model: DistanceModel = DistanceModel.P_DISTANCE,
    ) -> "DistanceMatrix":
        """Wrap a precomputed square matrix.

        Raises:
            ValueError: If the matrix is not square, symmetric, or has a non-zero diagonal.
        """
        matrix = np.array(values, dtype=float)
        n = len(ids)
        if matrix.shape != (n, n):
            raise ValueError(f"Expected a {n}x{n} matrix, got shape {matrix.shape}")
        if not np.allclose(matrix, matrix.T):
            raise ValueError("Distance matrix must be symmetric")
        if not np.allclose(np.diag(matrix), 0.0):
            raise ValueError("Distance matrix must have a zero diagonal")
        if not np.all(np.isfinite(matrix)) or np.any(matrix < 0):
            raise ValueError("Distances must be finite and non-negative")
        return cls(
            ids=tuple(ids),
            values=matrix,
            compared_sites=np.zeros((n, n), dtype=np.int64),
            model=model,
        )

    def distance(self, a: str, b: str) -> float:
        i, j = self.ids.index(a), self.ids.index(b)
        return float(self.values[i, j])

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.values, index=list(self.ids), columns=list(self.ids))


def compute_distance_matrix(
    sequences: Sequence[DatedSequence],
    model: DistanceModel = DistanceModel.P_DISTANCE,
) -> DistanceMatrix:
    """Compute pairwise distances with pairwise deletion of unresolved sites.

    A position is compared for a pair only when both sequences carry an
    unambiguous base there; gaps and ambiguity codes never count as mismatches.
    Sequences of different lengths are compared over their common prefix.

    Args:
        sequences: Aligned dated sequences.
        model: P_DISTANCE (mismatches / compared sites) or JUKES_CANTOR.

    Returns:
        DistanceMatrix in input order. Pairs without any comparable site get 0.0.

    Raises:
        InsufficientDataError: If fewer than 2 sequences are given.
    """
    n = len(sequences)
    if n < MIN_SEQUENCES:
        raise InsufficientDataError(
            f"At least {MIN_SEQUENCES} sequences are required to compute distances, got {n}",
            n_sequences=n,
        )

    codes = encode_alignment(sequences)
    resolved = resolved_mask(codes)

    values = np.zeros((n, n), dtype=float)
    compared = np.zeros((n, n), dtype=np.int64)
    np.fill_diagonal(compared, resolved.sum(axis=1))

    empty_pairs = 0
    for i in range(n - 1):
        both = resolved[i] & resolved[i + 1 :]
        sites = both.sum(axis=1)
        mismatches = ((codes[i] != codes[i + 1 :]) & both).sum(axis=1)
        proportion = np.divide(
            mismatches, sites, out=np.zeros(len(sites), dtype=float), where=sites > 0
        )
        empty_pairs += int(np.count_nonzero(sites == 0))

        row = jukes_cantor(proportion) if model == DistanceModel.JUKES_CANTOR else proportion
        values[i, i + 1 :] = row
        values[i + 1 :, i] = row
        compared[i, i + 1 :] = sites
        compared[i + 1 :, i] = sites

    if empty_pairs:
        logger.warning(f"{empty_pairs} sequence pair(s) share no comparable sites; distance set to 0")

    logger.debug(f"Computed {n}x{n} {model.value} distance matrix")
    return DistanceMatrix(
        ids=tuple(s.id for s in sequences),
        values=values,
        compared_sites=compared,
        model=model,
    )
