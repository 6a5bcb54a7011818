"""Root-to-tip molecular clock regression.

Regresses each leaf's divergence from the root on its collection date. The
slope is the substitution rate and the x-intercept dates the root.
"""

import logging
import math

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from ..models import ClockRegression, RegressionPoint, RootToTipMethod
from ..phylogeny.ancestral import AncestralStates, reconstruct_ancestors
from ..phylogeny.tree import PhyloTree

logger = logging.getLogger(__name__)

MIN_DISTINCT_DATES = 2


def root_to_tip_distances(
    tree: PhyloTree,
    method: RootToTipMethod = RootToTipMethod.ANCESTRAL,
    ancestors: AncestralStates | None = None,
) -> NDArray[np.float64]:
    """Root-to-tip distance of every leaf, in ``tree.leaf_indices()`` order.

    Args:
        tree: Tree with dated leaves.
        method: ANCESTRAL compares each leaf with the parsimony-reconstructed
            root sequence; PATH_HEIGHT_SUM adds up the heights of the nodes on
            the path from the root to the leaf.
        ancestors: Precomputed reconstruction for ``tree`` (ANCESTRAL only).
    """
    leaves = tree.leaf_indices()
    if method == RootToTipMethod.PATH_HEIGHT_SUM:
        return np.array(
            [sum(tree.nodes[i].height for i in tree.path_to_root(leaf)) for leaf in leaves],
            dtype=float,
        )

    if ancestors is None:
        ancestors = reconstruct_ancestors(tree)
    return np.array([ancestors.divergence_from_root(leaf) for leaf in leaves], dtype=float)


def regress_clock(
    tree: PhyloTree,
    method: RootToTipMethod = RootToTipMethod.ANCESTRAL,
    ancestors: AncestralStates | None = None,
) -> ClockRegression:
    """Fit an ordinary least-squares molecular clock.

    UPGMA trees are ultrametric, so the default measures divergence from the
    reconstructed root sequence. PATH_HEIGHT_SUM is the literal reading of
    root-to-tip distance as the sum of node heights from root to leaf.

    Args:
        tree: Tree with dated leaves.
        method: Root-to-tip measure.
        ancestors: Precomputed reconstruction for ``tree``.

    Returns:
        ClockRegression. When fewer than MIN_DISTINCT_DATES distinct dates exist
        the result has no residuals (``is_sufficient`` is False). ``r2`` is None
        when all distances are equal and ``root_age`` is None when the rate is 0.
    """
    leaves = tree.leaf_indices()
    dates = np.array([tree.nodes[i].sequence.collection_date for i in leaves], dtype=float)

    if len(np.unique(dates)) < MIN_DISTINCT_DATES:
        logger.warning(
            f"Clock needs at least {MIN_DISTINCT_DATES} distinct collection dates; "
            f"got {len(np.unique(dates))}"
        )
        return ClockRegression.insufficient(method)

    distances = root_to_tip_distances(tree, method, ancestors)

    r2: float | None
    if np.ptp(distances) == 0:
        rate = 0.0
        intercept = float(distances[0])
        r2 = None
    else:
        fit = stats.linregress(dates, distances)
        rate = float(fit.slope)
        intercept = float(fit.intercept)
        r2 = float(min(max(fit.rvalue**2, 0.0), 1.0))
        if not math.isfinite(r2):
            r2 = None

    root_age = -intercept / rate if rate != 0.0 else None
    if root_age is not None and not math.isfinite(root_age):
        root_age = None

    fitted = intercept + rate * dates
    residuals = tuple(
        RegressionPoint(
            sequence_id=tree.nodes[leaf].id,
            observed=float(date),
            expected=float(distance),
            fitted=float(f),
            residual=float(distance - f),
        )
        for leaf, date, distance, f in zip(leaves, dates, distances, fitted, strict=True)
    )

    r2_text = f"{r2:.3f}" if r2 is not None else "n/a"
    logger.info(f"Clock regression: rate={rate:.4g} subs/site/year, r2={r2_text}, root_age={root_age}")
    return ClockRegression(
        residuals=residuals,
        rate=rate,
        r2=r2,
        root_age=root_age,
        intercept=intercept,
        root_to_tip_method=method,
    )
