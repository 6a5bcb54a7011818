"""Classic coalescent skyline.

Times are measured in years before the most recent sample: a node's time is
its height divided by the clock rate. Sampling (time 0) opens the first
interval and each coalescent event closes one, so a tree with N leaves yields
N - 1 contiguous intervals from the present back to the root.
"""

import logging

from ..models import MIN_EFFECTIVE_SIZE, ClockRegression, SkylineInterval, SkylineResult
from ..phylogeny.tree import PhyloTree

logger = logging.getLogger(__name__)

MIN_LEAVES = 3


def coalescent_times(tree: PhyloTree, rate: float) -> list[float]:
    """Sorted times before present of all internal nodes."""
    return sorted(tree.nodes[i].height / rate for i in tree.internal_indices())


def skyline_unavailable_reason(tree: PhyloTree, clock: ClockRegression | None) -> str | None:
    """Why a skyline cannot be estimated, or None if it can."""
    if clock is None or not clock.is_sufficient:
        return "no calibrated molecular clock"
    if clock.rate <= 0:
        return f"clock rate must be positive, got {clock.rate:.4g}"
    if tree.leaf_count < MIN_LEAVES:
        return f"at least {MIN_LEAVES} leaves required, got {tree.leaf_count}"
    return None


def estimate_skyline(tree: PhyloTree, clock: ClockRegression | None) -> SkylineResult:
    """
    Estimate a piecewise-constant effective population size.

    For an interval of duration t with k lineages the coalescent point
    estimate is Ne = t * k * (k - 1) / 2, clamped to MIN_EFFECTIVE_SIZE.

    Args:
        tree: UPGMA tree.
        clock: Calibrated clock for the same tree.

    Returns:
        SkylineResult; empty (no intervals) when the clock is missing or has a
        non-positive rate, or when the tree has fewer than MIN_LEAVES leaves.
    """
    reason = skyline_unavailable_reason(tree, clock)
    if reason is not None:
        logger.warning(f"Skyline not estimated: {reason}")
        return SkylineResult()

    rate = clock.rate
    present = max(leaf.sequence.collection_date for leaf in tree.leaves())
    events = [0.0, *coalescent_times(tree, rate)]

    intervals: list[SkylineInterval] = []
    lineages = tree.leaf_count
    for start, end in zip(events[:-1], events[1:], strict=True):
        pairs = lineages * (lineages - 1) / 2.0
        ne = max(MIN_EFFECTIVE_SIZE, (end - start) * pairs)
        intervals.append(SkylineInterval(start_time=start, end_time=end, ne=ne, lineages=lineages))
        lineages -= 1

    logger.info(f"Skyline: {len(intervals)} intervals spanning {events[-1]:.4g} years")
    return SkylineResult(intervals=tuple(intervals), time_span=events[-1], present=present)
