import logging
import time
from collections.abc import Callable, Iterable
from typing import TypeVar

from phylodyn.clock import regress_clock
from phylodyn.coalescent import estimate_skyline, skyline_unavailable_reason
from phylodyn.errors import InsufficientDataError, InvalidSequenceError
from phylodyn.models import (
    AnalysisOptions,
    ClockRegression,
    DatedSequence,
    Feature,
    FeatureOutcome,
    FeatureStatus,
    PhylodynamicsResult,
    RootToTipMethod,
    SelectionResult,
    SkylineResult,
)
from phylodyn.phylogeny import (
    AncestralStates,
    PhyloTree,
    build_upgma_tree,
    compute_distance_matrix,
    reconstruct_ancestors,
)
from phylodyn.selection import estimate_selection

logger = logging.getLogger(__name__)

T = TypeVar("T")

MIN_SEQUENCES = 2


class PhylodynamicsPipeline:
    """
    Orchestrates one phylodynamic analysis.

    The distance matrix and UPGMA tree are always built. Clock, skyline and
    selection run according to the options; an optional analysis that the
    input cannot support is reported through the result's outcomes instead
    of raising.

    ``timings`` and the cached ancestral states belong to the current run, so
    an instance serves one run at a time; use one instance per thread (as
    ``analyze`` does per call).
    """

    def __init__(self, options: AnalysisOptions | None = None) -> None:
        self.options = options or AnalysisOptions()
        self.timings: dict[str, float] = {}
        self._ancestors: AncestralStates | None = None

    def run(self, sequences: Iterable[DatedSequence]) -> PhylodynamicsResult:
        """Execute the analysis.

        Raises:
            InsufficientDataError: If fewer than 2 sequences are given.
            InvalidSequenceError: If sequence ids are not unique.
        """
        self.timings = {}
        self._ancestors = None
        records = self._step_0_validate(sequences)
        logger.info(f"Starting phylodynamic analysis of {len(records)} sequences")
        start_time = time.perf_counter()

        tree = self._step_1_tree(records)
        clock, clock_outcome = self._step_2_clock(tree)
        skyline, skyline_outcome = self._step_3_skyline(tree, clock)
        selection, selection_outcome = self._step_4_selection(tree)

        total_elapsed = time.perf_counter() - start_time
        logger.info(f"Analysis completed in {total_elapsed:.3f} seconds")
        logger.info("\n" + self.format_timings())

        return PhylodynamicsResult(
            tree=tree,
            clock_regression=clock,
            skyline=skyline,
            selection=selection,
            outcomes={
                Feature.CLOCK: clock_outcome,
                Feature.SKYLINE: skyline_outcome,
                Feature.SELECTION: selection_outcome,
            },
        )

    def format_timings(self) -> str:
        """Table of computation times per step."""
        lines = ["=" * 40, f"{'Step':<25} | {'Time (ms)':<10}", "-" * 40]
        for step, duration in self.timings.items():
            lines.append(f"{step:<25} | {duration * 1000:<10.4f}")
        lines.append("-" * 40)
        lines.append(f"{'Total Computation':<25} | {sum(self.timings.values()) * 1000:<10.4f}")
        lines.append("=" * 40)
        return "\n".join(lines)

    def _timed(self, step: str, func: Callable[..., T], *args, **kwargs) -> T:
        start = time.perf_counter()
        result = func(*args, **kwargs)
        self.timings[step] = time.perf_counter() - start
        return result

    def _ancestral_states(self, tree: PhyloTree) -> AncestralStates:
        if self._ancestors is None:
            self._ancestors = self._timed("Ancestral States", reconstruct_ancestors, tree)
        return self._ancestors

    def _step_0_validate(self, sequences: Iterable[DatedSequence]) -> list[DatedSequence]:
        """Materialize the input and check ids."""
        records = list(sequences)
        if len(records) < MIN_SEQUENCES:
            raise InsufficientDataError(
                f"At least {MIN_SEQUENCES} sequences are required to build a tree, "
                f"got {len(records)}",
                n_sequences=len(records),
            )
        seen: set[str] = set()
        for record in records:
            if record.id in seen:
                raise InvalidSequenceError(f"Duplicate sequence id: {record.id!r}")
            seen.add(record.id)
        return records

    def _step_1_tree(self, records: list[DatedSequence]) -> PhyloTree:
        """Compute distances and cluster them."""
        distances = self._timed(
            "Distance Matrix", compute_distance_matrix, records, self.options.distance_model
        )
        return self._timed("UPGMA Tree", build_upgma_tree, distances, records)

    def _step_2_clock(self, tree: PhyloTree) -> tuple[ClockRegression | None, FeatureOutcome]:
        """Calibrate the molecular clock."""
        if not self.options.run_clock:
            return None, FeatureOutcome(FeatureStatus.NOT_REQUESTED)

        method = self.options.root_to_tip_method
        ancestors = self._ancestral_states(tree) if method == RootToTipMethod.ANCESTRAL else None
        clock = self._timed("Clock Regression", regress_clock, tree, method, ancestors)
        if not clock.is_sufficient:
            return None, FeatureOutcome(
                FeatureStatus.INSUFFICIENT, "fewer than 2 distinct collection dates"
            )
        return clock, FeatureOutcome(FeatureStatus.COMPUTED)

    def _step_3_skyline(
        self, tree: PhyloTree, clock: ClockRegression | None
    ) -> tuple[SkylineResult | None, FeatureOutcome]:
        """Estimate the skyline from the clock-calibrated tree."""
        if not self.options.run_skyline:
            return None, FeatureOutcome(FeatureStatus.NOT_REQUESTED)
        if clock is None:
            logger.info("Skyline skipped: no molecular clock was computed")
            return None, FeatureOutcome(FeatureStatus.UNAVAILABLE, "no molecular clock")

        reason = skyline_unavailable_reason(tree, clock)
        if reason is not None:
            logger.info(f"Skyline skipped: {reason}")
            return None, FeatureOutcome(FeatureStatus.INSUFFICIENT, reason)

        skyline = self._timed("Coalescent Skyline", estimate_skyline, tree, clock)
        return skyline, FeatureOutcome(FeatureStatus.COMPUTED)

    def _step_4_selection(
        self, tree: PhyloTree
    ) -> tuple[SelectionResult | None, FeatureOutcome]:
        """Estimate dN/dS over the tree."""
        if not self.options.run_selection:
            return None, FeatureOutcome(FeatureStatus.NOT_REQUESTED)

        selection = self._timed(
            "Selection Pressure",
            estimate_selection,
            tree,
            self.options.selection_window_size,
            self._ancestral_states(tree),
        )
        if selection is None:
            return None, FeatureOutcome(FeatureStatus.INSUFFICIENT, "no comparable coding codons")
        return selection, FeatureOutcome(FeatureStatus.COMPUTED)


def analyze(
    sequences: Iterable[DatedSequence],
    options: AnalysisOptions | None = None,
) -> PhylodynamicsResult:
    """Run a phylodynamic analysis with the given feature flags.

    Args:
        sequences: Aligned dated sequences with unique ids.
        options: Feature flags and tunables; all optional analyses are off by default.

    Returns:
        PhylodynamicsResult.

    Raises:
        InsufficientDataError: If fewer than 2 sequences are given.
    """
    return PhylodynamicsPipeline(options).run(sequences)
