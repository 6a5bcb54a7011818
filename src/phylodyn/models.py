"""Data classes, type definitions, and constants for phylodynamic analysis."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from .errors import InvalidSequenceError

if TYPE_CHECKING:
    from .phylogeny.tree import PhyloTree

# Type aliases for domain clarity
SequenceId = str
NodeIndex = int

# Reported instead of dN/dS when no synonymous substitution was observed.
DNDS_SENTINEL: float = 10.0

# Lower bound for coalescent Ne estimates.
MIN_EFFECTIVE_SIZE: float = 1.0

# Proportion ceiling for Jukes-Cantor corrections (log domain).
JC_MAX_PROPORTION: float = 0.74

# dN/dS classification thresholds
PURIFYING_THRESHOLD: float = 0.5
POSITIVE_THRESHOLD: float = 1.5

DEFAULT_WINDOW_SIZE: int = 150


class DistanceModel(str, Enum):
    """Pairwise distance model.

    P_DISTANCE: Proportion of mismatching comparable sites.
    JUKES_CANTOR: JC69-corrected p-distance.
    """

    P_DISTANCE = "p_distance"
    JUKES_CANTOR = "jukes_cantor"


class RootToTipMethod(str, Enum):
    """How root-to-tip divergence is measured for the clock regression.

    ANCESTRAL: p-distance between the leaf and the reconstructed root sequence.
    PATH_HEIGHT_SUM: Sum of node heights on the path from the root to the leaf.
    """

    ANCESTRAL = "ancestral"
    PATH_HEIGHT_SUM = "path_height_sum"


class Feature(str, Enum):
    """Optional analyses layered on top of the tree."""

    CLOCK = "clock"
    SKYLINE = "skyline"
    SELECTION = "selection"


class FeatureStatus(str, Enum):
    """Outcome of an optional analysis.

    NOT_REQUESTED: The caller did not ask for it.
    COMPUTED: The result field is populated.
    INSUFFICIENT: Attempted, but the input could not support it.
    UNAVAILABLE: Not attempted because a prerequisite analysis is missing.
    """

    NOT_REQUESTED = "not_requested"
    COMPUTED = "computed"
    INSUFFICIENT = "insufficient"
    UNAVAILABLE = "unavailable"


class SelectionClass(str, Enum):
    """Qualitative reading of a dN/dS value."""

    PURIFYING = "purifying"
    NEUTRAL = "neutral"
    POSITIVE = "positive"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class DatedSequence:
    """A sequence tagged with its collection date.

    Attributes:
        id: Identifier, unique within one analysis call.
        sequence: Nucleotide symbols (aligned to the other inputs).
        collection_date: Calendar time in decimal years (e.g. 2019.5).
    """

    id: SequenceId
    sequence: str
    collection_date: float

    def __post_init__(self) -> None:
        if not self.id:
            raise InvalidSequenceError("Sequence id must not be empty")
        if not self.sequence:
            raise InvalidSequenceError(f"Sequence {self.id!r} is empty")
        if not math.isfinite(self.collection_date):
            raise InvalidSequenceError(
                f"Sequence {self.id!r} has a non-finite collection date: {self.collection_date}"
            )

    def __len__(self) -> int:
        return len(self.sequence)


@dataclass(frozen=True)
class RegressionPoint:
    """One leaf in the root-to-tip regression.

    Attributes:
        sequence_id: Leaf identifier.
        observed: Collection date (x).
        expected: Root-to-tip distance (y).
        fitted: Distance predicted by the regression line at ``observed``.
        residual: ``expected - fitted``.
    """

    sequence_id: SequenceId
    observed: float
    expected: float
    fitted: float
    residual: float


@dataclass(frozen=True)
class ClockRegression:
    """Root-to-tip regression of divergence against sampling date.

    Attributes:
        residuals: One point per leaf; empty when the dates cannot support a clock.
        rate: Slope, substitutions per site per year.
        r2: Coefficient of determination, None when distances have no variance.
        root_age: Date at which fitted divergence is zero, None when rate is 0.
        intercept: Fitted divergence at date 0.
        root_to_tip_method: How the distances were measured.
    """

    residuals: tuple[RegressionPoint, ...]
    rate: float
    r2: float | None
    root_age: float | None
    intercept: float = 0.0
    root_to_tip_method: RootToTipMethod = RootToTipMethod.ANCESTRAL

    @classmethod
    def insufficient(
        cls, method: RootToTipMethod = RootToTipMethod.ANCESTRAL
    ) -> "ClockRegression":
        """Empty result signalling that no clock could be calibrated."""
        return cls(residuals=(), rate=0.0, r2=None, root_age=None, root_to_tip_method=method)

    @property
    def is_sufficient(self) -> bool:
        return len(self.residuals) > 0

    def predict(self, date: float) -> float:
        """Fitted root-to-tip distance at a calendar date."""
        return self.intercept + self.rate * date

    def to_dict(self) -> dict[str, Any]:
        return {
            "rate": self.rate,
            "r2": self.r2,
            "root_age": self.root_age,
            "intercept": self.intercept,
            "root_to_tip_method": self.root_to_tip_method.value,
            "residuals": [
                {
                    "sequence_id": p.sequence_id,
                    "observed": p.observed,
                    "expected": p.expected,
                    "fitted": p.fitted,
                    "residual": p.residual,
                }
                for p in self.residuals
            ],
        }


@dataclass(frozen=True)
class SkylineInterval:
    """A span between two consecutive events, in years before present."""

    start_time: float
    end_time: float
    ne: float
    lineages: int

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass(frozen=True)
class SkylineResult:
    """Piecewise-constant Ne trajectory.

    Times run backwards from the most recent sample (``present``): interval 0
    starts at 0 and the last interval ends at the root.

    Attributes:
        intervals: Contiguous, non-overlapping intervals ordered from the present.
        time_span: Time from the most recent sample back to the root.
        present: Calendar date of the most recent sample.
    """

    intervals: tuple[SkylineInterval, ...] = ()
    time_span: float = 0.0
    present: float | None = None

    @property
    def is_empty(self) -> bool:
        return not self.intervals

    def calendar_interval(self, index: int) -> tuple[float, float]:
        """Calendar (older, younger) dates bounding an interval."""
        if self.present is None:
            raise ValueError("Skyline has no calendar anchor")
        interval = self.intervals[index]
        return (self.present - interval.end_time, self.present - interval.start_time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "time_span": self.time_span,
            "present": self.present,
            "intervals": [
                {
                    "start_time": i.start_time,
                    "end_time": i.end_time,
                    "ne": i.ne,
                    "lineages": i.lineages,
                }
                for i in self.intervals
            ],
        }


@dataclass(frozen=True)
class BranchSelection:
    """Codon substitution counts along one tree branch (parent -> child)."""

    node_id: str
    parent_id: str
    length: float
    synonymous_substitutions: float
    nonsynonymous_substitutions: float
    synonymous_sites: float
    nonsynonymous_sites: float
    dnds: float
    is_sentinel: bool


@dataclass(frozen=True)
class SelectionWindow:
    """Tree-wide dN/dS within one codon-aligned alignment window."""

    start: int
    end: int
    dn: float
    ds: float
    omega: float
    classification: SelectionClass


@dataclass(frozen=True)
class SelectionResult:
    """Selective pressure summary across the tree.

    ``tree_dnds`` equals DNDS_SENTINEL (and ``is_sentinel`` is set) when no
    synonymous substitution was observed.
    """

    tree_dnds: float
    synonymous_substitutions: float
    nonsynonymous_substitutions: float
    synonymous_sites: float
    nonsynonymous_sites: float
    codons_compared: int
    is_sentinel: bool
    classification: SelectionClass
    branches: tuple[BranchSelection, ...] = ()
    windows: tuple[SelectionWindow, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "tree_dnds": self.tree_dnds,
            "is_sentinel": self.is_sentinel,
            "classification": self.classification.value,
            "synonymous_substitutions": self.synonymous_substitutions,
            "nonsynonymous_substitutions": self.nonsynonymous_substitutions,
            "synonymous_sites": self.synonymous_sites,
            "nonsynonymous_sites": self.nonsynonymous_sites,
            "codons_compared": self.codons_compared,
        }


@dataclass(frozen=True)
class FeatureOutcome:
    """Status of an optional analysis plus a human-readable reason."""

    status: FeatureStatus
    reason: str = ""


@dataclass(frozen=True)
class AnalysisOptions:
    """Feature flags and tunables for one analysis call.

    Attributes:
        run_clock: Calibrate a molecular clock.
        run_skyline: Estimate the coalescent skyline (needs the clock).
        run_selection: Estimate dN/dS over the tree.
        distance_model: Pairwise distance model for tree building.
        root_to_tip_method: Root-to-tip measure for the clock.
        selection_window_size: Window width (nucleotides) for per-window dN/dS.
    """

    run_clock: bool = False
    run_skyline: bool = False
    run_selection: bool = False
    distance_model: DistanceModel = DistanceModel.P_DISTANCE
    root_to_tip_method: RootToTipMethod = RootToTipMethod.ANCESTRAL
    selection_window_size: int = DEFAULT_WINDOW_SIZE

    def is_requested(self, feature: Feature) -> bool:
        return {
            Feature.CLOCK: self.run_clock,
            Feature.SKYLINE: self.run_skyline,
            Feature.SELECTION: self.run_selection,
        }[feature]


@dataclass(frozen=True)
class PhylodynamicsResult:
    """Complete result of one analysis call.

    Attributes:
        tree: UPGMA tree (always present).
        clock_regression: Present iff the clock was requested and calibrated.
        skyline: Present iff requested and a usable clock exists.
        selection: Present iff requested and codon data was usable.
        outcomes: Status of every optional feature.
    """

    tree: "PhyloTree"
    clock_regression: ClockRegression | None = None
    skyline: SkylineResult | None = None
    selection: SelectionResult | None = None
    outcomes: dict[Feature, FeatureOutcome] = field(default_factory=dict)

    def status(self, feature: Feature) -> FeatureStatus:
        outcome = self.outcomes.get(feature)
        return outcome.status if outcome else FeatureStatus.NOT_REQUESTED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "tree": {
                "newick": self.tree.to_newick(),
                "leaf_count": self.tree.leaf_count,
                "height": self.tree.height,
            },
            "clock_regression": (
                self.clock_regression.to_dict() if self.clock_regression else None
            ),
            "skyline": self.skyline.to_dict() if self.skyline else None,
            "selection": self.selection.to_dict() if self.selection else None,
            "outcomes": {
                feature.value: {"status": outcome.status.value, "reason": outcome.reason}
                for feature, outcome in self.outcomes.items()
            },
        }
