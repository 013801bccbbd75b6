"""
Result entities for the analytics engine.

Plain structured data: every entity is created fresh per call, carries
no identity beyond that call, and serializes via to_dict() for the API
layer.
"""
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Union


FeatureVector = Dict[str, float]


# ---------------------------------------------------------------------------
# Series
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TimeSeriesPoint:
    """One observation: epoch-millisecond timestamp and a value."""
    timestamp: int
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp, "value": self.value}


# ---------------------------------------------------------------------------
# Trend
# ---------------------------------------------------------------------------

@dataclass
class RegressionResult:
    """Ordinary least squares fit y = slope * x + intercept."""
    slope: float
    intercept: float
    r2: float
    standard_error: float
    sample_size: int = 0

    def value_at(self, x: float) -> float:
        return self.slope * x + self.intercept

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class TrendDirection(str, Enum):
    """Direction of a metric's trend."""
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"
    INSUFFICIENT = "insufficient_data"


class TrendStrength(str, Enum):
    """Strength of a trend, by |r|."""
    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"


@dataclass
class TrendSummary:
    direction: TrendDirection
    strength: TrendStrength
    slope: float
    r2: float
    sample_size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.direction.value,
            "strength": self.strength.value,
            "slope": self.slope,
            "r2": self.r2,
            "sample_size": self.sample_size,
        }


# ---------------------------------------------------------------------------
# Features
# ---------------------------------------------------------------------------

@dataclass
class CorrelationResult:
    """
    Pearson correlation between two columns with a two-tailed t-test.

    slope and r2 are the linear trend of the y column over record order,
    not a regression of y on x.
    """
    correlation: float
    p_value: float
    t_statistic: float
    degrees_of_freedom: int
    slope: float
    r2: float
    sample_size: int

    @property
    def is_significant(self) -> bool:
        return self.p_value < 0.05

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["is_significant"] = self.is_significant
        return data


# ---------------------------------------------------------------------------
# Plateau / projection
# ---------------------------------------------------------------------------

@dataclass
class PlateauResult:
    plateau: bool
    confidence: float
    reasons: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    change_point: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Projection:
    """Baseline forecast with a symmetric confidence band."""
    baseline: List[TimeSeriesPoint]
    upper: List[TimeSeriesPoint]
    lower: List[TimeSeriesPoint]
    slope: float
    intercept: float
    r2: float
    standard_error: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

@dataclass
class ClusterModel:
    centroids: List[FeatureVector]
    assignments: List[int]
    clusters: List[List[FeatureVector]]
    silhouette: float
    iterations: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LogisticModel:
    weights: List[float]
    bias: float
    feature_keys: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TreeLeaf:
    prediction: float
    type: str = field(default="leaf", init=False)


@dataclass
class TreeNode:
    feature: str
    threshold: float
    left: "DecisionTree"
    right: "DecisionTree"
    type: str = field(default="node", init=False)


DecisionTree = Union[TreeLeaf, TreeNode]


@dataclass
class ForestMember:
    tree: DecisionTree
    feature_subset: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Forecasts
# ---------------------------------------------------------------------------

@dataclass
class GoalTimeline:
    weeks: float
    days: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ForecastPoint:
    horizon: int
    value: float
    lower_ci: float
    upper_ci: float
    variance: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BacktestWindow:
    start_index: int
    training: List[float]
    actual: List[float]
    forecasts: List[ForecastPoint]
    accuracy: float


@dataclass
class BacktestResult:
    accuracy: float
    history: List[BacktestWindow] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
