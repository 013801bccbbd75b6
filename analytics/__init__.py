"""
Training Analytics Engine

Statistical core for training/performance measurements:
- Trend analysis (regression, smoothing, rolling slopes, variability)
- Feature extraction (rolling stats, rate of change, seasonality, correlation)
- Plateau and change-point detection
- Progress projection with confidence bands
- Adaptation classification (k-means, logistic regression, decision trees, forests)
- Closed-form performance predictions and Holt-Winters forecasting

Design Principles:
- Pure computation: no I/O, no persistent state, nothing shared across calls
- Degenerate statistics return sentinels; only caller mistakes raise
- Randomness is injected, never read from a hidden global
"""

from .models import (
    TimeSeriesPoint,
    RegressionResult,
    TrendDirection,
    TrendStrength,
    TrendSummary,
    CorrelationResult,
    PlateauResult,
    Projection,
    ClusterModel,
    LogisticModel,
    TreeLeaf,
    TreeNode,
    ForestMember,
    GoalTimeline,
    ForecastPoint,
    BacktestResult,
)
from .trend_analyzer import TrendAnalyzer
from .feature_extractor import FeatureExtractor
from .plateau_detector import PlateauDetector
from .progress_projector import ProgressProjector
from .adaptation_classifier import AdaptationClassifier
from .performance_predictor import PerformancePredictor
from .holt_winters import HoltWintersForecaster

__all__ = [
    # Components
    'TrendAnalyzer',
    'FeatureExtractor',
    'PlateauDetector',
    'ProgressProjector',
    'AdaptationClassifier',
    'PerformancePredictor',
    'HoltWintersForecaster',

    # Results
    'TimeSeriesPoint',
    'RegressionResult',
    'TrendDirection',
    'TrendStrength',
    'TrendSummary',
    'CorrelationResult',
    'PlateauResult',
    'Projection',
    'ClusterModel',
    'LogisticModel',
    'TreeLeaf',
    'TreeNode',
    'ForestMember',
    'GoalTimeline',
    'ForecastPoint',
    'BacktestResult',
]
