"""
Algorithm constants for the analytics engine.

Tunables that a host may reasonably change live in core.config;
the values here define the heuristics themselves.
"""

DAY_MS = 24 * 60 * 60 * 1000

# Regression / trend summary
TREND_MIN_POINTS = 3
TREND_STABLE_R2 = 0.1            # below this, slope is treated as noise
TREND_STRENGTH_MODERATE = 0.3    # |r| thresholds, same bands as correlation strength
TREND_STRENGTH_STRONG = 0.7

# Plateau detection
PLATEAU_MIN_POINTS = 5
PLATEAU_RECENT_FRACTION = 0.3
PLATEAU_SLOWDOWN_RATIO = 0.1     # recent slope < 10% of historical slope
PLATEAU_SLOWDOWN_WEIGHT = 0.4
PLATEAU_ROLLING_WINDOW = 4
PLATEAU_CHANGE_POINT_SIGMA = 2.0
PLATEAU_CHANGE_POINT_WEIGHT = 0.3
PLATEAU_CV_WINDOW = 4
PLATEAU_CV_THRESHOLD = 0.05
PLATEAU_MIN_SPAN_DAYS = 14
PLATEAU_CV_WEIGHT = 0.2
PLATEAU_THRESHOLD = 0.6
CHANGE_POINT_THRESHOLD = 0.4

# Projection
PROJECTION_Z = 1.96              # 95% normal approximation

# Correlation significance
MIN_CORRELATION_SAMPLES = 3
CORRELATION_R2_FLOOR = 1e-6      # keeps t finite for |r| == 1

# Decision trees
TREE_MIN_THRESHOLD_STEPS = 5
TREE_SAMPLES_PER_STEP = 5

# Performance predictor clamps
FIVE_K_RATE_BOUNDS = (0.0, 0.2)
RECOVERY_FACTOR_BOUNDS = (0.5, 1.5)
