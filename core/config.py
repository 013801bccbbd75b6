"""
Centralized configuration management with validation.

All environment variables are loaded and validated here.
This ensures every engine component starts from the same tunables.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Literal, Optional
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Engine settings with validation."""

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # Environment
    ENVIRONMENT: str = Field(default="development")

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text

    # Randomness
    # None -> each classifier seeds its private generator from OS entropy.
    RANDOM_SEED: Optional[int] = Field(default=None)

    # Clustering / supervised models
    KMEANS_CLUSTERS: int = Field(default=3, ge=1)
    KMEANS_MAX_ITERATIONS: int = Field(default=100, ge=1)
    LOGISTIC_LEARNING_RATE: float = Field(default=0.05, gt=0)
    LOGISTIC_ITERATIONS: int = Field(default=500, ge=1)
    TREE_MAX_DEPTH: int = Field(default=3, ge=0, le=12)
    FOREST_TREES: int = Field(default=5, ge=1)

    # Feature extraction
    # Env value is JSON, e.g. ROLLING_WINDOWS='[7, 14, 30]'
    ROLLING_WINDOWS: List[int] = Field(default=[7, 14, 30])

    # Significance testing
    # "simpson": Lanczos gamma + Simpson's rule (default, hand-rolled)
    # "exact": scipy.stats.t survival function
    P_VALUE_METHOD: Literal["simpson", "exact"] = Field(default="simpson")
    T_DIST_INTEGRATION_INTERVALS: int = Field(default=200, ge=2)

    # Projection
    PROJECTION_STEPS: int = Field(default=4, ge=1)
    PROJECTION_INTERVAL_DAYS: float = Field(default=7.0, gt=0)

    # Holt-Winters forecasting
    HOLT_WINTERS_ALPHA: float = Field(default=0.3, ge=0.01, le=0.99)
    HOLT_WINTERS_BETA: float = Field(default=0.1, ge=0.01, le=0.99)
    HOLT_WINTERS_GAMMA: float = Field(default=0.05, ge=0.01, le=0.99)
    HOLT_WINTERS_SEASON_LENGTH: int = Field(default=7, ge=3)
    HOLT_WINTERS_MIN_POINTS: int = Field(default=12, ge=2)
    DIRECTIONAL_EPSILON: float = Field(default=0.5, ge=0)


# Global settings instance
settings = Settings()
