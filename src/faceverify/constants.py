"""Centralized constants and configuration loader.

This module provides access to configuration values and sensible defaults
for every threshold and weight used by the matching engine. Values are
loaded from config/config.yaml when available, otherwise defaults are used.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

# Path to the default configuration file
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "config.yaml"


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        config_path: Path to config file. Uses default if None.

    Returns:
        Configuration dictionary.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    try:
        if path.exists():
            with open(path, "r") as f:
                return yaml.safe_load(f) or {}
    except Exception as e:
        logger.warning(f"Failed to load config from {path}: {e}")

    return {}


def _get_nested(config: Dict, *keys: str, default: Any = None) -> Any:
    """Get nested config value with default fallback."""
    value = config
    for key in keys:
        if isinstance(value, dict):
            value = value.get(key)
        else:
            return default
        if value is None:
            return default
    return value


# ============================================================
# Fixed engine constants (part of the embedding contract)
# ============================================================

# Appearance regions as (left, top, right, bottom) fractions of the bounding box
REGION_FRACTIONS: Dict[str, Tuple[float, float, float, float]] = {
    "left_eye": (0.15, 0.25, 0.40, 0.40),
    "right_eye": (0.60, 0.25, 0.85, 0.40),
    "nose": (0.35, 0.40, 0.65, 0.65),
    "mouth": (0.30, 0.65, 0.70, 0.85),
}

# ITU-R BT.601 luma weights
LUMA_WEIGHTS: Tuple[float, float, float] = (0.299, 0.587, 0.114)

# Sentinels substituted for missing measurements
MISSING_POSITION = 0.0
MISSING_DISTANCE = 0.0
MISSING_PROBABILITY = 0.5
EMPTY_REGION_BRIGHTNESS = 0.5
EMPTY_REGION_CONTRAST = 0.0

# Heuristic weights (out of 100)
HEURISTIC_WEIGHTS: Dict[str, float] = {
    "size": 20.0,
    "pitch": 15.0,
    "yaw": 15.0,
    "roll": 10.0,
    "left_eye_open": 10.0,
    "right_eye_open": 10.0,
    "smiling": 10.0,
    "aspect_ratio": 10.0,
}
MAX_ANGLE_DIFFERENCE = 90.0

# Geometry-only weights (out of 100) and difference scales
GEOMETRY_WEIGHTS: Dict[str, float] = {
    "distances": 50.0,
    "aspect_ratio": 20.0,
    "landmarks": 30.0,
}
DISTANCE_DIFF_SCALE = 5.0
ASPECT_DIFF_SCALE = 2.0
LANDMARK_DIFF_SCALE = 3.0

# Lower edges of the confidence bands, highest first
CONFIDENCE_BANDS: Tuple[Tuple[float, str], ...] = (
    (0.85, "very_high"),
    (0.75, "high"),
    (0.65, "medium"),
    (0.55, "low"),
)


# ============================================================
# Feature Extraction Constants
# ============================================================

@dataclass
class FeatureConfig:
    """Feature extraction constants."""
    # Divisor used for landmark distances when the eye distance is unavailable
    fallback_eye_distance: float = 100.0
    # Compute region statistics when an image is supplied
    appearance: bool = True

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "FeatureConfig":
        """Create from config dictionary."""
        fc = _get_nested(config, "features") or {}

        return cls(
            fallback_eye_distance=float(fc.get("fallback_eye_distance", 100.0)),
            appearance=bool(fc.get("appearance", True)),
        )


# ============================================================
# Embedding Constants
# ============================================================

@dataclass(frozen=True)
class EmbeddingConfig:
    """Embedding layout switches.

    Two embeddings are only comparable when built with the same config.
    """
    include_appearance: bool = False

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "EmbeddingConfig":
        """Create from config dictionary."""
        ec = _get_nested(config, "embedding") or {}
        return cls(include_appearance=bool(ec.get("include_appearance", False)))


# ============================================================
# Scoring Constants
# ============================================================

SCORING_METHODS = ("heuristic", "geometry", "cosine")


@dataclass
class ScoringConfig:
    """Similarity scoring constants."""
    # heuristic | geometry | cosine
    method: str = "geometry"
    # Rescale by the weight actually compared instead of the full 100 points
    renormalize_missing: bool = False

    def __post_init__(self):
        if self.method not in SCORING_METHODS:
            raise ValueError(
                f"Unknown scoring method '{self.method}', expected one of {SCORING_METHODS}"
            )

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ScoringConfig":
        """Create from config dictionary."""
        sc = _get_nested(config, "scoring") or {}
        return cls(
            method=sc.get("method", "geometry"),
            renormalize_missing=bool(sc.get("renormalize_missing", False)),
        )


# ============================================================
# Matching Constants
# ============================================================

@dataclass
class MatcherConfig:
    """Gallery matching constants."""
    # Acceptance threshold for general matching
    threshold: float = 0.60

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "MatcherConfig":
        """Create from config dictionary."""
        mc = _get_nested(config, "matcher") or {}
        return cls(
            threshold=float(mc.get("threshold", 0.60)),
        )


# ============================================================
# Verification Constants
# ============================================================

@dataclass
class VerificationConfig:
    """Verification session constants."""
    max_attempts: int = 3
    threshold: float = 0.70

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "VerificationConfig":
        """Create from config dictionary."""
        vc = _get_nested(config, "verification") or {}
        return cls(
            max_attempts=int(vc.get("max_attempts", 3)),
            threshold=float(vc.get("threshold", 0.70)),
        )


# ============================================================
# Enrollment Constants
# ============================================================

@dataclass
class EnrollmentConfig:
    """Guided enrollment constants."""
    # Consecutive frames a pose must be held before capture
    hold_frames: int = 30
    # Max |yaw| and |pitch| for the "look straight" step
    forward_max_angle: float = 15.0
    # Yaw window (exclusive) for the turn steps
    turn_min_angle: float = 25.0
    turn_max_angle: float = 50.0

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "EnrollmentConfig":
        """Create from config dictionary."""
        ec = _get_nested(config, "enrollment") or {}
        return cls(
            hold_frames=int(ec.get("hold_frames", 30)),
            forward_max_angle=float(ec.get("forward_max_angle", 15.0)),
            turn_min_angle=float(ec.get("turn_min_angle", 25.0)),
            turn_max_angle=float(ec.get("turn_max_angle", 50.0)),
        )


# ============================================================
# Global Config Instance (lazy loaded)
# ============================================================

class Config:
    """Global configuration singleton."""

    _instance: Optional["Config"] = None
    _config: Dict[str, Any] = {}

    def __new__(cls) -> "Config":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._load()
        return cls._instance

    def _load(self, config_path: Optional[Path] = None) -> None:
        """Load configuration from file."""
        self._config = load_config(config_path)
        self._features: Optional[FeatureConfig] = None
        self._embedding: Optional[EmbeddingConfig] = None
        self._scoring: Optional[ScoringConfig] = None
        self._matcher: Optional[MatcherConfig] = None
        self._verification: Optional[VerificationConfig] = None
        self._enrollment: Optional[EnrollmentConfig] = None

    def reload(self, config_path: Optional[Path] = None) -> None:
        """Reload configuration from file and reset cached sections."""
        self._load(config_path)

    @property
    def features(self) -> FeatureConfig:
        """Get feature extraction config."""
        if self._features is None:
            self._features = FeatureConfig.from_config(self._config)
        return self._features

    @property
    def embedding(self) -> EmbeddingConfig:
        """Get embedding config."""
        if self._embedding is None:
            self._embedding = EmbeddingConfig.from_config(self._config)
        return self._embedding

    @property
    def scoring(self) -> ScoringConfig:
        """Get scoring config."""
        if self._scoring is None:
            self._scoring = ScoringConfig.from_config(self._config)
        return self._scoring

    @property
    def matcher(self) -> MatcherConfig:
        """Get matcher config."""
        if self._matcher is None:
            self._matcher = MatcherConfig.from_config(self._config)
        return self._matcher

    @property
    def verification(self) -> VerificationConfig:
        """Get verification config."""
        if self._verification is None:
            self._verification = VerificationConfig.from_config(self._config)
        return self._verification

    @property
    def enrollment(self) -> EnrollmentConfig:
        """Get enrollment config."""
        if self._enrollment is None:
            self._enrollment = EnrollmentConfig.from_config(self._config)
        return self._enrollment

    def get(self, *keys: str, default: Any = None) -> Any:
        """Get a config value by key path."""
        return _get_nested(self._config, *keys, default=default)


def get_config() -> Config:
    """Get the global configuration instance."""
    return Config()


# Convenience accessors
def get_feature_config() -> FeatureConfig:
    """Get feature extraction configuration."""
    return get_config().features


def get_embedding_config() -> EmbeddingConfig:
    """Get embedding configuration."""
    return get_config().embedding


def get_scoring_config() -> ScoringConfig:
    """Get scoring configuration."""
    return get_config().scoring


def get_matcher_config() -> MatcherConfig:
    """Get matcher configuration."""
    return get_config().matcher


def get_verification_config() -> VerificationConfig:
    """Get verification configuration."""
    return get_config().verification


def get_enrollment_config() -> EnrollmentConfig:
    """Get enrollment configuration."""
    return get_config().enrollment
