"""Face observation, feature and match result types."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import numpy as np

from .constants import REGION_FRACTIONS


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


# Fixed-order numeric vector; see faceverify.embedding for the slot layout.
Embedding = np.ndarray


class LandmarkType(Enum):
    """Landmark kinds reported by the detector, in embedding order."""
    LEFT_EYE = "left_eye"
    RIGHT_EYE = "right_eye"
    NOSE_BASE = "nose_base"
    LEFT_MOUTH = "left_mouth"
    RIGHT_MOUTH = "right_mouth"
    BOTTOM_MOUTH = "bottom_mouth"
    LEFT_CHEEK = "left_cheek"
    RIGHT_CHEEK = "right_cheek"
    LEFT_EAR = "left_ear"
    RIGHT_EAR = "right_ear"


class DistanceType(Enum):
    """Inter-landmark distances used for facial geometry."""
    EYE_DISTANCE = "eye_distance"
    NOSE_TO_LEFT_EYE = "nose_to_left_eye"
    NOSE_TO_RIGHT_EYE = "nose_to_right_eye"
    MOUTH_WIDTH = "mouth_width"
    NOSE_TO_MOUTH = "nose_to_mouth"

    @property
    def endpoints(self) -> Tuple[LandmarkType, LandmarkType]:
        """The two landmarks this distance is measured between."""
        return _DISTANCE_ENDPOINTS[self]


_DISTANCE_ENDPOINTS = {
    DistanceType.EYE_DISTANCE: (LandmarkType.LEFT_EYE, LandmarkType.RIGHT_EYE),
    DistanceType.NOSE_TO_LEFT_EYE: (LandmarkType.NOSE_BASE, LandmarkType.LEFT_EYE),
    DistanceType.NOSE_TO_RIGHT_EYE: (LandmarkType.NOSE_BASE, LandmarkType.RIGHT_EYE),
    DistanceType.MOUTH_WIDTH: (LandmarkType.LEFT_MOUTH, LandmarkType.RIGHT_MOUTH),
    DistanceType.NOSE_TO_MOUTH: (LandmarkType.NOSE_BASE, LandmarkType.LEFT_MOUTH),
}


class FaceRegion(Enum):
    """Fixed sub-regions of the bounding box used for appearance statistics."""
    LEFT_EYE = "left_eye"
    RIGHT_EYE = "right_eye"
    NOSE = "nose"
    MOUTH = "mouth"

    @property
    def fractions(self) -> Tuple[float, float, float, float]:
        """(left, top, right, bottom) as fractions of the box."""
        return REGION_FRACTIONS[self.value]


@dataclass(frozen=True)
class Point:
    """2-D point in image coordinates."""
    x: float
    y: float

    @classmethod
    def from_value(cls, value: Any) -> "Point":
        """Accept ``[x, y]``, ``(x, y)`` or ``{"x": .., "y": ..}``."""
        if isinstance(value, Mapping):
            return cls(float(value["x"]), float(value["y"]))
        x, y = value
        return cls(float(x), float(y))


@dataclass(frozen=True)
class BoundingBox:
    """Face bounding box as (left, top, width, height)."""
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def area(self) -> float:
        """Return area of bounding box."""
        return self.width * self.height

    @property
    def aspect_ratio(self) -> float:
        """Width / height. Only meaningful for a valid box."""
        return self.width / self.height

    @property
    def is_valid(self) -> bool:
        """Finite coordinates and strictly positive size."""
        values = (self.left, self.top, self.width, self.height)
        return all(math.isfinite(v) for v in values) and self.width > 0 and self.height > 0

    @classmethod
    def from_value(cls, value: Any) -> "BoundingBox":
        """Accept ``[left, top, width, height]`` or a dict with those keys."""
        if isinstance(value, Mapping):
            return cls(
                float(value["left"]),
                float(value["top"]),
                float(value["width"]),
                float(value["height"]),
            )
        left, top, width, height = value
        return cls(float(left), float(top), float(width), float(height))


@dataclass(frozen=True)
class DetectedFace:
    """One face observation produced by the external detector.

    Every field except the bounding box is optional; a box-only detection
    is valid input.
    """
    bbox: BoundingBox
    pitch: Optional[float] = None
    yaw: Optional[float] = None
    roll: Optional[float] = None
    left_eye_open: Optional[float] = None
    right_eye_open: Optional[float] = None
    smiling: Optional[float] = None
    landmarks: Mapping[LandmarkType, Point] = field(default_factory=dict)

    def landmark(self, kind: LandmarkType) -> Optional[Point]:
        return self.landmarks.get(kind)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DetectedFace":
        """Build from the detector's JSON shape.

        Expected keys: ``bbox`` (required), ``pitch``/``yaw``/``roll``,
        ``left_eye_open``/``right_eye_open``/``smiling`` and ``landmarks``
        (landmark name -> point). Unknown landmark names are ignored.
        """
        landmarks: Dict[LandmarkType, Point] = {}
        for name, value in (data.get("landmarks") or {}).items():
            try:
                kind = LandmarkType(name)
            except ValueError:
                continue
            if value is not None:
                landmarks[kind] = Point.from_value(value)

        return cls(
            bbox=BoundingBox.from_value(data["bbox"]),
            pitch=_optional_float(data.get("pitch")),
            yaw=_optional_float(data.get("yaw")),
            roll=_optional_float(data.get("roll")),
            left_eye_open=_optional_float(data.get("left_eye_open")),
            right_eye_open=_optional_float(data.get("right_eye_open")),
            smiling=_optional_float(data.get("smiling")),
            landmarks=landmarks,
        )


@dataclass(frozen=True)
class RegionStats:
    """Luma statistics of one face region, both in [0, 1]."""
    brightness: float
    contrast: float


@dataclass(frozen=True)
class InvalidObservation:
    """Returned instead of a FeatureRecord for a degenerate observation."""
    reason: str

    def __bool__(self) -> bool:
        return False


@dataclass(frozen=True)
class FeatureRecord:
    """Immutable feature snapshot of one DetectedFace.

    ``landmarks`` hold box-normalized positions, ``distances`` are divided by
    the eye distance and ``raw_distances`` keep the pixel values. Pairs with a
    missing endpoint are absent from both mappings.
    """
    width: float
    height: float
    size: float
    aspect_ratio: float
    landmarks: Mapping[LandmarkType, Point] = field(default_factory=dict)
    distances: Mapping[DistanceType, float] = field(default_factory=dict)
    raw_distances: Mapping[DistanceType, float] = field(default_factory=dict)
    pitch: Optional[float] = None
    yaw: Optional[float] = None
    roll: Optional[float] = None
    left_eye_open: Optional[float] = None
    right_eye_open: Optional[float] = None
    smiling: Optional[float] = None
    regions: Optional[Mapping[FaceRegion, RegionStats]] = None

    def to_dict(self) -> dict:
        """Convert to a JSON-safe dictionary."""
        data = {
            "bounding_box": {
                "width": self.width,
                "height": self.height,
                "size": self.size,
                "aspect_ratio": self.aspect_ratio,
            },
            "head_angles": {"pitch": self.pitch, "yaw": self.yaw, "roll": self.roll},
            "probabilities": {
                "left_eye_open": self.left_eye_open,
                "right_eye_open": self.right_eye_open,
                "smiling": self.smiling,
            },
            "landmarks": {k.value: {"x": p.x, "y": p.y} for k, p in self.landmarks.items()},
            "distances": {k.value: v for k, v in self.distances.items()},
            "raw_distances": {k.value: v for k, v in self.raw_distances.items()},
        }
        if self.regions is not None:
            data["regions"] = {
                r.value: {"brightness": s.brightness, "contrast": s.contrast}
                for r, s in self.regions.items()
            }
        return data

    def is_finite(self) -> bool:
        """True when no measurement is NaN or infinite."""
        values = [self.width, self.height, self.size, self.aspect_ratio,
                  self.pitch, self.yaw, self.roll,
                  self.left_eye_open, self.right_eye_open, self.smiling]
        for point in self.landmarks.values():
            values.extend([point.x, point.y])
        values.extend(self.distances.values())
        values.extend(self.raw_distances.values())
        for stats in (self.regions or {}).values():
            values.extend([stats.brightness, stats.contrast])
        return all(v is None or math.isfinite(v) for v in values)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FeatureRecord":
        """Inverse of :meth:`to_dict`.

        Raises:
            KeyError: If a required field is missing
            ValueError: If a value is not numeric or not finite
        """
        box = data["bounding_box"]
        angles = data.get("head_angles") or {}
        probs = data.get("probabilities") or {}
        regions = data.get("regions")
        record = cls(
            width=float(box["width"]),
            height=float(box["height"]),
            size=float(box["size"]),
            aspect_ratio=float(box["aspect_ratio"]),
            landmarks={
                LandmarkType(k): Point.from_value(v)
                for k, v in (data.get("landmarks") or {}).items()
            },
            distances={DistanceType(k): float(v) for k, v in (data.get("distances") or {}).items()},
            raw_distances={
                DistanceType(k): float(v) for k, v in (data.get("raw_distances") or {}).items()
            },
            pitch=_optional_float(angles.get("pitch")),
            yaw=_optional_float(angles.get("yaw")),
            roll=_optional_float(angles.get("roll")),
            left_eye_open=_optional_float(probs.get("left_eye_open")),
            right_eye_open=_optional_float(probs.get("right_eye_open")),
            smiling=_optional_float(probs.get("smiling")),
            regions=None if regions is None else {
                FaceRegion(k): RegionStats(float(v["brightness"]), float(v["contrast"]))
                for k, v in regions.items()
            },
        )
        if not record.is_finite():
            raise ValueError("Stored feature record holds a non-finite value")
        return record


@dataclass(frozen=True)
class EnrolledSample:
    """One enrollment capture for an identity."""
    record: FeatureRecord
    name: str
    embedding: Optional[Embedding] = field(default=None, compare=False)


# Ordered samples of exactly one identity
Gallery = Sequence[EnrolledSample]


class ConfidenceLevel(Enum):
    """Discretized score band for user-facing reporting."""
    VERY_HIGH = "very_high"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    VERY_LOW = "very_low"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


@dataclass(frozen=True)
class MatchResult:
    """Best-of-N comparison of a probe against a gallery."""

    matched: bool
    score: float
    best_sample_index: int
    confidence_level: ConfidenceLevel
    # Samples skipped because their embedding length differed from the probe's
    dimension_mismatches: int = 0

    @property
    def score_percentage(self) -> str:
        return f"{self.score * 100:.1f}%"

    @classmethod
    def no_match(cls) -> "MatchResult":
        """Result for an empty gallery or an unusable probe."""
        return cls(
            matched=False,
            score=0.0,
            best_sample_index=-1,
            confidence_level=ConfidenceLevel.VERY_LOW,
        )
