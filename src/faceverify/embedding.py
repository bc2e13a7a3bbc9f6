"""Flatten a FeatureRecord into a fixed-order embedding vector.

Slot layout (``include_appearance=False`` gives 27 slots, ``True`` gives 35):

====  ==========================================================
0-19  (x, y) of each LandmarkType in enum order, centered on the
      box and scaled to [-1, 1]; 0.0, 0.0 for a missing landmark
20    eye distance / box width            (0.0 when unavailable)
21    nose-to-left-eye distance / box height
22    mouth width / box width
23    box aspect ratio
24-31 (brightness, contrast) per FaceRegion, appearance only;
      0.5, 0.0 when the record has no statistics
-3    smiling probability                 (0.5 when absent)
-2    left-eye-open probability
-1    right-eye-open probability
====  ==========================================================
"""

from typing import List, Optional

import numpy as np

from .constants import (
    EMPTY_REGION_BRIGHTNESS,
    EMPTY_REGION_CONTRAST,
    MISSING_DISTANCE,
    MISSING_POSITION,
    MISSING_PROBABILITY,
    EmbeddingConfig,
    get_embedding_config,
)
from .types import DistanceType, Embedding, FaceRegion, FeatureRecord, LandmarkType


class MalformedFeatureError(ValueError):
    """A FeatureRecord carried a non-finite value into an embedding slot."""


def embedding_layout(config: Optional[EmbeddingConfig] = None) -> List[str]:
    """Name of every embedding slot, in order."""
    if config is None:
        config = get_embedding_config()

    names = []
    for kind in LandmarkType:
        names.extend([f"{kind.value}.x", f"{kind.value}.y"])
    names.extend([
        "eye_distance/width",
        "nose_to_left_eye/height",
        "mouth_width/width",
        "aspect_ratio",
    ])
    if config.include_appearance:
        for region in FaceRegion:
            names.extend([f"{region.value}.brightness", f"{region.value}.contrast"])
    names.extend(["smiling", "left_eye_open", "right_eye_open"])
    return names


def embedding_length(config: Optional[EmbeddingConfig] = None) -> int:
    """Number of slots produced for a given configuration."""
    return len(embedding_layout(config))


def _ratio(value: Optional[float], divisor: float) -> float:
    return MISSING_DISTANCE if value is None else value / divisor


def _probability(value: Optional[float]) -> float:
    return MISSING_PROBABILITY if value is None else value


def build_embedding(
    record: FeatureRecord,
    config: Optional[EmbeddingConfig] = None,
) -> Embedding:
    """Build the embedding of a FeatureRecord.

    Missing measurements are replaced by sentinels so the length only
    depends on ``config``.

    Raises:
        MalformedFeatureError: If any source value is NaN or infinite
    """
    if config is None:
        config = get_embedding_config()

    values = []
    for kind in LandmarkType:
        point = record.landmarks.get(kind)
        if point is None:
            values.extend([MISSING_POSITION, MISSING_POSITION])
        else:
            values.extend([point.x * 2.0 - 1.0, point.y * 2.0 - 1.0])

    raw = record.raw_distances
    values.append(_ratio(raw.get(DistanceType.EYE_DISTANCE), record.width))
    values.append(_ratio(raw.get(DistanceType.NOSE_TO_LEFT_EYE), record.height))
    values.append(_ratio(raw.get(DistanceType.MOUTH_WIDTH), record.width))
    values.append(record.aspect_ratio)

    if config.include_appearance:
        regions = record.regions or {}
        for region in FaceRegion:
            stats = regions.get(region)
            if stats is None:
                values.extend([EMPTY_REGION_BRIGHTNESS, EMPTY_REGION_CONTRAST])
            else:
                values.extend([stats.brightness, stats.contrast])

    values.append(_probability(record.smiling))
    values.append(_probability(record.left_eye_open))
    values.append(_probability(record.right_eye_open))

    embedding = np.asarray(values, dtype=np.float64)
    bad = np.flatnonzero(~np.isfinite(embedding))
    if bad.size:
        names = embedding_layout(config)
        raise MalformedFeatureError(
            f"Non-finite value in embedding slot(s): {[names[i] for i in bad]}"
        )
    return embedding
