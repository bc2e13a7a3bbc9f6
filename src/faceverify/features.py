"""Feature extraction from a single detected-face observation."""

import logging
from typing import Dict, Optional, Union

import cv2
import numpy as np

from .constants import (
    EMPTY_REGION_BRIGHTNESS,
    EMPTY_REGION_CONTRAST,
    LUMA_WEIGHTS,
    FeatureConfig,
    get_feature_config,
)
from .geometry import euclidean_distance, is_finite, normalize_point
from .types import (
    BoundingBox,
    DetectedFace,
    DistanceType,
    FaceRegion,
    FeatureRecord,
    InvalidObservation,
    Point,
    RegionStats,
)

logger = logging.getLogger(__name__)


def landmark_distances(face: DetectedFace) -> Dict[DistanceType, float]:
    """Pixel distances for every pair whose two endpoints were detected."""
    distances = {}
    for kind in DistanceType:
        start, end = kind.endpoints
        p1 = face.landmark(start)
        p2 = face.landmark(end)
        if p1 is not None and p2 is not None:
            distances[kind] = euclidean_distance(p1, p2)
    return distances


def _luma(image: np.ndarray) -> np.ndarray:
    """Per-pixel luma of a BGR or grayscale image, in [0, 255]."""
    arr = np.asarray(image)
    if arr.ndim == 2:
        return arr.astype(np.float64)
    if arr.ndim == 3 and arr.shape[2] >= 3:
        b = arr[:, :, 0].astype(np.float64)
        g = arr[:, :, 1].astype(np.float64)
        r = arr[:, :, 2].astype(np.float64)
        wr, wg, wb = LUMA_WEIGHTS
        return r * wr + g * wg + b * wb
    raise ValueError(f"Unsupported image shape {arr.shape}")


def region_statistics(
    image: np.ndarray,
    bbox: BoundingBox,
) -> Dict[FaceRegion, RegionStats]:
    """Mean luma and luma standard deviation of the four fixed face regions.

    Args:
        image: BGR (OpenCV channel order) or grayscale image
        bbox: Face bounding box in image coordinates

    Returns:
        Mapping of region to statistics. A region that falls outside the
        image gets brightness 0.5 and contrast 0.0.
    """
    luma = _luma(image)
    img_h, img_w = luma.shape[:2]

    stats = {}
    for region in FaceRegion:
        fl, ft, fr, fb = region.fractions
        x1 = max(0, int(bbox.left + bbox.width * fl))
        y1 = max(0, int(bbox.top + bbox.height * ft))
        x2 = min(img_w - 1, int(bbox.left + bbox.width * fr))
        y2 = min(img_h - 1, int(bbox.top + bbox.height * fb))

        if x2 <= x1 or y2 <= y1:
            stats[region] = RegionStats(EMPTY_REGION_BRIGHTNESS, EMPTY_REGION_CONTRAST)
            continue

        window = np.ascontiguousarray(luma[y1:y2, x1:x2])
        # Brightness averages integer luma values, contrast uses the exact ones
        brightness = float(np.floor(window).sum() / (window.size * 255.0))
        _, std = cv2.meanStdDev(window / 255.0)
        stats[region] = RegionStats(brightness, float(std[0][0]))

    return stats


def extract_features(
    face: DetectedFace,
    image: Optional[np.ndarray] = None,
    config: Optional[FeatureConfig] = None,
) -> Union[FeatureRecord, InvalidObservation]:
    """Turn one detector observation into a FeatureRecord.

    Args:
        face: Observation from the detector
        image: Optional frame the observation came from, for appearance
            statistics
        config: Feature extraction settings (uses global config if None)

    Returns:
        A FeatureRecord, or InvalidObservation when the bounding box is
        degenerate or any measurement is not finite.
    """
    if config is None:
        config = get_feature_config()

    box = face.bbox
    if not box.is_valid:
        logger.debug(f"Rejected observation with box {box}")
        return InvalidObservation(
            f"degenerate bounding box {box.width}x{box.height} at ({box.left}, {box.top})"
        )

    if not is_finite(face.pitch, face.yaw, face.roll,
                     face.left_eye_open, face.right_eye_open, face.smiling):
        return InvalidObservation("non-finite head angle or classification probability")

    landmarks = {}
    for kind, point in face.landmarks.items():
        if not is_finite(point.x, point.y):
            return InvalidObservation(f"non-finite {kind.value} landmark")
        landmarks[kind] = Point(*normalize_point(
            point.x, point.y, box.left, box.top, box.width, box.height,
        ))

    raw_distances = landmark_distances(face)
    # Coincident eyes would divide by zero, so they fall back as well
    eye_distance = raw_distances.get(DistanceType.EYE_DISTANCE) or config.fallback_eye_distance
    distances = {kind: value / eye_distance for kind, value in raw_distances.items()}

    regions = None
    if image is not None and config.appearance:
        regions = region_statistics(image, box)

    return FeatureRecord(
        width=box.width,
        height=box.height,
        size=box.area,
        aspect_ratio=box.aspect_ratio,
        landmarks=landmarks,
        distances=distances,
        raw_distances=raw_distances,
        pitch=face.pitch,
        yaw=face.yaw,
        roll=face.roll,
        left_eye_open=face.left_eye_open,
        right_eye_open=face.right_eye_open,
        smiling=face.smiling,
        regions=regions,
    )
