"""Vector and point math primitives."""

import math
from typing import Tuple

import numpy as np

# Norms below this count as zero magnitude
NORM_EPSILON = 1e-12


def euclidean_distance(p1, p2) -> float:
    """Euclidean distance between two points with ``x``/``y`` attributes."""
    return math.hypot(p1.x - p2.x, p1.y - p2.y)


def normalize_point(x: float, y: float, left: float, top: float,
                    width: float, height: float) -> Tuple[float, float]:
    """Express a point relative to a box origin, in box-width/height units.

    Values are nominally in [0, 1] and are not clamped. The caller
    guarantees ``width`` and ``height`` are positive.
    """
    return (x - left) / width, (y - top) / height


def clamp(value: float, lo: float, hi: float) -> float:
    """Clamp a value into [lo, hi]."""
    return max(lo, min(hi, value))


def closeness(diff: float, scale: float = 1.0) -> float:
    """Map an absolute difference to a [0, 1] similarity: max(0, 1 - |diff| * scale)."""
    return max(0.0, 1.0 - abs(diff) * scale)


def is_finite(*values) -> bool:
    """True when every non-None value is a finite number."""
    return all(v is None or math.isfinite(v) for v in values)


def l2_normalize(vec: np.ndarray, eps: float = NORM_EPSILON) -> np.ndarray:
    """L2-normalize a vector safely (zero vectors are returned unchanged)."""
    arr = np.asarray(vec, dtype=np.float64).reshape(-1)
    norm = float(np.linalg.norm(arr))
    if norm < eps:
        return arr
    return arr / norm
