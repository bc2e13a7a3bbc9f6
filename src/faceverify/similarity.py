"""Similarity scoring between feature records or embeddings.

Three interchangeable strategies, all returning a score in [0, 1]:

- ``heuristic``: weighted pose/expression/box comparison of two records
- ``geometry``: landmark geometry comparison of two records, used against
  stored galleries
- ``cosine``: cosine similarity of two embeddings, mapped from [-1, 1]

Weights are never renormalized when an optional field is missing on either
side (unless ``renormalize_missing`` is set), so sparse observations score
lower than complete ones.
"""

from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from .constants import (
    ASPECT_DIFF_SCALE,
    DISTANCE_DIFF_SCALE,
    GEOMETRY_WEIGHTS,
    HEURISTIC_WEIGHTS,
    LANDMARK_DIFF_SCALE,
    MAX_ANGLE_DIFFERENCE,
    EmbeddingConfig,
    ScoringConfig,
    get_embedding_config,
    get_scoring_config,
)
from .embedding import build_embedding
from .geometry import NORM_EPSILON, clamp, closeness, euclidean_distance, l2_normalize
from .types import DistanceType, Embedding, FeatureRecord, LandmarkType

Comparable = Union[FeatureRecord, Embedding]


@dataclass(frozen=True)
class EmbeddingComparison:
    """Cosine comparison outcome with an explicit length-mismatch signal."""
    score: float
    dimension_mismatch: bool = False


class _WeightedSum:
    """Accumulates weighted sub-scores out of a 100-point total."""

    def __init__(self, renormalize: bool = False):
        self.total = 0.0
        self.compared_weight = 0.0
        self.renormalize = renormalize

    def add(self, sub_score: float, weight: float) -> None:
        self.total += sub_score * weight
        self.compared_weight += weight

    def result(self) -> float:
        if self.renormalize:
            if self.compared_weight == 0.0:
                return 0.0
            return self.total / self.compared_weight
        return self.total / 100.0


def heuristic_score(
    a: FeatureRecord,
    b: FeatureRecord,
    renormalize_missing: bool = False,
) -> float:
    """Weighted multi-criterion comparison of two feature records.

    Criteria and weights: box size ratio 20, pitch 15, yaw 15, roll 10,
    left/right eye open 10 each, smiling 10, aspect ratio 10. A criterion
    is skipped when either record lacks its field.
    """
    acc = _WeightedSum(renormalize_missing)

    acc.add(min(a.size, b.size) / max(a.size, b.size), HEURISTIC_WEIGHTS["size"])

    for name in ("pitch", "yaw", "roll"):
        va, vb = getattr(a, name), getattr(b, name)
        if va is not None and vb is not None:
            sub = max(0.0, 1.0 - abs(va - vb) / MAX_ANGLE_DIFFERENCE)
            acc.add(sub, HEURISTIC_WEIGHTS[name])

    for name in ("left_eye_open", "right_eye_open", "smiling"):
        va, vb = getattr(a, name), getattr(b, name)
        if va is not None and vb is not None:
            acc.add(1.0 - abs(va - vb), HEURISTIC_WEIGHTS[name])

    acc.add(closeness(a.aspect_ratio - b.aspect_ratio), HEURISTIC_WEIGHTS["aspect_ratio"])

    return acc.result()


def geometry_score(
    a: FeatureRecord,
    b: FeatureRecord,
    renormalize_missing: bool = False,
) -> float:
    """Facial-geometry comparison of two feature records.

    Distances 50% (mean over shared pairs of max(0, 1 - |d| * 5)), aspect
    ratio 20% (max(0, 1 - |d| * 2)), landmark positions 30% (mean over
    shared landmarks of max(0, 1 - dist * 3)). Components with nothing in
    common are skipped.
    """
    acc = _WeightedSum(renormalize_missing)

    shared = [k for k in DistanceType if k in a.distances and k in b.distances]
    if shared:
        sims = [closeness(a.distances[k] - b.distances[k], DISTANCE_DIFF_SCALE) for k in shared]
        acc.add(sum(sims) / len(sims), GEOMETRY_WEIGHTS["distances"])

    acc.add(
        closeness(a.aspect_ratio - b.aspect_ratio, ASPECT_DIFF_SCALE),
        GEOMETRY_WEIGHTS["aspect_ratio"],
    )

    common = [k for k in LandmarkType if k in a.landmarks and k in b.landmarks]
    if common:
        sims = [
            closeness(euclidean_distance(a.landmarks[k], b.landmarks[k]), LANDMARK_DIFF_SCALE)
            for k in common
        ]
        acc.add(sum(sims) / len(sims), GEOMETRY_WEIGHTS["landmarks"])

    return acc.result()


def compare_embeddings(a: Embedding, b: Embedding) -> EmbeddingComparison:
    """Cosine similarity of two embeddings mapped to [0, 1].

    Embeddings of different length are not compared: the score is 0.0 and
    ``dimension_mismatch`` is set. A zero-magnitude embedding scores 0.0.
    """
    va = np.asarray(a, dtype=np.float64).reshape(-1)
    vb = np.asarray(b, dtype=np.float64).reshape(-1)

    if va.shape != vb.shape:
        return EmbeddingComparison(0.0, dimension_mismatch=True)

    if np.linalg.norm(va) < NORM_EPSILON or np.linalg.norm(vb) < NORM_EPSILON:
        return EmbeddingComparison(0.0)

    cosine = clamp(float(np.dot(l2_normalize(va), l2_normalize(vb))), -1.0, 1.0)
    return EmbeddingComparison((cosine + 1.0) / 2.0)


def cosine_score(a: Embedding, b: Embedding) -> float:
    """Score-only form of :func:`compare_embeddings`."""
    return compare_embeddings(a, b).score


def as_embedding(value: Comparable, config: Optional[EmbeddingConfig] = None) -> Embedding:
    """Return an embedding, building it from a record when needed."""
    if isinstance(value, FeatureRecord):
        return build_embedding(value, config)
    return np.asarray(value, dtype=np.float64).reshape(-1)


def score(
    a: Comparable,
    b: Comparable,
    method: Optional[str] = None,
    config: Optional[ScoringConfig] = None,
    embedding_config: Optional[EmbeddingConfig] = None,
) -> float:
    """Score two records or embeddings with the configured strategy.

    Args:
        a, b: FeatureRecords, or embeddings for the cosine strategy
        method: "heuristic", "geometry" or "cosine" (config default if None)
        config: Scoring settings (uses global config if None)
        embedding_config: Layout used when records must be embedded

    Raises:
        TypeError: If a record strategy is given an embedding
    """
    if config is None:
        config = get_scoring_config()
    method = method or config.method

    if method == "cosine":
        if embedding_config is None:
            embedding_config = get_embedding_config()
        comparison = compare_embeddings(
            as_embedding(a, embedding_config),
            as_embedding(b, embedding_config),
        )
        return comparison.score

    if not isinstance(a, FeatureRecord) or not isinstance(b, FeatureRecord):
        raise TypeError(f"'{method}' scoring needs two FeatureRecords")

    if method == "heuristic":
        return heuristic_score(a, b, config.renormalize_missing)
    if method == "geometry":
        return geometry_score(a, b, config.renormalize_missing)
    raise ValueError(f"Unknown scoring method '{method}'")
