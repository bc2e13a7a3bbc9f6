"""Best-of-N matching of a probe against one identity's gallery."""

import logging
from typing import Optional, Union

import numpy as np

from .constants import (
    CONFIDENCE_BANDS,
    SCORING_METHODS,
    EmbeddingConfig,
    FeatureConfig,
    ScoringConfig,
    get_embedding_config,
    get_matcher_config,
    get_scoring_config,
)
from .embedding import MalformedFeatureError, build_embedding
from .features import extract_features
from .geometry import is_finite
from .similarity import compare_embeddings, geometry_score, heuristic_score
from .types import (
    ConfidenceLevel,
    DetectedFace,
    EnrolledSample,
    Embedding,
    FeatureRecord,
    Gallery,
    InvalidObservation,
    MatchResult,
)

logger = logging.getLogger(__name__)

Probe = Union[DetectedFace, FeatureRecord, Embedding]


def classify_confidence(score: float) -> ConfidenceLevel:
    """Map a score to its confidence band; band edges belong to the upper band."""
    for lower_edge, level in CONFIDENCE_BANDS:
        if score >= lower_edge:
            return ConfidenceLevel(level)
    return ConfidenceLevel.VERY_LOW


class GalleryMatcher:
    """Compares probes against enrolled samples with one scoring strategy."""

    def __init__(
        self,
        method: Optional[str] = None,
        threshold: Optional[float] = None,
        scoring_config: Optional[ScoringConfig] = None,
        embedding_config: Optional[EmbeddingConfig] = None,
        feature_config: Optional[FeatureConfig] = None,
    ):
        """Initialize matcher.

        Args:
            method: "heuristic", "geometry" or "cosine" (config default if None)
            threshold: Acceptance threshold (general matching default if None)
            scoring_config: Scoring settings (uses global config if None)
            embedding_config: Embedding layout for the cosine strategy
            feature_config: Settings used when the probe is a DetectedFace
        """
        self.scoring_config = scoring_config or get_scoring_config()
        self.method = method or self.scoring_config.method
        if self.method not in SCORING_METHODS:
            raise ValueError(f"Unknown scoring method '{self.method}'")
        self.threshold = get_matcher_config().threshold if threshold is None else threshold
        self.embedding_config = embedding_config or get_embedding_config()
        self.feature_config = feature_config

    def _prepare_probe(
        self,
        probe: Probe,
        image: Optional[np.ndarray],
    ) -> Union[FeatureRecord, Embedding, InvalidObservation]:
        if isinstance(probe, DetectedFace):
            probe = extract_features(probe, image, self.feature_config)
            if isinstance(probe, InvalidObservation):
                return probe

        if self.method == "cosine":
            if isinstance(probe, FeatureRecord):
                try:
                    return build_embedding(probe, self.embedding_config)
                except MalformedFeatureError as e:
                    return InvalidObservation(str(e))
            return np.asarray(probe, dtype=np.float64).reshape(-1)

        if not isinstance(probe, FeatureRecord):
            raise TypeError(f"'{self.method}' matching needs a DetectedFace or FeatureRecord probe")
        return probe

    def _sample_embedding(self, sample: EnrolledSample) -> Embedding:
        if sample.embedding is not None:
            return np.asarray(sample.embedding, dtype=np.float64).reshape(-1)
        return build_embedding(sample.record, self.embedding_config)

    def match(
        self,
        probe: Probe,
        gallery: Gallery,
        threshold: Optional[float] = None,
        image: Optional[np.ndarray] = None,
    ) -> MatchResult:
        """Score a probe against every sample and keep the best.

        Args:
            probe: DetectedFace, FeatureRecord, or embedding (cosine only)
            gallery: Enrolled samples of one identity
            threshold: Overrides the matcher's threshold for this call
            image: Frame of a DetectedFace probe, for appearance statistics

        Returns:
            MatchResult; an empty gallery or an invalid probe gives the
            non-matching result with index -1.
        """
        if threshold is None:
            threshold = self.threshold

        if not gallery:
            return MatchResult.no_match()

        prepared = self._prepare_probe(probe, image)
        if isinstance(prepared, InvalidObservation):
            logger.debug(f"Probe rejected: {prepared.reason}")
            return MatchResult.no_match()

        logger.debug(f"Comparing probe with {len(gallery)} enrolled samples ({self.method})")

        best_score = 0.0
        best_index = -1
        mismatches = 0

        for i, sample in enumerate(gallery):
            if self.method == "cosine":
                try:
                    comparison = compare_embeddings(prepared, self._sample_embedding(sample))
                except MalformedFeatureError as e:
                    logger.warning(f"Skipping malformed sample {i}: {e}")
                    continue
                if comparison.dimension_mismatch:
                    mismatches += 1
                    logger.warning(
                        f"Embedding length mismatch for sample {i}, scoring it 0.0"
                    )
                sample_score = comparison.score
            elif self.method == "heuristic":
                sample_score = heuristic_score(
                    prepared, sample.record, self.scoring_config.renormalize_missing
                )
            else:
                sample_score = geometry_score(
                    prepared, sample.record, self.scoring_config.renormalize_missing
                )

            if not is_finite(sample_score):
                logger.warning(f"Skipping sample {i}: non-finite score")
                continue

            logger.debug(f"  Sample {i + 1}: {sample_score * 100:.1f}%")
            if best_index < 0 or sample_score > best_score:
                best_score = sample_score
                best_index = i

        if best_index < 0:
            return MatchResult.no_match()

        result = MatchResult(
            matched=best_score >= threshold,
            score=best_score,
            best_sample_index=best_index,
            confidence_level=classify_confidence(best_score),
            dimension_mismatches=mismatches,
        )
        logger.debug(f"  Best match: {result.score_percentage} (sample {best_index + 1})")
        return result


def match_against_gallery(
    probe: Probe,
    gallery: Gallery,
    threshold: Optional[float] = None,
    method: Optional[str] = None,
    image: Optional[np.ndarray] = None,
) -> MatchResult:
    """Match a probe against a gallery with a default-configured GalleryMatcher."""
    return GalleryMatcher(method=method).match(probe, gallery, threshold=threshold, image=image)
