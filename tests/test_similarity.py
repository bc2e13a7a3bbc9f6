"""Tests for similarity scoring."""

import pytest
import numpy as np


class TestHeuristicScore:
    """Test cases for the weighted heuristic comparison."""

    def test_self_score(self, full_record):
        """Test a complete record scores 1.0 against itself."""
        from faceverify.similarity import heuristic_score

        assert heuristic_score(full_record, full_record) == pytest.approx(1.0)

    def test_yaw_difference(self, full_record):
        """Test a 45 degree yaw change costs half the yaw weight."""
        from dataclasses import replace
        from faceverify.similarity import heuristic_score

        turned = replace(full_record, yaw=full_record.yaw + 45.0)
        assert heuristic_score(full_record, turned) == pytest.approx(0.925)

    def test_size_ratio(self, full_record):
        """Test a box twice as large in each dimension."""
        from dataclasses import replace
        from faceverify.similarity import heuristic_score

        bigger = replace(full_record, width=200.0, height=240.0, size=48000.0)
        assert heuristic_score(full_record, bigger) == pytest.approx(0.85)

    def test_missing_fields_are_not_renormalized(self, box_only_face, feature_config):
        """Test a box-only record only earns size and aspect weights."""
        from faceverify.features import extract_features
        from faceverify.similarity import heuristic_score

        record = extract_features(box_only_face, config=feature_config)

        assert heuristic_score(record, record) == pytest.approx(0.3)
        assert heuristic_score(record, record, renormalize_missing=True) == pytest.approx(1.0)

    def test_symmetric_and_bounded(self, full_record, other_record):
        """Test score(a, b) == score(b, a) within [0, 1]."""
        from faceverify.similarity import heuristic_score

        ab = heuristic_score(full_record, other_record)
        assert ab == pytest.approx(heuristic_score(other_record, full_record))
        assert 0.0 <= ab <= 1.0


class TestGeometryScore:
    """Test cases for the landmark geometry comparison."""

    def test_self_score(self, full_record):
        """Test a complete record scores 1.0 against itself."""
        from faceverify.similarity import geometry_score

        assert geometry_score(full_record, full_record) == pytest.approx(1.0)

    def test_different_faces_score_low(self, full_record, other_record):
        """Test very different geometry scores well below the threshold."""
        from faceverify.similarity import geometry_score

        assert geometry_score(full_record, other_record) < 0.5

    def test_box_only_self_score(self, box_only_face, feature_config):
        """Test only the aspect ratio component is available."""
        from faceverify.features import extract_features
        from faceverify.similarity import geometry_score

        record = extract_features(box_only_face, config=feature_config)

        assert geometry_score(record, record) == pytest.approx(0.2)
        assert geometry_score(record, record, renormalize_missing=True) == pytest.approx(1.0)

    def test_symmetric(self, full_record, other_record):
        """Test geometry scoring is symmetric."""
        from faceverify.similarity import geometry_score

        assert geometry_score(full_record, other_record) == pytest.approx(
            geometry_score(other_record, full_record)
        )


class TestCompareEmbeddings:
    """Test cases for cosine comparison of embeddings."""

    def test_identical(self):
        """Test identical vectors score 1.0."""
        from faceverify.similarity import compare_embeddings

        v = np.array([0.3, -0.2, 0.9])
        assert compare_embeddings(v, v).score == pytest.approx(1.0)

    def test_scale_invariant(self):
        """Test a positive multiple scores 1.0."""
        from faceverify.similarity import cosine_score

        v = np.array([0.3, -0.2, 0.9])
        assert cosine_score(v, 3.0 * v) == pytest.approx(1.0)

    def test_orthogonal_and_opposite(self):
        """Test the [-1, 1] cosine is mapped to [0, 1]."""
        from faceverify.similarity import cosine_score

        a = np.array([1.0, 0.0])
        assert cosine_score(a, np.array([0.0, 1.0])) == pytest.approx(0.5)
        assert cosine_score(a, np.array([-1.0, 0.0])) == pytest.approx(0.0)

    def test_near_zero_magnitude(self):
        """Test a vector below the norm epsilon counts as zero magnitude."""
        from faceverify.similarity import cosine_score

        tiny = np.array([1e-13, 0.0])
        assert cosine_score(tiny, tiny) == 0.0
        assert cosine_score(np.array([1e-6, 0.0]), np.array([1.0, 0.0])) == pytest.approx(1.0)

    def test_zero_vector(self):
        """Test a zero-magnitude embedding scores 0.0."""
        from faceverify.similarity import compare_embeddings

        result = compare_embeddings(np.zeros(3), np.array([1.0, 2.0, 3.0]))
        assert result.score == 0.0
        assert not result.dimension_mismatch

    def test_length_mismatch(self):
        """Test different lengths are flagged instead of compared."""
        from faceverify.similarity import compare_embeddings

        result = compare_embeddings(np.ones(26), np.ones(27))
        assert result.score == 0.0
        assert result.dimension_mismatch


class TestScore:
    """Test cases for the strategy dispatcher."""

    def test_methods(self, full_record, other_record):
        """Test each method returns a score in [0, 1]."""
        from faceverify.constants import EmbeddingConfig, ScoringConfig
        from faceverify.similarity import score

        for method in ("heuristic", "geometry", "cosine"):
            value = score(full_record, other_record, method=method,
                          config=ScoringConfig(), embedding_config=EmbeddingConfig())
            assert 0.0 <= value <= 1.0

    def test_default_method_from_config(self, full_record, other_record):
        """Test the configured method is used when none is given."""
        from faceverify.constants import ScoringConfig
        from faceverify.similarity import geometry_score, score

        value = score(full_record, other_record, config=ScoringConfig(method="geometry"))
        assert value == pytest.approx(geometry_score(full_record, other_record))

    def test_cosine_accepts_records(self, full_record):
        """Test records are embedded for cosine scoring."""
        from faceverify.constants import EmbeddingConfig, ScoringConfig
        from faceverify.similarity import score

        value = score(full_record, full_record, method="cosine",
                      config=ScoringConfig(), embedding_config=EmbeddingConfig())
        assert value == pytest.approx(1.0)

    def test_record_method_rejects_embedding(self, full_record):
        """Test heuristic scoring cannot take a raw embedding."""
        from faceverify.constants import ScoringConfig
        from faceverify.similarity import score

        with pytest.raises(TypeError):
            score(full_record, np.ones(27), method="heuristic", config=ScoringConfig())

    def test_unknown_method(self, full_record):
        """Test an unknown method name is rejected."""
        from faceverify.constants import ScoringConfig
        from faceverify.similarity import score

        with pytest.raises(ValueError):
            score(full_record, full_record, method="euclid", config=ScoringConfig())
