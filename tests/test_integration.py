"""Integration tests for enrollment, storage and verification."""

import pytest
import numpy as np


class TestVerificationPipeline:
    """End-to-end tests from detector observations to a decision."""

    def _enroll(self, face, database, feature_config):
        from dataclasses import replace
        from faceverify.constants import EnrollmentConfig
        from faceverify.enrollment import EnrollmentSession

        session = EnrollmentSession(
            config=EnrollmentConfig(hold_frames=2),
            feature_config=feature_config,
        )
        for yaw in (0.0, 0.0, 35.0, 35.0, -35.0, -35.0):
            session.process(replace(face, yaw=yaw))
        assert session.is_complete
        assert database.save_gallery("alice", session.samples("Alice"))

    def test_enroll_store_verify(self, tmp_path, full_face, other_face, feature_config):
        """Test a stored gallery accepts its owner and locks out an impostor."""
        from faceverify.constants import EmbeddingConfig, ScoringConfig, VerificationConfig
        from faceverify.database import FaceDatabase
        from faceverify.matcher import GalleryMatcher
        from faceverify.verification import VerificationPolicy, VerificationStatus

        self._enroll(full_face, FaceDatabase(str(tmp_path)), feature_config)
        gallery = FaceDatabase(str(tmp_path)).load_gallery("alice")
        assert len(gallery) == 3

        def new_policy(method):
            matcher = GalleryMatcher(
                method=method,
                scoring_config=ScoringConfig(),
                embedding_config=EmbeddingConfig(),
                feature_config=feature_config,
            )
            policy = VerificationPolicy(matcher=matcher, config=VerificationConfig())
            policy.start_session(gallery)
            return policy

        owner = new_policy("geometry").submit(full_face)
        assert owner.verified
        assert owner.match.best_sample_index == 0

        impostor = new_policy("geometry")
        statuses = [impostor.submit(other_face).status for _ in range(3)]
        assert statuses == [
            VerificationStatus.RETRY,
            VerificationStatus.RETRY,
            VerificationStatus.ATTEMPTS_EXHAUSTED,
        ]

        assert new_policy("heuristic").submit(full_face).verified
        assert new_policy("cosine").submit(full_face).verified

    def test_appearance_embeddings(self, full_face, feature_config):
        """Test embeddings with appearance statistics from a real frame."""
        from faceverify.constants import EmbeddingConfig
        from faceverify.embedding import build_embedding
        from faceverify.features import extract_features
        from faceverify.similarity import compare_embeddings

        frame = np.zeros((240, 320, 3), dtype=np.uint8)
        frame[:, :160] = (40, 90, 160)
        config = EmbeddingConfig(include_appearance=True)

        probe = build_embedding(extract_features(full_face, frame, feature_config), config)
        stored = build_embedding(extract_features(full_face, frame, feature_config), config)
        plain = build_embedding(extract_features(full_face, config=feature_config))

        assert compare_embeddings(probe, stored).score == pytest.approx(1.0)
        assert compare_embeddings(probe, plain).dimension_mismatch
