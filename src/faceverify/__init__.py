"""Face feature extraction, matching and verification engine.

Turns one detected-face observation (bounding box, landmarks, head pose,
classification probabilities) into a comparable representation and decides
whether it belongs to an enrolled identity.

Quick Start:
    from faceverify import DetectedFace, extract_features, match_against_gallery

    record = extract_features(face)
    result = match_against_gallery(record, gallery, threshold=0.6)

    policy = VerificationPolicy()
    policy.start_session(database.load_gallery("alice"))
    outcome = run_verification_step(policy, face)
"""

from .types import (
    BoundingBox,
    ConfidenceLevel,
    DetectedFace,
    DistanceType,
    EnrolledSample,
    FaceRegion,
    FeatureRecord,
    InvalidObservation,
    LandmarkType,
    MatchResult,
    Point,
    RegionStats,
)
from .features import extract_features, region_statistics
from .embedding import MalformedFeatureError, build_embedding, embedding_layout, embedding_length
from .similarity import (
    EmbeddingComparison,
    compare_embeddings,
    cosine_score,
    geometry_score,
    heuristic_score,
    score,
)
from .matcher import GalleryMatcher, classify_confidence, match_against_gallery
from .verification import (
    VerificationOutcome,
    VerificationPolicy,
    VerificationState,
    VerificationStatus,
    run_verification_step,
)
from .enrollment import EnrollmentSession, EnrollmentStep
from .database import FaceDatabase, GalleryStore

__version__ = "0.1.0"

__all__ = [
    # Types
    "BoundingBox", "ConfidenceLevel", "DetectedFace", "DistanceType",
    "EnrolledSample", "FaceRegion", "FeatureRecord", "InvalidObservation",
    "LandmarkType", "MatchResult", "Point", "RegionStats",
    # Features / embeddings
    "extract_features", "region_statistics",
    "MalformedFeatureError", "build_embedding", "embedding_layout", "embedding_length",
    # Scoring
    "EmbeddingComparison", "compare_embeddings", "cosine_score",
    "geometry_score", "heuristic_score", "score",
    # Matching / verification
    "GalleryMatcher", "classify_confidence", "match_against_gallery",
    "VerificationOutcome", "VerificationPolicy", "VerificationState",
    "VerificationStatus", "run_verification_step",
    # Enrollment / storage
    "EnrollmentSession", "EnrollmentStep", "FaceDatabase", "GalleryStore",
]
