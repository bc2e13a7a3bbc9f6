"""Pytest configuration and fixtures."""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

# Landmarks of a frontal face inside a 100x120 box at the origin
FULL_LANDMARKS = {
    "left_eye": [30.0, 40.0],
    "right_eye": [70.0, 40.0],
    "nose_base": [50.0, 65.0],
    "left_mouth": [35.0, 90.0],
    "right_mouth": [65.0, 90.0],
    "bottom_mouth": [50.0, 98.0],
    "left_cheek": [20.0, 70.0],
    "right_cheek": [80.0, 70.0],
    "left_ear": [5.0, 50.0],
    "right_ear": [95.0, 50.0],
}


@pytest.fixture
def full_face_dict():
    """Detector JSON for a fully populated observation."""
    return {
        "bbox": [0.0, 0.0, 100.0, 120.0],
        "pitch": 2.0,
        "yaw": -3.0,
        "roll": 1.0,
        "left_eye_open": 0.9,
        "right_eye_open": 0.85,
        "smiling": 0.2,
        "landmarks": {k: list(v) for k, v in FULL_LANDMARKS.items()},
    }


@pytest.fixture
def full_face(full_face_dict):
    """A fully populated DetectedFace."""
    from faceverify.types import DetectedFace
    return DetectedFace.from_dict(full_face_dict)


@pytest.fixture
def other_face():
    """A face with very different geometry from ``full_face``."""
    from faceverify.types import DetectedFace
    return DetectedFace.from_dict({
        "bbox": [0.0, 0.0, 200.0, 100.0],
        "pitch": 20.0,
        "yaw": 30.0,
        "roll": -15.0,
        "left_eye_open": 0.1,
        "right_eye_open": 0.2,
        "smiling": 0.95,
        "landmarks": {
            "left_eye": [30.0, 80.0],
            "right_eye": [170.0, 80.0],
            "nose_base": [100.0, 20.0],
            "left_mouth": [20.0, 10.0],
            "right_mouth": [180.0, 10.0],
            "bottom_mouth": [100.0, 5.0],
            "left_cheek": [10.0, 30.0],
            "right_cheek": [190.0, 30.0],
            "left_ear": [100.0, 95.0],
            "right_ear": [100.0, 90.0],
        },
    })


@pytest.fixture
def box_only_face():
    """A detection with nothing but a bounding box."""
    from faceverify.types import BoundingBox, DetectedFace
    return DetectedFace(bbox=BoundingBox(10.0, 20.0, 100.0, 120.0))


@pytest.fixture
def feature_config():
    """Default feature settings, independent of config/config.yaml."""
    from faceverify.constants import FeatureConfig
    return FeatureConfig()


@pytest.fixture
def full_record(full_face, feature_config):
    """FeatureRecord of ``full_face``."""
    from faceverify.features import extract_features
    return extract_features(full_face, config=feature_config)


@pytest.fixture
def other_record(other_face, feature_config):
    """FeatureRecord of ``other_face``."""
    from faceverify.features import extract_features
    return extract_features(other_face, config=feature_config)


@pytest.fixture
def sample_image():
    """Create a sample test image."""
    return np.random.randint(0, 255, (480, 640, 3), dtype=np.uint8)


@pytest.fixture
def sample_grayscale_image():
    """Create a sample grayscale test image."""
    return np.random.randint(0, 255, (480, 640), dtype=np.uint8)


@pytest.fixture
def detections_file(tmp_path, full_face_dict):
    """Detection JSON file holding ``full_face``."""
    import json
    path = tmp_path / "detections.json"
    path.write_text(json.dumps([full_face_dict]))
    return path
