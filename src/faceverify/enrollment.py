"""Guided multi-pose enrollment.

The user is asked to look straight at the camera, then turn left, then turn
right. Each pose must be held for a number of consecutive frames before
the frame's features are captured as an enrollment sample.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np

from .constants import EnrollmentConfig, FeatureConfig, get_enrollment_config
from .features import extract_features
from .types import DetectedFace, EnrolledSample, FeatureRecord, InvalidObservation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnrollmentStep:
    """One pose the user must hold."""
    instruction: str
    check: Callable[[DetectedFace], bool]


def default_steps(config: Optional[EnrollmentConfig] = None) -> List[EnrollmentStep]:
    """Look straight, turn left, turn right. Missing angles read as 0."""
    if config is None:
        config = get_enrollment_config()

    def facing_forward(face: DetectedFace) -> bool:
        yaw = face.yaw or 0.0
        pitch = face.pitch or 0.0
        return abs(yaw) < config.forward_max_angle and abs(pitch) < config.forward_max_angle

    def turned_left(face: DetectedFace) -> bool:
        yaw = face.yaw or 0.0
        return config.turn_min_angle < yaw < config.turn_max_angle

    def turned_right(face: DetectedFace) -> bool:
        yaw = face.yaw or 0.0
        return -config.turn_max_angle < yaw < -config.turn_min_angle

    return [
        EnrollmentStep("Look straight at the camera", facing_forward),
        EnrollmentStep("Turn your head LEFT", turned_left),
        EnrollmentStep("Turn your head RIGHT", turned_right),
    ]


class EnrollmentSession:
    """Collects one FeatureRecord per pose step from a stream of observations."""

    def __init__(
        self,
        steps: Optional[List[EnrollmentStep]] = None,
        config: Optional[EnrollmentConfig] = None,
        feature_config: Optional[FeatureConfig] = None,
    ):
        self.config = config or get_enrollment_config()
        self.steps = steps if steps is not None else default_steps(self.config)
        if not self.steps:
            raise ValueError("Enrollment needs at least one step")
        self.feature_config = feature_config

        self._current_step = 0
        self._hold_counter = 0
        self._captured: List[FeatureRecord] = []

    @property
    def current_step(self) -> int:
        return self._current_step

    @property
    def hold_counter(self) -> int:
        return self._hold_counter

    @property
    def is_complete(self) -> bool:
        return self._current_step >= len(self.steps)

    @property
    def current_instruction(self) -> Optional[str]:
        if self.is_complete:
            return None
        return self.steps[self._current_step].instruction

    @property
    def progress(self) -> float:
        """Fraction of steps completed, in [0, 1]."""
        return len(self._captured) / len(self.steps)

    @property
    def captured(self) -> List[FeatureRecord]:
        return list(self._captured)

    def reset(self) -> None:
        self._current_step = 0
        self._hold_counter = 0
        self._captured = []

    def process(
        self,
        face: Optional[DetectedFace],
        image: Optional[np.ndarray] = None,
    ) -> bool:
        """Feed one frame's observation.

        Args:
            face: Observation for this frame, or None when no face was found
            image: Frame, for appearance statistics

        Returns:
            True if this frame completed a step
        """
        if self.is_complete:
            return False

        step = self.steps[self._current_step]
        if face is None or not step.check(face):
            self._hold_counter = 0
            return False

        self._hold_counter += 1
        if self._hold_counter < self.config.hold_frames:
            return False

        record = extract_features(face, image, self.feature_config)
        if isinstance(record, InvalidObservation):
            logger.warning(f"Discarding capture for '{step.instruction}': {record.reason}")
            self._hold_counter = 0
            return False

        self._captured.append(record)
        logger.info(f"Captured face {len(self._captured)}: {step.instruction}")
        self._hold_counter = 0
        self._current_step += 1
        return True

    def samples(self, name: str) -> List[EnrolledSample]:
        """Captured records tagged with the identity's display name.

        Raises:
            RuntimeError: If enrollment is not complete
            ValueError: If the name is empty
        """
        if not self.is_complete:
            raise RuntimeError(
                f"Enrollment incomplete: {len(self._captured)}/{len(self.steps)} poses captured"
            )
        if not name or not name.strip():
            raise ValueError("Please enter a name")
        return [EnrolledSample(record=r, name=name.strip()) for r in self._captured]
