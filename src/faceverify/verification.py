"""Verification sessions: threshold decision plus attempt bookkeeping."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from .constants import VerificationConfig, get_verification_config
from .features import extract_features
from .matcher import GalleryMatcher, Probe
from .types import DetectedFace, Gallery, InvalidObservation, MatchResult

logger = logging.getLogger(__name__)


class VerificationState(Enum):
    """Lifecycle of one verification session."""
    IDLE = "idle"
    AWAITING_PROBE = "awaiting_probe"
    SCORING = "scoring"
    DECIDED = "decided"


class VerificationStatus(Enum):
    """What a single verification step concluded.

    - VERIFIED: probe matched, session over
    - RETRY: no match, attempts remain
    - ATTEMPTS_EXHAUSTED: no match on the last allowed attempt, locked out
    - NO_GALLERY: nothing enrolled for the identity; no attempt used
    - INVALID_OBSERVATION: probe was unusable; no attempt used
    - SESSION_CLOSED: session not started or already terminal
    """
    VERIFIED = "verified"
    RETRY = "retry"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    NO_GALLERY = "no_gallery"
    INVALID_OBSERVATION = "invalid_observation"
    SESSION_CLOSED = "session_closed"


def failure_reason(score: float) -> str:
    """User-facing explanation for a rejected probe."""
    if score < 0.50:
        return "Very low similarity. This appears to be a different person."
    if score < 0.65:
        return "Face does not match the registered user."
    return "Similarity too low for verification. Please ensure good lighting and position."


@dataclass(frozen=True)
class VerificationOutcome:
    """Result of one verification step."""

    status: VerificationStatus
    attempts: int
    max_attempts: int
    match: Optional[MatchResult] = None
    detail: Optional[str] = None

    @property
    def remaining_attempts(self) -> int:
        return max(0, self.max_attempts - self.attempts)

    @property
    def is_terminal(self) -> bool:
        """Check if the session can accept no further probes."""
        return self.status in (VerificationStatus.VERIFIED, VerificationStatus.ATTEMPTS_EXHAUSTED)

    @property
    def verified(self) -> bool:
        return self.status == VerificationStatus.VERIFIED

    @property
    def failure_reason(self) -> Optional[str]:
        if self.match is None or self.verified:
            return self.detail
        return failure_reason(self.match.score)


class VerificationPolicy:
    """Per-session accept/reject policy with a bounded number of attempts.

    One instance per verification session; it must not be shared between
    sessions or threads. Abandon a session by discarding the instance.
    """

    def __init__(
        self,
        matcher: Optional[GalleryMatcher] = None,
        config: Optional[VerificationConfig] = None,
    ):
        """Initialize policy.

        Args:
            matcher: Matcher used to score probes (default-configured if None)
            config: Attempt limit and acceptance threshold (global config if None)
        """
        self.config = config or get_verification_config()
        self.max_attempts = self.config.max_attempts
        self.threshold = self.config.threshold
        self._matcher = matcher or GalleryMatcher(threshold=self.threshold)

        self._gallery: Optional[Gallery] = None
        self._attempts = 0
        self._terminal = False
        self._state = VerificationState.IDLE
        self._last_outcome: Optional[VerificationOutcome] = None

    @property
    def state(self) -> VerificationState:
        return self._state

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def remaining_attempts(self) -> int:
        return max(0, self.max_attempts - self._attempts)

    @property
    def is_terminal(self) -> bool:
        return self._terminal

    @property
    def last_outcome(self) -> Optional[VerificationOutcome]:
        return self._last_outcome

    def start_session(self, gallery: Optional[Gallery]) -> None:
        """Start (or restart) a session against an identity's gallery.

        Args:
            gallery: Enrolled samples, or None when storage has none
        """
        self._gallery = gallery
        self._attempts = 0
        self._terminal = False
        self._last_outcome = None
        self._state = VerificationState.AWAITING_PROBE
        logger.info(
            f"Verification session started with {len(gallery) if gallery else 0} enrolled samples"
        )

    def _outcome(
        self,
        status: VerificationStatus,
        match: Optional[MatchResult] = None,
        detail: Optional[str] = None,
    ) -> VerificationOutcome:
        outcome = VerificationOutcome(
            status=status,
            attempts=self._attempts,
            max_attempts=self.max_attempts,
            match=match,
            detail=detail,
        )
        self._last_outcome = outcome
        return outcome

    def submit(self, probe: Probe, image: Optional[np.ndarray] = None) -> VerificationOutcome:
        """Score one probe and advance the session.

        Args:
            probe: Observation (or record/embedding) to verify
            image: Frame of a DetectedFace probe, for appearance statistics

        Returns:
            VerificationOutcome for this step
        """
        if self._state == VerificationState.DECIDED and not self._terminal:
            self._state = VerificationState.AWAITING_PROBE

        if self._state != VerificationState.AWAITING_PROBE:
            return self._outcome(
                VerificationStatus.SESSION_CLOSED,
                detail=f"Session is {self._state.value}",
            )

        if not self._gallery:
            logger.warning("Verification requested with no enrolled gallery")
            return self._outcome(VerificationStatus.NO_GALLERY, detail="No registered face found")

        if isinstance(probe, DetectedFace):
            probe = extract_features(probe, image, self._matcher.feature_config)
            if isinstance(probe, InvalidObservation):
                logger.info(f"Probe rejected: {probe.reason}")
                return self._outcome(VerificationStatus.INVALID_OBSERVATION, detail=probe.reason)

        self._state = VerificationState.SCORING
        try:
            result = self._matcher.match(probe, self._gallery, threshold=self.threshold)
        except Exception:
            self._state = VerificationState.AWAITING_PROBE
            raise
        self._state = VerificationState.DECIDED

        if result.matched:
            self._terminal = True
            status = VerificationStatus.VERIFIED
        else:
            self._attempts += 1
            if self._attempts >= self.max_attempts:
                self._terminal = True
                status = VerificationStatus.ATTEMPTS_EXHAUSTED
            else:
                status = VerificationStatus.RETRY

        logger.info(
            f"Verification attempt: {result.score_percentage} "
            f"({result.confidence_level.display_name}) -> {status.value}, "
            f"{self.remaining_attempts}/{self.max_attempts} attempts left"
        )
        return self._outcome(status, match=result)


def run_verification_step(
    policy: VerificationPolicy,
    probe: Probe,
    image: Optional[np.ndarray] = None,
) -> VerificationOutcome:
    """Submit one probe to a running verification session."""
    return policy.submit(probe, image)
