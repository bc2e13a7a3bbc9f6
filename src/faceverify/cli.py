#!/usr/bin/env python3
"""Command line interface for the face verification engine.

Detection files are JSON documents holding one detector observation or a
list of them, in the shape accepted by ``DetectedFace.from_dict``::

    {"bbox": [left, top, width, height],
     "yaw": 3.2, "pitch": -1.0, "roll": 0.4,
     "left_eye_open": 0.9, "right_eye_open": 0.95, "smiling": 0.1,
     "landmarks": {"left_eye": [130, 160], "right_eye": [190, 158], ...}}

Usage:
    python -m faceverify enroll --name "Alice" --detections captures.json
    python -m faceverify enroll --name "Alice" --detections frames.json --guided
    python -m faceverify verify --identity alice --detections probe.json
    python -m faceverify score a.json b.json --method heuristic
    python -m faceverify list
    python -m faceverify clear
"""

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)


def load_detections(path: str) -> list:
    """Read a detection file into a list of DetectedFace (None for null frames)."""
    from .types import DetectedFace

    with open(path, "r") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = [data]
    return [None if item is None else DetectedFace.from_dict(item) for item in data]


def load_image(path: Optional[str]) -> Optional[np.ndarray]:
    """Load a BGR image, exiting when it cannot be read."""
    if not path:
        return None
    image = cv2.imread(path)
    if image is None:
        logger.error(f"Could not load image: {path}")
        sys.exit(1)
    return image


def _identity(args) -> str:
    return args.identity or args.name.strip().lower().replace(" ", "_")


def cmd_enroll(args):
    """Enroll an identity from captured observations."""
    from .constants import get_enrollment_config
    from .database import FaceDatabase
    from .enrollment import EnrollmentSession
    from .features import extract_features
    from .types import EnrolledSample, InvalidObservation

    image = load_image(args.image)
    faces = load_detections(args.detections)

    if args.guided:
        config = get_enrollment_config()
        if args.hold_frames is not None:
            config = replace(config, hold_frames=args.hold_frames)
        session = EnrollmentSession(config=config)
        for face in faces:
            if session.process(face, image):
                logger.info(f"  ✓ step {session.current_step}/{len(session.steps)}")
            if session.is_complete:
                break
        if not session.is_complete:
            logger.error(f"Enrollment incomplete, stuck at: {session.current_instruction}")
            return 1
        samples = session.samples(args.name)
    else:
        samples: List[EnrolledSample] = []
        for i, face in enumerate(faces):
            if face is None:
                continue
            record = extract_features(face, image)
            if isinstance(record, InvalidObservation):
                logger.warning(f"  ✗ observation {i + 1}: {record.reason}")
                continue
            samples.append(EnrolledSample(record=record, name=args.name))

    if not samples:
        logger.error("No usable face observations")
        return 1

    database = FaceDatabase(args.database)
    identity = _identity(args)
    if not database.save_gallery(identity, samples, name=args.name):
        logger.error("Failed to save face data. Please try again.")
        return 1

    logger.info(f"Enrolled {args.name} as '{identity}' with {len(samples)} sample(s)")
    return 0


def cmd_verify(args):
    """Verify observations against an enrolled identity."""
    from .constants import VerificationConfig, get_verification_config
    from .database import FaceDatabase
    from .matcher import GalleryMatcher
    from .verification import VerificationPolicy, VerificationStatus

    database = FaceDatabase(args.database)
    gallery = database.load_gallery(args.identity)

    defaults = get_verification_config()
    config = VerificationConfig(
        max_attempts=args.max_attempts or defaults.max_attempts,
        threshold=defaults.threshold if args.threshold is None else args.threshold,
    )
    policy = VerificationPolicy(
        matcher=GalleryMatcher(method=args.method, threshold=config.threshold),
        config=config,
    )
    policy.start_session(gallery)

    image = load_image(args.image)
    outcome = None
    for face in load_detections(args.detections):
        if face is None:
            continue
        outcome = policy.submit(face, image)
        if outcome.match is not None:
            logger.info(
                f"  score {outcome.match.score_percentage} "
                f"({outcome.match.confidence_level.display_name}) -> {outcome.status.value}"
            )
        else:
            logger.info(f"  {outcome.status.value}: {outcome.detail}")
        if outcome.is_terminal or outcome.status == VerificationStatus.NO_GALLERY:
            break

    if outcome is None:
        logger.error("No observations to verify")
        return 1
    if outcome.verified:
        logger.info(f"✓ Verified as {database.get_user_name(args.identity)}")
        return 0
    logger.info(f"✗ Verification failed: {outcome.failure_reason}")
    if outcome.status == VerificationStatus.RETRY:
        logger.info(f"Attempts remaining: {outcome.remaining_attempts}/{outcome.max_attempts}")
    return 1


def cmd_score(args):
    """Score two observations against each other."""
    from .features import extract_features
    from .similarity import score
    from .types import InvalidObservation

    records = []
    for path in (args.first, args.second):
        faces = load_detections(path)
        if not faces or faces[0] is None:
            record = InvalidObservation("no observation in file")
        else:
            record = extract_features(faces[0])
        if isinstance(record, InvalidObservation):
            logger.error(f"{path}: {record.reason}")
            return 1
        records.append(record)

    value = score(records[0], records[1], method=args.method)
    print(f"{value:.4f}")
    return 0


def cmd_list(args):
    """List enrolled identities."""
    from .database import FaceDatabase

    database = FaceDatabase(args.database)
    identities = database.get_all_identities()
    logger.info("Enrolled identities:")
    for identity in identities:
        logger.info(
            f"  - {identity} ({database.get_user_name(identity)}): "
            f"{database.get_sample_count(identity)} sample(s)"
        )
    logger.info(f"Total: {len(identities)} identities")
    return 0


def cmd_clear(args):
    """Remove one identity, or everything."""
    from .database import FaceDatabase

    database = FaceDatabase(args.database)
    if args.identity:
        if not database.remove_identity(args.identity):
            logger.error(f"Unknown identity: {args.identity}")
            return 1
        return 0
    return 0 if database.clear() else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="faceverify",
        description="Face feature matching and verification",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m faceverify enroll --name "Alice" --detections captures.json
  python -m faceverify verify --identity alice --detections probe.json
  python -m faceverify score a.json b.json --method cosine
        """
    )
    parser.add_argument("--version", action="version", version="%(prog)s 0.1.0")
    parser.add_argument("--database", "-d", default="data/faces", help="Gallery directory")
    parser.add_argument("--config", help="Path to configuration file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    methods = ["heuristic", "geometry", "cosine"]

    # Enroll command
    enroll_parser = subparsers.add_parser("enroll", help="Enroll a person's face")
    enroll_parser.add_argument("--name", "-n", required=True, help="Person's display name")
    enroll_parser.add_argument("--identity", help="Storage key (derived from name if omitted)")
    enroll_parser.add_argument("--detections", "-i", required=True, help="Detection JSON file")
    enroll_parser.add_argument("--image", help="Frame the detections came from")
    enroll_parser.add_argument("--guided", action="store_true",
                               help="Treat detections as a frame stream for pose-guided capture")
    enroll_parser.add_argument("--hold-frames", type=int, help="Frames a pose must be held")

    # Verify command
    verify_parser = subparsers.add_parser("verify", help="Verify against an enrolled identity")
    verify_parser.add_argument("--identity", required=True, help="Enrolled identity key")
    verify_parser.add_argument("--detections", "-i", required=True,
                               help="Detection JSON file, one attempt per observation")
    verify_parser.add_argument("--image", help="Frame the detections came from")
    verify_parser.add_argument("--threshold", "-t", type=float, help="Acceptance threshold")
    verify_parser.add_argument("--method", "-m", choices=methods, help="Scoring method")
    verify_parser.add_argument("--max-attempts", type=int, help="Attempts before lock-out")

    # Score command
    score_parser = subparsers.add_parser("score", help="Score two observations")
    score_parser.add_argument("first", help="First detection JSON file")
    score_parser.add_argument("second", help="Second detection JSON file")
    score_parser.add_argument("--method", "-m", choices=methods, help="Scoring method")

    # List command
    subparsers.add_parser("list", help="List enrolled identities")

    # Clear command
    clear_parser = subparsers.add_parser("clear", help="Remove enrolled face data")
    clear_parser.add_argument("--identity", help="Only remove this identity")

    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point for the faceverify CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.config:
        from .constants import get_config
        get_config().reload(Path(args.config))

    # Route to command handler
    commands = {
        "enroll": cmd_enroll,
        "verify": cmd_verify,
        "score": cmd_score,
        "list": cmd_list,
        "clear": cmd_clear,
    }

    handler = commands.get(args.command)
    if handler:
        result = handler(args)
        sys.exit(result if result else 0)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
