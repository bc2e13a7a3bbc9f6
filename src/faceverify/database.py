"""Gallery storage for enrolled feature records."""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from .types import EnrolledSample, FeatureRecord

logger = logging.getLogger(__name__)


class GalleryStore(ABC):
    """Storage collaborator the matching engine reads galleries from."""

    @abstractmethod
    def load_gallery(self, identity: str) -> Optional[List[EnrolledSample]]:
        """Return the identity's samples, or None if nothing is enrolled."""
        pass

    @abstractmethod
    def save_gallery(
        self,
        identity: str,
        samples: Sequence[Union[EnrolledSample, FeatureRecord]],
        name: Optional[str] = None,
    ) -> bool:
        """Replace the identity's samples. Returns True on success."""
        pass


class FaceDatabase(GalleryStore):
    """JSON-backed gallery store.

    Layout of ``database_path``:
        galleries.json   identity -> list of FeatureRecord dicts
        metadata.json    identity -> {"name": display name, "sample_count": n}
    """

    GALLERIES_FILE = "galleries.json"
    METADATA_FILE = "metadata.json"

    def __init__(self, database_path: Optional[str] = None):
        """Initialize face database.

        Args:
            database_path: Directory to store database files
                          If None, uses in-memory storage only
        """
        self._database_path = Path(database_path) if database_path else None
        self._records: Dict[str, List[dict]] = {}
        self._metadata: Dict[str, dict] = {}

        if self._database_path:
            self._database_path.mkdir(parents=True, exist_ok=True)
            self._load()

    def save_gallery(
        self,
        identity: str,
        samples: Sequence[Union[EnrolledSample, FeatureRecord]],
        name: Optional[str] = None,
    ) -> bool:
        """Store an identity's enrollment samples, replacing earlier ones.

        Args:
            identity: Storage key of the identity
            samples: Enrolled samples or bare feature records
            name: Display name (defaults to the samples' name, then identity)

        Returns:
            True if stored (and persisted, when backed by a directory)
        """
        if not samples:
            logger.warning(f"Refusing to save an empty gallery for {identity}")
            return False

        records = []
        for sample in samples:
            if isinstance(sample, EnrolledSample):
                name = name or sample.name
                records.append(sample.record.to_dict())
            else:
                records.append(sample.to_dict())

        previous = (self._records.get(identity), self._metadata.get(identity))
        self._records[identity] = records
        self._metadata[identity] = {"name": name or identity, "sample_count": len(records)}

        if self._database_path and not self.save():
            self._restore(identity, *previous)
            return False

        logger.info(f"Saved {len(records)} face samples for {name or identity}")
        return True

    def load_gallery(self, identity: str) -> Optional[List[EnrolledSample]]:
        """Load an identity's samples.

        Returns:
            List of samples, or None if the identity has none
        """
        records = self._records.get(identity)
        if not records:
            logger.info(f"No face data found for {identity}")
            return None

        name = self.get_user_name(identity) or identity
        gallery = []
        for i, data in enumerate(records):
            try:
                gallery.append(EnrolledSample(FeatureRecord.from_dict(data), name))
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Skipping corrupt sample {i} for {identity}: {e}")

        if not gallery:
            return None

        logger.info(f"Loaded {len(gallery)} face samples for {name}")
        return gallery

    def get_user_name(self, identity: str) -> Optional[str]:
        """Get the display name registered for an identity."""
        return self._metadata.get(identity, {}).get("name")

    def get_all_identities(self) -> List[str]:
        """Get list of all enrolled identities."""
        return list(self._records.keys())

    def get_sample_count(self, identity: str) -> int:
        """Get number of samples for an identity."""
        return len(self._records.get(identity, []))

    def has_identity(self, identity: str) -> bool:
        """Check if an identity has enrolled samples."""
        return bool(self._records.get(identity))

    def remove_identity(self, identity: str) -> bool:
        """Remove an identity from the database.

        Returns:
            True if removed, False if not found or not persisted
        """
        if identity not in self._records:
            return False
        previous = (self._records.pop(identity), self._metadata.pop(identity, None))
        if self._database_path and not self.save():
            self._restore(identity, *previous)
            return False
        logger.info(f"Removed identity: {identity}")
        return True

    def clear(self) -> bool:
        """Clear all data from the database."""
        records, metadata = self._records, self._metadata
        self._records, self._metadata = {}, {}
        if self._database_path and not self.save():
            self._records, self._metadata = records, metadata
            return False
        logger.info("Face data cleared")
        return True

    def _restore(self, identity: str, records: Optional[List[dict]], metadata: Optional[dict]):
        """Put back an identity's entries after a failed write."""
        if records is None:
            self._records.pop(identity, None)
        else:
            self._records[identity] = records
        if metadata is None:
            self._metadata.pop(identity, None)
        else:
            self._metadata[identity] = metadata

    def save(self) -> bool:
        """Save database to disk."""
        if not self._database_path:
            logger.warning("No database path set, cannot save")
            return False

        try:
            # Serialize before opening: a rejected value leaves the files untouched
            galleries = json.dumps(self._records, indent=2, allow_nan=False)
            metadata = json.dumps(self._metadata, indent=2)
            with open(self._database_path / self.GALLERIES_FILE, "w") as f:
                f.write(galleries)
            with open(self._database_path / self.METADATA_FILE, "w") as f:
                f.write(metadata)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving face data: {e}")
            return False

        logger.debug(f"Database saved to {self._database_path}")
        return True

    def _load(self):
        """Load database from disk."""
        galleries_file = self._database_path / self.GALLERIES_FILE
        if galleries_file.exists():
            try:
                with open(galleries_file, "r") as f:
                    self._records = json.load(f)
                logger.info(f"Loaded {len(self._records)} identities from database")
            except (OSError, ValueError) as e:
                logger.error(f"Failed to load face data: {e}")

        metadata_file = self._database_path / self.METADATA_FILE
        if metadata_file.exists():
            try:
                with open(metadata_file, "r") as f:
                    self._metadata = json.load(f)
            except (OSError, ValueError) as e:
                logger.error(f"Failed to load metadata: {e}")

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, identity: str) -> bool:
        return identity in self._records
