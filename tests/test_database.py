"""Tests for gallery storage."""

import json

import pytest


class TestFaceDatabase:
    """Test cases for FaceDatabase."""

    def test_in_memory(self, full_record):
        """Test storage without a directory."""
        from faceverify.database import FaceDatabase
        from faceverify.types import EnrolledSample

        db = FaceDatabase()
        assert len(db) == 0

        assert db.save_gallery("alice", [EnrolledSample(full_record, "Alice")])
        assert "alice" in db
        assert db.has_identity("alice")
        assert db.get_user_name("alice") == "Alice"
        assert db.get_sample_count("alice") == 1

        gallery = db.load_gallery("alice")
        assert gallery[0].record == full_record
        assert gallery[0].name == "Alice"

    def test_unknown_identity(self):
        """Test loading an unknown identity gives None."""
        from faceverify.database import FaceDatabase

        db = FaceDatabase()
        assert db.load_gallery("nobody") is None
        assert not db.has_identity("nobody")
        assert db.get_user_name("nobody") is None

    def test_empty_gallery_rejected(self):
        """Test saving no samples is refused."""
        from faceverify.database import FaceDatabase

        db = FaceDatabase()
        assert not db.save_gallery("alice", [])
        assert "alice" not in db

    def test_persistence(self, tmp_path, full_record, other_record):
        """Test galleries survive a reload from disk."""
        from faceverify.database import FaceDatabase

        db = FaceDatabase(str(tmp_path))
        assert db.save_gallery("bob", [full_record, other_record], name="Bob")

        reloaded = FaceDatabase(str(tmp_path))
        gallery = reloaded.load_gallery("bob")

        assert [s.record for s in gallery] == [full_record, other_record]
        assert reloaded.get_user_name("bob") == "Bob"
        assert reloaded.get_all_identities() == ["bob"]

        with open(tmp_path / FaceDatabase.METADATA_FILE) as f:
            assert json.load(f)["bob"]["sample_count"] == 2

    def test_appearance_persists(self, tmp_path, full_face, sample_image, feature_config):
        """Test region statistics are stored with the record."""
        from faceverify.database import FaceDatabase
        from faceverify.features import extract_features

        record = extract_features(full_face, sample_image, config=feature_config)
        FaceDatabase(str(tmp_path)).save_gallery("alice", [record])

        loaded = FaceDatabase(str(tmp_path)).load_gallery("alice")[0].record
        assert loaded.regions == record.regions

    def test_save_replaces(self, full_record, other_record):
        """Test saving again replaces earlier samples."""
        from faceverify.database import FaceDatabase

        db = FaceDatabase()
        db.save_gallery("alice", [full_record, full_record])
        db.save_gallery("alice", [other_record])

        assert db.get_sample_count("alice") == 1
        assert db.load_gallery("alice")[0].record == other_record

    def test_remove_and_clear(self, tmp_path, full_record):
        """Test removing one identity and clearing everything."""
        from faceverify.database import FaceDatabase

        db = FaceDatabase(str(tmp_path))
        db.save_gallery("alice", [full_record])
        db.save_gallery("bob", [full_record])

        assert db.remove_identity("alice")
        assert not db.remove_identity("alice")
        assert FaceDatabase(str(tmp_path)).get_all_identities() == ["bob"]

        assert db.clear()
        assert len(FaceDatabase(str(tmp_path))) == 0

    def test_corrupt_file(self, tmp_path):
        """Test an unreadable galleries file leaves an empty database."""
        from faceverify.database import FaceDatabase

        (tmp_path / FaceDatabase.GALLERIES_FILE).write_text("{not json")
        db = FaceDatabase(str(tmp_path))
        assert len(db) == 0

    def test_corrupt_record(self, tmp_path):
        """Test a malformed stored record loads as no gallery."""
        from faceverify.database import FaceDatabase

        (tmp_path / FaceDatabase.GALLERIES_FILE).write_text(json.dumps({"eve": [{"x": 1}]}))
        assert FaceDatabase(str(tmp_path)).load_gallery("eve") is None

    def test_non_finite_record_is_skipped(self, tmp_path, full_record):
        """Test a stored NaN sample is dropped while good samples load."""
        from dataclasses import replace
        from faceverify.database import FaceDatabase

        bad = replace(full_record, smiling=float("nan")).to_dict()
        (tmp_path / FaceDatabase.GALLERIES_FILE).write_text(
            json.dumps({"alice": [bad, full_record.to_dict()]})
        )

        gallery = FaceDatabase(str(tmp_path)).load_gallery("alice")
        assert [s.record for s in gallery] == [full_record]

    def test_non_finite_record_not_written(self, tmp_path, full_record):
        """Test a NaN sample is refused instead of being persisted."""
        from dataclasses import replace
        from faceverify.database import FaceDatabase

        db = FaceDatabase(str(tmp_path))
        assert db.save_gallery("bob", [full_record])
        assert not db.save_gallery("alice", [replace(full_record, yaw=float("inf"))])
        assert "alice" not in db

        reloaded = FaceDatabase(str(tmp_path))
        assert reloaded.get_all_identities() == ["bob"]
        assert reloaded.load_gallery("bob")[0].record == full_record

    def test_stored_values_are_floats(self, full_record):
        """Test angles and probabilities are converted like other fields."""
        from faceverify.types import FeatureRecord

        data = full_record.to_dict()
        data["head_angles"]["yaw"] = "-3"
        data["probabilities"]["smiling"] = 0

        record = FeatureRecord.from_dict(data)
        assert record.yaw == -3.0
        assert isinstance(record.smiling, float)

    def test_failed_write_keeps_previous_state(self, tmp_path, full_record, other_record):
        """Test memory matches disk when a write fails."""
        from faceverify.database import FaceDatabase

        db = FaceDatabase(str(tmp_path))
        assert db.save_gallery("alice", [full_record], name="Alice")

        # A directory in place of the file makes every write fail
        galleries = tmp_path / FaceDatabase.GALLERIES_FILE
        galleries.unlink()
        galleries.mkdir()

        assert not db.save_gallery("alice", [other_record], name="Alicia")
        assert db.load_gallery("alice")[0].record == full_record
        assert db.get_user_name("alice") == "Alice"

        assert not db.save_gallery("bob", [other_record])
        assert "bob" not in db
        assert db.get_user_name("bob") is None

        assert not db.remove_identity("alice")
        assert "alice" in db

        assert not db.clear()
        assert len(db) == 1
