"""
Tests for the Salt Cache.

Tests cover:
1. Save/load persistence
2. Fail-soft loading
3. Record validation
"""

import json

import pytest
from pydantic import ValidationError

from truthminer.core.storage import SaltCache, CommitmentRecord


@pytest.fixture
def cache(tmp_path):
    return SaltCache(tmp_path / "salt_cache.json")


class TestCommitmentRecord:

    def test_create_stamps_time(self):
        record = CommitmentRecord.create("YES", "salt-1", committed_at=1700000000.9)
        assert record.committed_at == 1700000000

    def test_frozen(self):
        record = CommitmentRecord.create("YES", "salt-1", committed_at=1)
        with pytest.raises(ValidationError):
            record.answer = "NO"

    def test_empty_salt_rejected(self):
        with pytest.raises(ValidationError):
            CommitmentRecord(salt="", answer="YES", committed_at=1)

    def test_repr_hides_salt(self):
        record = CommitmentRecord.create("YES", "very-secret-salt", committed_at=1)
        assert "very-secret-salt" not in repr(record)
        assert "very-secret-salt" not in str(record)


class TestPersistence:

    def test_missing_file_is_empty(self, cache):
        assert cache.load() == {}

    def test_roundtrip(self, cache):
        records = {
            "QueryA": CommitmentRecord.create("YES", "salt-a", committed_at=10),
            "QueryB": CommitmentRecord.create("12346", "salt-b", committed_at=20),
        }
        cache.save(records)
        assert cache.load() == records

    def test_document_shape(self, cache):
        cache.save({"QueryA": CommitmentRecord.create("YES", "salt-a", committed_at=10)})
        document = json.loads(cache.path.read_text())
        assert document == {"QueryA": {"salt": "salt-a", "answer": "YES", "committedAt": 10}}

    def test_save_replaces(self, cache):
        cache.save({"QueryA": CommitmentRecord.create("YES", "salt-a", committed_at=10)})
        cache.save({})
        assert cache.load() == {}

    def test_no_temp_files_left(self, cache, tmp_path):
        cache.save({"QueryA": CommitmentRecord.create("YES", "salt-a", committed_at=10)})
        assert [p.name for p in tmp_path.iterdir()] == ["salt_cache.json"]


class TestFailSoft:

    @pytest.mark.parametrize("content", [
        "{not json",
        "[]",
        '{"QueryA": {"salt": "s"}}',
        '{"QueryA": {"salt": "s", "answer": "YES", "committedAt": -1}}',
        '{"QueryA": {"salt": "s", "answer": "YES", "committedAt": 1, "extra": 1}}',
    ])
    def test_corrupt_document_is_empty(self, cache, content):
        cache.path.write_text(content)
        assert cache.load() == {}

    def test_binary_garbage(self, cache):
        cache.path.write_bytes(b"\xff\xfe\x00\x81")
        assert cache.load() == {}

    def test_corrupt_warning_does_not_leak_salt(self, cache, caplog):
        cache.path.write_text('{"QueryA": {"salt": "leaky-salt", "answer": 5, "committedAt": 1}}')
        assert cache.load() == {}
        assert "leaky-salt" not in caplog.text
