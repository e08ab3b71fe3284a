"""
Tests for answer data sources.
"""

import json

import pytest

from truthminer.core.errors import DataSourceError
from truthminer.core.sources import StaticDataSource, JsonFileDataSource


class TestStaticDataSource:

    def test_fetch(self):
        source = StaticDataSource({"match-1": "YES", "btc": 101234.5})
        assert source.fetch("match-1") == "YES"
        assert source.fetch("btc") == "101234.5"
        assert source.fetch("missing") is None


class TestJsonFileDataSource:

    def test_missing_file(self, tmp_path):
        assert JsonFileDataSource(tmp_path / "answers.json").fetch("x") is None

    def test_reads_current_contents(self, tmp_path):
        path = tmp_path / "answers.json"
        source = JsonFileDataSource(path)

        path.write_text(json.dumps({"match-1": "NO"}))
        assert source.fetch("match-1") == "NO"

        path.write_text(json.dumps({"match-1": "YES", "score": 3}))
        assert source.fetch("match-1") == "YES"
        assert source.fetch("score") == "3"

    def test_invalid_file(self, tmp_path):
        path = tmp_path / "answers.json"
        path.write_text("{broken")
        assert JsonFileDataSource(path).fetch("match-1") is None

    def test_non_object(self, tmp_path):
        path = tmp_path / "answers.json"
        path.write_text("[1, 2]")
        assert JsonFileDataSource(path).fetch("match-1") is None

    def test_null_means_no_data(self, tmp_path):
        path = tmp_path / "answers.json"
        path.write_text(json.dumps({"match-1": None}))
        assert JsonFileDataSource(path).fetch("match-1") is None

    def test_structured_value_rejected(self, tmp_path):
        path = tmp_path / "answers.json"
        path.write_text(json.dumps({"match-1": {"home": 2, "away": 1}}))
        with pytest.raises(DataSourceError):
            JsonFileDataSource(path).fetch("match-1")
