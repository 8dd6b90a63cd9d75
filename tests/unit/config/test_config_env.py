"""Tests for EnvReader."""

from pathlib import Path

from mediaforge.config.env import EnvReader


class TestEnvReader:
    def test_missing_returns_default(self):
        reader = EnvReader({})
        assert reader.get_str("X") is None
        assert reader.get_int("X", 3) == 3
        assert reader.get_float("X", 1.5) == 1.5
        assert reader.get_bool("X", True) is True

    def test_conversions(self):
        reader = EnvReader({"I": "42", "F": "0.25", "B": "Yes", "S": "text"})
        assert reader.get_int("I") == 42
        assert reader.get_float("F") == 0.25
        assert reader.get_bool("B") is True
        assert reader.get_bool("S") is False
        assert reader.get_str("S") == "text"

    def test_bad_numbers_fall_back(self, caplog):
        reader = EnvReader({"I": "many", "F": "lots"})
        assert reader.get_int("I", 7) == 7
        assert reader.get_float("F") is None
        assert "Invalid integer value for I" in caplog.text

    def test_path(self, tmp_path: Path):
        reader = EnvReader({"P": str(tmp_path), "Q": str(tmp_path / "nope")})
        assert reader.get_path("P") == tmp_path
        assert reader.get_path("Q") is None
        assert reader.get_path("Q", must_exist=False) == tmp_path / "nope"
