"""
Tests for TSV settings (src/config/settings.py).

Environment variables are set with monkeypatch so nothing leaks between
tests; the conftest fixture resets the settings singleton around each test.
"""

from pathlib import Path

import pytest

from src.config.settings import Settings, TsvSettings, get_settings, reset_settings


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("TSV_ENCODING", "TSV_DATA_DIR", "TSV_DEFAULT_FILE"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = TsvSettings.from_env()
    assert settings.encoding == "utf-8"
    assert settings.default_path == Path("data") / "tweets.tsv"


def test_from_env_reads_variables(clean_env):
    clean_env.setenv("TSV_ENCODING", "cp932")
    clean_env.setenv("TSV_DATA_DIR", "/srv/tsv")
    clean_env.setenv("TSV_DEFAULT_FILE", "timeline.tsv")

    settings = TsvSettings.from_env()

    assert settings.encoding == "cp932"
    assert settings.default_path == Path("/srv/tsv/timeline.tsv")


def test_unknown_encoding_raises():
    with pytest.raises(ValueError) as exc_info:
        TsvSettings(encoding="not-an-encoding")
    assert "TSV_ENCODING" in str(exc_info.value)


def test_empty_default_file_raises():
    with pytest.raises(ValueError):
        TsvSettings(default_file="")


def test_get_settings_is_cached_until_reset(clean_env):
    first = get_settings()
    assert get_settings() is first
    assert isinstance(first, Settings)

    clean_env.setenv("TSV_DEFAULT_FILE", "other.tsv")
    assert get_settings().tsv.default_file == "tweets.tsv"

    reset_settings()
    assert get_settings().tsv.default_file == "other.tsv"
