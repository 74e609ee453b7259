"""
Configuration settings for TSV storage.

**Conceptual**: This module provides strongly-typed configuration objects that
load from environment variables (via .env files). All settings are validated
when they are built, so a bad value fails at startup instead of halfway
through writing a file.

**Why centralized config?**
  - Single source of truth for where TSV files live and how they are encoded.
  - Easy to test (construct settings directly instead of reading the environment).
  - Fail-fast validation (unknown encoding -> clear error at startup).

**Scope**: The codec itself (src/data) never reads settings; it takes an
explicit path and encoding. Settings are consumed by the scripts in actions/
that decide which file to read or write.

This module uses python-dotenv to load .env files and dataclasses for type safety.
"""

import codecs
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from project root (no-op if the file does not exist)
env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


@dataclass(frozen=True)
class TsvSettings:
    """
    Configuration for TSV record files.

    Attributes:
        encoding: Text encoding of TSV files (default "utf-8").
        data_dir: Directory holding TSV files (default "data").
        default_file: File name used when a script is not given a path
                      (default "tweets.tsv").
    """
    encoding: str = "utf-8"
    data_dir: Path = Path("data")
    default_file: str = "tweets.tsv"

    def __post_init__(self):
        """Validate settings after initialization."""
        try:
            codecs.lookup(self.encoding)
        except LookupError:
            raise ValueError(
                f"TSV_ENCODING '{self.encoding}' is not a known text encoding."
            )
        if not self.default_file:
            raise ValueError("TSV_DEFAULT_FILE must not be empty.")

    @property
    def default_path(self) -> Path:
        """Default TSV file path: data_dir / default_file."""
        return self.data_dir / self.default_file

    @classmethod
    def from_env(cls) -> "TsvSettings":
        """
        Load TSV settings from environment variables.

        **Environment variables**:
          - TSV_ENCODING (optional): Text encoding. Default "utf-8".
          - TSV_DATA_DIR (optional): Data directory. Default "data".
          - TSV_DEFAULT_FILE (optional): Default file name. Default "tweets.tsv".

        Raises:
            ValueError: If a variable has an invalid value.
        """
        return cls(
            encoding=os.getenv("TSV_ENCODING", "utf-8"),
            data_dir=Path(os.getenv("TSV_DATA_DIR", "data")),
            default_file=os.getenv("TSV_DEFAULT_FILE", "tweets.tsv"),
        )


@dataclass(frozen=True)
class Settings:
    """
    Global settings for the project.

    Attributes:
        tsv: TSV storage settings.
    """
    tsv: TsvSettings

    @classmethod
    def from_env(cls) -> "Settings":
        """Load global settings from environment variables."""
        return cls(tsv=TsvSettings.from_env())


_default_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings singleton.

    Settings are loaded from the environment on first call, then cached.
    Tests can bypass this by building Settings objects directly, or call
    reset_settings() after changing environment variables.

    Raises:
        ValueError: If an environment variable has an invalid value.
    """
    global _default_settings

    if _default_settings is None:
        _default_settings = Settings.from_env()

    return _default_settings


def reset_settings():
    """Reset the global settings singleton (for testing)."""
    global _default_settings
    _default_settings = None
