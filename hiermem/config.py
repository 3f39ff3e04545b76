"""
Store Configuration

Configuration dataclasses for hiermem: data directory and validation
limits. Includes load_config() for reading a JSON config file with silent
fallback to compiled defaults, and resolve_data_dir() for the
argument > environment > default precedence.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

DATA_DIR_ENV = "MEMORY_DATA_DIR"
DEFAULT_DATA_DIR = "./data"

DEFAULT_MAX_CONTENT_LENGTH = 10000
DEFAULT_MAX_TAG_LENGTH = 50
DEFAULT_MAX_TAG_COUNT = 20


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationError(ValueError):
    """Raised when config values are out of valid range."""

    pass


def _check_range(
    errors: List[str], name: str, value, lo, hi, typ=None,
) -> None:
    """Append an error message if value is out of [lo, hi] or wrong type."""
    if typ is not None and (not isinstance(value, typ) or isinstance(value, bool)):
        errors.append(f"{name}: expected {typ.__name__}, got {type(value).__name__}")
        return
    if value < lo or value > hi:
        errors.append(f"{name}: {value} not in [{lo}, {hi}]")


def resolve_data_dir(data_dir: Optional[str] = None) -> str:
    """Resolve the data directory: argument > MEMORY_DATA_DIR > ./data."""
    if data_dir:
        return str(data_dir)
    return os.environ.get(DATA_DIR_ENV) or DEFAULT_DATA_DIR


@dataclass
class StoreConfig:
    """Data directory and validation limits for one store."""
    data_dir: Optional[str] = None
    max_content_length: int = DEFAULT_MAX_CONTENT_LENGTH
    max_tag_length: int = DEFAULT_MAX_TAG_LENGTH
    max_tag_count: int = DEFAULT_MAX_TAG_COUNT

    def validate(self) -> List[str]:
        """Return list of validation error messages (empty = valid)."""
        errors: List[str] = []
        _check_range(errors, "store.max_content_length",
                     self.max_content_length, 1, 1_000_000, int)
        _check_range(errors, "store.max_tag_length",
                     self.max_tag_length, 1, 1000, int)
        _check_range(errors, "store.max_tag_count",
                     self.max_tag_count, 0, 1000, int)
        return errors


@dataclass
class MemoryConfig:
    """Top-level hiermem configuration."""
    store: StoreConfig = field(default_factory=StoreConfig)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> MemoryConfig:
        """Build config from a nested dict (e.g. JSON)."""
        kwargs: Dict[str, Any] = {}
        if "store" in d:
            kwargs["store"] = StoreConfig(**d["store"])
        return cls(**kwargs)

    def validate(self) -> List[str]:
        """Validate all config sections. Returns list of error messages."""
        errors: List[str] = []
        errors.extend(self.store.validate())
        return errors


def load_config(
    path: Optional[str] = None, *, strict: bool = False,
) -> MemoryConfig:
    """Load config from a JSON file. Returns defaults if file missing/invalid.

    Args:
        path: Path to config.json. If None, returns compiled defaults.
        strict: If True, raise ValidationError on invalid config values.

    Returns:
        MemoryConfig with values from file or defaults.

    Raises:
        ValidationError: If strict=True and config values are out of range.
    """
    if path is None:
        cfg = MemoryConfig()
    else:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            cfg = MemoryConfig.from_dict(data)
        except (FileNotFoundError, json.JSONDecodeError, TypeError, KeyError):
            cfg = MemoryConfig()

    if strict:
        errors = cfg.validate()
        if errors:
            raise ValidationError(
                f"Config validation failed: {'; '.join(errors)}"
            )

    return cfg
