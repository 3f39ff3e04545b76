"""
hiermem — An embedded hierarchical memory store for agent processes.

A forest of short/medium/long-term memory entries held in memory, guarded
by one lock, and rewritten to a single JSON file on every change.
"""

__version__ = "0.3.0"

from hiermem.types import (
    MemoryEntry,
    MemoryLevel,
    SHORT_TERM,
    MEDIUM_TERM,
    LONG_TERM,
    VALID_LEVELS,
    generate_id,
)
from hiermem.errors import MemoryErrorKind, MemoryResult, MemoryStoreError
from hiermem.validation import validate_content, validate_level, validate_tags
from hiermem.store import HierarchicalMemory
from hiermem.config import MemoryConfig, StoreConfig, load_config

__all__ = [
    "__version__",
    "MemoryEntry",
    "MemoryLevel",
    "SHORT_TERM",
    "MEDIUM_TERM",
    "LONG_TERM",
    "VALID_LEVELS",
    "generate_id",
    "MemoryErrorKind",
    "MemoryResult",
    "MemoryStoreError",
    "validate_content",
    "validate_level",
    "validate_tags",
    "HierarchicalMemory",
    "MemoryConfig",
    "StoreConfig",
    "load_config",
]
