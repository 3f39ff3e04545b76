"""
Memory Data Model — Entries, Levels, Identifiers

Defines the canonical memory entry, the three retention levels and the
identifier generator. Entries reference each other by ID only: ``parent_id``
points up, ``children`` is the eagerly maintained inverse.
"""

from __future__ import annotations

import itertools
import json
import secrets
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

# ---------------------------------------------------------------------------
# Levels
# ---------------------------------------------------------------------------

MemoryLevel = Literal["short_term", "medium_term", "long_term"]

SHORT_TERM: MemoryLevel = "short_term"
MEDIUM_TERM: MemoryLevel = "medium_term"
LONG_TERM: MemoryLevel = "long_term"

# Valid values for runtime checks (declaration order = display order)
VALID_LEVELS: tuple = (SHORT_TERM, MEDIUM_TERM, LONG_TERM)

# Persisted field names, in file order
ENTRY_FIELDS: tuple = (
    "id", "content", "level", "tags", "created_at",
    "last_accessed", "access_count", "parent_id", "children",
)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _now_iso() -> str:
    """Current UTC time, second precision, literal ``Z`` suffix."""
    return datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT)


def format_timestamp(dt: datetime) -> str:
    """Format a datetime in the persisted timestamp format (naive = UTC)."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse a persisted timestamp into an aware UTC datetime."""
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


_id_lock = threading.Lock()
_id_counter = itertools.count(1)


def generate_id() -> str:
    """
    Generate a collision-resistant entry ID.

    Layout: ``TTTTTTTT-RRRR-RRRR-RRRR-CCCCCCCC`` where T is the wall-clock
    second, R are three independent random 16-bit groups and C is a
    process-lifetime counter. Never fails; safe to call from any thread.
    """
    with _id_lock:
        n = next(_id_counter)
    ts = int(time.time()) & 0xFFFFFFFF
    r1, r2, r3 = (secrets.randbelow(0x10000) for _ in range(3))
    return f"{ts:08X}-{r1:04X}-{r2:04X}-{r3:04X}-{n & 0xFFFFFFFF:08X}"


# ---------------------------------------------------------------------------
# Memory Entry
# ---------------------------------------------------------------------------

@dataclass
class MemoryEntry:
    """
    A single memory record.

    Rules:
    - ``id`` and ``created_at`` never change after construction.
    - ``access_count`` / ``last_accessed`` only move through :meth:`touch`.
    - ``children`` holds exactly the IDs whose ``parent_id`` is this ID;
      the store keeps both sides in step.
    """

    content: str = ""
    level: MemoryLevel = SHORT_TERM
    tags: List[str] = field(default_factory=list)
    parent_id: Optional[str] = None
    id: str = field(default_factory=generate_id)
    created_at: str = field(default_factory=_now_iso)
    last_accessed: str = ""
    access_count: int = 0
    children: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.level not in VALID_LEVELS:
            raise ValueError(f"Invalid memory level: {self.level!r}")
        if not self.last_accessed:
            self.last_accessed = self.created_at

    def __str__(self) -> str:
        preview = self.content[:50]
        return (
            f"MemoryEntry(id: {self.id}, level: {self.level}, "
            f'content: "{preview}...")'
        )

    def touch(self) -> None:
        """Record one read-style access."""
        self.access_count += 1
        self.last_accessed = _now_iso()

    def copy(self) -> MemoryEntry:
        """Independent copy; list fields are not shared with the original."""
        return MemoryEntry(
            content=self.content,
            level=self.level,
            tags=list(self.tags),
            parent_id=self.parent_id,
            id=self.id,
            created_at=self.created_at,
            last_accessed=self.last_accessed,
            access_count=self.access_count,
            children=list(self.children),
        )

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-safe dict with the persisted field names."""
        return {
            "id": self.id,
            "content": self.content,
            "level": self.level,
            "tags": list(self.tags),
            "created_at": self.created_at,
            "last_accessed": self.last_accessed,
            "access_count": self.access_count,
            "parent_id": self.parent_id,
            "children": list(self.children),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> MemoryEntry:
        """Deserialize from a persisted dict.

        Raises KeyError on a missing field and ValueError on a bad level,
        timestamp, content or parent reference.
        """
        created_at = str(d["created_at"])
        last_accessed = str(d["last_accessed"])
        parse_timestamp(created_at)
        parse_timestamp(last_accessed)
        if not isinstance(d["content"], str):
            raise ValueError(f"content must be a string, got {type(d['content']).__name__}")
        if d["parent_id"] is not None and not isinstance(d["parent_id"], str):
            raise ValueError(
                f"parent_id must be a string or null, got {type(d['parent_id']).__name__}"
            )
        return cls(
            id=str(d["id"]),
            content=d["content"],
            level=d["level"],
            tags=[str(t) for t in d["tags"]],
            created_at=created_at,
            last_accessed=last_accessed,
            access_count=int(d["access_count"]),
            parent_id=d["parent_id"],
            children=[str(c) for c in d["children"]],
        )

    def to_json(self) -> str:
        """Serialize to indented JSON string."""
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)
