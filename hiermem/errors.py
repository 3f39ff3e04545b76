"""
Error Kinds and the Result Type

Every failure the store can report carries one of a fixed set of kinds.
The "safe" API returns a :class:`MemoryResult`; the legacy API raises the
same :class:`MemoryStoreError` the result would have carried.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Literal, Optional, TypeVar

T = TypeVar("T")

MemoryErrorKind = Literal[
    "parent_not_found",
    "memory_not_found",
    "invalid_content",
    "invalid_tags",
    "file_io_error",
    "json_parse_error",
    "circular_dependency",
]

PARENT_NOT_FOUND: MemoryErrorKind = "parent_not_found"
MEMORY_NOT_FOUND: MemoryErrorKind = "memory_not_found"
INVALID_CONTENT: MemoryErrorKind = "invalid_content"
INVALID_TAGS: MemoryErrorKind = "invalid_tags"
FILE_IO_ERROR: MemoryErrorKind = "file_io_error"
JSON_PARSE_ERROR: MemoryErrorKind = "json_parse_error"
CIRCULAR_DEPENDENCY: MemoryErrorKind = "circular_dependency"

VALID_ERROR_KINDS: set = {
    PARENT_NOT_FOUND, MEMORY_NOT_FOUND, INVALID_CONTENT, INVALID_TAGS,
    FILE_IO_ERROR, JSON_PARSE_ERROR, CIRCULAR_DEPENDENCY,
}


class MemoryStoreError(Exception):
    """Raised by the legacy API; carried inside failed results."""

    def __init__(self, kind: MemoryErrorKind, details: str = ""):
        if kind not in VALID_ERROR_KINDS:
            raise ValueError(f"Invalid error kind: {kind!r}")
        self.kind = kind
        self.details = details
        super().__init__(f"{kind}: {details}")


@dataclass
class MemoryResult(Generic[T]):
    """Either a success value or a typed failure."""

    ok: bool
    value: Optional[T] = None
    error: Optional[MemoryStoreError] = None

    @classmethod
    def success(cls, value: T = None) -> MemoryResult[T]:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, kind: MemoryErrorKind, details: str = "") -> MemoryResult[T]:
        return cls(ok=False, error=MemoryStoreError(kind, details))

    @classmethod
    def from_error(cls, error: MemoryStoreError) -> MemoryResult[T]:
        return cls(ok=False, error=error)

    @property
    def is_ok(self) -> bool:
        return self.ok

    @property
    def is_err(self) -> bool:
        return not self.ok

    @property
    def kind(self) -> Optional[MemoryErrorKind]:
        """Error kind of a failed result, None on success."""
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> T:
        """Return the value, or raise the carried error."""
        if self.ok:
            return self.value
        raise self.error

    def get_or_default(self, default: T) -> T:
        return self.value if self.ok else default
