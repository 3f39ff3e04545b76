"""
Hierarchical Memory Store — locked in-memory index with JSON persistence

The store owns the canonical ``{id: MemoryEntry}`` mapping. Every public
operation, reads included, runs under one exclusive lock for its full
duration, disk write included. Operations that change state or access
statistics rewrite the whole snapshot before returning.

Mutation protocol: validate → apply → persist → roll back on persist
failure. A failed persist never leaves the index ahead of the file.

Two API surfaces share one implementation:
- safe:   ``add_safe``, ``get_safe``, ``update_safe``, ``delete_safe``,
          ``search_by_content_regex``, ``create`` → :class:`MemoryResult`
- legacy: ``add``, ``get``, ``update``, ``delete``, the constructor →
          plain values, raising :class:`MemoryStoreError` on failure

Known limitation: the file has a single writer per process only. Two
processes opening the same data directory will overwrite each other.
"""

from __future__ import annotations

import logging
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from hiermem.config import (
    DEFAULT_MAX_CONTENT_LENGTH,
    DEFAULT_MAX_TAG_COUNT,
    DEFAULT_MAX_TAG_LENGTH,
    MemoryConfig,
    resolve_data_dir,
)
from hiermem.errors import (
    CIRCULAR_DEPENDENCY,
    FILE_IO_ERROR,
    INVALID_CONTENT,
    MEMORY_NOT_FOUND,
    PARENT_NOT_FOUND,
    MemoryResult,
    MemoryStoreError,
)
from hiermem.persistence import load_entries, memory_file, save_entries
from hiermem.tree import (
    attach_child,
    check_forest,
    collect_subtree,
    detach_child,
    detect_cycle,
)
from hiermem.types import (
    SHORT_TERM,
    VALID_LEVELS,
    MemoryEntry,
    MemoryLevel,
    generate_id,
    parse_timestamp,
)
from hiermem.validation import validate_content, validate_level, validate_tags

logger = logging.getLogger(__name__)

DateLike = Union[datetime, str]


def _as_utc(value: DateLike) -> datetime:
    """Coerce a datetime (naive = UTC) or persisted timestamp to aware UTC."""
    if isinstance(value, str):
        return parse_timestamp(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class HierarchicalMemory:
    """
    Process-local forest of memory entries.

    Thread-safe via one exclusive lock. Internal ``_`` helpers expect the
    lock to be held already and never take it themselves.
    """

    def __init__(
        self,
        data_dir: Optional[str] = None,
        max_content_length: int = DEFAULT_MAX_CONTENT_LENGTH,
        max_tag_length: int = DEFAULT_MAX_TAG_LENGTH,
        max_tag_count: int = DEFAULT_MAX_TAG_COUNT,
    ):
        """Open (or create) the store rooted at ``data_dir``.

        Args:
            data_dir: Directory holding ``memories.json``. Falls back to
                ``MEMORY_DATA_DIR``, then ``./data``. Created if absent.
            max_content_length: Longest accepted content, in characters.
            max_tag_length: Longest accepted tag, in characters.
            max_tag_count: Most tags accepted on one entry.

        Raises:
            MemoryStoreError: ``file_io_error`` if the directory cannot be
                created or the file cannot be read; ``json_parse_error`` if
                the file is malformed.
        """
        self.data_dir = resolve_data_dir(data_dir)
        self.max_content_length = max_content_length
        self.max_tag_length = max_tag_length
        self.max_tag_count = max_tag_count
        self._lock = threading.Lock()
        try:
            Path(self.data_dir).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise MemoryStoreError(
                FILE_IO_ERROR, f"Failed to create data directory: {exc}"
            ) from exc
        self.path = memory_file(self.data_dir)
        self._memories: Dict[str, MemoryEntry] = load_entries(self.path)
        problems = check_forest(self._memories)
        if problems:
            logger.warning(
                "Loaded hierarchy has %d integrity problem(s), first: %s",
                len(problems), problems[0],
            )
        logger.info(
            f"HierarchicalMemory opened: {self.path} ({len(self._memories)} entries)"
        )

    @classmethod
    def create(
        cls,
        data_dir: Optional[str] = None,
        max_content_length: int = DEFAULT_MAX_CONTENT_LENGTH,
        max_tag_length: int = DEFAULT_MAX_TAG_LENGTH,
        max_tag_count: int = DEFAULT_MAX_TAG_COUNT,
    ) -> MemoryResult[HierarchicalMemory]:
        """Result-returning constructor."""
        try:
            return MemoryResult.success(
                cls(data_dir, max_content_length, max_tag_length, max_tag_count)
            )
        except MemoryStoreError as exc:
            return MemoryResult.from_error(exc)

    @classmethod
    def from_config(cls, config: MemoryConfig) -> HierarchicalMemory:
        """Open a store with the limits of a :class:`MemoryConfig`."""
        sc = config.store
        return cls(
            sc.data_dir, sc.max_content_length, sc.max_tag_length, sc.max_tag_count,
        )

    def __repr__(self) -> str:
        return f"HierarchicalMemory(data_dir={self.data_dir!r}, entries={len(self)})"

    def __len__(self) -> int:
        with self._lock:
            return len(self._memories)

    def __contains__(self, memory_id: object) -> bool:
        with self._lock:
            return memory_id in self._memories

    # -- Internals (lock held) ---------------------------------------------

    def _save(self) -> None:
        save_entries(self.path, self._memories)

    @staticmethod
    def _resolve_level(level: str) -> MemoryResult[MemoryLevel]:
        if level in VALID_LEVELS:
            return MemoryResult.success(level)
        return validate_level(level)

    def _touch(self, entries: Sequence[MemoryEntry]) -> List[MemoryEntry]:
        """Record an access on each entry, persist once, return copies."""
        for entry in entries:
            entry.touch()
        self._save()
        return [entry.copy() for entry in entries]

    def _select(self, predicate: Callable[[MemoryEntry], bool]) -> List[MemoryEntry]:
        return self._touch([e for e in self._memories.values() if predicate(e)])

    # -- Persistence -------------------------------------------------------

    def save(self) -> None:
        """Write the full index to disk.

        Raises:
            MemoryStoreError: ``file_io_error`` if the write fails.
        """
        with self._lock:
            self._save()

    # -- Mutations ---------------------------------------------------------

    def add_safe(
        self,
        content: str,
        level: MemoryLevel = SHORT_TERM,
        tags: Optional[Iterable[str]] = None,
        parent_id: Optional[str] = None,
    ) -> MemoryResult[str]:
        """Validate and insert a new entry. Returns its ID.

        Failure kinds: ``invalid_content``, ``invalid_tags``,
        ``parent_not_found``, ``circular_dependency``, ``file_io_error``.
        On ``file_io_error`` the index is exactly as it was before the call.
        """
        tag_list = list(tags or [])
        with self._lock:
            for check in (
                validate_content(content, self.max_content_length),
                validate_tags(tag_list, self.max_tag_length, self.max_tag_count),
            ):
                if check.is_err:
                    return MemoryResult.from_error(check.error)
            resolved = self._resolve_level(level)
            if resolved.is_err:
                return MemoryResult.from_error(resolved.error)

            if parent_id is not None and parent_id not in self._memories:
                return MemoryResult.failure(
                    PARENT_NOT_FOUND, f"Parent memory not found: {parent_id}"
                )

            entry = MemoryEntry(
                content=content, level=resolved.value, tags=tag_list,
                parent_id=parent_id,
            )
            while entry.id in self._memories:
                entry.id = generate_id()

            # A fresh ID cannot be an ancestor yet; the walk still guards
            # against a corrupted chain above the parent.
            if parent_id is not None and detect_cycle(self._memories, parent_id, entry.id):
                return MemoryResult.failure(
                    CIRCULAR_DEPENDENCY,
                    "Adding this relationship would create a circular dependency",
                )

            self._memories[entry.id] = entry
            if parent_id is not None:
                attach_child(self._memories, parent_id, entry.id)

            try:
                self._save()
            except MemoryStoreError as exc:
                del self._memories[entry.id]
                if parent_id is not None:
                    detach_child(self._memories, parent_id, entry.id)
                logger.warning("add rolled back: %s", exc)
                return MemoryResult.from_error(exc)
            return MemoryResult.success(entry.id)

    def add(
        self,
        content: str,
        level: MemoryLevel = SHORT_TERM,
        tags: Optional[Iterable[str]] = None,
        parent_id: Optional[str] = None,
    ) -> str:
        """Like :meth:`add_safe` but raises :class:`MemoryStoreError`."""
        return self.add_safe(content, level, tags, parent_id).unwrap()

    def get_safe(self, memory_id: str) -> MemoryResult[MemoryEntry]:
        """Fetch a copy of an entry, recording the access."""
        with self._lock:
            entry = self._memories.get(memory_id)
            if entry is None:
                return MemoryResult.failure(
                    MEMORY_NOT_FOUND, f"Memory not found: {memory_id}"
                )
            try:
                return MemoryResult.success(self._touch([entry])[0])
            except MemoryStoreError as exc:
                return MemoryResult.from_error(exc)

    def get(self, memory_id: str) -> Optional[MemoryEntry]:
        """Fetch a copy of an entry (None if unknown), recording the access."""
        result = self.get_safe(memory_id)
        if result.kind == MEMORY_NOT_FOUND:
            return None
        return result.unwrap()

    def update_safe(
        self,
        memory_id: str,
        content: Optional[str] = None,
        level: Optional[MemoryLevel] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> MemoryResult[MemoryEntry]:
        """Change the given fields of an entry; others are left alone.

        Always records an access. Returns the updated copy. Provided fields
        are validated with the same rules as :meth:`add_safe`.
        """
        tag_list = list(tags) if tags is not None else None
        with self._lock:
            entry = self._memories.get(memory_id)
            if entry is None:
                return MemoryResult.failure(
                    MEMORY_NOT_FOUND, f"Memory not found: {memory_id}"
                )
            if content is not None:
                check = validate_content(content, self.max_content_length)
                if check.is_err:
                    return MemoryResult.from_error(check.error)
            if tag_list is not None:
                check = validate_tags(tag_list, self.max_tag_length, self.max_tag_count)
                if check.is_err:
                    return MemoryResult.from_error(check.error)
            new_level = None
            if level is not None:
                resolved = self._resolve_level(level)
                if resolved.is_err:
                    return MemoryResult.from_error(resolved.error)
                new_level = resolved.value

            before = entry.copy()
            if content is not None:
                entry.content = content
            if new_level is not None:
                entry.level = new_level
            if tag_list is not None:
                entry.tags = tag_list
            entry.touch()
            try:
                self._save()
            except MemoryStoreError as exc:
                self._memories[memory_id] = before
                logger.warning("update of %s rolled back: %s", memory_id, exc)
                return MemoryResult.from_error(exc)
            return MemoryResult.success(entry.copy())

    def update(
        self,
        memory_id: str,
        content: Optional[str] = None,
        level: Optional[MemoryLevel] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> bool:
        """Update an entry. False if the ID is unknown; raises on bad input."""
        result = self.update_safe(memory_id, content, level, tags)
        if result.kind == MEMORY_NOT_FOUND:
            return False
        result.unwrap()
        return True

    def delete_safe(self, memory_id: str) -> MemoryResult[int]:
        """Delete an entry and its whole subtree. Returns the number removed.

        Descendants go first (post-order), then the entry is detached from
        its parent and removed. One persist at the end; on failure the
        index is restored.
        """
        with self._lock:
            entry = self._memories.get(memory_id)
            if entry is None:
                return MemoryResult.failure(
                    MEMORY_NOT_FOUND, f"Memory not found: {memory_id}"
                )
            doomed = collect_subtree(self._memories, memory_id)
            before = dict(self._memories)
            parent = self._memories.get(entry.parent_id) if entry.parent_id else None
            parent_children = list(parent.children) if parent is not None else None

            for descendant_id in doomed[:-1]:
                del self._memories[descendant_id]
            if entry.parent_id is not None:
                detach_child(self._memories, entry.parent_id, memory_id)
            del self._memories[memory_id]

            try:
                self._save()
            except MemoryStoreError as exc:
                self._memories.clear()
                self._memories.update(before)
                if parent is not None:
                    parent.children[:] = parent_children
                logger.warning("delete of %s rolled back: %s", memory_id, exc)
                return MemoryResult.from_error(exc)
            logger.info(f"Deleted {memory_id} ({len(doomed)} entries)")
            return MemoryResult.success(len(doomed))

    def delete(self, memory_id: str) -> bool:
        """Delete an entry and its subtree. False if the ID is unknown."""
        result = self.delete_safe(memory_id)
        if result.kind == MEMORY_NOT_FOUND:
            return False
        result.unwrap()
        return True

    # -- Search ------------------------------------------------------------

    def search_by_tags(self, tags: Iterable[str]) -> List[MemoryEntry]:
        """Entries carrying every given tag. No tags matches everything."""
        wanted = list(tags)
        with self._lock:
            return self._select(lambda e: all(t in e.tags for t in wanted))

    def search_by_tags_or(self, tags: Iterable[str]) -> List[MemoryEntry]:
        """Entries carrying at least one given tag.

        No tags matches nothing: unlike :meth:`search_by_tags`, where "all of
        zero tags" holds vacuously, "any of zero tags" never holds.
        """
        wanted = list(tags)
        with self._lock:
            return self._select(lambda e: any(t in e.tags for t in wanted))

    def search_by_content(self, query: str) -> List[MemoryEntry]:
        """Case-insensitive substring search over content."""
        needle = query.lower()
        with self._lock:
            return self._select(lambda e: needle in e.content.lower())

    def search_by_content_regex(self, pattern: str) -> MemoryResult[List[MemoryEntry]]:
        """Case-insensitive regex search (``re.search``) over content.

        An invalid pattern is an ``invalid_content`` failure; nothing is
        touched or written in that case.
        """
        try:
            regex = re.compile(pattern, re.IGNORECASE)
        except re.error as exc:
            logger.warning("Rejected regex %r: %s", pattern, exc)
            return MemoryResult.failure(
                INVALID_CONTENT, f"Invalid regex pattern: {exc}"
            )
        with self._lock:
            try:
                return MemoryResult.success(
                    self._select(lambda e: regex.search(e.content) is not None)
                )
            except MemoryStoreError as exc:
                return MemoryResult.from_error(exc)

    def get_by_level(self, level: MemoryLevel) -> List[MemoryEntry]:
        """Entries at ``level`` (any spelling accepted by validate_level)."""
        resolved = self._resolve_level(level).unwrap()
        with self._lock:
            return self._select(lambda e: e.level == resolved)

    def get_by_date_range(self, start: DateLike, end: DateLike) -> List[MemoryEntry]:
        """Entries created within [start, end], both ends inclusive."""
        lo, hi = _as_utc(start), _as_utc(end)
        with self._lock:
            return self._select(lambda e: lo <= parse_timestamp(e.created_at) <= hi)

    # -- Hierarchy ---------------------------------------------------------

    def get_children(self, memory_id: str) -> List[MemoryEntry]:
        """Direct children, in attach order. Empty for an unknown ID."""
        with self._lock:
            parent = self._memories.get(memory_id)
            if parent is None:
                return []
            return self._touch(
                [self._memories[c] for c in parent.children if c in self._memories]
            )

    def get_roots(self) -> List[MemoryEntry]:
        """Entries without a parent."""
        with self._lock:
            return self._select(lambda e: e.parent_id is None)

    def get_all(self) -> List[MemoryEntry]:
        with self._lock:
            return self._select(lambda e: True)

    def get_hierarchy(self) -> Dict[str, List[str]]:
        """Snapshot of ``{id: children}``. No access tracking, no write."""
        with self._lock:
            return {mid: list(e.children) for mid, e in self._memories.items()}

    # -- Analytics ---------------------------------------------------------

    def _ranked(self, key: Callable[[MemoryEntry], object], limit: int) -> List[MemoryEntry]:
        # sorted() is stable under reverse=True: ties keep insertion order
        ranked = sorted(self._memories.values(), key=key, reverse=True)
        return self._touch(ranked[:max(limit, 0)])

    def get_most_accessed(self, limit: int = 10) -> List[MemoryEntry]:
        """Top ``limit`` entries by access count, ranked before this call's touch."""
        with self._lock:
            return self._ranked(lambda e: e.access_count, limit)

    def get_recently_accessed(self, limit: int = 10) -> List[MemoryEntry]:
        """Top ``limit`` entries by last access time, ranked before this call's touch."""
        with self._lock:
            return self._ranked(lambda e: e.last_accessed, limit)

    def get_memory_stats(self) -> Dict[str, int]:
        """Counts per level, total accesses and root count. Read-only."""
        with self._lock:
            stats = {
                "total": len(self._memories),
                "short_term": 0,
                "medium_term": 0,
                "long_term": 0,
                "total_accesses": 0,
                "roots": 0,
            }
            for entry in self._memories.values():
                stats[entry.level] += 1
                stats["total_accesses"] += entry.access_count
                if entry.parent_id is None:
                    stats["roots"] += 1
            return stats
