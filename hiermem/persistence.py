"""
Persistence — full-state JSON snapshot

The whole index is written as one JSON object (ID → entry) to
``<data_dir>/memories.json`` on every state change. Writes go to a
temporary file in the same directory and are moved into place with
``os.replace``, so a crash mid-write leaves the previous snapshot intact.

There is no schema version and no append log. Only one process may write
a given data directory; nothing here coordinates external writers.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Mapping

from hiermem.errors import FILE_IO_ERROR, JSON_PARSE_ERROR, MemoryStoreError
from hiermem.types import MemoryEntry

logger = logging.getLogger(__name__)

MEMORY_FILENAME = "memories.json"


def memory_file(data_dir: str | os.PathLike[str]) -> Path:
    """Path of the snapshot file inside ``data_dir``."""
    return Path(data_dir) / MEMORY_FILENAME


def dump_entries(index: Mapping[str, MemoryEntry]) -> str:
    """Serialize the index to the snapshot document text."""
    data = {entry_id: entry.to_dict() for entry_id, entry in index.items()}
    return json.dumps(data, ensure_ascii=False, indent=2)


def save_entries(path: Path, index: Mapping[str, MemoryEntry]) -> None:
    """Rewrite the snapshot file with the full index.

    Raises:
        MemoryStoreError: ``file_io_error`` if serialization or the write
            fails. The previous snapshot is left untouched in that case.
    """
    temp_name = None
    try:
        payload = dump_entries(index)
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            temp_name = tmp.name
            tmp.write(payload)
        os.replace(temp_name, path)
    except (OSError, TypeError, ValueError) as exc:
        if temp_name is not None and os.path.exists(temp_name):
            os.unlink(temp_name)
        raise MemoryStoreError(
            FILE_IO_ERROR, f"Failed to save memories: {exc}"
        ) from exc
    logger.debug("Saved %d entries to %s", len(index), path)


def load_entries(path: Path) -> Dict[str, MemoryEntry]:
    """Read the snapshot file. Missing or empty file → empty index.

    Raises:
        MemoryStoreError: ``json_parse_error`` for malformed JSON or entry
            records that do not decode; ``file_io_error`` for any other
            read failure.
    """
    try:
        if not path.exists():
            return {}
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise MemoryStoreError(
            FILE_IO_ERROR, f"Failed to load memories: {exc}"
        ) from exc

    if not text.strip():
        return {}

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MemoryStoreError(
            JSON_PARSE_ERROR, f"Failed to parse memory file: {exc}"
        ) from exc
    if not isinstance(data, dict):
        raise MemoryStoreError(
            JSON_PARSE_ERROR,
            f"Failed to parse memory file: expected object, got {type(data).__name__}",
        )

    index: Dict[str, MemoryEntry] = {}
    for entry_id, record in data.items():
        try:
            entry = MemoryEntry.from_dict(record)
        except (KeyError, TypeError, ValueError) as exc:
            raise MemoryStoreError(
                JSON_PARSE_ERROR, f"Invalid entry {entry_id!r}: {exc!r}"
            ) from exc
        if entry.id != entry_id:
            raise MemoryStoreError(
                JSON_PARSE_ERROR,
                f"Invalid entry {entry_id!r}: record id is {entry.id!r}",
            )
        index[entry_id] = entry
    return index
