"""
Tests for hiermem.persistence — snapshot save/load and failure mapping.
"""

import json

import pytest

from hiermem.errors import FILE_IO_ERROR, JSON_PARSE_ERROR, MemoryStoreError
from hiermem.persistence import (
    MEMORY_FILENAME,
    dump_entries,
    load_entries,
    memory_file,
    save_entries,
)
from hiermem.types import LONG_TERM, MemoryEntry


@pytest.fixture
def index():
    root = MemoryEntry(content="Q1 Product Launch Project", level=LONG_TERM, tags=["work"])
    child = MemoryEntry(content="Team standup at 9", parent_id=root.id)
    root.children.append(child.id)
    return {root.id: root, child.id: child}


class TestSave:
    def test_writes_object_keyed_by_id(self, tmp_path, index):
        path = memory_file(tmp_path)
        assert path.name == MEMORY_FILENAME
        save_entries(path, index)
        data = json.loads(path.read_text(encoding="utf-8"))
        assert list(data) == list(index)
        for entry_id, record in data.items():
            assert record["id"] == entry_id
            assert set(record) == {
                "id", "content", "level", "tags", "created_at",
                "last_accessed", "access_count", "parent_id", "children",
            }

    def test_full_rewrite(self, tmp_path, index):
        path = memory_file(tmp_path)
        save_entries(path, index)
        save_entries(path, {})
        assert json.loads(path.read_text(encoding="utf-8")) == {}

    def test_no_temp_files_left(self, tmp_path, index):
        save_entries(memory_file(tmp_path), index)
        assert [p.name for p in tmp_path.iterdir()] == [MEMORY_FILENAME]

    def test_failed_write_removes_temp_file(self, tmp_path, index):
        path = memory_file(tmp_path)
        save_entries(path, index)
        previous = path.read_text(encoding="utf-8")
        bad = MemoryEntry(content="lone \ud800 surrogate")
        with pytest.raises(MemoryStoreError) as exc_info:
            save_entries(path, {bad.id: bad})
        assert exc_info.value.kind == FILE_IO_ERROR
        assert [p.name for p in tmp_path.iterdir()] == [MEMORY_FILENAME]
        assert path.read_text(encoding="utf-8") == previous

    def test_failed_replace_removes_temp_file(self, tmp_path, index, monkeypatch):
        def refuse(src, dst):
            raise OSError("read-only file system")
        monkeypatch.setattr("hiermem.persistence.os.replace", refuse)
        with pytest.raises(MemoryStoreError) as exc_info:
            save_entries(memory_file(tmp_path), index)
        assert exc_info.value.kind == FILE_IO_ERROR
        assert list(tmp_path.iterdir()) == []

    def test_missing_directory_is_io_error(self, tmp_path, index):
        path = memory_file(tmp_path / "absent")
        with pytest.raises(MemoryStoreError) as exc_info:
            save_entries(path, index)
        assert exc_info.value.kind == FILE_IO_ERROR

    def test_unicode_kept(self, tmp_path):
        e = MemoryEntry(content="Réunion à 9h — café")
        path = memory_file(tmp_path)
        save_entries(path, {e.id: e})
        assert "Réunion à 9h" in path.read_text(encoding="utf-8")

    def test_dump_is_pretty(self, index):
        assert "\n  " in dump_entries(index)


class TestLoad:
    def test_missing_file(self, tmp_path):
        assert load_entries(memory_file(tmp_path)) == {}

    def test_empty_file(self, tmp_path):
        path = memory_file(tmp_path)
        path.write_text("", encoding="utf-8")
        assert load_entries(path) == {}

    def test_round_trip_preserves_order(self, tmp_path, index):
        path = memory_file(tmp_path)
        save_entries(path, index)
        loaded = load_entries(path)
        assert list(loaded) == list(index)
        assert loaded == index

    def test_malformed_json(self, tmp_path):
        path = memory_file(tmp_path)
        path.write_text("not json {{{", encoding="utf-8")
        with pytest.raises(MemoryStoreError) as exc_info:
            load_entries(path)
        assert exc_info.value.kind == JSON_PARSE_ERROR

    def test_top_level_not_object(self, tmp_path):
        path = memory_file(tmp_path)
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(MemoryStoreError) as exc_info:
            load_entries(path)
        assert exc_info.value.kind == JSON_PARSE_ERROR

    def test_bad_record(self, tmp_path, index):
        path = memory_file(tmp_path)
        data = {k: v.to_dict() for k, v in index.items()}
        first = next(iter(data))
        del data[first]["level"]
        path.write_text(json.dumps(data), encoding="utf-8")
        with pytest.raises(MemoryStoreError) as exc_info:
            load_entries(path)
        assert exc_info.value.kind == JSON_PARSE_ERROR
        assert first in exc_info.value.details

    def test_key_must_match_record_id(self, tmp_path, index):
        path = memory_file(tmp_path)
        data = {k: v.to_dict() for k, v in index.items()}
        first = next(iter(data))
        data["SOME-OTHER-KEY"] = data.pop(first)
        path.write_text(json.dumps(data), encoding="utf-8")
        with pytest.raises(MemoryStoreError) as exc_info:
            load_entries(path)
        assert exc_info.value.kind == JSON_PARSE_ERROR
        assert "SOME-OTHER-KEY" in exc_info.value.details

    @pytest.mark.parametrize("field, value", [("content", None), ("parent_id", 42)])
    def test_mistyped_field(self, tmp_path, index, field, value):
        path = memory_file(tmp_path)
        data = {k: v.to_dict() for k, v in index.items()}
        data[next(iter(data))][field] = value
        path.write_text(json.dumps(data), encoding="utf-8")
        with pytest.raises(MemoryStoreError) as exc_info:
            load_entries(path)
        assert exc_info.value.kind == JSON_PARSE_ERROR

    def test_directory_in_place_of_file(self, tmp_path):
        path = memory_file(tmp_path)
        path.mkdir()
        with pytest.raises(MemoryStoreError) as exc_info:
            load_entries(path)
        assert exc_info.value.kind == FILE_IO_ERROR
