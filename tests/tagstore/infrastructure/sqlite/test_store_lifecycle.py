"""Lifecycle, persistence and failure-path tests for the SQLite group store."""

import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy.exc import OperationalError

from tagstore.infrastructure.adapters.sqlite_adapter import SQLiteKVAdapter
from tagstore.infrastructure.sqlite.sqlite_group_store import SQLiteGroupStore, open_store
from tagstore.models.errors import (
    DecodeError,
    GroupExistsError,
    StorageError,
    StoreClosedError,
    StoreLockedError,
)
from tagstore.models.image import Image
from tagstore.utils.constants import ENV_DB_PATH, GROUPS_BUCKET


class TestOpenStore:
    def test_creates_backing_file(self, store_path: str) -> None:
        assert not os.path.exists(store_path)

        store = open_store(store_path, timeout=1.0)
        try:
            assert os.path.exists(store_path)
            assert store.path == store_path
        finally:
            store.close()

    def test_creates_parent_directory(self, tmp_path: Path) -> None:
        path = str(tmp_path / "nested" / "dir" / "store.db")

        with open_store(path, timeout=1.0) as store:
            store.create_group(name="g")

        assert os.path.exists(path)

    @pytest.mark.parametrize("filename", ["a%41.db", "a?mode=ro.db", "a#b.db"])
    def test_url_special_characters_are_literal(self, tmp_path: Path, filename: str) -> None:
        path = str(tmp_path / filename)

        with open_store(path, timeout=1.0) as store:
            store.create_group(name="x")

            with pytest.raises(StoreLockedError):
                open_store(path, timeout=0.2)

        entries = os.listdir(tmp_path)
        assert {filename, filename + ".lock"} <= set(entries)
        assert all(entry.startswith(filename) for entry in entries)

        with open_store(path, timeout=1.0) as store:
            assert store.get_group_names() == ["x"]

    def test_lookalike_path_is_a_separate_store(self, tmp_path: Path) -> None:
        with open_store(str(tmp_path / "a%41.db"), timeout=1.0) as escaped:
            escaped.create_group(name="x")

            with open_store(str(tmp_path / "aA.db"), timeout=1.0) as plain:
                assert plain.get_group_names() == []

    def test_path_from_environment(self, store_path: str, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(ENV_DB_PATH, store_path)

        with open_store(timeout=1.0) as store:
            assert store.path == store_path

    def test_missing_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(ENV_DB_PATH, raising=False)

        with pytest.raises(RuntimeError):
            open_store()

    def test_data_survives_reopen(self, store_path: str) -> None:
        with open_store(store_path, timeout=1.0) as store:
            store.create_group(name="A")
            store.add_image(group="B", image=Image(name="b.jpg", size=4))
            store.put_image_data(hash="h", data=b"blob")

        with open_store(store_path, timeout=1.0) as store:
            assert store.get_group_names() == ["A", "B"]
            assert store.get_group(name="B").size == 4
            assert store.get_image(group="B", image_id=1).name == "b.jpg"
            assert store.get_image_data(hash="h") == b"blob"
            assert store.add_image(group="B", image=Image()).id == 2

            with pytest.raises(GroupExistsError):
                store.create_group(name="A")

    def test_second_open_times_out_while_locked(self, store: SQLiteGroupStore) -> None:
        with pytest.raises(StoreLockedError):
            open_store(store.path, timeout=0.2)

        store.create_group(name="still usable")

    def test_reopen_after_close(self, store_path: str) -> None:
        first = open_store(store_path, timeout=1.0)
        first.close()

        second = open_store(store_path, timeout=0.2)
        second.close()


class TestClose:
    def test_close_is_idempotent(self, store: SQLiteGroupStore) -> None:
        store.close()
        store.close()

        assert store.closed

    def test_operations_after_close(self, store: SQLiteGroupStore) -> None:
        store.close()

        with pytest.raises(StoreClosedError):
            store.get_all_groups()
        with pytest.raises(StoreClosedError):
            store.create_group(name="g")

    def test_context_manager_closes(self, store_path: str) -> None:
        with open_store(store_path, timeout=1.0) as store:
            assert not store.closed

        assert store.closed

    def test_context_manager_closes_on_error(self, store_path: str) -> None:
        with pytest.raises(ZeroDivisionError):
            with open_store(store_path, timeout=1.0) as store:
                1 / 0

        assert store.closed
        open_store(store_path, timeout=0.2).close()


class TestCorruption:
    def test_corrupt_group_record_raises_decode_error(self, store_path: str) -> None:
        with open_store(store_path, timeout=1.0) as store:
            store.create_group(name="g")

        kv = SQLiteKVAdapter(store_path, timeout=1.0)
        try:
            with kv.update() as tx:
                tx.bucket(GROUPS_BUCKET).put(b"g", b"\x01{not json")  # type: ignore[union-attr]
        finally:
            kv.close()

        with open_store(store_path, timeout=1.0) as store:
            with pytest.raises(DecodeError):
                store.get_group(name="g")
            with pytest.raises(DecodeError):
                store.get_all_groups()


class FailingAdapter:
    """SQLiteKVAdapter stand-in whose transactions fail like a broken disk."""

    def __init__(self, adapter: SQLiteKVAdapter) -> None:
        self._adapter = adapter
        self.path = adapter.path

    @contextmanager
    def view(self) -> Iterator[Any]:
        raise OperationalError("BEGIN", {}, Exception("disk I/O error"))
        yield

    @contextmanager
    def update(self) -> Iterator[Any]:
        raise OperationalError("BEGIN IMMEDIATE", {}, Exception("disk I/O error"))
        yield

    def close(self) -> None:
        self._adapter.close()


class TestStorageErrors:
    def test_engine_errors_are_wrapped(self, store: SQLiteGroupStore) -> None:
        store._db = FailingAdapter(store._db)  # type: ignore[assignment]

        with pytest.raises(StorageError) as exc_info:
            store.get_all_groups()

        assert isinstance(exc_info.value.__cause__, OperationalError)
        assert exc_info.value.error_code == "GROUP_FETCH_FAILED"

    def test_write_errors_are_wrapped(self, store: SQLiteGroupStore) -> None:
        store._db = FailingAdapter(store._db)  # type: ignore[assignment]

        with pytest.raises(StorageError) as exc_info:
            store.add_image(group="g", image=Image())

        assert exc_info.value.error_code == "IMAGE_ADD_FAILED"
        assert exc_info.value.details == {"group": "g"}
