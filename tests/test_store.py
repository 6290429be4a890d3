"""Tests for the SQLite content store."""

from __future__ import annotations

from datetime import datetime, timezone
import sqlite3
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from relaywatch.errors import (
    ContentStoreError,
    InvalidName,
    NotFound,
    PermissionDenied,
    RecordExists,
)
from relaywatch.replication.store import (
    ADD_NODE,
    FOLDER,
    SET_PROPERTY,
    SqliteContentStore,
    ancestors,
    join_path,
    normalize_path,
)


class TestPaths:
    def test_normalize(self) -> None:
        assert normalize_path("//var///nuggets/") == "/var/nuggets"
        assert normalize_path("") == "/"
        assert normalize_path("var") == "/var"

    def test_join(self) -> None:
        assert join_path("/", "var") == "/var"
        assert join_path("/var/", "nuggets") == "/var/nuggets"

    def test_ancestors(self) -> None:
        assert ancestors("/var/nuggets") == ["/var/nuggets", "/var", "/"]


class TestSqliteContentStore:
    def test_root_exists(self, store: SqliteContentStore) -> None:
        assert store.exists("/")
        assert not store.exists("/var")

    def test_get_or_create_container_is_idempotent(self, store: SqliteContentStore) -> None:
        assert store.get_or_create_container("/", "var") == "/var"
        assert store.get_or_create_container("/", "var") == "/var"
        assert store.children("/") == ["/var"]
        assert store.kind("/var") == FOLDER

    def test_container_needs_parent(self, store: SqliteContentStore) -> None:
        with pytest.raises(NotFound):
            store.get_or_create_container("/missing", "child")

    def test_create_child_twice_fails(self, store: SqliteContentStore) -> None:
        store.create_child("/", "evt-1")
        with pytest.raises(RecordExists) as exc:
            store.create_child("/", "evt-1")
        assert exc.value.path == "/evt-1"

    @pytest.mark.parametrize("name", ["", "a/b", ".."])
    def test_invalid_names(self, store: SqliteContentStore, name: str) -> None:
        with pytest.raises(InvalidName):
            store.create_child("/", name)

    def test_fields_round_trip_types(self, store: SqliteContentStore) -> None:
        ts = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
        path = store.create_child("/", "node")
        values = {"s": "text", "i": 42, "f": 1.5, "b": True, "d": ts, "n": None}
        for key, value in values.items():
            store.set_field(path, key, value)
        store.commit()

        fields = store.get_fields(path)
        assert fields == values
        assert type(fields["i"]) is int
        assert type(fields["b"]) is bool
        assert store.get_fields(path)["d"] == ts

    def test_unsupported_field_type(self, store: SqliteContentStore) -> None:
        path = store.create_child("/", "node")
        with pytest.raises(ValueError):
            store.set_field(path, "x", object())

    def test_set_field_on_missing_node(self, store: SqliteContentStore) -> None:
        with pytest.raises(NotFound):
            store.set_field("/ghost", "k", "v")

    def test_get_fields_missing(self, store: SqliteContentStore) -> None:
        with pytest.raises(NotFound):
            store.get_fields("/ghost")

    def test_permissions_inherit(self, store: SqliteContentStore) -> None:
        store.get_or_create_container("/", "var")
        store.commit()
        assert store.has_permission("/var/nuggets", ADD_NODE)
        store.deny("/var", ADD_NODE)
        assert not store.has_permission("/var", ADD_NODE)
        assert not store.has_permission("/var/nuggets", ADD_NODE)
        assert store.has_permission("/var", SET_PROPERTY)
        assert store.has_permission("/", ADD_NODE)
        store.allow("/var", ADD_NODE)
        assert store.has_permission("/var/nuggets", ADD_NODE)

    def test_denied_add_node(self, store: SqliteContentStore) -> None:
        store.deny("/", ADD_NODE)
        with pytest.raises(PermissionDenied):
            store.create_child("/", "evt-1")

    def test_deny_unknown_action(self, store: SqliteContentStore) -> None:
        with pytest.raises(ValueError):
            store.deny("/", "fly")

    def test_rollback_discards_pending(self, store: SqliteContentStore) -> None:
        path = store.create_child("/", "node")
        store.set_field(path, "k", "v")
        store.rollback()
        assert not store.exists(path)

    def test_uncommitted_invisible_to_other_sessions(
        self, store: SqliteContentStore, tmp_path: Path,
    ) -> None:
        other = SqliteContentStore(tmp_path / "content.db")
        try:
            path = store.create_child("/", "node")
            store.set_field(path, "k", "v")
            assert not other.exists(path)
            store.commit()
            assert other.get_fields(path) == {"k": "v"}
        finally:
            other.close()

    def test_close_and_reopen(self, store: SqliteContentStore) -> None:
        store.create_child("/", "node")
        store.commit()
        store.close()
        assert store.exists("/node")


class TestConcurrentSessions:
    def test_container_created_by_other_session_meanwhile(self, tmp_path: Path) -> None:
        a = SqliteContentStore(tmp_path / "content.db")
        b = SqliteContentStore(tmp_path / "content.db")
        real_exists = a.exists
        calls = []

        def exists_then_lose_race(path: str) -> bool:
            calls.append(path)
            if len(calls) == 1:
                # b wins between a's existence check and its insert
                b.get_or_create_container("/", "var")
                b.commit()
                return False
            return real_exists(path)

        try:
            with patch.object(a, "exists", side_effect=exists_then_lose_race):
                assert a.get_or_create_container("/", "var") == "/var"
            a.commit()
            assert a.children("/") == ["/var"]
            assert a.kind("/var") == FOLDER
        finally:
            a.close()
            b.close()


class TestStorageErrors:
    def test_read_errors_raise_store_error(self, store: SqliteContentStore) -> None:
        broken = MagicMock()
        broken.execute.side_effect = sqlite3.OperationalError("database is locked")

        with patch.object(store, "_get_conn", return_value=broken):
            with pytest.raises(ContentStoreError, match="database is locked"):
                store.exists("/var")
            with pytest.raises(ContentStoreError):
                store.has_permission("/var", ADD_NODE)
            with pytest.raises(ContentStoreError):
                store.children("/")
