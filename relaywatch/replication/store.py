"""Content store — hierarchical node storage used by the replication bridge.

ContentStore is the interface the bridge depends on. SqliteContentStore is
the bundled implementation: nodes addressed by absolute paths, typed fields
per node, and a deny-list ACL. One store instance is one session: its
writes are invisible to other sessions until commit(), and rollback()
discards them.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from ..errors import (
    ContentStoreError,
    InvalidName,
    NotFound,
    PermissionDenied,
    RecordExists,
    StorageCommitFailed,
)

logger = logging.getLogger(__name__)

ROOT = "/"

# Actions understood by has_permission()
ADD_NODE = "add_node"
SET_PROPERTY = "set_property"
READ = "read"
REMOVE = "remove"
ACTIONS = (ADD_NODE, SET_PROPERTY, READ, REMOVE)

FOLDER = "folder"
RECORD = "record"


class ContentStore(Protocol):
    def exists(self, path: str) -> bool: ...

    def get_or_create_container(self, parent_path: str, name: str, kind: str = FOLDER) -> str: ...

    def create_child(self, parent_path: str, key: str, kind: str = RECORD) -> str: ...

    def set_field(self, path: str, key: str, value: Any) -> None: ...

    def get_fields(self, path: str) -> dict[str, Any]: ...

    def children(self, path: str) -> list[str]: ...

    def has_permission(self, path: str, action: str) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def close(self) -> None: ...


# ── Paths ────────────────────────────────────────────────────────────────────


def normalize_path(path: str) -> str:
    """Absolute path with empty segments (duplicate/trailing '/') removed."""
    return "/" + "/".join(seg for seg in path.split("/") if seg)


def join_path(parent: str, name: str) -> str:
    parent = normalize_path(parent)
    return f"{parent}{name}" if parent == ROOT else f"{parent}/{name}"


def parent_path(path: str) -> str:
    path = normalize_path(path)
    return normalize_path(path.rsplit("/", 1)[0])


def ancestors(path: str) -> list[str]:
    """The path itself followed by each ancestor up to the root."""
    path = normalize_path(path)
    result = [path]
    while path != ROOT:
        path = parent_path(path)
        result.append(path)
    return result


def validate_name(name: str) -> str:
    if not name or "/" in name or name in (".", ".."):
        raise InvalidName(f"Invalid node name: {name!r}", path=name or "")
    return name


# ── Field encoding ───────────────────────────────────────────────────────────


def _encode(value: Any) -> tuple[str, str | None]:
    if value is None:
        return "null", None
    if isinstance(value, bool):
        return "bool", "1" if value else "0"
    if isinstance(value, int):
        return "int", str(value)
    if isinstance(value, float):
        return "float", repr(value)
    if isinstance(value, datetime):
        return "datetime", value.isoformat()
    if isinstance(value, str):
        return "str", value
    raise ValueError(f"Unsupported field type: {type(value).__name__}")


def _decode(value_type: str, raw: str | None) -> Any:
    if value_type == "null":
        return None
    if value_type == "bool":
        return raw == "1"
    if value_type == "int":
        return int(raw)
    if value_type == "float":
        return float(raw)
    if value_type == "datetime":
        return datetime.fromisoformat(raw)
    return raw


# ── SQLite implementation ────────────────────────────────────────────────────


class SqliteContentStore:
    """SQLite-backed content store. One instance = one session."""

    def __init__(self, db_path: Path | str, timeout: float = 5.0) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._timeout = timeout
        self._conn: sqlite3.Connection | None = None
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            try:
                conn = sqlite3.connect(
                    str(self._db_path), timeout=self._timeout, check_same_thread=False,
                )
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA journal_mode=WAL")
            except sqlite3.Error as e:
                raise ContentStoreError(f"Could not open content store {self._db_path}: {e}") from e
            self._conn = conn
        return self._conn

    def _query(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        try:
            return self._get_conn().execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise ContentStoreError(f"Content store read failed: {e}") from e

    def _init_db(self) -> None:
        conn = self._get_conn()
        try:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS nodes (
                    path TEXT PRIMARY KEY,
                    parent TEXT,
                    name TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_nodes_parent ON nodes (parent);

                CREATE TABLE IF NOT EXISTS fields (
                    path TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT,
                    value_type TEXT NOT NULL,
                    PRIMARY KEY (path, key)
                );

                CREATE TABLE IF NOT EXISTS acl_denials (
                    path TEXT NOT NULL,
                    action TEXT NOT NULL,
                    PRIMARY KEY (path, action)
                );
            """)
            conn.execute(
                "INSERT OR IGNORE INTO nodes (path, parent, name, kind, created_at) "
                "VALUES (?, NULL, '', ?, ?)",
                (ROOT, FOLDER, _now()),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise ContentStoreError(f"Could not initialize content store: {e}") from e

    # ── Reads ────────────────────────────────────────────────────────────

    def exists(self, path: str) -> bool:
        return bool(self._query("SELECT 1 FROM nodes WHERE path = ?", (normalize_path(path),)))

    def kind(self, path: str) -> str:
        rows = self._query("SELECT kind FROM nodes WHERE path = ?", (normalize_path(path),))
        if not rows:
            raise NotFound(f"Node not found: {path}", path=path)
        return rows[0]["kind"]

    def children(self, path: str) -> list[str]:
        rows = self._query(
            "SELECT path FROM nodes WHERE parent = ? ORDER BY name", (normalize_path(path),),
        )
        return [r["path"] for r in rows]

    def get_fields(self, path: str) -> dict[str, Any]:
        path = normalize_path(path)
        if not self.exists(path):
            raise NotFound(f"Node not found: {path}", path=path)
        rows = self._query(
            "SELECT key, value, value_type FROM fields WHERE path = ? ORDER BY key", (path,),
        )
        return {r["key"]: _decode(r["value_type"], r["value"]) for r in rows}

    # ── Permissions ──────────────────────────────────────────────────────

    def has_permission(self, path: str, action: str) -> bool:
        """Denied if the action is denied on the path or any ancestor."""
        paths = ancestors(path)
        placeholders = ", ".join("?" for _ in paths)
        rows = self._query(
            f"SELECT 1 FROM acl_denials WHERE action = ? AND path IN ({placeholders}) LIMIT 1",
            (action, *paths),
        )
        return not rows

    def deny(self, path: str, action: str) -> None:
        """Deny ``action`` on ``path`` and its descendants (committed immediately)."""
        if action not in ACTIONS:
            raise ValueError(f"Unknown action: {action}")
        conn = self._get_conn()
        conn.execute(
            "INSERT OR IGNORE INTO acl_denials (path, action) VALUES (?, ?)",
            (normalize_path(path), action),
        )
        conn.commit()

    def allow(self, path: str, action: str) -> None:
        conn = self._get_conn()
        conn.execute(
            "DELETE FROM acl_denials WHERE path = ? AND action = ?",
            (normalize_path(path), action),
        )
        conn.commit()

    # ── Writes (pending until commit) ────────────────────────────────────

    def _insert_node(self, parent: str, name: str, kind: str) -> str:
        parent = normalize_path(parent)
        validate_name(name)
        if not self.exists(parent):
            raise NotFound(f"Parent node not found: {parent}", path=parent)
        if not self.has_permission(parent, ADD_NODE):
            raise PermissionDenied(f"Not allowed to add nodes under {parent}", path=parent)
        path = join_path(parent, name)
        self._get_conn().execute(
            "INSERT INTO nodes (path, parent, name, kind, created_at) VALUES (?, ?, ?, ?, ?)",
            (path, parent, name, kind, _now()),
        )
        return path

    def get_or_create_container(self, parent_path: str, name: str, kind: str = FOLDER) -> str:
        """Return the child path, creating the container if it is missing."""
        path = join_path(parent_path, validate_name(name))
        if self.exists(path):
            return path
        try:
            self._insert_node(parent_path, name, kind)
            logger.info("Created container %s", path)
        except sqlite3.IntegrityError:
            # another session created it first
            logger.debug("Container %s already exists", path)
        except sqlite3.Error as e:
            raise ContentStoreError(f"Could not create {path}: {e}", path=path) from e
        return path

    def create_child(self, parent_path: str, key: str, kind: str = RECORD) -> str:
        """Create a new child node; fails if one with the same key exists."""
        path = join_path(parent_path, validate_name(key))
        if self.exists(path):
            raise RecordExists(f"Node already exists: {path}", path=path)
        try:
            return self._insert_node(parent_path, key, kind)
        except sqlite3.IntegrityError as e:
            raise RecordExists(f"Node already exists: {path}", path=path) from e
        except sqlite3.Error as e:
            raise ContentStoreError(f"Could not create {path}: {e}", path=path) from e

    def set_field(self, path: str, key: str, value: Any) -> None:
        path = normalize_path(path)
        if not key:
            raise InvalidName("Field key must not be empty", path=path)
        if not self.exists(path):
            raise NotFound(f"Node not found: {path}", path=path)
        if not self.has_permission(path, SET_PROPERTY):
            raise PermissionDenied(f"Not allowed to set fields on {path}", path=path)
        value_type, raw = _encode(value)
        try:
            self._get_conn().execute(
                "INSERT OR REPLACE INTO fields (path, key, value, value_type) VALUES (?, ?, ?, ?)",
                (path, key, raw, value_type),
            )
        except sqlite3.Error as e:
            raise ContentStoreError(f"Could not set {key} on {path}: {e}", path=path) from e

    def commit(self) -> None:
        conn = self._get_conn()
        try:
            conn.commit()
        except sqlite3.Error as e:
            try:
                conn.rollback()
            except sqlite3.Error:
                logger.warning("Rollback after failed commit also failed", exc_info=True)
            raise StorageCommitFailed(f"Commit failed: {e}") from e

    def rollback(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.rollback()
        except sqlite3.Error as e:
            raise ContentStoreError(f"Rollback failed: {e}") from e

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
