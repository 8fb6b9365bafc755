"""Thin sorted key-value adapter over a single SQLite file.

The file holds named buckets of byte keys mapped to byte values. Keys inside
a bucket iterate in byte order and every bucket carries its own monotonic
sequence counter. Buckets themselves iterate in creation order.
"""

import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import (
    URL,
    Column,
    Connection,
    Engine,
    ForeignKey,
    Integer,
    LargeBinary,
    MetaData,
    Table,
    create_engine,
    delete,
    event,
    func,
    select,
    update,
)
from sqlalchemy.dialects.sqlite import insert

from tagstore.infrastructure.adapters.file_lock import FileLock
from tagstore.utils.constants import (
    DEFAULT_OPEN_TIMEOUT,
    ENV_DB_PATH,
    ENV_OPEN_TIMEOUT,
    LOCK_FILE_SUFFIX,
    SQLITE_PRAGMAS,
)

_WRITE_OPTION = "tagstore_write"

metadata = MetaData()

buckets_table = Table(
    "buckets",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", LargeBinary, nullable=False, unique=True),
    Column("sequence", Integer, nullable=False, default=0),
    sqlite_autoincrement=True,
)

items_table = Table(
    "items",
    metadata,
    Column(
        "bucket_id",
        Integer,
        ForeignKey("buckets.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("key", LargeBinary, primary_key=True),
    Column("value", LargeBinary, nullable=False),
)


def _prefix_upper_bound(prefix: bytes) -> bytes | None:
    """Smallest byte string greater than every string starting with `prefix`."""
    stripped = prefix.rstrip(b"\xff")
    if not stripped:
        return None
    return stripped[:-1] + bytes([stripped[-1] + 1])


class KVBucket:
    """A bucket inside an open transaction."""

    def __init__(self, tx: "KVTransaction", bucket_id: int, name: bytes) -> None:
        self._tx = tx
        self.id = bucket_id
        self.name = name

    def get(self, key: bytes) -> bytes | None:
        return self._tx.conn.execute(
            select(items_table.c.value).where(
                items_table.c.bucket_id == self.id,
                items_table.c.key == key,
            )
        ).scalar_one_or_none()

    def put(self, key: bytes, value: bytes) -> None:
        self._tx.require_writable()
        stmt = insert(items_table).values(bucket_id=self.id, key=key, value=value)
        self._tx.conn.execute(
            stmt.on_conflict_do_update(
                index_elements=[items_table.c.bucket_id, items_table.c.key],
                set_={"value": stmt.excluded.value},
            )
        )

    def delete(self, key: bytes) -> bool:
        """Remove a key; returns False when it was not present."""
        self._tx.require_writable()
        result = self._tx.conn.execute(
            delete(items_table).where(
                items_table.c.bucket_id == self.id,
                items_table.c.key == key,
            )
        )
        return result.rowcount > 0

    def items(self) -> Iterator[tuple[bytes, bytes]]:
        """Yield `(key, value)` pairs in byte order of the keys."""
        rows = self._tx.conn.execute(
            select(items_table.c.key, items_table.c.value)
            .where(items_table.c.bucket_id == self.id)
            .order_by(items_table.c.key)
        )
        for key, value in rows:
            yield key, value

    def count(self) -> int:
        return self._tx.conn.execute(
            select(func.count()).select_from(items_table).where(items_table.c.bucket_id == self.id)
        ).scalar_one()

    def sequence(self) -> int:
        return self._tx.conn.execute(
            select(buckets_table.c.sequence).where(buckets_table.c.id == self.id)
        ).scalar_one()

    def next_sequence(self) -> int:
        """Increment and return the bucket's counter."""
        self._tx.require_writable()
        self._tx.conn.execute(
            update(buckets_table)
            .where(buckets_table.c.id == self.id)
            .values(sequence=buckets_table.c.sequence + 1)
        )
        return self.sequence()


class KVTransaction:
    """An open read or write transaction."""

    def __init__(self, conn: Connection, *, writable: bool) -> None:
        self.conn = conn
        self.writable = writable

    def require_writable(self) -> None:
        if not self.writable:
            raise RuntimeError("write attempted inside a read-only transaction")

    def bucket(self, name: bytes) -> KVBucket | None:
        bucket_id = self.conn.execute(
            select(buckets_table.c.id).where(buckets_table.c.name == name)
        ).scalar_one_or_none()
        if bucket_id is None:
            return None
        return KVBucket(self, bucket_id, name)

    def create_bucket(self, name: bytes) -> KVBucket:
        self.require_writable()
        result = self.conn.execute(insert(buckets_table).values(name=name, sequence=0))
        return KVBucket(self, result.inserted_primary_key[0], name)

    def create_bucket_if_not_exists(self, name: bytes) -> KVBucket:
        return self.bucket(name) or self.create_bucket(name)

    def delete_bucket(self, name: bytes) -> bool:
        """Drop a bucket and everything in it; returns False when absent."""
        self.require_writable()
        bucket = self.bucket(name)
        if bucket is None:
            return False
        self.conn.execute(delete(items_table).where(items_table.c.bucket_id == bucket.id))
        self.conn.execute(delete(buckets_table).where(buckets_table.c.id == bucket.id))
        return True

    def bucket_names(self, prefix: bytes = b"") -> list[bytes]:
        """Names of the buckets starting with `prefix`, in creation order."""
        query = select(buckets_table.c.name).order_by(buckets_table.c.id)
        if prefix:
            query = query.where(buckets_table.c.name >= prefix)
            upper = _prefix_upper_bound(prefix)
            if upper is not None:
                query = query.where(buckets_table.c.name < upper)
        return list(self.conn.execute(query).scalars())


class SQLiteKVAdapter:
    """Low-level key-value operations (mechanical, no error handling).

    This adapter:
    - Owns the SQLite file, its connection pool and the process lock
    - Serializes write transactions (one writer at a time)
    - Runs reads on pooled connections, each in its own snapshot
    - Does NOT handle errors (lets them bubble up)
    - Domain implementations catch and translate errors
    """

    def __init__(self, path: str | os.PathLike[str] | None = None, *, timeout: float | None = None) -> None:
        """Open (creating if needed) the backing file and take its lock."""
        resolved = path or os.getenv(ENV_DB_PATH)
        if not resolved:
            raise RuntimeError(f"{ENV_DB_PATH} environment variable is not set")

        if timeout is None:
            timeout = float(os.getenv(ENV_OPEN_TIMEOUT) or DEFAULT_OPEN_TIMEOUT)

        self.path = str(resolved)
        self.timeout = timeout
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = FileLock(self.path + LOCK_FILE_SUFFIX)
        self._lock.acquire(timeout=timeout)

        self._write_lock = threading.Lock()
        try:
            self._engine = self._create_engine()
            metadata.create_all(self._engine)
        except BaseException:
            self._lock.release()
            raise

    def _create_engine(self) -> Engine:
        engine = create_engine(
            URL.create("sqlite", database=self.path),
            connect_args={"check_same_thread": False, "timeout": self.timeout},
        )

        @event.listens_for(engine, "connect")
        def _on_connect(dbapi_connection: Any, _record: Any) -> None:
            # Take over transaction control from the sqlite3 module.
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            try:
                for pragma in SQLITE_PRAGMAS:
                    cursor.execute(pragma)
            finally:
                cursor.close()

        @event.listens_for(engine, "begin")
        def _on_begin(conn: Connection) -> None:
            if conn.get_execution_options().get(_WRITE_OPTION):
                conn.exec_driver_sql("BEGIN IMMEDIATE")
            else:
                conn.exec_driver_sql("BEGIN")

        return engine

    @contextmanager
    def view(self) -> Iterator[KVTransaction]:
        """Read-only transaction over a consistent snapshot."""
        with self._engine.connect() as conn:
            with conn.begin():
                yield KVTransaction(conn, writable=False)

    @contextmanager
    def update(self) -> Iterator[KVTransaction]:
        """Write transaction: commits on success, rolls back on any exception."""
        with self._write_lock:
            with self._engine.connect().execution_options(**{_WRITE_OPTION: True}) as conn:
                with conn.begin():
                    yield KVTransaction(conn, writable=True)

    def close(self) -> None:
        """Dispose connections (checkpointing the WAL) and drop the lock."""
        try:
            self._engine.dispose()
        finally:
            self._lock.release()
