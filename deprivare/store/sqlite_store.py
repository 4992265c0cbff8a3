"""Persistent attribute-value store for deprivation datasets.

Records are stored as rows of (record, attribute, value) so that a new dataset
only adds new namespaced attribute names; no table is ever migrated when a
dataset is added. Records are indexed by LSOA for point lookups.
"""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from types import TracebackType
from typing import Iterable, Iterator, Mapping

from deprivare.common.constants import GEOGRAPHIC_KEY, VALUE_TYPES
from deprivare.common.errors import MalformedValue, SchemaMismatch, StoreIOError, StoreNotFound
from deprivare.common.fs import ensure_dir
from deprivare.common.models import AttributeSet, InstallationRecord, Scalar
from deprivare.common.time_utils import utc_timestamp_iso

DDL = (
    """
    CREATE TABLE IF NOT EXISTS attribute_schema (
        attribute TEXT PRIMARY KEY,
        value_type TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS records (
        id INTEGER PRIMARY KEY,
        lsoa TEXT NOT NULL,
        dataset TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS records_lsoa_idx ON records (lsoa)",
    "CREATE INDEX IF NOT EXISTS records_dataset_idx ON records (dataset)",
    """
    CREATE TABLE IF NOT EXISTS record_values (
        record_id INTEGER NOT NULL REFERENCES records (id) ON DELETE CASCADE,
        attribute TEXT NOT NULL,
        value,
        PRIMARY KEY (record_id, attribute)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS installations (
        id INTEGER PRIMARY KEY,
        dataset_id TEXT NOT NULL,
        installed_at TEXT NOT NULL
    )
    """,
)


def infer_value_type(value: object) -> str:
    if isinstance(value, bool):
        raise MalformedValue(f"Unsupported value type: {type(value).__name__}")
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    raise MalformedValue(f"Unsupported value type: {type(value).__name__}")


def coerce_value(attribute: str, value: object, value_type: str) -> Scalar:
    """Return ``value`` as stored for ``value_type`` or raise ``MalformedValue``."""
    actual = infer_value_type(value)
    if actual == value_type:
        return value  # type: ignore[return-value]
    if value_type == "float" and actual == "integer":
        return float(value)  # type: ignore[arg-type]
    raise MalformedValue(f"Attribute {attribute!r} expects {value_type}, got {actual}: {value!r}")


def _dataset_of(attrs: Mapping[str, Scalar]) -> str | None:
    for name in attrs:
        if name != GEOGRAPHIC_KEY and "/" in name:
            return name.split("/", 1)[0]
    return None


class DeprivationStore:
    """Handle on one store location.

    Read-only handles open sqlite with ``mode=ro``. Every thread gets its own
    connection so concurrent lookups never share one.
    """

    def __init__(self, location: Path, *, read_only: bool = True) -> None:
        self.location = Path(location)
        self.read_only = read_only
        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._lock = threading.Lock()
        self._closed = False
        self._schema: dict[str, str] = {}
        self._declared: set[str] = set()

    @classmethod
    def open_or_create(
        cls,
        location: Path | str,
        schema: Mapping[str, str],
        *,
        read_only: bool = True,
    ) -> "DeprivationStore":
        location = Path(location)
        if read_only and not location.exists():
            raise StoreNotFound(f"Store does not exist: {location}")
        for attribute, value_type in schema.items():
            if value_type not in VALUE_TYPES:
                raise SchemaMismatch(f"Unknown value type {value_type!r} for {attribute!r}")

        store = cls(location, read_only=read_only)
        store._declared = {GEOGRAPHIC_KEY, *schema}
        try:
            if read_only:
                store._schema = {**schema, **store._load_schema(store._conn())}
            else:
                ensure_dir(location.parent)
                with store._transaction() as conn:
                    for statement in DDL:
                        conn.execute(statement)
                    store._schema = store._merge_schema(conn, schema)
        except BaseException:
            store.close()
            raise
        return store

    @property
    def schema(self) -> dict[str, str]:
        return dict(self._schema)

    def _connect(self) -> sqlite3.Connection:
        try:
            if self.read_only:
                uri = f"{self.location.resolve().as_uri()}?mode=ro"
                conn = sqlite3.connect(uri, uri=True, check_same_thread=False, isolation_level=None)
            else:
                conn = sqlite3.connect(self.location, check_same_thread=False, isolation_level=None)
            conn.execute("PRAGMA foreign_keys = ON")
            conn.execute("PRAGMA busy_timeout = 30000")
        except sqlite3.Error as exc:
            raise StoreIOError(f"Unable to open store {self.location}: {exc}") from exc
        return conn

    def _conn(self) -> sqlite3.Connection:
        if self._closed:
            raise StoreIOError(f"Store is closed: {self.location}")
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = self._connect()
            with self._lock:
                self._connections.append(conn)
            self._local.conn = conn
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        if self.read_only:
            raise StoreIOError(f"Store is read-only: {self.location}")
        conn = self._conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as exc:
            raise StoreIOError(f"Unable to begin transaction: {exc}") from exc
        try:
            yield conn
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            self._rollback(conn)
            raise StoreIOError(f"Transaction failed: {exc}") from exc
        except BaseException:
            self._rollback(conn)
            raise

    def _rollback(self, conn: sqlite3.Connection) -> None:
        if conn.in_transaction:
            conn.execute("ROLLBACK")

    def _load_schema(self, conn: sqlite3.Connection) -> dict[str, str]:
        try:
            rows = conn.execute("SELECT attribute, value_type FROM attribute_schema").fetchall()
        except sqlite3.Error as exc:
            raise StoreIOError(f"Unable to read schema from {self.location}: {exc}") from exc
        return {attribute: value_type for attribute, value_type in rows}

    def _merge_schema(self, conn: sqlite3.Connection, schema: Mapping[str, str]) -> dict[str, str]:
        stored = self._load_schema(conn)
        for attribute, value_type in schema.items():
            previous = stored.get(attribute)
            if previous == value_type:
                continue
            if previous is not None and self._has_values(conn, attribute):
                raise SchemaMismatch(
                    f"Attribute {attribute!r} is stored as {previous}; cannot redeclare as {value_type}",
                    expected=previous,
                    actual=value_type,
                )
            conn.execute(
                "INSERT OR REPLACE INTO attribute_schema (attribute, value_type) VALUES (?, ?)",
                (attribute, value_type),
            )
            stored[attribute] = value_type
        return stored

    def _has_values(self, conn: sqlite3.Connection, attribute: str) -> bool:
        if attribute == GEOGRAPHIC_KEY:
            row = conn.execute("SELECT 1 FROM records LIMIT 1").fetchone()
        else:
            row = conn.execute("SELECT 1 FROM record_values WHERE attribute = ? LIMIT 1", (attribute,)).fetchone()
        return row is not None

    def _validated(
        self,
        attrs: Mapping[str, Scalar],
        schema: dict[str, str],
        inferred: dict[str, str],
        widened: set[str],
    ) -> tuple[str, list[tuple[str, Scalar]]]:
        lsoa = attrs.get(GEOGRAPHIC_KEY)
        if not isinstance(lsoa, str) or not lsoa:
            raise MalformedValue(f"Record has no geographic key {GEOGRAPHIC_KEY!r}: {dict(attrs)!r}")
        values: list[tuple[str, Scalar]] = []
        for attribute, value in attrs.items():
            if attribute == GEOGRAPHIC_KEY:
                continue
            value_type = inferred.get(attribute) or schema.get(attribute)
            if value_type is None:
                value_type = infer_value_type(value)
                inferred[attribute] = value_type
            elif (
                value_type == "integer"
                and attribute not in self._declared
                and infer_value_type(value) == "float"
            ):
                # Inferred integer attributes widen to float; declared ones stay strict.
                value_type = "float"
                inferred[attribute] = value_type
                widened.add(attribute)
            values.append((attribute, coerce_value(attribute, value, value_type)))
        return lsoa, values

    def transact(self, records: Iterable[Mapping[str, Scalar]], *, dataset_id: str | None = None) -> int:
        """Write attribute sets as new records in one transaction.

        Either every record is written or none is. When ``dataset_id`` is given
        the records previously stored for that dataset are replaced.
        """
        inferred: dict[str, str] = {}
        widened: set[str] = set()
        written = 0
        with self._transaction() as conn:
            if dataset_id is not None:
                conn.execute("DELETE FROM records WHERE dataset = ?", (dataset_id,))
            for attrs in records:
                lsoa, values = self._validated(attrs, self._schema, inferred, widened)
                cursor = conn.execute(
                    "INSERT INTO records (lsoa, dataset) VALUES (?, ?)",
                    (lsoa, dataset_id or _dataset_of(attrs)),
                )
                record_id = cursor.lastrowid
                conn.executemany(
                    "INSERT INTO record_values (record_id, attribute, value) VALUES (?, ?, ?)",
                    [(record_id, attribute, value) for attribute, value in values],
                )
                written += 1
            conn.executemany(
                """
                UPDATE record_values SET value = CAST(value AS REAL)
                WHERE attribute = ? AND typeof(value) = 'integer'
                """,
                [(attribute,) for attribute in sorted(widened)],
            )
            conn.executemany(
                "INSERT OR REPLACE INTO attribute_schema (attribute, value_type) VALUES (?, ?)",
                sorted(inferred.items()),
            )
        self._schema.update(inferred)
        return written

    def record_installation(self, dataset_id: str) -> InstallationRecord:
        record = InstallationRecord(dataset_id=dataset_id, installed_at=utc_timestamp_iso())
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO installations (dataset_id, installed_at) VALUES (?, ?)",
                (record.dataset_id, record.installed_at),
            )
        return record

    def _query(self, sql: str, params: tuple = ()) -> list[tuple]:
        try:
            return self._conn().execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StoreIOError(f"Query failed on {self.location}: {exc}") from exc

    def installations(self) -> list[InstallationRecord]:
        rows = self._query("SELECT dataset_id, installed_at FROM installations ORDER BY id")
        return [InstallationRecord(dataset_id=row[0], installed_at=row[1]) for row in rows]

    def list_installed(self) -> set[str]:
        return {row[0] for row in self._query("SELECT DISTINCT dataset_id FROM installations")}

    def find_by_geographic_key(self, key: str) -> list[AttributeSet]:
        rows = self._query(
            """
            SELECT r.id, r.lsoa, v.attribute, v.value
            FROM records r
            LEFT JOIN record_values v ON v.record_id = r.id
            WHERE r.lsoa = ?
            ORDER BY r.id
            """,
            (key,),
        )
        found: dict[int, AttributeSet] = {}
        for record_id, lsoa, attribute, value in rows:
            attrs = found.setdefault(record_id, {GEOGRAPHIC_KEY: lsoa})
            if attribute is not None:
                attrs[attribute] = value
        return list(found.values())

    def count_records(self, dataset_id: str | None = None) -> int:
        if dataset_id is None:
            rows = self._query("SELECT COUNT(*) FROM records")
        else:
            rows = self._query("SELECT COUNT(*) FROM records WHERE dataset = ?", (dataset_id,))
        return int(rows[0][0])

    def close(self) -> None:
        with self._lock:
            connections, self._connections = self._connections, []
            self._closed = True
        for conn in connections:
            conn.close()

    def __enter__(self) -> "DeprivationStore":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
