"""
Storage Backend Module

Provides the persistence interface the ledger core consumes, with an
in-memory implementation (testing) and a SQLite implementation (persistence).
Records are JSON documents keyed by id; amounts are stored as Decimal strings.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Union, get_type_hints, get_origin, get_args
from dataclasses import dataclass, fields
from decimal import Decimal
from datetime import date, datetime, timezone
from enum import Enum
from pathlib import Path
from contextlib import contextmanager
import base64
import copy
import json
import sqlite3
import threading


def _encode(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return base64.b64encode(value).decode('ascii')
    return value


def _decode(value: Any, hint: Any) -> Any:
    if value is None:
        return None
    if get_origin(hint) is Union:
        hint = next(arg for arg in get_args(hint) if arg is not type(None))
    if not isinstance(hint, type):
        return value
    if issubclass(hint, Enum):
        return hint(value)
    if hint is Decimal:
        return Decimal(value)
    if hint is datetime:
        return datetime.fromisoformat(value)
    if hint is date:
        return date.fromisoformat(value)
    if hint is bytes:
        return base64.b64decode(value)
    return value


@dataclass
class StorageRecord:
    """
    Base class for all stored records

    Field values are converted by declared type: Decimal and Enum fields are
    stored as strings, dates as ISO strings and bytes as base64.
    """
    id: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {f.name: _encode(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StorageRecord':
        """Create instance from a stored dictionary"""
        hints = get_type_hints(cls)
        return cls(**{
            f.name: _decode(data[f.name], hints[f.name])
            for f in fields(cls)
            if f.name in data
        })

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)


class Tables:
    """Table names used by the ledger"""
    PEOPLE = "people"
    GROUPS = "groups"
    GROUP_MEMBERS = "group_members"
    ENTRIES = "entries"
    INSTALLMENT_PLANS = "installment_plans"
    INSTALLMENT_TERMS = "installment_terms"
    PAYMENTS = "payments"
    PAYMENT_ENTRIES = "payment_entries"
    ALLOCATIONS = "allocations"
    ALLOCATION_PAYMENTS = "allocation_payments"
    ATTACHMENTS = "attachments"
    MIGRATIONS = "schema_migrations"


def _matches(record: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    for key, value in filters.items():
        if key not in record or record[key] != value:
            return False
    return True


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    @abstractmethod
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert or replace a record"""

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record, or None if it does not exist"""

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table in insertion order"""

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record; returns whether it existed"""

    @abstractmethod
    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records whose fields equal every filter value"""

    @abstractmethod
    def count(self, table: str) -> int:
        """Count records in table"""

    @abstractmethod
    def clear_table(self, table: str) -> None:
        """Remove all records from a table"""

    @abstractmethod
    def close(self) -> None:
        """Close storage connection"""

    def find_one(self, table: str, filters: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """First record matching filters, or None"""
        results = self.find(table, filters)
        return results[0] if results else None

    def exists_where(self, table: str, filters: Dict[str, Any]) -> bool:
        """Whether any record matches filters"""
        return bool(self.find(table, filters))

    def delete_where(self, table: str, filters: Dict[str, Any]) -> int:
        """Delete all records matching filters; returns how many were removed"""
        removed = 0
        for record in self.find(table, filters):
            if self.delete(table, record['id']):
                removed += 1
        return removed

    def begin_transaction(self) -> None:
        """Start a transaction (default no-op)"""

    def commit(self) -> None:
        """Commit current transaction (default no-op)"""

    def rollback(self) -> None:
        """Roll back current transaction (default no-op)"""

    @contextmanager
    def atomic(self):
        """
        Run a block as one unit of work.

        Blocks nest: only the outermost block commits or rolls back, so a
        failure anywhere inside discards every write made since it began.
        """
        self.begin_transaction()
        try:
            yield
        except Exception:
            self.rollback()
            raise
        else:
            self.commit()


class InMemoryStorage(StorageInterface):
    """In-memory storage implementation for testing"""

    def __init__(self):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()
        self._depth = 0
        self._snapshot: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None

    def _table(self, table: str) -> Dict[str, Dict[str, Any]]:
        return self._data.setdefault(table, {})

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            # Round-trip through JSON so stored data never aliases caller objects
            self._table(table)[record_id] = json.loads(json.dumps(data, default=str))

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._table(table).get(record_id)
            return copy.deepcopy(record) if record is not None else None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(record) for record in self._table(table).values()]

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            return self._table(table).pop(record_id, None) is not None

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            return record_id in self._table(table)

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                copy.deepcopy(record)
                for record in self._table(table).values()
                if _matches(record, filters)
            ]

    def count(self, table: str) -> int:
        with self._lock:
            return len(self._table(table))

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._data[table] = {}

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""

    def begin_transaction(self) -> None:
        with self._lock:
            if self._depth == 0:
                self._snapshot = copy.deepcopy(self._data)
            self._depth += 1

    def commit(self) -> None:
        with self._lock:
            if self._depth == 0:
                return
            self._depth -= 1
            if self._depth == 0:
                self._snapshot = None

    def rollback(self) -> None:
        with self._lock:
            if self._depth == 0:
                return
            self._depth -= 1
            if self._depth == 0 and self._snapshot is not None:
                self._data = self._snapshot
                self._snapshot = None


class SQLiteStorage(StorageInterface):
    """SQLite storage implementation for persistence"""

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        # isolation_level=None: transactions are opened explicitly by atomic()
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._depth = 0
        self._known_tables: set = set()

        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")

    def _ensure_table(self, table: str) -> None:
        if table in self._known_tables:
            return
        with self._lock:
            self._connection.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            self._connection.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{table}_created_at
                ON {table}(created_at)
            """)
            self._known_tables.add(table)

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._ensure_table(table)
            now = datetime.now(timezone.utc).isoformat()
            self._connection.execute(f"""
                INSERT INTO {table} (id, data, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    data = excluded.data,
                    updated_at = excluded.updated_at
            """, (record_id, json.dumps(data, default=str), now, now))

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            row = self._connection.execute(
                f"SELECT data FROM {table} WHERE id = ?", (record_id,)
            ).fetchone()
            return json.loads(row['data']) if row else None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(
                f"SELECT data FROM {table} ORDER BY created_at, rowid"
            )
            return [json.loads(row['data']) for row in cursor.fetchall()]

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
            return cursor.rowcount > 0

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            self._ensure_table(table)
            row = self._connection.execute(
                f"SELECT 1 FROM {table} WHERE id = ? LIMIT 1", (record_id,)
            ).fetchone()
            return row is not None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters (JSON key matching in Python)"""
        return [record for record in self.load_all(table) if _matches(record, filters)]

    def count(self, table: str) -> int:
        with self._lock:
            self._ensure_table(table)
            return self._connection.execute(
                f"SELECT COUNT(*) AS count FROM {table}"
            ).fetchone()['count']

    def clear_table(self, table: str) -> None:
        with self._lock:
            self._ensure_table(table)
            self._connection.execute(f"DELETE FROM {table}")

    def begin_transaction(self) -> None:
        with self._lock:
            if self._depth == 0:
                self._connection.execute("BEGIN")
            self._depth += 1

    def commit(self) -> None:
        with self._lock:
            if self._depth == 0:
                return
            self._depth -= 1
            if self._depth == 0:
                self._connection.execute("COMMIT")

    def rollback(self) -> None:
        with self._lock:
            if self._depth == 0:
                return
            self._depth -= 1
            if self._depth == 0:
                self._connection.execute("ROLLBACK")
                # Tables created inside the transaction are gone too
                self._known_tables.clear()

    def close(self) -> None:
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None
