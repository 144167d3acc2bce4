"""
Usage Store - SQLite-backed persistence for spending buckets.

One row per bucket key (a UTC calendar date or the all-time total).
Counters are only ever changed with in-database ``f = f + ?`` upserts,
so concurrent writers never lose increments. Several keys can be
incremented inside one transaction, optionally with an increment computed
from a row read under the same write lock.
"""
import logging
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import LedgerCorruptionError, LedgerTimeoutError, LedgerUnavailableError

logger = logging.getLogger(__name__)

COUNTER_FIELDS = (
    "cost_micros",
    "premium_voice_characters",
    "standard_voice_characters",
    "model_input_units",
    "model_output_units",
)

_DEFAULT_BUSY_TIMEOUT = 10.0


class LedgerStore(ABC):
    """
    Key-value store of integer counter documents.

    ``get`` treats a missing key as a normal condition and ``increment``
    merges only the given fields. Stores that can increment several keys
    in one transaction set ``supports_transactions``.
    """

    supports_transactions = False

    @abstractmethod
    def get(self, key: str, timeout: Optional[float] = None) -> Optional[Dict[str, int]]:
        """Return the counters stored under key, or None if never written."""
        pass

    @abstractmethod
    def increment(
        self,
        keys: Sequence[str],
        fields: Mapping[str, int],
        timeout: Optional[float] = None,
    ) -> None:
        """Atomically add fields to every key, creating missing keys."""
        pass

    def read_and_increment(
        self,
        read_key: str,
        keys: Sequence[str],
        compute: Callable[[Optional[Dict[str, int]]], Mapping[str, int]],
        timeout: Optional[float] = None,
    ) -> Mapping[str, int]:
        """
        Read read_key, pass its counters to compute, and add the returned
        fields to every key, all in one transaction.

        Only stores with ``supports_transactions`` implement this.
        """
        raise NotImplementedError(f"{type(self).__name__} has no multi-key transactions")

    @abstractmethod
    def list_buckets(
        self,
        exclude: Sequence[str] = (),
        limit: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> List[Tuple[str, Dict[str, int]]]:
        """Return (key, counters) pairs ordered by key descending."""
        pass


def _check_deadline(timeout: Optional[float]) -> None:
    if timeout is not None and timeout <= 0:
        raise LedgerTimeoutError("Deadline exceeded before ledger call")


def _check_fields(fields: Mapping[str, int]) -> None:
    unknown = set(fields) - set(COUNTER_FIELDS)
    if unknown:
        raise ValueError(f"Unknown ledger fields: {sorted(unknown)}")
    for name, value in fields.items():
        if not isinstance(value, int) or value < 0:
            raise ValueError(f"Ledger increments must be non-negative integers, got {name}={value!r}")


def _decode_row(key: str, row: Sequence) -> Dict[str, int]:
    decoded = {}
    for name, value in zip(COUNTER_FIELDS, row):
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise LedgerCorruptionError(
                f"Corrupted ledger record {key!r}: {name}={value!r}"
            )
        decoded[name] = value
    return decoded


def _upsert_sql(names: Sequence[str]) -> str:
    return (
        f"INSERT INTO spending (bucket, {', '.join(names)}, updated_at) "
        f"VALUES (?, {', '.join('?' for _ in names)}, ?) "
        f"ON CONFLICT(bucket) DO UPDATE SET "
        + ", ".join(f"{n} = {n} + excluded.{n}" for n in names)
        + ", updated_at = excluded.updated_at"
    )


class SQLiteLedgerStore(LedgerStore):
    """SQLite ledger store with WAL mode."""

    supports_transactions = True

    def __init__(self, db_path: str = "data/spending.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()
        logger.info(f"SQLiteLedgerStore initialized: {self.db_path}")

    def _connect(self, timeout: Optional[float] = None) -> sqlite3.Connection:
        busy = _DEFAULT_BUSY_TIMEOUT if timeout is None else min(timeout, _DEFAULT_BUSY_TIMEOUT)
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=busy, isolation_level=None)
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute(f"PRAGMA busy_timeout={int(busy * 1000)}")
        except sqlite3.OperationalError as e:
            raise LedgerUnavailableError(f"Cannot open ledger {self.db_path}: {e}") from e
        except sqlite3.DatabaseError as e:
            raise LedgerCorruptionError(f"Cannot open ledger {self.db_path}: {e}") from e
        return conn

    def _init_db(self) -> None:
        columns = ",\n".join(
            f"                    {name} INTEGER NOT NULL DEFAULT 0" for name in COUNTER_FIELDS
        )
        conn = self._connect()
        try:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS spending (
                    bucket TEXT PRIMARY KEY,
{columns},
                    updated_at TEXT NOT NULL
                )
            """)
        finally:
            conn.close()

    def get(self, key: str, timeout: Optional[float] = None) -> Optional[Dict[str, int]]:
        _check_deadline(timeout)
        conn = self._connect(timeout)
        try:
            row = conn.execute(
                f"SELECT {', '.join(COUNTER_FIELDS)} FROM spending WHERE bucket = ?",
                (key,),
            ).fetchone()
        except sqlite3.OperationalError as e:
            raise LedgerUnavailableError(f"Failed to read ledger bucket {key!r}: {e}") from e
        except sqlite3.DatabaseError as e:
            raise LedgerCorruptionError(f"Failed to read ledger bucket {key!r}: {e}") from e
        finally:
            conn.close()

        if row is None:
            return None
        return _decode_row(key, row)

    def increment(
        self,
        keys: Sequence[str],
        fields: Mapping[str, int],
        timeout: Optional[float] = None,
    ) -> None:
        _check_fields(fields)
        _check_deadline(timeout)
        if not keys or not fields:
            return
        self._transaction(keys, lambda conn: fields, timeout)

    def read_and_increment(
        self,
        read_key: str,
        keys: Sequence[str],
        compute: Callable[[Optional[Dict[str, int]]], Mapping[str, int]],
        timeout: Optional[float] = None,
    ) -> Mapping[str, int]:
        _check_deadline(timeout)

        def fields_for(conn: sqlite3.Connection) -> Mapping[str, int]:
            row = conn.execute(
                f"SELECT {', '.join(COUNTER_FIELDS)} FROM spending WHERE bucket = ?",
                (read_key,),
            ).fetchone()
            fields = compute(None if row is None else _decode_row(read_key, row))
            _check_fields(fields)
            return fields

        return self._transaction(keys, fields_for, timeout)

    def _transaction(
        self,
        keys: Sequence[str],
        fields_for: Callable[[sqlite3.Connection], Mapping[str, int]],
        timeout: Optional[float],
    ) -> Mapping[str, int]:
        """Upsert fields_for(conn) into every key under one write lock."""
        conn = self._connect(timeout)
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                fields = fields_for(conn)
                names = [name for name in COUNTER_FIELDS if name in fields]
                if names:
                    sql = _upsert_sql(names)
                    values = [fields[name] for name in names]
                    now = datetime.now(timezone.utc).isoformat()
                    for key in keys:
                        conn.execute(sql, (key, *values, now))
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        except sqlite3.OperationalError as e:
            raise LedgerUnavailableError(f"Failed to increment ledger buckets {list(keys)}: {e}") from e
        except sqlite3.DatabaseError as e:
            raise LedgerCorruptionError(f"Failed to increment ledger buckets {list(keys)}: {e}") from e
        finally:
            conn.close()
        return fields

    def list_buckets(
        self,
        exclude: Sequence[str] = (),
        limit: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> List[Tuple[str, Dict[str, int]]]:
        _check_deadline(timeout)
        query = f"SELECT bucket, {', '.join(COUNTER_FIELDS)} FROM spending"
        params: list = []
        if exclude:
            query += f" WHERE bucket NOT IN ({', '.join('?' for _ in exclude)})"
            params.extend(exclude)
        query += " ORDER BY bucket DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        conn = self._connect(timeout)
        try:
            rows = conn.execute(query, params).fetchall()
        except sqlite3.OperationalError as e:
            raise LedgerUnavailableError(f"Failed to list ledger buckets: {e}") from e
        except sqlite3.DatabaseError as e:
            raise LedgerCorruptionError(f"Failed to list ledger buckets: {e}") from e
        finally:
            conn.close()

        return [(row[0], _decode_row(row[0], row[1:])) for row in rows]
