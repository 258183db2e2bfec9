# assetledger/storage/sqlite.py
import os
import sqlite3
import logging
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from assetledger.core.errors import PersistenceError
from assetledger.core.types import KeyModification
from . import StateStore, WriteSet

logger = logging.getLogger(__name__)


class SQLiteStore(StateStore):
    """SQLite persistent world state and per-key history."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            env_path = os.environ.get("ASSETLEDGER_DB_PATH")
            db_path = env_path if env_path else Path.cwd() / "assetledger.db"

        self.db_path = Path(db_path)

        # Ensure the entire parent directory tree exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.db_path = self.db_path.resolve()

        self._conn: Optional[sqlite3.Connection] = None
        self._connect()

    def _connect(self):
        conn_str = str(self.db_path)
        try:
            self._conn = sqlite3.connect(conn_str, isolation_level=None)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._create_schema()
        except sqlite3.Error as e:
            raise PersistenceError(None, f"Failed to open database {conn_str}: {e}") from e

    def _create_schema(self):
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS world_state (
                key     TEXT    PRIMARY KEY,
                value   BLOB    NOT NULL,
                tx_id   TEXT    NOT NULL
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS history (
                seq         INTEGER PRIMARY KEY AUTOINCREMENT,
                key         TEXT    NOT NULL,
                tx_id       TEXT    NOT NULL,
                timestamp   TEXT    NOT NULL,
                value       BLOB,
                is_delete   INTEGER NOT NULL DEFAULT 0
            )
        """)
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_history_key ON history(key, seq)")
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_history_tx  ON history(tx_id)")
        logger.debug("schema ready in %s", self.db_path)

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise PersistenceError(None, "Storage connection is closed")
        return self._conn

    def get(self, key: str) -> Optional[bytes]:
        try:
            row = self.conn.execute("SELECT value FROM world_state WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(key, f"Failed to read {key}: {e}") from e
        return bytes(row[0]) if row else None

    def get_range(self, start: str = "", end: str = "") -> Iterator[Tuple[str, bytes]]:
        sql = "SELECT key, value FROM world_state WHERE key >= ?"
        params: list = [start]
        if end:
            sql += " AND key < ?"
            params.append(end)
        sql += " ORDER BY key ASC"
        try:
            rows = self.conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(None, f"Range query failed: {e}") from e
        return ((key, bytes(value)) for key, value in rows)

    def history(self, key: str) -> Iterator[KeyModification]:
        # Bound to the commits visible now; later commits stay out of this iterator
        try:
            high = self.conn.execute("SELECT COALESCE(MAX(seq), 0) FROM history").fetchone()[0]
            cursor = self.conn.execute("""
                SELECT seq, tx_id, timestamp, value, is_delete
                FROM history WHERE key = ? AND seq <= ? ORDER BY seq ASC
            """, (key, high))
        except sqlite3.Error as e:
            raise PersistenceError(key, f"Failed to read history for {key}: {e}") from e
        return self._iter_history(key, cursor)

    @staticmethod
    def _iter_history(key: str, cursor: sqlite3.Cursor) -> Iterator[KeyModification]:
        try:
            for seq, tx_id, ts, value, is_delete in cursor:
                yield KeyModification(
                    seq=seq,
                    tx_id=tx_id,
                    timestamp=ts,
                    value=None if value is None else bytes(value),
                    is_delete=bool(is_delete),
                )
        except sqlite3.Error as e:
            raise PersistenceError(key, f"Failed to read history for {key}: {e}") from e

    def commit(self, tx_id: str, timestamp: str, writes: WriteSet) -> None:
        conn = self.conn
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            raise PersistenceError(None, f"Failed to begin transaction {tx_id}: {e}") from e

        try:
            seen = conn.execute("SELECT 1 FROM history WHERE tx_id = ? LIMIT 1", (tx_id,)).fetchone()
            if seen:
                raise PersistenceError(None, f"Transaction {tx_id} was already committed")

            for key in sorted(writes):
                value = writes[key]
                if value is None:
                    conn.execute("DELETE FROM world_state WHERE key = ?", (key,))
                else:
                    conn.execute("""
                        INSERT INTO world_state (key, value, tx_id) VALUES (?, ?, ?)
                        ON CONFLICT(key) DO UPDATE SET value = excluded.value, tx_id = excluded.tx_id
                    """, (key, sqlite3.Binary(value), tx_id))
                conn.execute("""
                    INSERT INTO history (key, tx_id, timestamp, value, is_delete)
                    VALUES (?, ?, ?, ?, ?)
                """, (
                    key, tx_id, timestamp,
                    None if value is None else sqlite3.Binary(value),
                    1 if value is None else 0,
                ))
            conn.execute("COMMIT")
        except PersistenceError:
            conn.execute("ROLLBACK")
            raise
        except sqlite3.Error as e:
            conn.execute("ROLLBACK")
            raise PersistenceError(None, f"Failed to commit transaction {tx_id}: {e}") from e

    def history_keys(self) -> List[str]:
        try:
            cursor = self.conn.execute("SELECT DISTINCT key FROM history ORDER BY key ASC")
            return [row[0] for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise PersistenceError(None, f"Failed to list history keys: {e}") from e

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None
            logger.debug("closed %s", self.db_path)
