"""
Snapshot Repository — whole-state persistence in a local key-value table.

Behavioral Contract:
- One JSON document per namespace key; save() replaces it.
- Documents carry a schema_version; unknown versions are ignored on load.
- Any storage or serialization failure is logged once and switches the
  repository to in-memory mode. Callers never see the error.
"""

import json
import logging
import sqlite3
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
DEFAULT_NAMESPACE = "all_os_store_v1"


class SnapshotRepository:
    """
    Key-value snapshot store.
    Prototype: SQLite file or :memory:.
    """

    def __init__(self, db_path: str = ":memory:", namespace: str = DEFAULT_NAMESPACE):
        self.db_path = db_path
        self.namespace = namespace
        self.degraded = False
        self._memory: Optional[str] = None
        self._conn: Optional[sqlite3.Connection] = None
        try:
            self._conn = sqlite3.connect(db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._init_schema()
        except sqlite3.Error as exc:
            self._degrade("open", exc)

    def _init_schema(self) -> None:
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        self._conn.commit()

    def _degrade(self, operation: str, exc: Exception) -> None:
        if not self.degraded:
            logger.warning(
                "Snapshot %s failed (%s); continuing in memory only", operation, exc
            )
        self.degraded = True

    def save(self, snapshot: dict) -> bool:
        """Persist a snapshot. Returns False when only the in-memory copy was updated."""
        try:
            document = json.dumps(
                {"schema_version": SCHEMA_VERSION, "saved_at": datetime.utcnow().isoformat(),
                 "state": snapshot},
                default=str,
            )
        except (TypeError, ValueError) as exc:
            self._degrade("serialize", exc)
            return False

        self._memory = document
        if self.degraded or self._conn is None:
            return False
        try:
            self._conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
                (self.namespace, document, datetime.utcnow().isoformat()),
            )
            self._conn.commit()
            return True
        except sqlite3.Error as exc:
            self._degrade("save", exc)
            return False

    def load(self) -> Optional[dict]:
        """The stored state, or None when absent, unreadable or of another schema version."""
        document = self._memory
        if not self.degraded and self._conn is not None:
            try:
                row = self._conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (self.namespace,)
                ).fetchone()
                if row is not None:
                    document = row["value"]
            except sqlite3.Error as exc:
                self._degrade("load", exc)

        if document is None:
            return None
        try:
            data = json.loads(document)
        except ValueError as exc:
            logger.warning("Discarding unreadable snapshot: %s", exc)
            return None
        if data.get("schema_version") != SCHEMA_VERSION:
            logger.warning("Ignoring snapshot with schema_version %s", data.get("schema_version"))
            return None
        return data.get("state")

    def clear(self) -> None:
        self._memory = None
        if self.degraded or self._conn is None:
            return
        try:
            self._conn.execute("DELETE FROM kv_store WHERE key = ?", (self.namespace,))
            self._conn.commit()
        except sqlite3.Error as exc:
            self._degrade("clear", exc)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
