"""
Durable local fallback for batches the primary API could not accept.

Batches are persisted in an embedded SQLite database and replayed oldest
first on later flushes. Records that exceed the attempt cap or maximum age
are discarded so the store cannot grow without bound.

Only the primary pipeline's single flush task writes to the store, so no
locking is needed beyond what SQLite does for crash safety.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Union

from ..metrics.models import FallbackRecord, PendingBatch
from ..reliability.errors import FallbackStoreError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS fallback_batches (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    batch_id TEXT NOT NULL UNIQUE,
    payload TEXT NOT NULL,
    attempts INTEGER NOT NULL DEFAULT 0,
    created_at REAL NOT NULL,
    last_attempt_at REAL
)
"""


class PersistenceFallback:
    """
    SQLite-backed store of undelivered batches.

    Every operation opens a short-lived connection, so instances are safe to
    use from an executor thread. All sqlite and filesystem failures are
    raised as FallbackStoreError.
    """

    def __init__(
        self,
        db_path: Union[str, Path],
        max_attempts: int = 3,
        max_age_seconds: float = 24 * 60 * 60,
    ):
        """
        Args:
            db_path: SQLite database file (parent directories are created)
            max_attempts: Delivery attempts before a record is discarded
            max_age_seconds: Age after which a record is discarded
        """
        self.db_path = Path(db_path).expanduser()
        self.max_attempts = max_attempts
        self.max_age_seconds = max_age_seconds
        self._initialized = False

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            if not self._initialized:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path), timeout=5.0)
        except (sqlite3.Error, OSError) as e:
            raise FallbackStoreError(f"Fallback store unavailable at {self.db_path}: {e}") from e

        try:
            if not self._initialized:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute(_SCHEMA)
                self._initialized = True
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise FallbackStoreError(f"Fallback store error: {e}") from e
        finally:
            conn.close()

    def store(self, batch: PendingBatch, attempts: int = 1) -> bool:
        """
        Persist a batch that failed delivery.

        Storing the same batch_id twice is a no-op, so a batch appears in the
        store at most once.

        Args:
            batch: The undelivered batch
            attempts: Delivery attempts already made

        Returns:
            True if a new record was written
        """
        now = time.time()
        payload = json.dumps(batch.to_dict(), separators=(",", ":"))
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO fallback_batches "
                "(batch_id, payload, attempts, created_at, last_attempt_at) VALUES (?, ?, ?, ?, ?)",
                (batch.batch_id, payload, attempts, batch.created_at, now),
            )
            return cursor.rowcount > 0

    def pending(self, limit: Optional[int] = None) -> List[FallbackRecord]:
        """Return stored records, oldest first. Undecodable rows are deleted."""
        query = "SELECT id, payload, attempts, created_at, last_attempt_at FROM fallback_batches ORDER BY id"
        params: tuple = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)

        records: List[FallbackRecord] = []
        corrupt: List[int] = []
        with self._connect() as conn:
            for row_id, payload, attempts, created_at, last_attempt_at in conn.execute(query, params):
                try:
                    batch = PendingBatch.from_dict(json.loads(payload))
                except (ValueError, KeyError, TypeError) as e:
                    logger.warning(f"Discarding corrupt fallback record {row_id}: {e}")
                    corrupt.append(row_id)
                    continue
                records.append(FallbackRecord(
                    record_id=row_id,
                    batch=batch,
                    attempts=attempts,
                    created_at=created_at,
                    last_attempt_at=last_attempt_at,
                ))
            if corrupt:
                conn.executemany("DELETE FROM fallback_batches WHERE id = ?", [(i,) for i in corrupt])
        return records

    def mark_attempt(self, record: FallbackRecord) -> FallbackRecord:
        """Record a failed retry and return the updated record."""
        now = time.time()
        with self._connect() as conn:
            conn.execute(
                "UPDATE fallback_batches SET attempts = attempts + 1, last_attempt_at = ? WHERE id = ?",
                (now, record.record_id),
            )
        return FallbackRecord(
            record_id=record.record_id,
            batch=record.batch,
            attempts=record.attempts + 1,
            created_at=record.created_at,
            last_attempt_at=now,
        )

    def remove(self, record: FallbackRecord) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM fallback_batches WHERE id = ?", (record.record_id,))

    def is_expired(self, record: FallbackRecord, now: Optional[float] = None) -> bool:
        return record.is_expired(self.max_attempts, self.max_age_seconds, now)

    def discard_expired(self, now: Optional[float] = None) -> int:
        """Delete records over the attempt cap or max age; return how many."""
        now = time.time() if now is None else now
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM fallback_batches WHERE attempts >= ? OR created_at < ?",
                (self.max_attempts, now - self.max_age_seconds),
            )
            removed = cursor.rowcount
        if removed:
            logger.warning(f"Discarded {removed} expired fallback batches")
        return removed

    def count(self) -> int:
        with self._connect() as conn:
            (total,) = conn.execute("SELECT COUNT(*) FROM fallback_batches").fetchone()
        return total
