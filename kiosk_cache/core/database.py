"""
Thread-safe SQLite store for kiosk-cache.

The store is the only persistent state of the application. It is owned by
the application context and passed to the activation reconciler and the
media synchronizer; nothing else opens the database file.

Schema:
    tracks:         Local track index, one row per downloaded/indexed track
                    (code UNIQUE)
    usage_history:  Append-only playback events
    activation:     At most one row (id = 1), the activation snapshot
    schema_version: Single-row schema version marker

Write Policy:
    Every mutation is a whole-record INSERT OR REPLACE or a DELETE.
    No row is ever partially updated.

Usage:
    store = LocalStore(data_dir / "db.sqlite")

    store.insert_track(record)
    if store.track_exists("1009"):        # matches "01009" too
        track = store.find_track("1009")

    store.save_activation(record)
    current = store.get_activation()
"""

import sqlite3
import threading
import uuid
from contextlib import contextmanager, suppress
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

from kiosk_cache.activation.models import ActivationKind, ActivationRecord
from kiosk_cache.core.exceptions import StoreUnavailableError
from kiosk_cache.library.models import LocalTrackRecord, UsageHistoryRecord
from kiosk_cache.utils import code_candidates


DATABASE_VERSION = 1
SEARCH_LIMIT = 50
ACTIVATION_ROW_ID = 1


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS tracks (
    id TEXT PRIMARY KEY,
    code TEXT UNIQUE NOT NULL,
    artist TEXT NOT NULL DEFAULT '',
    title TEXT NOT NULL DEFAULT '',
    local_path TEXT NOT NULL,
    file_name TEXT,
    size INTEGER,
    duration INTEGER,
    owner_id TEXT,
    synced_at TEXT,
    created_at TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS usage_history (
    id TEXT PRIMARY KEY,
    owner_id TEXT,
    track_id TEXT,
    code TEXT NOT NULL,
    played_at TEXT NOT NULL,
    synced_at TEXT,
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS activation (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    key TEXT UNIQUE NOT NULL,
    kind TEXT NOT NULL,
    remaining_days INTEGER,
    remaining_hours REAL,
    expires_at TEXT,
    last_validated_at TEXT NOT NULL,
    activated_at TEXT,
    remote_id TEXT
);

CREATE INDEX IF NOT EXISTS idx_tracks_code ON tracks(code);
CREATE INDEX IF NOT EXISTS idx_usage_history_code ON usage_history(code);
CREATE INDEX IF NOT EXISTS idx_usage_history_synced ON usage_history(synced_at);
"""


def _to_iso(value: datetime | None) -> str | None:
    return value.astimezone(timezone.utc).isoformat() if value is not None else None


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class LocalStore:
    """
    Thread-safe SQLite store for tracks, history and activation.

    Uses a single persistent connection with thread locking for safety.
    All public methods acquire self._lock before executing, and every
    sqlite3.Error is re-raised as StoreUnavailableError.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

        if not db_path.parent.exists():
            raise StoreUnavailableError(
                f"Parent directory does not exist: {db_path.parent}",
                details={"path": str(db_path.parent)}
            )

        self._init_database()

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Yield the persistent connection, translating sqlite errors.

        The connection is created once and reused for all operations.
        """
        try:
            if self._conn is None:
                self._conn = sqlite3.connect(
                    str(self.db_path),
                    timeout=30.0,
                    check_same_thread=False  # We handle thread safety with _lock
                )
                self._conn.row_factory = sqlite3.Row
                self._conn.execute("PRAGMA journal_mode = WAL")
            yield self._conn
        except sqlite3.Error as e:
            if self._conn is not None:
                with suppress(sqlite3.Error):
                    self._conn.rollback()
            raise StoreUnavailableError(
                f"Local store error: {e}",
                details={"path": str(self.db_path), "original_error": str(e)}
            ) from e

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __del__(self) -> None:
        if getattr(self, "_conn", None) is not None:
            try:
                self._conn.close()
            except sqlite3.Error:
                pass

    def _init_database(self) -> None:
        with self._get_connection() as conn:
            conn.executescript(_SCHEMA_SQL)

            row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()

            if row is None:
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (DATABASE_VERSION,))
            elif row[0] != DATABASE_VERSION:
                raise StoreUnavailableError(
                    f"Database version mismatch: expected {DATABASE_VERSION}, got {row[0]}",
                    details={"expected": DATABASE_VERSION, "actual": row[0]}
                )
            conn.commit()

    def _now_iso(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    # =========================================================================
    # Activation
    # =========================================================================

    def get_activation(self) -> ActivationRecord | None:
        with self._lock:
            with self._get_connection() as conn:
                row = conn.execute(
                    "SELECT * FROM activation WHERE id = ?", (ACTIVATION_ROW_ID,)
                ).fetchone()

        if row is None:
            return None

        return ActivationRecord(
            key=row["key"],
            kind=ActivationKind(row["kind"]),
            remaining_days=row["remaining_days"],
            remaining_hours=row["remaining_hours"],
            expires_at=_from_iso(row["expires_at"]),
            last_validated_at=_from_iso(row["last_validated_at"]),
            activated_at=_from_iso(row["activated_at"]),
            remote_id=row["remote_id"],
        )

    def save_activation(self, record: ActivationRecord) -> None:
        """Replace the activation snapshot with record (whole-record write)."""
        with self._lock:
            with self._get_connection() as conn:
                conn.execute("""
                    INSERT OR REPLACE INTO activation (
                        id, key, kind, remaining_days, remaining_hours,
                        expires_at, last_validated_at, activated_at, remote_id
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    ACTIVATION_ROW_ID,
                    record.key,
                    record.kind.value,
                    record.remaining_days,
                    record.remaining_hours,
                    _to_iso(record.expires_at),
                    _to_iso(record.last_validated_at),
                    _to_iso(record.activated_at),
                    record.remote_id,
                ))
                conn.commit()

    def delete_activation(self) -> None:
        """Remove the activation snapshot. No-op if there is none."""
        with self._lock:
            with self._get_connection() as conn:
                conn.execute("DELETE FROM activation WHERE id = ?", (ACTIVATION_ROW_ID,))
                conn.commit()

    # =========================================================================
    # Track Index
    # =========================================================================

    def _row_to_track(self, row: sqlite3.Row) -> LocalTrackRecord:
        return LocalTrackRecord(**dict(row))

    def insert_track(self, record: LocalTrackRecord) -> LocalTrackRecord:
        """
        Insert or replace a track by code.

        created_at is preserved when a row with the same code exists;
        updated_at is always refreshed. Returns the record as stored.
        """
        now = self._now_iso()
        with self._lock:
            with self._get_connection() as conn:
                existing = conn.execute(
                    "SELECT created_at FROM tracks WHERE code = ?", (record.code,)
                ).fetchone()
                created_at = existing["created_at"] if existing else (record.created_at or now)

                conn.execute("""
                    INSERT OR REPLACE INTO tracks (
                        id, code, artist, title, local_path, file_name,
                        size, duration, owner_id, synced_at, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    record.id,
                    record.code,
                    record.artist,
                    record.title,
                    record.local_path,
                    record.file_name,
                    record.size,
                    record.duration,
                    record.owner_id,
                    record.synced_at or now,
                    created_at,
                    now,
                ))
                conn.commit()
                row = conn.execute("SELECT * FROM tracks WHERE code = ?", (record.code,)).fetchone()

        return self._row_to_track(row)

    def get_track(self, code: str) -> LocalTrackRecord | None:
        """Exact-code lookup."""
        with self._lock:
            with self._get_connection() as conn:
                row = conn.execute("SELECT * FROM tracks WHERE code = ?", (code,)).fetchone()
        return self._row_to_track(row) if row else None

    def find_track(self, code: str) -> LocalTrackRecord | None:
        """Lookup trying each candidate form of code; first match wins."""
        for candidate in code_candidates(code):
            track = self.get_track(candidate)
            if track is not None:
                return track
        return None

    def track_exists(self, code: str) -> bool:
        return self.find_track(code) is not None

    def indexed_codes(self) -> set[str]:
        with self._lock:
            with self._get_connection() as conn:
                rows = conn.execute("SELECT code FROM tracks").fetchall()
        return {row["code"] for row in rows}

    def search_tracks(self, query: str, limit: int = SEARCH_LIMIT) -> list[LocalTrackRecord]:
        """Case-insensitive substring match over code, artist and title."""
        pattern = f"%{query.strip()}%"
        with self._lock:
            with self._get_connection() as conn:
                rows = conn.execute("""
                    SELECT * FROM tracks
                    WHERE code LIKE ? OR artist LIKE ? OR title LIKE ?
                    ORDER BY artist, title
                    LIMIT ?
                """, (pattern, pattern, pattern, limit)).fetchall()
        return [self._row_to_track(row) for row in rows]

    def random_track_code(self) -> str | None:
        with self._lock:
            with self._get_connection() as conn:
                row = conn.execute("SELECT code FROM tracks ORDER BY RANDOM() LIMIT 1").fetchone()
        return row["code"] if row else None

    def count_tracks(self) -> int:
        with self._lock:
            with self._get_connection() as conn:
                return conn.execute("SELECT COUNT(*) FROM tracks").fetchone()[0]

    def total_bytes(self) -> int:
        with self._lock:
            with self._get_connection() as conn:
                return conn.execute("SELECT COALESCE(SUM(size), 0) FROM tracks").fetchone()[0]

    # =========================================================================
    # Usage History
    # =========================================================================

    def append_history(
        self,
        code: str,
        track_id: str | None = None,
        owner_id: str | None = None,
    ) -> UsageHistoryRecord:
        """Append one playback event and return it."""
        record = UsageHistoryRecord(
            id=str(uuid.uuid4()),
            code=code,
            played_at=self._now_iso(),
            owner_id=owner_id,
            track_id=track_id,
        )
        with self._lock:
            with self._get_connection() as conn:
                conn.execute("""
                    INSERT INTO usage_history (
                        id, owner_id, track_id, code, played_at, synced_at, created_at
                    ) VALUES (?, ?, ?, ?, ?, NULL, ?)
                """, (
                    record.id,
                    record.owner_id,
                    record.track_id,
                    record.code,
                    record.played_at,
                    record.played_at,
                ))
                conn.commit()
        return record

    def get_history(self, limit: int = 100) -> list[UsageHistoryRecord]:
        """Most recent playback events first."""
        with self._lock:
            with self._get_connection() as conn:
                rows = conn.execute("""
                    SELECT id, owner_id, track_id, code, played_at, synced_at
                    FROM usage_history
                    ORDER BY played_at DESC
                    LIMIT ?
                """, (limit,)).fetchall()
        return [UsageHistoryRecord(**dict(row)) for row in rows]

    def count_history(self) -> int:
        with self._lock:
            with self._get_connection() as conn:
                return conn.execute("SELECT COUNT(*) FROM usage_history").fetchone()[0]
