"""SQLite clip index implementation."""

import sqlite3
from datetime import datetime
from pathlib import Path

from .models import CacheKey, CacheStats, ClipInfo

_COLUMNS = "scope_id, voice_id, word, audio_path, size_bytes, duration_seconds, created_at"


class ClipStorage:
    """SQLite-based index of word bank clips.

    Stores clip metadata (size, duration, creation time, file location) in
    SQLite while the PCM payloads live as separate files on the filesystem,
    so listing and stats never touch audio data.
    """

    def __init__(self, cache_dir: Path):
        """Initialize clip storage with database in given directory.

        Args:
            cache_dir: Directory containing the index database
        """
        self.cache_dir = cache_dir

        # Create cache directory if it doesn't exist
        cache_dir.mkdir(parents=True, exist_ok=True)

        self.db_path = cache_dir / "wordbank.db"

        # Initialize DB with WAL mode for concurrency
        self._init_db_with_wal()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a new database connection with WAL mode for concurrency."""
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=30.0,  # 30 second timeout if locked
            check_same_thread=False,  # Allow use across threads
        )
        conn.row_factory = sqlite3.Row
        # Enable WAL mode for much better concurrent access
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=30000")  # 30s retry on lock
        conn.execute("PRAGMA synchronous=NORMAL")  # Faster writes
        return conn

    def _init_db_with_wal(self) -> None:
        """Initialize database with WAL mode and schema."""
        conn = self._get_connection()
        try:
            self._init_db(conn)
        finally:
            conn.close()

    def _init_db(self, conn: sqlite3.Connection) -> None:
        """Initialize database schema with tables and indexes."""
        cursor = conn.cursor()

        # One clip per (scope, voice, word); the unique index doubles as the lookup path
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS clips (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                scope_id TEXT NOT NULL,
                voice_id TEXT NOT NULL,
                word TEXT NOT NULL,
                audio_path TEXT NOT NULL,
                size_bytes INTEGER NOT NULL,
                duration_seconds REAL NOT NULL,
                created_at TEXT NOT NULL,
                UNIQUE(scope_id, voice_id, word)
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_clips_scope_voice
            ON clips(scope_id, voice_id)
        """)

        conn.commit()

    def get(self, key: CacheKey) -> ClipInfo | None:
        """Retrieve clip metadata by key.

        Args:
            key: Cache key to look up

        Returns:
            Clip metadata if found, None otherwise
        """
        conn = self._get_connection()
        try:
            row = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM clips
                WHERE scope_id = ? AND voice_id = ? AND word = ?
            """,
                (key.scope_id, key.voice_id, key.word),
            ).fetchone()
        finally:
            conn.close()

        return self._row_to_info(row) if row is not None else None

    def upsert(self, info: ClipInfo) -> Path | None:
        """Insert or replace the metadata row for a clip.

        Runs in an immediate transaction so concurrent writers to the same
        key are serialized and each sees the row it replaces.

        Args:
            info: Clip metadata to store

        Returns:
            Audio path of the replaced row, or None if the key was new
        """
        conn = self._get_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            previous = conn.execute(
                """
                SELECT audio_path FROM clips
                WHERE scope_id = ? AND voice_id = ? AND word = ?
            """,
                (info.key.scope_id, info.key.voice_id, info.key.word),
            ).fetchone()

            conn.execute(
                f"""
                INSERT INTO clips ({_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(scope_id, voice_id, word) DO UPDATE SET
                    audio_path = excluded.audio_path,
                    size_bytes = excluded.size_bytes,
                    duration_seconds = excluded.duration_seconds,
                    created_at = excluded.created_at
            """,
                (
                    info.key.scope_id,
                    info.key.voice_id,
                    info.key.word,
                    str(info.audio_path),
                    info.size_bytes,
                    info.duration_seconds,
                    info.created_at.isoformat(),
                ),
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        return Path(previous["audio_path"]) if previous is not None else None

    def delete(self, key: CacheKey) -> ClipInfo | None:
        """Delete one clip row.

        Returns:
            Metadata of the deleted row, or None if nothing matched
        """
        conn = self._get_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM clips
                WHERE scope_id = ? AND voice_id = ? AND word = ?
            """,
                (key.scope_id, key.voice_id, key.word),
            ).fetchone()
            if row is not None:
                conn.execute(
                    "DELETE FROM clips WHERE scope_id = ? AND voice_id = ? AND word = ?",
                    (key.scope_id, key.voice_id, key.word),
                )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        return self._row_to_info(row) if row is not None else None

    def delete_scope(self, scope_id: str, voice_id: str | None = None) -> list[ClipInfo]:
        """Delete every clip of a scope, or only one voice within it.

        Returns:
            Metadata of all deleted rows
        """
        where, params = self._scope_filter(scope_id, voice_id)
        conn = self._get_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM clips WHERE {where}", params
            ).fetchall()
            conn.execute(f"DELETE FROM clips WHERE {where}", params)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        return [self._row_to_info(row) for row in rows]

    def list_clips(self, scope_id: str, voice_id: str | None = None) -> list[ClipInfo]:
        """List clip metadata for a scope (optionally one voice), sorted by voice then word."""
        where, params = self._scope_filter(scope_id, voice_id)
        conn = self._get_connection()
        try:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM clips WHERE {where} ORDER BY voice_id, word",
                params,
            ).fetchall()
        finally:
            conn.close()

        return [self._row_to_info(row) for row in rows]

    def stats(self, scope_id: str) -> CacheStats:
        """Aggregate clip count, byte total and voices for a scope."""
        conn = self._get_connection()
        try:
            totals = conn.execute(
                """
                SELECT COUNT(*) AS total_words, COALESCE(SUM(size_bytes), 0) AS total_bytes
                FROM clips WHERE scope_id = ?
            """,
                (scope_id,),
            ).fetchone()
            voices = conn.execute(
                "SELECT DISTINCT voice_id FROM clips WHERE scope_id = ? ORDER BY voice_id",
                (scope_id,),
            ).fetchall()
        finally:
            conn.close()

        return CacheStats(
            total_words=totals["total_words"],
            total_bytes=totals["total_bytes"],
            voices_used=[row["voice_id"] for row in voices],
        )

    @staticmethod
    def _scope_filter(scope_id: str, voice_id: str | None) -> tuple[str, tuple[str, ...]]:
        if voice_id is None:
            return "scope_id = ?", (scope_id,)
        return "scope_id = ? AND voice_id = ?", (scope_id, voice_id)

    @staticmethod
    def _row_to_info(row: sqlite3.Row) -> ClipInfo:
        # Convert stored strings back to proper types
        return ClipInfo(
            key=CacheKey(
                scope_id=row["scope_id"], word=row["word"], voice_id=row["voice_id"]
            ),
            audio_path=Path(row["audio_path"]),
            size_bytes=row["size_bytes"],
            duration_seconds=row["duration_seconds"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )
