"""SQLite database holding cached analyses, stored under the store directory."""

import sqlite3
from pathlib import Path
from typing import Optional

from ..logging_config import get_logger

logger = get_logger(__name__)

# Current schema version (bump when tables change).
_SCHEMA_VERSION = 1

DB_FILENAME = "analysis.db"


class AnalysisDB:
    """Manages the ``<store_dir>/analysis.db`` SQLite database.

    Usage::

        with AnalysisDB(".commit-insight") as db:
            db.conn.execute("SELECT count(*) FROM quality_reports")
    """

    def __init__(self, store_dir: str) -> None:
        self.db_dir: Path = Path(store_dir)
        self.db_path: Path = self.db_dir / DB_FILENAME
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def conn(self) -> sqlite3.Connection:
        """Return the active connection. Raises if not connected."""
        if self._conn is None:
            raise RuntimeError("AnalysisDB is not connected. Use as context manager or call connect().")
        return self._conn

    @property
    def connected(self) -> bool:
        return self._conn is not None

    # ── lifecycle ─────────────────────────────────────────────────

    def _ensure_dir(self) -> None:
        """Create the store directory with a .gitignore so it stays untracked."""
        self.db_dir.mkdir(parents=True, exist_ok=True)
        gitignore = self.db_dir / ".gitignore"
        if not gitignore.exists():
            gitignore.write_text("*\n")

    def connect(self) -> sqlite3.Connection:
        """Open (or create) the database and run migrations."""
        self._ensure_dir()
        conn = sqlite3.connect(str(self.db_path))
        conn.execute("PRAGMA journal_mode=WAL")
        conn.row_factory = sqlite3.Row
        self._conn = conn
        self._migrate()
        logger.debug("Analysis DB connected at %s", self.db_path)
        return conn

    def close(self) -> None:
        """Close the connection if open."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "AnalysisDB":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ── migration ─────────────────────────────────────────────────

    def _migrate(self) -> None:
        """Idempotently create / upgrade all tables."""
        c = self.conn

        c.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER NOT NULL
            )
            """
        )

        row = c.execute("SELECT version FROM schema_version").fetchone()
        if row is None:
            c.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (_SCHEMA_VERSION,),
            )

        # ── commit_analyses (immutable, keyed by sha) ────────────
        c.execute(
            """
            CREATE TABLE IF NOT EXISTS commit_analyses (
                sha         TEXT PRIMARY KEY,
                category    TEXT NOT NULL,
                confidence  REAL NOT NULL,
                method      TEXT NOT NULL,
                payload     TEXT NOT NULL,
                created_at  TEXT NOT NULL
            )
            """
        )

        # ── quality_reports (daily bucketed) ─────────────────────
        c.execute(
            """
            CREATE TABLE IF NOT EXISTS quality_reports (
                id              INTEGER PRIMARY KEY AUTOINCREMENT,
                repository_id   TEXT    NOT NULL,
                cache_key       TEXT    NOT NULL,
                analysis_date   TEXT    NOT NULL,
                quality_score   REAL    NOT NULL,
                issue_count     INTEGER NOT NULL DEFAULT 0,
                analysis_method TEXT    NOT NULL DEFAULT 'basic',
                payload         TEXT    NOT NULL,
                created_at      TEXT    NOT NULL,
                UNIQUE (repository_id, cache_key)
            )
            """
        )

        # ── daily_summaries (one per repository and day) ─────────
        c.execute(
            """
            CREATE TABLE IF NOT EXISTS daily_summaries (
                id            INTEGER PRIMARY KEY AUTOINCREMENT,
                repository_id TEXT    NOT NULL,
                summary_date  TEXT    NOT NULL,
                commit_count  INTEGER NOT NULL DEFAULT 0,
                payload       TEXT    NOT NULL,
                created_at    TEXT    NOT NULL,
                UNIQUE (repository_id, summary_date)
            )
            """
        )

        # ── task_suggestions (signature rolling) ─────────────────
        c.execute(
            """
            CREATE TABLE IF NOT EXISTS task_suggestions (
                id             INTEGER PRIMARY KEY AUTOINCREMENT,
                repository_id  TEXT NOT NULL,
                work_signature TEXT NOT NULL,
                payload        TEXT NOT NULL,
                created_at     TEXT NOT NULL,
                UNIQUE (repository_id, work_signature)
            )
            """
        )

        # ── indexes ──────────────────────────────────────────────
        c.execute(
            "CREATE INDEX IF NOT EXISTS idx_quality_repo_date ON quality_reports(repository_id, analysis_date)"
        )
        c.execute("CREATE INDEX IF NOT EXISTS idx_quality_created ON quality_reports(created_at)")
        c.execute(
            "CREATE INDEX IF NOT EXISTS idx_summaries_repo_date ON daily_summaries(repository_id, summary_date)"
        )
        c.execute("CREATE INDEX IF NOT EXISTS idx_commit_analyses_created ON commit_analyses(created_at)")

        c.commit()

    # ── introspection ─────────────────────────────────────────────

    def table_counts(self) -> dict[str, int]:
        """Row count per cache table."""
        counts = {}
        for table in ("commit_analyses", "quality_reports", "daily_summaries", "task_suggestions"):
            row = self.conn.execute(f"SELECT COUNT(*) AS n FROM {table}").fetchone()
            counts[table] = row["n"]
        return counts

    def get_schema_version(self) -> int:
        row = self.conn.execute("SELECT version FROM schema_version").fetchone()
        return row["version"] if row else 0
