"""Four-tier cache store for analysis results.

======================  =========================  ==========================
Policy                  Key                        Invalidation
======================  =========================  ==========================
immutable               commit SHA                 never (write-once)
daily-bucketed          repo + quality cache key   new day / bucket, max age
signature-rolling       repo + work signature      age, missing fields
ttl-expiring            repo + page size           absolute expiry (diskcache)
======================  =========================  ==========================

The first three tiers live in SQLite (:class:`AnalysisDB`), the last in
diskcache (:class:`ListingCache`). Every storage failure is raised as
:class:`PersistenceError`; callers decide whether to swallow it.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence

from ..exceptions import ErrorCode, PersistenceError
from ..logging_config import get_logger
from ..models import AnalysisResult, CommitListing, DailySummary, QualityReport, TaskSuggestion
from ..analysis.validator import has_required_task_fields
from .database import AnalysisDB
from .listing import ListingCache

logger = get_logger(__name__)

Clock = Callable[[], datetime]


class CachePolicy(str, Enum):
    IMMUTABLE = "immutable"
    DAILY_BUCKETED = "daily-bucketed"
    SIGNATURE_ROLLING = "signature-rolling"
    TTL_EXPIRING = "ttl-expiring"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _stamp(moment: datetime) -> str:
    """Sortable UTC timestamp used in SQL comparisons."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")


def _dumps(data) -> str:
    return json.dumps(data, sort_keys=True)


def _loads(payload: str, where: str):
    try:
        return json.loads(payload)
    except (json.JSONDecodeError, TypeError) as e:
        raise PersistenceError(
            message=f"Stored {where} payload is corrupt: {e}",
            code=ErrorCode.CI403,
            context={"table": where},
        ) from e


class CacheStore:
    """Read/write access to all cache tiers.

    Usage::

        with CacheStore.open(".commit-insight") as store:
            report = store.get_quality_report("octo/repo", key, max_age_seconds=4 * 3600)
    """

    def __init__(self, db: AnalysisDB, listings: ListingCache, clock: Clock = utcnow):
        self.db = db
        self.listings = listings
        self.clock = clock

    @classmethod
    def open(cls, store_dir: str, listing_ttl_seconds: int = 1800, clock: Clock = utcnow) -> "CacheStore":
        db = AnalysisDB(store_dir)
        try:
            db.connect()
        except sqlite3.Error as e:
            raise PersistenceError(
                message=f"Cannot open analysis database: {e}",
                code=ErrorCode.CI400,
                context={"path": str(db.db_path)},
                recoverable=False,
                recovery_hint="Check permissions on the store directory",
            ) from e
        listings = ListingCache(str(db.db_dir / "listings"), ttl_seconds=listing_ttl_seconds)
        return cls(db, listings, clock=clock)

    def close(self) -> None:
        self.db.close()
        self.listings.close()

    def __enter__(self) -> "CacheStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ── helpers ──────────────────────────────────────────────────

    def _read(self, sql: str, params: Sequence = ()) -> list[sqlite3.Row]:
        try:
            return self.db.conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(
                message=f"Cache read failed: {e}", code=ErrorCode.CI400, context={"sql": sql.split()[0]}
            ) from e

    def _write(self, sql: str, rows: Iterable[Sequence]) -> int:
        conn = self.db.conn
        try:
            with conn:
                cursor = conn.executemany(sql, list(rows))
            return cursor.rowcount
        except sqlite3.Error as e:
            raise PersistenceError(
                message=f"Cache write failed: {e}", code=ErrorCode.CI401, context={"sql": sql.split()[0]}
            ) from e

    def _is_fresh(self, created_at: str, max_age_seconds: float) -> bool:
        created = datetime.fromisoformat(created_at).replace(tzinfo=timezone.utc)
        return self.clock() - created <= timedelta(seconds=max_age_seconds)

    # ── immutable: per-commit analyses ───────────────────────────

    def get_commit_analyses(self, shas: Sequence[str]) -> dict[str, AnalysisResult]:
        if not shas:
            return {}
        placeholders = ",".join("?" for _ in shas)
        rows = self._read(
            f"SELECT sha, payload FROM commit_analyses WHERE sha IN ({placeholders})", list(shas)
        )
        return {
            row["sha"]: AnalysisResult.from_dict(_loads(row["payload"], "commit_analyses"))
            for row in rows
        }

    def put_commit_analyses(self, results: Sequence[AnalysisResult]) -> int:
        """Insert results for SHAs not yet stored; existing rows are kept as-is."""
        now = _stamp(self.clock())
        return self._write(
            """
            INSERT OR IGNORE INTO commit_analyses (sha, category, confidence, method, payload, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                (r.sha, r.category, r.confidence, r.method, _dumps(r.to_dict()), now)
                for r in results
            ),
        )

    # ── daily bucketed: quality reports ──────────────────────────

    def get_quality_report(
        self, repository_id: str, cache_key: str, max_age_seconds: float
    ) -> Optional[QualityReport]:
        rows = self._read(
            "SELECT payload, created_at FROM quality_reports WHERE repository_id = ? AND cache_key = ?",
            (repository_id, cache_key),
        )
        if not rows:
            return None
        if not self._is_fresh(rows[0]["created_at"], max_age_seconds):
            logger.debug("Quality report %s is older than %ss", cache_key, max_age_seconds)
            return None
        return QualityReport.from_dict(_loads(rows[0]["payload"], "quality_reports"))

    def put_quality_report(self, report: QualityReport) -> QualityReport:
        """Upsert by (repository, cache key); return the report as stored."""
        created = report.created_at or self.clock()
        payload = _dumps(report.to_dict())
        self._write(
            """
            INSERT INTO quality_reports
                (repository_id, cache_key, analysis_date, quality_score, issue_count,
                 analysis_method, payload, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (repository_id, cache_key) DO UPDATE SET
                analysis_date   = excluded.analysis_date,
                quality_score   = excluded.quality_score,
                issue_count     = excluded.issue_count,
                analysis_method = excluded.analysis_method,
                payload         = excluded.payload,
                created_at      = excluded.created_at
            """,
            [
                (
                    report.repository_id,
                    report.cache_key,
                    report.analysis_date,
                    report.quality_score,
                    len(report.issues),
                    report.analysis_method,
                    payload,
                    _stamp(created),
                )
            ],
        )
        return QualityReport.from_dict(json.loads(payload))

    def quality_history(self, repository_id: str, since: date) -> list[QualityReport]:
        """Reports analysed on or after ``since``, oldest first."""
        rows = self._read(
            """
            SELECT payload FROM quality_reports
            WHERE repository_id = ? AND analysis_date >= ?
            ORDER BY analysis_date ASC, created_at ASC, id ASC
            """,
            (repository_id, since.isoformat()),
        )
        return [QualityReport.from_dict(_loads(row["payload"], "quality_reports")) for row in rows]

    # ── daily bucketed: summaries ────────────────────────────────

    def get_daily_summary(self, repository_id: str, day: date) -> Optional[DailySummary]:
        rows = self._read(
            "SELECT payload FROM daily_summaries WHERE repository_id = ? AND summary_date = ?",
            (repository_id, day.isoformat()),
        )
        if not rows:
            return None
        return DailySummary.from_dict(_loads(rows[0]["payload"], "daily_summaries"))

    def put_daily_summary(self, summary: DailySummary) -> None:
        created = summary.created_at or self.clock()
        self._write(
            """
            INSERT INTO daily_summaries (repository_id, summary_date, commit_count, payload, created_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (repository_id, summary_date) DO UPDATE SET
                commit_count = excluded.commit_count,
                payload      = excluded.payload,
                created_at   = excluded.created_at
            """,
            [
                (
                    summary.repository_id,
                    summary.date,
                    summary.commit_count,
                    _dumps(summary.to_dict()),
                    _stamp(created),
                )
            ],
        )

    def summary_history(self, repository_id: str, since: date) -> list[DailySummary]:
        """Summaries on or after ``since``, newest first."""
        rows = self._read(
            """
            SELECT payload FROM daily_summaries
            WHERE repository_id = ? AND summary_date >= ?
            ORDER BY summary_date DESC
            """,
            (repository_id, since.isoformat()),
        )
        return [DailySummary.from_dict(_loads(row["payload"], "daily_summaries")) for row in rows]

    # ── signature rolling: task suggestions ──────────────────────

    def get_task_suggestions(
        self, repository_id: str, signature: str, max_age_seconds: float
    ) -> Optional[list[TaskSuggestion]]:
        rows = self._read(
            """
            SELECT payload, created_at FROM task_suggestions
            WHERE repository_id = ? AND work_signature = ?
            """,
            (repository_id, signature),
        )
        if not rows or not self._is_fresh(rows[0]["created_at"], max_age_seconds):
            return None
        tasks = _loads(rows[0]["payload"], "task_suggestions")
        if not isinstance(tasks, list) or not tasks or not all(map(has_required_task_fields, tasks)):
            logger.info("Cached tasks for %s are missing required fields; regenerating", repository_id)
            return None
        return [TaskSuggestion.from_dict(t) for t in tasks]

    def put_task_suggestions(
        self, repository_id: str, signature: str, tasks: Sequence[TaskSuggestion]
    ) -> None:
        self._write(
            """
            INSERT INTO task_suggestions (repository_id, work_signature, payload, created_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT (repository_id, work_signature) DO UPDATE SET
                payload    = excluded.payload,
                created_at = excluded.created_at
            """,
            [(repository_id, signature, _dumps([t.to_dict() for t in tasks]), _stamp(self.clock()))],
        )

    # ── ttl expiring: enhanced listings ──────────────────────────

    def get_listing(self, key: str) -> Optional[CommitListing]:
        try:
            data = self.listings.get(key)
        except Exception as e:
            raise PersistenceError(
                message=f"Listing cache read failed: {e}", code=ErrorCode.CI402, context={"key": key}
            ) from e
        return CommitListing.from_dict(data) if data is not None else None

    def put_listing(self, key: str, listing: CommitListing, ttl_seconds: float) -> None:
        try:
            self.listings.set(key, listing.to_dict(), ttl_seconds=ttl_seconds)
        except Exception as e:
            raise PersistenceError(
                message=f"Listing cache write failed: {e}", code=ErrorCode.CI402, context={"key": key}
            ) from e

    # ── maintenance ──────────────────────────────────────────────

    def clear_repository(self, repository_id: str) -> dict[str, int]:
        """Forget a repository's quality reports, tasks and listings."""
        removed = {
            "quality_reports": self._write(
                "DELETE FROM quality_reports WHERE repository_id = ?", [(repository_id,)]
            ),
            "task_suggestions": self._write(
                "DELETE FROM task_suggestions WHERE repository_id = ?", [(repository_id,)]
            ),
        }
        try:
            removed["listings"] = self.listings.delete_prefix(f"{repository_id}:enhanced-commits:")
        except Exception as e:
            raise PersistenceError(
                message=f"Listing cache clear failed: {e}", code=ErrorCode.CI402
            ) from e
        return removed

    def cleanup(self, older_than_days: int) -> dict[str, int]:
        """Delete entries created more than ``older_than_days`` ago."""
        cutoff = _stamp(self.clock() - timedelta(days=older_than_days))
        removed = {}
        for table in ("commit_analyses", "quality_reports", "daily_summaries", "task_suggestions"):
            removed[table] = self._write(f"DELETE FROM {table} WHERE created_at < ?", [(cutoff,)])
        try:
            removed["listings"] = self.listings.expire()
        except Exception as e:
            raise PersistenceError(message=f"Listing cache expire failed: {e}", code=ErrorCode.CI402) from e
        return removed

    def stats(self) -> dict[str, int]:
        try:
            counts = self.db.table_counts()
            counts["listings"] = len(self.listings)
        except Exception as e:
            raise PersistenceError(message=f"Cache stats failed: {e}", code=ErrorCode.CI400) from e
        return counts
