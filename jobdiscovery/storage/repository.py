from __future__ import annotations

import json
import sqlite3
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

from jobdiscovery.core.models import LIVENESS_STALE, SOURCE_INTERNAL, Posting
from jobdiscovery.dedupe.fingerprint import fingerprint

CACHE_EXPIRY_DAYS = 60


class JobRepository:
    """sqlite store shared by employer postings and the external-job cache.

    Employer postings have ``source = 'internal'``. Every other row is a cached
    external posting keyed by ``(external_id, source)`` where ``source`` is the
    provider label (``greenhouse``, ``hiring-cafe``...).
    """

    def __init__(self, db_path: str = "data/jobdiscovery.db") -> None:
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.lock = threading.Lock()
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS postings (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                source TEXT NOT NULL,
                external_id TEXT,
                external_url TEXT,
                title TEXT NOT NULL,
                company TEXT NOT NULL,
                fingerprint TEXT,
                description TEXT,
                skills TEXT,
                requirements TEXT,
                location TEXT,
                work_type TEXT,
                salary_min INTEGER,
                salary_max INTEGER,
                posted_date TEXT,
                expires_at TEXT,
                trust_score INTEGER,
                liveness_status TEXT,
                status TEXT DEFAULT 'active',
                employer_active INTEGER DEFAULT 1,
                first_seen TEXT,
                last_seen TEXT,
                UNIQUE (external_id, source)
            );
            CREATE INDEX IF NOT EXISTS idx_postings_source_posted ON postings (source, posted_date);
            CREATE INDEX IF NOT EXISTS idx_postings_fingerprint ON postings (fingerprint);
            """
        )
        self.conn.commit()

    def add_internal(self, posting: Posting, employer_active: bool = True) -> int:
        """Insert an employer posting. Used by the posting workflow and by tests."""
        with self.lock:
            cur = self.conn.execute(
                """
                INSERT INTO postings (
                    source, external_id, external_url, title, company, fingerprint, description,
                    skills, requirements, location, work_type, salary_min, salary_max,
                    posted_date, expires_at, trust_score, liveness_status, status,
                    employer_active, first_seen, last_seen
                ) VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
                """,
                (
                    SOURCE_INTERNAL,
                    None,
                    posting.external_url,
                    posting.title,
                    posting.company,
                    fingerprint(posting.company, posting.title),
                    posting.description,
                    json.dumps(posting.skills),
                    json.dumps(posting.requirements),
                    posting.location,
                    posting.work_type,
                    posting.salary_min,
                    posting.salary_max,
                    _iso(posting.posted_date),
                    _iso(posting.expires_at),
                    posting.trust_score,
                    posting.liveness_status,
                    "active",
                    1 if employer_active else 0,
                    _iso(posting.posted_date),
                    _iso(posting.posted_date),
                ),
            )
            self.conn.commit()
            return int(cur.lastrowid)

    def upsert_external(self, posting: Posting, now: datetime) -> None:
        """Idempotent upsert keyed by (external_id, provider)."""
        provider = posting.provider or posting.source
        if not posting.external_id:
            raise ValueError(f"posting {posting.id} has no external id")
        expires_at = posting.expires_at or now + timedelta(days=CACHE_EXPIRY_DAYS)
        with self.lock:
            self.conn.execute(
                """
                INSERT INTO postings (
                    source, external_id, external_url, title, company, fingerprint, description,
                    skills, requirements, location, work_type, salary_min, salary_max,
                    posted_date, expires_at, trust_score, liveness_status, status,
                    employer_active, first_seen, last_seen
                ) VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
                ON CONFLICT(external_id, source) DO UPDATE SET
                    external_url=excluded.external_url,
                    title=excluded.title,
                    company=excluded.company,
                    fingerprint=excluded.fingerprint,
                    description=excluded.description,
                    skills=excluded.skills,
                    requirements=excluded.requirements,
                    location=excluded.location,
                    work_type=excluded.work_type,
                    salary_min=excluded.salary_min,
                    salary_max=excluded.salary_max,
                    posted_date=excluded.posted_date,
                    expires_at=excluded.expires_at,
                    trust_score=excluded.trust_score,
                    liveness_status=excluded.liveness_status,
                    status='active',
                    last_seen=excluded.last_seen
                """,
                (
                    provider,
                    posting.external_id,
                    posting.external_url,
                    posting.title,
                    posting.company,
                    fingerprint(posting.company, posting.title),
                    posting.description,
                    json.dumps(posting.skills),
                    json.dumps(posting.requirements),
                    posting.location,
                    posting.work_type,
                    posting.salary_min,
                    posting.salary_max,
                    _iso(posting.posted_date),
                    _iso(expires_at),
                    posting.trust_score,
                    posting.liveness_status,
                    "active",
                    1,
                    _iso(now),
                    _iso(now),
                ),
            )
            self.conn.commit()

    def list_internal_active(self, skills: list[str] | None = None) -> list[sqlite3.Row]:
        with self.lock:
            rows = self.conn.execute(
                "SELECT * FROM postings WHERE source=? AND status='active' AND employer_active=1 ORDER BY id",
                (SOURCE_INTERNAL,),
            ).fetchall()
        return _with_skill_overlap(rows, skills)

    def list_cached_external(self, since: datetime, skills: list[str] | None = None) -> list[sqlite3.Row]:
        with self.lock:
            rows = self.conn.execute(
                """
                SELECT * FROM postings
                WHERE source != ? AND status='active' AND posted_date >= ?
                ORDER BY posted_date DESC, id
                """,
                (SOURCE_INTERNAL, _iso(since)),
            ).fetchall()
        return _with_skill_overlap(rows, skills)

    def external_fingerprints(self, fingerprints: list[str]) -> set[str]:
        if not fingerprints:
            return set()
        placeholders = ",".join("?" for _ in fingerprints)
        with self.lock:
            rows = self.conn.execute(
                f"SELECT DISTINCT fingerprint FROM postings WHERE source != ? AND status='active' AND fingerprint IN ({placeholders})",
                (SOURCE_INTERNAL, *fingerprints),
            ).fetchall()
        return {row["fingerprint"] for row in rows}

    def get_external(self, external_id: str, source: str) -> sqlite3.Row | None:
        with self.lock:
            return self.conn.execute(
                "SELECT * FROM postings WHERE external_id=? AND source=?",
                (external_id, source),
            ).fetchone()

    def count_external(self) -> int:
        with self.lock:
            row = self.conn.execute("SELECT COUNT(*) AS n FROM postings WHERE source != ?", (SOURCE_INTERNAL,)).fetchone()
        return int(row["n"])

    def expire_stale_postings(self, now: datetime) -> int:
        with self.lock:
            cur = self.conn.execute(
                """
                UPDATE postings SET status='closed', liveness_status=?
                WHERE source != ? AND status='active' AND expires_at IS NOT NULL AND expires_at < ?
                """,
                (LIVENESS_STALE, SOURCE_INTERNAL, _iso(now)),
            )
            self.conn.commit()
            return cur.rowcount

    def close(self) -> None:
        self.conn.close()


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).replace(microsecond=0).isoformat()


def _with_skill_overlap(rows: list[sqlite3.Row], skills: list[str] | None) -> list[sqlite3.Row]:
    """Keep rows sharing at least one skill (substring either way) with ``skills``."""
    wanted = [s.strip().lower() for s in skills or [] if s.strip()]
    if not wanted:
        return rows
    kept = []
    for row in rows:
        try:
            row_skills = [str(s).lower() for s in json.loads(row["skills"] or "[]")]
        except ValueError:
            # malformed skills still reach the adapter, which drops and counts them
            kept.append(row)
            continue
        if any(w == r or w in r or r in w for w in wanted for r in row_skills):
            kept.append(row)
    return kept
