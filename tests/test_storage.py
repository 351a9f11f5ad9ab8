from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path

from jobdiscovery.core.models import LIVENESS_ACTIVE, SOURCE_INTERNAL, SOURCE_LIVE, CandidateQuery, Posting
from jobdiscovery.sources.adapters import cached_posting_from_row
from jobdiscovery.sources.cached import CachedExternalSource
from jobdiscovery.sources.internal import InternalSource
from jobdiscovery.storage.cache_writer import CacheWriter
from jobdiscovery.storage.query_cache import QueryCache
from jobdiscovery.storage.repository import JobRepository

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def live(external_id: str, title: str = "Backend Engineer", company: str = "Stripe", days: float = 1, **kwargs) -> Posting:
    values = {
        "id": f"hiring-cafe:{external_id}",
        "source": SOURCE_LIVE,
        "title": title,
        "company": company,
        "skills": ["Python", "SQL"],
        "posted_date": NOW - timedelta(days=days),
        "external_id": external_id,
        "provider": "hiring-cafe",
        "external_url": f"https://example.com/{external_id}",
        "trust_score": 60,
    }
    values.update(kwargs)
    return Posting(**values)


def test_upsert_twice_leaves_one_row_with_latest_content(tmp_path: Path) -> None:
    repo = JobRepository(str(tmp_path / "jobs.db"))
    repo.upsert_external(live("1", description="first"), NOW)
    repo.upsert_external(live("1", description="second"), NOW + timedelta(hours=1))

    assert repo.count_external() == 1
    row = repo.get_external("1", "hiring-cafe")
    assert row["description"] == "second"
    assert row["first_seen"] == NOW.isoformat()
    assert row["last_seen"] == (NOW + timedelta(hours=1)).isoformat()


def test_cached_rows_filtered_by_window_and_skills(tmp_path: Path) -> None:
    repo = JobRepository(str(tmp_path / "jobs.db"))
    repo.upsert_external(live("fresh", days=2), NOW)
    repo.upsert_external(live("old", title="Data Engineer", days=30), NOW)
    repo.upsert_external(live("other", title="Welder", skills=["Welding"], days=1), NOW)

    rows = repo.list_cached_external(NOW - timedelta(days=16), ["python"])

    assert [row["external_id"] for row in rows] == ["fresh"]
    posting = cached_posting_from_row(rows[0])
    assert posting.provider == "hiring-cafe"
    assert posting.id == "hiring-cafe:fresh"
    assert posting.skills == ["Python", "SQL"]


def test_internal_rows_require_active_employer(tmp_path: Path) -> None:
    repo = JobRepository(str(tmp_path / "jobs.db"))
    base = Posting(
        id="new",
        source=SOURCE_INTERNAL,
        title="Platform Engineer",
        company="Acme",
        skills=["Go"],
        expires_at=NOW + timedelta(days=30),
        trust_score=100,
        liveness_status=LIVENESS_ACTIVE,
    )
    repo.add_internal(base)
    repo.add_internal(base, employer_active=False)

    assert len(repo.list_internal_active()) == 1


def test_expire_stale_postings_closes_only_expired_external_rows(tmp_path: Path) -> None:
    repo = JobRepository(str(tmp_path / "jobs.db"))
    repo.upsert_external(live("1"), NOW - timedelta(days=90))
    repo.upsert_external(live("2", title="Data Engineer"), NOW)

    assert repo.expire_stale_postings(NOW) == 1
    assert [row["external_id"] for row in repo.list_cached_external(NOW - timedelta(days=30))] == ["2"]


def test_cached_source_reports_store_failure_without_raising(tmp_path: Path) -> None:
    repo = JobRepository(str(tmp_path / "jobs.db"))
    repo.close()

    result = asyncio.run(CachedExternalSource(repo, clock=lambda: NOW).fetch(CandidateQuery(skills=["Python"])))

    assert result.postings == []
    assert result.error


def test_cache_writer_skips_known_fingerprints(tmp_path: Path) -> None:
    repo = JobRepository(str(tmp_path / "jobs.db"))
    repo.upsert_external(live("existing", title="Senior Backend Engineer"), NOW)
    writer = CacheWriter(repo, clock=lambda: NOW)

    async def go() -> bool:
        accepted = writer.submit([live("dup"), live("new", title="Data Engineer")])
        await writer.close()
        return accepted

    assert asyncio.run(go())
    assert writer.stats.written == 1
    assert writer.stats.skipped_known == 1
    assert repo.get_external("new", "hiring-cafe") is not None
    assert repo.get_external("dup", "hiring-cafe") is None


class BrokenRepository:
    def external_fingerprints(self, fingerprints: list[str]) -> set[str]:
        raise RuntimeError("disk full")


def test_cache_writer_failure_is_counted_not_raised() -> None:
    writer = CacheWriter(BrokenRepository(), clock=lambda: NOW)  # type: ignore[arg-type]

    async def go() -> None:
        writer.submit([live("1")])
        await writer.close()

    asyncio.run(go())
    assert writer.stats.failed == 1
    assert writer.stats.written == 0


def test_cache_writer_drops_when_queue_full(tmp_path: Path) -> None:
    writer = CacheWriter(JobRepository(str(tmp_path / "jobs.db")), queue_size=1, clock=lambda: NOW)

    async def go() -> list[bool]:
        outcomes = [writer.submit([live("1")]), writer.submit([live("2", title="Data Engineer")])]
        await writer.close()
        return outcomes

    assert asyncio.run(go()) == [True, False]
    assert writer.stats.dropped == 1


def test_query_cache_ttl_and_invalidation() -> None:
    ticks = [0.0]
    cache: QueryCache[str] = QueryCache(ttl_seconds=30, clock=lambda: ticks[0])
    cache.set("a", "response-a")
    cache.set("b", "response-b")
    assert cache.get("a") == "response-a"

    ticks[0] = 31.0
    assert cache.get("a") is None

    cache.set("c", "response-c")
    assert cache.invalidate("c") == 1
    assert cache.get("c") is None
    cache.set("d", "response-d")
    assert cache.invalidate() == 1
    assert len(cache) == 0


def test_query_cache_disabled_with_zero_ttl() -> None:
    cache: QueryCache[str] = QueryCache(ttl_seconds=0)
    cache.set("a", "response-a")
    assert cache.get("a") is None


def test_internal_source_drops_malformed_rows(tmp_path: Path) -> None:
    repo = JobRepository(str(tmp_path / "jobs.db"))
    good = Posting(id="a", source=SOURCE_INTERNAL, title="Platform Engineer", company="Acme", skills=["Python"], expires_at=NOW + timedelta(days=30))
    repo.add_internal(good)
    bad_id = repo.add_internal(good)
    repo.conn.execute("UPDATE postings SET skills='{not json' WHERE id=?", (bad_id,))

    result = asyncio.run(InternalSource(repo).fetch(CandidateQuery(skills=["Python"])))

    assert len(result.postings) == 1
    assert result.dropped == 1
    assert not result.failed


def test_cached_source_drops_malformed_rows(tmp_path: Path) -> None:
    repo = JobRepository(str(tmp_path / "jobs.db"))
    repo.upsert_external(live("1"), NOW)
    repo.upsert_external(live("2", title="Data Engineer"), NOW)
    repo.conn.execute("UPDATE postings SET title='' WHERE external_id='2'")

    result = asyncio.run(CachedExternalSource(repo, clock=lambda: NOW).fetch(CandidateQuery(skills=["Python"])))

    assert [p.external_id for p in result.postings] == ["1"]
    assert result.dropped == 1
    assert result.error is None


def test_expired_rows_do_not_block_recaching(tmp_path: Path) -> None:
    repo = JobRepository(str(tmp_path / "jobs.db"))
    repo.upsert_external(live("old"), NOW - timedelta(days=90))
    assert repo.expire_stale_postings(NOW) == 1
    writer = CacheWriter(repo, clock=lambda: NOW)

    async def go() -> None:
        writer.submit([live("reposted")])
        await writer.close()

    asyncio.run(go())
    assert writer.stats.written == 1
    assert writer.stats.skipped_known == 0
    rows = repo.list_cached_external(NOW - timedelta(days=16))
    assert [row["external_id"] for row in rows] == ["reposted"]
