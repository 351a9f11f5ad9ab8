from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from jobdiscovery.core.errors import SourceFatal
from jobdiscovery.core.models import (
    SOURCE_CACHED,
    SOURCE_INTERNAL,
    SOURCE_LIVE,
    CandidateQuery,
    FetchResult,
    Posting,
)
from jobdiscovery.dedupe.fingerprint import fingerprint
from jobdiscovery.dedupe.service import Aggregator, DedupeService

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def mkposting(posting_id: str, source: str, company: str = "Stripe", title: str = "Backend Engineer", trust: int = 50) -> Posting:
    posting = Posting(id=posting_id, source=source, title=title, company=company, trust_score=trust)
    if source == SOURCE_INTERNAL:
        posting.expires_at = NOW + timedelta(days=10)
    else:
        posting.posted_date = NOW - timedelta(days=1)
        posting.external_id = posting_id
        posting.provider = "greenhouse" if source == SOURCE_CACHED else "hiring-cafe"
    return posting


class FakeFetcher:
    def __init__(self, source: str, result: FetchResult | None = None, error: Exception | None = None) -> None:
        self.source = source
        self.result = result
        self.error = error

    async def fetch(self, query: CandidateQuery) -> FetchResult:
        if self.error:
            raise self.error
        return self.result


def test_fingerprint_drops_seniority_and_punctuation() -> None:
    assert fingerprint("Stripe", "Senior Backend Engineer") == "stripe_backendengineer"
    assert fingerprint("Stripe, Inc.", "Backend-Engineer (Lead)") == "stripeinc_backendengineer"
    assert fingerprint("Stripe", "Staff Backend Engineer") == fingerprint("stripe", "Backend Engineer")


def test_higher_trust_duplicate_is_kept() -> None:
    low = mkposting("cached-1", SOURCE_CACHED, title="Senior Backend Engineer", trust=60)
    high = mkposting("live-1", SOURCE_LIVE, title="Backend Engineer", trust=95)

    unique, merged = DedupeService.dedupe([low, high])

    assert unique == [high]
    assert merged == 1


def test_trust_tie_keeps_first_seen() -> None:
    first = mkposting("a", SOURCE_CACHED, trust=70)
    second = mkposting("b", SOURCE_LIVE, trust=70)
    unique, _ = DedupeService.dedupe([first, second])
    assert unique == [first]


def test_internal_postings_are_never_merged_away() -> None:
    internal_a = mkposting("internal:1", SOURCE_INTERNAL, trust=10)
    internal_b = mkposting("internal:2", SOURCE_INTERNAL, trust=10)
    external = mkposting("ext", SOURCE_LIVE, trust=100)

    unique, merged = DedupeService.dedupe([external, internal_a, internal_b])

    assert unique == [internal_a, internal_b]
    assert merged == 1


def test_dedupe_is_idempotent() -> None:
    postings = [
        mkposting("a", SOURCE_CACHED, trust=40),
        mkposting("b", SOURCE_LIVE, trust=80),
        mkposting("c", SOURCE_LIVE, company="Plaid"),
        mkposting("internal:1", SOURCE_INTERNAL, company="Acme"),
    ]
    once, _ = DedupeService.dedupe(postings)
    twice, merged = DedupeService.dedupe(once)
    assert twice == once
    assert merged == 0


def test_aggregator_isolates_non_internal_failures() -> None:
    fetchers = [
        FakeFetcher(SOURCE_INTERNAL, FetchResult(SOURCE_INTERNAL, [mkposting("internal:1", SOURCE_INTERNAL, company="Acme")])),
        FakeFetcher(SOURCE_CACHED, error=RuntimeError("cache offline")),
        FakeFetcher(SOURCE_LIVE, FetchResult(SOURCE_LIVE, [mkposting("live-1", SOURCE_LIVE)], incomplete=True)),
    ]

    result = asyncio.run(Aggregator(fetchers).aggregate(CandidateQuery(skills=["Go"])))

    assert [p.id for p in result.postings] == ["internal:1", "live-1"]
    assert result.partial
    assert result.failed_sources == [SOURCE_CACHED, SOURCE_LIVE]
    assert result.source_counts == {SOURCE_INTERNAL: 1, SOURCE_CACHED: 0, SOURCE_LIVE: 1}


def test_aggregator_drops_and_counts_invalid_postings() -> None:
    missing_date = Posting(id="x", source=SOURCE_LIVE, title="Cook", company="Diner")
    missing_expiry = Posting(id="internal:9", source=SOURCE_INTERNAL, title="Cook", company="Diner")
    fetchers = [
        FakeFetcher(SOURCE_INTERNAL, FetchResult(SOURCE_INTERNAL, [missing_expiry])),
        FakeFetcher(SOURCE_LIVE, FetchResult(SOURCE_LIVE, [missing_date, mkposting("ok", SOURCE_LIVE)], dropped=2)),
    ]

    result = asyncio.run(Aggregator(fetchers).aggregate(CandidateQuery(skills=[])))

    assert [p.id for p in result.postings] == ["ok"]
    assert result.invalid == 2
    assert result.dropped == 2
    assert not result.partial


def test_aggregator_internal_failure_is_fatal() -> None:
    fetchers = [
        FakeFetcher(SOURCE_INTERNAL, error=RuntimeError("db down")),
        FakeFetcher(SOURCE_LIVE, FetchResult(SOURCE_LIVE, [mkposting("live-1", SOURCE_LIVE)])),
    ]
    with pytest.raises(SourceFatal):
        asyncio.run(Aggregator(fetchers).aggregate(CandidateQuery(skills=["Go"])))
