from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from jobdiscovery.core.models import (
    LIVENESS_ACTIVE,
    SOURCE_CACHED,
    SOURCE_INTERNAL,
    SOURCE_LIVE,
    TIER_BELOW,
    TIER_GOOD,
    TIER_GREAT,
    TIER_WORTH_A_LOOK,
    CandidateQuery,
    Posting,
    ScoredMatch,
)
from jobdiscovery.ranking.sections import Sectioner
from jobdiscovery.ranking.service import Ranker, filter_and_tier, sort_matches, tier_for
from jobdiscovery.utils.config import RankingSettings

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def mkposting(posting_id: str, source: str = SOURCE_CACHED, days: float = 1, **kwargs) -> Posting:
    values = {
        "id": posting_id,
        "source": source,
        "title": f"Engineer {posting_id}",
        "company": f"Company {posting_id}",
        "skills": ["Python"],
        "posted_date": NOW - timedelta(days=days),
        "trust_score": 90,
        "liveness_status": LIVENESS_ACTIVE,
    }
    if source == SOURCE_INTERNAL:
        values["expires_at"] = NOW + timedelta(days=30)
    else:
        values["external_id"] = posting_id
        values["provider"] = "greenhouse"
    values.update(kwargs)
    return Posting(**values)


def mkmatch(final_score: float, posting: Posting | None = None) -> ScoredMatch:
    return ScoredMatch(
        posting=posting or mkposting(f"p{final_score}"),
        semantic_relevance=final_score,
        recency=final_score,
        liveness=final_score,
        personalization=final_score,
        final_score=final_score,
        days_old=1,
        freshness_label="just-posted",
    )


@pytest.mark.parametrize(
    ("final_score", "tier"),
    [
        (0.75, TIER_GREAT),
        (0.749, TIER_GOOD),
        (0.50, TIER_GOOD),
        (0.499, TIER_WORTH_A_LOOK),
        (0.40, TIER_WORTH_A_LOOK),
        (0.399, TIER_BELOW),
    ],
)
def test_tier_boundaries(final_score: float, tier: str) -> None:
    assert tier_for(final_score) == tier


def test_threshold_boundary_excludes_399_includes_40() -> None:
    kept = filter_and_tier([mkmatch(0.399), mkmatch(0.40), mkmatch(0.9)], min_score=0.40)
    assert [m.final_score for m in kept] == [0.9, 0.40]
    assert all(m.final_score >= 0.40 for m in kept)
    assert kept[-1].match_tier == TIER_WORTH_A_LOOK


def test_sort_breaks_ties_by_newer_then_id() -> None:
    older = mkmatch(0.6, mkposting("a", days=5))
    newer = mkmatch(0.6, mkposting("z", days=1))
    same_day_b = mkmatch(0.6, mkposting("b", days=5))
    best = mkmatch(0.8, mkposting("c", days=9))

    ordered = sort_matches([same_day_b, older, newer, best])

    assert [m.posting.id for m in ordered] == ["c", "z", "a", "b"]
    scores = [m.final_score for m in ordered]
    assert all(a >= b for a, b in zip(scores, scores[1:]))


def test_ranker_drops_invalid_before_scoring_and_sorts() -> None:
    postings = [
        mkposting("fresh", days=1),
        mkposting("old-external", days=20),
        mkposting("expired-internal", source=SOURCE_INTERNAL, expires_at=NOW - timedelta(days=1)),
        mkposting("old-internal", source=SOURCE_INTERNAL, days=40),
        mkposting("irrelevant", days=1, skills=["Welding"], liveness_status="stale", trust_score=0),
    ]

    result = Ranker().rank(CandidateQuery(skills=["Python"]), postings, NOW)

    ids = [m.posting.id for m in result.matches]
    assert "old-external" not in ids
    assert "expired-internal" not in ids
    assert "old-internal" in ids
    assert "irrelevant" not in ids
    assert result.expired == 2
    assert result.below_threshold == 1
    scores = [m.final_score for m in result.matches]
    assert all(a >= b for a, b in zip(scores, scores[1:]))
    assert all(m.match_tier != TIER_BELOW for m in result.matches)


def test_ranker_respects_min_score_override() -> None:
    postings = [mkposting("a", days=1), mkposting("b", days=1, skills=["Welding"])]
    strict = Ranker().rank(CandidateQuery(skills=["Python"]), postings, NOW, min_score=0.95)
    loose = Ranker().rank(CandidateQuery(skills=["Python"]), postings, NOW, min_score=0.0)
    assert len(strict.matches) < len(loose.matches) == 2


def test_sectioner_caps_only_discovered_view() -> None:
    direct = [mkmatch(0.41 + i * 0.001, mkposting(f"int-{i:02d}", source=SOURCE_INTERNAL)) for i in range(25)]
    external = [mkmatch(0.5 + i * 0.01, mkposting(f"ext-{i:02d}", source=SOURCE_LIVE)) for i in range(30)]

    sections = Sectioner(max_external_jobs=20).split(sort_matches(direct + external))

    assert len(sections.direct) == 25
    assert len(sections.discovered) == 20
    assert sections.discovered_total == 30
    top_scores = sorted((m.final_score for m in external), reverse=True)[:20]
    assert [m.final_score for m in sections.discovered] == top_scores
    assert all(m.posting.is_internal for m in sections.direct)


def test_sectioner_request_override() -> None:
    external = [mkmatch(0.6, mkposting(f"ext-{i}")) for i in range(5)]
    assert len(Sectioner(20).split(external, max_external_jobs=2).discovered) == 2
    assert Sectioner(20).split([], max_external_jobs=2).direct == []


def test_worth_a_look_cut_off_follows_settings() -> None:
    settings = RankingSettings(min_match_score=0.30, worth_a_look_threshold=0.30)
    kept = filter_and_tier([mkmatch(0.35), mkmatch(0.25)], min_score=settings.min_match_score, settings=settings)
    assert [(m.final_score, m.match_tier) for m in kept] == [(0.35, TIER_WORTH_A_LOOK)]

    lowered = filter_and_tier([mkmatch(0.35)], min_score=0.30)
    assert lowered[0].match_tier == TIER_BELOW
