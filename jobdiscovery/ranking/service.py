from __future__ import annotations

import logging
from datetime import datetime

from jobdiscovery.core.models import (
    TIER_BELOW,
    TIER_GOOD,
    TIER_GREAT,
    TIER_WORTH_A_LOOK,
    CandidateQuery,
    Posting,
    RankedResult,
    ScoredMatch,
)
from jobdiscovery.freshness.service import FreshnessClassifier
from jobdiscovery.scoring.service import ScoreMemo, score
from jobdiscovery.utils.config import FreshnessSettings, RankingSettings, ScoringSettings

logger = logging.getLogger(__name__)


def tier_for(final_score: float, settings: RankingSettings = RankingSettings()) -> str:
    """Scores under the worth-a-look cut-off only appear when a lower minimum lets them in."""
    if final_score >= settings.great_threshold:
        return TIER_GREAT
    if final_score >= settings.good_threshold:
        return TIER_GOOD
    if final_score >= settings.worth_a_look_threshold:
        return TIER_WORTH_A_LOOK
    return TIER_BELOW


def sort_key(match: ScoredMatch) -> tuple[float, float, str]:
    posted = match.posting.posted_date.timestamp() if match.posting.posted_date else float("-inf")
    return (-match.final_score, -posted, match.posting.id)


def sort_matches(matches: list[ScoredMatch]) -> list[ScoredMatch]:
    """Score descending, then newest first, then id ascending."""
    return sorted(matches, key=sort_key)


def filter_and_tier(matches: list[ScoredMatch], min_score: float, settings: RankingSettings = RankingSettings()) -> list[ScoredMatch]:
    kept = []
    for match in matches:
        if match.final_score < min_score:
            continue
        match.match_tier = tier_for(match.final_score, settings)
        kept.append(match)
    return sort_matches(kept)


class Ranker:
    def __init__(
        self,
        scoring: ScoringSettings | None = None,
        ranking: RankingSettings | None = None,
        freshness: FreshnessSettings | None = None,
        memo: ScoreMemo | None = None,
    ) -> None:
        self.scoring = scoring or ScoringSettings()
        self.ranking = ranking or RankingSettings()
        self.freshness_settings = freshness or FreshnessSettings()
        self.freshness = FreshnessClassifier(self.freshness_settings)
        self.memo = memo

    def rank(
        self,
        query: CandidateQuery,
        postings: list[Posting],
        now: datetime,
        min_score: float | None = None,
    ) -> RankedResult:
        threshold = self.ranking.min_match_score if min_score is None else min_score
        scored: list[ScoredMatch] = []
        expired = 0
        for posting in postings:
            freshness = self.freshness.classify(posting, now)
            if not freshness.valid:
                expired += 1
                continue
            scored.append(self._score(query, posting, now, freshness.days_old))

        ranked = filter_and_tier(scored, threshold, self.ranking)
        below = len(scored) - len(ranked)
        logger.info(
            "ranking_completed",
            extra={
                "extra_fields": {
                    "considered": len(postings),
                    "expired": expired,
                    "below_threshold": below,
                    "ranked": len(ranked),
                    "threshold": threshold,
                }
            },
        )
        return RankedResult(matches=ranked, considered=len(postings), expired=expired, below_threshold=below)

    def _score(self, query: CandidateQuery, posting: Posting, now: datetime, age_days: int) -> ScoredMatch:
        def compute() -> ScoredMatch:
            return score(query, posting, self.scoring.weights, now, self.scoring, self.freshness_settings)

        if self.memo is None:
            return compute()
        return self.memo.get_or_score(query, posting, age_days, compute)
