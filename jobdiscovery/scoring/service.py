from __future__ import annotations

from collections import OrderedDict
from datetime import datetime
from typing import Callable

from jobdiscovery.core.models import (
    LIVENESS_ACTIVE,
    LIVENESS_STALE,
    CandidateQuery,
    Posting,
    ScoredMatch,
)
from jobdiscovery.freshness.service import days_old, label_for
from jobdiscovery.utils.config import FreshnessSettings, PersonalizationWeights, ScoringSettings, ScoringWeights
from jobdiscovery.utils.text import normalize_skill, normalize_work_type

LIVENESS_BASE = {LIVENESS_ACTIVE: 1.0, LIVENESS_STALE: 0.1}
LIVENESS_BASE_UNKNOWN = 0.5
NEUTRAL = 0.5


def clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def matched_skills(candidate_skills: list[str], posting_skills: list[str]) -> list[str]:
    wanted = {normalize_skill(s) for s in candidate_skills}
    wanted.discard("")
    matched: list[str] = []
    seen: set[str] = set()
    for skill in posting_skills:
        token = normalize_skill(skill)
        if not token or token in seen:
            continue
        seen.add(token)
        if any(w == token or w in token or token in w for w in wanted):
            matched.append(skill)
    return matched


def semantic_relevance(matched: list[str], posting_skills: list[str]) -> float:
    distinct = {normalize_skill(s) for s in posting_skills} - {""}
    return clamp(len(matched) / max(len(distinct), 1))


def recency_score(age_days: float, half_life_days: float = 7.0) -> float:
    return clamp(0.5 ** (max(0.0, age_days) / half_life_days))


def liveness_score(status: str, trust_score: int) -> float:
    base = LIVENESS_BASE.get(status, LIVENESS_BASE_UNKNOWN)
    trust = max(0, min(100, trust_score)) / 100
    return clamp(base * (0.5 + 0.5 * trust))


def location_fit(preferred: str | None, posting: Posting) -> float:
    if not preferred or not preferred.strip():
        return NEUTRAL
    wanted = preferred.strip().lower()
    where = (posting.location or "").lower()
    if posting.work_type == "remote" or "remote" in where:
        return 1.0
    if wanted == "remote":
        return 0.6 if posting.work_type == "hybrid" else 0.2
    if where and (wanted in where or where in wanted):
        return 1.0
    return 0.3


def work_type_fit(preferred: str | None, posting: Posting) -> float:
    wanted = normalize_work_type(preferred)
    if not wanted:
        return 0.7
    if wanted == posting.work_type:
        return 1.0
    if wanted == "hybrid" or posting.work_type == "hybrid":
        return 0.8
    if posting.work_type == "remote":
        return 0.9
    return 0.4


def compensation_fit(floor: int | None, posting: Posting) -> float:
    top = posting.salary_max or posting.salary_min
    if not floor or floor <= 0 or not top:
        return NEUTRAL
    if top >= floor:
        return 1.0
    return clamp(top / floor)


def personalization_score(
    query: CandidateQuery,
    posting: Posting,
    weights: PersonalizationWeights = PersonalizationWeights(),
) -> float:
    total = weights.location + weights.work_type + weights.compensation
    blended = (
        weights.location * location_fit(query.location, posting)
        + weights.work_type * work_type_fit(query.work_type, posting)
        + weights.compensation * compensation_fit(query.min_salary, posting)
    )
    return clamp(blended / total)


def score(
    query: CandidateQuery,
    posting: Posting,
    weights: ScoringWeights,
    now: datetime,
    settings: ScoringSettings | None = None,
    freshness: FreshnessSettings | None = None,
) -> ScoredMatch:
    """Hybrid relevance of one posting for one candidate.

    Pure: the same inputs always give the same match. Postings without a posted
    date count as brand new.
    """
    settings = settings or ScoringSettings()
    whole_days = days_old(posting.posted_date, now) if posting.posted_date else 0

    matched = matched_skills(query.skills, posting.skills)
    semantic = semantic_relevance(matched, posting.skills)
    recency = recency_score(whole_days, settings.recency_half_life_days)
    liveness = liveness_score(posting.liveness_status, posting.trust_score)
    personalization = personalization_score(query, posting, settings.personalization)
    final = (
        weights.semantic_relevance * semantic
        + weights.recency * recency
        + weights.liveness * liveness
        + weights.personalization * personalization
    )
    return ScoredMatch(
        posting=posting,
        semantic_relevance=semantic,
        recency=recency,
        liveness=liveness,
        personalization=personalization,
        final_score=round(clamp(final), 10),
        days_old=whole_days,
        freshness_label=label_for(whole_days, freshness or FreshnessSettings()),
        skill_matches=matched,
    )


class ScoreMemo:
    """Scoped memoization of scores.

    Entries are grouped by (candidate id, query signature) and then keyed by posting
    key and age in whole days. At most ``max_scopes`` scopes are kept, least recently
    used first out, and each scope holds at most ``max_entries`` scores. Callers can
    drop a scope early with ``forget`` or everything with ``clear``.
    """

    def __init__(self, max_scopes: int = 128, max_entries: int = 2000) -> None:
        self.max_scopes = max_scopes
        self.max_entries = max_entries
        self._scopes: OrderedDict[tuple[str, str], OrderedDict[tuple[str, int], ScoredMatch]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._scopes)

    def get_or_score(
        self,
        query: CandidateQuery,
        posting: Posting,
        age_days: int,
        compute: Callable[[], ScoredMatch],
    ) -> ScoredMatch:
        scope = self._scope(query)
        key = (posting.key, age_days)
        cached = scope.get(key)
        if cached is not None and cached.posting == posting:
            self.hits += 1
            return cached
        self.misses += 1
        match = compute()
        scope[key] = match
        while len(scope) > self.max_entries:
            scope.popitem(last=False)
        return match

    def _scope(self, query: CandidateQuery) -> OrderedDict[tuple[str, int], ScoredMatch]:
        scope_key = (query.candidate_id, query.signature())
        scope = self._scopes.get(scope_key)
        if scope is None:
            scope = self._scopes[scope_key] = OrderedDict()
            while len(self._scopes) > self.max_scopes:
                self._scopes.popitem(last=False)
        else:
            self._scopes.move_to_end(scope_key)
        return scope

    def forget(self, query: CandidateQuery) -> None:
        self._scopes.pop((query.candidate_id, query.signature()), None)

    def clear(self) -> None:
        self._scopes.clear()
