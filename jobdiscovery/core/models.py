from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

SOURCE_INTERNAL = "internal"
SOURCE_CACHED = "cached-external"
SOURCE_LIVE = "live-discovery"
SOURCES = (SOURCE_INTERNAL, SOURCE_CACHED, SOURCE_LIVE)

LIVENESS_ACTIVE = "active"
LIVENESS_STALE = "stale"
LIVENESS_UNKNOWN = "unknown"

WORK_TYPES = ("remote", "hybrid", "onsite")

TIER_GREAT = "great"
TIER_GOOD = "good"
TIER_WORTH_A_LOOK = "worth-a-look"
TIER_BELOW = "below-threshold"

LABEL_JUST_POSTED = "just-posted"
LABEL_THIS_WEEK = "this-week"
LABEL_RECENT = "recent"
LABEL_STALE = "stale"


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(slots=True)
class Posting:
    id: str
    source: str
    title: str
    company: str
    description: str = ""
    skills: list[str] = field(default_factory=list)
    requirements: list[str] = field(default_factory=list)
    location: str = ""
    work_type: str = "onsite"
    salary_min: int | None = None
    salary_max: int | None = None
    posted_date: datetime | None = None
    expires_at: datetime | None = None
    external_id: str | None = None
    provider: str | None = None
    external_url: str | None = None
    trust_score: int = 50
    liveness_status: str = LIVENESS_UNKNOWN

    @property
    def is_internal(self) -> bool:
        return self.source == SOURCE_INTERNAL

    @property
    def key(self) -> str:
        if self.is_internal or not self.external_id:
            return self.id
        return f"{self.provider or self.source}:{self.external_id}"

    def is_valid(self) -> bool:
        """Internal postings carry an expiry; everything else carries a posted date."""
        if self.source not in SOURCES:
            return False
        if self.is_internal:
            return self.expires_at is not None
        return self.posted_date is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "provider": self.provider,
            "externalId": self.external_id,
            "externalUrl": self.external_url,
            "title": self.title,
            "company": self.company,
            "description": self.description,
            "skills": list(self.skills),
            "requirements": list(self.requirements),
            "location": self.location,
            "workType": self.work_type,
            "salaryMin": self.salary_min,
            "salaryMax": self.salary_max,
            "postedDate": self.posted_date.isoformat() if self.posted_date else None,
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
            "trustScore": self.trust_score,
            "livenessStatus": self.liveness_status,
        }


@dataclass(slots=True)
class CandidateQuery:
    skills: list[str]
    title: str | None = None
    location: str | None = None
    work_type: str | None = None
    min_salary: int | None = None
    candidate_id: str = "anonymous"

    def signature(self) -> str:
        payload = {
            "skills": sorted({s.strip().lower() for s in self.skills if s.strip()}),
            "title": (self.title or "").strip().lower(),
            "location": (self.location or "").strip().lower(),
            "work_type": (self.work_type or "").strip().lower(),
            "min_salary": self.min_salary,
        }
        raw = json.dumps(payload, sort_keys=True)
        return hashlib.sha1(raw.encode("utf-8")).hexdigest()[:16]

    def search_terms(self, max_skills: int = 3) -> str:
        if self.title and self.title.strip():
            return self.title.strip()
        return " ".join(s.strip() for s in self.skills[:max_skills] if s.strip())


@dataclass(slots=True)
class DiscoveryRequest:
    query: CandidateQuery
    max_external_jobs: int | None = None
    min_match_score: int | None = None

    def signature(self) -> str:
        return f"{self.query.signature()}:{self.max_external_jobs}:{self.min_match_score}"

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> DiscoveryRequest:
        """Build a request from the camelCase request body.

        ``skills`` may be a list or a comma separated string. Numeric fields accept
        ints or digit strings; anything else raises ``ValueError``.
        """
        skills = payload.get("skills") or []
        if isinstance(skills, str):
            skills = [s.strip() for s in skills.split(",") if s.strip()]
        if not isinstance(skills, list):
            raise ValueError("skills must be a list or a comma separated string")
        min_match_score = _request_int(payload, "minMatchScore")
        if min_match_score is not None and not 0 <= min_match_score <= 100:
            raise ValueError("minMatchScore must be between 0 and 100")
        max_external_jobs = _request_int(payload, "maxExternalJobs")
        if max_external_jobs is not None and max_external_jobs < 0:
            raise ValueError("maxExternalJobs must not be negative")
        query = CandidateQuery(
            skills=[str(s).strip() for s in skills if str(s).strip()],
            title=payload.get("jobTitle") or payload.get("title"),
            location=payload.get("location"),
            work_type=payload.get("workType"),
            min_salary=_request_int(payload, "minSalary"),
            candidate_id=str(payload.get("candidateId") or "anonymous"),
        )
        return cls(query=query, max_external_jobs=max_external_jobs, min_match_score=min_match_score)


def _request_int(payload: dict[str, Any], key: str) -> int | None:
    value = payload.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"{key} must be an integer")
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer") from exc


@dataclass(slots=True, frozen=True)
class Freshness:
    days_old: int
    label: str
    valid: bool


@dataclass(slots=True)
class ScoredMatch:
    posting: Posting
    semantic_relevance: float
    recency: float
    liveness: float
    personalization: float
    final_score: float
    days_old: int
    freshness_label: str
    skill_matches: list[str] = field(default_factory=list)
    match_tier: str = TIER_BELOW

    @property
    def match_score(self) -> int:
        return int(round(self.final_score * 100))

    def to_dict(self) -> dict[str, Any]:
        payload = self.posting.to_dict()
        payload.update(
            {
                "matchScore": self.match_score,
                "matchTier": self.match_tier,
                "freshnessLabel": self.freshness_label,
                "daysOld": self.days_old,
                "skillMatches": list(self.skill_matches),
                "scores": {
                    "semanticRelevance": round(self.semantic_relevance, 4),
                    "recency": round(self.recency, 4),
                    "liveness": round(self.liveness, 4),
                    "personalization": round(self.personalization, 4),
                    "finalScore": round(self.final_score, 4),
                },
            }
        )
        return payload


@dataclass(slots=True)
class FetchResult:
    source: str
    postings: list[Posting] = field(default_factory=list)
    error: str | None = None
    incomplete: bool = False
    dropped: int = 0

    @property
    def failed(self) -> bool:
        return self.error is not None or self.incomplete


@dataclass(slots=True)
class AggregateResult:
    postings: list[Posting]
    source_counts: dict[str, int]
    failed_sources: list[str]
    invalid: int = 0
    merged: int = 0
    dropped: int = 0

    @property
    def partial(self) -> bool:
        return bool(self.failed_sources)


@dataclass(slots=True)
class RankedResult:
    matches: list[ScoredMatch]
    considered: int = 0
    expired: int = 0
    below_threshold: int = 0


@dataclass(slots=True)
class Sections:
    direct: list[ScoredMatch]
    discovered: list[ScoredMatch]
    discovered_total: int = 0


@dataclass(slots=True)
class DiscoveryResponse:
    direct: list[ScoredMatch]
    discovered: list[ScoredMatch]
    metadata: dict[str, Any]

    @property
    def partial(self) -> bool:
        return bool(self.metadata.get("partial"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "direct": [m.to_dict() for m in self.direct],
            "discovered": [m.to_dict() for m in self.discovered],
            "metadata": dict(self.metadata),
        }
