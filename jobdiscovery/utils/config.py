from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


class ConfigError(RuntimeError):
    pass


DEFAULT_TRUST_SCORES = {
    "greenhouse": 95,
    "lever": 95,
    "workday": 90,
    "company-api": 95,
    "usajobs": 85,
    "remoteok": 75,
    "jsearch": 70,
    "themuse": 70,
    "arbeitnow": 65,
    "hiring-cafe": 60,
    "default": 50,
}


def load_config(path: str | Path) -> dict[str, Any]:
    cfg_path = Path(path)
    if not cfg_path.exists():
        raise ConfigError(f"Config not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}
    if not isinstance(loaded, dict):
        raise ConfigError("Config root must be a mapping")
    return loaded


@dataclass(slots=True, frozen=True)
class ScoringWeights:
    semantic_relevance: float = 0.45
    recency: float = 0.25
    liveness: float = 0.20
    personalization: float = 0.10

    def validate(self) -> None:
        values = (self.semantic_relevance, self.recency, self.liveness, self.personalization)
        if any(v < 0 or v > 1 for v in values):
            raise ConfigError("Scoring weights must be between 0 and 1")
        if abs(sum(values) - 1.0) > 1e-6:
            raise ConfigError(f"Scoring weights must sum to 1.0, got {sum(values):.4f}")


@dataclass(slots=True, frozen=True)
class PersonalizationWeights:
    location: float = 0.40
    work_type: float = 0.35
    compensation: float = 0.25

    def validate(self) -> None:
        total = self.location + self.work_type + self.compensation
        if total <= 0:
            raise ConfigError("Personalization weights must have a positive sum")


@dataclass(slots=True, frozen=True)
class ScoringSettings:
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    personalization: PersonalizationWeights = field(default_factory=PersonalizationWeights)
    recency_half_life_days: float = 7.0


@dataclass(slots=True, frozen=True)
class RankingSettings:
    min_match_score: float = 0.40
    great_threshold: float = 0.75
    good_threshold: float = 0.50
    worth_a_look_threshold: float = 0.40
    max_external_jobs: int = 20


@dataclass(slots=True, frozen=True)
class FreshnessSettings:
    external_window_days: int = 15
    just_posted_days: int = 3
    this_week_days: int = 7
    recent_days: int = 15


@dataclass(slots=True, frozen=True)
class LiveDiscoverySettings:
    enabled: bool = True
    url: str = "https://hiring.cafe/api/search-jobs"
    provider: str = "hiring-cafe"
    page_size: int = 1000
    max_pages: int = 2
    timeout_seconds: float = 15.0
    freshness_days: int = 15
    locations: list[str] = field(default_factory=lambda: ["United States"])
    workplace_types: list[str] = field(default_factory=lambda: ["Remote", "Hybrid", "Onsite"])
    commitment_types: list[str] = field(default_factory=lambda: ["Full Time", "Part Time", "Contract"])
    headers: dict[str, str] = field(
        default_factory=lambda: {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "Mozilla/5.0 (compatible; jobdiscovery/0.1)",
        }
    )
    description_limit: int = 5000


@dataclass(slots=True, frozen=True)
class DiscoverySettings:
    scoring: ScoringSettings = field(default_factory=ScoringSettings)
    ranking: RankingSettings = field(default_factory=RankingSettings)
    freshness: FreshnessSettings = field(default_factory=FreshnessSettings)
    live_discovery: LiveDiscoverySettings = field(default_factory=LiveDiscoverySettings)
    trust_scores: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_TRUST_SCORES))
    db_path: str = "data/jobdiscovery.db"
    cache_writer_queue_size: int = 100
    query_cache_ttl_seconds: float = 30.0
    log_dir: str = "data/logs"
    log_level: str = "INFO"

    def trust_for(self, provider: str | None) -> int:
        scores = self.trust_scores
        return int(scores.get((provider or "").lower(), scores.get("default", 50)))

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> DiscoverySettings:
        scoring_cfg = _section(config, "scoring")
        try:
            weights = ScoringWeights(**_section(scoring_cfg, "weights"))
            personalization = PersonalizationWeights(**_section(scoring_cfg, "personalization"))
            scoring = ScoringSettings(
                weights=weights,
                personalization=personalization,
                recency_half_life_days=float(scoring_cfg.get("recency_half_life_days", 7.0)),
            )
            ranking = RankingSettings(**_section(config, "ranking"))
            freshness = FreshnessSettings(**_section(config, "freshness"))
            live = LiveDiscoverySettings(**_section(config, "live_discovery"))
        except TypeError as exc:
            raise ConfigError(f"Unknown config key: {exc}") from exc

        weights.validate()
        personalization.validate()
        if scoring.recency_half_life_days <= 0:
            raise ConfigError("recency_half_life_days must be positive")
        if not ranking.worth_a_look_threshold <= ranking.good_threshold <= ranking.great_threshold:
            raise ConfigError("Ranking thresholds must satisfy worth_a_look <= good <= great")
        if not 0 <= ranking.min_match_score <= ranking.good_threshold:
            raise ConfigError("min_match_score must be between 0 and good_threshold")
        if ranking.max_external_jobs < 0:
            raise ConfigError("max_external_jobs must not be negative")
        if live.page_size <= 0 or live.max_pages <= 0 or live.timeout_seconds <= 0:
            raise ConfigError("live_discovery page_size, max_pages and timeout_seconds must be positive")

        trust_scores = dict(DEFAULT_TRUST_SCORES)
        trust_scores.update({str(k).lower(): int(v) for k, v in _section(config, "trust_scores").items()})

        storage = _section(config, "storage")
        writer = _section(config, "cache_writer")
        query_cache = _section(config, "query_cache")
        logging_cfg = _section(config, "logging")
        return cls(
            scoring=scoring,
            ranking=ranking,
            freshness=freshness,
            live_discovery=live,
            trust_scores=trust_scores,
            db_path=str(storage.get("db_path", "data/jobdiscovery.db")),
            cache_writer_queue_size=int(writer.get("queue_size", 100)),
            query_cache_ttl_seconds=float(query_cache.get("ttl_seconds", 30.0)),
            log_dir=str(logging_cfg.get("log_dir", "data/logs")),
            log_level=str(logging_cfg.get("level", "INFO")),
        )


def _section(config: dict[str, Any], name: str) -> dict[str, Any]:
    value = config.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping")
    return value
