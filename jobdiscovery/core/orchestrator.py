from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable

import httpx

from jobdiscovery.core.models import (
    SOURCE_CACHED,
    SOURCE_INTERNAL,
    SOURCE_LIVE,
    DiscoveryRequest,
    DiscoveryResponse,
    ScoredMatch,
    utc_now,
)
from jobdiscovery.dedupe.service import Aggregator
from jobdiscovery.ranking.sections import Sectioner
from jobdiscovery.ranking.service import Ranker
from jobdiscovery.scoring.service import ScoreMemo
from jobdiscovery.sources.base import SourceFetcher
from jobdiscovery.sources.cached import CachedExternalSource
from jobdiscovery.sources.internal import InternalSource
from jobdiscovery.sources.live import LiveDiscoverySource
from jobdiscovery.storage.cache_writer import CacheWriter
from jobdiscovery.storage.query_cache import QueryCache
from jobdiscovery.storage.repository import JobRepository
from jobdiscovery.utils.config import DiscoverySettings

logger = logging.getLogger(__name__)

PARTIAL_NOTE = "Showing cached/partial results; retry later for live discovery results."


class DiscoveryOrchestrator:
    """Public entry point: fan out, merge, rank, split and hand off cache writes."""

    def __init__(
        self,
        settings: DiscoverySettings,
        repository: JobRepository | None = None,
        fetchers: list[SourceFetcher] | None = None,
        cache_writer: CacheWriter | None = None,
        query_cache: QueryCache[DiscoveryResponse] | None = None,
        memo: ScoreMemo | None = None,
        clock: Callable[[], datetime] = utc_now,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.clock = clock
        self.repository = repository or JobRepository(settings.db_path)
        self.fetchers = fetchers if fetchers is not None else self._default_fetchers(http_client)
        self.aggregator = Aggregator(self.fetchers)
        self.ranker = Ranker(settings.scoring, settings.ranking, settings.freshness, memo)
        self.sectioner = Sectioner(settings.ranking.max_external_jobs)
        self.cache_writer = cache_writer or CacheWriter(self.repository, settings.cache_writer_queue_size, clock)
        self.query_cache = query_cache if query_cache is not None else QueryCache(settings.query_cache_ttl_seconds)

    def _default_fetchers(self, http_client: httpx.AsyncClient | None) -> list[SourceFetcher]:
        live = self.settings.live_discovery
        return [
            InternalSource(self.repository),
            CachedExternalSource(self.repository, self.settings.freshness.external_window_days, self.clock),
            LiveDiscoverySource(live, self.settings.trust_for(live.provider), http_client, self.clock),
        ]

    async def discover(self, request: DiscoveryRequest) -> DiscoveryResponse:
        started = time.perf_counter()
        signature = request.signature()
        cached = self.query_cache.get(signature)
        if cached is not None:
            logger.info("discovery_cache_hit", extra={"extra_fields": {"signature": signature}})
            return cached

        now = self.clock()
        aggregate = await self.aggregator.aggregate(request.query)
        min_score = request.min_match_score / 100 if request.min_match_score is not None else None
        ranked = self.ranker.rank(request.query, aggregate.postings, now, min_score)
        sections = self.sectioner.split(ranked.matches, request.max_external_jobs)

        metadata = {
            "directCount": len(sections.direct),
            "discoveredCount": len(sections.discovered),
            "discoveredAvailable": sections.discovered_total,
            "sourceCounts": {
                source: aggregate.source_counts.get(source, 0)
                for source in (SOURCE_INTERNAL, SOURCE_CACHED, SOURCE_LIVE)
            },
            "failedSources": list(aggregate.failed_sources),
            "merged": aggregate.merged,
            "invalid": aggregate.invalid,
            "dropped": aggregate.dropped,
            "expired": ranked.expired,
            "belowThreshold": ranked.below_threshold,
            "partial": aggregate.partial,
            "executionTimeMs": int((time.perf_counter() - started) * 1000),
        }
        if aggregate.partial:
            metadata["message"] = PARTIAL_NOTE
        response = DiscoveryResponse(direct=sections.direct, discovered=sections.discovered, metadata=metadata)

        self.cache_writer.submit([p for p in aggregate.postings if p.source == SOURCE_LIVE])
        if not response.partial:
            self.query_cache.set(signature, response)

        logger.info("discovery_completed", extra={"extra_fields": _summary(metadata, sections.direct + sections.discovered)})
        return response

    def invalidate_cache(self, request: DiscoveryRequest | None = None) -> int:
        memo = self.ranker.memo
        if memo is not None:
            if request is None:
                memo.clear()
            else:
                memo.forget(request.query)
        return self.query_cache.invalidate(request.signature() if request else None)

    async def close(self) -> None:
        await self.cache_writer.close()


def _summary(metadata: dict, matches: list[ScoredMatch]) -> dict:
    summary = {k: metadata[k] for k in ("directCount", "discoveredCount", "partial", "executionTimeMs")}
    summary["topScore"] = max((m.match_score for m in matches), default=0)
    return summary
