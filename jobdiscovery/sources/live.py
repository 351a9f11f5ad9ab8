from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Callable

import httpx

from jobdiscovery.core.errors import TransformError
from jobdiscovery.core.models import SOURCE_LIVE, CandidateQuery, FetchResult, utc_now
from jobdiscovery.sources.adapters import live_posting_from_record
from jobdiscovery.sources.base import SourceFetcher
from jobdiscovery.utils.config import LiveDiscoverySettings
from jobdiscovery.utils.text import normalize_work_type

logger = logging.getLogger(__name__)


class LiveDiscoverySource(SourceFetcher):
    """Paginated keyword search against the live discovery provider.

    The whole call runs under one wall-clock budget. When the budget runs out the
    in-flight request is cancelled, pages that already arrived are kept and the
    result is flagged incomplete. Nothing raises past ``fetch``.
    """

    source = SOURCE_LIVE

    def __init__(
        self,
        settings: LiveDiscoverySettings,
        trust_score: int = 50,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.settings = settings
        self.trust_score = trust_score
        self.client = client
        self.clock = clock

    async def fetch(self, query: CandidateQuery) -> FetchResult:
        result = FetchResult(source=self.source)
        terms = query.search_terms()
        if not self.settings.enabled or not terms:
            return result

        try:
            await asyncio.wait_for(self._collect(terms, query, result), timeout=self.settings.timeout_seconds)
        except asyncio.TimeoutError:
            result.incomplete = True
            result.error = f"timed out after {self.settings.timeout_seconds}s"
            logger.warning(
                "live_discovery_timeout",
                extra={"extra_fields": {"query": terms, "kept": len(result.postings)}},
            )
        except (httpx.HTTPError, ValueError) as exc:
            result.incomplete = True
            result.error = str(exc) or type(exc).__name__
            logger.warning(
                "live_discovery_failed",
                extra={"extra_fields": {"query": terms, "reason": result.error, "kept": len(result.postings)}},
            )
        if result.dropped:
            logger.warning("transform_failed", extra={"extra_fields": {"source": self.source, "count": result.dropped}})
        logger.info(
            "live_discovery_completed",
            extra={
                "extra_fields": {
                    "query": terms,
                    "postings": len(result.postings),
                    "dropped": result.dropped,
                    "incomplete": result.incomplete,
                }
            },
        )
        return result

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.client is not None:
            yield self.client
            return
        async with httpx.AsyncClient() as client:
            yield client

    async def _collect(self, terms: str, query: CandidateQuery, result: FetchResult) -> None:
        now = self.clock()
        async with self._session() as client:
            for page in range(self.settings.max_pages):
                response = await client.post(
                    self.settings.url,
                    json=self._body(terms, query, page),
                    headers=self.settings.headers,
                )
                if not response.is_success:
                    result.incomplete = True
                    result.error = f"HTTP {response.status_code} on page {page}"
                    logger.warning(
                        "live_discovery_bad_status",
                        extra={"extra_fields": {"status": response.status_code, "page": page}},
                    )
                    return
                payload = response.json()
                if not isinstance(payload, dict):
                    raise ValueError(f"unexpected payload on page {page}")
                records = payload.get("results") or []
                if not isinstance(records, list):
                    raise ValueError(f"results on page {page} is not a list")
                if not records:
                    return
                for record in records:
                    try:
                        result.postings.append(
                            live_posting_from_record(
                                record,
                                provider=self.settings.provider,
                                trust_score=self.trust_score,
                                now=now,
                                description_limit=self.settings.description_limit,
                            )
                        )
                    except TransformError:
                        result.dropped += 1
                logger.info("live_discovery_page", extra={"extra_fields": {"page": page, "records": len(records)}})
                if len(records) < self.settings.page_size:
                    return

    def _body(self, terms: str, query: CandidateQuery, page: int) -> dict[str, Any]:
        work_type = normalize_work_type(query.work_type)
        workplace_types = [work_type.capitalize()] if work_type else list(self.settings.workplace_types)
        if query.location and work_type != "remote":
            locations = [query.location]
        else:
            locations = list(self.settings.locations)
        return {
            "size": self.settings.page_size,
            "page": page,
            "searchState": {
                "searchQuery": terms,
                "dateFetchedPastNDays": self.settings.freshness_days,
                "locations": [{"formatted_address": loc} for loc in locations],
                "workplaceTypes": workplace_types,
                "commitmentTypes": list(self.settings.commitment_types),
            },
        }
