from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable

from jobdiscovery.core.errors import SourceUnavailable, TransformError
from jobdiscovery.core.models import SOURCE_CACHED, CandidateQuery, FetchResult, utc_now
from jobdiscovery.sources.adapters import cached_posting_from_row
from jobdiscovery.sources.base import SourceFetcher
from jobdiscovery.storage.repository import JobRepository

logger = logging.getLogger(__name__)


class CachedExternalSource(SourceFetcher):
    source = SOURCE_CACHED

    def __init__(
        self,
        repository: JobRepository,
        window_days: int = 15,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.repository = repository
        self.window_days = window_days
        self.clock = clock

    async def fetch(self, query: CandidateQuery) -> FetchResult:
        # one extra day so the freshness classifier makes the exact cut on whole days
        since = self.clock() - timedelta(days=self.window_days + 1)
        try:
            rows = await asyncio.to_thread(self.repository.list_cached_external, since, query.skills)
        except Exception as exc:  # noqa: BLE001
            error = SourceUnavailable(self.source, str(exc) or type(exc).__name__)
            logger.warning("source_unavailable", extra={"extra_fields": {"source": self.source, "reason": error.reason}})
            return FetchResult(source=self.source, error=error.reason)

        result = FetchResult(source=self.source)
        for row in rows:
            try:
                result.postings.append(cached_posting_from_row(row))
            except TransformError as exc:
                result.dropped += 1
                logger.warning("transform_failed", extra={"extra_fields": {"source": self.source, "reason": str(exc)}})
        return result
