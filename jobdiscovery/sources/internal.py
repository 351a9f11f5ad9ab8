from __future__ import annotations

import asyncio
import logging
import sqlite3

from jobdiscovery.core.errors import SourceFatal, TransformError
from jobdiscovery.core.models import SOURCE_INTERNAL, CandidateQuery, FetchResult
from jobdiscovery.sources.adapters import internal_posting_from_row
from jobdiscovery.sources.base import SourceFetcher
from jobdiscovery.storage.repository import JobRepository

logger = logging.getLogger(__name__)


class InternalSource(SourceFetcher):
    source = SOURCE_INTERNAL

    def __init__(self, repository: JobRepository) -> None:
        self.repository = repository

    async def fetch(self, query: CandidateQuery) -> FetchResult:
        try:
            rows = await asyncio.to_thread(self.repository.list_internal_active, query.skills)
        except (sqlite3.Error, OSError) as exc:
            logger.error("internal_source_failed", extra={"extra_fields": {"reason": str(exc)}})
            raise SourceFatal(f"internal job store unavailable: {exc}") from exc

        result = FetchResult(source=self.source)
        for row in rows:
            try:
                result.postings.append(internal_posting_from_row(row))
            except TransformError as exc:
                result.dropped += 1
                logger.warning("transform_failed", extra={"extra_fields": {"source": self.source, "reason": str(exc)}})
        return result
