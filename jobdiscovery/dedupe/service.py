from __future__ import annotations

import asyncio
import logging

from jobdiscovery.core.errors import SourceFatal, SourceUnavailable
from jobdiscovery.core.models import SOURCE_INTERNAL, AggregateResult, CandidateQuery, FetchResult, Posting
from jobdiscovery.dedupe.fingerprint import posting_fingerprint
from jobdiscovery.sources.base import SourceFetcher

logger = logging.getLogger(__name__)


class DedupeService:
    @staticmethod
    def dedupe(postings: list[Posting]) -> tuple[list[Posting], int]:
        """Collapse non-internal postings that share a fingerprint.

        Internal postings are kept as-is and claim their fingerprint first, so an
        external copy of an internal opening is always dropped. Between external
        postings the higher trust score wins and ties keep the first one seen.
        """
        claimed = {posting_fingerprint(p) for p in postings if p.is_internal}
        by_fingerprint: dict[str, Posting] = {}
        order: list[Posting | str] = []
        merged = 0
        for posting in postings:
            if posting.is_internal:
                order.append(posting)
                continue
            key = posting_fingerprint(posting)
            if key in claimed:
                merged += 1
                continue
            existing = by_fingerprint.get(key)
            if existing is None:
                by_fingerprint[key] = posting
                order.append(key)
                continue
            merged += 1
            if posting.trust_score > existing.trust_score:
                by_fingerprint[key] = posting
        result = [item if isinstance(item, Posting) else by_fingerprint[item] for item in order]
        return result, merged


class Aggregator:
    def __init__(self, fetchers: list[SourceFetcher]) -> None:
        self.fetchers = fetchers

    async def aggregate(self, query: CandidateQuery) -> AggregateResult:
        outcomes = await asyncio.gather(
            *(fetcher.fetch(query) for fetcher in self.fetchers),
            return_exceptions=True,
        )

        results: list[FetchResult] = []
        for fetcher, outcome in zip(self.fetchers, outcomes):
            if isinstance(outcome, SourceFatal):
                raise outcome
            if isinstance(outcome, BaseException):
                if fetcher.source == SOURCE_INTERNAL:
                    raise SourceFatal(f"internal source failed: {outcome}") from outcome
                error = SourceUnavailable(fetcher.source, str(outcome) or type(outcome).__name__)
                logger.warning("source_unavailable", extra={"extra_fields": {"source": error.source, "reason": error.reason}})
                results.append(FetchResult(source=fetcher.source, error=error.reason))
                continue
            results.append(outcome)

        combined: list[Posting] = []
        source_counts: dict[str, int] = {}
        failed_sources: list[str] = []
        invalid = 0
        dropped = 0
        for result in results:
            source_counts[result.source] = source_counts.get(result.source, 0) + len(result.postings)
            dropped += result.dropped
            if result.failed:
                failed_sources.append(result.source)
            for posting in result.postings:
                if not posting.is_valid():
                    invalid += 1
                    continue
                combined.append(posting)

        unique, merged = DedupeService.dedupe(combined)
        if invalid:
            logger.warning("invalid_postings_dropped", extra={"extra_fields": {"count": invalid}})
        logger.info(
            "aggregation_completed",
            extra={
                "extra_fields": {
                    "source_counts": source_counts,
                    "failed_sources": failed_sources,
                    "unique": len(unique),
                    "merged": merged,
                    "invalid": invalid,
                    "dropped": dropped,
                }
            },
        )
        return AggregateResult(
            postings=unique,
            source_counts=source_counts,
            failed_sources=failed_sources,
            invalid=invalid,
            merged=merged,
            dropped=dropped,
        )
