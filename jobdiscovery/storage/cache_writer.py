from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from jobdiscovery.core.models import SOURCE_LIVE, Posting, utc_now
from jobdiscovery.dedupe.fingerprint import posting_fingerprint
from jobdiscovery.storage.repository import JobRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CacheWriterStats:
    submitted: int = 0
    written: int = 0
    skipped_known: int = 0
    failed: int = 0
    dropped: int = 0


class CacheWriter:
    """Background cache-on-read of live discovery postings.

    ``submit`` hands a batch to a bounded queue and returns at once. One worker
    task drains the queue and upserts postings whose fingerprint the cache does not
    hold yet. A full queue drops the batch; a failed write is logged and counted.
    Neither ever reaches the request that submitted the batch.
    """

    def __init__(
        self,
        repository: JobRepository,
        queue_size: int = 100,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.repository = repository
        self.clock = clock
        self.queue: asyncio.Queue[list[Posting]] = asyncio.Queue(maxsize=queue_size)
        self.stats = CacheWriterStats()
        self._worker: asyncio.Task | None = None

    def submit(self, postings: list[Posting]) -> bool:
        batch = [p for p in postings if p.source == SOURCE_LIVE and p.external_id]
        if not batch:
            return False
        self._ensure_worker()
        try:
            self.queue.put_nowait(batch)
        except asyncio.QueueFull:
            self.stats.dropped += len(batch)
            logger.warning("cache_write_dropped", extra={"extra_fields": {"postings": len(batch)}})
            return False
        self.stats.submitted += len(batch)
        return True

    async def drain(self) -> None:
        await self.queue.join()

    async def close(self) -> None:
        if self._worker is None:
            return
        await self.drain()
        self._worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            batch = await self.queue.get()
            try:
                written, skipped = await asyncio.to_thread(self._write, batch)
                self.stats.written += written
                self.stats.skipped_known += skipped
                logger.info("cache_write_completed", extra={"extra_fields": {"written": written, "skipped": skipped}})
            except Exception as exc:  # noqa: BLE001
                self.stats.failed += len(batch)
                logger.warning(
                    "cache_write_failed",
                    extra={"extra_fields": {"postings": len(batch), "reason": str(exc)}},
                    exc_info=True,
                )
            finally:
                self.queue.task_done()

    def _write(self, batch: list[Posting]) -> tuple[int, int]:
        now = self.clock()
        keyed = [(posting_fingerprint(p), p) for p in batch]
        known = self.repository.external_fingerprints([fp for fp, _ in keyed])
        written = skipped = 0
        for fp, posting in keyed:
            if fp in known:
                skipped += 1
                continue
            self.repository.upsert_external(posting, now)
            known.add(fp)
            written += 1
        return written, skipped
