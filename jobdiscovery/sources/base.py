from __future__ import annotations

from abc import ABC, abstractmethod

from jobdiscovery.core.models import CandidateQuery, FetchResult


class SourceFetcher(ABC):
    source: str

    @abstractmethod
    async def fetch(self, query: CandidateQuery) -> FetchResult:
        raise NotImplementedError
