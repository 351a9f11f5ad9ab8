from __future__ import annotations

from jobdiscovery.core.models import ScoredMatch, Sections
from jobdiscovery.ranking.service import sort_matches


class Sectioner:
    """Direct (internal) and discovered (everything else) views.

    The two views are never ranked against each other; only the discovered view
    is capped.
    """

    def __init__(self, max_external_jobs: int = 20) -> None:
        self.max_external_jobs = max_external_jobs

    def split(self, matches: list[ScoredMatch], max_external_jobs: int | None = None) -> Sections:
        cap = self.max_external_jobs if max_external_jobs is None else max(0, max_external_jobs)
        direct = [m for m in matches if m.posting.is_internal]
        discovered = sort_matches([m for m in matches if not m.posting.is_internal])
        return Sections(
            direct=sort_matches(direct),
            discovered=discovered[:cap],
            discovered_total=len(discovered),
        )
