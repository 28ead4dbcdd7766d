from __future__ import annotations

from typing import Iterable

from .analysis_ownership import OwnershipMap
from .models import BranchSizeSummary, RepositorySummary


def rank_branches(summaries: Iterable[BranchSizeSummary]) -> list[BranchSizeSummary]:
    return sorted(summaries, key=lambda s: (-s.total_size, s.branch))


def summarize(summaries: list[BranchSizeSummary], ownership: OwnershipMap, failed_branches: int = 0) -> RepositorySummary:
    return RepositorySummary(
        total_branches=len(summaries),
        failed_branches=failed_branches,
        total_size=sum(s.total_size for s in summaries),
        unique_size=sum(s.unique_size for s in summaries),
        shared_size=sum(s.shared_size for s in summaries),
        distinct_size=ownership.distinct_size(),
        distinct_objects=len(ownership),
    )
