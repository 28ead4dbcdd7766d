from __future__ import annotations

import dataclasses
from typing import Iterator


@dataclasses.dataclass(frozen=True)
class Branch:
    name: str
    tip: str


@dataclasses.dataclass(frozen=True)
class ObjectInfo:
    oid: str
    type: str
    size: int = 0

    @property
    def missing(self) -> bool:
        return self.type == "missing"


@dataclasses.dataclass(frozen=True)
class ObjectRecord:
    oid: str
    size: int


@dataclasses.dataclass
class BranchObjectSet:
    branch: Branch
    objects: dict[str, int]  # oid -> on-disk size
    dropped: int = 0  # ids that disappeared while describing them

    def __len__(self) -> int:
        return len(self.objects)

    @property
    def total_size(self) -> int:
        return sum(self.objects.values())

    def records(self) -> Iterator[ObjectRecord]:
        for oid, size in self.objects.items():
            yield ObjectRecord(oid=oid, size=size)


@dataclasses.dataclass(frozen=True)
class BranchError:
    branch: str
    kind: str  # "resolution" | "traversal"
    message: str


@dataclasses.dataclass(frozen=True)
class BranchSizeSummary:
    branch: str
    total_size: int = 0
    unique_size: int = 0
    shared_size: int = 0
    total_objects: int = 0
    unique_objects: int = 0
    shared_objects: int = 0


@dataclasses.dataclass(frozen=True)
class RepositorySummary:
    total_branches: int = 0
    failed_branches: int = 0
    total_size: int = 0
    unique_size: int = 0
    shared_size: int = 0  # per branch, so a shared object counts once per owner
    distinct_size: int = 0  # every object counted once
    distinct_objects: int = 0


@dataclasses.dataclass
class CommitContribution:
    commit: str
    size: int = 0
    objects: int = 0


@dataclasses.dataclass
class CommitBreakdown:
    branch: str
    commits: list[CommitContribution]
    unattributed_size: int = 0
    unattributed_objects: int = 0
