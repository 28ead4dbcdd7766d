from __future__ import annotations

from .analysis_ownership import OwnershipMap
from .models import BranchObjectSet, BranchSizeSummary


def split_objects(object_set: BranchObjectSet, ownership: OwnershipMap) -> tuple[dict[str, int], dict[str, int]]:
    unique: dict[str, int] = {}
    shared: dict[str, int] = {}
    for oid, size in object_set.objects.items():
        if ownership.count(oid) > 1:
            shared[oid] = size
        else:
            unique[oid] = size
    return unique, shared


def partition_branch(object_set: BranchObjectSet, ownership: OwnershipMap) -> BranchSizeSummary:
    unique_size = shared_size = 0
    unique_objects = shared_objects = 0
    for oid, size in object_set.objects.items():
        if ownership.count(oid) > 1:
            shared_size += size
            shared_objects += 1
        else:
            unique_size += size
            unique_objects += 1
    return BranchSizeSummary(
        branch=object_set.branch.name,
        total_size=unique_size + shared_size,
        unique_size=unique_size,
        shared_size=shared_size,
        total_objects=unique_objects + shared_objects,
        unique_objects=unique_objects,
        shared_objects=shared_objects,
    )
