from __future__ import annotations

import logging
import threading

from .errors import CollectionCancelled
from .git import GitObjectSource
from .models import Branch, BranchObjectSet

log = logging.getLogger(__name__)


def collect_branch(source: GitObjectSource, branch: Branch, default_tip: str, cancel: threading.Event | None = None) -> BranchObjectSet:
    """
    Collect the blobs reachable from `branch` but not from `default_tip`, keyed by object id.

    Trees and commits are walked by git but not counted. Ids that vanish between
    `rev-list` and `cat-file` are dropped with a warning. Resolution and traversal
    failures propagate so the caller can record them against this branch only.
    """
    objects: dict[str, int] = {}
    dropped = 0

    with source.objects_exclusive_to(branch.tip, default_tip) as oids, source.describe_objects(oids) as infos:
        for info in infos:
            if cancel is not None and cancel.is_set():
                raise CollectionCancelled(branch.name)
            if info.missing:
                dropped += 1
                log.warning("branch %s: object %s disappeared during traversal; skipped", branch.name, info.oid)
                continue
            if info.type != "blob":
                continue
            objects[info.oid] = info.size

    if cancel is not None and cancel.is_set():
        raise CollectionCancelled(branch.name)

    log.debug("branch %s: %d blobs, %d dropped", branch.name, len(objects), dropped)
    return BranchObjectSet(branch=branch, objects=objects, dropped=dropped)
