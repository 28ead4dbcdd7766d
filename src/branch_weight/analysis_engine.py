from __future__ import annotations

import dataclasses
import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Callable

from .analysis_collect import collect_branch
from .analysis_ownership import OwnershipMap
from .analysis_partition import partition_branch
from .analysis_summary import rank_branches, summarize
from .errors import CollectionCancelled, ResolutionError, SourceUnavailableError, TraversalError
from .git import GitObjectSource
from .models import Branch, BranchError, BranchObjectSet, BranchSizeSummary, RepositorySummary

log = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"

_POLL_S = 0.2


@dataclasses.dataclass
class AccountingResult:
    status: str
    default_branch: str
    default_tip: str
    branches: list[BranchSizeSummary]  # ranked, largest first
    errors: dict[str, BranchError]
    summary: RepositorySummary | None
    object_sets: dict[str, BranchObjectSet] = dataclasses.field(default_factory=dict)
    ownership: OwnershipMap | None = None

    @property
    def completed(self) -> bool:
        return self.status == STATUS_COMPLETED

    def rank_of(self, branch: str) -> int | None:
        for i, s in enumerate(self.branches, start=1):
            if s.branch == branch:
                return i
        return None


def _cancelled(default_branch: str, default_tip: str, errors: dict[str, BranchError]) -> AccountingResult:
    return AccountingResult(
        status=STATUS_CANCELLED,
        default_branch=default_branch,
        default_tip=default_tip,
        branches=[],
        errors=dict(errors),
        summary=None,
    )


def run_accounting(
    source: GitObjectSource,
    default_branch: str,
    branches: list[Branch],
    *,
    jobs: int = 4,
    cancel: threading.Event | None = None,
    timeout_s: float | None = None,
    on_progress: Callable[[int, int], None] | None = None,
) -> AccountingResult:
    """
    Attribute the disk footprint of every unmerged branch as unique or shared.

    Collection runs one branch per worker and merges into the ownership map as each
    branch finishes. Nothing is partitioned until every surviving branch has merged.
    Per-branch failures land in `errors`; a missing git raises SourceUnavailableError.
    A set `cancel` event, an expired `timeout_s`, or Ctrl-C ends the run with status
    "cancelled" and no figures.
    """
    source.check_available()
    default_tip = source.resolve(default_branch)

    names = [b.name for b in branches]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise ValueError(f"duplicate branch names: {', '.join(dupes)}")

    cancel = cancel if cancel is not None else threading.Event()
    deadline = time.monotonic() + timeout_s if timeout_s else None
    ownership = OwnershipMap()
    object_sets: dict[str, BranchObjectSet] = {}
    errors: dict[str, BranchError] = {}

    def collect_and_merge(branch: Branch) -> BranchObjectSet:
        object_set = collect_branch(source, branch, default_tip, cancel=cancel)
        ownership.add(branch.name, object_set.objects)
        return object_set

    log.info("collecting %d branches against %s (%s) with %d jobs", len(branches), default_branch, default_tip, jobs)
    with ThreadPoolExecutor(max_workers=max(1, jobs)) as ex:
        futs: dict[Future[BranchObjectSet], Branch] = {ex.submit(collect_and_merge, b): b for b in branches}
        pending: set[Future[BranchObjectSet]] = set(futs)
        done_count = 0
        try:
            while pending:
                if deadline is not None and time.monotonic() >= deadline:
                    log.warning("run timed out after %ss; cancelling", timeout_s)
                    cancel.set()
                if cancel.is_set():
                    break
                done, pending = wait(pending, timeout=_POLL_S, return_when=FIRST_COMPLETED)
                for fut in done:
                    branch = futs[fut]
                    done_count += 1
                    try:
                        object_sets[branch.name] = fut.result()
                    except CollectionCancelled:
                        pass
                    except ResolutionError as e:
                        log.warning("branch %s: %s", branch.name, e)
                        errors[branch.name] = BranchError(branch=branch.name, kind="resolution", message=str(e))
                    except (TraversalError, OSError) as e:
                        log.warning("branch %s: %s", branch.name, e)
                        errors[branch.name] = BranchError(branch=branch.name, kind="traversal", message=str(e))
                    if on_progress is not None:
                        on_progress(done_count, len(futs))
        except KeyboardInterrupt:
            log.warning("interrupted; cancelling")
            cancel.set()
        except SourceUnavailableError:
            cancel.set()
            source.kill_all()
            ex.shutdown(wait=True, cancel_futures=True)
            raise

        if cancel.is_set():
            source.kill_all()
            ex.shutdown(wait=True, cancel_futures=True)
            return _cancelled(default_branch, default_tip, errors)

        # Every surviving branch has merged; from here on the map is read-only.
        ownership.freeze()
        ordered = [object_sets[b.name] for b in branches if b.name in object_sets]
        summaries = list(ex.map(lambda s: partition_branch(s, ownership), ordered))

    ranked = rank_branches(summaries)
    summary = summarize(ranked, ownership, failed_branches=len(errors))
    log.info("accounted %d branches (%d failed), %d distinct objects", len(ranked), len(errors), summary.distinct_objects)
    return AccountingResult(
        status=STATUS_COMPLETED,
        default_branch=default_branch,
        default_tip=default_tip,
        branches=ranked,
        errors=errors,
        summary=summary,
        object_sets=object_sets,
        ownership=ownership,
    )
