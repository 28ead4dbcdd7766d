from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

from .analysis_engine import AccountingResult
from .analysis_partition import split_objects
from .errors import CollectionCancelled, ResolutionError, TraversalError
from .git import GitObjectSource
from .models import BranchError, CommitBreakdown, CommitContribution

log = logging.getLogger(__name__)

_POLL_S = 0.2


def topological_order(graph: list[tuple[str, list[str]]]) -> list[str]:
    """Parents before children; commits whose parents lie outside `graph` start the frontier."""
    in_graph = {commit for commit, _ in graph}
    position = {commit: i for i, (commit, _) in enumerate(graph)}
    children: dict[str, list[str]] = {commit: [] for commit in in_graph}
    waiting: dict[str, int] = {}
    for commit, parents in graph:
        inside = [p for p in parents if p in in_graph]
        waiting[commit] = len(inside)
        for p in inside:
            children[p].append(commit)

    frontier = deque(commit for commit, _ in graph if waiting[commit] == 0)
    order: list[str] = []
    while frontier:
        commit = frontier.popleft()
        order.append(commit)
        for child in sorted(children[commit], key=position.__getitem__):
            waiting[child] -= 1
            if waiting[child] == 0:
                frontier.append(child)
    return order


def run_commit_breakdown(
    result: AccountingResult,
    source: GitObjectSource,
    branch: str,
    *,
    top_n: int,
    cancel: threading.Event | None = None,
) -> CommitBreakdown:
    """
    Split a branch's unique bytes by the commit that first introduces each object.

    Only branches ranked within the first `top_n` of a completed run are accepted.
    Commits are walked oldest first and the walk stops once every unique object has
    been attributed.
    """
    if not result.completed or result.ownership is None:
        raise RuntimeError("commit breakdown needs a completed accounting run")
    rank = result.rank_of(branch)
    if rank is None:
        raise ValueError(f"branch {branch!r} has no size summary in this run")
    if rank > top_n:
        raise ValueError(f"branch {branch!r} is ranked {rank}, outside the top {top_n}")

    object_set = result.object_sets[branch]
    pending, _shared = split_objects(object_set, result.ownership)

    graph = source.commit_graph(object_set.branch.tip, result.default_tip)
    first_parent = {commit: (parents[0] if parents else None) for commit, parents in graph}
    by_commit: dict[str, CommitContribution] = {}

    for commit in topological_order(graph):
        if not pending:
            break
        if cancel is not None and cancel.is_set():
            raise CollectionCancelled(branch)
        for oid in source.blobs_introduced_by(commit, first_parent[commit]):
            size = pending.pop(oid, None)
            if size is None:
                continue
            c = by_commit.get(commit)
            if c is None:
                c = CommitContribution(commit=commit)
                by_commit[commit] = c
            c.size += size
            c.objects += 1

    if pending:
        log.debug("branch %s: %d unique objects not introduced by any exclusive commit", branch, len(pending))

    commits = sorted(by_commit.values(), key=lambda c: (-c.size, c.commit))
    return CommitBreakdown(
        branch=branch,
        commits=commits,
        unattributed_size=sum(pending.values()),
        unattributed_objects=len(pending),
    )


def run_commit_breakdowns(
    result: AccountingResult,
    source: GitObjectSource,
    top_n: int,
    *,
    jobs: int = 4,
    cancel: threading.Event | None = None,
) -> tuple[dict[str, CommitBreakdown], dict[str, BranchError]]:
    """
    Break down the first `top_n` ranked branches in parallel.

    A branch whose history cannot be walked lands in the returned errors while the
    others still finish. Ctrl-C or a set `cancel` kills live git processes and raises
    CollectionCancelled.
    """
    names = [s.branch for s in result.branches[: max(0, top_n)]]
    breakdowns: dict[str, CommitBreakdown] = {}
    errors: dict[str, BranchError] = {}
    if not names:
        return breakdowns, errors

    cancel = cancel if cancel is not None else threading.Event()
    with ThreadPoolExecutor(max_workers=max(1, jobs)) as ex:
        futs: dict[Future[CommitBreakdown], str] = {
            ex.submit(run_commit_breakdown, result, source, name, top_n=top_n, cancel=cancel): name for name in names
        }
        pending: set[Future[CommitBreakdown]] = set(futs)
        try:
            while pending and not cancel.is_set():
                done, pending = wait(pending, timeout=_POLL_S, return_when=FIRST_COMPLETED)
                for fut in done:
                    name = futs[fut]
                    try:
                        breakdowns[name] = fut.result()
                    except CollectionCancelled:
                        pass
                    except ResolutionError as e:
                        log.warning("commit breakdown for %s: %s", name, e)
                        errors[name] = BranchError(branch=name, kind="resolution", message=str(e))
                    except (TraversalError, OSError) as e:
                        log.warning("commit breakdown for %s: %s", name, e)
                        errors[name] = BranchError(branch=name, kind="traversal", message=str(e))
        except KeyboardInterrupt:
            log.warning("interrupted; cancelling commit breakdown")
            cancel.set()

        if cancel.is_set():
            source.kill_all()
            ex.shutdown(wait=True, cancel_futures=True)
            raise CollectionCancelled("commit breakdown")

    return {name: breakdowns[name] for name in names if name in breakdowns}, errors
