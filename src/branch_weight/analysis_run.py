from __future__ import annotations

import argparse
import logging
import sys
import threading
import time
from pathlib import Path

from .analysis_commits import run_commit_breakdowns
from .analysis_engine import run_accounting
from .analysis_render import render_commit_breakdown, render_terminal_summary
from .analysis_reports import write_reports
from .config import default_jobs, load_config, prompt_bool
from .errors import CollectionCancelled, ResolutionError, SourceUnavailableError, TraversalError
from .git import GitObjectSource
from .models import CommitBreakdown

REPORT_DIRNAME = "unmerged-branches-size-report"


def format_startup_header(
    *,
    repo: Path,
    out_dir: Path,
    default_branch: str,
    jobs: int,
    include_remotes: bool,
    top_commits: int,
    timeout_s: float | None,
) -> str:
    lines = [
        "┌──────────────────────────────────────────────────────────────┐",
        "│                       git-branch-weight                      │",
        "└──────────────────────────────────────────────────────────────┘",
        "",
        "Run plan:",
        f"1) Repository: {repo} (read-only; nothing is modified)",
        f"2) Branches: unmerged into {default_branch or '(auto-detect master/main)'}; refs: {'heads + remotes' if include_remotes else 'heads only'}",
        f"3) Measure: unique vs shared blob bytes on disk, {jobs} parallel jobs" + (f", timeout {timeout_s:g}s" if timeout_s else ""),
        f"4) Per-commit breakdown: {'top ' + str(top_commits) + ' branches' if top_commits > 0 else 'off'}",
        f"5) Write reports: {out_dir}",
        "",
    ]
    return "\n".join(lines)


def _setting(args_value, config: dict, key: str, default):
    if args_value is not None and args_value != "":
        return args_value
    value = config.get(key)
    if value is None or value == "":
        return default
    return value


def run_analysis(*, args: argparse.Namespace) -> int:
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING, format="%(levelname)s: %(message)s")
    start = time.monotonic()

    try:
        config = load_config(args.config)
    except ValueError as e:
        print(f"Invalid config: {e}", file=sys.stderr)
        return 2

    repo_arg = Path(args.repo)
    if not repo_arg.is_dir():
        print(f"Repository not found: {repo_arg}", file=sys.stderr)
        return 2
    repo = repo_arg.resolve()

    jobs = int(_setting(args.jobs, config, "jobs", default_jobs()))
    top_commits = int(_setting(args.top_commits, config, "top_commits", 0))
    timeout_s = float(_setting(args.timeout, config, "timeout_s", 0)) or None
    include_remotes = False if args.local_only else _setting(None, config, "include_remotes", True)
    out_dir = Path(_setting(args.out, config, "out_dir", repo / REPORT_DIRNAME))
    requested_branch = str(_setting(args.branch, config, "default_branch", ""))

    print(
        format_startup_header(
            repo=repo,
            out_dir=out_dir,
            default_branch=requested_branch,
            jobs=jobs,
            include_remotes=include_remotes,
            top_commits=top_commits,
            timeout_s=timeout_s,
        )
    )

    source = GitObjectSource(repo)
    try:
        source.check_available()
        default_branch = requested_branch or source.detect_default_branch()
        print(f"Default branch: {default_branch}")
        branches = source.list_unmerged_branches(default_branch, include_remotes=include_remotes)
    except (SourceUnavailableError, ResolutionError, TraversalError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    print(f"Found {len(branches)} branches to analyze")
    assume_yes = bool(args.yes) or not (sys.stdin.isatty() and sys.stdout.isatty())
    if branches and not assume_yes and not prompt_bool(f"Analyze {len(branches)} branches?", default=True):
        print("Aborted.")
        return 1

    def on_progress(done: int, total: int) -> None:
        if done % 100 == 0 or done == total:
            print(f"Collected {done}/{total} branches...")

    cancel = threading.Event()
    try:
        result = run_accounting(
            source,
            default_branch,
            branches,
            jobs=jobs,
            cancel=cancel,
            timeout_s=timeout_s,
            on_progress=on_progress,
        )
    except (SourceUnavailableError, ResolutionError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if not result.completed:
        print(f"Run {result.status} before all branches were collected; no reports written.", file=sys.stderr)
        return 130

    breakdowns: dict[str, CommitBreakdown] = {}
    if top_commits > 0 and result.branches:
        print(f"Breaking down unique size per commit for the top {min(top_commits, len(result.branches))} branches...")
        try:
            breakdowns, breakdown_errors = run_commit_breakdowns(result, source, top_commits, jobs=jobs, cancel=cancel)
        except CollectionCancelled:
            print("Commit breakdown cancelled; no reports written.", file=sys.stderr)
            return 130
        except SourceUnavailableError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2
        for name, err in breakdown_errors.items():
            print(f"Warning: commit breakdown skipped for {name}: {err.message}", file=sys.stderr)

    write_reports(out_dir=out_dir, result=result, breakdowns=breakdowns)

    print("")
    print(render_terminal_summary(result))
    for b in breakdowns.values():
        print("")
        print(render_commit_breakdown(b))

    print("")
    print(f"Done in {time.monotonic() - start:.1f}s")
    print(f"Reports saved to: {out_dir}")
    return 0
