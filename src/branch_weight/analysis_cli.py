from __future__ import annotations

import argparse
from pathlib import Path

from .analysis_run import run_analysis


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="git-branch-weight", description="Estimate weight of unmerged Git branches.")
    parser.add_argument("-r", "--repo", type=Path, default=Path("."), help="Repository to analyze.")
    parser.add_argument("-o", "--out", type=Path, default=None, help="Report directory (default: <repo>/unmerged-branches-size-report).")
    parser.add_argument("-b", "--branch", type=str, default="", help="Default branch to compare against (default: detect master/main).")
    parser.add_argument("-y", "--yes", "--no-prompt", dest="yes", action="store_true", help="Skip the confirmation prompt.")
    parser.add_argument("--config", type=Path, default=Path("config.json"), help="Path to config.json.")
    parser.add_argument("--jobs", type=int, default=None, help="Parallel git jobs (default: CPU count, max 8).")
    parser.add_argument("--top-commits", type=int, default=None, help="Break down unique size per commit for the N largest branches (0 = off).")
    parser.add_argument("--timeout", type=float, default=None, help="Cancel the run after this many seconds (0 = no limit).")
    parser.add_argument("--local-only", action="store_true", help="Only consider refs/heads, not remote-tracking branches.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress details to stderr.")
    return parser


def main(argv: list[str]) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.jobs is not None and args.jobs < 1:
        parser.error("--jobs must be >= 1")
    if args.top_commits is not None and args.top_commits < 0:
        parser.error("--top-commits must be >= 0")
    return run_analysis(args=args)
