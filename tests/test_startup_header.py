from __future__ import annotations

from pathlib import Path

from branch_weight.analysis_run import format_startup_header


def test_format_startup_header_explains_run_plan() -> None:
    out = format_startup_header(
        repo=Path("/tmp/repo"),
        out_dir=Path("/tmp/repo/unmerged-branches-size-report"),
        default_branch="",
        jobs=4,
        include_remotes=True,
        top_commits=0,
        timeout_s=None,
    )

    assert "git-branch-weight" in out
    assert "Run plan:" in out
    assert "1) Repository:" in out
    assert "read-only" in out.lower()
    assert "auto-detect master/main" in out
    assert "heads + remotes" in out
    assert "4) Per-commit breakdown: off" in out
    assert "timeout" not in out


def test_format_startup_header_mentions_breakdown_and_timeout() -> None:
    out = format_startup_header(
        repo=Path("/tmp/repo"),
        out_dir=Path("/tmp/out"),
        default_branch="refs/heads/develop",
        jobs=2,
        include_remotes=False,
        top_commits=5,
        timeout_s=90.0,
    )

    assert "unmerged into refs/heads/develop" in out
    assert "heads only" in out
    assert "top 5 branches" in out
    assert "timeout 90s" in out
    assert "5) Write reports: /tmp/out" in out
