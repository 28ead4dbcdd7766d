from __future__ import annotations

import csv
import json
from pathlib import Path

from branch_weight.analysis_engine import STATUS_COMPLETED, AccountingResult
from branch_weight.analysis_reports import write_reports
from branch_weight.models import BranchError, BranchSizeSummary, CommitBreakdown, CommitContribution, RepositorySummary


def _result() -> AccountingResult:
    return AccountingResult(
        status=STATUS_COMPLETED,
        default_branch="refs/heads/main",
        default_tip="abc",
        branches=[
            BranchSizeSummary(branch="test/branch", total_size=150, unique_size=100, shared_size=50, total_objects=2, unique_objects=1, shared_objects=1),
            BranchSizeSummary(branch="other", total_size=80, unique_size=30, shared_size=50, total_objects=2, unique_objects=1, shared_objects=1),
        ],
        errors={"ghost": BranchError(branch="ghost", kind="resolution", message="cannot resolve 'ghost'")},
        summary=RepositorySummary(total_branches=2, failed_branches=1, total_size=230, unique_size=130, shared_size=100, distinct_size=180, distinct_objects=3),
    )


def test_write_reports_files_and_keys(tmp_path: Path) -> None:
    out_dir = tmp_path / "report"
    written = write_reports(out_dir=out_dir, result=_result())

    names = sorted(p.name for p in written)
    assert names == ["branches.csv", "branches.json", "branches_full.json", "errors.json", "summary.json"]

    light = json.loads((out_dir / "branches.json").read_text(encoding="utf-8"))
    assert light[0] == {"branch": "test/branch", "totalSizeMB": "0 MB", "uniqueSizeMB": "0 MB", "sharedSizeMB": "0 MB"}

    full = json.loads((out_dir / "branches_full.json").read_text(encoding="utf-8"))
    assert [r["branch"] for r in full] == ["test/branch", "other"]
    assert full[0]["totalSize"] == 150
    assert full[0]["uniqueObjectCount"] == 1
    assert full[1]["sharedObjectCount"] == 1

    summary = json.loads((out_dir / "summary.json").read_text(encoding="utf-8"))
    assert summary["totalBranches"] == 2
    assert summary["failedBranches"] == 1
    assert summary["totalUniqueSize"] == 130
    assert summary["totalSharedSize"] == 100
    assert summary["distinctSize"] == 180
    assert summary["status"] == "completed"

    errors = json.loads((out_dir / "errors.json").read_text(encoding="utf-8"))
    assert errors == [{"branch": "ghost", "kind": "resolution", "message": "cannot resolve 'ghost'"}]

    with (out_dir / "branches.csv").open(newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert rows[1]["branch"] == "other"
    assert rows[1]["totalSize"] == "80"


def test_commits_json_written_only_with_breakdowns(tmp_path: Path) -> None:
    breakdowns = {
        "test/branch": CommitBreakdown(
            branch="test/branch",
            commits=[CommitContribution(commit="c1", size=70, objects=1), CommitContribution(commit="c2", size=30, objects=1)],
        )
    }
    write_reports(out_dir=tmp_path, result=_result(), breakdowns=breakdowns)
    data = json.loads((tmp_path / "commits.json").read_text(encoding="utf-8"))
    assert [c["commit"] for c in data["test/branch"]["commits"]] == ["c1", "c2"]
    assert data["test/branch"]["commits"][0]["size"] == 70
    assert data["test/branch"]["unattributedObjects"] == 0

    other = tmp_path / "no-breakdown"
    write_reports(out_dir=other, result=_result())
    assert not (other / "commits.json").exists()
