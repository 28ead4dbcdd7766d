from __future__ import annotations

from pathlib import Path

from .analysis_engine import AccountingResult
from .analysis_render import format_size_mb
from .analysis_write import ensure_dir, write_json, write_rows_csv
from .models import BranchSizeSummary, CommitBreakdown

FULL_FIELDS = [
    "branch",
    "totalSizeMB",
    "uniqueSizeMB",
    "sharedSizeMB",
    "totalSize",
    "uniqueSize",
    "sharedSize",
    "objectCount",
    "uniqueObjectCount",
    "sharedObjectCount",
]


def branch_row_full(s: BranchSizeSummary) -> dict[str, object]:
    return {
        "branch": s.branch,
        "totalSizeMB": format_size_mb(s.total_size),
        "uniqueSizeMB": format_size_mb(s.unique_size),
        "sharedSizeMB": format_size_mb(s.shared_size),
        "totalSize": s.total_size,
        "uniqueSize": s.unique_size,
        "sharedSize": s.shared_size,
        "objectCount": s.total_objects,
        "uniqueObjectCount": s.unique_objects,
        "sharedObjectCount": s.shared_objects,
    }


def branch_row_light(s: BranchSizeSummary) -> dict[str, object]:
    return {
        "branch": s.branch,
        "totalSizeMB": format_size_mb(s.total_size),
        "uniqueSizeMB": format_size_mb(s.unique_size),
        "sharedSizeMB": format_size_mb(s.shared_size),
    }


def summary_json(result: AccountingResult) -> dict[str, object]:
    s = result.summary
    unique = s.unique_size if s else 0
    shared = s.shared_size if s else 0
    distinct = s.distinct_size if s else 0
    return {
        "status": result.status,
        "defaultBranch": result.default_branch,
        "totalBranches": s.total_branches if s else 0,
        "failedBranches": len(result.errors),
        "totalUniqueSize": unique,
        "totalUniqueSizeMB": format_size_mb(unique),
        "totalSharedSize": shared,
        "totalSharedSizeMB": format_size_mb(shared),
        "distinctSize": distinct,
        "distinctSizeMB": format_size_mb(distinct),
        "distinctObjects": s.distinct_objects if s else 0,
    }


def commits_json(breakdowns: dict[str, CommitBreakdown]) -> dict[str, object]:
    out: dict[str, object] = {}
    for name, b in breakdowns.items():
        out[name] = {
            "commits": [
                {"commit": c.commit, "size": c.size, "sizeMB": format_size_mb(c.size), "objects": c.objects}
                for c in b.commits
            ],
            "unattributedSize": b.unattributed_size,
            "unattributedObjects": b.unattributed_objects,
        }
    return out


def write_reports(
    *,
    out_dir: Path,
    result: AccountingResult,
    breakdowns: dict[str, CommitBreakdown] | None = None,
) -> list[Path]:
    ensure_dir(out_dir)
    full_rows = [branch_row_full(s) for s in result.branches]

    written: list[Path] = []

    def emit(name: str, data: object) -> None:
        path = out_dir / name
        write_json(path, data)
        written.append(path)

    emit("branches_full.json", full_rows)
    emit("branches.json", [branch_row_light(s) for s in result.branches])
    emit("summary.json", summary_json(result))
    emit(
        "errors.json",
        [{"branch": e.branch, "kind": e.kind, "message": e.message} for _, e in sorted(result.errors.items())],
    )

    csv_path = out_dir / "branches.csv"
    write_rows_csv(csv_path, full_rows, FULL_FIELDS)
    written.append(csv_path)

    if breakdowns:
        emit("commits.json", commits_json(breakdowns))
    return written
