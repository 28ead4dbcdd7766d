from __future__ import annotations

from .analysis_engine import AccountingResult
from .models import CommitBreakdown

MB = 1024 * 1024


def format_size_mb(size: int) -> str:
    mb = size / MB
    if mb >= 0.1:
        return f"{mb:.1f} MB"
    if mb >= 0.01:
        return f"{mb:.2f} MB"
    return "0 MB"


def fmt_int(n: int) -> str:
    return f"{int(n):,}"


def trunc(s: str, max_len: int) -> str:
    if len(s) <= max_len:
        return s
    if max_len <= 1:
        return s[:max_len]
    return s[: max_len - 1] + "…"


def bar(value: int, max_value: int, width: int = 22) -> str:
    if max_value <= 0:
        filled = 0
    else:
        filled = int(round((value / max_value) * width))
    filled = max(0, min(width, filled))
    return "[" + ("#" * filled) + ("-" * (width - filled)) + "]"


def render_terminal_summary(result: AccountingResult, top_n: int = 10) -> str:
    lines: list[str] = []
    summary = result.summary
    if summary is None:
        lines.append(f"Run {result.status}; no sizes computed.")
    else:
        lines.append("Summary:")
        lines.append(f"  Branches: {fmt_int(summary.total_branches)}" + (f" ({fmt_int(summary.failed_branches)} failed)" if summary.failed_branches else ""))
        lines.append(f"  Total unique size: {format_size_mb(summary.unique_size)}")
        lines.append(f"  Total shared size: {format_size_mb(summary.shared_size)}")
        lines.append(f"  Distinct footprint: {format_size_mb(summary.distinct_size)} ({fmt_int(summary.distinct_objects)} objects)")

    if result.branches:
        lines.append("")
        lines.append("Top branches by total size")
        lines.append("-" * 72)
        top = result.branches[:top_n]
        max_total = top[0].total_size
        for s in top:
            lines.append(f"{trunc(s.branch, 30):30} {format_size_mb(s.total_size):>10}  {bar(s.total_size, max_total, width=16)}  unique {format_size_mb(s.unique_size)}")
        if len(result.branches) > top_n:
            lines.append(f"... and {fmt_int(len(result.branches) - top_n)} more")

    if result.errors:
        lines.append("")
        lines.append("Failed branches")
        lines.append("-" * 72)
        for name in sorted(result.errors):
            err = result.errors[name]
            lines.append(f"{trunc(name, 30):30} {err.kind}: {trunc(err.message, 60)}")
    return "\n".join(lines)


def render_commit_breakdown(breakdown: CommitBreakdown, top_n: int = 5) -> str:
    lines = [f"{breakdown.branch}:"]
    for c in breakdown.commits[:top_n]:
        lines.append(f"  {c.commit[:12]} {format_size_mb(c.size):>10}  ({fmt_int(c.objects)} objects)")
    if not breakdown.commits:
        lines.append("  (no unique objects)")
    return "\n".join(lines)
