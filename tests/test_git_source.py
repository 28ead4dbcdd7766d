from __future__ import annotations

from pathlib import Path

import pytest

from branch_weight.analysis_engine import run_accounting
from branch_weight.errors import ObjectLookupError, ResolutionError
from branch_weight.git import GitObjectSource, parse_batch_check_line, parse_diff_tree_blobs, parse_for_each_ref
from branch_weight.models import Branch

from gitrepo import build_two_feature_repo, init_repo, run


def test_parse_for_each_ref_strips_prefixes_and_skips_head() -> None:
    out = "\n".join(
        [
            "refs/heads/feat/x 1111",
            "refs/remotes/origin/HEAD 2222",
            "refs/remotes/origin/feat/y 3333",
            "garbage",
        ]
    )
    assert parse_for_each_ref(out) == [Branch("feat/x", "1111"), Branch("origin/feat/y", "3333")]


def test_parse_for_each_ref_keeps_full_refname_on_clash() -> None:
    out = "\n".join(
        [
            "refs/heads/origin/feat-a 1111",
            "refs/heads/feat-b 2222",
            "refs/remotes/origin/feat-a 3333",
            "refs/remotes/feat-b 4444",
            "refs/remotes/origin/feat-c 5555",
        ]
    )
    assert parse_for_each_ref(out) == [
        Branch("refs/heads/origin/feat-a", "1111"),
        Branch("refs/heads/feat-b", "2222"),
        Branch("refs/remotes/origin/feat-a", "3333"),
        Branch("refs/remotes/feat-b", "4444"),
        Branch("origin/feat-c", "5555"),
    ]


def test_local_branch_named_like_remote_is_listed_separately(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    ids = build_two_feature_repo(repo)
    run(["git", "branch", "origin/feat-a", "feat-b"], cwd=repo)
    run(["git", "update-ref", "refs/remotes/origin/feat-a", ids["a2"]], cwd=repo)
    source = GitObjectSource(repo)

    branches = source.list_unmerged_branches("refs/heads/main")
    names = sorted(b.name for b in branches)
    assert names == ["feat-a", "feat-b", "refs/heads/origin/feat-a", "refs/remotes/origin/feat-a"]

    result = run_accounting(source, "refs/heads/main", branches, jobs=2)
    assert result.completed
    assert result.errors == {}
    assert result.object_sets["refs/heads/origin/feat-a"].objects == result.object_sets["feat-b"].objects
    assert result.object_sets["refs/remotes/origin/feat-a"].objects == result.object_sets["feat-a"].objects


def test_parse_batch_check_line() -> None:
    info = parse_batch_check_line("abc blob 42")
    assert info is not None and info.type == "blob" and info.size == 42
    missing = parse_batch_check_line("def missing")
    assert missing is not None and missing.missing
    assert parse_batch_check_line("abc blob notanumber") is None


def test_parse_diff_tree_blobs_skips_submodules() -> None:
    out = "\n".join(
        [
            ":000000 100644 0000000000000000000000000000000000000000 aaaa A\tnew.txt",
            ":100644 100644 bbbb cccc M\tchanged.txt",
            ":120000 100644 eeee ffff T\tretyped",
            ":000000 160000 0000000000000000000000000000000000000000 dddd A\tvendor/sub",
        ]
    )
    assert parse_diff_tree_blobs(out) == ["aaaa", "cccc", "ffff"]


def test_detect_default_branch_and_list_unmerged(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    build_two_feature_repo(repo)
    source = GitObjectSource(repo)
    source.check_available()

    default = source.detect_default_branch()
    assert default == "refs/heads/main"

    names = sorted(b.name for b in source.list_unmerged_branches(default))
    assert names == ["feat-a", "feat-b"]


def test_list_unmerged_requires_resolvable_default(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    init_repo(repo)
    with pytest.raises(ResolutionError):
        GitObjectSource(repo).list_unmerged_branches("refs/heads/nope")


def test_detect_default_branch_fails_without_master_or_main(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    init_repo(repo)
    run(["git", "branch", "-m", "main", "trunk"], cwd=repo)
    with pytest.raises(ResolutionError, match="--branch"):
        GitObjectSource(repo).detect_default_branch()


def test_describe_object(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    ids = build_two_feature_repo(repo)
    source = GitObjectSource(repo)

    info = source.describe_object(ids["big"])
    assert info.type == "blob"
    assert info.size > 0
    with pytest.raises(ObjectLookupError):
        source.describe_object("0" * 40)


def test_accounting_on_real_repo(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    ids = build_two_feature_repo(repo)
    source = GitObjectSource(repo)
    branches = source.list_unmerged_branches("refs/heads/main")

    result = run_accounting(source, "refs/heads/main", branches, jobs=2)
    assert result.completed
    assert result.errors == {}

    a_set = result.object_sets["feat-a"].objects
    b_set = result.object_sets["feat-b"].objects
    assert set(a_set) == {ids["big"], ids["small"], ids["shared"]}
    assert set(b_set) == {ids["shared"], ids["b_only"]}

    by_name = {s.branch: s for s in result.branches}
    a, b = by_name["feat-a"], by_name["feat-b"]
    assert a.unique_objects == 2 and a.shared_objects == 1
    assert b.unique_objects == 1 and b.shared_objects == 1
    assert a.shared_size == b.shared_size == a_set[ids["shared"]]
    assert a.unique_size == a_set[ids["big"]] + a_set[ids["small"]]
    assert a.total_size == a.unique_size + a.shared_size
    assert [s.branch for s in result.branches] == ["feat-a", "feat-b"]

    assert result.summary is not None
    assert result.summary.distinct_size == a.unique_size + b.unique_size + a.shared_size


def test_unknown_tip_is_a_branch_error(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    build_two_feature_repo(repo)
    source = GitObjectSource(repo)
    branches = source.list_unmerged_branches("refs/heads/main")
    branches.append(Branch("ghost", "1" * 40))

    result = run_accounting(source, "refs/heads/main", branches, jobs=2)
    assert result.completed
    assert set(result.errors) == {"ghost"}
    assert result.errors["ghost"].kind == "resolution"
    assert sorted(s.branch for s in result.branches) == ["feat-a", "feat-b"]
