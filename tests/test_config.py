from __future__ import annotations

import json
from pathlib import Path

import pytest

from branch_weight.config import default_jobs, load_config, prompt_bool


def test_missing_config_is_empty(tmp_path: Path) -> None:
    assert load_config(tmp_path / "config.json") == {}
    assert load_config(None) == {}


def test_unknown_keys_are_dropped(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    p = tmp_path / "config.json"
    p.write_text(json.dumps({"jobs": 3, "me_emails": ["x@y"]}), encoding="utf-8")
    assert load_config(p) == {"jobs": 3}
    assert "me_emails" in capsys.readouterr().err


def test_non_object_config_rejected(tmp_path: Path) -> None:
    p = tmp_path / "config.json"
    p.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(p)


def test_prompt_bool(monkeypatch: pytest.MonkeyPatch) -> None:
    answers = iter(["", "n", "YES", "maybe"])
    monkeypatch.setattr("builtins.input", lambda _prompt: next(answers))
    assert prompt_bool("Go?", default=True) is True
    assert prompt_bool("Go?", default=True) is False
    assert prompt_bool("Go?", default=False) is True
    assert prompt_bool("Go?", default=False) is False


def test_default_jobs_bounds() -> None:
    assert 1 <= default_jobs() <= 8


@pytest.mark.parametrize(
    "data",
    [
        {"include_remotes": "false"},
        {"jobs": "four"},
        {"jobs": 0},
        {"jobs": True},
        {"top_commits": -1},
        {"timeout_s": "soon"},
        {"out_dir": 3},
    ],
)
def test_badly_typed_values_rejected(tmp_path: Path, data: dict) -> None:
    p = tmp_path / "config.json"
    p.write_text(json.dumps(data), encoding="utf-8")
    key = next(iter(data))
    with pytest.raises(ValueError, match=key):
        load_config(p)


def test_well_typed_values_accepted(tmp_path: Path) -> None:
    data = {"default_branch": "main", "jobs": 2, "include_remotes": False, "top_commits": 0, "timeout_s": 1.5, "out_dir": None}
    p = tmp_path / "config.json"
    p.write_text(json.dumps(data), encoding="utf-8")
    assert load_config(p) == data
