from __future__ import annotations

from pathlib import Path

import pytest

from skillshare.errors import DuplicateUnitError, SourceMissingError
from skillshare.links import read_link, resolves_to
from skillshare.models import ResolvedTarget
from skillshare.reconcile import ACTION_CREATED, sync_targets


def _source(tmp_path: Path) -> Path:
    src = tmp_path / "src"
    (src / "a").mkdir(parents=True)
    (src / "b").mkdir()
    return src


def test_one_conflicting_target_does_not_block_the_others(tmp_path: Path) -> None:
    src = _source(tmp_path)
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    stuck = tmp_path / "stuck"
    stuck.symlink_to(elsewhere, target_is_directory=True)

    targets = [
        ResolvedTarget(name="claude", path=tmp_path / "claude", mode="merge"),
        ResolvedTarget(name="codex", path=stuck, mode="symlink"),
        ResolvedTarget(name="gemini", path=tmp_path / "gemini", mode="symlink"),
    ]
    report = sync_targets(src, targets)

    by_name = {r.name: r for r in report.results}
    assert report.ok is False
    assert [u.flat_name for u in report.units] == ["a", "b"]

    assert by_name["claude"].ok
    assert by_name["claude"].merge is not None
    assert by_name["claude"].merge.linked == ["a", "b"]

    assert by_name["codex"].error_type == "ConflictError"
    assert read_link(stuck) == elsewhere

    assert by_name["gemini"].whole is not None
    assert by_name["gemini"].whole.action == ACTION_CREATED
    assert resolves_to(tmp_path / "gemini", src)


def test_force_resolves_conflicts(tmp_path: Path) -> None:
    src = _source(tmp_path)
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    stuck = tmp_path / "stuck"
    stuck.symlink_to(elsewhere, target_is_directory=True)

    report = sync_targets(src, [ResolvedTarget(name="codex", path=stuck, mode="symlink")], force=True)
    assert report.ok
    assert resolves_to(stuck, src)


def test_unknown_mode_is_recorded_per_target(tmp_path: Path) -> None:
    src = _source(tmp_path)
    report = sync_targets(
        src,
        [
            ResolvedTarget(name="odd", path=tmp_path / "odd", mode="copy"),
            ResolvedTarget(name="ok", path=tmp_path / "ok", mode="merge"),
        ],
    )
    assert report.results[0].error == "unsupported mode: copy"
    assert report.results[1].ok


def test_missing_source_aborts_the_run(tmp_path: Path) -> None:
    with pytest.raises(SourceMissingError):
        sync_targets(tmp_path / "nope", [ResolvedTarget(name="t", path=tmp_path / "t", mode="merge")])
    assert not (tmp_path / "t").exists()


def test_duplicate_flat_names_abort_the_run(tmp_path: Path) -> None:
    src = tmp_path / "src"
    (src / "_repo" / "a" / "b").mkdir(parents=True)
    (src / "_repo" / "a__b").mkdir()

    with pytest.raises(DuplicateUnitError):
        sync_targets(src, [ResolvedTarget(name="t", path=tmp_path / "t", mode="merge")])


def test_report_serializes_to_plain_types(tmp_path: Path) -> None:
    src = _source(tmp_path)
    report = sync_targets(src, [ResolvedTarget(name="t", path=tmp_path / "t", mode="merge")], dry_run=True)

    d = report.to_dict()
    assert d["ok"] is True
    assert d["dry_run"] is True
    assert d["units"] == ["a", "b"]
    assert d["results"][0]["merge"]["linked"] == ["a", "b"]
    assert not (tmp_path / "t").exists()
