from __future__ import annotations

import os
from pathlib import Path

import pytest

from skillshare.errors import ConflictError, TargetAccessError
from skillshare.links import SymlinkLinker, read_link, resolves_to
from skillshare.reconcile import sync_merge


def _source(tmp_path: Path, *names: str) -> Path:
    src = tmp_path / "src"
    src.mkdir()
    for n in names:
        (src / n).mkdir(parents=True)
        (src / n / "SKILL.md").write_text(n, encoding="utf-8")
    return src


def test_links_every_unit_into_empty_target(tmp_path: Path) -> None:
    src = _source(tmp_path, "a", "b")
    target = tmp_path / "t"

    res = sync_merge(target, src, name="claude")

    assert res.linked == ["a", "b"]
    assert res.updated == [] and res.skipped == [] and res.pruned == []
    assert target.is_dir() and not target.is_symlink()
    assert resolves_to(target / "a", src / "a")
    assert resolves_to(target / "b", src / "b")


def test_local_only_directory_is_left_alone(tmp_path: Path) -> None:
    src = _source(tmp_path, "a", "b")
    target = tmp_path / "t"
    (target / "c").mkdir(parents=True)
    (target / "c" / "SKILL.md").write_text("local", encoding="utf-8")

    res = sync_merge(target, src)

    assert res.linked == ["a", "b"]
    for bucket in (res.linked, res.updated, res.skipped, res.pruned, res.preserved):
        assert "c" not in bucket
    assert (target / "c" / "SKILL.md").read_text(encoding="utf-8") == "local"


def test_prunes_links_to_removed_units(tmp_path: Path) -> None:
    src = _source(tmp_path, "old")
    target = tmp_path / "t"
    sync_merge(target, src)
    assert (target / "old").is_symlink()

    for p in (src / "old").iterdir():
        p.unlink()
    (src / "old").rmdir()
    (src / "new").mkdir()

    res = sync_merge(target, src)
    assert res.pruned == ["old"]
    assert res.linked == ["new"]
    assert not os.path.lexists(target / "old")
    assert resolves_to(target / "new", src / "new")


def test_local_directory_wins_over_same_named_unit(tmp_path: Path) -> None:
    src = _source(tmp_path, "a", "b")
    target = tmp_path / "t"
    (target / "a").mkdir(parents=True)
    (target / "a" / "SKILL.md").write_text("local a", encoding="utf-8")

    for force in (False, True):
        res = sync_merge(target, src, force=force)
        assert res.skipped == ["a"]
        assert (target / "a").is_dir() and not (target / "a").is_symlink()
        assert (target / "a" / "SKILL.md").read_text(encoding="utf-8") == "local a"


def test_wrong_link_is_updated(tmp_path: Path) -> None:
    src = _source(tmp_path, "a")
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    target = tmp_path / "t"
    target.mkdir()
    (target / "a").symlink_to(elsewhere, target_is_directory=True)

    res = sync_merge(target, src)

    assert res.updated == ["a"]
    assert resolves_to(target / "a", src / "a")
    assert elsewhere.is_dir()


def test_second_run_changes_nothing(tmp_path: Path) -> None:
    src = _source(tmp_path, "a", "b")
    target = tmp_path / "t"
    (target / "mine").mkdir(parents=True)
    sync_merge(target, src)

    res = sync_merge(target, src)
    assert res.preserved == ["a", "b"]
    assert res.changed is False
    assert sorted(os.listdir(target)) == ["a", "b", "mine"]


def test_dry_run_touches_nothing(tmp_path: Path) -> None:
    src = _source(tmp_path, "a", "gone")
    target = tmp_path / "t"
    sync_merge(target, src)
    for p in (src / "gone").iterdir():
        p.unlink()
    (src / "gone").rmdir()
    (src / "fresh").mkdir()
    before = sorted(os.listdir(target))

    res = sync_merge(target, src, dry_run=True)
    assert res.linked == ["fresh"]
    assert res.pruned == ["gone"]
    assert sorted(os.listdir(target)) == before

    missing = tmp_path / "missing"
    res2 = sync_merge(missing, src, dry_run=True)
    assert res2.linked == ["a", "fresh"]
    assert not missing.exists()


def test_whole_link_to_source_is_switched_to_directory(tmp_path: Path) -> None:
    src = _source(tmp_path, "a")
    target = tmp_path / "t"
    target.symlink_to(src, target_is_directory=True)

    res = sync_merge(target, src)

    assert res.switched is True
    assert res.linked == ["a"]
    assert target.is_dir() and not target.is_symlink()
    assert resolves_to(target / "a", src / "a")
    assert (src / "a" / "SKILL.md").exists()


def test_target_linked_elsewhere_requires_force(tmp_path: Path) -> None:
    src = _source(tmp_path, "a")
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    target = tmp_path / "t"
    target.symlink_to(elsewhere, target_is_directory=True)

    with pytest.raises(ConflictError):
        sync_merge(target, src)
    assert read_link(target) == elsewhere

    res = sync_merge(target, src, force=True)
    assert res.switched is True
    assert target.is_dir() and not target.is_symlink()


def test_plain_file_target_is_an_access_error(tmp_path: Path) -> None:
    src = _source(tmp_path, "a")
    target = tmp_path / "t"
    target.write_text("x", encoding="utf-8")

    with pytest.raises(TargetAccessError):
        sync_merge(target, src)


def test_unit_failure_does_not_stop_the_others(tmp_path: Path) -> None:
    src = _source(tmp_path, "a", "b", "c")
    target = tmp_path / "t"
    target.mkdir()
    (target / "b").write_text("not a skill", encoding="utf-8")

    res = sync_merge(target, src)

    assert res.linked == ["a", "c"]
    assert [e.name for e in res.errors] == ["b"]
    assert (target / "b").read_text(encoding="utf-8") == "not a skill"


def test_tracked_repo_units_are_linked_under_flat_names(tmp_path: Path) -> None:
    src = _source(tmp_path, "plain")
    (src / "_team" / "frontend" / "ui").mkdir(parents=True)
    (src / "_team" / ".git").mkdir()
    target = tmp_path / "t"

    res = sync_merge(target, src)

    assert res.linked == ["_team__frontend", "_team__frontend__ui", "plain"]
    assert resolves_to(target / "_team__frontend__ui", src / "_team" / "frontend" / "ui")


def test_foreign_links_in_target_are_not_pruned(tmp_path: Path) -> None:
    src = _source(tmp_path, "a")
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    target = tmp_path / "t"
    target.mkdir()
    (target / "theirs").symlink_to(elsewhere, target_is_directory=True)

    res = sync_merge(target, src)

    assert res.pruned == []
    assert read_link(target / "theirs") == elsewhere


class _DenyOneLinker(SymlinkLinker):
    def __init__(self, denied: str) -> None:
        self.denied = denied

    def _link(self, link_path: Path, target_path: Path) -> None:
        if link_path.name == self.denied:
            raise PermissionError(13, "Permission denied")
        super()._link(link_path, target_path)


def test_permission_error_on_one_link_is_collected(tmp_path: Path) -> None:
    src = _source(tmp_path, "a", "b", "c")
    target = tmp_path / "t"

    res = sync_merge(target, src, linker=_DenyOneLinker("b"))

    assert res.linked == ["a", "c"]
    assert [(e.name, e.message) for e in res.errors] == [("b", "Permission denied")]
    assert resolves_to(target / "a", src / "a")
    assert not os.path.lexists(target / "b")


@pytest.mark.skipif(hasattr(os, "geteuid") and os.geteuid() == 0, reason="root ignores directory permissions")
def test_read_only_target_records_link_and_prune_failures(tmp_path: Path) -> None:
    src = _source(tmp_path, "a", "b", "old")
    target = tmp_path / "t"
    sync_merge(target, src)
    (target / "b").unlink()
    for p in (src / "old").iterdir():
        p.unlink()
    (src / "old").rmdir()

    target.chmod(0o555)
    try:
        res = sync_merge(target, src)
    finally:
        target.chmod(0o755)

    assert res.preserved == ["a"]
    assert res.linked == []
    assert res.pruned == []
    assert [e.name for e in res.errors] == ["b", "old"]
    assert resolves_to(target / "a", src / "a")
    assert os.path.lexists(target / "old")
