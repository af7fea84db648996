from __future__ import annotations

from pathlib import Path

import pytest

from skillshare.errors import TargetAccessError
from skillshare.status import Status, classify_merge, classify_whole, scan_children


def _source(tmp_path: Path) -> Path:
    src = tmp_path / "src"
    (src / "a").mkdir(parents=True)
    (src / "b").mkdir()
    return src


def test_classify_whole_covers_every_state(tmp_path: Path) -> None:
    src = _source(tmp_path)
    other = tmp_path / "other"
    other.mkdir()

    missing = tmp_path / "missing"
    linked = tmp_path / "linked"
    linked.symlink_to(src, target_is_directory=True)
    conflict = tmp_path / "conflict"
    conflict.symlink_to(other, target_is_directory=True)
    broken = tmp_path / "broken"
    broken.symlink_to(tmp_path / "gone")
    has_files = tmp_path / "has_files"
    (has_files / "mine").mkdir(parents=True)
    merged = tmp_path / "merged"
    merged.mkdir()
    (merged / "a").symlink_to(src / "a", target_is_directory=True)
    plain = tmp_path / "plain"
    plain.write_text("x", encoding="utf-8")

    seen = {
        classify_whole(missing, src),
        classify_whole(linked, src),
        classify_whole(conflict, src),
        classify_whole(broken, src),
        classify_whole(has_files, src),
        classify_whole(merged, src),
    }
    assert seen == set(Status)

    assert classify_whole(missing, src) is Status.NOT_EXIST
    assert classify_whole(linked, src) is Status.LINKED
    assert classify_whole(conflict, src) is Status.CONFLICT
    assert classify_whole(broken, src) is Status.BROKEN
    assert classify_whole(has_files, src) is Status.HAS_FILES
    assert classify_whole(merged, src) is Status.MERGED
    assert classify_whole(plain, src) is Status.BROKEN


def test_classify_whole_empty_directory_has_files(tmp_path: Path) -> None:
    src = _source(tmp_path)
    (tmp_path / "t").mkdir()
    assert classify_whole(tmp_path / "t", src) is Status.HAS_FILES


def test_classify_merge_counts_linked_and_local(tmp_path: Path) -> None:
    src = _source(tmp_path)
    t = tmp_path / "t"
    t.mkdir()
    (t / "a").symlink_to(src / "a", target_is_directory=True)
    (t / "b").symlink_to(src / "b", target_is_directory=True)
    (t / "mine").mkdir()
    (t / ".hidden").mkdir()
    (t / "notes.txt").write_text("x", encoding="utf-8")

    res = classify_merge(t, src)
    assert res.status is Status.MERGED
    assert res.linked_count == 2
    assert res.local_count == 1


def test_classify_merge_without_links_reports_has_files(tmp_path: Path) -> None:
    src = _source(tmp_path)
    t = tmp_path / "t"
    (t / "mine").mkdir(parents=True)

    res = classify_merge(t, src)
    assert res.status is Status.HAS_FILES
    assert res.linked_count == 0
    assert res.local_count == 1


def test_classify_merge_link_states(tmp_path: Path) -> None:
    src = _source(tmp_path)
    whole = tmp_path / "whole"
    whole.symlink_to(src, target_is_directory=True)
    broken = tmp_path / "broken"
    broken.symlink_to(tmp_path / "gone")
    plain = tmp_path / "plain"
    plain.write_text("x", encoding="utf-8")

    assert classify_merge(tmp_path / "missing", src).status is Status.NOT_EXIST
    assert classify_merge(whole, src).status is Status.LINKED
    assert classify_merge(broken, src).status is Status.BROKEN
    assert classify_merge(plain, src).status is Status.BROKEN


def test_scan_children_marks_managed_links(tmp_path: Path) -> None:
    src = _source(tmp_path)
    other = tmp_path / "other"
    other.mkdir()
    t = tmp_path / "t"
    t.mkdir()
    (t / "a").symlink_to(src / "a", target_is_directory=True)
    (t / "foreign").symlink_to(other, target_is_directory=True)
    (t / "mine").mkdir()

    children = {c.name: c for c in scan_children(t, src)}
    assert children["a"].managed is True
    assert children["foreign"].managed is False
    assert children["mine"].managed is False
    assert children["mine"].is_local is True


def test_scan_children_of_missing_directory_raises(tmp_path: Path) -> None:
    with pytest.raises(TargetAccessError):
        scan_children(tmp_path / "nope", tmp_path)


def test_status_strings_match_display_form() -> None:
    assert str(Status.NOT_EXIST) == "not exist"
    assert str(Status.HAS_FILES) == "has files"
    assert f"{Status.MERGED}" == "merged"
