from __future__ import annotations

from pathlib import Path

from skillshare.doctor import check_link_support, find_broken_links, run_doctor
from skillshare.links import Linker


def _config(tmp_path: Path, targets: str = "") -> Path:
    (tmp_path / "src" / "a").mkdir(parents=True)
    (tmp_path / "src" / "a" / "SKILL.md").write_text("a", encoding="utf-8")
    p = tmp_path / "config.toml"
    p.write_text(f'source = "{tmp_path / "src"}"\n{targets}', encoding="utf-8")
    return p


def test_healthy_setup_passes(tmp_path: Path) -> None:
    (tmp_path / "home" / ".claude").mkdir(parents=True)
    p = _config(tmp_path, f'\n[targets.claude]\npath = "{tmp_path / "home" / ".claude" / "skills"}"\n')

    res = run_doctor(config_file=p)

    assert res.ok is True
    assert res.issues == ()
    assert "Symlink support: OK" in res.checks
    assert any(c.startswith("Source:") and "(1 skills)" in c for c in res.checks)


def test_missing_config_is_an_error(tmp_path: Path) -> None:
    res = run_doctor(config_file=tmp_path / "nope.toml")
    assert res.ok is False
    assert res.issues[0].id == "config"
    assert res.issues[0].fix_command == "skillshare init"


def test_reports_target_problems(tmp_path: Path) -> None:
    other = tmp_path / "other"
    other.mkdir()
    (tmp_path / "wrong").symlink_to(other, target_is_directory=True)
    p = _config(
        tmp_path,
        f'\n[targets.orphan]\npath = "{tmp_path / "no" / "parent" / "skills"}"\n'
        f'\n[targets.wrong]\npath = "{tmp_path / "wrong"}"\nmode = "symlink"\n',
    )

    res = run_doctor(config_file=p)

    assert res.ok is False
    messages = {i.id: i.message for i in res.issues}
    assert "parent directory not found" in messages["target:orphan"]
    assert "symlink points to wrong location" in messages["target:wrong"]


def test_broken_links_and_duplicates(tmp_path: Path) -> None:
    t = tmp_path / "t"
    t.mkdir()
    (t / "dead").symlink_to(tmp_path / "gone", target_is_directory=True)
    (t / "a").mkdir()
    p = _config(tmp_path, f'\n[targets.claude]\npath = "{t}"\n')

    res = run_doctor(config_file=p)

    by_id = {i.id: i for i in res.issues}
    assert by_id["broken:claude"].severity == "error"
    assert "dead" in by_id["broken:claude"].message
    assert by_id["duplicates"].severity == "warning"
    assert "a (source, claude)" in by_id["duplicates"].message
    assert res.ok is False


def test_mode_mismatch_is_a_warning(tmp_path: Path) -> None:
    p = _config(tmp_path)
    t = tmp_path / "t"
    t.symlink_to(tmp_path / "src", target_is_directory=True)
    p.write_text(p.read_text(encoding="utf-8") + f'\n[targets.claude]\npath = "{t}"\n', encoding="utf-8")

    res = run_doctor(config_file=p)

    assert res.ok is True
    assert [i.id for i in res.issues] == ["mode:claude"]
    assert "needs sync" in res.issues[0].message


def test_find_broken_links(tmp_path: Path) -> None:
    (tmp_path / "ok").mkdir()
    (tmp_path / "live").symlink_to(tmp_path / "ok", target_is_directory=True)
    (tmp_path / "dead").symlink_to(tmp_path / "gone")
    assert find_broken_links(tmp_path) == ["dead"]
    assert find_broken_links(tmp_path / "missing") == []


class _RefusingLinker(Linker):
    name = "refusing"

    def _link(self, link_path: Path, target_path: Path) -> None:
        raise OSError(1, "Operation not permitted")


def test_link_support_check_reports_failure() -> None:
    assert check_link_support() is None
    assert check_link_support(_RefusingLinker()) == "[Errno 1] Operation not permitted"


def test_skills_without_skill_md_are_a_warning(tmp_path: Path) -> None:
    p = _config(tmp_path)
    (tmp_path / "src" / "bare").mkdir()
    (tmp_path / "src" / "_team" / "nested").mkdir(parents=True)

    res = run_doctor(config_file=p)

    assert res.ok is True
    assert [(i.id, i.severity) for i in res.issues] == [("skill_md", "warning")]
    assert res.issues[0].message == "Skills without SKILL.md: bare"
