from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from .config import parse_config_file
from .discover import discover_units
from .errors import SkillshareConfigError, SkillshareError
from .links import Linker, default_linker, inspect, LinkKind, name_key, paths_equal
from .models import MODE_MERGE, ResolvedTarget
from .names import is_hidden
from .paths import config_path
from .status import Status, classify_merge, classify_whole


@dataclass(frozen=True)
class DoctorIssue:
    """A single issue found by doctor diagnostics."""

    id: str
    severity: str  # "error", "warning"
    message: str
    fix_command: str | None = None


@dataclass(frozen=True)
class DoctorResult:
    ok: bool
    checks: tuple[str, ...] = ()
    issues: tuple[DoctorIssue, ...] = ()


def check_link_support(linker: Linker | None = None) -> str | None:
    """Try to create a directory link in a scratch dir. Returns an error message or None."""

    linker = linker or default_linker()
    with tempfile.TemporaryDirectory(prefix="skillshare-doctor-") as tmp:
        target = Path(tmp) / "target"
        target.mkdir()
        try:
            linker.create_link(Path(tmp) / "link", target)
        except (SkillshareError, OSError) as e:
            return str(e)
    return None


def find_broken_links(directory: Path) -> list[str]:
    """Names of links directly inside `directory` whose destination is gone."""

    try:
        names = sorted(os.listdir(directory))
    except OSError:
        return []
    broken: list[str] = []
    for n in names:
        entry = inspect(directory / n)
        if entry.kind is LinkKind.LINK and not os.path.exists(directory / n):
            broken.append(n)
    return broken


def _local_dirs(directory: Path) -> list[str]:
    try:
        names = sorted(os.listdir(directory))
    except OSError:
        return []
    return [
        n
        for n in names
        if not is_hidden(n) and inspect(directory / n).kind is LinkKind.DIRECTORY
    ]


def _target_problems(t: ResolvedTarget, source: Path) -> list[str]:
    problems: list[str] = []
    entry = inspect(t.path)
    if entry.kind is LinkKind.MISSING:
        if not t.path.parent.exists():
            problems.append("parent directory not found")
        return problems

    if entry.kind is LinkKind.LINK:
        if entry.target is None or not paths_equal(entry.target, source):
            problems.append(f"symlink points to wrong location: {entry.target}")
        return problems

    if entry.kind is LinkKind.DIRECTORY:
        scratch = t.path / ".skillshare_write_test"
        try:
            scratch.write_text("", encoding="utf-8")
            scratch.unlink()
        except OSError:
            problems.append("not writable")
    else:
        problems.append("not a directory")
    return problems


def _mode_note(t: ResolvedTarget, source: Path) -> str | None:
    if t.mode == MODE_MERGE:
        if classify_merge(t.path, source).status is Status.LINKED:
            return "linked (needs sync to apply merge mode)"
        return None
    if classify_whole(t.path, source) is Status.MERGED:
        return "merged (needs sync to apply symlink mode)"
    return None


def run_doctor(*, config_file: Path | None = None, linker: Linker | None = None) -> DoctorResult:
    """Run environment diagnostics.

    Checks:
    - config present and valid
    - source exists and its skills discover cleanly
    - every top-level skill has a SKILL.md (warning)
    - directory links can be created
    - each target is reachable, writable and in the shape its mode expects
    - no broken links inside targets
    - no skill name exists both in source and as a local directory in a target (warning)
    """

    checks: list[str] = []
    issues: list[DoctorIssue] = []

    p = config_file or config_path()
    try:
        cfg = parse_config_file(p)
    except SkillshareConfigError as e:
        issues.append(DoctorIssue(id="config", severity="error", message=str(e), fix_command="skillshare init"))
        return DoctorResult(ok=False, checks=tuple(checks), issues=tuple(issues))
    checks.append(f"Config: {p}")

    source = cfg.source_path
    source_names: list[str] = []
    if not source.is_dir():
        issues.append(DoctorIssue(id="source", severity="error", message=f"Source not found: {source}"))
    else:
        try:
            units = discover_units(source, ignore=cfg.ignore)
            source_names = [u.flat_name for u in units]
            checks.append(f"Source: {source} ({len(units)} skills)")
            missing_md = [
                u.flat_name
                for u in units
                if not u.from_tracked_repo and not (u.source_path / "SKILL.md").is_file()
            ]
            if missing_md:
                issues.append(
                    DoctorIssue(
                        id="skill_md",
                        severity="warning",
                        message=f"Skills without SKILL.md: {', '.join(missing_md)}",
                    )
                )
        except SkillshareError as e:
            issues.append(DoctorIssue(id="source", severity="error", message=str(e)))

    link_err = check_link_support(linker)
    if link_err:
        issues.append(DoctorIssue(id="links", severity="error", message=f"Symlink not supported: {link_err}"))
    else:
        checks.append("Symlink support: OK")

    locations: dict[str, list[str]] = {name_key(n): ["source"] for n in source_names}
    display: dict[str, str] = {name_key(n): n for n in source_names}

    for t in cfg.resolved_targets():
        problems = _target_problems(t, source)
        if problems:
            issues.append(
                DoctorIssue(
                    id=f"target:{t.name}",
                    severity="error",
                    message=f"{t.name} [{t.mode}]: {', '.join(problems)}",
                    fix_command="skillshare sync --force",
                )
            )
            continue

        note = None
        try:
            note = _mode_note(t, source)
        except SkillshareError as e:
            issues.append(DoctorIssue(id=f"target:{t.name}", severity="error", message=f"{t.name}: {e}"))
            continue
        if note:
            issues.append(
                DoctorIssue(
                    id=f"mode:{t.name}",
                    severity="warning",
                    message=f"{t.name} [{t.mode}]: {note}",
                    fix_command="skillshare sync",
                )
            )
        else:
            checks.append(f"Target {t.name} [{t.mode}]: OK")

        if inspect(t.path).kind is not LinkKind.DIRECTORY:
            continue
        broken = find_broken_links(t.path)
        if broken:
            issues.append(
                DoctorIssue(
                    id=f"broken:{t.name}",
                    severity="error",
                    message=f"{t.name}: {len(broken)} broken symlink(s): {', '.join(broken)}",
                    fix_command="skillshare sync",
                )
            )
        for n in _local_dirs(t.path):
            key = name_key(n)
            display.setdefault(key, n)
            locations.setdefault(key, []).append(t.name)

    duplicates = sorted(
        f"{display[k]} ({', '.join(locs)})" for k, locs in locations.items() if len(locs) > 1
    )
    if duplicates:
        issues.append(
            DoctorIssue(id="duplicates", severity="warning", message=f"Duplicate skills: {'; '.join(duplicates)}")
        )

    ok = not any(i.severity == "error" for i in issues)
    return DoctorResult(ok=ok, checks=tuple(checks), issues=tuple(issues))
