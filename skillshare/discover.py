from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatch
from pathlib import Path
from typing import Iterable

from .errors import DuplicateUnitError, SourceMissingError
from .links import is_junction, is_link
from .names import encode, is_hidden, is_tracked_repo_name


@dataclass(frozen=True)
class SkillUnit:
    """One syncable directory in the source.

    `rel_path` is always "/"-separated; `flat_name` is the entry name used in
    merge-mode targets.
    """

    flat_name: str
    rel_path: str
    source_path: Path
    from_tracked_repo: bool = False

    @property
    def repo_name(self) -> str | None:
        if not self.from_tracked_repo:
            return None
        return self.rel_path.split("/", 1)[0]

    def to_dict(self) -> dict:
        return {
            "flat_name": self.flat_name,
            "rel_path": self.rel_path,
            "source_path": str(self.source_path),
            "from_tracked_repo": self.from_tracked_repo,
        }


def _is_ignored(rel_path: str, patterns: tuple[str, ...]) -> bool:
    for pat in patterns:
        if fnmatch(rel_path, pat) or fnmatch(rel_path + "/", pat):
            return True
    return False


def _walk_tracked_repo(source: Path, repo_name: str) -> Iterable[str]:
    """Yield "/"-separated relative paths of every visible directory below a tracked repo.

    Unreadable subdirectories are skipped. Directory links are not followed.
    """

    repo_root = source / repo_name
    for dirpath, dirnames, _filenames in os.walk(repo_root, followlinks=False):
        keep: list[str] = []
        for d in sorted(dirnames):
            if is_hidden(d) or is_link(os.path.join(dirpath, d)):
                continue
            keep.append(d)
        # Prune in place so os.walk skips hidden and linked directories.
        dirnames[:] = keep

        rel = Path(dirpath).relative_to(source).as_posix()
        for d in keep:
            yield f"{rel}/{d}"


def discover_units(source: Path, *, ignore: Iterable[str] = ()) -> list[SkillUnit]:
    """Return the current inventory of skill units under `source`.

    Ordinary top-level directories are one unit each and are not recursed
    into. Top-level directories carrying the tracked-repo prefix are walked to
    any depth and every directory below them becomes a unit; the repo root
    itself is not a unit. Hidden entries are skipped at every level.

    Raises:
        SourceMissingError: `source` does not exist or is not a directory.
        DuplicateUnitError: two source paths render to the same flat name.
    """

    patterns = tuple(ignore)
    try:
        entries = sorted(os.scandir(source), key=lambda e: e.name)
    except (FileNotFoundError, NotADirectoryError) as e:
        raise SourceMissingError(path=Path(source)) from e

    seen: dict[str, SkillUnit] = {}

    def add(unit: SkillUnit) -> None:
        prev = seen.get(unit.flat_name)
        if prev is not None:
            raise DuplicateUnitError(flat_name=unit.flat_name, paths=(prev.rel_path, unit.rel_path))
        seen[unit.flat_name] = unit

    for entry in entries:
        if is_hidden(entry.name):
            continue
        try:
            if not entry.is_dir(follow_symlinks=False) or is_junction(entry.path):
                continue
        except OSError:
            continue

        if is_tracked_repo_name(entry.name):
            for rel in _walk_tracked_repo(Path(source), entry.name):
                if _is_ignored(rel, patterns):
                    continue
                add(
                    SkillUnit(
                        flat_name=encode(rel),
                        rel_path=rel,
                        source_path=Path(source) / Path(*rel.split("/")),
                        from_tracked_repo=True,
                    )
                )
            continue

        if _is_ignored(entry.name, patterns):
            continue
        add(
            SkillUnit(
                flat_name=encode(entry.name),
                rel_path=entry.name,
                source_path=Path(source) / entry.name,
            )
        )

    return sorted(seen.values(), key=lambda u: u.flat_name)


def tracked_repos(source: Path) -> list[str]:
    """Names of the tracked repos at the top of `source`."""

    try:
        entries = os.scandir(source)
    except OSError:
        return []
    with entries:
        out = [
            e.name
            for e in entries
            if is_tracked_repo_name(e.name) and e.is_dir(follow_symlinks=False)
        ]
    return sorted(out)
