"""Copy skills that only exist inside a target back into the source.

A merge-mode target can hold real directories the user created there
directly. `find_local_skills` lists them; `collect_skills` copies them into
the source so the next `skillshare sync` can share them with every target.
The target copies are left in place.
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from .errors import TargetAccessError
from .links import LinkKind, inspect, name_key
from .models import ResolvedTarget
from .reconcile import UnitError
from .status import scan_children


@dataclass(frozen=True)
class LocalSkill:
    name: str
    target: str
    path: Path

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "target": self.target, "path": str(self.path)}


@dataclass(frozen=True)
class CollectResult:
    collected: list[str] = field(default_factory=list)
    # Already present in the source and not overwritten.
    skipped: list[str] = field(default_factory=list)
    errors: list[UnitError] = field(default_factory=list)
    dry_run: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "collected": list(self.collected),
            "skipped": list(self.skipped),
            "errors": [e.to_dict() for e in self.errors],
            "dry_run": self.dry_run,
        }


def find_local_skills(target: ResolvedTarget, source: Path) -> list[LocalSkill]:
    """Real (non-link) directories directly inside a target.

    A target that is missing or is itself a link has none.

    Raises:
        TargetAccessError: the target is a plain file or cannot be listed.
    """

    entry = inspect(target.path)
    if entry.kind in (LinkKind.MISSING, LinkKind.LINK):
        return []
    if entry.kind is not LinkKind.DIRECTORY:
        raise TargetAccessError(path=Path(target.path), message="not a directory")
    return [
        LocalSkill(name=c.name, target=target.name, path=c.entry.path)
        for c in scan_children(target.path, Path(source))
        if c.is_local
    ]


def _remove_existing(path: Path) -> None:
    entry = inspect(path)
    if entry.kind is LinkKind.DIRECTORY:
        shutil.rmtree(path)
    elif entry.kind is not LinkKind.MISSING:
        os.unlink(path)


def collect_skills(
    skills: Iterable[LocalSkill],
    source: Path,
    *,
    dry_run: bool = False,
    force: bool = False,
) -> CollectResult:
    """Copy each local skill to `source/<name>`.

    A name that already exists in the source is skipped unless `force`, in
    which case the source copy is replaced. When two targets hold the same
    name, the first one wins. Copy failures are collected per skill.
    """

    source = Path(source)
    collected: list[str] = []
    skipped: list[str] = []
    errors: list[UnitError] = []
    claimed: set[str] = set()

    for skill in skills:
        key = name_key(skill.name)
        dest = source / skill.name
        if key in claimed:
            skipped.append(skill.name)
            continue
        exists = inspect(dest).kind is not LinkKind.MISSING
        if exists and not force:
            skipped.append(skill.name)
            continue
        claimed.add(key)
        if dry_run:
            collected.append(skill.name)
            continue
        try:
            if exists:
                _remove_existing(dest)
            shutil.copytree(skill.path, dest, symlinks=True)
        except OSError as e:
            errors.append(UnitError(skill.name, e.strerror or str(e)))
            continue
        collected.append(skill.name)

    return CollectResult(collected=collected, skipped=skipped, errors=errors, dry_run=dry_run)
