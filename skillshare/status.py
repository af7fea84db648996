from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .errors import TargetAccessError
from .links import LinkEntry, LinkKind, inspect, path_is_under, resolves_to
from .names import is_hidden


class Status(str, Enum):
    """Observed state of a target relative to the source."""

    NOT_EXIST = "not exist"
    LINKED = "linked"
    HAS_FILES = "has files"
    BROKEN = "broken"
    CONFLICT = "conflict"
    MERGED = "merged"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class MergeStatus:
    status: Status
    linked_count: int = 0
    local_count: int = 0

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "linked": self.linked_count,
            "local": self.local_count,
        }


@dataclass(frozen=True)
class TargetChild:
    """A visible entry inside a merge-mode target directory."""

    entry: LinkEntry
    # True when the entry is a link whose destination lies under the source.
    managed: bool

    @property
    def name(self) -> str:
        return self.entry.name

    @property
    def is_local(self) -> bool:
        return self.entry.kind is LinkKind.DIRECTORY


def scan_children(target: Path, source: Path) -> list[TargetChild]:
    """Inspect every visible child of a target directory.

    Raises:
        TargetAccessError: the directory cannot be listed.
    """

    try:
        names = sorted(os.listdir(target))
    except OSError as e:
        raise TargetAccessError(path=Path(target), message=e.strerror or str(e)) from e

    out: list[TargetChild] = []
    for name in names:
        if is_hidden(name):
            continue
        entry = inspect(Path(target) / name)
        managed = entry.is_link and entry.target is not None and path_is_under(entry.target, source)
        out.append(TargetChild(entry=entry, managed=managed))
    return out


def _classify_link(entry: LinkEntry, source: Path) -> Status:
    if resolves_to(entry.path, source):
        return Status.LINKED
    if entry.dangling:
        return Status.BROKEN
    return Status.CONFLICT


def classify_whole(target: Path, source: Path) -> Status:
    """Classify a target configured for whole-directory (symlink) mode.

    A real directory holding links into the source reports MERGED, meaning a
    switch from merge mode is pending.
    """

    entry = inspect(target)
    if entry.kind is LinkKind.MISSING:
        return Status.NOT_EXIST
    if entry.kind is LinkKind.LINK:
        return _classify_link(entry, source)
    if entry.kind is LinkKind.DIRECTORY:
        if any(c.managed for c in scan_children(target, source)):
            return Status.MERGED
        return Status.HAS_FILES
    return Status.BROKEN


def classify_merge(target: Path, source: Path) -> MergeStatus:
    """Classify a target configured for merge mode.

    Returns the status together with the number of children linked into the
    source and the number of local (real) directories. LINKED here means the
    whole directory is still one link and a resync is needed to switch modes.
    """

    entry = inspect(target)
    if entry.kind is LinkKind.MISSING:
        return MergeStatus(Status.NOT_EXIST)
    if entry.kind is LinkKind.LINK:
        return MergeStatus(_classify_link(entry, source))
    if entry.kind is not LinkKind.DIRECTORY:
        return MergeStatus(Status.BROKEN)

    linked = 0
    local = 0
    for child in scan_children(target, source):
        if child.managed:
            linked += 1
        elif child.is_local:
            local += 1
    status = Status.MERGED if linked > 0 else Status.HAS_FILES
    return MergeStatus(status, linked_count=linked, local_count=local)
