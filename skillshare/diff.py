"""Read-only preview of what `skillshare sync` would do to each target.

Both modes run the reconciler itself with `dry_run=True`, so the preview
cannot drift from the real sync decisions. Only the informational
"remove" items (local directories with no source counterpart, which sync
leaves alone) are gathered separately.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from .discover import SkillUnit
from .errors import SkillshareError
from .links import LinkKind, inspect, name_key
from .models import MODE_SYMLINK, ResolvedTarget
from .reconcile import sync_merge, sync_whole
from .status import TargetChild, scan_children


@dataclass(frozen=True)
class DiffItem:
    action: str  # add, update, modify, prune, remove, error
    name: str
    detail: str

    def to_dict(self) -> dict[str, str]:
        return {"action": self.action, "name": self.name, "detail": self.detail}


@dataclass(frozen=True)
class TargetDiff:
    name: str
    path: str
    mode: str
    items: list[DiffItem] = field(default_factory=list)
    message: str | None = None
    synced: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "mode": self.mode,
            "items": [i.to_dict() for i in self.items],
            "message": self.message,
            "synced": self.synced,
        }


def _whole_diff(target: ResolvedTarget, source: Path, base: dict[str, Any]) -> TargetDiff:
    try:
        res = sync_whole(target.path, source, name=target.name, dry_run=True)
    except SkillshareError as e:
        return TargetDiff(message=str(e), **base)
    if not res.changed:
        return TargetDiff(message="fully synced (symlink mode)", synced=True, **base)
    items = [DiffItem("prune", n, "(per-skill link, replaced by the whole link)") for n in res.removed]
    return TargetDiff(items=items, message=f"pending: {res.action}", **base)


def _children(path: Path, source: Path) -> dict[str, TargetChild]:
    if inspect(path).kind is not LinkKind.DIRECTORY:
        return {}
    return {name_key(c.name): c for c in scan_children(path, source)}


def diff_target(target: ResolvedTarget, source: Path, units: Iterable[SkillUnit]) -> TargetDiff:
    """Describe what differs between `source` and one target, without changing anything."""

    source = Path(source)
    base = {"name": target.name, "path": str(target.path), "mode": target.mode}
    if target.mode == MODE_SYMLINK:
        return _whole_diff(target, source, base)

    inventory = list(units)
    try:
        res = sync_merge(target.path, source, units=inventory, name=target.name, dry_run=True)
    except SkillshareError as e:
        return TargetDiff(message=str(e), **base)

    children = _children(target.path, source)
    items: list[DiffItem] = []
    for n in res.linked:
        items.append(DiffItem("add", n, "(in source, not in target)"))
    for n in res.updated:
        items.append(DiffItem("update", n, f"(link points to {children[name_key(n)].entry.target})"))
    for n in res.skipped:
        items.append(DiffItem("modify", n, "(local copy, not linked)"))
    for n in res.pruned:
        items.append(DiffItem("prune", n, "(stale link, no longer in source)"))
    for e in res.errors:
        items.append(DiffItem("error", e.name, e.message))

    desired = {name_key(u.flat_name) for u in inventory}
    for key, child in children.items():
        if key not in desired and child.is_local:
            items.append(DiffItem("remove", child.name, "(local only, not in source)"))
    items.sort(key=lambda i: i.name)

    message = None
    if res.switched:
        message = "linked as a whole (sync will switch to merge mode)"
    elif not items:
        message = "fully synced (merge mode)"
    # Local-only directories are informational; they never block "synced".
    synced = not (res.changed or res.errors)
    return TargetDiff(items=items, message=message, synced=synced, **base)
