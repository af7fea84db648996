"""Drive targets toward the source inventory.

Two strategies, selected by the target's mode:

- whole (symlink) mode: the target path is one link to the source.
- merge mode: the target is a real directory with one link per unit, next to
  any directories the user owns locally.

All state is read back from the filesystem on every call. Targets are
reconciled one after another and independently; a failure on one target is
recorded and the next one is still attempted. Running two instances against
the same target at once is not supported (last writer wins).
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from .discover import SkillUnit, discover_units
from .errors import (
    ConflictError,
    LinkUnsupportedError,
    SkillshareError,
    SourceMissingError,
    TargetAccessError,
    UnmanagedContentError,
)
from .links import LinkKind, Linker, default_linker, inspect, name_key, read_link, resolves_to
from .models import MODE_MERGE, MODE_SYMLINK, ResolvedTarget
from .status import Status, TargetChild, classify_whole, scan_children


# Whole-mode actions
ACTION_CREATED = "created"
ACTION_ALREADY_LINKED = "already linked"
ACTION_RELINKED = "broken link fixed"
ACTION_REPLACED = "conflict resolved (forced)"
ACTION_MIGRATED = "files migrated and linked"
ACTION_MODE_SWITCHED = "switched from merge mode"


@dataclass(frozen=True)
class WholeResult:
    target: str
    path: str
    status: Status
    action: str
    dry_run: bool = False
    migrated: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.action != ACTION_ALREADY_LINKED

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "path": self.path,
            "status": self.status.value,
            "action": self.action,
            "dry_run": self.dry_run,
            "migrated": list(self.migrated),
            "removed": list(self.removed),
        }


@dataclass(frozen=True)
class UnitError:
    name: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "message": self.message}


@dataclass(frozen=True)
class MergeResult:
    target: str
    path: str
    linked: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    pruned: list[str] = field(default_factory=list)
    # Units whose link was already correct.
    preserved: list[str] = field(default_factory=list)
    errors: list[UnitError] = field(default_factory=list)
    # True when a whole-directory link was replaced by a real directory.
    switched: bool = False
    dry_run: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.linked or self.updated or self.pruned or self.switched)

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "path": self.path,
            "linked": list(self.linked),
            "updated": list(self.updated),
            "skipped": list(self.skipped),
            "pruned": list(self.pruned),
            "preserved": list(self.preserved),
            "errors": [e.to_dict() for e in self.errors],
            "switched": self.switched,
            "dry_run": self.dry_run,
        }


def _require_source(source: Path) -> None:
    if not Path(source).is_dir():
        raise SourceMissingError(path=Path(source))


def _remove_entry(path: Path, linker: Linker) -> None:
    """Remove a link or a plain file. Never removes a real directory."""

    entry = inspect(path)
    if entry.kind is LinkKind.LINK:
        linker.remove_link(path)
    elif entry.kind is LinkKind.OTHER:
        os.unlink(path)
    elif entry.kind is LinkKind.DIRECTORY:
        raise TargetAccessError(path=Path(path), message="refusing to remove a real directory")


def _wrap_os_error(path: Path, e: OSError) -> TargetAccessError:
    return TargetAccessError(path=Path(path), message=e.strerror or str(e))


# ---------------------------------------------------------------------------
# Whole (symlink) mode
# ---------------------------------------------------------------------------


def _link_whole(target: Path, source: Path, linker: Linker, *, dry_run: bool) -> None:
    if dry_run:
        return
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise _wrap_os_error(target.parent, e) from e
    linker.create_link(target, source)


def _check_migration(target: Path, source: Path, names: list[str]) -> None:
    for name in names:
        if os.path.lexists(source / name):
            raise ConflictError(
                path=target / name,
                reason=f"{name!r} already exists in source {source}; resolve it manually",
            )


def _migrate_into_source(target: Path, source: Path, names: list[str], *, dry_run: bool) -> None:
    """Move every named child of `target` into `source`. Collisions are checked beforehand."""

    if dry_run:
        return
    for name in names:
        try:
            shutil.move(str(target / name), str(source / name))
        except OSError as e:
            raise _wrap_os_error(target / name, e) from e


def sync_whole(
    target: Path,
    source: Path,
    *,
    name: str = "",
    dry_run: bool = False,
    force: bool = False,
    migrate: bool = False,
    linker: Linker | None = None,
) -> WholeResult:
    """Make `target` a single link to `source`.

    Idempotent: a target that already links to the source is left alone.
    Under `dry_run` nothing is touched but the returned action is the one
    that would have been taken.

    Policy for a real directory at `target` (HAS_FILES): without `migrate`
    an `UnmanagedContentError` is raised and nothing changes. With `migrate`
    its entries are moved into the source first; an entry whose name already
    exists in the source aborts with `ConflictError` before anything moves.
    An empty directory is replaced without asking.

    Raises:
        SourceMissingError: `source` is not a directory.
        ConflictError: the target links elsewhere (or is a plain file) and
            `force` is not set.
        UnmanagedContentError: see above.
        TargetAccessError: the target cannot be read or written.
    """

    target = Path(target)
    source = Path(source)
    linker = linker or default_linker()
    _require_source(source)

    status = classify_whole(target, source)
    result_kw: dict[str, Any] = {"target": name, "path": str(target), "status": status, "dry_run": dry_run}

    if status is Status.LINKED:
        return WholeResult(action=ACTION_ALREADY_LINKED, **result_kw)

    if status is Status.NOT_EXIST:
        _link_whole(target, source, linker, dry_run=dry_run)
        return WholeResult(action=ACTION_CREATED, **result_kw)

    if status is Status.CONFLICT:
        if not force:
            dest = read_link(target)
            raise ConflictError(path=target, points_to=str(dest) if dest else None)
        if not dry_run:
            linker.remove_link(target)
        _link_whole(target, source, linker, dry_run=dry_run)
        return WholeResult(action=ACTION_REPLACED, **result_kw)

    if status is Status.BROKEN:
        entry = inspect(target)
        if entry.kind is not LinkKind.LINK and not force:
            raise ConflictError(path=target, reason="a file occupies the target path (use --force to replace it)")
        if not dry_run:
            try:
                _remove_entry(target, linker)
            except OSError as e:
                raise _wrap_os_error(target, e) from e
        _link_whole(target, source, linker, dry_run=dry_run)
        return WholeResult(action=ACTION_RELINKED, **result_kw)

    # Real directory: MERGED (pending switch from merge mode) or HAS_FILES.
    children = scan_children(target, source)
    managed = [c.name for c in children if c.managed]
    managed_keys = {name_key(n) for n in managed}
    try:
        all_names = sorted(os.listdir(target))
    except OSError as e:
        raise _wrap_os_error(target, e) from e
    remaining = [n for n in all_names if name_key(n) not in managed_keys]

    if remaining and not migrate:
        raise UnmanagedContentError(path=target, entries=tuple(remaining))
    # Every collision is checked before anything is removed.
    _check_migration(target, source, remaining)

    if not dry_run:
        for n in managed:
            try:
                linker.remove_link(target / n)
            except OSError as e:
                raise _wrap_os_error(target / n, e) from e
    _migrate_into_source(target, source, remaining, dry_run=dry_run)
    if not dry_run:
        try:
            target.rmdir()
        except OSError as e:
            raise _wrap_os_error(target, e) from e
    _link_whole(target, source, linker, dry_run=dry_run)

    if remaining:
        action = ACTION_MIGRATED
    elif managed:
        action = ACTION_MODE_SWITCHED
    else:
        action = ACTION_CREATED
    return WholeResult(action=action, migrated=remaining, removed=managed, **result_kw)


# ---------------------------------------------------------------------------
# Merge mode
# ---------------------------------------------------------------------------


def _prepare_merge_dir(target: Path, source: Path, linker: Linker, *, dry_run: bool, force: bool) -> tuple[bool, bool]:
    """Make sure `target` is a real directory.

    Returns (existed_as_directory, switched_from_link).
    """

    entry = inspect(target)
    if entry.kind is LinkKind.DIRECTORY:
        return True, False
    if entry.kind is LinkKind.OTHER:
        raise TargetAccessError(path=target, message="not a directory")

    switched = False
    if entry.kind is LinkKind.LINK:
        if not resolves_to(target, source) and not entry.dangling and not force:
            raise ConflictError(path=target, points_to=str(entry.target) if entry.target else None)
        switched = True
        if not dry_run:
            try:
                linker.remove_link(target)
            except OSError as e:
                raise _wrap_os_error(target, e) from e

    if not dry_run:
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise _wrap_os_error(target, e) from e
    return False, switched


def sync_merge(
    target: Path,
    source: Path,
    *,
    units: Iterable[SkillUnit] | None = None,
    name: str = "",
    dry_run: bool = False,
    force: bool = False,
    ignore: Iterable[str] = (),
    linker: Linker | None = None,
) -> MergeResult:
    """Link every unit into `target` and prune links to units that are gone.

    Real directories in the target always win over a same-named unit and are
    reported in `skipped`; they are never removed or overwritten, `force` or
    not. Real directories without a source counterpart are ignored. Per-unit
    failures are collected in `errors` and the loop carries on.

    `units` defaults to a fresh `discover_units(source)`. `force` only
    matters when the target itself is a link pointing outside the source.
    """

    target = Path(target)
    source = Path(source)
    linker = linker or default_linker()
    _require_source(source)
    inventory = list(units) if units is not None else discover_units(source, ignore=ignore)

    existed, switched = _prepare_merge_dir(target, source, linker, dry_run=dry_run, force=force)
    children: dict[str, TargetChild] = {}
    if existed:
        children = {name_key(c.name): c for c in scan_children(target, source)}

    linked: list[str] = []
    updated: list[str] = []
    skipped: list[str] = []
    pruned: list[str] = []
    preserved: list[str] = []
    errors: list[UnitError] = []

    def link_unit(unit: SkillUnit, dest: Path) -> None:
        if dry_run:
            return
        linker.create_link(dest, unit.source_path)

    desired: set[str] = set()
    for unit in inventory:
        key = name_key(unit.flat_name)
        desired.add(key)
        dest = target / unit.flat_name
        child = children.get(key)
        try:
            if child is None:
                link_unit(unit, dest)
                linked.append(unit.flat_name)
            elif child.entry.is_link:
                if resolves_to(dest, unit.source_path):
                    preserved.append(unit.flat_name)
                    continue
                if not dry_run:
                    linker.remove_link(dest)
                link_unit(unit, dest)
                updated.append(unit.flat_name)
            elif child.is_local:
                skipped.append(unit.flat_name)
            else:
                errors.append(UnitError(unit.flat_name, "a non-directory file with this name exists in the target"))
        except LinkUnsupportedError:
            raise
        except SkillshareError as e:
            errors.append(UnitError(unit.flat_name, str(e)))
        except OSError as e:
            errors.append(UnitError(unit.flat_name, e.strerror or str(e)))

    for key, child in sorted(children.items()):
        if key in desired or not child.managed:
            continue
        try:
            if not dry_run:
                linker.remove_link(child.entry.path)
            pruned.append(child.name)
        except OSError as e:
            errors.append(UnitError(child.name, e.strerror or str(e)))

    return MergeResult(
        target=name,
        path=str(target),
        linked=linked,
        updated=updated,
        skipped=skipped,
        pruned=pruned,
        preserved=preserved,
        errors=errors,
        switched=switched,
        dry_run=dry_run,
    )


# ---------------------------------------------------------------------------
# Multi-target driver
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TargetResult:
    name: str
    path: str
    mode: str
    whole: WholeResult | None = None
    merge: MergeResult | None = None
    error: str | None = None
    # Exception class name, for callers that map failures to exit codes.
    error_type: str | None = None

    @property
    def ok(self) -> bool:
        if self.error is not None:
            return False
        return not (self.merge is not None and self.merge.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "mode": self.mode,
            "whole": self.whole.to_dict() if self.whole else None,
            "merge": self.merge.to_dict() if self.merge else None,
            "error": self.error,
            "error_type": self.error_type,
        }


@dataclass(frozen=True)
class SyncReport:
    source: str
    units: list[SkillUnit]
    results: list[TargetResult]
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "units": [u.flat_name for u in self.units],
            "results": [r.to_dict() for r in self.results],
            "dry_run": self.dry_run,
            "ok": self.ok,
        }


def sync_targets(
    source: Path,
    targets: Iterable[ResolvedTarget],
    *,
    dry_run: bool = False,
    force: bool = False,
    migrate: bool = False,
    ignore: Iterable[str] = (),
    linker: Linker | None = None,
) -> SyncReport:
    """Reconcile each target in turn.

    Source-level problems (missing source, duplicate flat names) and a
    platform without directory links abort the run; anything else is
    recorded on that target's result and the next target is attempted.
    """

    source = Path(source)
    linker = linker or default_linker()
    _require_source(source)
    units = discover_units(source, ignore=ignore)

    results: list[TargetResult] = []
    for t in targets:
        base = {"name": t.name, "path": str(t.path), "mode": t.mode}
        try:
            if t.mode == MODE_SYMLINK:
                whole = sync_whole(
                    t.path, source, name=t.name, dry_run=dry_run, force=force, migrate=migrate, linker=linker
                )
                results.append(TargetResult(whole=whole, **base))
            elif t.mode == MODE_MERGE:
                merge = sync_merge(
                    t.path, source, units=units, name=t.name, dry_run=dry_run, force=force, linker=linker
                )
                results.append(TargetResult(merge=merge, **base))
            else:
                results.append(
                    TargetResult(error=f"unsupported mode: {t.mode}", error_type="ValueError", **base)
                )
        except (LinkUnsupportedError, SourceMissingError):
            raise
        except SkillshareError as e:
            results.append(TargetResult(error=str(e), error_type=type(e).__name__, **base))
        except OSError as e:
            results.append(TargetResult(error=str(e), error_type=type(e).__name__, **base))

    return SyncReport(source=str(source), units=units, results=results, dry_run=dry_run)
