"""Status collection and formatting for `skillshare status`."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .discover import discover_units
from .errors import SkillshareError
from .links import read_link
from .models import MODE_MERGE, SkillshareConfig
from .status import Status, classify_merge, classify_whole


@dataclass
class TargetStatus:
    """Status for a single configured target."""

    name: str
    path: Path
    mode: str
    status: Status | None = None
    linked_count: int = 0
    local_count: int = 0
    points_to: str | None = None
    # Target is in the other mode's shape; a sync will switch it.
    needs_sync: bool = False
    error: str | None = None

    @property
    def detail(self) -> str:
        if self.error:
            return f"[{self.mode}] {self.path} ({self.error})"
        if self.needs_sync:
            return f"[{self.mode}->needs sync] {self.path}"
        if self.mode == MODE_MERGE:
            if self.status is Status.MERGED:
                return f"[{self.mode}] {self.path} ({self.linked_count} shared, {self.local_count} local)"
            return f"[{self.mode}] {self.path} ({self.local_count} local)"
        if self.status is Status.CONFLICT:
            return f"[{self.mode}] {self.path} -> {self.points_to}"
        return f"[{self.mode}] {self.path}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": str(self.path),
            "mode": self.mode,
            "status": self.status.value if self.status else None,
            "linked": self.linked_count,
            "local": self.local_count,
            "points_to": self.points_to,
            "needs_sync": self.needs_sync,
            "error": self.error,
        }


@dataclass
class StatusInfo:
    source: Path
    source_exists: bool = False
    unit_count: int = 0
    targets: list[TargetStatus] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def has_issues(self) -> bool:
        if not self.source_exists or self.warnings:
            return True
        return any(t.error or t.needs_sync or t.status in (Status.CONFLICT, Status.BROKEN) for t in self.targets)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": str(self.source),
            "source_exists": self.source_exists,
            "skills": self.unit_count,
            "targets": [t.to_dict() for t in self.targets],
            "warnings": list(self.warnings),
        }


def _target_status(name: str, path: Path, mode: str, source: Path) -> TargetStatus:
    ts = TargetStatus(name=name, path=path, mode=mode)
    try:
        if mode == MODE_MERGE:
            ms = classify_merge(path, source)
            ts.status = ms.status
            ts.linked_count = ms.linked_count
            ts.local_count = ms.local_count
            ts.needs_sync = ms.status is Status.LINKED
        else:
            ts.status = classify_whole(path, source)
            ts.needs_sync = ts.status is Status.MERGED
            if ts.status is Status.CONFLICT:
                dest = read_link(path)
                ts.points_to = str(dest) if dest else None
    except SkillshareError as e:
        ts.error = str(e)
    return ts


def collect_status(cfg: SkillshareConfig) -> StatusInfo:
    """Classify every configured target. Read-only."""

    source = cfg.source_path
    info = StatusInfo(source=source, source_exists=source.is_dir())
    if info.source_exists:
        try:
            info.unit_count = len(discover_units(source, ignore=cfg.ignore))
        except SkillshareError as e:
            info.warnings.append(str(e))

    for t in cfg.resolved_targets():
        info.targets.append(_target_status(t.name, t.path, t.mode, source))
    return info


def format_status(info: StatusInfo) -> str:
    lines: list[str] = []
    lines.append("Source")
    if info.source_exists:
        lines.append(f"  {info.source} ({info.unit_count} skills)")
    else:
        lines.append(f"  {info.source} (not found)")

    lines.append("")
    lines.append("Targets")
    if not info.targets:
        lines.append("  none configured (run `skillshare target add <name> <path>`)")
    for ts in info.targets:
        label = "error" if ts.error else str(ts.status)
        lines.append(f"  {ts.name:<14} {label:<10} {ts.detail}")

    if info.warnings:
        lines.append("")
        lines.append("Warnings")
        for w in info.warnings:
            lines.append(f"  - {w}")

    if info.has_issues:
        lines.append("")
        lines.append("Run `skillshare sync` to apply, or `skillshare doctor` for details.")
    return "\n".join(lines) + "\n"
