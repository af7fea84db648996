from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .paths import expand_path


MODE_MERGE = "merge"
MODE_SYMLINK = "symlink"
MODES = (MODE_MERGE, MODE_SYMLINK)
DEFAULT_MODE = MODE_MERGE


@dataclass(frozen=True)
class TargetConfig:
    path: str
    mode: str | None = None


@dataclass(frozen=True)
class ResolvedTarget:
    """A target with an absolute path and a concrete mode, ready for the reconciler."""

    name: str
    path: Path
    mode: str


@dataclass(frozen=True)
class SkillshareConfig:
    source: str
    version: int = 1
    mode: str | None = None
    targets: dict[str, TargetConfig] = field(default_factory=dict)
    ignore: tuple[str, ...] = ()
    # File the config was loaded from; relative paths resolve against its parent.
    path: Path | None = None

    def _base(self) -> Path | None:
        return self.path.parent if self.path is not None else None

    @property
    def source_path(self) -> Path:
        return expand_path(self.source, base=self._base())

    def resolved_targets(self, names: list[str] | None = None) -> list[ResolvedTarget]:
        """Resolve targets in name order; `names` restricts the selection.

        Raises KeyError for an unknown name.
        """

        selected = sorted(self.targets) if not names else list(names)
        out: list[ResolvedTarget] = []
        for name in selected:
            t = self.targets[name]
            out.append(
                ResolvedTarget(
                    name=name,
                    path=expand_path(t.path, base=self._base()),
                    mode=resolve_mode(t.mode, self.mode),
                )
            )
        return out


def resolve_mode(target_mode: str | None, global_mode: str | None) -> str:
    """Target mode wins, then the global mode, then merge."""

    if target_mode:
        return target_mode
    if global_mode:
        return global_mode
    return DEFAULT_MODE
