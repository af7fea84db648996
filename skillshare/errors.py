from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


class SkillshareConfigError(Exception):
    """Base exception for config parsing/validation errors."""


@dataclass(frozen=True)
class ConfigParseError(SkillshareConfigError):
    """Raised when a TOML file cannot be parsed."""

    path: Path
    message: str
    lineno: int | None = None
    colno: int | None = None

    def __str__(self) -> str:
        loc = ""
        if self.lineno is not None and self.colno is not None:
            loc = f" (line {self.lineno}, column {self.colno})"
        return f"Invalid TOML in {self.path}: {self.message}{loc}"


@dataclass(frozen=True)
class ConfigValidationError(SkillshareConfigError):
    """Raised when a parsed TOML file does not match the expected schema."""

    path: Path
    message: str

    def __str__(self) -> str:
        return f"Invalid config in {self.path}: {self.message}"


class SkillshareError(Exception):
    """Base exception for reconciliation errors."""


@dataclass(frozen=True)
class SourceMissingError(SkillshareError):
    """The source directory (or a unit's source path) does not exist."""

    path: Path

    def __str__(self) -> str:
        return f"source directory does not exist: {self.path}"


@dataclass(frozen=True)
class TargetAccessError(SkillshareError):
    """A target could not be read or written."""

    path: Path
    message: str

    def __str__(self) -> str:
        return f"cannot access target {self.path}: {self.message}"


@dataclass(frozen=True)
class LinkUnsupportedError(SkillshareError):
    """The platform refused every available directory-link mechanism."""

    link_path: Path
    target_path: Path
    diagnostics: tuple[str, ...] = ()

    def __str__(self) -> str:
        lines = ["failed to create link"]
        lines.extend(f"  {d}" for d in self.diagnostics)
        lines.append(f"  target: {self.link_path}")
        lines.append(f"  source: {self.target_path}")
        lines.append("  hint: enable Developer Mode or run as Administrator on Windows")
        return "\n".join(lines)


@dataclass(frozen=True)
class ConflictError(SkillshareError):
    """A target link points somewhere other than the source."""

    path: Path
    points_to: str | None = None
    reason: str | None = None

    def __str__(self) -> str:
        if self.reason:
            return f"conflict at {self.path}: {self.reason}"
        dest = self.points_to or "an unexpected location"
        return f"conflict - symlink points to {dest} (use --force to override)"


@dataclass(frozen=True)
class AlreadyExistsError(SkillshareError):
    """A link was requested over an existing entry."""

    path: Path

    def __str__(self) -> str:
        return f"target already exists: {self.path}"


@dataclass(frozen=True)
class UnmanagedContentError(SkillshareError):
    """A whole-mode target holds real files that would be replaced by the link."""

    path: Path
    entries: tuple[str, ...] = ()

    def __str__(self) -> str:
        shown = ", ".join(self.entries[:5])
        more = f" (+{len(self.entries) - 5} more)" if len(self.entries) > 5 else ""
        detail = f" [{shown}{more}]" if shown else ""
        return (
            f"target {self.path} contains unmanaged files{detail}; "
            "move them into the source or use --migrate"
        )


@dataclass(frozen=True)
class DuplicateUnitError(SkillshareError):
    """Two source paths render to the same flat name."""

    flat_name: str
    paths: tuple[str, ...]

    def __str__(self) -> str:
        return f"duplicate skill name {self.flat_name!r}: {', '.join(self.paths)}"
