from __future__ import annotations

"""Deterministic rewriting of the config file.

Supports `skillshare init` and `skillshare target add/remove`. Comments and
formatting are not preserved; the file is rewritten in a canonical form.
"""

from pathlib import Path

from .config import parse_config_file
from .errors import ConfigValidationError
from .models import MODES, SkillshareConfig, TargetConfig
from .toml_write import toml_key, toml_value


def render_config(cfg: SkillshareConfig) -> str:
    lines: list[str] = [f"version = {toml_value(cfg.version)}"]
    lines.append(f"source = {toml_value(cfg.source)}")
    if cfg.mode:
        lines.append(f"mode = {toml_value(cfg.mode)}")
    if cfg.ignore:
        lines.append(f"ignore = {toml_value(list(cfg.ignore))}")

    for name in sorted(cfg.targets):
        t = cfg.targets[name]
        lines.append("")
        lines.append(f"[targets.{toml_key(name)}]")
        lines.append(f"path = {toml_value(t.path)}")
        if t.mode:
            lines.append(f"mode = {toml_value(t.mode)}")
    return "\n".join(lines) + "\n"


def write_config(path: Path, cfg: SkillshareConfig) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(render_config(cfg), encoding="utf-8")
    tmp.replace(path)


def _replace_targets(cfg: SkillshareConfig, targets: dict[str, TargetConfig]) -> SkillshareConfig:
    return SkillshareConfig(
        source=cfg.source,
        version=cfg.version,
        mode=cfg.mode,
        targets=targets,
        ignore=cfg.ignore,
        path=cfg.path,
    )


def add_target(path: Path, *, name: str, target_path: str, mode: str | None = None) -> SkillshareConfig:
    cfg = parse_config_file(path)
    if name in cfg.targets:
        raise ConfigValidationError(path=path, message=f"targets.{name}: already exists")
    if mode is not None and mode not in MODES:
        raise ConfigValidationError(path=path, message=f"targets.{name}.mode: expected one of {sorted(MODES)}")
    targets = dict(cfg.targets)
    targets[name] = TargetConfig(path=target_path, mode=mode)
    out = _replace_targets(cfg, targets)
    write_config(path, out)
    return out


def remove_target(path: Path, *, name: str) -> SkillshareConfig:
    cfg = parse_config_file(path)
    if name not in cfg.targets:
        raise ConfigValidationError(path=path, message=f"targets.{name}: not found")
    targets = {k: v for k, v in cfg.targets.items() if k != name}
    out = _replace_targets(cfg, targets)
    write_config(path, out)
    return out
