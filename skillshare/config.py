from __future__ import annotations

from pathlib import Path
from typing import Any

from . import paths
from .errors import ConfigParseError, ConfigValidationError
from .models import MODES, SkillshareConfig, TargetConfig


try:  # Python 3.11+
    import tomllib as _tomllib  # type: ignore
except ModuleNotFoundError:  # pragma: no cover (dev envs < 3.11)
    import tomli as _tomllib  # type: ignore


def load_toml(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigValidationError(path=path, message="file not found (run `skillshare init` first)") from e
    except OSError as e:
        raise ConfigValidationError(path=path, message=f"unable to read file: {e}") from e

    try:
        data = _tomllib.loads(text)
    except Exception as e:
        # tomllib/tomli both raise TOMLDecodeError with msg/lineno/colno.
        msg = getattr(e, "msg", str(e))
        lineno = getattr(e, "lineno", None)
        colno = getattr(e, "colno", None)
        raise ConfigParseError(path=path, message=str(msg), lineno=lineno, colno=colno) from e

    if not isinstance(data, dict):
        raise ConfigValidationError(path=path, message="top-level TOML must be a table")
    return data


def _unknown_keys_message(unknown: set[str]) -> str:
    keys = ", ".join(sorted(unknown))
    return f"unknown keys: {keys}"


def _require_table(path: Path, value: Any, where: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ConfigValidationError(path=path, message=f"{where}: expected table")
    return value


def _optional_table(path: Path, value: Any, where: str) -> dict[str, Any] | None:
    if value is None:
        return None
    return _require_table(path, value, where)


def _require_str(path: Path, value: Any, where: str) -> str:
    if not isinstance(value, str):
        raise ConfigValidationError(path=path, message=f"{where}: expected string")
    return value


def _optional_str(path: Path, value: Any, where: str) -> str | None:
    if value is None:
        return None
    return _require_str(path, value, where)


def _require_int(path: Path, value: Any, where: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ConfigValidationError(path=path, message=f"{where}: expected integer")
    return value


def _require_str_list(path: Path, value: Any, where: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigValidationError(path=path, message=f"{where}: expected list of strings")
    return value


def _optional_mode(path: Path, value: Any, where: str) -> str | None:
    mode = _optional_str(path, value, where)
    if mode is None:
        return None
    if mode not in MODES:
        raise ConfigValidationError(path=path, message=f"{where}: expected one of {sorted(MODES)}, got {mode!r}")
    return mode


def parse_config_file(path: Path | None = None) -> SkillshareConfig:
    """Load + validate the skillshare config into a typed model."""

    p = path or paths.config_path()
    data = load_toml(p)
    return _parse_config(p, data)


def _parse_config(path: Path, data: dict[str, Any]) -> SkillshareConfig:
    allowed_top = {"version", "source", "mode", "targets", "ignore"}
    unknown_top = set(data.keys()) - allowed_top
    if unknown_top:
        raise ConfigValidationError(path=path, message=_unknown_keys_message(unknown_top))

    version = _require_int(path, data.get("version", 1), "version")
    if version != 1:
        raise ConfigValidationError(path=path, message=f"version: expected 1, got {version}")

    if "source" not in data:
        raise ConfigValidationError(path=path, message="source: required")
    source = _require_str(path, data.get("source"), "source")
    if not source.strip():
        raise ConfigValidationError(path=path, message="source: must not be empty")

    mode = _optional_mode(path, data.get("mode"), "mode")

    ignore: tuple[str, ...] = ()
    if "ignore" in data:
        ignore = tuple(_require_str_list(path, data.get("ignore"), "ignore"))

    targets: dict[str, TargetConfig] = {}
    targets_tbl = _optional_table(path, data.get("targets"), "targets")
    if targets_tbl is not None:
        for target_name, target_raw in targets_tbl.items():
            if not isinstance(target_name, str):
                raise ConfigValidationError(path=path, message="targets: target name keys must be strings")
            target_tbl = _require_table(path, target_raw, f"targets.{target_name}")
            targets[target_name] = _parse_target(path, target_name, target_tbl)

    return SkillshareConfig(
        version=version,
        source=source,
        mode=mode,
        targets=targets,
        ignore=ignore,
        path=path,
    )


def _parse_target(path: Path, target_name: str, tbl: dict[str, Any]) -> TargetConfig:
    allowed = {"path", "mode"}
    unknown = set(tbl.keys()) - allowed
    if unknown:
        raise ConfigValidationError(path=path, message=f"targets.{target_name}: {_unknown_keys_message(unknown)}")
    if "path" not in tbl:
        raise ConfigValidationError(path=path, message=f"targets.{target_name}.path: required")

    return TargetConfig(
        path=_require_str(path, tbl.get("path"), f"targets.{target_name}.path"),
        mode=_optional_mode(path, tbl.get("mode"), f"targets.{target_name}.mode"),
    )
