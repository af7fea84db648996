from __future__ import annotations

import os
from pathlib import Path


def config_dir() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg).expanduser() if xdg else Path.home() / ".config"
    return (base / "skillshare").resolve()


def config_path() -> Path:
    """Default config file location.

    `SKILLSHARE_CONFIG` overrides the XDG location.
    """

    override = os.environ.get("SKILLSHARE_CONFIG")
    if override:
        return Path(override).expanduser().resolve()
    return config_dir() / "config.toml"


def default_source_dir() -> Path:
    return config_dir() / "skills"


def expand_path(raw: str, *, base: Path | None = None) -> Path:
    """Expand `~` and make `raw` absolute, resolving relative paths against `base`.

    Links are not resolved: a target that is itself a link must keep its own path.
    """

    p = Path(raw).expanduser()
    if not p.is_absolute():
        p = (base or Path.cwd()) / p
    return Path(os.path.normpath(p))
