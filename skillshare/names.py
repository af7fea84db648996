"""Flat-name helpers.

Units nested inside a tracked repo are exposed in targets under a single
directory-safe name: "_team/frontend/ui" <-> "_team__frontend__ui".
"""

from __future__ import annotations

NESTED_SEPARATOR = "__"

# Top-level source entries starting with this prefix are tracked repos.
TRACKED_REPO_PREFIX = "_"


def encode(rel_path: str) -> str:
    """Convert a source-relative path to its flat name.

    Examples:
        "_team/frontend/ui" -> "_team__frontend__ui"
        "my-skill" -> "my-skill"
        "." -> ""
    """

    rel_path = rel_path.replace("\\", "/").strip("/")
    if rel_path in ("", "."):
        return ""
    return NESTED_SEPARATOR.join(p for p in rel_path.split("/") if p)


def decode(flat_name: str) -> str:
    """Convert a flat name back to its source-relative path (always "/"-separated)."""

    if not flat_name:
        return ""
    return flat_name.replace(NESTED_SEPARATOR, "/")


def is_nested(flat_name: str) -> bool:
    return NESTED_SEPARATOR in flat_name


def is_tracked_repo_name(name: str) -> bool:
    return bool(name) and name.startswith(TRACKED_REPO_PREFIX)


def is_hidden(name: str) -> bool:
    return bool(name) and name[0] == "."
