from __future__ import annotations

"""Small TOML writer helpers.

The config file is rewritten in a canonical form: deterministic ordering,
no comment preservation, and only the subset of TOML the tool emits.
"""

import json
import re
from typing import Any


_BARE_KEY = re.compile(r"^[A-Za-z0-9_-]+$")


def toml_basic_string(s: str) -> str:
    """Quote a string as a TOML basic string.

    JSON encoding gives predictable escaping + double quotes.
    """

    if not isinstance(s, str):
        raise TypeError("toml_basic_string: expected str")
    return json.dumps(s, ensure_ascii=False)


def toml_key(k: str) -> str:
    if not isinstance(k, str):
        raise TypeError("toml_key: expected str")
    return k if _BARE_KEY.match(k) else toml_basic_string(k)


def toml_int(v: int) -> str:
    if not isinstance(v, int) or isinstance(v, bool):
        raise TypeError("toml_int: expected int")
    return str(v)


def toml_value(v: Any) -> str:
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, int):
        return toml_int(v)
    if isinstance(v, str):
        return toml_basic_string(v)
    if isinstance(v, (list, tuple)):
        return "[" + ", ".join(toml_value(x) for x in v) + "]"
    raise TypeError(f"toml_value: unsupported type: {type(v).__name__}")
