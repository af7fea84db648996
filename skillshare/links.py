"""Directory-link primitive.

POSIX uses plain symlinks. Windows tries a junction first (no elevation
needed) and falls back to a directory symlink. Both live behind `Linker`
so the reconciler never branches on platform.
"""

from __future__ import annotations

import os
import stat
import subprocess
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

from .errors import AlreadyExistsError, LinkUnsupportedError, SourceMissingError, TargetAccessError


# NTFS and default APFS compare names case-insensitively.
CASE_INSENSITIVE = sys.platform in ("win32", "darwin")

_WIN_PREFIXES = ("\\\\?\\", "\\??\\")


class LinkKind(str, Enum):
    MISSING = "missing"
    LINK = "link"
    DIRECTORY = "directory"
    OTHER = "other"


@dataclass(frozen=True)
class LinkEntry:
    name: str
    path: Path
    kind: LinkKind
    # Absolute, normalized destination when kind is LINK.
    target: Path | None = None

    @property
    def is_link(self) -> bool:
        return self.kind is LinkKind.LINK

    @property
    def dangling(self) -> bool:
        return self.is_link and self.target is not None and not os.path.exists(self.target)


def _abs(p: str | os.PathLike[str]) -> str:
    return os.path.normpath(os.path.abspath(os.fspath(p)))


def _norm_case(p: str) -> str:
    return p.casefold() if CASE_INSENSITIVE else p


def paths_equal(a: str | os.PathLike[str], b: str | os.PathLike[str]) -> bool:
    """Compare two paths after making them absolute, honoring filesystem case rules."""

    return _norm_case(_abs(a)) == _norm_case(_abs(b))


def path_is_under(path: str | os.PathLike[str], root: str | os.PathLike[str]) -> bool:
    """True if `path` equals `root` or lies below it (separator-aware)."""

    p = _norm_case(_abs(path))
    r = _norm_case(_abs(root))
    if p == r:
        return True
    return p.startswith(r.rstrip(os.sep) + os.sep)


def is_link(path: str | os.PathLike[str]) -> bool:
    """True for symlinks and (on Windows) junctions. Never follows the final link."""

    if os.path.islink(path):
        return True
    return is_junction(path)


def is_junction(path: str | os.PathLike[str]) -> bool:
    """True for an NTFS junction (mount-point reparse point)."""

    isjunction = getattr(os.path, "isjunction", None)
    if isjunction is not None:
        return bool(isjunction(path))
    # os.path.isjunction is 3.12+; older interpreters expose the reparse tag.
    try:
        st = os.lstat(path)
    except (OSError, ValueError):
        return False
    return getattr(st, "st_reparse_tag", 0) == stat.IO_REPARSE_TAG_MOUNT_POINT


def read_link(path: str | os.PathLike[str]) -> Path | None:
    """Return the absolute destination of a link, or None if `path` is not a link."""

    try:
        raw = os.readlink(path)
    except (OSError, ValueError):
        return None
    for prefix in _WIN_PREFIXES:
        if raw.startswith(prefix):
            raw = raw[len(prefix):]
            break
    if not os.path.isabs(raw):
        raw = os.path.join(os.path.dirname(_abs(path)), raw)
    return Path(_abs(raw))


def inspect(path: str | os.PathLike[str]) -> LinkEntry:
    p = Path(path)
    if is_link(p):
        return LinkEntry(name=p.name, path=p, kind=LinkKind.LINK, target=read_link(p))
    try:
        st_is_dir = p.is_dir()
        exists = st_is_dir or p.exists()
    except OSError:
        return LinkEntry(name=p.name, path=p, kind=LinkKind.OTHER)
    if not exists:
        return LinkEntry(name=p.name, path=p, kind=LinkKind.MISSING)
    if st_is_dir:
        return LinkEntry(name=p.name, path=p, kind=LinkKind.DIRECTORY)
    return LinkEntry(name=p.name, path=p, kind=LinkKind.OTHER)


def resolves_to(path: str | os.PathLike[str], expected: str | os.PathLike[str]) -> bool:
    """True iff `path` is a link whose absolute destination equals `expected`."""

    if not is_link(path):
        return False
    dest = read_link(path)
    return dest is not None and paths_equal(dest, expected)


class Linker:
    """Strategy for creating and removing directory links."""

    name = "base"

    def create_link(self, link_path: Path, target_path: Path) -> None:
        """Create a directory link at `link_path` pointing at `target_path`.

        Raises:
            SourceMissingError: `target_path` is not an existing directory.
            AlreadyExistsError: something already occupies `link_path`.
        """

        abs_target = Path(_abs(target_path))
        abs_link = Path(_abs(link_path))
        if not abs_target.is_dir():
            raise SourceMissingError(path=abs_target)
        if os.path.lexists(abs_link) or is_link(abs_link):
            raise AlreadyExistsError(path=abs_link)
        self._link(abs_link, abs_target)

    def _link(self, link_path: Path, target_path: Path) -> None:  # pragma: no cover
        raise NotImplementedError

    def remove_link(self, link_path: Path) -> None:
        """Remove a link without touching what it points at."""

        try:
            os.unlink(link_path)
        except (IsADirectoryError, PermissionError):
            # Windows junctions and directory symlinks are removed as directories.
            if os.name != "nt":
                raise
            os.rmdir(link_path)


class SymlinkLinker(Linker):
    name = "symlink"

    def _link(self, link_path: Path, target_path: Path) -> None:
        try:
            os.symlink(target_path, link_path, target_is_directory=True)
        except FileExistsError as e:
            raise AlreadyExistsError(path=link_path) from e
        except OSError as e:
            raise TargetAccessError(path=link_path, message=e.strerror or str(e)) from e


Runner = Callable[..., "subprocess.CompletedProcess[str]"]


class JunctionLinker(Linker):
    """Windows: `mklink /J` first, then a directory symlink."""

    name = "junction"

    def __init__(self, *, runner: Runner = subprocess.run, symlink: Callable[..., None] = os.symlink) -> None:
        self._runner = runner
        self._symlink = symlink

    def _link(self, link_path: Path, target_path: Path) -> None:
        diagnostics: list[str] = []
        try:
            proc = self._runner(
                ["cmd", "/c", "mklink", "/J", str(link_path), str(target_path)],
                capture_output=True,
                text=True,
            )
        except OSError as e:
            diagnostics.append(f"junction error: {e}")
        else:
            if proc.returncode == 0:
                return
            err = (proc.stderr or "").strip()
            diagnostics.append(f"junction error: {err}" if err else "junction: mklink /J command failed")

        try:
            self._symlink(target_path, link_path, target_is_directory=True)
            return
        except OSError as e:
            diagnostics.append(f"symlink error: {e.strerror or e} (requires Administrator or Developer Mode)")

        raise LinkUnsupportedError(link_path=link_path, target_path=target_path, diagnostics=tuple(diagnostics))


def default_linker() -> Linker:
    return JunctionLinker() if os.name == "nt" else SymlinkLinker()


def name_key(name: str) -> str:
    """Key for matching entry names under the platform's case rules."""

    return _norm_case(name)
