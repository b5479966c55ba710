"""Block device discovery and safety checks for mounting guest drives."""

from __future__ import annotations

import errno
import os
import posixpath
from dataclasses import dataclass

BLOCK_PATH = "/sys/block"
DRIVE_PATH = "/dev"
BLOCK_MAJOR_MINOR = "dev"

BANNED_SYSTEM_DIRS = ("/proc", "/sys", "/dev")


class SystemDirError(ValueError):
    """Raised when a mount destination resolves into a banned system directory."""


@dataclass
class Drive:
    """A block device visible to the guest."""

    name: str
    drive_path: str
    major_minor: str = ""
    drive_id: str = ""

    def path(self) -> str:
        """Return the path of the device node for this drive."""
        return posixpath.join(self.drive_path, self.name)


def _clean(path: str) -> str:
    """Lexically normalise ``path`` the way a POSIX path cleaner would."""
    if not path:
        return "."
    cleaned = posixpath.normpath(path)
    # normpath keeps a leading "//"; collapse it to a single root.
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def is_retryable_mount_error(err: BaseException | None) -> bool:
    """Return True if ``err`` is an OS error carrying EINVAL."""
    return isinstance(err, OSError) and err.errno == errno.EINVAL


def eval_any_symlinks(path: str) -> str:
    """Resolve symlinks in ``path`` as far as its components exist.

    Once a component does not exist, the remainder of the path is appended
    unresolved to what has been resolved so far.
    """
    parts = _clean(path).split("/")
    current = "/"
    for index, part in enumerate(parts):
        current = _clean(posixpath.join(current, part))
        try:
            resolved = os.path.realpath(current, strict=True)
        except FileNotFoundError:
            return _clean(posixpath.join(current, *parts[index + 1:]))
        current = resolved
    return current


def is_or_under_dir(path: str, base_dir: str) -> bool:
    """Return whether ``path`` is ``base_dir`` or lies beneath it."""
    path = _clean(path)
    base_dir = _clean(base_dir)
    if base_dir == "/":
        return True
    if path == base_dir:
        return True
    return path.startswith(base_dir + "/")


def check_system_dir(path: str) -> str:
    """Ensure ``path`` does not resolve into a banned system directory.

    Returns the resolved path. Raises SystemDirError if the destination is a
    banned directory or lies under one.
    """
    resolved = eval_any_symlinks(path)
    for system_dir in BANNED_SYSTEM_DIRS:
        if is_or_under_dir(resolved, system_dir):
            raise SystemDirError(
                f"drive mount destination {path!r} resolves to path {resolved!r} "
                f"under banned system directory {system_dir!r}"
            )
    return resolved


def list_block_device_names(path: str | os.PathLike[str]) -> list[str]:
    """Return the sorted names of the entries in the block directory ``path``."""
    return sorted(os.listdir(path))


def build_drive(
    block_path: str | os.PathLike[str], drive_path: str, name: str
) -> Drive:
    """Build a Drive for ``name``, reading its major:minor from the block directory."""
    major_minor_file = os.path.join(os.fspath(block_path), name, BLOCK_MAJOR_MINOR)
    with open(major_minor_file, encoding="utf-8") as handle:
        major_minor = handle.read().strip()
    return Drive(name=name, drive_path=drive_path, major_minor=major_minor)