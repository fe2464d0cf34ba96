from __future__ import annotations

import os
from pathlib import Path

_DEFAULT_FSTAB = "/etc/fstab"
_DEFAULT_PROC_MOUNTS = "/proc/mounts"
_DEFAULT_SCRATCH = "/mnt"


def _expand(path: str) -> str:
    candidate = Path(path).expanduser()
    try:
        return str(candidate.resolve())
    except FileNotFoundError:
        return str(candidate)


def _override(name: str, default: str) -> str:
    value = os.environ.get(name)
    if value:
        return _expand(value)
    return default


def fstab_path() -> str:
    """Return the mount record store.

    ``MOUNTPREP_FSTAB`` points the tool at an alternate fstab-format file,
    which is how the test-suite and staging hosts avoid touching
    ``/etc/fstab``.
    """

    return _override("MOUNTPREP_FSTAB", _DEFAULT_FSTAB)


def proc_mounts_path() -> str:
    return _override("MOUNTPREP_PROC_MOUNTS", _DEFAULT_PROC_MOUNTS)


def scratch_root() -> str:
    return _override("MOUNTPREP_SCRATCH_DIR", _DEFAULT_SCRATCH)


def log_dirs() -> list[str]:
    dirs = []
    override = os.environ.get("MOUNTPREP_LOG_DIR")
    if override:
        dirs.append(_expand(override))
    dirs += ["/var/log/mountprep", "/tmp/mountprep-logs"]
    return dirs


def is_system_fstab(path: str) -> bool:
    return os.path.normpath(path) == _DEFAULT_FSTAB
