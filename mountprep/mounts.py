"""Filesystem probing, formatting and mount helpers."""
from __future__ import annotations

import contextlib
import datetime as _dt
import os
import tempfile
from dataclasses import dataclass
from typing import Iterator

from .errors import CommandError, FilesystemMismatchError, ProbeError
from .executil import info, run, trace, warn
from .model import FS_TYPE
from .paths import is_system_fstab, proc_mounts_path, scratch_root

# blkid exits 2 both when it finds nothing it can identify and when it cannot
# open the device; only the silent form means "no filesystem".
BLKID_NO_FS = 2


@dataclass(frozen=True)
class FsProbe:
    fstype: str | None
    rc: int


def probe_fs_type(dev: str) -> FsProbe:
    r = run(["blkid", "-p", "-o", "value", "-s", "TYPE", dev], check=False)
    if r.rc == 0:
        return FsProbe((r.out or "").strip() or None, r.rc)
    if r.rc == BLKID_NO_FS and not (r.err or "").strip():
        return FsProbe(None, r.rc)
    raise ProbeError(
        f"blkid could not probe {dev} (exit status {r.rc}): {(r.err or '').strip()}",
        state={"device": dev, "rc": r.rc},
    )


def _mkfs(dev: str, fstype: str, dry_run: bool = False):
    args = [f"mkfs.{fstype}"]
    if fstype == "ext4":
        args += ["-F"]
    run(args + [dev], dry_run=dry_run)
    info("mounts.mkfs", device=dev, fstype=fstype, dry_run=dry_run)


def ensure_fs(dev: str, fstype: str = FS_TYPE, dry_run: bool = False) -> bool:
    """Format ``dev`` unless it already carries ``fstype``.

    Returns ``True`` when ``mkfs`` ran.  A device holding some other
    recognised filesystem is left alone and reported as fatal.
    """

    probe = probe_fs_type(dev)
    if probe.rc == 0 and probe.fstype == fstype:
        trace("mounts.fs_present", device=dev, fstype=fstype)
        return False
    if probe.rc == 0:
        raise FilesystemMismatchError(
            f"refusing to format {dev}: it already holds {probe.fstype or 'an unnamed filesystem'}",
            state={"device": dev, "found": probe.fstype, "expected": fstype},
        )
    _mkfs(dev, fstype, dry_run=dry_run)
    return True


def _unescape(field: str) -> str:
    # /proc/mounts encodes space, tab, newline and backslash as octal.
    for code, char in (("\\040", " "), ("\\011", "\t"), ("\\012", "\n"), ("\\134", "\\")):
        field = field.replace(code, char)
    return field


def mounted_paths(table: str | None = None) -> list[str]:
    table = table or proc_mounts_path()
    paths = []
    with open(table, "r", encoding="utf-8") as fh:
        for line in fh:
            parts = line.split()
            if len(parts) >= 2:
                paths.append(_unescape(parts[1]))
    return paths


def is_mounted(path: str, table: str | None = None) -> bool:
    target = os.path.normpath(path)
    return any(os.path.normpath(p) == target for p in mounted_paths(table))


def ensure_mounted(path: str, fstab: str, dry_run: bool = False, table: str | None = None) -> bool:
    """Mount ``path`` from its fstab record; ``True`` when a mount happened."""

    if is_mounted(path, table):
        trace("mounts.already_mounted", path=path)
        return False
    run(["mkdir", "-p", path], dry_run=dry_run)
    cmd = ["mount"]
    if not is_system_fstab(fstab):
        cmd += ["-T", fstab]
    run(cmd + [path], dry_run=dry_run)
    info("mounts.mounted", path=path, fstab=fstab)
    return True


def _unmount_scratch(target: str, strict: bool) -> bool:
    r = run(["umount", target], check=False)
    if r.rc == 0:
        return True
    err = (r.err or "").strip() or f"exit status {r.rc}"
    warn("mounts.scratch.umount_failed", path=target, rc=r.rc, err=err)
    if strict:
        raise CommandError(f"umount {target} failed: {err}", state={"path": target, "rc": r.rc})
    return False


@contextlib.contextmanager
def scratch_mount(dev: str, root: str | None = None) -> Iterator[str]:
    """Mount ``dev`` on a fresh timestamped directory for the block's duration.

    The device is unmounted on every exit path, including an exception or
    interrupt raised inside the block.  The directory is removed only once
    the unmount succeeded; an error from the block wins over an unmount
    failure.
    """

    root = root or scratch_root()
    stamp = _dt.datetime.now(_dt.timezone.utc).strftime("%Y%m%d%H%M%S")
    target = tempfile.mkdtemp(prefix=f"mountprep-{stamp}-", dir=root)
    trace("mounts.scratch.create", device=dev, path=target)
    released = True
    try:
        run(["mount", "-t", FS_TYPE, dev, target])
        released = False
        try:
            yield target
        except BaseException:
            released = _unmount_scratch(target, strict=False)
            raise
        released = _unmount_scratch(target, strict=True)
    finally:
        if released:
            os.rmdir(target)
            trace("mounts.scratch.removed", path=target)
        else:
            warn("mounts.scratch.left_mounted", device=dev, path=target)
