"""Classify requested device paths into present, absent and invalid."""
from __future__ import annotations

import os
import stat
import sys
from typing import Iterable

from .errors import InvalidDeviceError
from .executil import info, trace
from .model import ResolvedDeviceSet


def is_block_device(path: str) -> bool:
    try:
        st = os.stat(path)
    except FileNotFoundError:
        return False
    return stat.S_ISBLK(st.st_mode)


def resolve_devices(paths: Iterable[str]) -> ResolvedDeviceSet:
    """Split ``paths`` into block devices that are attached and absent paths.

    A disk that is not attached to this host is a normal condition and is
    skipped.  A path that exists but is not a block device is an operator
    error and aborts the run.
    """

    present: list[str] = []
    skipped: list[str] = []
    for path in paths:
        if is_block_device(path):
            present.append(path)
            continue
        if os.path.lexists(path):
            raise InvalidDeviceError(f"{path} exists but is not a block device")
        skipped.append(path)
        info("devices.skip_absent", path=path)
        print(f"[INFO] skipping {path}: no such device", file=sys.stderr)
    trace("devices.resolved", present=present, skipped=skipped)
    return ResolvedDeviceSet(present=tuple(present), skipped=tuple(skipped))
