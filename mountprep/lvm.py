"""Combine several block devices into one LVM logical volume."""

from __future__ import annotations

from typing import Sequence

from .errors import VolumeConsistencyError
from .executil import info, require_tool, run, trace, udev_settle
from .model import validate_label

LVM_TOOLS = ("vgs", "lvs", "vgcreate", "lvcreate")
LV_EXTENTS = "80%VG"


def vg_exists(vg: str) -> bool:
    res = run(["vgs", "--noheadings", "-o", "vg_name", vg], check=False)
    return res.rc == 0 and vg in (res.out or "").split()


def lv_path(vg: str, lv: str) -> str | None:
    res = run(["lvs", "--noheadings", "-o", "lv_path", f"{vg}/{lv}"], check=False)
    if res.rc != 0:
        return None
    path = (res.out or "").strip()
    return path or None


def create_volume(vg: str, lv: str, devices: Sequence[str], dry_run: bool = False):
    # Leave headroom in the group for snapshots and later growth.
    run(["vgcreate", vg, *devices], dry_run=dry_run)
    run(["lvcreate", "--yes", "-n", lv, "-l", LV_EXTENTS, vg], dry_run=dry_run)
    udev_settle()
    info("lvm.created", vg=vg, lv=lv, devices=list(devices))


def aggregate(label: str, devices: Sequence[str], dry_run: bool = False) -> str:
    """Return a single device path standing for ``devices``.

    A lone device is returned untouched.  Several devices are gathered into
    volume group ``label`` holding logical volume ``label``; an existing
    group is reused, but only if that logical volume is still inside it.
    """

    devices = list(devices)
    if len(devices) == 1:
        return devices[0]
    validate_label(label)
    require_tool(*LVM_TOOLS)

    vg = lv = label
    if vg_exists(vg):
        path = lv_path(vg, lv)
        if path is None:
            raise VolumeConsistencyError(
                f"volume group {vg!r} exists but logical volume {vg}/{lv} is missing",
                state={"vg": vg, "lv": lv, "devices": devices},
            )
        trace("lvm.reuse", vg=vg, lv=lv, path=path)
        return path

    create_volume(vg, lv, devices, dry_run=dry_run)
    if dry_run:
        return f"/dev/{vg}/{lv}"
    path = lv_path(vg, lv)
    if path is None:
        raise VolumeConsistencyError(f"logical volume {vg}/{lv} not found after lvcreate")
    return path
