from __future__ import annotations

import os
import re

from .errors import CommandError, SeedError
from .executil import info, require_tool, run
from .model import SyncMode, TemplateSpec
from .mounts import scratch_mount

# Anchored at the transfer root: keeps top-level entries, drops what is
# nested below them.
SHALLOW_EXCLUDE = "/*/*"

_COUNT_RE = re.compile(r"(-?\d[\d,]*)")


def _parse_int(fragment: str):
    match = _COUNT_RE.search(fragment)
    if not match:
        return None
    return int(match.group(1).replace(",", ""))


def parse_rsync_stats(text: str) -> dict:
    if not isinstance(text, str):
        return {}
    stats: dict[str, int] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip().lower()
        if "files transferred:" in line and "files_transferred" not in stats:
            value = _parse_int(line.split(":", 1)[1])
            if value is not None:
                stats["files_transferred"] = value
        elif line.startswith("number of files:"):
            value = _parse_int(line.split(":", 1)[1])
            if value is not None:
                stats["files_total"] = value
        elif line.startswith("total file size:"):
            value = _parse_int(line.split(":", 1)[1])
            if value is not None:
                stats["total_file_size_bytes"] = value
    return stats


def rsync_command(src: str, dst: str, mode: SyncMode) -> list[str]:
    cmd = ["rsync", "-aHAX", "--stats"]
    if mode == SyncMode.SHALLOW:
        cmd += ["--exclude", SHALLOW_EXCLUDE]
    return cmd + [src.rstrip("/") + "/", dst.rstrip("/") + "/"]


def seed_volume(device: str, template: TemplateSpec, scratch: str | None = None) -> dict:
    """Mirror ``template.source`` onto the freshly created filesystem on ``device``."""

    if not os.path.isdir(template.source):
        raise SeedError(f"template directory {template.source} does not exist")
    require_tool("rsync")
    with scratch_mount(device, root=scratch) as target:
        try:
            result = run(rsync_command(template.source, target, template.mode))
        except CommandError as exc:
            raise SeedError(f"seeding {device} from {template.source} failed: {exc}", state=exc.state) from exc
    stats = parse_rsync_stats(result.out)
    info("seed.done", device=device, source=template.source, mode=template.mode.value, **stats)
    return stats
