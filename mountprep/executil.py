from __future__ import annotations

"""Subprocess wrapper, dry-run hook and JSONL trace logging."""

import datetime as _dt
import json
import os
import shlex
import shutil
import subprocess
import time
from typing import Sequence

from .errors import CommandError, ToolMissingError
from .paths import log_dirs


LOG_DIRS: list[str] | None = None
LOG_PATH: str | None = None

LEVELS = {"TRACE": 10, "INFO": 20, "WARN": 30, "ERROR": 40, "NONE": 100}
LOG_LEVEL = os.environ.get("MOUNTPREP_LOG_LEVEL", "INFO").upper()


def _log_dirs() -> list[str]:
    if LOG_DIRS:
        return list(LOG_DIRS)
    return log_dirs()


def _ensure_logger() -> str | None:
    global LOG_PATH
    if LOG_PATH:
        return LOG_PATH
    for d in _log_dirs():
        try:
            os.makedirs(d, exist_ok=True)
        except OSError:
            continue
        if os.access(d, os.W_OK):
            LOG_PATH = os.path.join(d, "mountprep.jsonl")
            return LOG_PATH
    return None


def resolve_log_path() -> str | None:
    """Return the active log path, creating directories when possible."""

    return _ensure_logger()


def append_jsonl(path: str | None, obj: dict):
    # Logging must never abort a provisioning run.
    if not path:
        return
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(obj, ensure_ascii=False) + "\n")
    except OSError:
        pass


def log(level: str, event: str, **fields):
    lvl = LEVELS.get(level.upper(), 100)
    cur = LEVELS.get(LOG_LEVEL, 20)
    if lvl < cur:
        return
    ts = _dt.datetime.now(_dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    rec = {"ts": ts, "level": level.upper(), "event": event}
    rec.update(fields)
    append_jsonl(_ensure_logger(), rec)


def trace(event: str, **fields):
    log("TRACE", event, **fields)


def info(event: str, **fields):
    log("INFO", event, **fields)


def warn(event: str, **fields):
    log("WARN", event, **fields)


class Result:
    def __init__(self, rc: int, out: str, err: str, duration: float):
        self.rc, self.out, self.err, self.duration = rc, out, err, duration


def run(
    cmd: Sequence[str],
    check: bool = True,
    dry_run: bool = False,
    env: dict | None = None,
) -> Result:
    """Run ``cmd`` to completion and capture its output.

    No timeout is applied: the external tools signal their own failures.
    With ``check`` a non-zero exit raises :class:`CommandError`.
    """

    cmd = list(cmd)
    trace("exec.start", cmd=cmd, dry_run=dry_run)
    if dry_run:
        text = "DRY-RUN: " + " ".join(shlex.quote(c) for c in cmd)
        return Result(0, text, "", 0.0)
    started = time.time()
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, env=env)
    except FileNotFoundError as exc:
        raise ToolMissingError(f"{cmd[0]} is not installed") from exc
    dur = time.time() - started
    trace("exec.done", cmd=cmd, rc=proc.returncode, dur=dur, out=proc.stdout, err=proc.stderr)
    if check and proc.returncode != 0:
        raise CommandError.from_called(subprocess.CalledProcessError(proc.returncode, cmd, proc.stdout, proc.stderr))
    return Result(proc.returncode, proc.stdout, proc.stderr, dur)


def require_tool(*names: str) -> None:
    missing = [name for name in names if shutil.which(name) is None]
    if missing:
        raise ToolMissingError(f"required tool(s) not installed: {', '.join(missing)}")


def udev_settle():
    try:
        subprocess.run(["udevadm", "settle"], check=False)
    except FileNotFoundError:
        pass
