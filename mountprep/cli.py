"""CLI entrypoint for mountprep."""

from __future__ import annotations

import argparse
import json
import sys
import time
from typing import Any, Dict, Optional

from . import executil
from .devices import resolve_devices
from .errors import ProvisionError
from .executil import append_jsonl, resolve_log_path
from .fstab import MountRecordStore, canonical_label
from .model import ProvisioningRequest, SyncMode, TemplateSpec
from .mounts import is_mounted
from .orchestrator import Options, provision
from .paths import fstab_path

SEED_SEPARATOR = "//"

RESULT_CODES: Dict[str, int] = {
    "PROVISIONED_OK": 0,
    "RECORD_EXISTS_OK": 0,
    "NOOP_NO_DEVICES_OK": 0,
    "STATUS_OK": 0,
    "FAIL_USAGE": 2,
    "FAIL_INVALID_REQUEST": 2,
    "FAIL_INVALID_LABEL": 2,
    "FAIL_INVALID_DEVICE": 2,
    "FAIL_AGGREGATION_REFUSED": 2,
    "FAIL_VOLUME_CONSISTENCY": 3,
    "FAIL_PROBE": 4,
    "FAIL_FS_MISMATCH": 4,
    "FAIL_TOOL_MISSING": 5,
    "FAIL_COMMAND": 6,
    "FAIL_RECORD_EXISTS": 6,
    "FAIL_SEED": 7,
    "FAIL_GENERIC": 9,
    "FAIL_UNHANDLED": 9,
}

JSON_OUTPUT_ENABLED = True


def _emit_result(kind: str, extra: Optional[Dict[str, Any]] = None) -> None:
    payload: Dict[str, Any] = {"result": kind, "ts": int(time.time())}
    if extra:
        payload.update(extra)
    log_path = resolve_log_path()
    if log_path:
        payload.setdefault("log_path", log_path)
    append_jsonl(log_path, payload)
    ok = kind.endswith("_OK")
    if JSON_OUTPUT_ENABLED:
        print(json.dumps(payload, sort_keys=True, separators=(",", ":")))
    if not ok:
        why = payload.get("why") or ""
        print(f"result={kind} why={why}", file=sys.stderr)
    elif kind == "NOOP_NO_DEVICES_OK":
        print("[INFO] no requested device is present; nothing to do", file=sys.stderr)
    raise SystemExit(RESULT_CODES.get(kind, 1))


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--fstab", default=None, help="mount record store (default: $MOUNTPREP_FSTAB or /etc/fstab)")
    parser.add_argument("--dry-run", action="store_true")
    parser.add_argument("--json", dest="json", action="store_true", default=True)
    parser.add_argument("--no-json", dest="json", action="store_false")


def _add_provision_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("mountpoint")
    parser.add_argument("devices", nargs="+", metavar="DEVICE", help=f"devices, optionally followed by {SEED_SEPARATOR} SEED_DIR")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--all", dest="seed_mode", action="store_const", const=SyncMode.RECURSIVE)
    mode.add_argument("--top", dest="seed_mode", action="store_const", const=SyncMode.SHALLOW)
    parser.add_argument("--mount", action="store_true", help="mount the volume once its record exists")
    _add_common(parser)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mountprep", add_help=True)
    sub = parser.add_subparsers(dest="command", required=True)

    mount = sub.add_parser("mount", help="provision a single present device; label derived from the request")
    _add_provision_args(mount)

    volume = sub.add_parser("volume", help="provision under an explicit label; several devices are combined with LVM")
    volume.add_argument("label")
    _add_provision_args(volume)

    status = sub.add_parser("status", help="report what provisioning would find, without changing anything")
    status.add_argument("mountpoint")
    status.add_argument("devices", nargs="+", metavar="DEVICE")
    status.add_argument("--label", default=None)
    _add_common(status)
    return parser


def _split_seed(tokens: list[str]) -> tuple[list[str], Optional[str]]:
    if SEED_SEPARATOR not in tokens:
        return list(tokens), None
    idx = tokens.index(SEED_SEPARATOR)
    devices, rest = tokens[:idx], tokens[idx + 1:]
    if len(rest) != 1:
        raise ValueError(f"expected exactly one seed directory after {SEED_SEPARATOR}")
    return devices, rest[0]


def parse_request(args: argparse.Namespace) -> ProvisioningRequest:
    devices, seed_dir = _split_seed(list(args.devices))
    mode = getattr(args, "seed_mode", None)
    template = None
    if seed_dir is not None:
        template = TemplateSpec(source=seed_dir, mode=mode or SyncMode.RECURSIVE)
    elif mode is not None:
        raise ValueError("--all/--top need a seed directory")
    return ProvisioningRequest(
        mountpoint=args.mountpoint,
        devices=tuple(devices),
        label=getattr(args, "label", None),
        template=template,
    )


def _run_status(args: argparse.Namespace, request: ProvisioningRequest) -> None:
    store = MountRecordStore(args.fstab or fstab_path())
    label = canonical_label(request)
    resolved = resolve_devices(request.devices)
    _emit_result(
        "STATUS_OK",
        extra={
            "label": label,
            "store": store.path,
            "record_exists": store.exists(label),
            "present": list(resolved.present),
            "skipped": list(resolved.skipped),
            "mounted": is_mounted(request.mountpoint),
        },
    )


def _run_provision(args: argparse.Namespace, request: ProvisioningRequest) -> None:
    options = Options(fstab=args.fstab, mount=args.mount, dry_run=args.dry_run)
    outcome = provision(request, options)
    _emit_result(
        outcome.kind,
        extra={
            "label": outcome.label,
            "device": outcome.device,
            "mountpoint": request.mountpoint,
            "skipped": list(outcome.skipped),
            "created": outcome.created,
            "seeded": outcome.seeded,
            "seed_stats": outcome.seed_stats,
            "mounted": outcome.mounted,
            "dry_run": args.dry_run,
        },
    )


COMMANDS = {
    "mount": _run_provision,
    "volume": _run_provision,
    "status": _run_status,
}


def _main_impl(argv: Optional[list[str]] = None) -> int:
    global JSON_OUTPUT_ENABLED
    args = build_parser().parse_args(argv)
    JSON_OUTPUT_ENABLED = args.json
    try:
        request = parse_request(args)
        COMMANDS[args.command](args, request)
    except ValueError as exc:
        _emit_result("FAIL_USAGE", extra={"why": str(exc)})
    except ProvisionError as exc:
        _emit_result(exc.kind, extra={"why": str(exc), "state": exc.state})
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    try:
        return _main_impl(argv)
    except SystemExit:
        raise
    except Exception as exc:  # noqa: BLE001
        executil.log("ERROR", "cli.unhandled", error=repr(exc))
        _emit_result("FAIL_UNHANDLED", extra={"why": str(exc)})
    return 0


if __name__ == "__main__":
    sys.exit(main())
