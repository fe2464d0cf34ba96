"""End-to-end provisioning workflow."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .devices import resolve_devices
from .errors import AggregationRefusedError
from .executil import info, trace
from .fstab import MountRecordStore, canonical_label
from .lvm import aggregate
from .model import FS_TYPE, Outcome, ProvisioningRequest
from .mounts import ensure_fs, ensure_mounted
from .paths import fstab_path
from .seed import seed_volume


@dataclass(frozen=True)
class Options:
    fstab: Optional[str] = None
    mount: bool = False
    dry_run: bool = False
    scratch_root: Optional[str] = None
    mounts_table: Optional[str] = None

    @property
    def store_path(self) -> str:
        return self.fstab or fstab_path()


def _maybe_mount(request: ProvisioningRequest, options: Options) -> bool:
    if not options.mount:
        return False
    return ensure_mounted(
        request.mountpoint,
        options.store_path,
        dry_run=options.dry_run,
        table=options.mounts_table,
    )


def provision(request: ProvisioningRequest, options: Options = Options()) -> Outcome:
    """Bring ``request`` to its provisioned state, doing only what is missing.

    An existing record for the request's canonical label short-circuits
    aggregation, formatting and seeding.  Fatal conditions propagate as
    :class:`~mountprep.errors.ProvisionError` without rolling back completed
    steps.
    """

    label = canonical_label(request)
    store = MountRecordStore(options.store_path)
    trace("provision.start", label=label, request=repr(request), dry_run=options.dry_run)

    if store.exists(label):
        info("provision.record_exists", label=label, store=store.path)
        mounted = _maybe_mount(request, options)
        return Outcome("RECORD_EXISTS_OK", label, mounted=mounted)

    resolved = resolve_devices(request.devices)
    if not resolved:
        info("provision.no_devices", label=label, skipped=list(resolved.skipped))
        return Outcome("NOOP_NO_DEVICES_OK", label, skipped=resolved.skipped)

    if len(resolved.present) > 1 and not request.explicit_label:
        raise AggregationRefusedError(
            f"{len(resolved.present)} devices present ({', '.join(resolved.present)}); "
            "combining devices requires an explicit label"
        )

    device = aggregate(request.label, resolved.present, dry_run=options.dry_run)
    ensure_fs(device, FS_TYPE, dry_run=options.dry_run)

    outcome = Outcome("PROVISIONED_OK", label, device=device, skipped=resolved.skipped)
    if options.dry_run:
        info("provision.dry_run", label=label, device=device, template=repr(request.template))
        return outcome

    store.append(label, device, request.mountpoint)
    outcome.created = True
    if request.template is not None:
        outcome.seed_stats = seed_volume(device, request.template, scratch=options.scratch_root)
        outcome.seeded = True
    outcome.mounted = _maybe_mount(request, options)
    info("provision.done", label=label, device=device, seeded=outcome.seeded, mounted=outcome.mounted)
    return outcome
