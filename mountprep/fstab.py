"""Append-only mount record store backed by an fstab-format file."""
from __future__ import annotations

import os
import shlex

from .errors import InvalidRequestError, RecordExistsError
from .executil import info
from .model import MountRecord, ProvisioningRequest

LABEL_PREFIX = "mountprep"


def canonical_label(request: ProvisioningRequest) -> str:
    """Render ``request`` into the idempotence key written to the store.

    Tokens are ``[label] mountpoint devices...``.  An implicit-label request
    always starts with an absolute path and an explicit label never contains
    ``/``, so distinct requests never collide.
    """

    tokens = [request.label] if request.explicit_label else []
    tokens += [request.mountpoint, *request.devices]
    return " ".join([LABEL_PREFIX] + [shlex.quote(t) for t in tokens])


class MountRecordStore:
    def __init__(self, path: str):
        self.path = path

    def _lines(self) -> list[str]:
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                return fh.read().splitlines()
        except FileNotFoundError:
            return []

    def _missing_final_newline(self) -> bool:
        try:
            with open(self.path, "rb") as fh:
                fh.seek(0, os.SEEK_END)
                if not fh.tell():
                    return False
                fh.seek(-1, os.SEEK_END)
                return fh.read(1) != b"\n"
        except FileNotFoundError:
            return False

    def exists(self, label: str) -> bool:
        marker = f"# {label}"
        return any(line.rstrip() == marker for line in self._lines())

    def append(self, label: str, device: str, mountpoint: str) -> MountRecord:
        if "\n" in label or "\r" in label:
            raise InvalidRequestError(f"record label must be a single line: {label!r}")
        if self.exists(label):
            raise RecordExistsError(f"a record for {label!r} is already in {self.path}")
        record = MountRecord(label=label, device=device, mountpoint=mountpoint)
        data = record.render()
        if self._missing_final_newline():
            data = "\n" + data
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        info("fstab.append", path=self.path, label=label, device=device, mountpoint=mountpoint)
        return record
