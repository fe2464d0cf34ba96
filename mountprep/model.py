from __future__ import annotations

import enum
import os
import re
from dataclasses import dataclass, field
from typing import Optional

from .errors import InvalidLabelError, InvalidRequestError

LABEL_RE = re.compile(r"[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?")

FS_TYPE = "ext4"

# fstab fields are whitespace separated; mount(8) decodes these octal escapes.
_FSTAB_ESCAPES = (("\\", "\\134"), (" ", "\\040"), ("\t", "\\011"), ("\n", "\\012"))


def fstab_escape(value: str) -> str:
    for char, code in _FSTAB_ESCAPES:
        value = value.replace(char, code)
    return value


def _has_control_chars(value: str) -> bool:
    return any(ord(c) < 32 or ord(c) == 127 for c in value)


def validate_label(label: str) -> str:
    if not isinstance(label, str) or not LABEL_RE.fullmatch(label):
        raise InvalidLabelError(
            f"invalid label {label!r}: use letters, digits and inner hyphens only"
        )
    return label


class SyncMode(str, enum.Enum):
    SHALLOW = "shallow"
    RECURSIVE = "recursive"


@dataclass(frozen=True)
class TemplateSpec:
    source: str
    mode: SyncMode = SyncMode.RECURSIVE


@dataclass(frozen=True)
class ProvisioningRequest:
    mountpoint: str
    devices: tuple[str, ...]
    label: Optional[str] = None
    template: Optional[TemplateSpec] = None

    def __post_init__(self):
        if not self.mountpoint or not os.path.isabs(self.mountpoint):
            raise InvalidRequestError(f"mountpoint must be an absolute path: {self.mountpoint!r}")
        if not self.devices:
            raise InvalidRequestError("at least one device path is required")
        # Callers may hand in a list; keep the request hashable.
        object.__setattr__(self, "devices", tuple(self.devices))
        for path in (self.mountpoint, *self.devices):
            if _has_control_chars(path):
                raise InvalidRequestError(f"control characters are not allowed in paths: {path!r}")
        if self.label is not None:
            validate_label(self.label)

    @property
    def explicit_label(self) -> bool:
        return self.label is not None


@dataclass(frozen=True)
class ResolvedDeviceSet:
    present: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.present)


@dataclass(frozen=True)
class MountRecord:
    label: str
    device: str
    mountpoint: str
    fstype: str = "auto"
    options: str = "defaults,nobootwait,noatime"
    dump: int = 0
    passno: int = 2

    def render(self) -> str:
        return (
            f"# {self.label}\n"
            f"{fstab_escape(self.device)} {fstab_escape(self.mountpoint)} {self.fstype} {self.options} {self.dump} {self.passno}\n"
        )


@dataclass
class Outcome:
    kind: str
    label: str
    device: Optional[str] = None
    skipped: tuple[str, ...] = ()
    created: bool = False
    seeded: bool = False
    mounted: bool = False
    seed_stats: dict = field(default_factory=dict)
