"""Fatal conditions raised by the provisioning workflow.

Each error carries the result ``kind`` the CLI reports and maps to an exit
code.  Skips (absent devices) are not errors and never raise.
"""

from __future__ import annotations

import subprocess


class ProvisionError(RuntimeError):
    kind = "FAIL_GENERIC"

    def __init__(self, message: str, *, state: dict | None = None) -> None:
        super().__init__(message)
        self.state = state or {}


class InvalidRequestError(ProvisionError):
    kind = "FAIL_INVALID_REQUEST"


class InvalidLabelError(InvalidRequestError):
    kind = "FAIL_INVALID_LABEL"


class InvalidDeviceError(InvalidRequestError):
    """A requested path exists but is not a block device."""

    kind = "FAIL_INVALID_DEVICE"


class AggregationRefusedError(InvalidRequestError):
    kind = "FAIL_AGGREGATION_REFUSED"


class RecordExistsError(ProvisionError):
    kind = "FAIL_RECORD_EXISTS"


class VolumeConsistencyError(ProvisionError):
    kind = "FAIL_VOLUME_CONSISTENCY"


class ProbeError(ProvisionError):
    kind = "FAIL_PROBE"


class FilesystemMismatchError(ProbeError):
    kind = "FAIL_FS_MISMATCH"


class ToolMissingError(ProvisionError):
    kind = "FAIL_TOOL_MISSING"


class CommandError(ProvisionError):
    kind = "FAIL_COMMAND"

    @classmethod
    def from_called(cls, exc: subprocess.CalledProcessError) -> "CommandError":
        cmd = exc.cmd if isinstance(exc.cmd, str) else " ".join(exc.cmd)
        msg = (exc.stderr or exc.stdout or "").strip() or f"exit status {exc.returncode}"
        err = cls(
            f"{cmd} failed: {msg}",
            state={"cmd": exc.cmd, "rc": exc.returncode, "stderr": (exc.stderr or "").strip()},
        )
        err.returncode = exc.returncode
        return err


class SeedError(ProvisionError):
    kind = "FAIL_SEED"
