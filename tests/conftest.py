from types import SimpleNamespace

import pytest

from mountprep import executil


@pytest.fixture(autouse=True)
def _isolated_log(tmp_path, monkeypatch):
    """Keep trace output inside the test's tmp dir."""

    monkeypatch.setattr(executil, "LOG_PATH", str(tmp_path / "logs" / "mountprep.jsonl"))
    monkeypatch.setattr(executil, "LOG_LEVEL", "TRACE")
    monkeypatch.setenv("MOUNTPREP_FSTAB", str(tmp_path / "fstab"))
    monkeypatch.setenv("MOUNTPREP_PROC_MOUNTS", str(tmp_path / "mounts"))
    (tmp_path / "mounts").write_text("proc /proc proc rw 0 0\n", encoding="utf-8")


class FakeRunner:
    """Records commands and answers them from a prefix -> result table."""

    def __init__(self):
        self.commands: list[list[str]] = []
        self.responses: list[tuple[list[str], SimpleNamespace]] = []

    def respond(self, prefix, rc=0, out="", err=""):
        self.responses.insert(0, (list(prefix), SimpleNamespace(rc=rc, out=out, err=err)))

    def __call__(self, cmd, check=True, dry_run=False, **_kwargs):
        cmd = list(cmd)
        self.commands.append(cmd)
        for prefix, result in self.responses:
            if cmd[: len(prefix)] == prefix:
                if check and result.rc != 0:
                    raise executil.CommandError(f"{cmd[0]} failed: {result.err}", state={"rc": result.rc})
                return result
        return SimpleNamespace(rc=0, out="", err="")

    def called(self, name):
        return [cmd for cmd in self.commands if cmd and cmd[0] == name]


@pytest.fixture
def runner():
    return FakeRunner()
