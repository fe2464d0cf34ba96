import os
import shutil
import subprocess

import pytest

from mountprep import executil, mounts, seed
from mountprep.errors import SeedError, ToolMissingError
from mountprep.model import SyncMode, TemplateSpec

RSYNC_STATS = """
Number of files: 7 (reg: 4, dir: 3)
Number of created files: 6
Number of regular files transferred: 4
Total file size: 1,234 bytes
Total transferred file size: 1,234 bytes
sent 2,100 bytes  received 120 bytes  4,440.00 bytes/sec
"""


@pytest.fixture
def template_dir(tmp_path):
    src = tmp_path / "template"
    (src / "nginx" / "old").mkdir(parents=True)
    (src / "nginx" / "access.log").write_text("hit\n", encoding="utf-8")
    (src / "nginx" / "old" / "access.log.1").write_text("older\n", encoding="utf-8")
    (src / "README").write_text("seeded\n", encoding="utf-8")
    return src


@pytest.fixture
def seed_env(runner, monkeypatch, tmp_path):
    monkeypatch.setattr(seed, "run", runner)
    monkeypatch.setattr(mounts, "run", runner)
    monkeypatch.setattr(executil.shutil, "which", lambda name: f"/usr/bin/{name}")
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    return runner, scratch


def test_parse_rsync_stats():
    stats = seed.parse_rsync_stats(RSYNC_STATS)
    assert stats == {"files_total": 7, "files_transferred": 4, "total_file_size_bytes": 1234}
    assert seed.parse_rsync_stats(None) == {}


def test_rsync_command_modes():
    recursive = seed.rsync_command("/srv/logs", "/mnt/x", SyncMode.RECURSIVE)
    shallow = seed.rsync_command("/srv/logs/", "/mnt/x", SyncMode.SHALLOW)
    assert recursive == ["rsync", "-aHAX", "--stats", "/srv/logs/", "/mnt/x/"]
    assert shallow == ["rsync", "-aHAX", "--stats", "--exclude", "/*/*", "/srv/logs/", "/mnt/x/"]


def test_seed_volume_mounts_mirrors_and_cleans_up(seed_env, template_dir):
    runner, scratch = seed_env
    runner.respond(["rsync"], out=RSYNC_STATS)

    stats = seed.seed_volume("/dev/xvdb", TemplateSpec(str(template_dir), SyncMode.SHALLOW), scratch=str(scratch))

    assert stats["files_transferred"] == 4
    names = [cmd[0] for cmd in runner.commands]
    assert names == ["mount", "rsync", "umount"]
    target = runner.commands[0][-1]
    assert runner.commands[1][-1] == target + "/"
    assert "--exclude" in runner.commands[1]
    assert os.listdir(scratch) == []


def test_seed_failure_still_unmounts(seed_env, template_dir):
    runner, scratch = seed_env
    runner.respond(["rsync"], rc=23, err="some files vanished")

    with pytest.raises(SeedError):
        seed.seed_volume("/dev/xvdb", TemplateSpec(str(template_dir)), scratch=str(scratch))

    assert runner.called("umount")
    assert os.listdir(scratch) == []


def test_seed_requires_rsync(seed_env, template_dir, monkeypatch):
    runner, scratch = seed_env
    monkeypatch.setattr(executil.shutil, "which", lambda name: None)
    with pytest.raises(ToolMissingError):
        seed.seed_volume("/dev/xvdb", TemplateSpec(str(template_dir)), scratch=str(scratch))
    assert runner.commands == []


def test_seed_requires_existing_template(seed_env, tmp_path):
    runner, scratch = seed_env
    with pytest.raises(SeedError):
        seed.seed_volume("/dev/xvdb", TemplateSpec(str(tmp_path / "missing")), scratch=str(scratch))
    assert runner.commands == []


@pytest.mark.skipif(shutil.which("rsync") is None, reason="rsync not installed")
@pytest.mark.parametrize(
    "mode, nested_present",
    [(SyncMode.SHALLOW, False), (SyncMode.RECURSIVE, True)],
)
def test_rsync_modes_against_real_tree(template_dir, tmp_path, mode, nested_present):
    dst = tmp_path / "volume"
    dst.mkdir()
    # Plain -a keeps the test independent of ACL/xattr support on tmp.
    cmd = [arg for arg in seed.rsync_command(str(template_dir), str(dst), mode) if arg != "-aHAX"]
    cmd.insert(1, "-a")
    subprocess.run(cmd, check=True, capture_output=True)

    assert (dst / "README").read_text(encoding="utf-8") == "seeded\n"
    assert (dst / "nginx").is_dir()
    assert (dst / "nginx" / "access.log").exists() is nested_present
    assert (dst / "nginx" / "old").exists() is nested_present
