"""Tests for the Linux mounter (psutil and subprocess patched out)."""

import os
import subprocess
from collections import namedtuple
from unittest.mock import MagicMock, patch

import pytest

from netdrive.errors import MountError
from netdrive.models import Credential, SmbEndpoint, WebDavEndpoint
from netdrive.mounters.linux import (
    LinuxMounter,
    _decode_mount_path,
    generate_credentials_file,
    parse_device,
)

Part = namedtuple("Part", ["device", "mountpoint", "fstype", "opts"])


def _proc(returncode=0, stdout="", stderr=""):
    return MagicMock(returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def mounter(tmp_path):
    return LinuxMounter(mount_root=str(tmp_path), timeout=5)


class TestHelpers:
    def test_decode_mount_path(self):
        assert _decode_mount_path("/mnt/my\\040share") == "/mnt/my share"

    def test_credentials_file(self):
        assert generate_credentials_file("alice", "pw") == "username=alice\npassword=pw\n"

    def test_credentials_file_with_domain(self):
        content = generate_credentials_file("CORP\\alice", "pw")
        assert "username=alice\n" in content
        assert "domain=CORP\n" in content

    def test_parse_cifs_device(self):
        assert parse_device("//nas/media", "cifs") == SmbEndpoint("nas", "media")

    def test_parse_davfs_device(self):
        assert parse_device("https://dav.example.com/x", "davfs") == \
            WebDavEndpoint("https://dav.example.com/x")

    def test_parse_unknown_device(self):
        assert parse_device("nas:/export", "nfs") is None


class TestQuery:
    def test_free_letter(self, mounter):
        with patch("netdrive.mounters.linux.psutil.disk_partitions", return_value=[]):
            assert mounter.query("P") is None

    def test_network_mount(self, mounter, tmp_path):
        parts = [Part("//nas/media", str(tmp_path / "M"), "cifs", "rw")]
        with patch("netdrive.mounters.linux.psutil.disk_partitions", return_value=parts):
            state = mounter.query("M")
        assert state.is_network
        assert state.current_target == SmbEndpoint("nas", "media")

    def test_local_filesystem(self, mounter, tmp_path):
        parts = [Part("/dev/sdb1", str(tmp_path / "L"), "ext4", "rw")]
        with patch("netdrive.mounters.linux.psutil.disk_partitions", return_value=parts):
            state = mounter.query("L")
        assert state.is_network is False


class TestCreate:
    def test_cifs_with_credentials_file(self, mounter, tmp_path):
        seen = {}

        def fake_run(cmd, **kwargs):
            seen["cmd"] = cmd
            opt = cmd[cmd.index("-o") + 1]
            cred_path = opt.split("=", 1)[1]
            with open(cred_path) as f:
                seen["content"] = f.read()
            seen["cred_path"] = cred_path
            return _proc()

        target = SmbEndpoint("nas", "media")
        with patch("netdrive.mounters.base.subprocess.run", side_effect=fake_run):
            mounter.create("M", target, Credential("alice", "s3cret"))

        assert seen["cmd"][:5] == ["mount", "-t", "cifs", "//nas/media", str(tmp_path / "M")]
        assert "password=s3cret" in seen["content"]
        assert "s3cret" not in " ".join(seen["cmd"])
        # credentials file is removed once mount returns
        assert not os.path.exists(seen["cred_path"])

    def test_cifs_guest(self, mounter):
        with patch("netdrive.mounters.base.subprocess.run", return_value=_proc()) as run:
            mounter.create("P", SmbEndpoint("nas", "public"))
        cmd = run.call_args[0][0]
        assert cmd[-2:] == ["-o", "guest"]

    def test_davfs_secret_on_stdin(self, mounter):
        target = WebDavEndpoint("https://dav.example.com/webdav")
        with patch("netdrive.mounters.base.subprocess.run", return_value=_proc()) as run:
            mounter.create("D", target, Credential("bob", "hunter2"))
        cmd = run.call_args[0][0]
        assert cmd[:4] == ["mount", "-t", "davfs", "https://dav.example.com/webdav"]
        assert "username=bob" in cmd
        assert "hunter2" not in " ".join(cmd)
        assert run.call_args[1]["input"] == "hunter2\n"

    def test_sudo_prefix(self, tmp_path):
        mounter = LinuxMounter(mount_root=str(tmp_path), use_sudo=True)
        with patch("netdrive.mounters.base.subprocess.run", return_value=_proc()) as run:
            mounter.create("P", SmbEndpoint("nas", "public"))
        cmds = [c[0][0] for c in run.call_args_list]
        assert cmds[0][:3] == ["sudo", "mkdir", "-p"]
        assert cmds[1][:2] == ["sudo", "mount"]

    def test_failure_is_redacted(self, mounter):
        proc = _proc(returncode=32, stderr="mount error(13): bad password hunter2")
        target = WebDavEndpoint("https://dav.example.com/webdav")
        with patch("netdrive.mounters.base.subprocess.run", return_value=proc):
            with pytest.raises(MountError) as exc:
                mounter.create("D", target, Credential("bob", "hunter2"))
        assert "hunter2" not in str(exc.value)
        assert "mount error(13)" in str(exc.value)

    def test_timeout(self, mounter):
        err = subprocess.TimeoutExpired(cmd="mount", timeout=5)
        with patch("netdrive.mounters.base.subprocess.run", side_effect=err):
            with pytest.raises(MountError, match="timed out"):
                mounter.create("P", SmbEndpoint("nas", "public"))

    def test_missing_binary(self, mounter):
        with patch("netdrive.mounters.base.subprocess.run", side_effect=FileNotFoundError()):
            with pytest.raises(MountError, match="not found"):
                mounter.create("P", SmbEndpoint("nas", "public"))


class TestRemoveAndList:
    def test_remove(self, mounter, tmp_path):
        with patch("netdrive.mounters.base.subprocess.run", return_value=_proc()) as run:
            mounter.remove("P")
        assert run.call_args[0][0] == ["umount", str(tmp_path / "P")]

    def test_remove_failure(self, mounter):
        proc = _proc(returncode=32, stderr="umount: target is busy.")
        with patch("netdrive.mounters.base.subprocess.run", return_value=proc):
            with pytest.raises(MountError, match="busy"):
                mounter.remove("P")

    def test_network_mounts_only_under_root(self, mounter, tmp_path):
        parts = [
            Part("//nas/media", str(tmp_path / "M"), "cifs", "rw"),
            Part("https://dav.example.com/x", str(tmp_path / "D"), "fuse.davfs2", "rw"),
            Part("//nas/other", "/mnt/elsewhere", "cifs", "rw"),
            Part("//nas/odd", str(tmp_path / "notaletter"), "cifs", "rw"),
            Part("/dev/sda1", str(tmp_path / "L"), "ext4", "rw"),
        ]
        with patch("netdrive.mounters.linux.psutil.disk_partitions", return_value=parts):
            mounts = mounter.network_mounts()
        assert [m.drive_letter for m in mounts] == ["D", "M"]

    def test_is_accessible(self, mounter):
        with patch("netdrive.mounters.linux.subprocess.run", return_value=_proc()):
            assert mounter.is_accessible("P") is True
        with patch("netdrive.mounters.linux.subprocess.run", return_value=_proc(returncode=2)):
            assert mounter.is_accessible("P") is False

    def test_stale_mount_not_accessible(self, mounter):
        err = subprocess.TimeoutExpired(cmd="ls", timeout=10)
        with patch("netdrive.mounters.linux.subprocess.run", side_effect=err):
            assert mounter.is_accessible("P") is False
