"""Linux mounter: drive letters map to directories under a mount root.

SMB shares are mounted with ``mount -t cifs`` and a temporary credentials
file; WebDAV shares with ``mount -t davfs`` (davfs2) reading the password
from stdin.  Mount state comes from ``psutil.disk_partitions``.
"""

import logging
import os
import re
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional

import psutil

from netdrive.errors import MountError
from netdrive.models import Credential, Endpoint, MountState, SmbEndpoint, WebDavEndpoint
from netdrive.mounters.base import BaseMounter, run_command

_log = logging.getLogger("netdrive")

DEFAULT_MOUNT_ROOT = "/mnt/netdrive"

SMB_FSTYPES = ("cifs", "smb3", "smbfs")
DAV_FSTYPES = ("davfs", "fuse.davfs2")
NETWORK_FSTYPES = SMB_FSTYPES + DAV_FSTYPES + ("nfs", "nfs4")

_LIST_TIMEOUT = 10  # seconds for ls on a possibly stale mount

_OCTAL_ESC_RE = re.compile(r"\\([0-7]{3})")


def _decode_mount_path(raw: str) -> str:
    """Decode octal escapes in /proc/mounts paths (e.g. ``\\040`` -> space)."""
    return _OCTAL_ESC_RE.sub(lambda m: chr(int(m.group(1), 8)), raw)


def generate_credentials_file(username: str, password: str) -> str:
    """Return the content of a mount.cifs credentials file."""
    domain = ""
    if "\\" in username:
        domain, username = username.split("\\", 1)
    content = f"username={username}\npassword={password}\n"
    if domain:
        content += f"domain={domain}\n"
    return content


def parse_device(device: str, fstype: str) -> Optional[Endpoint]:
    """Map a mount-table device string back to an endpoint."""
    device = _decode_mount_path(device)
    if fstype in SMB_FSTYPES:
        parts = [p for p in device.replace("\\", "/").split("/") if p]
        if len(parts) < 2:
            return None
        return SmbEndpoint(server=parts[0], share="\\".join(parts[1:]))
    if device.lower().startswith(("http://", "https://")):
        return WebDavEndpoint(url=device)
    return None


class LinuxMounter(BaseMounter):
    """Mount network shares at ``<mount_root>/<LETTER>``."""

    def __init__(self, mount_root: str = DEFAULT_MOUNT_ROOT, use_sudo: bool = False,
                 timeout: float = 60):
        self.mount_root = Path(mount_root)
        self.use_sudo = use_sudo
        self.timeout = timeout

    def _cmd(self, *args: str) -> List[str]:
        return (["sudo"] if self.use_sudo else []) + list(args)

    def _entry_for(self, path: str):
        for part in psutil.disk_partitions(all=True):
            if _decode_mount_path(part.mountpoint) == path:
                return part
        return None

    def query(self, drive_letter: str) -> Optional[MountState]:
        part = self._entry_for(self.mount_path(drive_letter))
        if part is None:
            return None
        if part.fstype not in NETWORK_FSTYPES:
            return MountState(drive_letter, None, is_network=False)
        return MountState(drive_letter, parse_device(part.device, part.fstype), is_network=True)

    def create(self, drive_letter: str, target: Endpoint,
               credential: Optional[Credential] = None) -> None:
        path = self.mount_path(drive_letter)
        if self.use_sudo:
            run_command(self._cmd("mkdir", "-p", path), self.timeout)
        else:
            try:
                os.makedirs(path, exist_ok=True)
            except OSError as e:
                raise MountError(f"cannot create mount point {path}: {e.strerror}") from None

        if isinstance(target, SmbEndpoint):
            self._mount_cifs(target, path, credential)
        else:
            self._mount_davfs(target, path, credential)
        _log.info("mounted %s at %s", target.path, path)

    def _mount_cifs(self, target: SmbEndpoint, path: str,
                    credential: Optional[Credential]) -> None:
        what = f"//{target.server}/{target.share}"
        if credential is None:
            run_command(self._cmd("mount", "-t", "cifs", what, path, "-o", "guest"),
                        self.timeout)
            return

        fd, cred_path = tempfile.mkstemp(prefix="netdrive-", suffix=".cred")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(generate_credentials_file(credential.username, credential.secret))
            run_command(
                self._cmd("mount", "-t", "cifs", what, path, "-o", f"credentials={cred_path}"),
                self.timeout, secrets=[credential.secret],
            )
        finally:
            os.unlink(cred_path)

    def _mount_davfs(self, target: WebDavEndpoint, path: str,
                     credential: Optional[Credential]) -> None:
        if credential is None:
            # davfs2 prompts for username and password; empty answers mean anonymous
            run_command(self._cmd("mount", "-t", "davfs", target.url, path),
                        self.timeout, input="\n\n")
            return
        run_command(
            self._cmd("mount", "-t", "davfs", target.url, path,
                      "-o", f"username={credential.username}"),
            self.timeout, secrets=[credential.secret], input=f"{credential.secret}\n",
        )

    def remove(self, drive_letter: str) -> None:
        path = self.mount_path(drive_letter)
        run_command(self._cmd("umount", path), self.timeout)
        _log.info("unmounted %s", path)

    def is_accessible(self, drive_letter: str) -> bool:
        path = self.mount_path(drive_letter)
        try:
            result = subprocess.run(
                ["ls", "-A", path], capture_output=True, timeout=_LIST_TIMEOUT,
            )
        except subprocess.TimeoutExpired:
            _log.debug("%s: listing timed out (possible stale mount)", path)
            return False
        except FileNotFoundError:
            return os.path.isdir(path) and os.access(path, os.R_OK | os.X_OK)
        return result.returncode == 0

    def network_mounts(self) -> List[MountState]:
        mounts = []
        for part in psutil.disk_partitions(all=True):
            if part.fstype not in NETWORK_FSTYPES:
                continue
            path = Path(_decode_mount_path(part.mountpoint))
            if path.parent != self.mount_root or not re.match(r"^[A-Z]$", path.name):
                continue
            mounts.append(MountState(path.name, parse_device(part.device, part.fstype)))
        return sorted(mounts, key=lambda m: m.drive_letter)

    def mount_path(self, drive_letter: str) -> str:
        return str(self.mount_root / drive_letter)

    def get_platform_name(self) -> str:
        return "Linux"
