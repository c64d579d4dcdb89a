"""Windows mounter: ``net use`` to connect, WNet API to query and disconnect."""

import ctypes
import logging
import os
from typing import List, Optional

import psutil

from netdrive.errors import MountError
from netdrive.models import Credential, Endpoint, MountState, SmbEndpoint, WebDavEndpoint
from netdrive.mounters.base import BaseMounter, run_command

_log = logging.getLogger("netdrive")

NO_ERROR = 0
ERROR_CONNECTION_UNAVAIL = 1201
CONNECT_UPDATE_PROFILE = 0x1

DRIVE_UNKNOWN = 0
DRIVE_NO_ROOT_DIR = 1
DRIVE_REMOTE = 4

_DAV_ROOT = "davwwwroot"


def _wnet_get_connection(drive_letter: str) -> Optional[str]:
    """Return the remote name mapped to *drive_letter* via ``WNetGetConnectionW``."""
    size = ctypes.c_ulong(1024)
    buf = ctypes.create_unicode_buffer(size.value)
    rc = ctypes.windll.mpr.WNetGetConnectionW(f"{drive_letter}:", buf, ctypes.byref(size))
    # ERROR_CONNECTION_UNAVAIL: remembered mapping, currently disconnected
    if rc in (NO_ERROR, ERROR_CONNECTION_UNAVAIL):
        return buf.value or None
    return None


def _wnet_cancel_connection(drive_letter: str) -> int:
    """Call ``WNetCancelConnection2W`` and return its error code."""
    return ctypes.windll.mpr.WNetCancelConnection2W(
        f"{drive_letter}:", CONNECT_UPDATE_PROFILE, True,
    )


def _drive_type(drive_letter: str) -> int:
    return ctypes.windll.kernel32.GetDriveTypeW(f"{drive_letter}:\\")


def parse_remote_name(remote: str) -> Optional[Endpoint]:
    """Map a Windows remote name back to an endpoint.

    ``\\\\host\\share`` is SMB.  The WebDAV redirector reports
    ``\\\\host@SSL@8443\\DavWWWRoot\\path``, which becomes
    ``https://host:8443/path``.
    """
    if remote.lower().startswith(("http://", "https://")):
        return WebDavEndpoint(url=remote)
    if not remote.startswith("\\\\"):
        return None

    parts = [p for p in remote[2:].split("\\") if p]
    if not parts:
        return None
    host_part, rest = parts[0], parts[1:]

    if "@" in host_part or (rest and rest[0].lower() == _DAV_ROOT):
        pieces = host_part.split("@")
        host = pieces[0]
        scheme = "http"
        port = ""
        for piece in pieces[1:]:
            if piece.upper() == "SSL":
                scheme = "https"
            elif piece.isdigit():
                port = piece
        if rest and rest[0].lower() == _DAV_ROOT:
            rest = rest[1:]
        netloc = f"{host}:{port}" if port else host
        return WebDavEndpoint(url=f"{scheme}://{netloc}/" + "/".join(rest))

    if len(rest) < 1:
        return None
    return SmbEndpoint(server=host_part, share="\\".join(rest))


class WindowsMounter(BaseMounter):
    """Windows drive-letter mounts. SMB and WebDAV both go through ``net use``."""

    def __init__(self, timeout: float = 60):
        self.timeout = timeout

    def query(self, drive_letter: str) -> Optional[MountState]:
        remote = _wnet_get_connection(drive_letter)
        if remote:
            return MountState(drive_letter, parse_remote_name(remote), is_network=True)
        if _drive_type(drive_letter) not in (DRIVE_UNKNOWN, DRIVE_NO_ROOT_DIR):
            return MountState(drive_letter, None, is_network=False)
        return None

    def create(self, drive_letter: str, target: Endpoint,
               credential: Optional[Credential] = None) -> None:
        cmd = ["net", "use", f"{drive_letter}:", target.path, "/persistent:yes"]
        secrets = []
        if credential:
            cmd += [f"/user:{credential.username}", credential.secret]
            secrets.append(credential.secret)
        run_command(cmd, self.timeout, secrets)
        _log.info("mounted %s as %s:", target.path, drive_letter)

    def remove(self, drive_letter: str) -> None:
        try:
            rc = _wnet_cancel_connection(drive_letter)
        except (AttributeError, OSError) as e:
            _log.debug("WNetCancelConnection2W unavailable (%s), using net use", e)
            run_command(["net", "use", f"{drive_letter}:", "/delete", "/y"], self.timeout)
        else:
            if rc != NO_ERROR:
                raise MountError(f"WNetCancelConnection2 failed with error {rc}")
        _log.info("unmounted %s:", drive_letter)

    def is_accessible(self, drive_letter: str) -> bool:
        try:
            os.listdir(self.mount_path(drive_letter))
            return True
        except OSError as e:
            _log.debug("%s: not accessible: %s", drive_letter, e)
            return False

    def network_mounts(self) -> List[MountState]:
        mounts = []
        for part in psutil.disk_partitions(all=True):
            if "remote" not in part.opts.split(","):
                continue
            letter = part.device[:1].upper()
            state = self.query(letter)
            if state is not None and state.is_network:
                mounts.append(state)
        return sorted(mounts, key=lambda m: m.drive_letter)

    def mount_path(self, drive_letter: str) -> str:
        return f"{drive_letter}:\\"

    def get_platform_name(self) -> str:
        return "Windows"
