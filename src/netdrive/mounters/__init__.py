"""Platform detection and mounter creation."""

import platform

from netdrive.errors import NetdriveError
from netdrive.mounters.base import BaseMounter


class UnsupportedPlatformError(NetdriveError):
    """Raised when the platform has no mounter implementation."""


def detect_platform() -> str:
    """Detect current platform. Returns: windows or linux."""
    system = platform.system().lower()
    if system in ("windows", "linux"):
        return system
    raise UnsupportedPlatformError(f"Platform {system} not supported for network drives")


def create_mounter(config: dict) -> BaseMounter:
    """Create the mounter for this platform from settings."""
    platform_name = detect_platform()
    timeout = config.get("mount_timeout", 60)

    if platform_name == "windows":
        from netdrive.mounters.windows import WindowsMounter
        return WindowsMounter(timeout=timeout)

    from netdrive.mounters.linux import LinuxMounter
    return LinuxMounter(
        mount_root=config.get("mount_root", "/mnt/netdrive"),
        use_sudo=config.get("use_sudo", False),
        timeout=timeout,
    )
