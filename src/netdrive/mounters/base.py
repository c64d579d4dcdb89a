"""Abstract mounter interface and shared subprocess helpers."""

import logging
import subprocess
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Sequence

from netdrive.errors import MountError
from netdrive.models import Credential, Endpoint, MountState

_log = logging.getLogger("netdrive")

REDACTED = "********"


def redact(text: str, secrets: Iterable[str]) -> str:
    """Replace every non-empty secret in *text* with asterisks."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, REDACTED)
    return text


def redact_command(cmd: Sequence[str], secrets: Iterable[str]) -> str:
    """Render *cmd* for logging with secrets masked."""
    secrets = [s for s in secrets if s]
    return " ".join(REDACTED if part in secrets else redact(part, secrets) for part in cmd)


def run_command(
    cmd: List[str],
    timeout: float,
    secrets: Sequence[str] = (),
    input: Optional[str] = None,
) -> str:
    """Run a mount/unmount helper and return its stdout.

    Raises MountError on a non-zero exit, a timeout or a missing binary.
    The error text never contains any of *secrets*.
    """
    shown = redact_command(cmd, secrets)
    _log.debug("running: %s", shown)
    try:
        proc = subprocess.run(
            cmd, input=input, capture_output=True, text=True, timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        raise MountError(f"'{cmd[0]}' timed out after {timeout}s") from None
    except FileNotFoundError:
        raise MountError(f"'{cmd[0]}' not found") from None

    if proc.returncode != 0:
        output = (proc.stderr or proc.stdout or "").strip()
        output = redact(output, secrets) or f"exit code {proc.returncode}"
        raise MountError(output)
    return proc.stdout or ""


class BaseMounter(ABC):
    """Platform-specific mount operations keyed by drive letter.

    Mount state is always re-read from the OS; implementations must not
    cache it between calls.
    """

    @abstractmethod
    def query(self, drive_letter: str) -> Optional[MountState]:
        """Return the current mount for *drive_letter*, or None if free."""

    @abstractmethod
    def create(self, drive_letter: str, target: Endpoint,
               credential: Optional[Credential] = None) -> None:
        """Mount *target* on *drive_letter*.  Raises MountError."""

    @abstractmethod
    def remove(self, drive_letter: str) -> None:
        """Tear down the mount on *drive_letter*.  Raises MountError."""

    @abstractmethod
    def is_accessible(self, drive_letter: str) -> bool:
        """Return True if the mounted path can be listed."""

    @abstractmethod
    def network_mounts(self) -> List[MountState]:
        """Return every network drive currently mounted."""

    @abstractmethod
    def mount_path(self, drive_letter: str) -> str:
        """Return the local path a drive letter is mounted at."""

    @abstractmethod
    def get_platform_name(self) -> str:
        """Get platform name for logging."""
