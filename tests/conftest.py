"""Shared fixtures for netdrive tests."""

import logging
from typing import Dict, List, Optional

import pytest

from netdrive.errors import MountError
from netdrive.models import (
    Credential,
    Endpoint,
    MountState,
    RetryPolicy,
    ShareSpec,
    SmbEndpoint,
    WebDavEndpoint,
)
from netdrive.mount_manager import MountManager
from netdrive.mounters.base import BaseMounter
from netdrive.orchestrator import ConnectionOrchestrator
from netdrive.probe import ReachabilityProbe


SHARES_TEXT = r"""# netdrive share definitions
PUBLIC=P|\\192.168.1.100\public|Public Share||

MEDIA=M|\\nas\media|Media library|alice|s3cret
DOCS=D|https://dav.example.com/remote.php/webdav|Nextcloud|bob|hunter2
"""


class FakeMounter(BaseMounter):
    """In-memory mount table recording every primitive call."""

    def __init__(self, mounts: Optional[Dict[str, Endpoint]] = None, local=(),
                 foreign: Optional[Dict[str, Endpoint]] = None):
        self.mounts: Dict[str, Endpoint] = dict(mounts or {})
        self.mounts.update(foreign or {})
        self.local = set(local)
        self.create_failures: Dict[str, int] = {}
        self.create_error = "System error 53 has occurred."
        self.remove_failures = set()
        self.inaccessible = set()
        self.calls: List[tuple] = []

    def query(self, drive_letter):
        if drive_letter in self.local:
            return MountState(drive_letter, None, is_network=False)
        if drive_letter in self.mounts:
            return MountState(drive_letter, self.mounts[drive_letter], is_network=True)
        return None

    def create(self, drive_letter, target, credential=None):
        self.calls.append(("create", drive_letter, target))
        if self.create_failures.get(drive_letter, 0) > 0:
            self.create_failures[drive_letter] -= 1
            raise MountError(self.create_error)
        self.mounts[drive_letter] = target

    def remove(self, drive_letter):
        self.calls.append(("remove", drive_letter))
        if drive_letter in self.remove_failures:
            raise MountError("The device is busy.")
        self.mounts.pop(drive_letter, None)

    def is_accessible(self, drive_letter):
        return drive_letter in self.mounts and drive_letter not in self.inaccessible

    def network_mounts(self):
        return [MountState(k, v) for k, v in sorted(self.mounts.items())]

    def mount_path(self, drive_letter):
        return f"{drive_letter}:\\"

    def get_platform_name(self):
        return "Fake"

    @property
    def create_calls(self):
        return [c for c in self.calls if c[0] == "create"]

    @property
    def remove_calls(self):
        return [c for c in self.calls if c[0] == "remove"]


class Sleeper:
    """Records requested sleeps instead of sleeping."""

    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds):
        self.calls.append(seconds)


def smb_spec(name, letter, server, share, user=None, secret=""):
    cred = Credential(user, secret) if user else None
    return ShareSpec(name, letter, SmbEndpoint(server, share), f"{name} share", cred)


def dav_spec(name, letter, url, user=None, secret=""):
    cred = Credential(user, secret) if user else None
    return ShareSpec(name, letter, WebDavEndpoint(url), f"{name} share", cred)


def make_orchestrator(specs, mounter, reachable=None, confirm=None, sleeper=None,
                      probe_workers=1, lock_factory=None):
    """Build an orchestrator over *mounter*; *reachable* is a set of hosts."""
    sleeper = sleeper or Sleeper()
    reachable = reachable if reachable is not None else {
        spec.target.server if isinstance(spec.target, SmbEndpoint) else spec.target.host
        for spec in specs
    }
    probe = ReachabilityProbe(
        policy=RetryPolicy(max_attempts=3),
        probe_fn=lambda host, port, timeout: host in reachable,
        sleep=sleeper,
    )
    manager = MountManager(mounter, RetryPolicy(max_attempts=3), sleep=sleeper)
    return ConnectionOrchestrator(
        specs,
        manager,
        probe,
        confirm=confirm or (lambda prompt: True),
        settle_delay=2,
        sleep=sleeper,
        probe_workers=probe_workers,
        lock_factory=lock_factory,
    )


@pytest.fixture(autouse=True)
def _reset_netdrive_logger():
    """Drop file handlers the CLI attaches so they don't leak between tests."""
    yield
    logger = logging.getLogger("netdrive")
    for h in logger.handlers[:]:
        h.close()
        logger.removeHandler(h)


@pytest.fixture
def sleeper():
    return Sleeper()


@pytest.fixture
def fake_mounter():
    return FakeMounter()


@pytest.fixture
def shares_file(tmp_path):
    """Write the sample share file and return its path."""
    path = tmp_path / "netdrive.conf"
    path.write_text(SHARES_TEXT, encoding="utf-8")
    return path
