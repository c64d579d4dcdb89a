"""Data models for netdrive shares, mount state and operation results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Union
from urllib.parse import urlsplit

SMB_PORT = 445


@dataclass(frozen=True)
class SmbEndpoint:
    server: str   # e.g. "192.168.1.100"
    share: str    # e.g. "public"

    @property
    def path(self) -> str:
        """E.g. \\\\192.168.1.100\\public"""
        return f"\\\\{self.server}\\{self.share}"

    @property
    def server_key(self) -> str:
        return self.server.lower()

    @property
    def port(self) -> int:
        return SMB_PORT


@dataclass(frozen=True)
class WebDavEndpoint:
    url: str      # e.g. "https://dav.example.com/files"

    @property
    def path(self) -> str:
        return self.url

    @property
    def server_key(self) -> str:
        """URL authority without userinfo, lower-cased."""
        netloc = urlsplit(self.url).netloc
        return netloc.rsplit("@", 1)[-1].lower()

    @property
    def port(self) -> int:
        parts = urlsplit(self.url)
        if parts.port:
            return parts.port
        return 443 if parts.scheme.lower() == "https" else 80

    @property
    def host(self) -> str:
        return urlsplit(self.url).hostname or ""


Endpoint = Union[SmbEndpoint, WebDavEndpoint]


def endpoint_host(target: Endpoint) -> str:
    """Return the host name a reachability probe should connect to."""
    if isinstance(target, SmbEndpoint):
        return target.server
    return target.host


def endpoint_matches(a: Optional[Endpoint], b: Optional[Endpoint]) -> bool:
    """Return True if *a* and *b* name the same remote share.

    SMB hosts and share names are case-insensitive on every server we
    talk to.  WebDAV compares scheme and host case-insensitively, treats
    an explicit default port (``:443`` for https, ``:80`` for http) as
    absent, ignores userinfo and a trailing slash on the path.
    """
    if a is None or b is None or type(a) is not type(b):
        return False
    if isinstance(a, SmbEndpoint):
        return (a.server.lower() == b.server.lower()
                and a.share.lower() == b.share.lower())
    pa, pb = urlsplit(a.url), urlsplit(b.url)
    return (
        pa.scheme.lower() == pb.scheme.lower()
        and a.host.lower() == b.host.lower()
        and a.port == b.port
        and pa.path.rstrip("/") == pb.path.rstrip("/")
        and pa.query == pb.query
    )


@dataclass(frozen=True)
class Credential:
    username: str
    secret: str = field(default="", repr=False)


@dataclass(frozen=True)
class ShareSpec:
    id: str
    drive_letter: str
    target: Endpoint
    description: str = ""
    credential: Optional[Credential] = None

    @property
    def is_anonymous(self) -> bool:
        return self.credential is None


@dataclass
class ServerGroup:
    server_key: str
    port: int
    members: List[ShareSpec] = field(default_factory=list)

    @property
    def host(self) -> str:
        return endpoint_host(self.members[0].target) if self.members else self.server_key


@dataclass(frozen=True)
class ReachabilityResult:
    server_key: str
    reachable: bool
    attempts: int


@dataclass(frozen=True)
class MountState:
    drive_letter: str
    current_target: Optional[Endpoint] = None
    is_network: bool = True


class Outcome(Enum):
    CONNECTED = "connected"
    ALREADY_CONNECTED = "already_connected"
    REPLACED = "replaced"
    DISCONNECTED = "disconnected"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def icon(self) -> str:
        return {
            Outcome.CONNECTED: "[green]\u2714 connected[/green]",
            Outcome.ALREADY_CONNECTED: "[green]\u2714 already connected[/green]",
            Outcome.REPLACED: "[green]\u2714 replaced[/green]",
            Outcome.DISCONNECTED: "[cyan]\u23cf disconnected[/cyan]",
            Outcome.SKIPPED: "[yellow]\u26a0 skipped[/yellow]",
            Outcome.FAILED: "[red]\u2718 failed[/red]",
        }[self]


@dataclass
class OperationResult:
    drive_letter: str
    outcome: Outcome
    detail: str = ""

    @property
    def failed(self) -> bool:
        return self.outcome == Outcome.FAILED

    def to_dict(self) -> dict:
        return {
            "drive": self.drive_letter,
            "outcome": self.outcome.value,
            "detail": self.detail,
        }


class StatusTier(Enum):
    CONNECTED = "connected"
    SERVER_UNREACHABLE = "server_unreachable"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"

    @property
    def icon(self) -> str:
        return {
            StatusTier.CONNECTED: "[green]\u2714 connected[/green]",
            StatusTier.SERVER_UNREACHABLE: "[yellow]\u26a0 connected, server unreachable[/yellow]",
            StatusTier.AVAILABLE: "[cyan]\u25cb available[/cyan]",
            StatusTier.UNAVAILABLE: "[red]\u2718 not accessible[/red]",
        }[self]


@dataclass
class StatusEntry:
    drive_letter: str
    path: str
    connected: bool
    server_accessible: bool

    @property
    def tier(self) -> StatusTier:
        if self.connected and self.server_accessible:
            return StatusTier.CONNECTED
        if self.connected:
            return StatusTier.SERVER_UNREACHABLE
        if self.server_accessible:
            return StatusTier.AVAILABLE
        return StatusTier.UNAVAILABLE

    def to_dict(self) -> dict:
        return {
            "drive": self.drive_letter,
            "path": self.path,
            "connected": self.connected,
            "server_accessible": self.server_accessible,
            "status": self.tier.value,
        }


@dataclass(frozen=True)
class ConfigWarning:
    line_number: int
    message: str

    def __str__(self) -> str:
        return f"line {self.line_number}: {self.message}"


def linear_backoff(step: float = 2.0) -> Callable[[int], float]:
    """Return a backoff function giving ``step * attempt`` seconds."""
    def backoff(attempt: int) -> float:
        return step * attempt
    return backoff


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff: Callable[[int], float] = field(default_factory=linear_backoff)


class Action(Enum):
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    RECONNECT = "reconnect"


ALL = "ALL"

# A scope is either a single drive letter ("P") or ALL.
Scope = str


@dataclass(frozen=True)
class Command:
    action: Action
    scope: Scope
    auto_confirm: bool = False

    @property
    def is_batch(self) -> bool:
        return self.scope == ALL
