"""TCP reachability probing with bounded retry and linear backoff."""

import logging
import socket
import time
from typing import Callable, Optional

from netdrive.models import ReachabilityResult, RetryPolicy

_log = logging.getLogger("netdrive")

DEFAULT_TIMEOUT = 3  # seconds per connection attempt


def tcp_probe(host: str, port: int, timeout: float = DEFAULT_TIMEOUT) -> bool:
    """Return True if a TCP connection to *host*:*port* succeeds.

    Timeouts, refused connections and DNS failures all count as unreachable,
    including host names the IDNA codec rejects (empty or over-long labels).
    """
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except (OSError, ValueError) as e:
        _log.debug("tcp %s:%d: %s", host, port, e)
        return False


class ReachabilityProbe:
    """Check whether a server's service port accepts connections.

    Up to ``policy.max_attempts`` attempts; after failed attempt *n* (if
    another attempt remains) sleeps ``policy.backoff(n)`` seconds.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        timeout: float = DEFAULT_TIMEOUT,
        probe_fn: Callable[[str, int, float], bool] = tcp_probe,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.policy = policy or RetryPolicy()
        self.timeout = timeout
        self._probe = probe_fn
        self._sleep = sleep

    def check(self, server_key: str, port: int, host: Optional[str] = None) -> ReachabilityResult:
        """Probe *host* (defaults to *server_key*) on *port*."""
        host = host or server_key
        attempts = 0
        for attempt in range(1, self.policy.max_attempts + 1):
            attempts = attempt
            if self._probe(host, port, self.timeout):
                _log.info("server %s:%d reachable (attempt %d)", host, port, attempt)
                return ReachabilityResult(server_key, True, attempt)
            _log.debug("server %s:%d attempt %d/%d failed",
                       host, port, attempt, self.policy.max_attempts)
            if attempt < self.policy.max_attempts:
                self._sleep(self.policy.backoff(attempt))

        _log.warning("server %s:%d unreachable after %d attempt(s)", host, port, attempts)
        return ReachabilityResult(server_key, False, attempts)

    def single_shot(self) -> "ReachabilityProbe":
        """Return a one-attempt probe sharing this probe's timeout and backend."""
        return ReachabilityProbe(
            policy=RetryPolicy(max_attempts=1, backoff=self.policy.backoff),
            timeout=self.timeout,
            probe_fn=self._probe,
            sleep=self._sleep,
        )
