"""Read-only status report: configured shares vs. live mounts vs. reachability."""

import logging
from typing import Dict, List, Tuple

from netdrive.models import ShareSpec, StatusEntry, endpoint_host, endpoint_matches
from netdrive.mounters.base import BaseMounter
from netdrive.probe import ReachabilityProbe

_log = logging.getLogger("netdrive")


class StatusReporter:
    """Cross-reference share specs with mount state and server reachability.

    Each distinct server is probed once with a single attempt; this is an
    informational path and never mutates anything.
    """

    def __init__(self, specs: List[ShareSpec], mounter: BaseMounter, probe: ReachabilityProbe):
        self.specs = list(specs)
        self.mounter = mounter
        self.probe = probe.single_shot()

    def report(self) -> List[StatusEntry]:
        reachable: Dict[Tuple[str, int], bool] = {}
        entries = []
        for spec in self.specs:
            key = (spec.target.server_key, spec.target.port)
            if key not in reachable:
                result = self.probe.check(key[0], key[1], endpoint_host(spec.target))
                reachable[key] = result.reachable

            state = self.mounter.query(spec.drive_letter)
            connected = (
                state is not None
                and state.is_network
                and endpoint_matches(state.current_target, spec.target)
            )
            entries.append(StatusEntry(
                drive_letter=spec.drive_letter,
                path=spec.target.path,
                connected=connected,
                server_accessible=reachable[key],
            ))

        _log.info("status: %d share(s), %d connected",
                  len(entries), sum(1 for e in entries if e.connected))
        return entries
