"""Orchestrates connect, disconnect and reconnect across configured shares."""

import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, List, Optional, Tuple

from netdrive.errors import ReachabilityError, UserAbort, ValidationError
from netdrive.grouping import group_by_server
from netdrive.models import (
    ALL,
    Action,
    Command,
    OperationResult,
    Outcome,
    ReachabilityResult,
    Scope,
    ServerGroup,
    ShareSpec,
)
from netdrive.mount_manager import MountManager
from netdrive.probe import ReachabilityProbe
from netdrive.shares import find_share

_log = logging.getLogger("netdrive")

_SCOPE_RE = re.compile(r"^([A-Za-z]):?$")

LOCKED_DETAIL = "locked by another netdrive process"


def parse_scope(raw: str) -> Scope:
    """Turn ``all``, ``P`` or ``p:`` into a Scope.  Raises ValidationError."""
    value = (raw or "").strip()
    if value.lower() == "all":
        return ALL
    match = _SCOPE_RE.match(value)
    if not match:
        raise ValidationError(f"Invalid drive '{raw}': expected a letter A-Z or 'all'")
    return match.group(1).upper()


def exit_code(results: List[OperationResult]) -> int:
    """0 when nothing failed, 1 if any share ended FAILED."""
    return 1 if any(r.failed for r in results) else 0


def _always_yes(prompt: str) -> bool:
    return True


class ConnectionOrchestrator:
    """Top-level driver for one netdrive command.

    *confirm* is asked once per batch before any mutation; declining raises
    UserAbort and nothing is touched.  Network and mount failures are
    turned into FAILED results per share and never end the run early.
    """

    def __init__(
        self,
        specs: List[ShareSpec],
        manager: MountManager,
        probe: ReachabilityProbe,
        confirm: Callable[[str], bool] = _always_yes,
        settle_delay: float = 2,
        sleep: Callable[[float], None] = time.sleep,
        probe_workers: int = 1,
        lock_factory: Optional[Callable] = None,
    ):
        self.specs = list(specs)
        self.manager = manager
        self.mounter = manager.mounter
        self.probe = probe
        self.confirm = confirm
        self.settle_delay = settle_delay
        self._sleep = sleep
        self.probe_workers = max(1, probe_workers)
        self._lock_factory = lock_factory

    def run(self, command: Command) -> List[OperationResult]:
        _log.info("%s %s started (auto_confirm=%s)",
                  command.action.value, command.scope, command.auto_confirm)
        if command.action == Action.CONNECT:
            results = self.connect(command.scope, command.auto_confirm)
        elif command.action == Action.DISCONNECT:
            results = self.disconnect(command.scope, command.auto_confirm)
        elif command.action == Action.RECONNECT:
            results = self.reconnect(command.scope, command.auto_confirm)
        else:
            raise ValidationError(f"Unknown action: {command.action}")

        failed = sum(1 for r in results if r.failed)
        _log.info("%s %s complete: %d result(s), %d failed",
                  command.action.value, command.scope, len(results), failed)
        return results

    # -- helpers ---------------------------------------------------------

    def _ask(self, prompt: str, auto_confirm: bool) -> None:
        if auto_confirm:
            return
        if not self.confirm(prompt):
            _log.info("cancelled by user: %s", prompt)
            raise UserAbort(prompt)

    def _select(self, scope: Scope) -> List[ShareSpec]:
        """Return the configured specs for *scope*, in configuration order."""
        if scope == ALL:
            return list(self.specs)
        spec = find_share(self.specs, scope)
        if spec is None:
            raise ValidationError(f"Drive {scope}: is not in the share configuration")
        return [spec]

    def _locked(self, letter: str, action: Callable[[], OperationResult]) -> OperationResult:
        """Run *action* while holding the drive letter's lock."""
        if self._lock_factory is None:
            return action()
        lock = self._lock_factory(letter)
        if not lock.acquire():
            _log.warning("%s: %s", letter, LOCKED_DETAIL)
            return OperationResult(letter, Outcome.SKIPPED, LOCKED_DETAIL)
        try:
            return action()
        finally:
            lock.release()

    def _probe_groups(self, groups: List[ServerGroup]) -> Dict[Tuple[str, int], ReachabilityResult]:
        """Probe every group once; concurrently across groups if configured."""
        verdicts: Dict[Tuple[str, int], ReachabilityResult] = {}
        if self.probe_workers == 1 or len(groups) < 2:
            for group in groups:
                verdicts[(group.server_key, group.port)] = self.probe.check(
                    group.server_key, group.port, group.host)
            return verdicts

        with ThreadPoolExecutor(max_workers=self.probe_workers) as executor:
            future_to_group = {
                executor.submit(self.probe.check, g.server_key, g.port, g.host): g
                for g in groups
            }
            for future in as_completed(future_to_group):
                group = future_to_group[future]
                verdicts[(group.server_key, group.port)] = future.result()
        return verdicts

    # -- actions ---------------------------------------------------------

    def connect(self, scope: Scope, auto_confirm: bool = False,
                confirmed: bool = False) -> List[OperationResult]:
        specs = self._select(scope)
        if not specs:
            return []
        if scope == ALL and not confirmed:
            self._ask(f"Connect {len(specs)} share(s)?", auto_confirm)
        return self._connect_specs(specs)

    def _connect_specs(self, specs: List[ShareSpec]) -> List[OperationResult]:
        groups = group_by_server(specs)
        verdicts = self._probe_groups(groups)

        by_letter: Dict[str, OperationResult] = {}
        for group in groups:
            verdict = verdicts[(group.server_key, group.port)]
            if not verdict.reachable:
                detail = str(ReachabilityError(group.server_key, verdict.attempts))
                for spec in group.members:
                    by_letter[spec.drive_letter] = OperationResult(
                        spec.drive_letter, Outcome.FAILED, detail)
                continue
            for spec in group.members:
                by_letter[spec.drive_letter] = self._locked(
                    spec.drive_letter, lambda s=spec: self.manager.reconcile(s))

        return [by_letter[s.drive_letter] for s in specs]

    def disconnect(self, scope: Scope, auto_confirm: bool = False) -> List[OperationResult]:
        if scope == ALL:
            mounts = self.mounter.network_mounts()
            if not mounts:
                _log.info("nothing to disconnect")
                return []
            letters = ", ".join(f"{m.drive_letter}:" for m in mounts)
            self._ask(f"Disconnect {len(mounts)} network drive(s) ({letters})?", auto_confirm)
        else:
            state = self.mounter.query(scope)
            if state is None:
                raise ValidationError(f"Drive {scope}: is not mounted")
            if not state.is_network:
                raise ValidationError(f"Drive {scope}: is not a network drive")
            mounts = [state]
            shown = state.current_target.path if state.current_target else ""
            self._ask(f"Disconnect {scope}: {shown}".rstrip() + "?", auto_confirm)

        return self._disconnect_mounts(mounts)

    def _disconnect_mounts(self, mounts) -> List[OperationResult]:
        results = []
        for m in mounts:
            path = m.current_target.path if m.current_target else ""
            results.append(self._locked(
                m.drive_letter,
                lambda letter=m.drive_letter, p=path: self.manager.disconnect(letter, p),
            ))
        return results

    def reconnect(self, scope: Scope, auto_confirm: bool = False) -> List[OperationResult]:
        specs = self._select(scope)
        if not specs:
            return []

        mounted = []
        for spec in specs:
            state = self.mounter.query(spec.drive_letter)
            if state is not None and state.is_network:
                mounted.append(state)

        if not mounted:
            return self.connect(scope, auto_confirm)

        letters = ", ".join(f"{m.drive_letter}:" for m in mounted)
        self._ask(f"Reconnect {len(specs)} share(s), disconnecting {letters} first?",
                  auto_confirm)

        failed: Dict[str, OperationResult] = {}
        for result in self._disconnect_mounts(mounted):
            if result.outcome != Outcome.DISCONNECTED:
                failed[result.drive_letter] = result

        if len(failed) < len(mounted) and self.settle_delay > 0:
            _log.debug("waiting %ss for disconnects to settle", self.settle_delay)
            self._sleep(self.settle_delay)

        remaining = [s for s in specs if s.drive_letter not in failed]
        by_letter = {r.drive_letter: r for r in self._connect_specs(remaining)}
        by_letter.update(failed)
        return [by_letter[s.drive_letter] for s in specs]
