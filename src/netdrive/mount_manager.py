"""Per-share mount reconciliation: inspect, decide, connect, verify, retry."""

import logging
import time
from typing import Callable, Optional

from netdrive.errors import MountError
from netdrive.models import OperationResult, Outcome, RetryPolicy, ShareSpec, endpoint_matches
from netdrive.mounters.base import BaseMounter, redact

_log = logging.getLogger("netdrive")


class MountManager:
    """Drive one share's mount toward its configured target.

    State machine per share:

    * mounted to the same target   -> ALREADY_CONNECTED, nothing touched
    * letter held by a local disk  -> SKIPPED
    * mounted to another target    -> tear down, connect, REPLACED
    * not mounted                  -> connect, CONNECTED
    * connect budget exhausted     -> FAILED with the last error

    Each connect attempt is verified by listing the mount; a mount that
    reports success but is not listable counts as a failed attempt.
    """

    def __init__(
        self,
        mounter: BaseMounter,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.mounter = mounter
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    def reconcile(self, spec: ShareSpec) -> OperationResult:
        letter = spec.drive_letter
        state = self.mounter.query(letter)

        replacing = False
        if state is not None:
            if not state.is_network:
                _log.warning("%s: drive letter in use by a local volume, skipped", letter)
                return OperationResult(letter, Outcome.SKIPPED,
                                       "drive letter in use by a local volume")
            if endpoint_matches(state.current_target, spec.target):
                _log.info("%s: already connected to %s", letter, spec.target.path)
                return OperationResult(letter, Outcome.ALREADY_CONNECTED, spec.target.path)

            current = state.current_target.path if state.current_target else "unknown target"
            _log.info("%s: mounted to %s, replacing with %s", letter, current, spec.target.path)
            try:
                self.mounter.remove(letter)
            except MountError as e:
                detail = self._detail(spec, f"could not disconnect {current}: {e}")
                _log.error("%s: %s", letter, detail)
                return OperationResult(letter, Outcome.FAILED, detail)
            replacing = True

        error = self._connect(spec)
        if error is not None:
            detail = self._detail(spec, error)
            _log.error("%s: connect failed: %s", letter, detail)
            return OperationResult(letter, Outcome.FAILED, detail)

        outcome = Outcome.REPLACED if replacing else Outcome.CONNECTED
        _log.info("%s: %s %s", letter, outcome.value, spec.target.path)
        return OperationResult(letter, outcome, spec.target.path)

    def _connect(self, spec: ShareSpec) -> Optional[str]:
        """Run the connect/verify/retry loop.  Returns the last error or None."""
        letter = spec.drive_letter
        last_error = "no connect attempt made"

        for attempt in range(1, self.policy.max_attempts + 1):
            try:
                self.mounter.create(letter, spec.target, spec.credential)
                if self.mounter.is_accessible(letter):
                    return None
                last_error = f"{self.mounter.mount_path(letter)} is not accessible after connect"
            except MountError as e:
                last_error = str(e)

            _log.warning("%s: attempt %d/%d failed: %s", letter, attempt,
                         self.policy.max_attempts, self._detail(spec, last_error))
            self._teardown_partial(letter)
            if attempt < self.policy.max_attempts:
                self._sleep(self.policy.backoff(attempt))

        return last_error

    def _teardown_partial(self, letter: str) -> None:
        try:
            state = self.mounter.query(letter)
            if state is not None and state.is_network:
                self.mounter.remove(letter)
        except MountError as e:
            _log.debug("%s: cleanup after failed attempt: %s", letter, e)

    def disconnect(self, drive_letter: str, target_path: str = "") -> OperationResult:
        """Tear down the mount on *drive_letter*."""
        try:
            self.mounter.remove(drive_letter)
        except MountError as e:
            _log.error("%s: disconnect failed: %s", drive_letter, e)
            return OperationResult(drive_letter, Outcome.FAILED, str(e))
        _log.info("%s: disconnected", drive_letter)
        return OperationResult(drive_letter, Outcome.DISCONNECTED, target_path)

    @staticmethod
    def _detail(spec: ShareSpec, text: str) -> str:
        secrets = [spec.credential.secret] if spec.credential else []
        return redact(text, secrets)
