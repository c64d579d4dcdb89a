"""Per-drive-letter file locks so two netdrive runs never mutate one drive at once."""

import os
from pathlib import Path
from typing import Optional


def lock_dir() -> Path:
    """Return the lock directory, next to the config file."""
    if os.name == "nt":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return base / "netdrive" / "locks"


class DriveLock:
    """Exclusive, non-blocking lock on one drive letter.

    Uses ``fcntl.flock`` on Unix and ``msvcrt.locking`` on Windows.
    Both auto-release when the process exits (even on crash), so no lock
    outlives the invocation that took it.

    Usage::

        with DriveLock("P") as lock:
            if not lock.held:
                ...   # another netdrive process is changing P:
    """

    def __init__(self, drive_letter: str, directory: Optional[Path] = None):
        self.drive_letter = drive_letter
        self._path = (directory or lock_dir()) / f"{drive_letter}.lock"
        self._fd = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> bool:
        """Try to acquire the lock.  Returns ``False`` if already held elsewhere."""
        if self._fd is not None:
            return True
        self._path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._fd = os.open(str(self._path), os.O_CREAT | os.O_RDWR)
        except OSError:
            return False

        try:
            if os.name == "nt":
                import msvcrt
                msvcrt.locking(self._fd, msvcrt.LK_NBLCK, 1)
            else:
                import fcntl
                fcntl.flock(self._fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            os.close(self._fd)
            self._fd = None
            return False

        os.ftruncate(self._fd, 0)
        os.lseek(self._fd, 0, os.SEEK_SET)
        os.write(self._fd, str(os.getpid()).encode())
        return True

    def release(self) -> None:
        """Release the lock.  Safe to call multiple times."""
        if self._fd is None:
            return
        try:
            if os.name == "nt":
                import msvcrt
                os.lseek(self._fd, 0, os.SEEK_SET)
                msvcrt.locking(self._fd, msvcrt.LK_UNLCK, 1)
            else:
                import fcntl
                fcntl.flock(self._fd, fcntl.LOCK_UN)
            os.close(self._fd)
        except OSError:
            pass
        self._fd = None

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, *exc):
        self.release()
