"""Rotating file logger for netdrive, keeps max ~1 MB on disk."""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path


def log_path() -> Path:
    """Return the log file path, next to the config file."""
    if os.name == "nt":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return base / "netdrive" / "netdrive.log"


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Configure and return the ``netdrive`` logger.

    * 512 KB max per file, 1 backup = **1 MB total** on disk.
    * *verbose* lowers the level to DEBUG (per-attempt probe and mount lines).
    * Idempotent: repeated calls only adjust the level.
    """
    logger = logging.getLogger("netdrive")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    if logger.handlers:
        return logger

    log_file = log_path()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        str(log_file),
        maxBytes=512 * 1024,  # 512 KB
        backupCount=1,
        encoding="utf-8",
    )
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(message)s",
                          datefmt="%Y-%m-%d %H:%M:%S")
    )

    logger.addHandler(handler)
    return logger
