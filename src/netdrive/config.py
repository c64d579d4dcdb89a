"""Settings loading, saving, and validation for netdrive.

Settings live in YAML and tune retry budgets, timeouts and where the share
file lives.  The share definitions themselves are in the line-oriented
share file parsed by :mod:`netdrive.shares`.
"""

import copy
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from netdrive.models import RetryPolicy, linear_backoff

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


DEFAULT_CONFIG: Dict[str, Any] = {
    "shares_file": "netdrive.conf",
    "mount_root": "/mnt/netdrive",
    "use_sudo": False,
    "mount_timeout": 60,
    "reconnect_settle_seconds": 2,
    "probe": {
        "timeout": 3,
        "max_attempts": 3,
        "backoff_seconds": 2,
        "workers": 1,
    },
    "mount": {
        "max_attempts": 3,
        "backoff_seconds": 2,
    },
}


def default_config_path() -> Path:
    """Return the default settings file path."""
    if os.name == "nt":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return base / "netdrive" / "config.yaml"


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def _expand_env_vars(obj):
    """Recursively expand ${VAR} references in string values."""
    if isinstance(obj, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), m.group(0)), obj)
    if isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    return obj


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load settings from YAML file, merged with defaults.

    String values containing ``${VAR}`` are expanded from environment
    variables.  Unset variables are left as-is.
    """
    path = path or default_config_path()
    if not path.exists():
        return copy.deepcopy(DEFAULT_CONFIG)
    with open(path, "r", encoding="utf-8") as f:
        user_config = yaml.safe_load(f) or {}
    merged = deep_merge(DEFAULT_CONFIG, user_config)
    return _expand_env_vars(merged)


def save_config(config: Dict[str, Any], path: Optional[Path] = None) -> Path:
    """Save settings dict to YAML file."""
    path = path or default_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)
    return path


def shares_path(config: Dict[str, Any], override: Optional[str] = None) -> Path:
    """Resolve the share file path (relative paths are against the cwd)."""
    return Path(override or config.get("shares_file") or DEFAULT_CONFIG["shares_file"])


def retry_policy(config: Dict[str, Any], section: str) -> RetryPolicy:
    """Build the RetryPolicy for the ``probe`` or ``mount`` section."""
    cfg = config.get(section, {})
    return RetryPolicy(
        max_attempts=cfg.get("max_attempts", 3),
        backoff=linear_backoff(cfg.get("backoff_seconds", 2)),
    )


def _is_number(val) -> bool:
    return isinstance(val, (int, float)) and not isinstance(val, bool)


def validate_config(config: Dict[str, Any]) -> List[str]:
    """Validate settings and return a list of error strings (empty = valid)."""
    errors = []

    shares_file = config.get("shares_file")
    if not isinstance(shares_file, str) or not shares_file.strip():
        errors.append("shares_file must be a non-empty string")

    mount_root = config.get("mount_root")
    if not isinstance(mount_root, str) or not mount_root.strip():
        errors.append("mount_root must be a non-empty string")

    if not isinstance(config.get("use_sudo", False), bool):
        errors.append("use_sudo must be true or false")

    for key in ("mount_timeout", "reconnect_settle_seconds"):
        val = config.get(key)
        if not _is_number(val) or val < 0:
            errors.append(f"{key} must be a non-negative number, got {val!r}")

    for section in ("probe", "mount"):
        cfg = config.get(section, {})
        if not isinstance(cfg, dict):
            errors.append(f"{section} must be a mapping")
            continue
        attempts = cfg.get("max_attempts")
        if not isinstance(attempts, int) or isinstance(attempts, bool) or attempts < 1:
            errors.append(f"{section}.max_attempts must be an integer >= 1, got {attempts!r}")
        backoff = cfg.get("backoff_seconds")
        if not _is_number(backoff) or backoff < 0:
            errors.append(f"{section}.backoff_seconds must be a non-negative number, got {backoff!r}")

    probe = config.get("probe", {})
    if isinstance(probe, dict):
        timeout = probe.get("timeout")
        if not _is_number(timeout) or timeout <= 0:
            errors.append(f"probe.timeout must be a positive number, got {timeout!r}")
        workers = probe.get("workers")
        if not isinstance(workers, int) or isinstance(workers, bool) or workers < 1:
            errors.append(f"probe.workers must be an integer >= 1, got {workers!r}")

    return errors
