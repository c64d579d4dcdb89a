"""Share definition file parsing and serialization.

Each record has the form::

    NAME=DRIVE|TARGET|DESCRIPTION|USERNAME|SECRET

``TARGET`` is either a UNC path (``\\\\host\\share``, top-level share only) or
an ``http(s)://`` WebDAV URL.  Malformed records are skipped with a warning;
they never fail the whole load.
"""

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlsplit

from netdrive.errors import ConfigError, ConfigNotFoundError
from netdrive.models import (
    ConfigWarning,
    Credential,
    Endpoint,
    ShareSpec,
    SmbEndpoint,
    WebDavEndpoint,
)

_log = logging.getLogger("netdrive")

FIELD_COUNT = 5

_DRIVE_RE = re.compile(r"^[A-Z]$")
_UNC_RE = re.compile(r"^\\\\([^\\/]+)\\([^\\/]+)$")


def parse_drive_letter(raw: str) -> str:
    """Normalize ``p``, ``P`` or ``P:`` to ``P``.  Raises ConfigError."""
    letter = raw.strip().upper()
    if letter.endswith(":"):
        letter = letter[:-1]
    if not _DRIVE_RE.match(letter):
        raise ConfigError(f"invalid drive letter '{raw.strip()}'")
    return letter


def parse_target(raw: str) -> Endpoint:
    """Classify and validate a TARGET field.  Raises ConfigError."""
    target = raw.strip()
    if not target:
        raise ConfigError("empty target")

    if target.lower().startswith(("http://", "https://")):
        parts = urlsplit(target)
        if not parts.hostname:
            raise ConfigError(f"WebDAV URL has no host: '{target}'")
        try:
            parts.port
        except ValueError:
            raise ConfigError(f"WebDAV URL has an invalid port: '{target}'")
        return WebDavEndpoint(url=target)

    match = _UNC_RE.match(target)
    if not match:
        if target.startswith("\\\\") and target.count("\\") > 3:
            raise ConfigError(
                f"UNC path must name a top-level share only: '{target}'"
            )
        raise ConfigError(f"target is neither a UNC path nor a WebDAV URL: '{target}'")
    return SmbEndpoint(server=match.group(1), share=match.group(2))


def parse_share_line(line: str, line_number: int = 0) -> Optional[ShareSpec]:
    """Parse one record.

    Returns None for blank and comment lines; raises ConfigError for
    malformed records.  Error text never includes the SECRET field.
    """
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None

    if "=" not in stripped:
        raise ConfigError("missing '=' between name and fields")
    name, rest = stripped.split("=", 1)
    name = name.strip()
    if not name:
        raise ConfigError("empty share name")

    fields = [f.strip() for f in rest.split("|")]
    if len(fields) != FIELD_COUNT:
        raise ConfigError(
            f"share '{name}': expected {FIELD_COUNT} '|'-separated fields, got {len(fields)}"
        )
    drive, target, description, username, secret = fields

    try:
        letter = parse_drive_letter(drive)
        endpoint = parse_target(target)
    except ConfigError as e:
        raise ConfigError(f"share '{name}': {e}") from None

    credential = Credential(username=username, secret=secret) if username else None
    if not username and secret:
        _log.warning("share '%s' (line %d): secret given without username, connecting anonymously",
                     name, line_number)

    return ShareSpec(
        id=name,
        drive_letter=letter,
        target=endpoint,
        description=description,
        credential=credential,
    )


def parse_shares(text: str) -> Tuple[List[ShareSpec], List[ConfigWarning]]:
    """Parse the contents of a share file.

    * Duplicate names: the later entry is skipped.
    * Duplicate drive letters: every entry after the first claiming a letter
      is rejected with a warning naming both entries.
    """
    specs: List[ShareSpec] = []
    warnings: List[ConfigWarning] = []
    by_name: Dict[str, int] = {}
    by_letter: Dict[str, str] = {}

    if text.startswith("\ufeff"):
        text = text[1:]

    for number, line in enumerate(text.splitlines(), 1):
        try:
            spec = parse_share_line(line, number)
        except ConfigError as e:
            warnings.append(ConfigWarning(number, str(e)))
            continue
        if spec is None:
            continue

        if spec.id in by_name:
            warnings.append(ConfigWarning(
                number,
                f"share '{spec.id}' already defined on line {by_name[spec.id]}, skipped",
            ))
            continue
        if spec.drive_letter in by_letter:
            warnings.append(ConfigWarning(
                number,
                f"share '{spec.id}': drive {spec.drive_letter}: already assigned "
                f"to '{by_letter[spec.drive_letter]}', skipped",
            ))
            continue

        by_name[spec.id] = number
        by_letter[spec.drive_letter] = spec.id
        specs.append(spec)

    for w in warnings:
        _log.warning("share file %s", w)
    return specs, warnings


def load_shares(path: Path) -> Tuple[List[ShareSpec], List[ConfigWarning]]:
    """Load share definitions from *path*.

    Raises ConfigNotFoundError if the file does not exist.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigNotFoundError(path)
    with open(path, "r", encoding="utf-8-sig") as f:
        text = f.read()
    specs, warnings = parse_shares(text)
    _log.info("loaded %d share(s) from %s (%d warning(s))",
              len(specs), path, len(warnings))
    return specs, warnings


def format_share(spec: ShareSpec) -> str:
    """Serialize *spec* back to a share file record."""
    username = spec.credential.username if spec.credential else ""
    secret = spec.credential.secret if spec.credential else ""
    fields = [spec.drive_letter, spec.target.path, spec.description, username, secret]
    return f"{spec.id}={'|'.join(fields)}"


def find_share(specs: List[ShareSpec], drive_letter: str) -> Optional[ShareSpec]:
    """Return the spec assigned to *drive_letter*, or None."""
    for spec in specs:
        if spec.drive_letter == drive_letter:
            return spec
    return None
