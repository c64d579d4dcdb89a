"""Exception hierarchy for netdrive."""


class NetdriveError(Exception):
    """Base class for all netdrive errors."""


class ConfigError(NetdriveError):
    """A share definition or settings value is malformed."""


class ConfigNotFoundError(ConfigError):
    """The share file does not exist; there is nothing to act on."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"Share file not found: {path}")


class ValidationError(NetdriveError):
    """Invalid command arguments, unknown drive, or drive not in config."""


class ReachabilityError(NetdriveError):
    """A server could not be reached within the retry budget."""

    def __init__(self, server_key: str, attempts: int):
        self.server_key = server_key
        self.attempts = attempts
        super().__init__(
            f"server unreachable: {server_key} ({attempts} attempt(s))"
        )


class MountError(NetdriveError):
    """A connect, disconnect or post-connect verification failed."""


class UserAbort(NetdriveError):
    """The user declined a confirmation prompt."""
