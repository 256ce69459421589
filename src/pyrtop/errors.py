"""Exception hierarchy for pyrtop."""

from pyrtop.models import Snapshot


class RtopError(Exception):
    """Base class for every error raised by pyrtop."""


class ConfigError(RtopError):
    """The ssh config file or the home directory could not be read."""


class AuthError(RtopError):
    """No credential method was available or the server rejected all of them."""


class ExecutionError(RtopError):
    """A remote command exited non-zero or its session failed."""

    def __init__(
        self,
        command: str,
        reason: str,
        exit_status: int | None = None,
        connection_lost: bool = False,
    ) -> None:
        super().__init__(f"execute {command}: {reason}")
        self.command = command
        self.reason = reason
        self.exit_status = exit_status
        # No session could be opened; later commands on the same transport fail too
        self.connection_lost = connection_lost


class FormatError(RtopError):
    """Command output lacked the structure a parser requires."""


class HarvestError(RtopError):
    """
    One or more probes failed during a harvest.

    The snapshot still carries every field whose probe succeeded.
    """

    def __init__(self, snapshot: Snapshot, errors: list[Exception]) -> None:
        first = errors[0] if errors else None
        message = str(first) if first is not None else "harvest failed"
        if len(errors) > 1:
            message += f" (and {len(errors) - 1} more)"
        super().__init__(message)
        self.snapshot = snapshot
        self.errors = errors
