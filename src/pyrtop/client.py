"""High level client: connect to a host and collect snapshots from it."""

import logging
from dataclasses import dataclass

from pyrtop.connection import (
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_CONNECT_TIMEOUT,
    Connection,
    HostKeyPolicy,
    connect,
)
from pyrtop.harvester import Harvester
from pyrtop.models import Snapshot

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ClientOptions:
    """Connection and harvesting settings for a RemoteClient."""

    host: str = ""
    user: str = ""
    port: int = 0
    key_path: str = ""
    workers: int = 0  # 0: one per local logical CPU
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    command_timeout: float | None = DEFAULT_COMMAND_TIMEOUT
    host_key_policy: HostKeyPolicy = HostKeyPolicy.ACCEPT_ANY
    transport: object | None = None  # an already authenticated paramiko.Transport


class RemoteClient:
    """
    Collects snapshots of one remote host.

    Uses ``options.transport`` when given, otherwise authenticates a new
    connection. Raises AuthError if that fails.
    """

    def __init__(self, options: ClientOptions) -> None:
        self._options = options
        if options.transport is not None:
            self._connection = Connection(options.transport, options.command_timeout)
        else:
            self._connection = connect(
                options.user,
                options.host,
                options.port,
                options.key_path,
                timeout=options.connect_timeout,
                command_timeout=options.command_timeout,
                host_key_policy=options.host_key_policy,
            )
        self._harvester = Harvester(self._connection, options.workers or None)
        logger.debug(
            "client ready for %s with %d workers",
            options.host,
            self._harvester.worker_limit,
        )

    @property
    def connection(self) -> Connection:
        return self._connection

    def get_stats(self) -> Snapshot:
        """Harvest one snapshot. Raises HarvestError with a partial snapshot on failure."""
        return self._harvester.harvest()

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> "RemoteClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
