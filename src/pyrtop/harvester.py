"""Concurrent collection of one Snapshot from a remote host."""

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Protocol

import psutil

from pyrtop import parsers
from pyrtop.errors import ExecutionError, HarvestError
from pyrtop.models import Snapshot, merge_net_interfaces

logger = logging.getLogger(__name__)


class CommandRunner(Protocol):
    """Anything that can run a remote command and return its standard output."""

    def execute(self, command: str) -> str: ...


@dataclass(slots=True, frozen=True)
class Probe:
    """
    One remote command plus the parser for its output.

    ``commands`` are tried in order; a later one runs only if the previous
    one failed to execute.
    """

    name: str
    commands: tuple[str, ...]
    parser: Callable[[str], Any]

    def __post_init__(self) -> None:
        if not self.commands:
            raise ValueError(f"probe {self.name} has no commands")

    def run(self, runner: CommandRunner) -> Any:
        error = None
        for command in self.commands:
            try:
                output = runner.execute(command)
            except ExecutionError as e:
                logger.debug("probe %s: %s", self.name, e)
                error = e
                continue
            return self.parser(output)
        raise error


PROBES: tuple[Probe, ...] = (
    Probe("uptime", ("/bin/cat /proc/uptime",), parsers.parse_uptime),
    Probe("hostname", ("/bin/hostname -f", "/bin/hostname"), parsers.parse_hostname),
    Probe("loads", ("/bin/cat /proc/loadavg",), parsers.parse_loadavg),
    Probe("memory", ("/bin/cat /proc/meminfo",), parsers.parse_meminfo),
    Probe("filesystems", ("/bin/df -B1", "/bin/df"), parsers.parse_df),
    Probe("ip_addrs", ("/bin/ip -o addr", "/sbin/ip -o addr"), parsers.parse_ip_addr),
    Probe("net_devs", ("/bin/cat /proc/net/dev",), parsers.parse_net_dev),
    Probe("cpu", ("/bin/cat /proc/stat",), parsers.parse_cpu),
)


def default_worker_limit() -> int:
    """Number of logical CPUs on this machine."""
    return psutil.cpu_count(logical=True) or 1


class Harvester:
    """
    Runs every probe against one connection with bounded concurrency.

    At most ``worker_limit`` probes are in flight at once. Probe failures are
    independent of each other. Once the connection itself is lost no probe
    that has not started yet is run; probes already running are allowed to
    finish.
    """

    def __init__(
        self,
        runner: CommandRunner,
        worker_limit: int | None = None,
        probes: tuple[Probe, ...] = PROBES,
    ) -> None:
        self._runner = runner
        self._worker_limit = worker_limit or default_worker_limit()
        self._probes = probes

    @property
    def worker_limit(self) -> int:
        return self._worker_limit

    def harvest(self) -> Snapshot:
        """
        Collect a snapshot.

        Raises HarvestError if any probe failed; its ``snapshot`` attribute
        holds every field whose probe succeeded.
        """
        results: dict[str, Any] = {}
        errors: list[Exception] = []
        lock = threading.Lock()
        disconnected = threading.Event()

        def task(probe: Probe) -> None:
            if disconnected.is_set():
                logger.debug("probe %s skipped: connection lost", probe.name)
                return
            try:
                value = probe.run(self._runner)
            except Exception as e:
                logger.warning("probe %s failed: %s", probe.name, e)
                with lock:
                    errors.append(e)
                if getattr(e, "connection_lost", False):
                    disconnected.set()
                return
            with lock:
                results[probe.name] = value

        with ThreadPoolExecutor(
            max_workers=self._worker_limit,
            thread_name_prefix="Harvester",
        ) as pool:
            for probe in self._probes:
                pool.submit(task, probe)

        snapshot = self._build_snapshot(results)
        if errors:
            raise HarvestError(snapshot, errors) from errors[0]
        return snapshot

    @staticmethod
    def _build_snapshot(results: dict[str, Any]) -> Snapshot:
        fields: dict[str, Any] = {}
        for name, attr in (
            ("hostname", "hostname"),
            ("uptime", "uptime_seconds"),
            ("loads", "loads"),
            ("cpu", "cpu"),
            ("memory", "memory"),
            ("filesystems", "filesystems"),
        ):
            if name in results:
                fields[attr] = results[name]

        fields["interfaces"] = merge_net_interfaces(
            results.get("ip_addrs", {}),
            results.get("net_devs", {}),
        )
        return Snapshot(**fields)
