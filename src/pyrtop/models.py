"""Data models for pyrtop."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType


@dataclass(slots=True, frozen=True)
class Loads:
    """Load averages as printed by the kernel, plus process counts."""

    load1: str = ""
    load5: str = ""
    load15: str = ""
    running_procs: str = ""
    total_procs: str = ""


@dataclass(slots=True, frozen=True)
class MemInfo:
    """Memory summary, every value in bytes."""

    total: int = 0
    free: int = 0
    buffers: int = 0
    cached: int = 0
    swap_total: int = 0
    swap_free: int = 0

    @property
    def used(self) -> int:
        """Memory in use; negative if the kernel reported inconsistent values."""
        return self.total - self.free - self.buffers - self.cached


@dataclass(slots=True, frozen=True)
class CPURaw:
    """Cumulative CPU tick counters since boot (aggregate ``cpu`` line)."""

    user: int = 0
    nice: int = 0
    system: int = 0
    idle: int = 0
    iowait: int = 0
    irq: int = 0
    softirq: int = 0
    steal: int = 0
    guest: int = 0

    @property
    def total(self) -> int:
        """Sum of all counters; guest_nice is not collected."""
        return (
            self.user
            + self.nice
            + self.system
            + self.idle
            + self.iowait
            + self.irq
            + self.softirq
            + self.steal
            + self.guest
        )


@dataclass(slots=True, frozen=True)
class CPUInfo:
    """Share of cumulative ticks per counter, in percent (0.0 - 100.0)."""

    user: float = 0.0
    nice: float = 0.0
    system: float = 0.0
    idle: float = 0.0
    iowait: float = 0.0
    irq: float = 0.0
    softirq: float = 0.0
    steal: float = 0.0
    guest: float = 0.0

    @classmethod
    def from_raw(cls, raw: CPURaw) -> "CPUInfo":
        """Convert raw counters to percentages; all zero when no ticks were counted."""
        total = raw.total
        if total <= 0:
            return cls()

        def pct(value: int) -> float:
            return value / total * 100

        return cls(
            user=pct(raw.user),
            nice=pct(raw.nice),
            system=pct(raw.system),
            idle=pct(raw.idle),
            iowait=pct(raw.iowait),
            irq=pct(raw.irq),
            softirq=pct(raw.softirq),
            steal=pct(raw.steal),
            guest=pct(raw.guest),
        )


@dataclass(slots=True, frozen=True)
class FSInfo:
    """One mounted filesystem, sizes in bytes."""

    mount_point: str
    total: int
    used: int
    free: int


@dataclass(slots=True, frozen=True)
class NetIPAddr:
    """Addresses of one interface (CIDR notation, as printed by ``ip``)."""

    ipv4: str = ""
    ipv6: str = ""


@dataclass(slots=True, frozen=True)
class NetDevInfo:
    """Traffic counters of one interface, in bytes."""

    rx: int = 0
    tx: int = 0


@dataclass(slots=True, frozen=True)
class NetInterface:
    """Addresses and traffic counters of one interface."""

    ipv4: str = ""
    ipv6: str = ""
    rx: int = 0
    tx: int = 0


def merge_net_interfaces(
    addrs: Mapping[str, NetIPAddr],
    devs: Mapping[str, NetDevInfo],
) -> dict[str, NetInterface]:
    """
    Join address and traffic tables by interface name.

    The address table drives the iteration: an interface that only has
    traffic counters never appears in the result. An addressed interface
    without counters is reported with zero traffic.
    """
    merged: dict[str, NetInterface] = {}
    for name, addr in addrs.items():
        dev = devs.get(name, NetDevInfo())
        merged[name] = NetInterface(ipv4=addr.ipv4, ipv6=addr.ipv6, rx=dev.rx, tx=dev.tx)
    return merged


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Immutable result of one harvest of a remote host."""

    hostname: str = ""
    uptime_seconds: float = 0.0
    loads: Loads = field(default_factory=Loads)
    cpu: CPUInfo = field(default_factory=CPUInfo)
    memory: MemInfo = field(default_factory=MemInfo)
    filesystems: tuple[FSInfo, ...] = ()
    interfaces: Mapping[str, NetInterface] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self) -> None:
        # Freeze the containers so callers cannot mutate a delivered snapshot
        object.__setattr__(self, "filesystems", tuple(self.filesystems))
        if not isinstance(self.interfaces, MappingProxyType):
            object.__setattr__(self, "interfaces", MappingProxyType(dict(self.interfaces)))


@dataclass(slots=True, frozen=True)
class HostAliasSection:
    """Connection defaults of one ``Host`` block in an ssh config file."""

    hostname: str = ""
    port: int = 0
    user: str = ""
    identity_file: str = ""
