"""
Parsers for the text printed by the remote diagnostic commands.

Every parser is a pure function from command output to one model fragment.
Malformed lines are skipped; a FormatError is raised only when the output
lacks the structure the probe cannot do without.
"""

from pyrtop.errors import FormatError
from pyrtop.models import CPUInfo, CPURaw, FSInfo, Loads, MemInfo, NetDevInfo, NetIPAddr

# /proc/meminfo key -> MemInfo field
_MEMINFO_KEYS = {
    "MemTotal:": "total",
    "MemFree:": "free",
    "Buffers:": "buffers",
    "Cached:": "cached",
    "SwapTotal:": "swap_total",
    "SwapFree:": "swap_free",
}

_MEMINFO_UNITS = {"kb": 1024, "mb": 1024**2, "gb": 1024**3, "b": 1}

# Counter order of the aggregate "cpu" line in /proc/stat
_CPU_FIELDS = (
    "user",
    "nice",
    "system",
    "idle",
    "iowait",
    "irq",
    "softirq",
    "steal",
    "guest",
)

_NET_DEV_FIELDS = 17


def _to_int(text: str) -> int | None:
    try:
        return int(text)
    except ValueError:
        return None


def parse_uptime(output: str) -> float:
    """Return seconds since boot from /proc/uptime."""
    parts = output.split()
    if not parts:
        raise FormatError(f"unexpected uptime format: {output!r}")
    try:
        return float(parts[0])
    except ValueError:
        raise FormatError(f"unexpected uptime format: {output!r}") from None


def parse_hostname(output: str) -> str:
    """Return the host name printed by ``hostname`` without surrounding whitespace."""
    return output.strip()


def parse_loadavg(output: str) -> Loads:
    """
    Parse /proc/loadavg, e.g. ``0.10 0.20 0.30 2/150 12345``.

    The averages are kept verbatim so the display shows what the kernel printed.
    """
    parts = output.split()
    if len(parts) < 4:
        raise FormatError(f"unexpected loadavg format: {output!r}")
    running, _, total = parts[3].partition("/")
    return Loads(
        load1=parts[0],
        load5=parts[1],
        load15=parts[2],
        running_procs=running,
        total_procs=total,
    )


def parse_meminfo(output: str) -> MemInfo:
    """Parse /proc/meminfo lines of the form ``Key: value [unit]`` into bytes."""
    values: dict[str, int] = {}
    for line in output.splitlines():
        parts = line.split()
        if len(parts) not in (2, 3):
            continue
        field_name = _MEMINFO_KEYS.get(parts[0])
        if field_name is None:
            continue
        value = _to_int(parts[1])
        if value is None:
            continue
        unit = _MEMINFO_UNITS.get(parts[2].lower(), 1) if len(parts) == 3 else 1
        values[field_name] = value * unit

    if not values:
        raise FormatError("no recognized entries in meminfo output")
    return MemInfo(**values)


def parse_cpu_raw(output: str) -> CPURaw:
    """Read the counters of the aggregate ``cpu`` line of /proc/stat."""
    for line in output.splitlines():
        fields = line.split()
        if not fields or fields[0] != "cpu":
            continue
        counters = {}
        for name, text in zip(_CPU_FIELDS, fields[1:]):
            counters[name] = _to_int(text) or 0
        return CPURaw(**counters)
    raise FormatError("no aggregate cpu line in stat output")


def parse_cpu(output: str) -> CPUInfo:
    """Parse /proc/stat into percentage shares of the time since boot."""
    return CPUInfo.from_raw(parse_cpu_raw(output))


def _df_block_size(header: list[str]) -> int | None:
    # "1B-blocks", "1K-blocks", "512-blocks", "1024-blocks"
    if len(header) < 2 or not header[1].endswith("-blocks"):
        return None
    size = header[1][: -len("-blocks")]
    multipliers = {"K": 1024, "M": 1024**2, "G": 1024**3, "B": 1}
    if size and size[-1].upper() in multipliers:
        count = _to_int(size[:-1]) if size[:-1] else 1
        return count * multipliers[size[-1].upper()] if count else None
    return _to_int(size)


def parse_df(output: str) -> list[FSInfo]:
    """
    Parse the table printed by ``df``.

    A device name too long for its column is printed on a line of its own and
    the numbers follow on the next line, one column to the left. Both layouts
    yield the same FSInfo.
    """
    result: list[FSInfo] = []
    block_size = 1
    wrapped = False
    for line in output.splitlines():
        parts = line.split()
        if not parts:
            continue
        if len(parts) == 1:
            wrapped = True
            continue

        # The continuation of a wrapped row starts with the size column
        offset = 1 if wrapped and _to_int(parts[0]) is not None else 0
        wrapped = False
        if len(parts) < 6 - offset:
            continue

        header_size = _df_block_size(parts)
        if header_size is not None:
            block_size = header_size
            continue

        total = _to_int(parts[1 - offset])
        used = _to_int(parts[2 - offset])
        free = _to_int(parts[3 - offset])
        if total is None or used is None or free is None:
            continue

        result.append(
            FSInfo(
                mount_point=" ".join(parts[5 - offset :]),
                total=total * block_size,
                used=used * block_size,
                free=free * block_size,
            )
        )
    return result


def parse_ip_addr(output: str) -> dict[str, NetIPAddr]:
    """Parse ``ip -o addr``; the last address seen per family wins."""
    result: dict[str, NetIPAddr] = {}
    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 4 or parts[2] not in ("inet", "inet6"):
            continue
        name = parts[1]
        current = result.get(name, NetIPAddr())
        if parts[2] == "inet":
            result[name] = NetIPAddr(ipv4=parts[3], ipv6=current.ipv6)
        else:
            result[name] = NetIPAddr(ipv4=current.ipv4, ipv6=parts[3])
    return result


def parse_net_dev(output: str) -> dict[str, NetDevInfo]:
    """Parse /proc/net/dev; field 1 is received bytes and field 9 transmitted bytes."""
    result: dict[str, NetDevInfo] = {}
    for line in output.splitlines():
        parts = line.split()
        if len(parts) != _NET_DEV_FIELDS:
            continue
        rx = _to_int(parts[1])
        tx = _to_int(parts[9])
        if rx is None or tx is None:
            continue
        result[parts[0].removesuffix(":")] = NetDevInfo(rx=rx, tx=tx)
    return result
