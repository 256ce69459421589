"""Tests for pyrtop data models."""

import pytest

from pyrtop.models import (
    CPUInfo,
    CPURaw,
    FSInfo,
    MemInfo,
    NetDevInfo,
    NetInterface,
    NetIPAddr,
    Snapshot,
    merge_net_interfaces,
)


def test_mem_used():
    """Test used memory is total minus free, buffers and cached."""
    mem = MemInfo(total=2097152, free=524288, buffers=65536, cached=131072)
    assert mem.used == 1376256


def test_mem_used_can_go_negative():
    """Test inconsistent values give a negative result instead of wrapping."""
    mem = MemInfo(total=100, free=200, buffers=0, cached=0)
    assert mem.used == -100


def test_cpu_raw_total():
    """Test total is the sum of the nine counters."""
    raw = CPURaw(1, 2, 3, 4, 5, 6, 7, 8, 9)
    assert raw.total == 45


def test_cpu_info_zero_total():
    """Test all percentages are zero when no ticks were counted."""
    info = CPUInfo.from_raw(CPURaw())
    assert info == CPUInfo()
    assert info.idle == 0.0


def test_cpu_info_percentages_bounded():
    """Test percentages are within [0, 100] and sum to about 100."""
    raw = CPURaw(user=123, nice=7, system=55, idle=9000, iowait=13, irq=2, softirq=3, steal=1, guest=0)
    info = CPUInfo.from_raw(raw)
    values = [
        info.user,
        info.nice,
        info.system,
        info.idle,
        info.iowait,
        info.irq,
        info.softirq,
        info.steal,
        info.guest,
    ]
    assert all(0.0 <= v <= 100.0 for v in values)
    assert sum(values) <= 100.0 + 1e-6
    assert sum(values) == pytest.approx(100.0)


def test_merge_net_interfaces_address_table_drives():
    """Test interfaces without an address are dropped."""
    addrs = {"eth0": NetIPAddr(ipv4="10.0.0.5/24"), "lo": NetIPAddr(ipv4="127.0.0.1/8")}
    devs = {"eth0": NetDevInfo(rx=5, tx=7), "docker0": NetDevInfo(rx=1, tx=1)}

    merged = merge_net_interfaces(addrs, devs)

    assert set(merged) == set(addrs)
    assert "docker0" not in merged
    assert merged["eth0"] == NetInterface(ipv4="10.0.0.5/24", rx=5, tx=7)
    assert merged["lo"] == NetInterface(ipv4="127.0.0.1/8")


def test_snapshot_defaults():
    """Test an empty snapshot can be created."""
    snapshot = Snapshot()
    assert snapshot.hostname == ""
    assert snapshot.filesystems == ()
    assert dict(snapshot.interfaces) == {}


def test_snapshot_is_frozen():
    """Test that Snapshot is immutable (frozen)."""
    snapshot = Snapshot(hostname="web1")
    with pytest.raises(AttributeError):
        snapshot.hostname = "web2"


def test_snapshot_containers_are_read_only():
    """Test filesystems and interfaces cannot be changed after construction."""
    snapshot = Snapshot(
        filesystems=[FSInfo("/", 10, 5, 5)],
        interfaces={"eth0": NetInterface(ipv4="10.0.0.5/24")},
    )
    assert isinstance(snapshot.filesystems, tuple)
    with pytest.raises(TypeError):
        snapshot.interfaces["lo"] = NetInterface()


def test_snapshot_uses_slots():
    """Test that Snapshot uses __slots__ for memory efficiency."""
    snapshot = Snapshot()
    # Slots-based dataclasses don't have __dict__
    assert not hasattr(snapshot, "__dict__")
