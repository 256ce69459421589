"""Shared fixtures: canned command output and a fake remote command runner."""

import threading
import time

import pytest

from pyrtop.errors import ExecutionError

UPTIME = "350735.47 234388.90\n"
HOSTNAME = "web1.example.com\n"
LOADAVG = "0.10 0.20 0.30 2/150 12345\n"
MEMINFO = """\
MemTotal:        2048 kB
MemFree:          512 kB
MemAvailable:    1024 kB
Buffers:           64 kB
Cached:           128 kB
SwapCached:         0 kB
SwapTotal:       1024 kB
SwapFree:         768 kB
HugePages_Total:       0
"""
DF = """\
Filesystem        1B-blocks        Used   Available Use% Mounted on
/dev/sda1      105088212992 42035285196 57672019968  43% /
tmpfs             209715200           0   209715200   0% /run/user/1000
"""
IP_ADDR = """\
1: lo    inet 127.0.0.1/8 scope host lo\\       valid_lft forever preferred_lft forever
1: lo    inet6 ::1/128 scope host \\       valid_lft forever preferred_lft forever
2: eth0    inet 10.0.0.5/24 brd 10.0.0.255 scope global eth0\\       valid_lft forever preferred_lft forever
2: eth0    inet6 fe80::1/64 scope link \\       valid_lft forever preferred_lft forever
"""
NET_DEV = """\
Inter-|   Receive                                                |  Transmit
 face |bytes    packets errs drop fifo frame compressed multicast|bytes    packets errs drop fifo colls carrier compressed
    lo:    1000      10    0    0    0     0          0         0     1000      10    0    0    0     0       0          0
  eth0:    5000      50    0    0    0     0          0         0     7000      70    0    0    0     0       0          0
docker0:    300       3    0    0    0     0          0         0      400       4    0    0    0     0       0          0
"""
STAT = """\
cpu  100 0 50 800 25 10 10 5 0 0
cpu0 50 0 25 400 12 5 5 2 0 0
intr 12345
"""

OUTPUTS = {
    "/bin/cat /proc/uptime": UPTIME,
    "/bin/hostname -f": HOSTNAME,
    "/bin/hostname": "web1\n",
    "/bin/cat /proc/loadavg": LOADAVG,
    "/bin/cat /proc/meminfo": MEMINFO,
    "/bin/df -B1": DF,
    "/bin/df": DF,
    "/bin/ip -o addr": IP_ADDR,
    "/sbin/ip -o addr": IP_ADDR,
    "/bin/cat /proc/net/dev": NET_DEV,
    "/bin/cat /proc/stat": STAT,
}


class FakeRunner:
    """Answers remote commands from a table; listed commands fail."""

    def __init__(self, outputs=None, failing=(), delay=0.0, connection_lost=False):
        self.outputs = dict(OUTPUTS if outputs is None else outputs)
        self.failing = set(failing)
        self.delay = delay
        self.connection_lost = connection_lost
        self.executed: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def execute(self, command: str) -> str:
        with self._lock:
            self.executed.append(command)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if self.connection_lost:
                raise ExecutionError(command, "cannot open session", connection_lost=True)
            if command in self.failing or command not in self.outputs:
                raise ExecutionError(command, "exit status 1", exit_status=1)
            return self.outputs[command]
        finally:
            with self._lock:
                self.in_flight -= 1


@pytest.fixture
def runner():
    """A FakeRunner answering every probe command."""
    return FakeRunner()


@pytest.fixture
def make_runner():
    """Factory for FakeRunners with custom behaviour."""
    return FakeRunner
