"""Background polling of a remote host for pyrtop."""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from queue import Queue

from pyrtop.errors import HarvestError
from pyrtop.models import Snapshot

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class PollResult:
    """Outcome of one poll: a snapshot, an error, or a partial snapshot and an error."""

    snapshot: Snapshot | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RemoteMonitor:
    """
    Polls a remote host in a daemon thread and pushes PollResults to a Queue.

    The first poll happens one ``poll_rate`` after ``start``; the caller is
    expected to have collected the initial snapshot itself. Errors are
    reported through the queue and never stop the loop.
    """

    def __init__(
        self,
        collect: Callable[[], Snapshot],
        update_queue: Queue[PollResult],
        poll_rate: float = 5.0,
    ) -> None:
        """
        Initialize the RemoteMonitor.

        Args:
            collect: Callable returning a fresh snapshot, e.g. RemoteClient.get_stats.
            update_queue: Thread-safe queue to push results to.
            poll_rate: How often to poll the host (in seconds). Default 5.0s.
        """
        self._collect = collect
        self._queue = update_queue
        self._poll_rate = max(0.1, poll_rate)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="RemoteMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        A harvest in progress is not interrupted; the thread exits after it.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def poll_once(self) -> PollResult:
        """Run one harvest and wrap its outcome."""
        try:
            return PollResult(snapshot=self._collect())
        except HarvestError as e:
            return PollResult(snapshot=e.snapshot, error=e)
        except Exception as e:
            logger.exception("poll failed")
            return PollResult(error=e)

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.wait(timeout=self._poll_rate):
            result = self.poll_once()
            if not result.ok:
                logger.warning("poll failed: %s", result.error)
            self._queue.put(result)
