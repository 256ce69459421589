"""Reading passwords and passphrases from the controlling terminal."""

import getpass
import os
import signal
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager

try:
    import termios
except ImportError:  # Windows
    termios = None

_RESTORE_SIGNALS = tuple(
    sig
    for sig in (
        getattr(signal, "SIGINT", None),
        getattr(signal, "SIGTERM", None),
        getattr(signal, "SIGQUIT", None),
    )
    if sig is not None
)

_prompt_lock = threading.Lock()


def is_interactive() -> bool:
    """Check if stdin is attached to a terminal."""
    try:
        return os.isatty(sys.stdin.fileno())
    except (AttributeError, OSError, ValueError):
        return False


@contextmanager
def terminal_guard(fd: int | None = None) -> Iterator[None]:
    """
    Restore the terminal mode of ``fd`` on every way out of the block.

    While the block runs, SIGINT/SIGTERM/SIGQUIT restore the terminal and
    exit with status 2. The previous handlers are put back afterwards.
    """
    if fd is None:
        fd = sys.stdin.fileno()

    saved = None
    if termios is not None:
        try:
            saved = termios.tcgetattr(fd)
        except termios.error:
            saved = None

    def restore() -> None:
        if saved is not None:
            try:
                termios.tcsetattr(fd, termios.TCSADRAIN, saved)
            except termios.error:
                pass

    def on_signal(signum, frame) -> None:
        restore()
        sys.stdout.write("\n")
        sys.stdout.flush()
        raise SystemExit(2)

    # Signal handlers can only be installed from the main thread
    install = threading.current_thread() is threading.main_thread()
    previous = {}
    if install:
        for sig in _RESTORE_SIGNALS:
            previous[sig] = signal.signal(sig, on_signal)
    try:
        yield
    finally:
        restore()
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def read_secret(prompt: str) -> str:
    """
    Prompt on the terminal and read a line without echo.

    Raises OSError when no terminal is attached.
    """
    if not is_interactive():
        raise OSError("cannot prompt for a secret: stdin is not a terminal")
    with _prompt_lock, terminal_guard():
        return getpass.getpass(prompt)
