"""Command line entry point for pyrtop."""

import argparse
import logging
import re
import sys

from pyrtop import sshconfig
from pyrtop.app import RtopApp
from pyrtop.client import ClientOptions, RemoteClient
from pyrtop.connection import DEFAULT_COMMAND_TIMEOUT, HostKeyPolicy
from pyrtop.errors import HarvestError, RtopError

logger = logging.getLogger("pyrtop")

_DURATION = re.compile(r"^\s*(\d+(?:\.\d*)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_interval(text: str) -> float:
    """Parse ``5``, ``5s``, ``500ms``, ``1m`` or ``1h`` into seconds."""
    match = _DURATION.match(text)
    if not match:
        raise argparse.ArgumentTypeError(f"invalid interval: {text!r}")
    seconds = float(match.group(1)) * _DURATION_UNITS[match.group(2) or "s"]
    if seconds <= 0:
        raise argparse.ArgumentTypeError(f"interval must be positive: {text!r}")
    return seconds


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pyrtop",
        description="Monitor server statistics over an ssh connection.",
    )
    parser.add_argument("target", metavar="[user@]host[:port]")
    parser.add_argument(
        "-i",
        "--private-key-file",
        dest="key_path",
        default=None,
        help="PEM-encoded private key file to use (default: ~/.ssh/id_rsa if present)",
    )
    parser.add_argument(
        "-t",
        "--interval",
        type=parse_interval,
        default=5.0,
        help="refresh interval, e.g. 5, 5s, 500ms (default: 5s)",
    )
    parser.add_argument(
        "-w",
        "--workers",
        type=int,
        default=0,
        help="concurrent remote commands (default: number of local CPUs)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_COMMAND_TIMEOUT,
        help="deadline for each remote command in seconds (default: %(default)s)",
    )
    parser.add_argument(
        "--strict-host-key-checking",
        action="store_true",
        help="verify the host key against ~/.ssh/known_hosts",
    )
    parser.add_argument("--log-file", help="write diagnostics to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def setup_logging(log_file: str | None, verbose: bool) -> None:
    """Log to a file when asked; otherwise only warnings reach stderr."""
    if log_file:
        logging.basicConfig(
            filename=log_file,
            level=logging.DEBUG if verbose else logging.INFO,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
    else:
        logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")
    logging.getLogger("paramiko").setLevel(logging.WARNING)


def run(args: argparse.Namespace) -> tuple[RtopApp, RemoteClient]:
    """
    Connect and collect the first snapshot.

    Any error here is fatal. Returns the app ready to run and its client.
    """
    try:
        target = sshconfig.parse_target(args.target)
    except ValueError as e:
        raise RtopError(str(e)) from e

    table = sshconfig.load_default()
    host, port, user, key_path = sshconfig.resolve_target(target, table, args.key_path)
    logger.info("connecting to %s@%s:%d", user, host, port)

    client = RemoteClient(
        ClientOptions(
            host=host,
            user=user,
            port=port,
            key_path=key_path,
            workers=args.workers,
            command_timeout=args.timeout,
            host_key_policy=(
                HostKeyPolicy.KNOWN_HOSTS
                if args.strict_host_key_checking
                else HostKeyPolicy.ACCEPT_ANY
            ),
        )
    )
    try:
        snapshot = client.get_stats()
    except HarvestError:
        client.close()
        raise

    app = RtopApp(snapshot, client.get_stats, args.interval, target=f"{user}@{host}")
    return app, client


def main(argv: list[str] | None = None) -> int:
    """Entry point for pyrtop application."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_file, args.verbose)

    try:
        app, client = run(args)
    except RtopError as e:
        print(e, file=sys.stderr)
        return 1

    with client:
        app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
