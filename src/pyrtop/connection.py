"""
Authenticated SSH transport to the monitored host.

Credential methods are tried in order: the ssh agent on its own connection,
then a private key file and an interactive password on a single shared
handshake. The first one the server accepts wins.
"""

import io
import logging
import os
import re
import socket
from collections.abc import Callable
from enum import Enum
from pathlib import Path

import paramiko

from pyrtop import prompt
from pyrtop.errors import AuthError, ExecutionError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 22
DEFAULT_CONNECT_TIMEOUT = 15.0
DEFAULT_COMMAND_TIMEOUT = 10.0
DEFAULT_KNOWN_HOSTS = "~/.ssh/known_hosts"

# PEM block type -> key classes that can load it, tried in order
KEY_TYPES: dict[str, tuple[type[paramiko.PKey], ...]] = {
    "RSA PRIVATE KEY": (paramiko.RSAKey,),
    "EC PRIVATE KEY": (paramiko.ECDSAKey,),
    "DSA PRIVATE KEY": (paramiko.DSSKey,),
    "OPENSSH PRIVATE KEY": (
        paramiko.Ed25519Key,
        paramiko.ECDSAKey,
        paramiko.RSAKey,
        paramiko.DSSKey,
    ),
}

_PEM_BEGIN = re.compile(r"^-----BEGIN ([A-Z0-9 ]+)-----\s*$", re.MULTILINE)


class HostKeyPolicy(Enum):
    """How the server's host key is checked."""

    ACCEPT_ANY = "accept-any"
    KNOWN_HOSTS = "known-hosts"


class Connection:
    """
    An authenticated transport able to run commands on the remote host.

    Every command gets its own session, so ``execute`` may be called from
    several threads at once.
    """

    def __init__(self, transport, command_timeout: float | None = DEFAULT_COMMAND_TIMEOUT) -> None:
        self._transport = transport
        self._command_timeout = command_timeout

    @property
    def transport(self):
        return self._transport

    @property
    def is_active(self) -> bool:
        return bool(self._transport.is_active())

    def execute(self, command: str, timeout: float | None = None) -> str:
        """
        Run ``command`` to completion and return its standard output.

        Standard error is discarded. Raises ExecutionError on a non-zero exit
        status, a session failure or when the deadline passes.
        """
        if timeout is None:
            timeout = self._command_timeout

        try:
            channel = self._transport.open_session(timeout=timeout)
        except (paramiko.SSHException, OSError) as e:
            raise ExecutionError(command, f"cannot open session: {e}", connection_lost=True) from e

        try:
            channel.settimeout(timeout)
            channel.exec_command(command)
            with channel.makefile("rb", -1) as stdout:
                output = stdout.read()
            if not channel.status_event.wait(timeout):
                raise ExecutionError(command, f"no exit status after {timeout}s")
            status = channel.recv_exit_status()
        except socket.timeout as e:
            raise ExecutionError(command, f"timed out after {timeout}s") from e
        except (paramiko.SSHException, OSError) as e:
            raise ExecutionError(command, str(e) or type(e).__name__) from e
        finally:
            channel.close()

        if status != 0:
            raise ExecutionError(command, f"exit status {status}", exit_status=status)
        return output.decode("utf-8", errors="replace")

    def close(self) -> None:
        self._transport.close()

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def connect(
    user: str,
    host: str,
    port: int = 0,
    key_path: str = "",
    *,
    timeout: float = DEFAULT_CONNECT_TIMEOUT,
    command_timeout: float | None = DEFAULT_COMMAND_TIMEOUT,
    host_key_policy: HostKeyPolicy = HostKeyPolicy.ACCEPT_ANY,
    known_hosts: str = DEFAULT_KNOWN_HOSTS,
) -> Connection:
    """
    Establish an authenticated connection to ``user@host:port``.

    Raises AuthError when no credential method is available or the server
    rejects every one of them.
    """
    port = port or DEFAULT_PORT

    def dial() -> paramiko.Transport:
        return _open_transport(host, port, timeout, host_key_policy, known_hosts)

    transport = _try_agent(user, dial)
    if transport is not None:
        logger.info("authenticated to %s:%d with the ssh agent", host, port)
        return Connection(transport, command_timeout)

    methods: list[Callable[[paramiko.Transport], None]] = []

    key = load_private_key(key_path) if key_path else None
    if key is not None:
        methods.append(lambda t: t.auth_publickey(user, key))

    if prompt.is_interactive():
        password_prompt = f"{user}@{host}'s password: "
        methods.append(lambda t: t.auth_password(user, prompt.read_secret(password_prompt)))

    if not methods:
        raise AuthError(f"no authentication methods available for {user}@{host}")

    transport = dial()
    for method in methods:
        try:
            method(transport)
        except paramiko.AuthenticationException as e:
            logger.debug("authentication method rejected: %s", e)
            continue
        except (paramiko.SSHException, OSError, EOFError) as e:
            transport.close()
            raise AuthError(f"authentication to {host}:{port} failed: {e}") from e
        if transport.is_authenticated():
            logger.info("authenticated to %s:%d as %s", host, port, user)
            return Connection(transport, command_timeout)

    transport.close()
    raise AuthError(f"unable to authenticate {user}@{host}:{port}: all methods rejected")


def _open_transport(
    host: str,
    port: int,
    timeout: float,
    policy: HostKeyPolicy,
    known_hosts: str,
) -> paramiko.Transport:
    try:
        sock = socket.create_connection((host, port), timeout=timeout)
    except OSError as e:
        raise AuthError(f"cannot connect to {host}:{port}: {e}") from e

    transport = paramiko.Transport(sock)
    try:
        transport.start_client(timeout=timeout)
        _check_host_key(transport, host, port, policy, known_hosts)
    except (paramiko.SSHException, OSError) as e:
        transport.close()
        raise AuthError(f"ssh handshake with {host}:{port} failed: {e}") from e
    except AuthError:
        transport.close()
        raise
    return transport


def _check_host_key(
    transport: paramiko.Transport,
    host: str,
    port: int,
    policy: HostKeyPolicy,
    known_hosts: str,
) -> None:
    if policy is HostKeyPolicy.ACCEPT_ANY:
        return

    host_keys = paramiko.HostKeys()
    path = os.path.expanduser(known_hosts)
    try:
        host_keys.load(path)
    except OSError as e:
        raise AuthError(f"cannot read known hosts file {path}: {e}") from e

    name = host if port == DEFAULT_PORT else f"[{host}]:{port}"
    if not host_keys.check(name, transport.get_remote_server_key()):
        raise AuthError(f"host key verification failed for {name}")


def _try_agent(user: str, dial: Callable[[], paramiko.Transport]) -> paramiko.Transport | None:
    """Authenticate with the keys held by the ssh agent; return the live transport on success."""
    if not os.environ.get("SSH_AUTH_SOCK"):
        return None

    try:
        agent = paramiko.Agent()
    except (paramiko.SSHException, OSError) as e:
        logger.debug("ssh agent unavailable: %s", e)
        return None

    try:
        keys = agent.get_keys()
        if not keys:
            return None
        try:
            transport = dial()
        except AuthError as e:
            logger.debug("agent connection failed: %s", e)
            return None

        for key in keys:
            try:
                transport.auth_publickey(user, key)
            except paramiko.AuthenticationException:
                continue
            except (paramiko.SSHException, OSError) as e:
                logger.debug("agent authentication failed: %s", e)
                break
            if transport.is_authenticated():
                return transport

        transport.close()
        return None
    finally:
        agent.close()


def pem_block_type(text: str) -> str | None:
    """Return the type of the first PEM block in ``text``, e.g. ``RSA PRIVATE KEY``."""
    match = _PEM_BEGIN.search(text)
    return match.group(1) if match else None


def is_encrypted_pem(text: str) -> bool:
    """Check for the legacy OpenSSL encryption header."""
    return "Proc-Type: 4,ENCRYPTED" in text


def load_private_key(
    key_path: str,
    ask_passphrase: Callable[[str], str] | None = None,
) -> paramiko.PKey | None:
    """
    Load a private key for public key authentication.

    Encrypted keys prompt for a passphrase. Any failure is logged and
    yields None so the next credential method can be tried.
    """
    if ask_passphrase is None:
        ask_passphrase = prompt.read_secret

    path = Path(key_path).expanduser()
    try:
        text = path.read_text(encoding="ascii", errors="replace")
    except OSError as e:
        logger.warning("cannot read key file %s: %s", path, e)
        return None

    block_type = pem_block_type(text)
    if block_type is None:
        logger.warning("no key found in %s", path)
        return None

    key_classes = KEY_TYPES.get(block_type)
    if key_classes is None:
        logger.warning("unsupported key type %r in %s", block_type, path)
        return None

    passphrase_prompt = f"Enter passphrase for key '{path}': "
    passphrase = None
    error: Exception | None = None
    try:
        if is_encrypted_pem(text):
            passphrase = ask_passphrase(passphrase_prompt)

        for key_class in key_classes:
            try:
                return key_class.from_private_key(io.StringIO(text), password=passphrase)
            except paramiko.PasswordRequiredException as e:
                # OpenSSH-format keys only reveal encryption when decoded
                if passphrase is not None:
                    error = e
                    break
                passphrase = ask_passphrase(passphrase_prompt)
            except paramiko.SSHException as e:
                error = e
                continue
            try:
                return key_class.from_private_key(io.StringIO(text), password=passphrase)
            except paramiko.SSHException as e:
                error = e
    except (OSError, EOFError) as e:
        logger.warning("cannot read passphrase for %s: %s", path, e)
        return None

    logger.warning("cannot load key %s: %s", path, error)
    return None
