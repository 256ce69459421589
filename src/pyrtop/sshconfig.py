"""
Host alias resolution compatible with the ``~/.ssh/config`` format.

Only the ``Host``, ``HostName``, ``Port``, ``User`` and ``IdentityFile``
directives are understood; everything else is ignored.
"""

import getpass
import logging
import os
from dataclasses import dataclass, replace
from fnmatch import fnmatchcase
from pathlib import Path

from pyrtop.errors import ConfigError
from pyrtop.models import HostAliasSection

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "~/.ssh/config"
DEFAULT_KEY_PATH = "~/.ssh/id_rsa"
DEFAULT_PORT = 22

_WILDCARD = "*"

_FIELDS = {
    "hostname": "hostname",
    "port": "port",
    "user": "user",
    "identityfile": "identity_file",
}


@dataclass(slots=True, frozen=True)
class ResolvedHost:
    """Connection parameters after alias resolution."""

    hostname: str
    port: int = 0
    user: str = ""
    identity_file: str = ""


class AliasTable:
    """
    Read-only table of ``Host`` sections in definition order.

    When several patterns match a name, the pattern defined first wins.
    """

    def __init__(self, sections: list[tuple[str, HostAliasSection]] | None = None) -> None:
        self._sections: tuple[tuple[str, HostAliasSection], ...] = tuple(sections or ())

    def __len__(self) -> int:
        return len(self._sections)

    def __contains__(self, pattern: object) -> bool:
        return any(name == pattern for name, _ in self._sections)

    @property
    def patterns(self) -> list[str]:
        return [name for name, _ in self._sections]

    def section(self, pattern: str) -> HostAliasSection | None:
        """Return the section defined for exactly this pattern."""
        for name, section in self._sections:
            if name == pattern:
                return section
        return None

    def match(self, alias: str) -> HostAliasSection | None:
        """Find the section selected by ``alias``: exact name first, then glob patterns."""
        exact = self.section(alias)
        if exact is not None and alias != _WILDCARD:
            return exact
        for name, section in self._sections:
            if name == _WILDCARD:
                continue
            if fnmatchcase(alias, name):
                return section
        return None

    def resolve(self, alias: str) -> ResolvedHost:
        """
        Resolve ``alias`` to connection parameters.

        Each field is taken from the matched section when set, else from the
        ``*`` section, else left empty. An alias no section selects keeps its
        own name as the hostname.
        """
        defaults = self.section(_WILDCARD) or HostAliasSection()
        matched = self.match(alias)
        if matched is None:
            matched = HostAliasSection(hostname=alias)
        return ResolvedHost(
            hostname=matched.hostname or defaults.hostname or alias,
            port=matched.port or defaults.port,
            user=matched.user or defaults.user,
            identity_file=matched.identity_file or defaults.identity_file,
        )


def parse(text: str) -> AliasTable:
    """Parse ssh config text. Malformed lines are logged and skipped."""
    sections: dict[str, HostAliasSection] = {}
    order: list[str] = []
    current: list[str] = []

    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split()
        keyword = parts[0].lower()

        if keyword == "host":
            current = parts[1:]
            for pattern in current:
                if pattern not in sections:
                    sections[pattern] = HostAliasSection()
                    order.append(pattern)
            continue

        field_name = _FIELDS.get(keyword)
        if field_name is None:
            continue
        if len(parts) != 2:
            logger.debug("ssh config line %d: expected one value for %s", lineno, parts[0])
            continue

        value: str | int = parts[1]
        if field_name == "port":
            try:
                value = int(parts[1])
            except ValueError:
                logger.debug("ssh config line %d: bad port %r", lineno, parts[1])
                continue

        for pattern in current:
            sections[pattern] = replace(sections[pattern], **{field_name: value})

    return AliasTable([(pattern, sections[pattern]) for pattern in order])


def load(path: str | os.PathLike[str]) -> AliasTable:
    """Load an ssh config file. Raises ConfigError if it cannot be read."""
    try:
        config_path = Path(path).expanduser()
    except RuntimeError as e:
        raise ConfigError(f"cannot determine home directory: {e}") from e
    try:
        text = config_path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise ConfigError(f"cannot read {config_path}: {e}") from e
    return parse(text)


def load_default(path: str | os.PathLike[str] = DEFAULT_CONFIG_PATH) -> AliasTable:
    """Load the per-user ssh config, or an empty table if it is missing or unreadable."""
    try:
        return load(path)
    except ConfigError as e:
        if isinstance(e.__cause__, FileNotFoundError):
            return AliasTable()
        logger.warning("ignoring ssh config: %s", e)
        return AliasTable()


@dataclass(slots=True, frozen=True)
class Target:
    """A parsed ``[user@]host[:port]`` argument; empty/zero fields were not given."""

    host: str
    user: str = ""
    port: int = 0


def parse_target(address: str) -> Target:
    """
    Split ``[user@]host[:port]``. IPv6 literals may be written in brackets.

    Raises ValueError for a bad or out-of-range port.
    """
    user, sep, host = address.rpartition("@")
    if not sep:
        user, host = "", address

    port_text = ""
    if host.startswith("["):
        end = host.find("]")
        if end != -1:
            rest = host[end + 1 :]
            host = host[1:end]
            if rest.startswith(":"):
                port_text = rest[1:]
    elif host.count(":") == 1:
        host, port_text = host.split(":")

    port = 0
    if port_text:
        try:
            port = int(port_text)
        except ValueError:
            raise ValueError(f"bad port: {port_text!r}") from None
        if not 0 < port < 65536:
            raise ValueError(f"port out of range: {port}")

    if not host:
        raise ValueError(f"missing host in {address!r}")
    return Target(host=host, user=user, port=port)


def resolve_target(
    target: Target,
    table: AliasTable,
    key_path: str | None = None,
) -> tuple[str, int, str, str]:
    """
    Merge a command-line target with the alias table.

    Returns ``(hostname, port, user, key_path)``. A user or port written in
    the target beats the alias table; a key file given on the command line
    beats the table's IdentityFile, which beats ``~/.ssh/id_rsa`` (used only
    if it exists). The user falls back to the local login name.
    """
    resolved = table.resolve(target.host)

    user = target.user or resolved.user or _local_user()
    port = target.port or resolved.port or DEFAULT_PORT

    if key_path:
        key = key_path
    elif resolved.identity_file:
        key = resolved.identity_file
    else:
        default = os.path.expanduser(DEFAULT_KEY_PATH)
        key = default if os.path.exists(default) else ""

    return resolved.hostname, port, user, os.path.expanduser(key) if key else ""


def _local_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return ""
