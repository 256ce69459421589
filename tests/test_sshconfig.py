"""Tests for ssh config alias resolution."""

import pytest

from pyrtop import sshconfig
from pyrtop.errors import ConfigError
from pyrtop.models import HostAliasSection

CONFIG = """\
# personal hosts
Host web1
    HostName web1.example.com
    Port 2222
    User deploy

Host web*
    HostName pattern.example.com
    IdentityFile ~/.ssh/web_key

host db1 db2
    hostname db.internal
    PORT not-a-number
    user

Host *
    User admin
    Port 2200
    IdentityFile ~/.ssh/default_key
"""


@pytest.fixture
def table():
    return sshconfig.parse(CONFIG)


class TestParse:
    def test_sections_in_definition_order(self, table):
        assert table.patterns == ["web1", "web*", "db1", "db2", "*"]

    def test_section_values(self, table):
        assert table.section("web1") == HostAliasSection(
            hostname="web1.example.com", port=2222, user="deploy"
        )

    def test_multi_host_line_assigns_all(self, table):
        assert table.section("db1").hostname == "db.internal"
        assert table.section("db2").hostname == "db.internal"

    def test_malformed_lines_skipped(self, table):
        """Test bad ports and value-less keys do not abort the parse."""
        db = table.section("db1")
        assert db.port == 0
        assert db.user == ""
        assert table.section("*").user == "admin"

    def test_lines_before_any_host_ignored(self):
        table = sshconfig.parse("User nobody\nHost a\n  User alice\n")
        assert table.patterns == ["a"]
        assert table.section("a").user == "alice"

    def test_empty_config(self):
        table = sshconfig.parse("")
        assert len(table) == 0
        assert table.resolve("host") == sshconfig.ResolvedHost(hostname="host")


class TestResolve:
    def test_exact_match_wins(self, table):
        resolved = table.resolve("web1")
        assert resolved.hostname == "web1.example.com"
        assert resolved.port == 2222
        assert resolved.user == "deploy"
        # Unset field comes from the * section
        assert resolved.identity_file == "~/.ssh/default_key"

    def test_glob_match(self, table):
        resolved = table.resolve("web7")
        assert resolved.hostname == "pattern.example.com"
        assert resolved.identity_file == "~/.ssh/web_key"
        assert resolved.user == "admin"
        assert resolved.port == 2200

    def test_no_match_uses_alias_and_defaults(self, table):
        resolved = table.resolve("mail.example.org")
        assert resolved == sshconfig.ResolvedHost(
            hostname="mail.example.org",
            port=2200,
            user="admin",
            identity_file="~/.ssh/default_key",
        )

    def test_first_defined_pattern_wins(self):
        table = sshconfig.parse(
            "Host app-*\n  User first\nHost *-prod\n  User second\n"
        )
        assert table.resolve("app-prod").user == "first"

    def test_no_hostname_means_alias(self, table):
        assert table.resolve("db3").hostname == "db3"

    def test_default_hostname_fills_matched_section(self):
        """Test a matched section without HostName takes the * HostName."""
        table = sshconfig.parse(
            "Host web\n  User deploy\nHost *\n  HostName bastion.example.com\n  Port 2222\n"
        )
        assert table.resolve("web") == sshconfig.ResolvedHost(
            hostname="bastion.example.com", port=2222, user="deploy"
        )

    def test_default_hostname_not_used_without_match(self):
        table = sshconfig.parse("Host web\n  User deploy\nHost *\n  HostName bastion.example.com\n")
        assert table.resolve("mail").hostname == "mail"


class TestLoad:
    def test_load_file(self, tmp_path):
        path = tmp_path / "config"
        path.write_text(CONFIG)
        assert sshconfig.load(path).patterns == ["web1", "web*", "db1", "db2", "*"]

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            sshconfig.load(tmp_path / "missing")

    def test_load_default_missing_is_empty(self, tmp_path):
        assert len(sshconfig.load_default(tmp_path / "missing")) == 0

    def test_load_default_unreadable_is_empty(self, tmp_path):
        # A directory cannot be read as a file
        assert len(sshconfig.load_default(tmp_path)) == 0


class TestParseTarget:
    @pytest.mark.parametrize(
        "address, expected",
        [
            ("host", sshconfig.Target(host="host")),
            ("alice@host", sshconfig.Target(host="host", user="alice")),
            ("host:2222", sshconfig.Target(host="host", port=2222)),
            ("alice@host:2222", sshconfig.Target(host="host", user="alice", port=2222)),
            ("bob@[::1]:2200", sshconfig.Target(host="::1", user="bob", port=2200)),
            ("fe80::1", sshconfig.Target(host="fe80::1")),
        ],
    )
    def test_parse_target(self, address, expected):
        assert sshconfig.parse_target(address) == expected

    @pytest.mark.parametrize("address", ["host:abc", "host:0", "host:65536", "alice@"])
    def test_invalid_target(self, address):
        with pytest.raises(ValueError):
            sshconfig.parse_target(address)


class TestResolveTarget:
    @pytest.fixture(autouse=True)
    def home(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        return tmp_path

    def test_explicit_user_and_port_override_table(self, table):
        target = sshconfig.Target(host="web1", user="root", port=22)
        host, port, user, key = sshconfig.resolve_target(target, table)
        assert (host, port, user) == ("web1.example.com", 22, "root")

    def test_table_fills_unset_values(self, table, home):
        host, port, user, key = sshconfig.resolve_target(sshconfig.Target(host="web1"), table)
        assert (host, port, user) == ("web1.example.com", 2222, "deploy")
        assert key == str(home / ".ssh" / "default_key")

    def test_command_line_key_wins(self, table):
        _, _, _, key = sshconfig.resolve_target(
            sshconfig.Target(host="web1"), table, key_path="/keys/id_test"
        )
        assert key == "/keys/id_test"

    def test_id_rsa_fallback(self, home):
        ssh_dir = home / ".ssh"
        ssh_dir.mkdir()
        (ssh_dir / "id_rsa").write_text("key")
        host, port, user, key = sshconfig.resolve_target(
            sshconfig.Target(host="example.org", user="alice"), sshconfig.AliasTable()
        )
        assert (host, port, user) == ("example.org", 22, "alice")
        assert key == str(ssh_dir / "id_rsa")

    def test_no_key_available(self):
        _, _, _, key = sshconfig.resolve_target(
            sshconfig.Target(host="example.org", user="alice"), sshconfig.AliasTable()
        )
        assert key == ""

    def test_local_user_fallback(self, monkeypatch):
        monkeypatch.setattr(sshconfig.getpass, "getuser", lambda: "localuser")
        _, _, user, _ = sshconfig.resolve_target(
            sshconfig.Target(host="example.org"), sshconfig.AliasTable()
        )
        assert user == "localuser"
