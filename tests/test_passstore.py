"""
Tests for the pass Secret Store adapter.

Command lines and environments are checked against a mocked subprocess.run;
listing and path checks run on a real temporary directory.
"""
import subprocess
from unittest.mock import patch

import pytest

from secrets_cli.backends.passstore import TRUST_ALWAYS, PassSecretStore
from secrets_cli.errors import ExternalToolError, InvalidIdentifier, SecretNotFound


def completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess([], returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def store(tmp_path):
    return PassSecretStore(tmp_path / "store", environ={"HOME": str(tmp_path)})


def add_secret_file(store, name):
    path = store.store_dir / f"{name}.gpg"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"ciphertext")
    return path


class TestEnvironment:
    """Tests for the per-vault environment."""

    def test_store_dir_exported(self, store):
        """PASSWORD_STORE_DIR points at this vault's store."""
        env = store._env(trust_all=False)
        assert env["PASSWORD_STORE_DIR"] == str(store.store_dir)
        assert "PASSWORD_STORE_GPG_OPTS" not in env

    def test_trust_override_appended(self, tmp_path):
        """Existing gpg options are kept and the trust model is appended."""
        store = PassSecretStore(
            tmp_path / "store", environ={"PASSWORD_STORE_GPG_OPTS": "--no-tty"},
        )
        env = store._env(trust_all=True)
        assert env["PASSWORD_STORE_GPG_OPTS"] == f"--no-tty {TRUST_ALWAYS}"

    def test_caller_environment_not_mutated(self, tmp_path):
        """Building the environment leaves the source mapping alone."""
        source = {"PATH": "/usr/bin"}
        store = PassSecretStore(tmp_path / "store", environ=source)
        store._env(trust_all=True)
        assert source == {"PATH": "/usr/bin"}


class TestCommands:
    """Tests for pass command construction."""

    def test_insert_uses_stdin_and_trust(self, store):
        """The value goes over stdin, never on the argument list."""
        with patch(
            "secrets_cli.backends.passstore.subprocess.run", return_value=completed(),
        ) as run:
            store.insert("database/password", "p@ss")
        args, kwargs = run.call_args
        assert args[0] == [
            "pass", "insert", "--multiline", "--force", "--", "database/password",
        ]
        assert kwargs["input"] == "p@ss"
        assert TRUST_ALWAYS in kwargs["env"]["PASSWORD_STORE_GPG_OPTS"]

    def test_show_strips_one_newline(self, store):
        """pass appends a newline; exactly one is removed."""
        add_secret_file(store, "token")
        with patch(
            "secrets_cli.backends.passstore.subprocess.run",
            return_value=completed(stdout="line1\nline2\n\n"),
        ) as run:
            assert store.show("token") == "line1\nline2\n"
        assert run.call_args.args[0] == ["pass", "show", "--", "token"]
        assert "PASSWORD_STORE_GPG_OPTS" not in run.call_args.kwargs["env"]

    def test_show_missing(self, store):
        """A missing secret is reported without invoking pass."""
        with patch("secrets_cli.backends.passstore.subprocess.run") as run:
            with pytest.raises(SecretNotFound):
                store.show("nope")
        run.assert_not_called()

    def test_remove(self, store):
        add_secret_file(store, "old")
        with patch(
            "secrets_cli.backends.passstore.subprocess.run", return_value=completed(),
        ) as run:
            store.remove("old")
        assert run.call_args.args[0] == ["pass", "rm", "--force", "--", "old"]

    def test_move(self, store):
        """mv re-encrypts, so it runs with the trust override."""
        add_secret_file(store, "old")
        with patch(
            "secrets_cli.backends.passstore.subprocess.run", return_value=completed(),
        ) as run:
            store.move("old", "new/name")
        assert run.call_args.args[0] == ["pass", "mv", "--force", "--", "old", "new/name"]
        assert TRUST_ALWAYS in run.call_args.kwargs["env"]["PASSWORD_STORE_GPG_OPTS"]

    def test_failure_raises_external_tool_error(self, store):
        """A non-zero exit carries pass's stderr."""
        with patch(
            "secrets_cli.backends.passstore.subprocess.run",
            return_value=completed(1, stderr="gpg: bob@example.com: skipped: Unusable public key\n"),
        ):
            with pytest.raises(ExternalToolError, match="Unusable public key") as exc_info:
                store.insert("x", "y")
        assert exc_info.value.tool == "pass"
        assert exc_info.value.returncode == 1

    def test_rekey_writes_recipients_then_inits(self, store):
        """.gpg-id is rewritten and pass init runs for the same list."""
        with patch(
            "secrets_cli.backends.passstore.subprocess.run", return_value=completed(),
        ) as run:
            store.rekey(["alice@example.com", "bob@example.com"])
        assert store.recipients() == ["alice@example.com", "bob@example.com"]
        assert run.call_args.args[0] == [
            "pass", "init", "--", "alice@example.com", "bob@example.com",
        ]
        assert TRUST_ALWAYS in run.call_args.kwargs["env"]["PASSWORD_STORE_GPG_OPTS"]


class TestPaths:
    """Tests for listing and path confinement."""

    def test_list_recursive_and_sorted(self, store):
        """Nested secrets are listed with '/' separators; dot entries skipped."""
        for name in ("zeta", "database/password", "database/user", "api/key"):
            add_secret_file(store, name)
        (store.store_dir / ".gpg-id").write_text("alice@example.com\n")
        (store.store_dir / ".git").mkdir()
        (store.store_dir / ".git" / "x.gpg").write_bytes(b"")
        assert store.list() == ["api/key", "database/password", "database/user", "zeta"]

    def test_list_missing_store(self, store):
        """A store that was never initialized is empty."""
        assert store.list() == []

    def test_secret_path_inside_store(self, store):
        store.store_dir.mkdir(parents=True)
        path = store.secret_path("a/b")
        assert path == (store.store_dir / "a" / "b.gpg").resolve()

    def test_secret_path_escape_refused(self, store):
        """Even unvalidated names cannot leave the store directory."""
        store.store_dir.mkdir(parents=True)
        with pytest.raises(InvalidIdentifier):
            store.secret_path("../../escape")
