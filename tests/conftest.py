"""
Shared fixtures: in-memory stand-ins for gpg and pass.

``FakeKeyring`` plays the Key Store. ``FakeSecretStore`` keeps secrets as
real files under a vault's store directory, so listing and path handling run
against the filesystem. A fake ciphertext file is::

    alice@example.com,bob@example.com   <- recipients it was encrypted for
    <value>

Recipients named in ``FakeKeyring.skipped`` are silently left out when
encrypting, the way gpg drops keys it refuses to use.
With ``hidden_recipients`` set, every recipient reads back as the all-zero
key ID, as gpg reports ciphertext written with ``--throw-keyids``.
"""
from __future__ import annotations

from pathlib import Path

import pytest

from secrets_cli.config import Settings
from secrets_cli.errors import ExternalToolError, KeyNotFound, SecretNotFound
from secrets_cli.vault import SecretsVault


ALICE = "alice@example.com"
BOB = "bob@example.com"
CAROL = "carol@example.com"


class FakeKeyring:
    """In-memory KeyStore."""

    def __init__(self, principals=()):
        self.principals: set[str] = set(principals)
        self.skipped: set[str] = set()
        self.fail_import = False
        self.fail_rekey = False
        self.hidden_recipients = False
        self.imported: list[Path] = []
        self.rekeys: list[list[str]] = []

    def key_exists(self, principal: str) -> bool:
        return principal in self.principals

    def export_public_key(self, principal: str) -> bytes:
        if principal not in self.principals:
            raise KeyNotFound(f"no public key found for {principal}")
        return f"-----BEGIN PGP PUBLIC KEY BLOCK-----\n{principal}\n".encode()

    def export_public_key_to_file(self, principal: str, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.export_public_key(principal))
        return path

    def import_key(self, path: Path) -> None:
        if self.fail_import:
            raise ExternalToolError("gpg", ["gpg", "--import", str(path)], 2, "import failed")
        self.imported.append(Path(path))
        self.principals.add(Path(path).name[: -len(".asc")])

    def import_all_keys(self, directory: Path) -> int:
        count = 0
        for key_file in sorted(Path(directory).glob("*.asc")):
            self.import_key(key_file)
            count += 1
        return count

    def recipients_of(self, blob: Path) -> list[str]:
        header = Path(blob).read_text(encoding="utf-8").split("\n", 1)[0]
        keyids = [r.upper() for r in header.split(",") if r]
        if self.hidden_recipients:
            return ["0000000000000000"] * len(keyids)
        return keyids


class FakeSecretStore:
    """File-backed SecretStore that 'encrypts' by writing a recipient header."""

    def __init__(self, store_dir: Path, keyring: FakeKeyring):
        self.store_dir = Path(store_dir)
        self.keyring = keyring

    def _write(self, path: Path, value: str, recipients) -> None:
        kept = [r for r in recipients if r not in self.keyring.skipped]
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(",".join(kept) + "\n" + value, encoding="utf-8")

    def _read(self, path: Path) -> str:
        return path.read_text(encoding="utf-8").split("\n", 1)[1]

    def secret_path(self, name: str) -> Path:
        return self.store_dir / f"{name}.gpg"

    def init(self, recipients) -> None:
        self.store_dir.mkdir(parents=True, exist_ok=True)
        (self.store_dir / ".gpg-id").write_text("\n".join(recipients) + "\n", encoding="utf-8")

    def insert(self, name: str, value: str) -> None:
        self._write(self.secret_path(name), value, self.recipients())

    def show(self, name: str) -> str:
        if not self.exists(name):
            raise SecretNotFound(f"secret not found: {name}")
        return self._read(self.secret_path(name))

    def exists(self, name: str) -> bool:
        return self.secret_path(name).is_file()

    def remove(self, name: str) -> None:
        if not self.exists(name):
            raise SecretNotFound(f"secret not found: {name}")
        self.secret_path(name).unlink()

    def move(self, old_name: str, new_name: str) -> None:
        value = self.show(old_name)
        self.secret_path(old_name).unlink()
        self.insert(new_name, value)

    def list(self) -> list[str]:
        if not self.store_dir.is_dir():
            return []
        return sorted(
            path.relative_to(self.store_dir).as_posix()[: -len(".gpg")]
            for path in self.store_dir.rglob("*.gpg")
        )

    def recipients(self) -> list[str]:
        path = self.store_dir / ".gpg-id"
        if not path.is_file():
            return []
        return [line for line in path.read_text(encoding="utf-8").splitlines() if line]

    def rekey(self, recipients) -> None:
        if self.keyring.fail_rekey:
            raise ExternalToolError("pass", ["pass", "init"], 1, "gpg: encryption failed")
        self.keyring.rekeys.append(list(recipients))
        self.init(recipients)
        for name in self.list():
            path = self.secret_path(name)
            self._write(path, self._read(path), recipients)


# --- Fixtures ---

@pytest.fixture
def repo(tmp_path):
    """An empty git working tree."""
    root = tmp_path / "repo"
    (root / ".git").mkdir(parents=True)
    return root


@pytest.fixture
def keyring():
    return FakeKeyring([ALICE, BOB, CAROL])


@pytest.fixture
def settings(repo):
    return Settings(secrets_dir=repo / ".secrets", email=ALICE)


@pytest.fixture
def vault_as(settings, keyring):
    """Build a SecretsVault acting as the given principal ("" for none)."""

    def factory(email: str = ALICE, allow_unauthenticated: bool = True) -> SecretsVault:
        acting = settings.model_copy(
            update={"email": email, "allow_unauthenticated": allow_unauthenticated}
        )
        return SecretsVault(
            acting,
            key_store=keyring,
            store_factory=lambda path: FakeSecretStore(path, keyring),
        )

    return factory


@pytest.fixture
def alice(vault_as):
    """Initialized store owned by alice, with key records for bob and carol."""
    vault = vault_as(ALICE)
    vault.init()
    vault.add_key(BOB)
    vault.add_key(CAROL)
    return vault


@pytest.fixture
def dev(alice):
    """Vault ``dev`` owned by alice, holding one secret."""
    alice.create_vault("dev", "Development secrets")
    alice.set("dev", "database/password", "p@ss")
    return alice
