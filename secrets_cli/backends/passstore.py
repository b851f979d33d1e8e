"""
Secret Store Adapter — ``pass`` scoped to one vault's store directory.

Each vault owns a private password store (``PASSWORD_STORE_DIR``). Secrets
live at ``<store>/<name>.gpg``; the recipient list lives in ``.gpg-id``.

Trust model override:
    Commands that encrypt (init, insert, mv) run gpg with
    ``--trust-model always``. A member's key is present in the keyring
    (checked before membership is granted) but is usually not certified by
    the local user; without the override gpg skips such keys and pass still
    reports success, leaving a member unable to decrypt. Read-only commands
    keep the caller's trust settings.

Security Note:
    Secret values travel over stdin/stdout only, never on the argument list,
    and are never logged.
"""
from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol

from ..errors import ExternalToolError, InvalidIdentifier, SecretNotFound

logger = logging.getLogger("secrets_cli.pass")

SECRET_SUFFIX = ".gpg"
RECIPIENTS_FILE = ".gpg-id"
TRUST_ALWAYS = "--trust-model always"


class SecretStore(Protocol):
    """Operations the core needs from the secret store of one vault."""

    def init(self, recipients: Sequence[str]) -> None: ...

    def insert(self, name: str, value: str) -> None: ...

    def show(self, name: str) -> str: ...

    def exists(self, name: str) -> bool: ...

    def remove(self, name: str) -> None: ...

    def move(self, old_name: str, new_name: str) -> None: ...

    def list(self) -> list[str]: ...

    def rekey(self, recipients: Sequence[str]) -> None: ...

    def recipients(self) -> list[str]: ...

    def secret_path(self, name: str) -> Path: ...


class PassSecretStore:
    """Subprocess-backed SecretStore for a single store directory."""

    def __init__(
        self,
        store_dir: Path | str,
        binary: str = "pass",
        environ: Mapping[str, str] | None = None,
    ):
        self.store_dir = Path(store_dir)
        self.binary = binary
        self._environ = dict(os.environ if environ is None else environ)

    # ------------------------------------------------------------------
    # Process helpers
    # ------------------------------------------------------------------

    def _env(self, trust_all: bool) -> dict[str, str]:
        env = dict(self._environ)
        env["PASSWORD_STORE_DIR"] = str(self.store_dir)
        if trust_all:
            existing = env.get("PASSWORD_STORE_GPG_OPTS", "").strip()
            env["PASSWORD_STORE_GPG_OPTS"] = (
                f"{existing} {TRUST_ALWAYS}" if existing else TRUST_ALWAYS
            )
        return env

    def _run(
        self,
        *args: str,
        stdin: str | None = None,
        trust_all: bool = False,
    ) -> str:
        cmd = [self.binary, *args]
        logger.debug("Running %s (store=%s)", " ".join(cmd), self.store_dir)
        try:
            proc = subprocess.run(
                cmd,
                input=stdin,
                capture_output=True,
                text=True,
                env=self._env(trust_all),
            )
        except FileNotFoundError as err:
            raise ExternalToolError(self.binary, cmd, 127, str(err)) from err
        if proc.returncode != 0:
            raise ExternalToolError("pass", cmd, proc.returncode, proc.stderr)
        return proc.stdout

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def secret_path(self, name: str) -> Path:
        """On-disk location of a secret.

        Raises:
            InvalidIdentifier: If the resolved path leaves the store directory.
        """
        root = self.store_dir.resolve()
        path = (self.store_dir / f"{name}{SECRET_SUFFIX}").resolve()
        if root not in path.parents:
            raise InvalidIdentifier(f"secret name escapes the vault store: {name}")
        return path

    @property
    def recipients_file(self) -> Path:
        return self.store_dir / RECIPIENTS_FILE

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def init(self, recipients: Sequence[str]) -> None:
        """Create the store with the given initial recipients."""
        self.store_dir.mkdir(parents=True, exist_ok=True, mode=0o700)
        self._run("init", "--", *recipients, trust_all=True)

    def insert(self, name: str, value: str) -> None:
        """Add or overwrite a secret. The value is passed on stdin verbatim."""
        self.secret_path(name)
        self._run(
            "insert", "--multiline", "--force", "--", name,
            stdin=value, trust_all=True,
        )
        logger.debug("Inserted secret %s", name)

    def exists(self, name: str) -> bool:
        return self.secret_path(name).is_file()

    def show(self, name: str) -> str:
        """Decrypt and return a secret.

        Raises:
            SecretNotFound: If the secret does not exist.
        """
        if not self.exists(name):
            raise SecretNotFound(f"secret not found: {name}")
        out = self._run("show", "--", name)
        return out[:-1] if out.endswith("\n") else out

    def remove(self, name: str) -> None:
        if not self.exists(name):
            raise SecretNotFound(f"secret not found: {name}")
        self._run("rm", "--force", "--", name)

    def move(self, old_name: str, new_name: str) -> None:
        if not self.exists(old_name):
            raise SecretNotFound(f"secret not found: {old_name}")
        self.secret_path(new_name)
        self._run("mv", "--force", "--", old_name, new_name, trust_all=True)

    def list(self) -> list[str]:
        """All secret names, recursively, in directory order.

        Hidden entries (``.gpg-id``, ``.git``) are skipped.
        """
        if not self.store_dir.is_dir():
            return []
        return self._list_dir(self.store_dir, "")

    def _list_dir(self, directory: Path, prefix: str) -> list[str]:
        names: list[str] = []
        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            if entry.name.startswith("."):
                continue
            full = f"{prefix}/{entry.name}" if prefix else entry.name
            if entry.is_dir():
                names.extend(self._list_dir(entry, full))
            elif entry.name.endswith(SECRET_SUFFIX):
                names.append(full[: -len(SECRET_SUFFIX)])
        return names

    def recipients(self) -> list[str]:
        """Recipient list as recorded in ``.gpg-id``."""
        if not self.recipients_file.is_file():
            return []
        return [
            line.strip()
            for line in self.recipients_file.read_text(encoding="utf-8").splitlines()
            if line.strip()
        ]

    def rekey(self, recipients: Sequence[str]) -> None:
        """Rewrite ``.gpg-id`` and re-encrypt every secret for recipients.

        Success here only means pass exited 0. Whether every recipient was
        really encrypted for is checked separately against the packet dump.
        """
        self.store_dir.mkdir(parents=True, exist_ok=True, mode=0o700)
        self.recipients_file.write_text("\n".join(recipients) + "\n", encoding="utf-8")
        self._run("init", "--", *recipients, trust_all=True)
        logger.info(
            "Re-keyed store %s for %d recipient(s)", self.store_dir, len(recipients),
        )
