"""
Key Store Adapter — thin wrapper around the ``gpg`` command line.

Responsibilities:
- key existence checks and public key export/import
- enumerating the real recipients of an encrypted blob from its packet dump

Every invocation puts ``--`` between options and positional data, so a value
that slipped past validation still cannot be read as a gpg option.

Security Note:
    Never log decrypted output or key material. Only log principals, paths
    and counts.
"""
from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path
from typing import Protocol

from ..errors import ExternalToolError, KeyNotFound

logger = logging.getLogger("secrets_cli.gpg")

KEY_FILE_SUFFIX = ".asc"

# ":pubkey enc packet: version 3, algo 1, keyid 0123456789ABCDEF"
_PUBKEY_ENC_MARKER = ":pubkey enc packet:"
_KEYID = re.compile(r"\bkeyid\s+([0-9A-Fa-f]+)")


class KeyStore(Protocol):
    """Operations the core needs from the encryption tool."""

    def key_exists(self, principal: str) -> bool: ...

    def export_public_key(self, principal: str) -> bytes: ...

    def export_public_key_to_file(self, principal: str, path: Path) -> Path: ...

    def import_key(self, path: Path) -> None: ...

    def import_all_keys(self, directory: Path) -> int: ...

    def recipients_of(self, blob: Path) -> list[str]: ...


def parse_recipients(packet_dump: str) -> list[str]:
    """Extract recipient key IDs from ``gpg --list-packets`` output.

    Each ``:pubkey enc packet:`` is one recipient the session key was
    wrapped for, so the result has one entry per packet, in packet order.
    Key IDs are upper-cased and may repeat: hidden recipients
    (``--throw-keyids``) all show as ``0000000000000000``. A packet line
    without a key ID is recorded as ``"?"``.
    """
    recipients: list[str] = []
    for line in packet_dump.splitlines():
        if _PUBKEY_ENC_MARKER not in line:
            continue
        match = _KEYID.search(line)
        recipients.append(match.group(1).upper() if match else "?")
    return recipients


class GpgKeyStore:
    """Subprocess-backed KeyStore."""

    def __init__(self, binary: str = "gpg"):
        self.binary = binary

    def _run(
        self,
        *args: str,
        check: bool = True,
    ) -> subprocess.CompletedProcess:
        cmd = [self.binary, "--batch", *args]
        logger.debug("Running %s", " ".join(cmd))
        try:
            proc = subprocess.run(cmd, capture_output=True)
        except FileNotFoundError as err:
            raise ExternalToolError(self.binary, cmd, 127, str(err)) from err
        if check and proc.returncode != 0:
            raise ExternalToolError(
                "gpg", cmd, proc.returncode,
                proc.stderr.decode("utf-8", errors="replace"),
            )
        return proc

    def key_exists(self, principal: str) -> bool:
        """Check whether the local keyring holds a public key for principal."""
        proc = self._run("--list-keys", "--", principal, check=False)
        return proc.returncode == 0

    def export_public_key(self, principal: str) -> bytes:
        """Return the ASCII-armored public key for principal.

        Raises:
            KeyNotFound: If the keyring has no such key.
        """
        proc = self._run("--armor", "--export", "--", principal, check=False)
        if proc.returncode != 0 or not proc.stdout:
            raise KeyNotFound(f"no public key found for {principal}")
        return proc.stdout

    def export_public_key_to_file(self, principal: str, path: Path) -> Path:
        """Export principal's public key into ``path``."""
        data = self.export_public_key(principal)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    def import_key(self, path: Path) -> None:
        """Import one key file into the local keyring."""
        self._run("--import", "--", str(path))
        logger.debug("Imported key file %s", path)

    def import_all_keys(self, directory: Path) -> int:
        """Import every ``*.asc`` file in ``directory``.

        Best-effort: a key that fails to import (already present, malformed)
        is logged and skipped.

        Returns:
            Number of key files imported without error.
        """
        imported = 0
        for key_file in sorted(Path(directory).glob(f"*{KEY_FILE_SUFFIX}")):
            if not key_file.is_file():
                continue
            try:
                self.import_key(key_file)
            except ExternalToolError as err:
                logger.warning("Skipping key %s: %s", key_file.name, err)
                continue
            imported += 1
        logger.info("Imported %d key(s) from %s", imported, directory)
        return imported

    def recipients_of(self, blob: Path) -> list[str]:
        """Return one key ID per recipient packet of an encrypted file.

        gpg may exit non-zero after dumping the packets (for instance when
        the session key cannot be decrypted with the local secret keys); the
        dump is still authoritative for recipients, so a non-zero exit is an
        error only when no recipient packet was printed.

        Raises:
            ExternalToolError: If gpg produced no recipient packets and failed.
        """
        proc = self._run("--list-packets", "--", str(blob), check=False)
        recipients = parse_recipients(proc.stdout.decode("utf-8", errors="replace"))
        if not recipients and proc.returncode != 0:
            raise ExternalToolError(
                "gpg", [self.binary, "--list-packets", str(blob)], proc.returncode,
                proc.stderr.decode("utf-8", errors="replace"),
            )
        logger.debug("%s is encrypted for %d recipient(s)", blob, len(recipients))
        return recipients

    def list_secret_key_emails(self) -> list[str]:
        """E-mails on uids of the local secret keyring, in keyring order."""
        proc = self._run("--list-secret-keys", "--with-colons", check=False)
        if proc.returncode != 0:
            return []
        emails: list[str] = []
        for line in proc.stdout.decode("utf-8", errors="replace").splitlines():
            fields = line.split(":")
            if fields[0] != "uid" or len(fields) < 10:
                continue
            start, end = fields[9].rfind("<"), fields[9].rfind(">")
            if start != -1 and end > start:
                emails.append(fields[9][start + 1:end])
        return emails
