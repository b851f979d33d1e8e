"""
Membership & Re-encryption Engine.

Adding or removing a member changes who a vault's secrets must be encrypted
for. Every such change runs the same sequence:

1. check preconditions (vault exists, caller is a member, key on file, ...)
2. persist the new member list with a fresh ``updated_at``
3. re-key the vault's store for exactly that list
4. verify the ciphertext on disk: the recipient packets of a stored secret
   must number exactly as many as the members

A re-key that exits 0 is not proof. gpg silently skips recipients whose key
it does not trust, so step 4 reads the packets back. A mismatch raises
``ReencryptionVerificationFailed``: the registry has already changed but the
ciphertext has not caught up, and ``sync`` must be re-run.

Verification compares counts, not key IDs, because key ID formatting varies
across gpg versions. Every member's key is confirmed present in the keyring
first, so an equal count over a well-formed registry means every member was
encrypted for.

Residual risk:
    A removed member keeps whatever plaintext they decrypted while they had
    access. Re-keying stops future decryption only.
"""
from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from ..backends.gpg import KeyStore
from ..backends.passstore import SecretStore
from ..errors import (
    AlreadyMember,
    CannotRemoveLastMember,
    ExternalToolError,
    NotAMember,
    ReencryptionVerificationFailed,
)
from ..validation import validate_flat_name
from .access import AccessGuard
from .registry import VaultRecord, VaultRegistry

logger = logging.getLogger("secrets_cli.vault")

StoreFactory = Callable[[Path], SecretStore]


class VaultState(str, enum.Enum):
    CONSISTENT = "consistent-with-registry"
    NEEDS_SYNC = "needs-sync"


@dataclass
class ReencryptionReport:
    """Outcome of a verified re-key."""

    vault: str
    members: list[str]
    secrets: int
    verified: list[str] = field(default_factory=list)


@dataclass
class VerificationReport:
    """Outcome of a read-only consistency check."""

    vault: str
    state: VaultState
    expected: int
    checked: dict[str, int] = field(default_factory=dict)
    problems: list[str] = field(default_factory=list)


class MembershipEngine:
    """Drives membership changes and proves the re-encryption happened."""

    def __init__(
        self,
        registry: VaultRegistry,
        key_store: KeyStore,
        store_factory: StoreFactory,
        guard: AccessGuard,
    ):
        self.registry = registry
        self.keys = key_store
        self.store_factory = store_factory
        self.guard = guard

    def _store(self, vault: str) -> SecretStore:
        return self.store_factory(self.registry.store_dir(vault))

    def _authorize(self, vault: str, acting: str) -> VaultRecord:
        validate_flat_name(vault, "vault name")
        record = self.registry.load(vault)
        self.guard.check(record, acting)
        return record

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def add_member(self, vault: str, principal: str, acting: str) -> ReencryptionReport:
        """Grant principal access to vault and re-encrypt its secrets.

        Raises:
            VaultNotFound, AccessDenied, KeyNotFound, AlreadyMember:
                Precondition failures; nothing is changed.
            ReencryptionVerificationFailed: The member list was saved but the
                secrets are not encrypted for it.
        """
        validate_flat_name(principal, "email")
        record = self._authorize(vault, acting)
        key_file = self.registry.require_key(principal)
        if record.has_member(principal):
            raise AlreadyMember(f"{principal} is already a member of {vault}")

        try:
            self.keys.import_key(key_file)
        except ExternalToolError as err:
            # the key may already be in the keyring; verification decides
            logger.warning("Importing key for %s failed: %s", principal, err)

        record.members.append(principal)
        record.touch()
        self.registry.save(record)
        logger.info("Added %s to vault %s", principal, vault)

        return self._rekey_and_verify(record)

    def remove_member(self, vault: str, principal: str, acting: str) -> ReencryptionReport:
        """Revoke principal's access to vault and re-encrypt its secrets.

        Raises:
            VaultNotFound, AccessDenied, NotAMember, CannotRemoveLastMember:
                Precondition failures; nothing is changed.
            ReencryptionVerificationFailed: The member list was saved but the
                secrets are not encrypted for it.
        """
        validate_flat_name(principal, "email")
        record = self._authorize(vault, acting)
        wanted = principal.lower()
        index = next(
            (i for i, member in enumerate(record.members) if member.lower() == wanted),
            None,
        )
        if index is None:
            raise NotAMember(f"{principal} is not a member of {vault}")
        if len(record.members) == 1:
            raise CannotRemoveLastMember("cannot remove the last member from a vault")

        del record.members[index]
        record.touch()
        self.registry.save(record)
        logger.info("Removed %s from vault %s", principal, vault)

        return self._rekey_and_verify(record)

    def sync(self, vault: str, acting: str, verify_all: bool = False) -> ReencryptionReport:
        """Re-key vault for its current member list and verify.

        Idempotent; used to repair a vault left in the needs-sync state.
        """
        record = self._authorize(vault, acting)
        report = self._rekey_and_verify(record, verify_all=verify_all)
        record.touch()
        self.registry.save(record)
        logger.info("Synchronized vault %s", vault)
        return report

    def check(self, vault: str, acting: str, verify_all: bool = False) -> VerificationReport:
        """Report whether vault's ciphertext matches its registry, without re-keying."""
        record = self._authorize(vault, acting)
        store = self._store(vault)
        expected = len(record.members)
        report = VerificationReport(vault=vault, state=VaultState.CONSISTENT, expected=expected)

        if store.recipients() != record.members:
            report.problems.append(".gpg-id does not match the member list")
        for member in record.members:
            if not self.keys.key_exists(member):
                report.problems.append(f"no key in keyring for {member}")

        secrets = store.list()
        for name in secrets if verify_all else secrets[:1]:
            actual = len(self.keys.recipients_of(store.secret_path(name)))
            report.checked[name] = actual
            if actual != expected:
                report.problems.append(
                    f"{name} is encrypted for {actual} recipient(s), expected {expected}"
                )
        if report.problems:
            report.state = VaultState.NEEDS_SYNC
        return report

    # ------------------------------------------------------------------
    # Re-key + verification
    # ------------------------------------------------------------------

    def _rekey_and_verify(
        self,
        record: VaultRecord,
        verify_all: bool = False,
    ) -> ReencryptionReport:
        store = self._store(record.name)
        store.rekey(record.members)
        verified = self.verify(record, store, verify_all=verify_all)
        secrets = len(store.list())
        logger.info(
            "Re-encrypted %d secret(s) in vault %s for %d member(s)",
            secrets, record.name, len(record.members),
        )
        return ReencryptionReport(
            vault=record.name,
            members=list(record.members),
            secrets=secrets,
            verified=verified,
        )

    def verify(
        self,
        record: VaultRecord,
        store: SecretStore,
        verify_all: bool = False,
    ) -> list[str]:
        """Check that stored ciphertext is encrypted for every member.

        Inspects the first secret (or all of them with ``verify_all``).
        An empty vault passes trivially.

        Returns:
            Names of the secrets that were inspected.

        Raises:
            ReencryptionVerificationFailed: On any mismatch.
        """
        for member in record.members:
            if not self.keys.key_exists(member):
                raise ReencryptionVerificationFailed(
                    record.name, f"key for {member} not found in keyring",
                )

        secrets = store.list()
        if not secrets:
            return []

        expected = len(record.members)
        targets = secrets if verify_all else secrets[:1]
        for name in targets:
            actual = len(self.keys.recipients_of(store.secret_path(name)))
            if actual == 0:
                logger.error("Vault %s: %s has no recipients", record.name, name)
                raise ReencryptionVerificationFailed(
                    record.name, f"no encryption recipients found in {name}",
                    expected=expected, actual=0,
                )
            if actual != expected:
                logger.error(
                    "Vault %s: %s encrypted for %d recipient(s), expected %d",
                    record.name, name, actual, expected,
                )
                raise ReencryptionVerificationFailed(
                    record.name,
                    f"secret {name} is encrypted for {actual} recipient(s), "
                    f"but the vault has {expected} member(s)",
                    expected=expected, actual=actual,
                )
        return targets
