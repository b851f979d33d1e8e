"""
SecretsVault — every secrets-cli operation behind one object.

Provides the public API:
- store: ``init()``, ``setup()``
- public keys: ``list_keys()``, ``add_key()``, ``remove_key()``, ``import_keys()``
- vaults: ``list_vaults()``, ``create_vault()``, ``vault_info()``,
  ``delete_vault()``, ``add_member()``, ``remove_member()``, ``sync()``,
  ``verify()``
- secrets: ``list_secrets()``, ``get()``, ``set()``, ``delete()``,
  ``rename()``, ``copy()``, ``export()``

Every user-supplied vault name, principal and secret path is validated here,
before it reaches a path or an external command, whichever front end calls.

Security Note:
    Never log secret values. Only log vault names, secret names, principals
    and counts.
"""
from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from ..backends.gpg import GpgKeyStore, KeyStore
from ..backends.passstore import PassSecretStore, SecretStore
from ..config import Settings
from ..errors import (
    ConfirmationRequired,
    EmptySecretValue,
    IdentityRequired,
    KeyExists,
    KeyNotFound,
    StoreExists,
)
from ..gitroot import require_git_repository
from ..validation import validate_flat_name, validate_hierarchical_name
from .access import AccessGuard
from .membership import (
    MembershipEngine,
    ReencryptionReport,
    StoreFactory,
    VerificationReport,
)
from .registry import StoreConfig, VaultRecord, VaultRegistry

logger = logging.getLogger("secrets_cli.vault")


@dataclass
class VaultListing:
    name: str
    record: VaultRecord | None
    has_access: bool | None = None
    error: str = ""


@dataclass
class VaultInfo:
    record: VaultRecord
    secrets: int


@dataclass
class SetupReport:
    email: str
    owner: str
    key_file: Path
    imported: int
    vaults: list[VaultListing] = field(default_factory=list)


class SecretsVault:
    """Facade over registry, access guard, membership engine and adapters."""

    def __init__(
        self,
        settings: Settings,
        registry: VaultRegistry | None = None,
        key_store: KeyStore | None = None,
        store_factory: StoreFactory | None = None,
    ):
        self.settings = settings
        self.registry = registry or VaultRegistry(settings.secrets_dir)
        self.keys = key_store or GpgKeyStore(settings.gpg_binary)
        self.store_factory = store_factory or (
            lambda path: PassSecretStore(path, binary=settings.pass_binary)
        )
        self.guard = AccessGuard(settings.allow_unauthenticated)
        self.engine = MembershipEngine(
            self.registry, self.keys, self.store_factory, self.guard,
        )

    @property
    def email(self) -> str:
        return self.settings.email

    def _require_email(self) -> str:
        if not self.email:
            raise IdentityRequired(
                "email is required. Use --email flag or set USER_EMAIL environment variable"
            )
        return validate_flat_name(self.email, "email")

    def _open(self, vault: str) -> tuple[VaultRecord, SecretStore]:
        """Validate, load and authorize a vault for a secret operation."""
        validate_flat_name(vault, "vault name")
        self.registry.require_initialized()
        record = self.registry.load(vault)
        self.guard.check(record, self.email)
        return record, self.store_factory(self.registry.store_dir(vault))

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    def init(self) -> tuple[StoreConfig, Path]:
        """Create a new secrets store owned by the acting principal.

        Returns:
            The store config and the path of the exported owner key.
        """
        require_git_repository(self.registry.root)
        if self.registry.root.exists():
            raise StoreExists(
                f"secrets directory already exists: {self.registry.root}. "
                "Remove it first or use a different path"
            )
        email = self._require_email()
        if not self.keys.key_exists(email):
            raise KeyNotFound(f"no GPG key found for {email}. Generate one with: gpg --gen-key")
        config = self.registry.initialize(email)
        key_path = self.keys.export_public_key_to_file(email, self.registry.key_path(email))
        return config, key_path

    def setup(self) -> SetupReport:
        """Prepare a fresh clone: import every key record, report vault access."""
        self.registry.require_initialized()
        email = self._require_email()
        config = self.registry.load_config()
        if not self.registry.has_key(email):
            raise KeyNotFound(f"your key ({email}) is not in the store. Ask an admin to add it")
        imported = self.keys.import_all_keys(self.registry.keys_dir)
        return SetupReport(
            email=email,
            owner=config.owner,
            key_file=self.registry.key_path(email),
            imported=imported,
            vaults=self.list_vaults(),
        )

    # ------------------------------------------------------------------
    # Public key records
    # ------------------------------------------------------------------

    def list_keys(self) -> list[str]:
        self.registry.require_initialized()
        return self.registry.list_keys()

    def add_key(self, principal: str, key_file: Path | str | None = None) -> Path:
        """File a public key record for principal.

        Adding a key grants nothing; membership is granted separately.
        """
        validate_flat_name(principal, "email")
        self.registry.require_initialized()
        path = self.registry.key_path(principal)
        if path.exists():
            raise KeyExists(f"key already exists for {principal}")
        if key_file is not None:
            path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(key_file, path)
        else:
            if not self.keys.key_exists(principal):
                raise KeyNotFound(
                    f"no GPG key found for {principal}. Use --key-file to specify a key file"
                )
            self.keys.export_public_key_to_file(principal, path)
        logger.info("Added key record for %s", principal)
        return path

    def remove_key(self, principal: str) -> None:
        """Delete a key record. Vault membership is not affected."""
        validate_flat_name(principal, "email")
        self.registry.require_initialized()
        path = self.registry.require_key(principal)
        path.unlink()
        logger.info("Removed key record for %s", principal)

    def import_keys(self) -> int:
        self.registry.require_initialized()
        return self.keys.import_all_keys(self.registry.keys_dir)

    # ------------------------------------------------------------------
    # Vaults
    # ------------------------------------------------------------------

    def list_vaults(self) -> list[VaultListing]:
        self.registry.require_initialized()
        listings: list[VaultListing] = []
        for name in self.registry.list_names():
            try:
                record = self.registry.load(name)
            except (OSError, ValueError, LookupError) as err:
                logger.warning("Cannot load vault %s: %s", name, err)
                listings.append(VaultListing(name=name, record=None, error=str(err)))
                continue
            access = self.guard.has_access(record, self.email) if self.email else None
            listings.append(VaultListing(name=name, record=record, has_access=access))
        return listings

    def create_vault(self, name: str, description: str = "") -> VaultRecord:
        """Create a vault whose sole member and recipient is the caller."""
        validate_flat_name(name, "vault name")
        self.registry.require_initialized()
        email = self._require_email()
        if not self.keys.key_exists(email):
            raise KeyNotFound(f"no GPG key found for {email}")
        record = self.registry.create(name, email, description)
        try:
            self.store_factory(self.registry.store_dir(name)).init([email])
        except Exception:
            shutil.rmtree(self.registry.vault_dir(name), ignore_errors=True)
            raise
        logger.info("Created vault %s (owner=%s)", name, email)
        return record

    def vault_info(self, name: str) -> VaultInfo:
        validate_flat_name(name, "vault name")
        self.registry.require_initialized()
        record = self.registry.load(name)
        store = self.store_factory(self.registry.store_dir(name))
        return VaultInfo(record=record, secrets=len(store.list()))

    def delete_vault(self, name: str, force: bool = False) -> None:
        validate_flat_name(name, "vault name")
        self.registry.require_initialized()
        record = self.registry.load(name)
        self.guard.check(record, self.email)
        if not force:
            raise ConfirmationRequired(f"use --force to confirm deletion of vault: {name}")
        self.registry.delete(name)

    def add_member(self, vault: str, principal: str) -> ReencryptionReport:
        self.registry.require_initialized()
        return self.engine.add_member(vault, principal, self.email)

    def remove_member(self, vault: str, principal: str) -> ReencryptionReport:
        self.registry.require_initialized()
        return self.engine.remove_member(vault, principal, self.email)

    def sync(self, vault: str, verify_all: bool = False) -> ReencryptionReport:
        self.registry.require_initialized()
        return self.engine.sync(vault, self.email, verify_all=verify_all)

    def verify(self, vault: str, verify_all: bool = False) -> VerificationReport:
        self.registry.require_initialized()
        return self.engine.check(vault, self.email, verify_all=verify_all)

    # ------------------------------------------------------------------
    # Secrets
    # ------------------------------------------------------------------

    def list_secrets(self, vault: str) -> list[str]:
        _, store = self._open(vault)
        return store.list()

    def get(self, vault: str, name: str) -> str:
        validate_hierarchical_name(name)
        _, store = self._open(vault)
        return store.show(name)

    def set(self, vault: str, name: str, value: str) -> None:
        validate_hierarchical_name(name)
        if not value:
            raise EmptySecretValue("empty secret value not allowed")
        _, store = self._open(vault)
        store.insert(name, value)
        logger.debug("Vault set: vault=%s secret=%s", vault, name)

    def delete(self, vault: str, name: str) -> None:
        validate_hierarchical_name(name)
        _, store = self._open(vault)
        store.remove(name)
        logger.debug("Vault delete: vault=%s secret=%s", vault, name)

    def rename(self, vault: str, old_name: str, new_name: str) -> None:
        validate_hierarchical_name(old_name)
        validate_hierarchical_name(new_name)
        _, store = self._open(vault)
        store.move(old_name, new_name)

    def copy(
        self,
        src_vault: str,
        name: str,
        dst_vault: str,
        new_name: str | None = None,
    ) -> str:
        """Copy a secret across vaults; the caller must be a member of both.

        Returns:
            The destination secret name.
        """
        validate_hierarchical_name(name)
        target = validate_hierarchical_name(new_name) if new_name else name
        _, src = self._open(src_vault)
        _, dst = self._open(dst_vault)
        dst.insert(target, src.show(name))
        return target

    def export(self, vault: str) -> dict[str, str]:
        """Decrypt every secret of vault, in listing order."""
        _, store = self._open(vault)
        return {name: store.show(name) for name in store.list()}
