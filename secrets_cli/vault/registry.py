"""
Vault Registry — the durable record of who each vault belongs to.

Layout under the secrets root::

    config.yaml                   store config (version, owner)
    keys/<principal>.asc          public key records
    vaults/<name>/vault.yaml      vault record (members, timestamps)
    vaults/<name>/.password-store the vault's secret store

The member list in ``vault.yaml`` is the source of truth for who a vault's
secrets must be encrypted for. Names reaching this module are expected to be
validated already; path construction still refuses anything unsafe.
"""
from __future__ import annotations

import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

from ..backends.gpg import KEY_FILE_SUFFIX
from ..errors import KeyNotFound, StoreNotFound, VaultExists, VaultNotFound
from ..validation import validate_flat_name

logger = logging.getLogger("secrets_cli.registry")

CONFIG_FILE = "config.yaml"
VAULT_FILE = "vault.yaml"
KEYS_DIR = "keys"
VAULTS_DIR = "vaults"
STORE_DIR = ".password-store"
STORE_VERSION = "1"


def utcnow() -> str:
    """Current UTC time as an RFC 3339 string with second precision."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class StoreConfig(BaseModel):
    """Store-level config record."""

    version: str = STORE_VERSION
    owner: str


class VaultRecord(BaseModel):
    """Registry record of a single vault."""

    name: str
    description: str = ""
    members: list[str] = Field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return validate_flat_name(v, "vault name")

    @field_validator("description", mode="before")
    @classmethod
    def none_description(cls, v):
        return v or ""

    def has_member(self, principal: str) -> bool:
        """Case-insensitive membership test."""
        wanted = principal.lower()
        return any(member.lower() == wanted for member in self.members)

    def touch(self) -> None:
        self.updated_at = utcnow()


def _load_yaml(path: Path) -> dict:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as err:
        raise ValueError(f"{path} is not valid YAML: {err}") from err
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping")
    return data


def _dump_yaml(path: Path, data: dict) -> None:
    path.write_text(
        yaml.safe_dump(data, sort_keys=False, default_flow_style=False),
        encoding="utf-8",
    )


class VaultRegistry:
    """File-backed registry of vaults and public key records."""

    def __init__(self, secrets_dir: Path | str):
        self.root = Path(secrets_dir)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @property
    def config_path(self) -> Path:
        return self.root / CONFIG_FILE

    @property
    def keys_dir(self) -> Path:
        return self.root / KEYS_DIR

    @property
    def vaults_dir(self) -> Path:
        return self.root / VAULTS_DIR

    def vault_dir(self, name: str) -> Path:
        return self.vaults_dir / validate_flat_name(name, "vault name")

    def store_dir(self, name: str) -> Path:
        return self.vault_dir(name) / STORE_DIR

    def key_path(self, principal: str) -> Path:
        return self.keys_dir / f"{validate_flat_name(principal, 'email')}{KEY_FILE_SUFFIX}"

    # ------------------------------------------------------------------
    # Store config
    # ------------------------------------------------------------------

    def is_initialized(self) -> bool:
        return self.root.is_dir()

    def require_initialized(self) -> None:
        if not self.is_initialized():
            raise StoreNotFound(
                f"secrets directory not found: {self.root}. Run 'secrets-cli init' first"
            )

    def initialize(self, owner: str) -> StoreConfig:
        """Create the directory skeleton and ``config.yaml``."""
        for directory in (self.root, self.keys_dir, self.vaults_dir):
            directory.mkdir(parents=True, exist_ok=True)
        config = StoreConfig(owner=owner)
        _dump_yaml(self.config_path, config.model_dump())
        logger.info("Initialized secrets store at %s (owner=%s)", self.root, owner)
        return config

    def load_config(self) -> StoreConfig:
        self.require_initialized()
        if not self.config_path.is_file():
            raise StoreNotFound(f"store config not found: {self.config_path}")
        return StoreConfig(**_load_yaml(self.config_path))

    # ------------------------------------------------------------------
    # Vault records
    # ------------------------------------------------------------------

    def exists(self, name: str) -> bool:
        return self.vault_dir(name).exists()

    def list_names(self) -> list[str]:
        """Names of every vault directory, sorted."""
        if not self.vaults_dir.is_dir():
            return []
        return sorted(
            entry.name for entry in self.vaults_dir.iterdir()
            if entry.is_dir() and not entry.name.startswith(".")
        )

    def load(self, name: str) -> VaultRecord:
        """Load a vault record.

        Raises:
            VaultNotFound: If the vault does not exist.
        """
        path = self.vault_dir(name) / VAULT_FILE
        if not path.is_file():
            raise VaultNotFound(f"vault not found: {name}")
        return VaultRecord(**_load_yaml(path))

    def save(self, record: VaultRecord) -> None:
        directory = self.vault_dir(record.name)
        directory.mkdir(parents=True, exist_ok=True)
        _dump_yaml(directory / VAULT_FILE, record.model_dump())
        logger.debug(
            "Saved vault record %s (%d member(s))", record.name, len(record.members),
        )

    def create(self, name: str, owner: str, description: str = "") -> VaultRecord:
        """Create and persist a new vault record with owner as sole member.

        Raises:
            VaultExists: If a vault with this name already exists.
        """
        if self.exists(name):
            raise VaultExists(f"vault already exists: {name}")
        now = utcnow()
        record = VaultRecord(
            name=name,
            description=description,
            members=[owner],
            created_at=now,
            updated_at=now,
        )
        self.save(record)
        return record

    def delete(self, name: str) -> None:
        """Remove a vault and every secret in it. Irreversible."""
        directory = self.vault_dir(name)
        if not directory.exists():
            raise VaultNotFound(f"vault not found: {name}")
        shutil.rmtree(directory)
        logger.info("Deleted vault %s", name)

    # ------------------------------------------------------------------
    # Public key records
    # ------------------------------------------------------------------

    def has_key(self, principal: str) -> bool:
        return self.key_path(principal).is_file()

    def require_key(self, principal: str) -> Path:
        path = self.key_path(principal)
        if not path.is_file():
            raise KeyNotFound(
                f"key not found for {principal}. Add it with: secrets-cli key add {principal}"
            )
        return path

    def list_keys(self) -> list[str]:
        """Principals with a key record on file, sorted."""
        if not self.keys_dir.is_dir():
            return []
        return sorted(
            entry.name[: -len(KEY_FILE_SUFFIX)]
            for entry in self.keys_dir.iterdir()
            if entry.is_file() and entry.name.endswith(KEY_FILE_SUFFIX)
        )
