"""Adapters over the external tools that do the actual cryptography."""

from .gpg import GpgKeyStore, KeyStore
from .passstore import PassSecretStore, SecretStore

__all__ = [
    "GpgKeyStore",
    "KeyStore",
    "PassSecretStore",
    "SecretStore",
]
