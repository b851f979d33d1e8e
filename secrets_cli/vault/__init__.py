"""Vaults — access-controlled, GPG-encrypted secret containers.

Security Note (Threat Model):
    Principals are self-asserted e-mails; the local keyring's ability to
    decrypt is the only real gate. Removing a member re-encrypts every
    secret, but cannot revoke plaintext the member already decrypted.
    This is an accepted limitation.
"""

from .access import AccessGuard
from .membership import (
    MembershipEngine,
    ReencryptionReport,
    VaultState,
    VerificationReport,
)
from .registry import StoreConfig, VaultRecord, VaultRegistry
from .service import SecretsVault

__all__ = [
    "AccessGuard",
    "MembershipEngine",
    "ReencryptionReport",
    "SecretsVault",
    "StoreConfig",
    "VaultRecord",
    "VaultRegistry",
    "VaultState",
    "VerificationReport",
]
