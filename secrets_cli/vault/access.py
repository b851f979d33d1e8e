"""Access Guard — vault operations are limited to the vault's members."""
from __future__ import annotations

import logging

from ..errors import AccessDenied
from .registry import VaultRecord

logger = logging.getLogger("secrets_cli.access")


class AccessGuard:
    """Authorize an acting principal against a vault's current member list.

    An empty principal means no identity could be resolved. Such callers are
    let through while ``allow_unauthenticated`` is set (the historical
    behavior for same-machine use) and refused otherwise.
    """

    def __init__(self, allow_unauthenticated: bool = True):
        self.allow_unauthenticated = allow_unauthenticated

    @staticmethod
    def has_access(record: VaultRecord, principal: str) -> bool:
        if not principal:
            return False
        return record.has_member(principal)

    def check(self, record: VaultRecord, principal: str) -> None:
        """Fail closed unless principal may operate on the vault.

        Raises:
            AccessDenied: If principal is not a member, or is empty while
                unauthenticated access is disabled.
        """
        if not principal:
            if self.allow_unauthenticated:
                logger.debug("No identity set; permitting access to %s", record.name)
                return
            raise AccessDenied(
                f"access denied: an identity is required to use vault {record.name}. "
                "Use --email or set USER_EMAIL"
            )
        if not record.has_member(principal):
            raise AccessDenied(
                f"access denied: {principal} is not a member of vault {record.name}"
            )
