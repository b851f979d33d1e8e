"""
Identity resolution — who is acting.

The acting principal is self-asserted: it is whichever e-mail the caller
names, or failing that, what git or the local secret keyring suggests. It is
not authenticated; the keyring's ability to decrypt is the real gate.
"""
from __future__ import annotations

import logging
import subprocess
from collections.abc import Mapping

from .backends.gpg import GpgKeyStore
from .errors import ExternalToolError

logger = logging.getLogger("secrets_cli.identity")

USER_EMAIL_ENV = "USER_EMAIL"


def _git_email() -> str:
    try:
        proc = subprocess.run(
            ["git", "config", "--get", "user.email"],
            capture_output=True,
            text=True,
        )
    except OSError:
        return ""
    if proc.returncode != 0:
        return ""
    return proc.stdout.strip()


def _keyring_email(gpg_binary: str) -> str:
    try:
        emails = GpgKeyStore(gpg_binary).list_secret_key_emails()
    except ExternalToolError:
        return ""
    return emails[0] if emails else ""


def resolve_principal(
    explicit: str | None = None,
    *,
    environ: Mapping[str, str],
    gpg_binary: str = "gpg",
) -> str:
    """Resolve the acting principal's e-mail.

    Order: explicit value, ``USER_EMAIL``, ``git config user.email``,
    the first uid of the local secret keyring.

    Returns:
        The e-mail, or an empty string when nothing resolves.
    """
    if explicit:
        return explicit
    env_email = environ.get(USER_EMAIL_ENV, "")
    if env_email:
        return env_email
    email = _git_email()
    if email:
        logger.debug("Identity resolved from git config: %s", email)
        return email
    email = _keyring_email(gpg_binary)
    if email:
        logger.debug("Identity resolved from secret keyring: %s", email)
    return email
