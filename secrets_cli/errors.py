"""
Error taxonomy for secrets-cli.

Every failure the tool can report is a ``SecretsError`` subclass tagged with
an ``ErrorKind``, so callers switch on ``err.kind`` instead of matching
message text. Lookup and validation kinds also inherit the closest builtin
exception so generic handlers keep working.
"""
from __future__ import annotations

import enum
from collections.abc import Sequence


class ErrorKind(str, enum.Enum):
    INVALID_IDENTIFIER = "invalid_identifier"
    STORE_NOT_FOUND = "store_not_found"
    STORE_EXISTS = "store_exists"
    VAULT_NOT_FOUND = "vault_not_found"
    VAULT_EXISTS = "vault_exists"
    SECRET_NOT_FOUND = "secret_not_found"
    KEY_NOT_FOUND = "key_not_found"
    KEY_EXISTS = "key_exists"
    NOT_A_MEMBER = "not_a_member"
    ALREADY_MEMBER = "already_member"
    ACCESS_DENIED = "access_denied"
    CANNOT_REMOVE_LAST_MEMBER = "cannot_remove_last_member"
    REENCRYPTION_VERIFICATION_FAILED = "reencryption_verification_failed"
    IDENTITY_REQUIRED = "identity_required"
    NOT_A_GIT_REPOSITORY = "not_a_git_repository"
    EMPTY_SECRET_VALUE = "empty_secret_value"
    CONFIRMATION_REQUIRED = "confirmation_required"
    EXTERNAL_TOOL = "external_tool"


class SecretsError(Exception):
    """Base class for every failure surfaced by secrets-cli."""

    kind: ErrorKind
    exit_code: int = 1

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class InvalidIdentifier(SecretsError, ValueError):
    kind = ErrorKind.INVALID_IDENTIFIER


class StoreNotFound(SecretsError, LookupError):
    kind = ErrorKind.STORE_NOT_FOUND


class StoreExists(SecretsError):
    kind = ErrorKind.STORE_EXISTS


class VaultNotFound(SecretsError, LookupError):
    kind = ErrorKind.VAULT_NOT_FOUND


class VaultExists(SecretsError):
    kind = ErrorKind.VAULT_EXISTS


class SecretNotFound(SecretsError, LookupError):
    kind = ErrorKind.SECRET_NOT_FOUND


class KeyNotFound(SecretsError, LookupError):
    kind = ErrorKind.KEY_NOT_FOUND


class KeyExists(SecretsError):
    kind = ErrorKind.KEY_EXISTS


class NotAMember(SecretsError, LookupError):
    kind = ErrorKind.NOT_A_MEMBER


class AlreadyMember(SecretsError):
    kind = ErrorKind.ALREADY_MEMBER


class AccessDenied(SecretsError, PermissionError):
    kind = ErrorKind.ACCESS_DENIED


class CannotRemoveLastMember(SecretsError):
    kind = ErrorKind.CANNOT_REMOVE_LAST_MEMBER


class ReencryptionVerificationFailed(SecretsError):
    """The registry was updated but the ciphertext on disk does not match it.

    The vault is left in the *needs-sync* state. Re-running ``sync`` is the
    recovery path.
    """

    kind = ErrorKind.REENCRYPTION_VERIFICATION_FAILED
    exit_code = 3

    def __init__(
        self,
        vault: str,
        detail: str,
        *,
        expected: int | None = None,
        actual: int | None = None,
    ):
        self.vault = vault
        self.detail = detail
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"re-encryption verification failed for vault {vault}: {detail}. "
            f"The vault needs a sync; run 'secrets-cli sync {vault}'"
        )


class IdentityRequired(SecretsError):
    kind = ErrorKind.IDENTITY_REQUIRED


class NotAGitRepository(SecretsError):
    kind = ErrorKind.NOT_A_GIT_REPOSITORY


class EmptySecretValue(SecretsError, ValueError):
    kind = ErrorKind.EMPTY_SECRET_VALUE


class ConfirmationRequired(SecretsError):
    kind = ErrorKind.CONFIRMATION_REQUIRED


class ExternalToolError(SecretsError):
    """An external binary (gpg, pass, git) exited non-zero."""

    kind = ErrorKind.EXTERNAL_TOOL

    def __init__(
        self,
        tool: str,
        args: Sequence[str],
        returncode: int,
        stderr: str = "",
    ):
        self.tool = tool
        self.args_ = list(args)
        self.returncode = returncode
        self.stderr = stderr.strip()
        detail = self.stderr or f"exit status {returncode}"
        super().__init__(f"{tool} error: {detail}")
