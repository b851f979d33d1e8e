"""secrets-cli — GPG-encrypted vaults stored in a Git repository."""

from .config import Settings
from .errors import ErrorKind, SecretsError
from .version import __version__
from .vault import SecretsVault

__all__ = [
    "ErrorKind",
    "SecretsError",
    "SecretsVault",
    "Settings",
    "__version__",
]
