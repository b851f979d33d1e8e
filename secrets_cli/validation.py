"""
Identifier validation.

Every vault name, principal and secret path supplied by a user ends up inside
a filesystem path and on the argument list of ``gpg`` or ``pass``. These
checks run before either happens.

Two validators exist because secret paths legitimately contain ``/`` to build
namespaces (``database/password``), while the same character in a vault name
or e-mail would escape the vault directory.
"""
from __future__ import annotations

from .errors import InvalidIdentifier


def validate_flat_name(name: str, what: str = "name") -> str:
    """Validate a single-segment identifier (vault name, principal).

    Rejects empty values, ``..``, ``/``, ``\\`` and a leading ``-`` (which
    the downstream tool would parse as an option).

    Returns:
        The name, unchanged.

    Raises:
        InvalidIdentifier: If the name is unsafe.
    """
    if not name:
        raise InvalidIdentifier(f"{what} cannot be empty")
    if ".." in name or "/" in name or "\\" in name or name.startswith("-"):
        raise InvalidIdentifier(
            f"invalid {what}: {name} (contains illegal characters or path traversal)"
        )
    return name


def validate_hierarchical_name(name: str, what: str = "secret name") -> str:
    """Validate a ``/``-separated secret path.

    Interior separators are allowed; empty segments, ``.`` and ``..`` segments,
    backslashes, a leading/trailing ``/`` and a leading ``-`` are not.
    A segment may start with ``-`` since only the first character of the
    whole argument can be mistaken for an option.

    Returns:
        The name, unchanged.

    Raises:
        InvalidIdentifier: If the path is unsafe.
    """
    if not name:
        raise InvalidIdentifier(f"{what} cannot be empty")
    if name.startswith("-"):
        raise InvalidIdentifier(f"invalid {what}: {name} (cannot start with '-')")
    if "\\" in name:
        raise InvalidIdentifier(f"invalid {what}: {name} (backslash not allowed)")
    if name.startswith("/") or name.endswith("/"):
        raise InvalidIdentifier(
            f"invalid {what}: {name} (cannot start or end with '/')"
        )
    if "//" in name:
        raise InvalidIdentifier(f"invalid {what}: {name} (empty path segment)")
    segments = name.split("/")
    if any(segment == ".." for segment in segments):
        raise InvalidIdentifier(f"invalid {what}: {name} (path traversal)")
    if any(segment == "." for segment in segments):
        raise InvalidIdentifier(f"invalid {what}: {name} ('.' segment not allowed)")
    return name
