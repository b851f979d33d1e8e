"""
Settings — resolved once at process start.

Reads from command-line overrides first, then environment variables:
    SECRETS_DIR                    path to the secrets root (default: .secrets)
    USER_EMAIL                     acting principal
    GPG_BINARY / PASS_BINARY       external tool locations
    SECRETS_ALLOW_UNAUTHENTICATED  permit operations with no identity (default: on)

The resulting ``Settings`` is immutable and handed to every component; nothing
below this module looks at the environment.
"""
from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from .gitroot import find_git_root
from .identity import resolve_principal
from .validation import validate_flat_name

logger = logging.getLogger("secrets_cli.config")

DEFAULT_SECRETS_DIR = ".secrets"

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be one of {_TRUE_VALUES + _FALSE_VALUES}, got {raw!r}")


def resolve_secrets_dir(
    explicit: str | Path | None,
    environ: Mapping[str, str],
    cwd: Path | None = None,
) -> Path:
    """Resolve the secrets root.

    Absolute paths are used as-is. Relative paths are anchored at the git
    repository root when inside one, so the tool behaves the same from any
    subdirectory of the project.
    """
    base = Path(explicit or environ.get("SECRETS_DIR") or DEFAULT_SECRETS_DIR)
    if base.is_absolute():
        return base
    cwd = cwd or Path.cwd()
    git_root = find_git_root(cwd)
    if git_root is not None:
        return git_root / base
    return cwd / base


class Settings(BaseModel):
    """Validated, immutable runtime configuration."""

    secrets_dir: Path
    email: str = ""
    gpg_binary: str = Field(default="gpg", min_length=1)
    pass_binary: str = Field(default="pass", min_length=1)
    allow_unauthenticated: bool = True
    verbose: bool = False

    model_config = {"frozen": True}

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """A configured identity must be a safe flat name."""
        if v:
            validate_flat_name(v, "email")
        return v

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        secrets_dir: str | Path | None = None,
        email: str | None = None,
        gpg_binary: str | None = None,
        pass_binary: str | None = None,
        require_identity: bool = False,
        verbose: bool = False,
        cwd: Path | None = None,
    ) -> "Settings":
        """Create Settings from explicit overrides and the environment.

        Returns:
            Populated Settings instance.
        """
        env = os.environ if environ is None else environ
        gpg = gpg_binary or env.get("GPG_BINARY") or "gpg"
        allow: bool = True
        raw_allow = env.get("SECRETS_ALLOW_UNAUTHENTICATED")
        if raw_allow:
            allow = _parse_bool("SECRETS_ALLOW_UNAUTHENTICATED", raw_allow)
        if require_identity:
            allow = False
        values: dict[str, Any] = {
            "secrets_dir": resolve_secrets_dir(secrets_dir, env, cwd),
            "email": resolve_principal(email, environ=env, gpg_binary=gpg),
            "gpg_binary": gpg,
            "pass_binary": pass_binary or env.get("PASS_BINARY") or "pass",
            "allow_unauthenticated": allow,
            "verbose": verbose,
        }
        if values["email"]:
            validate_flat_name(values["email"], "email")
        settings = cls(**values)
        logger.debug(
            "Settings: secrets_dir=%s email=%s allow_unauthenticated=%s",
            settings.secrets_dir, settings.email or "<none>",
            settings.allow_unauthenticated,
        )
        return settings
