"""Rendering of exported secrets as env, dotenv or JSON."""
from __future__ import annotations

import re
import shlex
from collections.abc import Mapping

import orjson

FORMATS = ("env", "dotenv", "json")

_ENV_NAME_REPLACE = re.compile(r"[/.\-]")


def secret_to_env_name(secret: str, prefix: str = "") -> str:
    """``database/password`` -> ``DATABASE_PASSWORD``."""
    return prefix + _ENV_NAME_REPLACE.sub("_", secret.upper())


def render(secrets: Mapping[str, str], fmt: str = "env", prefix: str = "") -> str:
    """Render name/value pairs in the requested format.

    Raises:
        ValueError: If ``fmt`` is not one of FORMATS.
    """
    if fmt not in FORMATS:
        raise ValueError(f"unsupported export format: {fmt} (choose from {', '.join(FORMATS)})")
    named = {secret_to_env_name(name, prefix): value for name, value in secrets.items()}
    if fmt == "json":
        return orjson.dumps(named, option=orjson.OPT_INDENT_2).decode("utf-8") + "\n"
    if fmt == "dotenv":
        lines = [f"{name}={value}" for name, value in named.items()]
    else:
        lines = [f"export {name}={shlex.quote(value)}" for name, value in named.items()]
    return "".join(line + "\n" for line in lines)
