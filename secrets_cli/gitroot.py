"""Git repository discovery."""
from __future__ import annotations

from pathlib import Path

from .errors import NotAGitRepository


def find_git_root(start: Path | str | None = None) -> Path | None:
    """Walk up from ``start`` (default: cwd) to the directory holding ``.git``.

    ``.git`` may be a directory (normal checkout) or a file (worktree,
    submodule). Returns None when the filesystem root is reached.
    """
    current = Path(start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        git_entry = directory / ".git"
        if git_entry.is_dir() or git_entry.is_file():
            return directory
    return None


def require_git_repository(start: Path | str | None = None) -> Path:
    """Return the git root or raise ``NotAGitRepository``."""
    root = find_git_root(start)
    if root is None:
        raise NotAGitRepository(
            "secrets-cli requires a Git repository to ensure correct preservation "
            "of secrets across your project. Please run 'git init' first, or "
            "navigate to a directory within an existing Git repository"
        )
    return root
