# git.py
# Small, focused wrapper around the Git CLI.
# All Git interactions go through here so the rest of the codebase never
# calls subprocess("git ...") directly.

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List, Optional, Union

PathLike = Union[str, Path]


def _git(args: list[str], cwd: Optional[PathLike] = None) -> str:
    """
    Execute a git command and return its stdout with surrounding whitespace
    removed.

    Raises:
        subprocess.CalledProcessError: git exited non-zero (e.g. not a repo)
        FileNotFoundError: git is not installed
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=str(cwd) if cwd is not None else None,
        text=True,
        stderr=subprocess.DEVNULL,
    )
    return out.strip()


def head_sha(cwd: Optional[PathLike] = None) -> str:
    """Full SHA of HEAD. Exposed to actions as ACTIONCI_SHA."""
    return _git(["rev-parse", "HEAD"], cwd=cwd)


def current_ref(cwd: Optional[PathLike] = None) -> str:
    """
    Symbolic ref of HEAD (refs/heads/main), or the SHA when detached.
    """
    try:
        return _git(["symbolic-ref", "-q", "HEAD"], cwd=cwd)
    except subprocess.CalledProcessError:
        return head_sha(cwd=cwd)


def get_remote_url(remote: str = "origin", cwd: Optional[PathLike] = None) -> str:
    return _git(["remote", "get-url", remote], cwd=cwd)



def list_files(root: PathLike) -> List[str]:
    """
    Files that make up the checkout: tracked files plus untracked files that
    are not ignored. Paths are relative to `root`.
    """
    out = subprocess.check_output(
        ["git", "ls-files", "-z", "--cached", "--others", "--exclude-standard"],
        cwd=str(root),
        stderr=subprocess.DEVNULL,
    )
    return [p for p in out.decode("utf-8", errors="surrogateescape").split("\0") if p]
