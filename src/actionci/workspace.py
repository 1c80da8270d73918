# workspace.py
from __future__ import annotations

import shutil
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from .git_facts import git

# never copied into a workspace
IGNORED = (".git", ".actionci")


def _copy_git_checkout(root: Path, dest: Path) -> bool:
    """Copy tracked + untracked-not-ignored files. False if root is not a git repo."""
    try:
        files = git.list_files(root)
    except (subprocess.CalledProcessError, FileNotFoundError):
        return False

    for rel in files:
        if Path(rel).parts[0] in IGNORED:
            continue
        src = root / rel
        # deleted-but-tracked files and submodule dirs show up in ls-files
        if not src.is_file() and not src.is_symlink():
            continue
        target = dest / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, target, follow_symlinks=False)
    return True


def populate(repo_root: Union[str, Path], dest: Union[str, Path]) -> Path:
    """Copy the repository checkout at repo_root into dest (which must exist)."""
    root = Path(repo_root).resolve()
    dest_p = Path(dest)
    if not _copy_git_checkout(root, dest_p):
        shutil.copytree(
            root,
            dest_p,
            symlinks=True,
            ignore=shutil.ignore_patterns(*IGNORED),
            dirs_exist_ok=True,
        )
    return dest_p


@contextmanager
def workspace(
    repo_root: Union[str, Path],
    *,
    base_dir: Optional[Union[str, Path]] = None,
    prefix: str = "actionci-",
    keep: bool = False,
) -> Iterator[Path]:
    """
    Isolated, disposable copy of the repository for one action.

        with workspace(".") as ws:
            runner.run(args, RunContext(workspace=ws))

    The directory is deleted on exit unless keep=True.
    """
    if base_dir is not None:
        Path(base_dir).mkdir(parents=True, exist_ok=True)
    path = Path(tempfile.mkdtemp(prefix=prefix, dir=str(base_dir) if base_dir else None))
    try:
        populate(repo_root, path)
        yield path
    finally:
        if not keep:
            shutil.rmtree(path, ignore_errors=True)
