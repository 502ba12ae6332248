# git.py
# Small, focused wrapper around the Git CLI.
# Every git call the harness makes goes through this module, so the rest of
# the codebase never builds a "git ..." command line itself.

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List, Optional

from ..process import run_capture, run_logged

DEFAULT_BRANCH_FALLBACK = "main"


def _git(args: list[str], cwd: Optional[str | Path] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    Used for read-only queries; commands that change a working tree go
    through GitOperator so their output lands in the task's log file.

    Raises:
        subprocess.CalledProcessError: if git exits non-zero.
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=str(cwd) if cwd is not None else None,
        text=True,
        stderr=subprocess.DEVNULL,
    )
    return out.strip()


def head_sha(cwd: str | Path) -> str:
    """Full SHA of HEAD in `cwd`."""
    return _git(["rev-parse", "HEAD"], cwd=cwd)


def current_branch(cwd: str | Path) -> str:
    return _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd)


def is_dirty(cwd: str | Path) -> bool:
    """
    True if the working tree has modified, staged or untracked files.

    `git status --porcelain` prints nothing at all for a clean tree.
    """
    return _git(["status", "--porcelain"], cwd=cwd) != ""


def default_branch(repo: str | Path) -> str:
    """
    Branch that origin/HEAD points at, e.g. "main" or "master".

    Falls back to "main" when origin/HEAD is not set (shallow single-branch
    clones often lack it).
    """
    try:
        proc = run_capture(["git", "symbolic-ref", "refs/remotes/origin/HEAD", "--short"], cwd=repo)
    except (OSError, subprocess.SubprocessError):
        return DEFAULT_BRANCH_FALLBACK
    result = (proc.stdout or "").strip()
    if proc.returncode == 0 and result.startswith("origin/"):
        return result[len("origin/"):]
    return DEFAULT_BRANCH_FALLBACK


class GitOperator:
    """
    Working-tree operations for one harness run.

    Each method appends git's output to `log_file` and returns git's exit
    code (or process.TIMED_OUT).
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def _run(self, args: List[str], cwd: str | Path, log_file: Path) -> int:
        return run_logged(["git", *args], cwd=cwd, log_file=log_file, timeout=self.timeout)

    def clone(self, repo_url: str, dest: Path, branch: Optional[str], log_file: Path) -> int:
        """Shallow single-branch clone of `repo_url` into `dest`."""
        cmd = ["clone", "--depth", "1", "--single-branch"]
        if branch:
            cmd += ["-b", branch]
        cmd += [repo_url, dest.name]
        dest.parent.mkdir(parents=True, exist_ok=True)
        return self._run(cmd, dest.parent, log_file)

    def discard_changes(self, repo: Path, log_file: Path) -> int:
        # local edits come from the version rewrite of a previous run
        return self._run(["checkout", "--", "."], repo, log_file)

    def fetch(self, repo: Path, branch: str, log_file: Path) -> int:
        return self._run(["fetch", "--depth", "1", "origin", branch], repo, log_file)

    def checkout(self, repo: Path, branch: str, log_file: Path) -> int:
        return self._run(["checkout", branch], repo, log_file)

    def reset_hard(self, repo: Path, branch: str, log_file: Path) -> int:
        return self._run(["reset", "--hard", f"origin/{branch}"], repo, log_file)

    def restore(self, repo: Path, path: str, log_file: Path) -> int:
        """Undo local edits to one file (e.g. pom.xml)."""
        return self._run(["checkout", "--", path], repo, log_file)

    def default_branch(self, repo: Path) -> str:
        return default_branch(repo)
