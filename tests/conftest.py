"""Shared fixtures and fakes for ecobuild tests."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from ecobuild.config import Settings
from ecobuild.model import BuildTask, TaskKind
from ecobuild.ui.console import Console, set_console


# ---------------------------------------------------------------------------
# Fakes for the external collaborators
# ---------------------------------------------------------------------------


class FakeScm:
    """Records calls; `clone` creates the directory like a real clone would."""

    def __init__(self, *, fetch_rc: int = 0, checkout_rc: int = 0, reset_rc: int = 0, clone_rc: int = 0):
        self.fetch_rc = fetch_rc
        self.checkout_rc = checkout_rc
        self.reset_rc = reset_rc
        self.clone_rc = clone_rc
        self.calls: List[tuple] = []
        self._lock = threading.Lock()

    def _record(self, *call) -> None:
        with self._lock:
            self.calls.append(call)

    def names(self) -> List[str]:
        return [c[0] for c in self.calls]

    def clone(self, repo_url, dest: Path, branch, log_file: Path) -> int:
        self._record("clone", repo_url, dest, branch)
        if self.clone_rc == 0:
            dest.mkdir(parents=True, exist_ok=True)
            (dest / "pom.xml").write_text("<project/>")
        return self.clone_rc

    def discard_changes(self, repo, log_file) -> int:
        self._record("discard_changes", repo)
        return 0

    def fetch(self, repo, branch, log_file) -> int:
        self._record("fetch", repo, branch)
        return self.fetch_rc

    def checkout(self, repo, branch, log_file) -> int:
        self._record("checkout", repo, branch)
        return self.checkout_rc

    def reset_hard(self, repo, branch, log_file) -> int:
        self._record("reset_hard", repo, branch)
        return self.reset_rc

    def restore(self, repo, path, log_file) -> int:
        self._record("restore", repo, path)
        return 0

    def default_branch(self, repo) -> str:
        return "main"


class FakeBuildTool:
    """
    Build tool whose verify() exit codes are scripted per project directory.

    Every verify call writes a few lines to the log and can sleep to keep
    a slot busy; `max_concurrent` records the peak number of overlapping
    builds.
    """

    def __init__(
        self,
        exit_codes: Optional[Dict[str, int]] = None,
        *,
        delay: float = 0.0,
        original_version: Optional[str] = "24.9.0",
        original_rc: int = 0,
        archetype_rc: int = 0,
    ):
        self.exit_codes = exit_codes or {}
        self.delay = delay
        self.original_version = original_version
        self.original_rc = original_rc
        self.archetype_rc = archetype_rc
        self.set_version_calls: List[tuple] = []
        self.verify_calls: List[tuple] = []
        self.active = 0
        self.max_concurrent = 0
        self._lock = threading.Lock()

    def set_version(self, build_path, log_file, version, *, java_version=None):
        self.set_version_calls.append((Path(build_path).name, version))
        return 0, 1

    def verify(self, build_path, log_file, *, java_version=None, use_addons_repo=False, extra_args=(), echo=None):
        name = Path(build_path).name
        with self._lock:
            self.verify_calls.append((name, Path(log_file).name, tuple(extra_args)))
            self.active += 1
            self.max_concurrent = max(self.max_concurrent, self.active)
        try:
            with open(log_file, "a", encoding="utf-8") as log:
                for i in range(3):
                    line = f"[INFO] {name} step {i}"
                    log.write(line + "\n")
                    if echo is not None:
                        echo(line)
            if self.delay:
                time.sleep(self.delay)
        finally:
            with self._lock:
                self.active -= 1
        if Path(log_file).name.endswith("-original-build.log"):
            return self.original_rc
        return self.exit_codes.get(name, 0)

    def detect_version(self, build_path, *, java_version=None):
        return self.original_version

    def generate_archetype(self, work_path, log_file, artifact_id):
        (Path(work_path) / artifact_id).mkdir(parents=True, exist_ok=True)
        return self.archetype_rc


class FakeTracker:
    def __init__(self, issues: Optional[Dict[str, str]] = None):
        self.issues = issues or {}
        self.queries: List[tuple] = []

    def find_open_issue(self, name: str, version: str) -> Optional[str]:
        self.queries.append((name, version))
        return self.issues.get(name)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def plain_console():
    """No ANSI colors in captured output."""
    console = Console(color=False)
    set_console(console)
    return console


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(work_dir=tmp_path / "work", refresh_interval=0.01)


def make_task(name: str, kind: TaskKind = TaskKind.ADDON, **kwargs) -> BuildTask:
    kwargs.setdefault("repo_url", f"https://example.com/{name}.git")
    return BuildTask(name=name, kind=kind, **kwargs)
