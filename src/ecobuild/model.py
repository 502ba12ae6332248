# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Tuple


class TaskKind(str, Enum):
    """What a build task validates."""
    SMOKE_TEST = "smoke-test"
    ADDON = "addon"
    APP = "app"

    @property
    def label(self) -> str:
        return _KIND_LABELS[self]


_KIND_LABELS = {
    TaskKind.SMOKE_TEST: "Smoke Test",
    TaskKind.ADDON: "Add-ons",
    TaskKind.APP: "Applications",
}


class TaskState(str, Enum):
    PENDING = "pending"
    WAITING = "waiting"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    KNOWN_ISSUE = "known-issue"
    IGNORED = "ignored"

    @property
    def rank(self) -> int:
        # Pending/Waiting < Running < terminal
        return _STATE_RANKS[self]

    @property
    def terminal(self) -> bool:
        return self in TERMINAL_STATES


_STATE_RANKS = {
    TaskState.PENDING: 0,
    TaskState.WAITING: 0,
    TaskState.RUNNING: 1,
    TaskState.PASSED: 2,
    TaskState.FAILED: 2,
    TaskState.KNOWN_ISSUE: 2,
    TaskState.IGNORED: 2,
}

TERMINAL_STATES = frozenset(
    {TaskState.PASSED, TaskState.FAILED, TaskState.KNOWN_ISSUE, TaskState.IGNORED}
)


@dataclass(frozen=True)
class VersionConfig:
    """
    Per-version override for a project.

    Every field left as None falls through to the project's own value.
    An override with no fields set still "wins" the lookup, which is how
    a project opts out of a global default override.
    """
    branch: Optional[str] = None
    java_version: Optional[str] = None
    extra_args: Optional[Tuple[str, ...]] = None
    ignored: bool = False
    ignore_reason: Optional[str] = None


@dataclass(frozen=True)
class Project:
    """Static roster entry: one external repository to build."""
    name: str
    repo_url: str
    kind: TaskKind = TaskKind.ADDON
    branch: Optional[str] = None          # None = auto-detect default branch
    build_subdir: Optional[str] = None    # directory to run the build in
    java_version: Optional[str] = None    # SDKMAN identifier, e.g. "21-tem"
    use_addons_repo: bool = False
    extra_args: Tuple[str, ...] = ()
    notify_users: Tuple[str, ...] = ()
    ignored: bool = False
    ignore_reason: Optional[str] = None
    version_overrides: Dict[str, VersionConfig] = field(default_factory=dict)


@dataclass(frozen=True)
class BuildTask:
    """A project resolved against one target version. Immutable for the run."""
    name: str
    repo_url: str
    kind: TaskKind
    branch: Optional[str] = None
    build_subdir: Optional[str] = None
    java_version: Optional[str] = None
    use_addons_repo: bool = False
    extra_args: Tuple[str, ...] = ()
    notify_users: Tuple[str, ...] = ()
    ignored: bool = False
    ignore_reason: Optional[str] = None


@dataclass(frozen=True)
class FailureMetadata:
    """Context for a failed build, used when filing issues downstream."""
    repo_url: Optional[str]
    original_version: Optional[str]
    builds_with_original: bool
    notify_users: Tuple[str, ...] = ()


@dataclass(frozen=True)
class BuildResult:
    name: str
    kind: TaskKind
    success: bool
    message: str
    duration: float = 0.0                 # seconds
    log_file: Optional[Path] = None
    state: TaskState = TaskState.FAILED
    timed_out: bool = False
    issue_url: Optional[str] = None
    failure: Optional[FailureMetadata] = None

    @property
    def ignored(self) -> bool:
        return self.state is TaskState.IGNORED


@dataclass(frozen=True)
class SlotRecord:
    """One occupied builder slot."""
    index: int
    task_name: str
    log_file: Path


@dataclass(frozen=True)
class Summary:
    total: int
    passed: int
    failed: int
    known_issues: int
    ignored: int

    @classmethod
    def of(cls, results) -> Summary:
        counts = {s: 0 for s in TaskState}
        for r in results:
            counts[r.state] += 1
        return cls(
            total=len(results),
            passed=counts[TaskState.PASSED],
            failed=counts[TaskState.FAILED],
            known_issues=counts[TaskState.KNOWN_ISSUE],
            ignored=counts[TaskState.IGNORED],
        )
