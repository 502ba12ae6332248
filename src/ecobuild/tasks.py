# tasks.py
from __future__ import annotations

from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from .model import BuildTask, Project, TaskKind, VersionConfig
from .versions import find_version_config


_KIND_ORDER = {TaskKind.SMOKE_TEST: 0, TaskKind.ADDON: 1, TaskKind.APP: 2}


class NoMatchingProjectsError(ValueError):
    """An explicit project filter matched nothing in the roster."""

    def __init__(self, requested: Sequence[str], available: Sequence[str]):
        self.requested = list(requested)
        self.available = list(available)
        super().__init__(
            f"No matching projects found for: {', '.join(self.requested)}"
        )


def select_projects(
    projects: Sequence[Project],
    names: Optional[Iterable[str]] = None,
) -> List[Project]:
    """
    Keep roster order, filtered to `names` when given.

    Raises:
        NoMatchingProjectsError: if `names` is non-empty and nothing matches.
    """
    wanted = [n.strip() for n in (names or []) if n and n.strip()]
    if not wanted:
        return list(projects)

    selected = [p for p in projects if p.name in wanted]
    if not selected:
        raise NoMatchingProjectsError(wanted, [p.name for p in projects])
    return selected


def resolve_task(
    project: Project,
    version: str,
    defaults: Optional[Mapping[str, VersionConfig]] = None,
) -> BuildTask:
    """Apply the matching version override (if any) to one project."""
    vc = find_version_config(project.version_overrides, version, defaults)

    branch = project.branch
    java_version = project.java_version
    extra_args = project.extra_args
    ignored = project.ignored
    ignore_reason = project.ignore_reason

    if vc is not None:
        if vc.branch is not None:
            branch = vc.branch
        if vc.java_version is not None:
            java_version = vc.java_version
        if vc.extra_args is not None:
            extra_args = vc.extra_args
        if vc.ignored:
            ignored = True
            ignore_reason = vc.ignore_reason

    return BuildTask(
        name=project.name,
        repo_url=project.repo_url,
        kind=project.kind,
        branch=branch,
        build_subdir=project.build_subdir,
        java_version=java_version,
        use_addons_repo=project.use_addons_repo,
        extra_args=tuple(extra_args),
        notify_users=project.notify_users,
        ignored=ignored,
        ignore_reason=ignore_reason,
    )


def build_task_queue(
    projects: Sequence[Project],
    version: str,
    *,
    names: Optional[Iterable[str]] = None,
    defaults: Optional[Mapping[str, VersionConfig]] = None,
) -> List[BuildTask]:
    """Ordered BuildTasks for `version`: add-ons first, then applications."""
    selected = select_projects(projects, names)
    tasks = [resolve_task(p, version, defaults) for p in selected]
    # stable sort keeps roster order inside each kind
    return sorted(tasks, key=lambda t: _KIND_ORDER.get(t.kind, len(_KIND_ORDER)))


def partition(tasks: Iterable[BuildTask]) -> Tuple[List[BuildTask], List[BuildTask]]:
    """Split into (active, ignored), preserving order."""
    active: List[BuildTask] = []
    ignored: List[BuildTask] = []
    for t in tasks:
        (ignored if t.ignored else active).append(t)
    return active, ignored

