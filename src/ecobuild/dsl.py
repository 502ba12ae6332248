# src/ecobuild/dsl.py
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from .model import Project, TaskKind, VersionConfig


# ---------------------------------------------------------------------
# Version override helper
# ---------------------------------------------------------------------

def override(
    *,
    branch: str | None = None,
    java_version: str | None = None,
    extra_args: Optional[Iterable[str]] = None,
    ignored: bool = False,
    ignore_reason: str | None = None,
) -> VersionConfig:
    """Create a version override. `override()` with no arguments opts out of defaults."""
    return VersionConfig(
        branch=branch,
        java_version=java_version,
        extra_args=tuple(extra_args) if extra_args is not None else None,
        ignored=ignored,
        ignore_reason=ignore_reason,
    )


def ignore(reason: str) -> VersionConfig:
    return override(ignored=True, ignore_reason=reason)


# ---------------------------------------------------------------------
# Functional project helpers
# ---------------------------------------------------------------------

def project(
    name: str,
    repo_url: str,
    *,
    kind: TaskKind = TaskKind.ADDON,
    branch: str | None = None,
    build_subdir: str | None = None,
    java_version: str | None = None,
    use_addons_repo: bool = False,
    extra_args: Optional[List[str]] = None,
    notify_users: Optional[List[str]] = None,
    ignored: bool = False,
    ignore_reason: str | None = None,
    versions: Optional[Dict[str, VersionConfig]] = None,
) -> Project:
    if not name:
        raise ValueError("project name must not be empty")
    if not repo_url:
        raise ValueError(f"project({name!r}) needs a repository URL")

    return Project(
        name=name,
        repo_url=repo_url,
        kind=kind,
        branch=branch,
        build_subdir=build_subdir,
        java_version=java_version,
        use_addons_repo=use_addons_repo,
        extra_args=tuple(extra_args or ()),
        notify_users=tuple(notify_users or ()),
        ignored=ignored,
        ignore_reason=ignore_reason,
        version_overrides=dict(versions or {}),
    )


def addon(name: str, repo_url: str, **kwargs) -> Project:
    return project(name, repo_url, kind=TaskKind.ADDON, **kwargs)


def app(name: str, repo_url: str, **kwargs) -> Project:
    return project(name, repo_url, kind=TaskKind.APP, **kwargs)


# ---------------------------------------------------------------------
# Builder API
# ---------------------------------------------------------------------

class ProjectBuilder:
    def __init__(self, name: str, repo_url: str, kind: TaskKind = TaskKind.ADDON):
        self.name = name
        self.repo_url = repo_url
        self._kind = kind
        self._branch: str | None = None
        self._build_subdir: str | None = None
        self._java_version: str | None = None
        self._use_addons_repo = False
        self._extra_args: list[str] = []
        self._notify_users: list[str] = []
        self._ignored = False
        self._ignore_reason: str | None = None
        self._versions: dict[str, VersionConfig] = {}

    def on_branch(self, branch: str):
        self._branch = branch
        return self

    def in_subdir(self, subdir: str):
        self._build_subdir = subdir
        return self

    def with_java(self, java_version: str):
        self._java_version = java_version
        return self

    def with_addons_repo(self, enabled: bool = True):
        self._use_addons_repo = enabled
        return self

    def with_args(self, *args: str):
        self._extra_args.extend(args)
        return self

    def notify(self, *users: str):
        self._notify_users.extend(users)
        return self

    def ignore(self, reason: str):
        self._ignored = True
        self._ignore_reason = reason
        return self

    def for_version(self, pattern: str, config: VersionConfig):
        self._versions[pattern] = config
        return self

    def build(self) -> Project:
        return project(
            self.name,
            self.repo_url,
            kind=self._kind,
            branch=self._branch,
            build_subdir=self._build_subdir,
            java_version=self._java_version,
            use_addons_repo=self._use_addons_repo,
            extra_args=self._extra_args,
            notify_users=self._notify_users,
            ignored=self._ignored,
            ignore_reason=self._ignore_reason,
            versions=self._versions,
        )


def build(name: str, repo_url: str, kind: TaskKind = TaskKind.ADDON) -> ProjectBuilder:
    """Convenience: build('x', url).with_java('21-tem').build()"""
    return ProjectBuilder(name, repo_url, kind)


def roster(*projects: Project) -> List[Project]:
    """Collect projects, rejecting duplicate names."""
    seen: set[str] = set()
    for p in projects:
        if p.name in seen:
            raise ValueError(f"Duplicate project name: {p.name}")
        seen.add(p.name)
    return list(projects)
