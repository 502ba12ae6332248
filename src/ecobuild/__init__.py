from .dsl import addon, app, build, ignore, override, project, roster
from .model import BuildResult, BuildTask, Project, TaskKind, TaskState, VersionConfig
from .registry import StatusRegistry
from .runner import Scheduler, run

__all__ = [
    "addon", "app", "build", "ignore", "override", "project", "roster",
    "BuildResult", "BuildTask", "Project", "TaskKind", "TaskState", "VersionConfig",
    "StatusRegistry", "Scheduler", "run",
]
