# executor.py
from __future__ import annotations

import logging
import shutil
import subprocess
import time
from dataclasses import replace
from pathlib import Path
from typing import Callable, Optional

from .config import Settings
from .git_facts.git import GitOperator
from .maven import MavenInvoker
from .model import BuildResult, BuildTask, FailureMetadata, TaskKind, TaskState
from .process import TIMED_OUT
from .tracker import IssueTracker

logger = logging.getLogger(__name__)

SMOKE_TEST_NAME = "vaadin-project-archetype"
SMOKE_TEST_DIR = "smoke-test"
BUILD_DESCRIPTOR = "pom.xml"


class SyncError(Exception):
    """The working tree could not be brought to the target branch."""
    pass


class TaskExecutor:
    """
    Runs one BuildTask end to end.

    execute() covers the primary attempt: repository sync, version rewrite
    and the build itself. complete() enriches a failed result with triage
    metadata and the known-issue lookup. Nothing here touches the status
    registry; the scheduler records states around these calls.
    """

    def __init__(
        self,
        settings: Settings,
        version: str,
        *,
        scm: Optional[GitOperator] = None,
        build_tool: Optional[MavenInvoker] = None,
        tracker: Optional[IssueTracker] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.version = version
        self.scm = scm or GitOperator(timeout=settings.timeout_seconds)
        self.build_tool = build_tool or MavenInvoker(settings)
        self.tracker = tracker or IssueTracker(settings.issue_repo)
        self.clock = clock

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @property
    def work_path(self) -> Path:
        return self.settings.work_dir

    @property
    def output_dir(self) -> Path:
        return self.settings.output_dir(self.version)

    def log_file(self, task: BuildTask) -> Path:
        return self.output_dir / f"{task.name}-build.log"

    def triage_log_file(self, task: BuildTask) -> Path:
        return self.output_dir / f"{task.name}-original-build.log"

    def project_path(self, task: BuildTask) -> Path:
        return self.work_path / task.name

    def build_path(self, task: BuildTask) -> Path:
        root = self.project_path(task)
        return root / task.build_subdir if task.build_subdir else root

    # ------------------------------------------------------------------
    # Repository sync
    # ------------------------------------------------------------------

    def sync(self, task: BuildTask, log_file: Path) -> None:
        """
        Clone, or update an existing clone to the target branch.

        An existing clone has local edits discarded, the branch fetched and
        checked out, then is hard-reset to origin. If fetch, checkout or
        reset fails the directory is removed and cloned again.

        Raises:
            SyncError: if cloning fails
        """
        path = self.project_path(task)

        if not path.exists():
            self._clone(task, path, log_file)
            return

        self.scm.discard_changes(path, log_file)
        target = task.branch or self.scm.default_branch(path)

        step, rc = "fetch", self.scm.fetch(path, target, log_file)
        if rc == 0:
            step, rc = "checkout", self.scm.checkout(path, target, log_file)
        if rc == 0:
            step, rc = "reset", self.scm.reset_hard(path, target, log_file)

        if rc != 0:
            logger.info("%s: %s of %s failed (exit %s), re-cloning", task.name, step, target, rc)
            shutil.rmtree(path)
            self._clone(task, path, log_file)

    def _clone(self, task: BuildTask, path: Path, log_file: Path) -> None:
        rc = self.scm.clone(task.repo_url, path, task.branch, log_file)
        if rc != 0:
            raise SyncError("Failed to clone repository")

    # ------------------------------------------------------------------
    # Primary attempt
    # ------------------------------------------------------------------

    def execute(self, task: BuildTask, echo: Optional[Callable[[str], None]] = None) -> BuildResult:
        """Sync, rewrite, build. Never raises for task-local failures."""
        start = self.clock()
        log_file = self.log_file(task)

        def result(success: bool, message: str, timed_out: bool = False) -> BuildResult:
            return BuildResult(
                name=task.name,
                kind=task.kind,
                success=success,
                message=message,
                duration=self.clock() - start,
                log_file=log_file,
                state=TaskState.PASSED if success else TaskState.FAILED,
                timed_out=timed_out,
            )

        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            # re-builds start with a fresh log
            log_file.unlink(missing_ok=True)

            self.sync(task, log_file)

            build_path = self.build_path(task)
            self.build_tool.set_version(build_path, log_file, self.version, java_version=task.java_version)
            rc = self.build_tool.verify(
                build_path,
                log_file,
                java_version=task.java_version,
                use_addons_repo=task.use_addons_repo,
                extra_args=task.extra_args,
                echo=echo,
            )
        except SyncError as e:
            return result(False, str(e))
        except (OSError, subprocess.SubprocessError) as e:
            logger.exception("%s: build raised", task.name)
            return result(False, f"Error: {e}")

        if rc == 0:
            return result(True, "Build successful")
        if rc == TIMED_OUT:
            return result(False, f"Build timed out after {self.settings.timeout_minutes:g} min", timed_out=True)
        return result(False, f"Build failed (exit code: {rc})")

    # ------------------------------------------------------------------
    # Enrichment of failures
    # ------------------------------------------------------------------

    def triage(self, task: BuildTask) -> FailureMetadata:
        """
        Rebuild with the project's own, unmodified framework version.

        Tells "broken by the new version" apart from "already broken".
        """
        build_path = self.build_path(task)
        log_file = self.triage_log_file(task)
        original: Optional[str] = None
        builds = False
        try:
            log_file.unlink(missing_ok=True)
            self.scm.restore(build_path, BUILD_DESCRIPTOR, log_file)
            original = self.build_tool.detect_version(build_path, java_version=task.java_version)
            rc = self.build_tool.verify(
                build_path,
                log_file,
                java_version=task.java_version,
                use_addons_repo=task.use_addons_repo,
                extra_args=task.extra_args,
            )
            builds = rc == 0
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("%s: original-version build could not run: %s", task.name, e)
        return FailureMetadata(
            repo_url=task.repo_url,
            original_version=original,
            builds_with_original=builds,
            notify_users=task.notify_users,
        )

    def classify(self, result: BuildResult) -> BuildResult:
        """Downgrade a failure to a known issue when an open issue matches."""
        if result.success:
            return result
        url = self.tracker.find_open_issue(result.name, self.version)
        if url:
            return replace(result, state=TaskState.KNOWN_ISSUE, issue_url=url)
        return replace(result, state=TaskState.FAILED)

    def complete(self, task: BuildTask, result: BuildResult) -> BuildResult:
        """Final result for `task`: triage metadata and known-issue status for failures."""
        if result.success:
            return result
        if self.settings.triage:
            result = replace(result, failure=self.triage(task))
        return self.classify(result)

    def run(self, task: BuildTask, echo: Optional[Callable[[str], None]] = None) -> BuildResult:
        return self.complete(task, self.execute(task, echo))

    # ------------------------------------------------------------------
    # Smoke test
    # ------------------------------------------------------------------

    def smoke_test(self, echo: Optional[Callable[[str], None]] = None) -> BuildResult:
        """
        Generate a fresh project from the archetype and build it with the
        target version. Confirms the version is fetchable before the queue
        runs, and warms the local artifact cache.
        """
        start = self.clock()
        smoke_path = self.work_path / SMOKE_TEST_DIR
        log_file = self.output_dir / "smoke-test-build.log"

        def result(success: bool, message: str, timed_out: bool = False) -> BuildResult:
            return BuildResult(
                name=SMOKE_TEST_NAME,
                kind=TaskKind.SMOKE_TEST,
                success=success,
                message=message,
                duration=self.clock() - start,
                log_file=log_file,
                state=TaskState.PASSED if success else TaskState.FAILED,
                timed_out=timed_out,
            )

        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            log_file.unlink(missing_ok=True)
            if smoke_path.exists():
                shutil.rmtree(smoke_path)
            self.work_path.mkdir(parents=True, exist_ok=True)

            if echo:
                echo("Generating project from archetype...")
            rc = self.build_tool.generate_archetype(self.work_path, log_file, SMOKE_TEST_DIR)
            if rc != 0:
                return result(False, "Archetype generation failed", timed_out=rc == TIMED_OUT)

            if echo:
                echo(f"Setting version to {self.version}...")
            self.build_tool.set_version(smoke_path, log_file, self.version)

            if echo:
                echo("Building smoke test project...")
            rc = self.build_tool.verify(smoke_path, log_file, extra_args=("-DskipTests",))
        except (OSError, subprocess.SubprocessError) as e:
            logger.exception("smoke test raised")
            return result(False, f"Error: {e}")

        if rc == 0:
            return result(True, "Build successful")
        if rc == TIMED_OUT:
            return result(False, f"Build timed out after {self.settings.timeout_minutes:g} min", timed_out=True)
        return result(False, "Build failed")
