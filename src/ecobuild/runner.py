# runner.py
from __future__ import annotations

import logging
import shutil
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from .config import Settings
from .executor import TaskExecutor
from .maven import MavenInvoker
from .model import BuildResult, BuildTask, Summary, TaskState
from .registry import StatusRegistry
from .report import ReportWriter
from .roster import DEFAULT_VERSION_OVERRIDES, PROJECTS
from .slots import SlotPool
from .tasks import build_task_queue, partition
from .ui.console import Console, get_console
from .ui.live import LiveRenderer

logger = logging.getLogger(__name__)

TITLE = "Vaadin Ecosystem Build"

RendererFactory = Callable[[StatusRegistry], LiveRenderer]


# ----------------------------------------------------------------------
# Results helpers
# ----------------------------------------------------------------------

def ignored_result(task: BuildTask) -> BuildResult:
    reason = f"Ignored: {task.ignore_reason}" if task.ignore_reason else "Ignored"
    return BuildResult(
        name=task.name,
        kind=task.kind,
        success=False,
        message=reason,
        state=TaskState.IGNORED,
    )


def crashed_result(task: BuildTask, exc: BaseException, log_file: Optional[Path] = None) -> BuildResult:
    return BuildResult(
        name=task.name,
        kind=task.kind,
        success=False,
        message=f"Error: {exc}",
        log_file=log_file,
        state=TaskState.FAILED,
    )


def exit_status(results: Iterable[BuildResult]) -> int:
    """1 if any task ended Failed. Known issues and ignored tasks do not count."""
    return 1 if any(r.state is TaskState.FAILED for r in results) else 0


# ----------------------------------------------------------------------
# Scheduler
# ----------------------------------------------------------------------

class Scheduler:
    """
    Runs a task queue on `build_threads` builder slots.

    With one thread the queue runs in order on the calling thread and each
    build streams its full output to the terminal below the status table.
    With more, a thread pool runs the builds while the calling thread
    repaints the live frame until every future is done.
    """

    def __init__(
        self,
        executor: TaskExecutor,
        *,
        build_threads: int = 1,
        console: Optional[Console] = None,
        renderer_factory: Optional[RendererFactory] = None,
    ):
        if build_threads < 1:
            raise ValueError("build_threads must be >= 1")
        self.executor = executor
        self.build_threads = build_threads
        self.console = console or get_console()
        self.renderer_factory = renderer_factory or self._default_renderer

    @property
    def pooled(self) -> bool:
        return self.build_threads > 1

    def _default_renderer(self, registry: StatusRegistry) -> LiveRenderer:
        settings = self.executor.settings
        return LiveRenderer.for_terminal(
            registry,
            default_tail=settings.tail_lines,
            line_width=settings.line_width,
            title=TITLE,
            version=self.executor.version,
            interval=settings.refresh_interval,
            color=self.console.color,
        )

    # ------------------------------------------------------------------
    # Public
    # ------------------------------------------------------------------

    def run(self, tasks: Sequence[BuildTask], prior: Sequence[BuildResult] = ()) -> List[BuildResult]:
        """
        Build every active task and return one result per task, in queue order.

        `prior` results (the smoke test) are shown in the status table and
        returned first, but not built again.
        """
        active, ignored = partition(tasks)
        registry = StatusRegistry(slot_count=self.build_threads if self.pooled else 0)

        for r in prior:
            registry.register(BuildTask(name=r.name, repo_url="", kind=r.kind))
            registry.occupy(None, r.name, r.log_file or Path(""))
            registry.vacate(None, r.name, r.state, r.duration)
        registry.register_all(tasks)

        renderer = self.renderer_factory(registry)
        logger.info("running %d task(s) on %d builder(s), %d ignored", len(active), self.build_threads, len(ignored))

        if self.pooled:
            built = self._run_pooled(active, registry, renderer)
        else:
            built = self._run_sequential(active, registry, renderer)

        by_name = {r.name: r for r in built}
        results = list(prior)
        for t in tasks:
            results.append(by_name[t.name] if not t.ignored else ignored_result(t))
        return results

    # ------------------------------------------------------------------
    # Sequential mode
    # ------------------------------------------------------------------

    def _run_sequential(
        self,
        active: Sequence[BuildTask],
        registry: StatusRegistry,
        renderer: LiveRenderer,
    ) -> List[BuildResult]:
        results = []
        for task in active:
            registry.occupy(None, task.name, self.executor.log_file(task))
            # status table stays in the scrollback; build output follows it
            renderer.draw()
            renderer.detach()
            result = self._build(task, registry, echo=self.console.print_dim)
            registry.vacate(None, task.name, result.state, result.duration)
            results.append(result)
        renderer.draw()
        return results

    # ------------------------------------------------------------------
    # Pooled mode
    # ------------------------------------------------------------------

    def _run_pooled(
        self,
        active: Sequence[BuildTask],
        registry: StatusRegistry,
        renderer: LiveRenderer,
    ) -> List[BuildResult]:
        for t in active:
            registry.set_state(t.name, TaskState.WAITING)

        slots = SlotPool(self.build_threads)
        futures: List[Future] = []

        pool = ThreadPoolExecutor(max_workers=self.build_threads, thread_name_prefix="builder")
        try:
            for t in active:
                futures.append(pool.submit(self._work, t, registry, slots))
            renderer.run(done=lambda: all(f.done() for f in futures))
        except KeyboardInterrupt:
            # queued tasks never start; running builds finish on their own timeout
            pool.shutdown(wait=False, cancel_futures=True)
            raise
        pool.shutdown()

        results = []
        for task, fut in zip(active, futures):
            try:
                results.append(fut.result())
            except Exception as e:
                logger.error("%s: worker did not return a result: %s", task.name, e)
                results.append(crashed_result(task, e, self.executor.log_file(task)))
        return results

    def _work(self, task: BuildTask, registry: StatusRegistry, slots: SlotPool) -> BuildResult:
        slot = slots.acquire()
        try:
            registry.occupy(slot, task.name, self.executor.log_file(task))
            result = self._build(task, registry)
            registry.vacate(slot, task.name, result.state, result.duration)
            return result
        finally:
            slots.release(slot)

    # ------------------------------------------------------------------
    # One task
    # ------------------------------------------------------------------

    def _build(
        self,
        task: BuildTask,
        registry: StatusRegistry,
        echo: Optional[Callable[[str], None]] = None,
    ) -> BuildResult:
        """
        Primary attempt, then enrichment. The task stays Running in its slot
        until the final state is known, so no lock is held during triage or
        the tracker lookup.
        """
        try:
            result = self.executor.execute(task, echo=echo)
            registry.set_duration(task.name, result.duration)
            return self.executor.complete(task, result)
        except Exception as e:
            logger.exception("%s: unexpected error", task.name)
            return crashed_result(task, e, self.executor.log_file(task))


# ----------------------------------------------------------------------
# Entry points
# ----------------------------------------------------------------------

def run(
    tasks: Sequence[BuildTask],
    concurrency: int,
    timeout: float,
    *,
    version: str,
    settings: Optional[Settings] = None,
    executor: Optional[TaskExecutor] = None,
    console: Optional[Console] = None,
    renderer_factory: Optional[RendererFactory] = None,
) -> int:
    """Build `tasks` with `concurrency` slots and a `timeout` in minutes. Returns the exit status."""
    settings = (settings or Settings()).with_overrides(build_threads=concurrency, timeout_minutes=timeout)
    executor = executor or TaskExecutor(settings, version)
    scheduler = Scheduler(
        executor,
        build_threads=settings.build_threads,
        console=console,
        renderer_factory=renderer_factory,
    )
    return exit_status(scheduler.run(tasks))


def prepare_output_dir(settings: Settings, version: str, clean: bool = False) -> Path:
    output_dir = settings.output_dir(version)
    if clean and output_dir.exists():
        shutil.rmtree(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def run_harness(
    settings: Settings,
    version: str,
    *,
    custom_version: bool = False,
    names: Optional[Iterable[str]] = None,
    console: Optional[Console] = None,
    executor: Optional[TaskExecutor] = None,
    renderer_factory: Optional[RendererFactory] = None,
    projects=None,
) -> int:
    """
    Full run: task queue, smoke test, builds, summary, reports.

    Raises:
        NoMatchingProjectsError: if `names` matches nothing in the roster.
    """
    console = console or get_console()
    started = time.monotonic()

    tasks = build_task_queue(
        PROJECTS if projects is None else projects,
        version,
        names=names,
        defaults=DEFAULT_VERSION_OVERRIDES,
    )

    output_dir = prepare_output_dir(settings, version)
    executor = executor or TaskExecutor(
        settings,
        version,
        build_tool=MavenInvoker(settings, custom_version=custom_version),
    )
    writer = ReportWriter(output_dir, version, settings)

    console.print_version(version, custom_version)
    console.print_smoke_test_start(version)
    smoke = executor.smoke_test(echo=console.print_dim)
    console.print_smoke_test_result(smoke, version)

    if not smoke.success:
        logger.error("smoke test failed for %s, skipping the task queue", version)
        results = [smoke]
    else:
        scheduler = Scheduler(
            executor,
            build_threads=settings.build_threads,
            console=console,
            renderer_factory=renderer_factory,
        )
        results = scheduler.run(tasks, prior=[smoke])
        console.print_outcomes(results)

    elapsed = time.monotonic() - started
    console.print_summary(Summary.of(results), elapsed, output_dir)
    for label, path in writer.write_all(results, elapsed):
        console.print_saved(label, path)
    return exit_status(results)
