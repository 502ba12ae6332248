# report.py
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .config import Settings
from .model import BuildResult, Summary, TaskKind, TaskState
from .ui.console import format_duration

logger = logging.getLogger(__name__)

RESULTS_MD = "results.md"
RESULTS_JSON = "results.json"
FAILED_LIST = "failed-projects.txt"
FAILURE_METADATA = "failure-metadata.json"

_SECTIONS = [
    (TaskKind.SMOKE_TEST, "🔥 Smoke Test"),
    (TaskKind.ADDON, "📦 Add-ons"),
    (TaskKind.APP, "🚀 Applications"),
]

# -------------------- Schemas --------------------

class FailureEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    repo_url: str | None = Field(default=None, alias="repoUrl")
    original_version: str | None = Field(default=None, alias="originalVersion")
    builds_with_original: bool = Field(default=False, alias="buildsWithOriginal")
    notify_users: list[str] = Field(default_factory=list, alias="notifyUsers")

class ResultEntry(BaseModel):
    name: str
    kind: TaskKind
    state: TaskState
    message: str
    duration_seconds: float
    timed_out: bool = False
    log_file: str | None = None
    issue_url: str | None = None
    failure: FailureEntry | None = None

class RunReport(BaseModel):
    version: str
    generated_at: datetime
    total_seconds: float
    total: int
    passed: int
    failed: int
    known_issues: int
    ignored: int
    results: list[ResultEntry]


def failure_entry(result: BuildResult) -> Optional[FailureEntry]:
    f = result.failure
    if f is None:
        return None
    return FailureEntry(
        repo_url=f.repo_url,
        original_version=f.original_version,
        builds_with_original=f.builds_with_original,
        notify_users=list(f.notify_users),
    )


def result_entry(result: BuildResult) -> ResultEntry:
    return ResultEntry(
        name=result.name,
        kind=result.kind,
        state=result.state,
        message=result.message,
        duration_seconds=round(result.duration, 3),
        timed_out=result.timed_out,
        log_file=str(result.log_file) if result.log_file else None,
        issue_url=result.issue_url,
        failure=failure_entry(result),
    )


# -------------------- Writer --------------------

class ReportWriter:
    """
    Results sink for one run.

    Writes into the version output directory. A file that cannot be
    written is logged and skipped; reports never change the run's outcome.
    """

    def __init__(self, output_dir: Path, version: str, settings: Optional[Settings] = None):
        self.output_dir = Path(output_dir)
        self.version = version
        self.settings = settings or Settings()

    # ---- status text ----

    @staticmethod
    def status_line(summary: Summary) -> str:
        if summary.failed == 0 and summary.known_issues == 0:
            return "🎉 All tests passed"
        if summary.failed == 0:
            return "⚠️ All tests passed (with known issues)"
        return "💔 Some tests failed"

    @staticmethod
    def status_cell(result: BuildResult) -> str:
        if result.state is TaskState.IGNORED:
            return "⏭️ IGNORED"
        if result.state is TaskState.PASSED:
            return "✅ PASSED"
        if result.state is TaskState.KNOWN_ISSUE:
            if result.issue_url:
                return f"[⚠️ KNOWN ISSUE]({result.issue_url})"
            return "⚠️ KNOWN ISSUE"
        if result.timed_out:
            return "⏱️ TIMEOUT"
        return "❌ FAILED"

    # ---- renderers ----

    def markdown(self, results: Sequence[BuildResult], total_seconds: float, now: Optional[datetime] = None) -> str:
        summary = Summary.of(results)
        now = now or datetime.now(timezone.utc)
        out: List[str] = [
            "# Vaadin Ecosystem Build Report",
            "",
            f"**Vaadin Version:** `{self.version}`",
            f"**Last Run:** {now:%Y-%m-%d %H:%M} UTC",
            f"**Total Time:** {format_duration(total_seconds)}",
            f"**Status:** {self.status_line(summary)}",
            "",
        ]

        for kind, title in _SECTIONS:
            group = [r for r in results if r.kind is kind]
            if not group:
                continue
            out += [f"## {title}", "", "| Project | Status | Duration |", "|---------|--------|----------|"]
            for r in group:
                duration = f"{r.duration:.1f}s" if r.duration > 0 else "-"
                out.append(f"| {r.name} | {self.status_cell(r)} | {duration} |")
            out.append("")

        parts = [f"**Summary:** {summary.total} total", f"✅ {summary.passed} passed"]
        if summary.known_issues > 0:
            parts.append(f"⚠️ {summary.known_issues} known issues")
        parts += [f"❌ {summary.failed} failed", f"⏭️ {summary.ignored} ignored"]
        out += ["---", " | ".join(parts)]
        return "\n".join(out) + "\n"

    def failed_projects(self, results: Sequence[BuildResult]) -> str:
        # first line is read by CI to know which version the list belongs to
        wanted = {TaskState.FAILED}
        if self.settings.known_issues_in_failed_list:
            wanted.add(TaskState.KNOWN_ISSUE)
        lines = [f"vaadin_version={self.version}"]
        lines += [r.name for r in results if r.state in wanted and r.kind is not TaskKind.SMOKE_TEST]
        return "\n".join(lines) + "\n"

    def failure_metadata(self, results: Sequence[BuildResult]) -> Dict[str, FailureEntry]:
        return {r.name: failure_entry(r) for r in results if r.failure is not None}

    def run_report(self, results: Sequence[BuildResult], total_seconds: float, now: Optional[datetime] = None) -> RunReport:
        summary = Summary.of(results)
        return RunReport(
            version=self.version,
            generated_at=now or datetime.now(timezone.utc),
            total_seconds=round(total_seconds, 3),
            total=summary.total,
            passed=summary.passed,
            failed=summary.failed,
            known_issues=summary.known_issues,
            ignored=summary.ignored,
            results=[result_entry(r) for r in results],
        )

    # ---- writing ----

    def _write(self, name: str, render: Callable[[], str]) -> Optional[Path]:
        path = self.output_dir / name
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(render(), encoding="utf-8")
        except OSError as e:
            logger.warning("could not write %s: %s", path, e)
            return None
        return path

    def write_all(self, results: Sequence[BuildResult], total_seconds: float = 0.0) -> List[Tuple[str, Path]]:
        """Write every report. Returns (label, path) for each file written."""
        written: List[Tuple[str, Path]] = []

        def add(label: str, path: Optional[Path]) -> None:
            if path is not None:
                written.append((label, path))

        add("Report", self._write(RESULTS_MD, lambda: self.markdown(results, total_seconds)))
        add("Results", self._write(
            RESULTS_JSON,
            lambda: self.run_report(results, total_seconds).model_dump_json(indent=2) + "\n",
        ))
        add("Failed projects", self._write(FAILED_LIST, lambda: self.failed_projects(results)))

        metadata = self.failure_metadata(results)
        if metadata:
            add("Failure metadata", self._write(FAILURE_METADATA, lambda: _dump_metadata(metadata)))
        return written


def _dump_metadata(metadata: Dict[str, FailureEntry]) -> str:
    payload = {name: entry.model_dump(by_alias=True) for name, entry in metadata.items()}
    return json.dumps(payload, indent=2) + "\n"
