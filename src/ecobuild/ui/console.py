"""Console output formatting utilities for ecobuild."""

from __future__ import annotations

import sys
import traceback
from pathlib import Path
from typing import Iterable, Optional

from ..model import BuildResult, Summary, TaskState

# ANSI color codes
RED = "\x1b[31m"
GREEN = "\x1b[32m"
YELLOW = "\x1b[33m"
CYAN = "\x1b[36m"
DIM = "\x1b[2m"
RESET = "\x1b[0m"

RULE_WIDTH = 60


def format_duration(seconds: float) -> str:
    """1.5s, 2m 3s, 1h 2m 3s."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    total = int(seconds)
    minutes, secs = divmod(total, 60)
    if minutes < 60:
        return f"{minutes}m {secs}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m {secs}s"


class Console:
    """Centralized console output for everything outside the live frame."""

    def __init__(self, debug: bool = False, color: bool = True):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
            color: If False, ANSI colors are left out
        """
        self.debug = debug
        self.color = color

    def _c(self, code: str, text: str) -> str:
        return f"{code}{text}{RESET}" if self.color else text

    def print_version(self, version: str, custom: bool) -> None:
        if custom:
            print(f"📦 Using custom version: {version}")
            print("🔓 Pre-release/snapshot repositories enabled via settings.xml")
        else:
            print(f"📦 Using version: {version}")
        print()

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_dim(self, message: str) -> None:
        print("  " + self._c(DIM, message))

    def print_smoke_test_start(self, version: str) -> None:
        print(f"🔥 Running smoke test to validate {version}...")
        print()

    def print_smoke_test_result(self, result: BuildResult, version: str) -> None:
        print()
        if result.success:
            print(self._c(GREEN, f"✅ Smoke test passed - {version} artifacts cached ({result.duration:.1f}s)"))
        else:
            print(self._c(RED, f"💥 Smoke test failed! {version} may not be available or compatible."))
            print(f"   Check {result.log_file} for details.")
        print()

    def print_task_outcome(self, result: BuildResult) -> None:
        """One line per failed or known-issue task after the live frame."""
        if result.state is TaskState.KNOWN_ISSUE:
            print(self._c(YELLOW, f"  ⚠️  {result.name} failed (known issue). Log: {result.log_file}"))
        elif result.state is TaskState.FAILED:
            print(self._c(RED, f"  💥 {result.name} failed: {result.message}. Log: {result.log_file}"))
        if result.failure is not None and result.failure.original_version:
            mark = "✅" if result.failure.builds_with_original else "❌"
            print(self._c(DIM, f"     Original version: {result.failure.original_version}, builds: {mark}"))

    def print_outcomes(self, results: Iterable[BuildResult]) -> None:
        printed = False
        for r in results:
            if r.state in (TaskState.FAILED, TaskState.KNOWN_ISSUE):
                if not printed:
                    print()
                    printed = True
                self.print_task_outcome(r)
        print()

    def print_summary(self, summary: Summary, total_seconds: float, output_dir: Path) -> None:
        """Print final results summary."""
        print("-" * RULE_WIDTH)
        print(f"📁 Build logs saved to: {output_dir}/")
        print()
        icon = "🎉" if summary.failed == 0 else "💔"
        parts = [f"{icon} Total: {summary.total}", self._c(GREEN, f"✅ Passed: {summary.passed}")]
        if summary.known_issues > 0:
            parts.append(self._c(YELLOW, f"⚠️  Known issues: {summary.known_issues}"))
        failed = f"❌ Failed: {summary.failed}"
        parts.append(self._c(RED, failed) if summary.failed else failed)
        parts.append(f"⏭️  Ignored: {summary.ignored}")
        print(" | ".join(parts))
        print(f"⏱️  Total time: {format_duration(total_seconds)}")
        print("=" * RULE_WIDTH)

    def print_saved(self, label: str, path: Path) -> None:
        print(f"📊 {label} saved to: {path}")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print a titled error block to stderr.

        `details` are indented below the message; `suggestion` is set off
        by a blank line.
        """
        lines = ["", self._c(RED, f"ERROR: {title}"), message]
        lines += [f"  {d}" for d in details or []]
        if suggestion:
            lines += ["", suggestion]
        print("\n".join(lines), file=sys.stderr)

    def print_warning(self, message: str) -> None:
        print(self._c(YELLOW, f"⚠️  Warning: {message}"), file=sys.stderr)

    def print_exception(self, exc: BaseException) -> None:
        """Traceback in debug mode, one line otherwise."""
        if self.debug:
            traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            print(self._c(RED, f"Error: {exc}"), file=sys.stderr)


_console: Optional[Console] = None


def get_console() -> Console:
    """Process-wide console; set_console() replaces it (the CLI does)."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    global _console
    _console = console
