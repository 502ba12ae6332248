"""Tests for the logged subprocess runner."""

from __future__ import annotations

import os
import sys
import time
from pathlib import Path

import pytest

from ecobuild.process import TIMED_OUT, run_capture, run_logged


def _py(code: str) -> list[str]:
    return [sys.executable, "-c", code]


class TestRunLogged:
    def test_zero_exit_and_output_logged(self, tmp_path: Path):
        log = tmp_path / "out" / "build.log"
        rc = run_logged(_py("print('hello'); print('world')"), cwd=tmp_path, log_file=log)
        assert rc == 0
        assert log.read_text().splitlines() == ["hello", "world"]

    def test_stderr_goes_to_the_same_log(self, tmp_path: Path):
        log = tmp_path / "build.log"
        run_logged(_py("import sys; sys.stderr.write('oops\\n')"), cwd=tmp_path, log_file=log)
        assert "oops" in log.read_text()

    def test_non_zero_exit_is_returned(self, tmp_path: Path):
        rc = run_logged(_py("raise SystemExit(1)"), cwd=tmp_path, log_file=tmp_path / "b.log")
        assert rc == 1
        assert rc != TIMED_OUT

    def test_log_is_appended(self, tmp_path: Path):
        log = tmp_path / "build.log"
        log.write_text("earlier\n")
        run_logged(_py("print('later')"), cwd=tmp_path, log_file=log)
        assert log.read_text().splitlines() == ["earlier", "later"]

    def test_echo_receives_each_line(self, tmp_path: Path):
        seen = []
        run_logged(_py("for i in range(3): print(f'line {i}')"), cwd=tmp_path, log_file=tmp_path / "b.log", echo=seen.append)
        assert seen == ["line 0", "line 1", "line 2"]

    def test_env_is_layered(self, tmp_path: Path):
        log = tmp_path / "b.log"
        run_logged(_py("import os; print(os.environ['ECOBUILD_TEST_VAR'])"), cwd=tmp_path, log_file=log, env={"ECOBUILD_TEST_VAR": "yes"})
        assert log.read_text().strip() == "yes"

    def test_missing_executable_raises(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            run_logged(["definitely-not-a-real-command-xyz"], cwd=tmp_path, log_file=tmp_path / "b.log")


class TestTimeout:
    def test_timeout_kills_and_reports_sentinel(self, tmp_path: Path):
        log = tmp_path / "b.log"
        code = "import os, time; print(os.getpid(), flush=True); time.sleep(60)"
        started = time.monotonic()
        rc = run_logged(_py(code), cwd=tmp_path, log_file=log, timeout=0.5)
        elapsed = time.monotonic() - started

        assert rc == TIMED_OUT
        assert elapsed < 30
        text = log.read_text()
        assert "timeout" in text

        pid = int(text.splitlines()[0])
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)

    def test_fast_command_is_not_a_timeout(self, tmp_path: Path):
        rc = run_logged(_py("print('ok')"), cwd=tmp_path, log_file=tmp_path / "b.log", timeout=30)
        assert rc == 0


class TestRunCapture:
    def test_captures_stdout(self, tmp_path: Path):
        proc = run_capture(_py("print('captured')"), cwd=tmp_path)
        assert proc.returncode == 0
        assert proc.stdout.strip() == "captured"
