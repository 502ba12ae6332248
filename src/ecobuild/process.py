# process.py
from __future__ import annotations

import os
import signal
import subprocess
import threading
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence

# Returned instead of an exit code when a command ran past its timeout.
TIMED_OUT = -1


def _kill_group(proc: subprocess.Popen) -> None:
    """Kill the process and everything it spawned."""
    try:
        if os.name == "posix":
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except (ProcessLookupError, PermissionError):
        # already gone
        pass


def run_logged(
    cmd: Sequence[str],
    *,
    cwd: str | Path,
    log_file: str | Path,
    timeout: Optional[float] = None,
    env: Optional[Mapping[str, str]] = None,
    echo: Optional[Callable[[str], None]] = None,
) -> int:
    """
    Run `cmd`, appending stdout+stderr to `log_file` line by line.

    Args:
        cmd: argv list (no shell unless the caller passes one explicitly)
        cwd: working directory
        log_file: appended to, never truncated here
        timeout: seconds before the whole process group is killed
        env: extra environment variables layered over os.environ
        echo: called with each output line (without newline), e.g. to
              stream a sequential build to the terminal

    Returns:
        The exit code, or TIMED_OUT.

    Raises:
        FileNotFoundError: if the executable or cwd does not exist.
    """
    run_env = os.environ.copy()
    run_env.update(env or {})

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    timed_out = threading.Event()

    with log_path.open("a", encoding="utf-8", errors="replace") as log:
        proc = subprocess.Popen(
            list(cmd),
            cwd=str(cwd),
            env=run_env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            start_new_session=(os.name == "posix"),
        )

        def _expire() -> None:
            timed_out.set()
            _kill_group(proc)

        timer = threading.Timer(timeout, _expire) if timeout else None
        if timer is not None:
            timer.daemon = True
            timer.start()

        try:
            assert proc.stdout is not None
            for line in proc.stdout:
                log.write(line)
                log.flush()
                if echo is not None:
                    echo(line.rstrip("\r\n"))
            proc.wait()
        finally:
            if timer is not None:
                timer.cancel()
            if proc.poll() is None:
                _kill_group(proc)
                proc.wait()

    if timed_out.is_set():
        with log_path.open("a", encoding="utf-8") as log:
            log.write(f"\n*** killed after {timeout:g}s timeout ***\n")
        return TIMED_OUT
    return proc.returncode


def run_capture(
    cmd: Sequence[str],
    *,
    cwd: str | Path,
    timeout: Optional[float] = 30,
) -> subprocess.CompletedProcess:
    """Small helper for commands whose stdout we need (e.g. git symbolic-ref)."""
    return subprocess.run(
        list(cmd),
        cwd=str(cwd),
        text=True,
        capture_output=True,
        check=False,
        timeout=timeout,
        stdin=subprocess.DEVNULL,
    )
