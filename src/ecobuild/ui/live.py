"""Redraw-in-place status display for running builds.

Each frame is built as a list of lines that contain no newline and are
cut to the line width in terminal columns (escape sequences take none,
wide characters and emoji take two), so one list entry is exactly one
terminal row.
Before drawing a frame the renderer moves the cursor up and clears as
many rows as the previous frame printed. The row count is therefore
known without asking the terminal where the cursor is.

Frame layout
------------
    header            4 rows
    status table      1 row per task + 1 per kind group + 1 between groups
    blank             1 row
    (multi-slot only)
    separator         1 row
    per slot          1 title row + tail_lines rows (padded when idle)
"""

from __future__ import annotations

import logging
import re
import shutil
import sys
import threading
import unicodedata
from pathlib import Path
from typing import Callable, List, Optional, TextIO

from ..model import TaskKind, TaskState
from ..registry import RegistrySnapshot, StatusRegistry
from .console import CYAN, DIM, GREEN, RED, RESET, RULE_WIDTH, YELLOW

CLEAR_LINE = "\x1b[2K"
MOVE_UP = "\x1b[1A"

HEADER_ROWS = 4
SLOT_INDENT = "    "
NAME_WIDTH = 28
MIN_TAIL_ROWS = 3
TAIL_READ_BYTES = 64 * 1024

logger = logging.getLogger(__name__)

_ANSI = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")
_ANSI_PARTS = re.compile(r"(\x1b\[[0-9;?]*[ -/]*[@-~])")
_CONTROL = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")

EMOJI_PRESENTATION = "\ufe0f"
ELLIPSIS = "..."


def char_width(ch: str) -> int:
    """Terminal columns taken by one code point."""
    if ch == EMOJI_PRESENTATION:
        # turns the preceding narrow symbol into a two-column emoji
        return 1
    if unicodedata.combining(ch) or unicodedata.category(ch) in ("Mn", "Me", "Cf"):
        return 0
    return 2 if unicodedata.east_asian_width(ch) in ("W", "F") else 1


def display_width(text: str) -> int:
    """Columns `text` takes on screen; escape sequences count as zero."""
    return sum(char_width(ch) for ch in _ANSI.sub("", text))


def fit_row(row: str, width: int) -> str:
    """
    Cut `row` to at most `width` columns, ending in "..." when cut.

    Escape sequences are kept as they are; a row that was cut inside a
    coloured span gets a reset so the colour does not leak into the next row.
    """
    if display_width(row) <= width:
        return row
    budget = max(0, width - len(ELLIPSIS))
    out: List[str] = []
    used = 0
    styled = False
    full = False
    # split() with a group alternates text, escape, text, ...
    for i, part in enumerate(_ANSI_PARTS.split(row)):
        if full:
            break
        if i % 2:
            out.append(part)
            styled = True
            continue
        for ch in part:
            w = char_width(ch)
            if used + w > budget:
                full = True
                break
            out.append(ch)
            used += w
    out.append(ELLIPSIS[: max(0, width - used)])
    if styled:
        out.append(RESET)
    return "".join(out)


def clean_line(line: str, width: int) -> str:
    """One printable terminal row: no escapes, no control characters, at most `width` columns."""
    # a progress bar rewrites itself with \r; keep what would be visible
    line = line.rstrip("\r\n").split("\r")[-1]
    line = _ANSI.sub("", line).expandtabs(4)
    line = _CONTROL.sub("", line)
    return fit_row(line, width)


def tail_file(path: Path, count: int) -> Optional[List[str]]:
    """Last `count` lines of `path`, or None if it does not exist yet."""
    try:
        with path.open("rb") as f:
            f.seek(0, 2)
            size = f.tell()
            f.seek(max(0, size - TAIL_READ_BYTES))
            data = f.read()
    except FileNotFoundError:
        return None
    # only \n ends a row; \r segments are left for clean_line
    lines = data.decode("utf-8", errors="replace").split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    if size > TAIL_READ_BYTES and lines:
        # first line is probably cut in the middle
        lines = lines[1:]
    return lines[-count:] if count > 0 else []


def plan_tail_rows(terminal_rows: int, fixed_rows: int, slots: int, default: int) -> int:
    """
    Rows of log tail per slot.

    Fills the terminal below the status table when its height is known,
    never fewer than MIN_TAIL_ROWS; otherwise `default`.
    """
    if slots < 1:
        return 0
    if terminal_rows <= 0:
        return default
    available = max(slots * 4, terminal_rows - fixed_rows - 2)
    return max(MIN_TAIL_ROWS, available // slots - 1)


class LiveRenderer:
    """Polls a StatusRegistry and repaints a fixed-height frame."""

    def __init__(
        self,
        registry: StatusRegistry,
        *,
        title: str,
        version: str,
        out: Optional[TextIO] = None,
        tail_rows: int = 10,
        line_width: int = 100,
        interval: float = 1.0,
        show_slots: Optional[bool] = None,
        color: bool = True,
    ):
        self.registry = registry
        self.title = title
        self.version = version
        self.out = out or sys.stdout
        self.tail_rows = tail_rows
        self.line_width = line_width
        self.interval = interval
        self.show_slots = registry.slot_count > 0 if show_slots is None else show_slots
        self.color = color
        self.last_frame_rows = 0

    @classmethod
    def for_terminal(cls, registry: StatusRegistry, *, default_tail: int, line_width: int, **kwargs) -> LiveRenderer:
        """Size tail rows and line width to the current terminal."""
        size = shutil.get_terminal_size(fallback=(0, 0))
        width = min(line_width, size.columns - 1) if size.columns > 0 else line_width
        renderer = cls(registry, line_width=max(20, width), **kwargs)
        fixed = renderer.fixed_rows(registry.snapshot())
        renderer.tail_rows = plan_tail_rows(size.lines, fixed, registry.slot_count, default_tail)
        return renderer

    def _c(self, code: str, text: str) -> str:
        return f"{code}{text}{RESET}" if self.color else text

    # ------------------------------------------------------------------
    # Frame composition
    # ------------------------------------------------------------------

    def header(self) -> List[str]:
        rule = "=" * min(RULE_WIDTH, self.line_width)
        return [
            rule,
            f"🏗️  {self.title}",
            "🎯 Testing against version: " + self._c(CYAN, self.version),
            rule,
        ]

    def status_line(self, snap: RegistrySnapshot, name: str, state: TaskState) -> str:
        duration = snap.durations.get(name)
        done = f" ({duration:.1f}s)" if duration is not None else ""
        if state is TaskState.PENDING:
            text = self._c(DIM, "⏳ PENDING")
        elif state is TaskState.WAITING:
            text = self._c(CYAN, "⏳ WAITING...")
        elif state is TaskState.RUNNING:
            elapsed = snap.elapsed(name)
            running = f" ({int(elapsed)}s)" if elapsed is not None else ""
            text = self._c(YELLOW, "🔨 BUILDING..." + running)
        elif state is TaskState.PASSED:
            text = self._c(GREEN, "✅ PASSED") + done
        elif state is TaskState.FAILED:
            text = self._c(RED, "❌ FAILED") + done
        elif state is TaskState.KNOWN_ISSUE:
            text = self._c(YELLOW, "⚠️  KNOWN ISSUE") + done
        else:
            text = self._c(DIM, "⏭️  IGNORED")
        shown = name if len(name) <= NAME_WIDTH else name[: NAME_WIDTH - 3] + "..."
        return f"    {shown:<{NAME_WIDTH}} {text}"

    def status_table(self, snap: RegistrySnapshot) -> List[str]:
        lines: List[str] = []
        icons = {TaskKind.ADDON: "📦", TaskKind.APP: "🚀", TaskKind.SMOKE_TEST: "🔥"}
        for kind in (TaskKind.SMOKE_TEST, TaskKind.ADDON, TaskKind.APP):
            group = [(n, s) for n, s in snap.states if snap.kinds.get(n) is kind]
            if not group:
                continue
            if lines:
                lines.append("")
            lines.append("  " + self._c(CYAN, f"{icons[kind]} {kind.label}"))
            lines.extend(self.status_line(snap, n, s) for n, s in group)
        return lines

    def slot_region(self, snap: RegistrySnapshot) -> List[str]:
        lines = ["  " + self._c(CYAN, "─── Build Output " + "─" * max(0, min(40, self.line_width - 20)))]
        width = self.line_width - len(SLOT_INDENT)
        for index, record in enumerate(snap.slots):
            label = f"[Builder {index + 1}]"
            if record is None:
                lines.append("  " + self._c(DIM, f"▷ {label} (idle)"))
                lines.extend([""] * self.tail_rows)
                continue
            lines.append("  " + self._c(YELLOW, f"▶ {label} {record.task_name}"))
            tail = tail_file(record.log_file, self.tail_rows)
            if tail is None:
                body = [self._c(DIM, "(waiting for output...)")]
            else:
                body = [self._c(DIM, clean_line(t, width)) for t in tail]
            lines.extend(SLOT_INDENT + b for b in body)
            lines.extend([""] * (self.tail_rows - len(body)))
        return lines

    def compose(self, snap: RegistrySnapshot) -> List[str]:
        lines = self.header() + self.status_table(snap) + [""]
        if self.show_slots:
            lines += self.slot_region(snap)
        # a row wider than the terminal wraps and breaks the row count
        return [fit_row(line, self.line_width) for line in lines]

    def fixed_rows(self, snap: RegistrySnapshot) -> int:
        """Rows above the slot region."""
        groups = len({snap.kinds[n] for n, _ in snap.states})
        table = len(snap.states) + groups + max(0, groups - 1)
        return HEADER_ROWS + table + 1

    def frame_rows(self, snap: RegistrySnapshot) -> int:
        """Height of the frame for `snap`, computed from the layout alone."""
        rows = self.fixed_rows(snap)
        if self.show_slots:
            rows += 1 + len(snap.slots) * (1 + self.tail_rows)
        return rows

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    def clear(self) -> int:
        """Erase the previous frame. Returns the number of rows cleared."""
        cleared = self.last_frame_rows
        if cleared:
            self.out.write((MOVE_UP + CLEAR_LINE) * cleared)
        self.last_frame_rows = 0
        return cleared

    def draw(self, snap: Optional[RegistrySnapshot] = None) -> int:
        """Repaint in place. Returns the number of rows printed."""
        snap = snap if snap is not None else self.registry.snapshot()
        lines = self.compose(snap)
        expected = self.frame_rows(snap)
        if len(lines) != expected:
            logger.warning("frame has %d rows, layout says %d", len(lines), expected)
        self.clear()
        self.out.write("".join(line + "\n" for line in lines))
        self.out.flush()
        # what was printed is what the next frame clears
        self.last_frame_rows = len(lines)
        return len(lines)

    def detach(self) -> None:
        """Leave the current frame in the scrollback; the next draw starts below it."""
        self.last_frame_rows = 0

    def run(self, done: Callable[[], bool], stop: Optional[threading.Event] = None) -> None:
        """Redraw every `interval` seconds until done() is true, then draw once more."""
        stop = stop or threading.Event()
        while not done() and not stop.is_set():
            self.draw()
            stop.wait(self.interval)
        self.draw()
