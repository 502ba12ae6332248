# registry.py
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .model import BuildTask, SlotRecord, TaskKind, TaskState


class TransitionError(ValueError):
    """A state change that would move a task backwards or out of a terminal state."""


@dataclass(frozen=True)
class RegistrySnapshot:
    """
    Consistent copy of the registry and slot table at one instant.

    `states` keeps registration order. `slots` has one entry per slot
    index; None means the slot is idle.
    """
    states: Tuple[Tuple[str, TaskState], ...]
    kinds: Dict[str, TaskKind]
    durations: Dict[str, float]
    started_at: Dict[str, float]
    slots: Tuple[Optional[SlotRecord], ...]
    taken_at: float

    def state_of(self, name: str) -> TaskState:
        return dict(self.states)[name]

    def running(self) -> List[str]:
        return [n for n, s in self.states if s is TaskState.RUNNING]

    def occupied(self) -> List[SlotRecord]:
        return [s for s in self.slots if s is not None]

    def elapsed(self, name: str) -> Optional[float]:
        start = self.started_at.get(name)
        if start is None:
            return None
        return max(0.0, self.taken_at - start)


class StatusRegistry:
    """
    Shared task-state table plus the builder slot table.

    Every mutation and every snapshot goes through one lock, so a reader
    never sees a slot pointing at a task whose state disagrees with it.
    Workers only ever write their own task's entry.
    """

    def __init__(self, slot_count: int = 0, clock: Callable[[], float] = time.monotonic):
        if slot_count < 0:
            raise ValueError("slot_count must be >= 0")
        self._lock = threading.Lock()
        self._clock = clock
        self._states: Dict[str, TaskState] = {}
        self._kinds: Dict[str, TaskKind] = {}
        self._durations: Dict[str, float] = {}
        self._started: Dict[str, float] = {}
        self._slots: List[Optional[SlotRecord]] = [None] * slot_count

    @property
    def slot_count(self) -> int:
        return len(self._slots)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, task: BuildTask) -> TaskState:
        initial = TaskState.IGNORED if task.ignored else TaskState.PENDING
        with self._lock:
            if task.name in self._states:
                raise ValueError(f"Duplicate task name: {task.name}")
            self._states[task.name] = initial
            self._kinds[task.name] = task.kind
        return initial

    def register_all(self, tasks: Iterable[BuildTask]) -> None:
        for t in tasks:
            self.register(t)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def _transition(self, name: str, new: TaskState) -> None:
        # caller holds the lock
        try:
            current = self._states[name]
        except KeyError:
            raise KeyError(f"Unknown task: {name}") from None
        if new is TaskState.IGNORED:
            raise TransitionError(f"{name}: ignored is only valid at registration")
        if current.terminal or new.rank < current.rank:
            raise TransitionError(f"{name}: {current.value} -> {new.value} not allowed")
        self._states[name] = new

    def set_state(self, name: str, state: TaskState) -> None:
        with self._lock:
            self._transition(name, state)

    def set_duration(self, name: str, seconds: float) -> None:
        with self._lock:
            if name not in self._states:
                raise KeyError(f"Unknown task: {name}")
            self._durations[name] = seconds

    def occupy(self, slot: Optional[int], name: str, log_file: Path) -> None:
        """Mark `name` Running and, when a slot is given, place it in that slot."""
        with self._lock:
            if slot is not None:
                self._check_slot(slot)
                held = self._slots[slot]
                if held is not None:
                    raise RuntimeError(f"slot {slot} already held by {held.task_name}")
            self._transition(name, TaskState.RUNNING)
            self._started[name] = self._clock()
            if slot is not None:
                self._slots[slot] = SlotRecord(slot, name, Path(log_file))

    def vacate(
        self,
        slot: Optional[int],
        name: str,
        state: TaskState,
        duration: Optional[float] = None,
    ) -> None:
        """Record the terminal state and free the slot in one step."""
        if not state.terminal:
            raise TransitionError(f"{name}: {state.value} is not a terminal state")
        with self._lock:
            if slot is not None:
                self._check_slot(slot)
                held = self._slots[slot]
                if held is None or held.task_name != name:
                    raise RuntimeError(f"slot {slot} is not held by {name}")
            self._transition(name, state)
            if duration is not None:
                self._durations[name] = duration
            if slot is not None:
                self._slots[slot] = None

    def _check_slot(self, slot: int) -> None:
        if not 0 <= slot < len(self._slots):
            raise IndexError(f"slot {slot} out of range 0..{len(self._slots) - 1}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def state(self, name: str) -> TaskState:
        with self._lock:
            return self._states[name]

    def snapshot(self) -> RegistrySnapshot:
        with self._lock:
            return RegistrySnapshot(
                states=tuple(self._states.items()),
                kinds=dict(self._kinds),
                durations=dict(self._durations),
                started_at=dict(self._started),
                slots=tuple(self._slots),
                taken_at=self._clock(),
            )

    def all_terminal(self, names: Optional[Iterable[str]] = None) -> bool:
        with self._lock:
            keys = list(names) if names is not None else list(self._states)
            return all(self._states[n].terminal for n in keys)

    def any_failed(self) -> bool:
        with self._lock:
            return any(s is TaskState.FAILED for s in self._states.values())
