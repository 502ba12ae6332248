"""Tests for the status registry and slot table."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from conftest import make_task
from ecobuild.model import TaskKind, TaskState
from ecobuild.registry import StatusRegistry, TransitionError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _registry(*names: str, slots: int = 0, clock=None) -> StatusRegistry:
    reg = StatusRegistry(slot_count=slots, clock=clock or FakeClock())
    for n in names:
        reg.register(make_task(n))
    return reg


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class TestRegistration:
    def test_initial_states(self):
        reg = StatusRegistry()
        assert reg.register(make_task("a")) is TaskState.PENDING
        assert reg.register(make_task("b", ignored=True)) is TaskState.IGNORED

    def test_duplicate_rejected(self):
        reg = _registry("a")
        with pytest.raises(ValueError, match="Duplicate"):
            reg.register(make_task("a"))

    def test_snapshot_keeps_registration_order(self):
        reg = _registry("c", "a", "b")
        assert [n for n, _ in reg.snapshot().states] == ["c", "a", "b"]


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


class TestTransitions:
    def test_forward_path(self):
        reg = _registry("a")
        reg.set_state("a", TaskState.WAITING)
        reg.set_state("a", TaskState.RUNNING)
        reg.set_state("a", TaskState.PASSED)
        assert reg.state("a") is TaskState.PASSED

    def test_pending_and_waiting_are_interchangeable(self):
        reg = _registry("a")
        reg.set_state("a", TaskState.WAITING)
        reg.set_state("a", TaskState.PENDING)
        assert reg.state("a") is TaskState.PENDING

    def test_no_step_back_to_waiting(self):
        reg = _registry("a")
        reg.set_state("a", TaskState.RUNNING)
        with pytest.raises(TransitionError):
            reg.set_state("a", TaskState.WAITING)

    @pytest.mark.parametrize("terminal", [TaskState.PASSED, TaskState.FAILED, TaskState.KNOWN_ISSUE])
    def test_terminal_is_final(self, terminal):
        reg = _registry("a")
        reg.set_state("a", TaskState.RUNNING)
        reg.set_state("a", terminal)
        for nxt in (TaskState.RUNNING, TaskState.PASSED, TaskState.FAILED):
            with pytest.raises(TransitionError):
                reg.set_state("a", nxt)

    def test_ignored_only_at_registration(self):
        reg = StatusRegistry()
        reg.register(make_task("a"))
        reg.register(make_task("b", ignored=True))
        with pytest.raises(TransitionError):
            reg.set_state("a", TaskState.IGNORED)
        with pytest.raises(TransitionError):
            reg.set_state("b", TaskState.RUNNING)

    def test_unknown_task(self):
        with pytest.raises(KeyError):
            _registry().set_state("ghost", TaskState.RUNNING)


# ---------------------------------------------------------------------------
# Slot table
# ---------------------------------------------------------------------------


class TestSlots:
    def test_occupy_marks_running_and_records_slot(self, tmp_path: Path):
        clock = FakeClock(10.0)
        reg = _registry("a", slots=2, clock=clock)
        reg.occupy(1, "a", tmp_path / "a.log")
        clock.now = 13.5
        snap = reg.snapshot()
        assert snap.state_of("a") is TaskState.RUNNING
        assert snap.slots[0] is None
        assert snap.slots[1].task_name == "a"
        assert snap.elapsed("a") == pytest.approx(3.5)

    def test_vacate_is_terminal_and_frees_slot(self, tmp_path: Path):
        reg = _registry("a", slots=1)
        reg.occupy(0, "a", tmp_path / "a.log")
        reg.vacate(0, "a", TaskState.FAILED, 4.2)
        snap = reg.snapshot()
        assert snap.state_of("a") is TaskState.FAILED
        assert snap.occupied() == []
        assert snap.durations["a"] == 4.2

    def test_held_slot_cannot_be_taken(self, tmp_path: Path):
        reg = _registry("a", "b", slots=1)
        reg.occupy(0, "a", tmp_path / "a.log")
        with pytest.raises(RuntimeError):
            reg.occupy(0, "b", tmp_path / "b.log")
        assert reg.state("b") is TaskState.PENDING

    def test_vacate_requires_holder(self, tmp_path: Path):
        reg = _registry("a", "b", slots=1)
        reg.occupy(0, "a", tmp_path / "a.log")
        reg.set_state("b", TaskState.RUNNING)
        with pytest.raises(RuntimeError):
            reg.vacate(0, "b", TaskState.PASSED)

    def test_vacate_needs_terminal_state(self, tmp_path: Path):
        reg = _registry("a", slots=1)
        reg.occupy(0, "a", tmp_path / "a.log")
        with pytest.raises(TransitionError):
            reg.vacate(0, "a", TaskState.WAITING)

    def test_out_of_range_slot(self, tmp_path: Path):
        reg = _registry("a", slots=2)
        with pytest.raises(IndexError):
            reg.occupy(2, "a", tmp_path / "a.log")

    def test_sequential_mode_has_no_slots(self, tmp_path: Path):
        reg = _registry("a")
        reg.occupy(None, "a", tmp_path / "a.log")
        reg.vacate(None, "a", TaskState.PASSED)
        assert reg.snapshot().slots == ()
        assert reg.all_terminal()


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


class TestConcurrentAccess:
    def test_snapshots_stay_consistent_under_load(self, tmp_path: Path):
        """Occupied slots always equal Running tasks, and no task is in two slots."""
        slot_count = 4
        per_slot = 50
        reg = StatusRegistry(slot_count=slot_count)
        names = [[f"t{s}-{i}" for i in range(per_slot)] for s in range(slot_count)]
        for group in names:
            for n in group:
                reg.register(make_task(n))

        done = threading.Event()
        problems = []

        def worker(slot: int) -> None:
            for n in names[slot]:
                reg.occupy(slot, n, tmp_path / f"{n}.log")
                reg.set_duration(n, 0.1)
                reg.vacate(slot, n, TaskState.PASSED if slot % 2 else TaskState.FAILED)

        def reader() -> None:
            while not done.is_set():
                snap = reg.snapshot()
                in_slots = [r.task_name for r in snap.occupied()]
                if sorted(in_slots) != sorted(snap.running()):
                    problems.append((in_slots, snap.running()))
                if len(in_slots) != len(set(in_slots)):
                    problems.append(("duplicate", in_slots))

        threads = [threading.Thread(target=worker, args=(s,)) for s in range(slot_count)]
        watcher = threading.Thread(target=reader)
        watcher.start()
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        done.set()
        watcher.join()

        assert problems == []
        assert reg.all_terminal()
        assert reg.any_failed()

    def test_all_terminal_for_subset(self, tmp_path: Path):
        reg = _registry("a", "b")
        reg.occupy(None, "a", tmp_path / "a.log")
        reg.vacate(None, "a", TaskState.KNOWN_ISSUE)
        assert reg.all_terminal(["a"])
        assert not reg.all_terminal()
        assert not reg.any_failed()

    def test_kinds_in_snapshot(self):
        reg = StatusRegistry()
        reg.register(make_task("x", kind=TaskKind.APP))
        assert reg.snapshot().kinds["x"] is TaskKind.APP
