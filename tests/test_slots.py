"""Tests for the builder slot pool."""

from __future__ import annotations

import threading

import pytest

from ecobuild.slots import SlotPool


class TestSlotPool:
    def test_hands_out_each_index_once(self):
        pool = SlotPool(3)
        taken = {pool.acquire() for _ in range(3)}
        assert taken == {0, 1, 2}
        assert pool.free_count() == 0

    def test_release_makes_slot_available(self):
        pool = SlotPool(1)
        slot = pool.acquire()
        pool.release(slot)
        assert pool.free_count() == 1
        assert pool.acquire() == slot

    def test_double_release_is_ignored(self):
        pool = SlotPool(2)
        slot = pool.acquire()
        pool.release(slot)
        pool.release(slot)
        assert pool.free_count() == 2

    def test_unknown_release_is_ignored(self):
        pool = SlotPool(2)
        pool.release(7)
        assert pool.free_count() == 2

    def test_context_manager_releases_on_error(self):
        pool = SlotPool(1)
        with pytest.raises(RuntimeError):
            with pool.slot():
                raise RuntimeError("boom")
        assert pool.free_count() == 1

    def test_exhausted_pool_waits_for_release(self):
        pool = SlotPool(1)
        first = pool.acquire()
        got = []

        t = threading.Thread(target=lambda: got.append(pool.acquire()))
        t.start()
        t.join(timeout=0.1)
        assert t.is_alive()
        assert got == []

        pool.release(first)
        t.join(timeout=5)
        assert got == [first]

    def test_size_must_be_positive(self):
        with pytest.raises(ValueError):
            SlotPool(0)
