"""Tests for the Mutation Gate: table lock plus create/clean slots."""

import asyncio

import pytest

from tagspine.core.errors import CleanBusyError, CreateBusyError
from tagspine.directory.gate import ExclusiveSlot, MutationGate


class TestExclusiveSlot:
    def test_try_acquire_is_non_blocking(self):
        slot = ExclusiveSlot("create", CreateBusyError)
        assert slot.try_acquire() is True
        assert slot.try_acquire() is False
        assert slot.held

    def test_release_once(self):
        slot = ExclusiveSlot("create")
        slot.try_acquire()
        assert slot.release() is True
        assert slot.release() is False
        assert not slot.held

    def test_hold_raises_slot_error_when_taken(self):
        slot = ExclusiveSlot("clean", CleanBusyError)
        with slot.hold():
            with pytest.raises(CleanBusyError):
                with slot.hold():
                    pass
            assert slot.held
        assert not slot.held

    def test_hold_releases_on_error(self):
        slot = ExclusiveSlot("create", CreateBusyError)
        with pytest.raises(RuntimeError):
            with slot.hold():
                raise RuntimeError("boom")
        assert not slot.held

    def test_failed_acquire_does_not_release_owner(self):
        slot = ExclusiveSlot("create", CreateBusyError)
        with slot.hold():
            with pytest.raises(CreateBusyError):
                with slot.hold():
                    pass
            assert slot.held


class TestMutationGate:
    def test_slots_are_independent(self):
        gate = MutationGate()
        with gate.creating():
            with gate.cleaning():
                assert gate.create_slot.held
                assert gate.clean_slot.held

    @pytest.mark.asyncio
    async def test_table_lock_serializes(self):
        gate = MutationGate()
        order = []

        async def critical(name):
            async with gate.mutation():
                order.append(f"{name}-in")
                await asyncio.sleep(0)
                order.append(f"{name}-out")

        await asyncio.gather(critical("a"), critical("b"))
        assert order == ["a-in", "a-out", "b-in", "b-out"]
        assert not gate.locked

    @pytest.mark.asyncio
    async def test_table_lock_released_on_error(self):
        gate = MutationGate()
        with pytest.raises(RuntimeError):
            async with gate.mutation():
                raise RuntimeError("save failed")
        assert not gate.locked
