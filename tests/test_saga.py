# tests/test_saga.py
import pytest
from kungfu import Error, LazyCoroResult, Ok

from storefront import saga as S


def ok(value):
    return LazyCoroResult.pure(value)


def fail(error):
    async def run():
        return Error(error)

    return LazyCoroResult(run)


async def test_successful_chain_records_compensators():
    undone = []

    async def undo(value):
        undone.append(value)

    saga = S.step(ok(1), undo, name="one").then(lambda v: S.step(ok(v + 1), undo, name="two"))
    match await S.run(saga):
        case Ok(done):
            assert done.value == 2
            assert (done.steps_executed, done.compensators_recorded) == (2, 2)
        case Error(e):
            raise AssertionError(e)
    assert undone == []


async def test_failure_rolls_back_in_reverse():
    undone = []

    async def undo(value):
        undone.append(value)

    saga = (
        S.step(ok("persisted"), undo, name="persist")
        .then(lambda _: S.step(ok("reserved"), undo, name="reserve"))
        .then(lambda _: S.step(fail("provider down"), name="provider"))
    )
    match await S.run(saga):
        case Error(failed):
            assert failed.error == "provider down"
            assert failed.step_failed == 3
            assert (failed.compensators_run, failed.rollback_complete) == (2, True)
        case Ok(done):
            raise AssertionError(done)
    assert undone == ["reserved", "persisted"]


async def test_failed_compensator_marks_rollback_incomplete():
    async def broken(value):
        raise RuntimeError("cannot undo")

    saga = S.step(ok(1), broken).then(lambda _: S.step(fail("boom")))
    failed = (await S.run(saga)).error
    assert failed.compensators_failed == 1
    assert not failed.rollback_complete


async def test_from_async_maps_exceptions():
    async def explode():
        raise ValueError("bad row")

    failed = (await S.run(S.from_async(explode, on_error=lambda e: f"wrapped: {e}"))).error
    assert failed.error == "wrapped: bad row"


async def test_escaping_exception_still_compensates():
    undone = []

    async def undo(value):
        undone.append(value)

    def explode(_):
        raise KeyError("lost")

    saga = S.step(ok("persisted"), undo).then(explode)
    with pytest.raises(KeyError):
        await S.run(saga)
    assert undone == ["persisted"]
