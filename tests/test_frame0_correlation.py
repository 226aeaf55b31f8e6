import asyncio

import pytest

from frame0_correlation import CorrelationTable, MonotonicIdGenerator, PendingRequest
from frame0_errors import ConnectionLostError, DuplicateIdError


def _pending(request_id, command="page:get"):
    loop = asyncio.get_running_loop()
    return PendingRequest(id=request_id, command=command, future=loop.create_future())


def test_monotonic_ids():
    generate = MonotonicIdGenerator()
    assert [generate(), generate(), generate()] == ["req_1", "req_2", "req_3"]

    custom = MonotonicIdGenerator(prefix="cmd-", start=10)
    assert custom() == "cmd-10"


@pytest.mark.asyncio
async def test_register_rejects_duplicate_id():
    table = CorrelationTable()
    table.register(_pending("r1"))

    with pytest.raises(DuplicateIdError) as exc_info:
        table.register(_pending("r1"))

    assert exc_info.value.request_id == "r1"
    assert len(table) == 1


@pytest.mark.asyncio
async def test_resolve_settles_once_and_removes():
    table = CorrelationTable()
    pending = _pending("r1")
    table.register(pending)

    assert table.resolve("r1", {"id": "shp_1"}) is True
    assert "r1" not in table
    assert pending.future.result() == {"id": "shp_1"}

    assert table.resolve("r1", {"id": "other"}) is False
    assert table.reject("r1", RuntimeError("late")) is False
    assert pending.future.result() == {"id": "shp_1"}


@pytest.mark.asyncio
async def test_reject_settles_with_error():
    table = CorrelationTable()
    pending = _pending("r1")
    table.register(pending)

    error = RuntimeError("boom")
    assert table.reject("r1", error) is True
    assert pending.future.exception() is error
    assert len(table) == 0


@pytest.mark.asyncio
async def test_evict_removes_without_settling():
    table = CorrelationTable()
    pending = _pending("r1")
    pending.timer = asyncio.get_running_loop().call_later(60, lambda: None)
    table.register(pending)

    assert table.evict("r1") is pending
    assert not pending.future.done()
    assert pending.timer is None
    assert table.evict("r1") is None


@pytest.mark.asyncio
async def test_drain_all_rejects_everything_and_clears():
    table = CorrelationTable()
    entries = [_pending(f"r{i}") for i in range(3)]
    for entry in entries:
        table.register(entry)

    count = table.drain_all(lambda p: ConnectionLostError("lost", command=p.command, request_id=p.id))

    assert count == 3
    assert len(table) == 0
    assert table.ids() == []
    for entry in entries:
        assert isinstance(entry.future.exception(), ConnectionLostError)
        assert entry.future.exception().request_id == entry.id


@pytest.mark.asyncio
async def test_drain_all_keeps_first_settlement():
    table = CorrelationTable()
    settled = _pending("r1")
    open_entry = _pending("r2")
    table.register(settled)
    table.register(open_entry)
    settled.future.set_result("won the race")

    count = table.drain_all(lambda p: ConnectionLostError("lost"))

    assert count == 1
    assert settled.future.result() == "won the race"
    assert isinstance(open_entry.future.exception(), ConnectionLostError)
