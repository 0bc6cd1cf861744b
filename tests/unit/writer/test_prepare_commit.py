"""
Unit tests for the checkpoint drain and snapshot state.
"""

import asyncio

import pytest

from async_sink.writer import AsyncSinkWriter, AsyncSinkWriterConfig, CoroutineDestination


def small_config(**kwargs) -> AsyncSinkWriterConfig:
    params = dict(max_batch_size=2, max_in_flight_requests=1, max_buffered_requests=5)
    params.update(kwargs)
    return AsyncSinkWriterConfig(**params)


@pytest.mark.asyncio
async def test_drain_empty_writer_returns_immediately(identity, destination):
    writer = AsyncSinkWriter(identity, destination, small_config())
    assert await writer.prepare_commit(True) == []
    assert await writer.prepare_commit(False) == []
    assert destination.batches == []


@pytest.mark.asyncio
async def test_drain_with_flush_sends_partial_batch(identity, destination, settle):
    """Buffered entries below batch size are dispatched when flushing."""
    writer = AsyncSinkWriter(identity, destination, small_config())
    await writer.write("a")

    commit = asyncio.create_task(writer.prepare_commit(flush=True))
    await settle()
    assert destination.batches == [["a"]]
    assert not commit.done()

    destination.complete(0)
    await asyncio.wait_for(commit, timeout=1.0)
    assert writer.health().drained


@pytest.mark.asyncio
async def test_drain_without_flush_waits_for_in_flight(identity, destination, settle):
    writer = AsyncSinkWriter(identity, destination, small_config())
    await writer.write("a")
    await writer.write("b")

    commit = asyncio.create_task(writer.prepare_commit(flush=False))
    await settle()
    assert not commit.done()

    destination.complete(0)
    await asyncio.wait_for(commit, timeout=1.0)
    assert writer.in_flight == 0
    assert destination.batches == [["a", "b"]]


@pytest.mark.asyncio
async def test_drain_retries_failures_until_persisted(identity, settle):
    """Entries failing repeatedly are retried within the same drain."""
    failures_left = {"x": 3}
    persisted = []

    async def send(batch):
        failed = []
        for e in batch:
            if failures_left.get(e, 0) > 0:
                failures_left[e] -= 1
                failed.append(e)
            else:
                persisted.append(e)
        return failed

    writer = AsyncSinkWriter(identity, CoroutineDestination(send), small_config())
    for e in ("w", "x", "y"):
        await writer.write(e)

    await asyncio.wait_for(writer.prepare_commit(True), timeout=1.0)
    assert sorted(persisted) == ["w", "x", "y"]
    assert writer.buffered == 0
    assert writer.in_flight == 0


@pytest.mark.asyncio
async def test_snapshot_empty_after_drain(identity):
    writer = AsyncSinkWriter(
        identity, CoroutineDestination(lambda batch: asyncio.sleep(0, result=[])), small_config()
    )
    for i in range(7):
        await writer.write(i)
    await asyncio.wait_for(writer.prepare_commit(True), timeout=1.0)

    assert writer.snapshot_state() == []


@pytest.mark.asyncio
async def test_snapshot_returns_buffer_in_order(identity, destination):
    writer = AsyncSinkWriter(
        identity,
        destination,
        AsyncSinkWriterConfig(max_batch_size=5, max_in_flight_requests=1, max_buffered_requests=10),
    )
    for e in ("a", "b", "c"):
        await writer.write(e)

    state = writer.snapshot_state()
    assert state == ["a", "b", "c"]
    state.clear()
    assert writer.buffered == 3


@pytest.mark.asyncio
async def test_restore_from_snapshot(identity, destination, settle):
    """A snapshot restored verbatim is dispatched ahead of new writes."""
    first = AsyncSinkWriter(
        identity,
        destination,
        AsyncSinkWriterConfig(max_batch_size=5, max_in_flight_requests=1, max_buffered_requests=10),
    )
    for e in ("a", "b"):
        await first.write(e)
    state = first.snapshot_state()
    await first.close()

    restored = AsyncSinkWriter(
        identity, destination, small_config(), initial_state=state, writer_id="restored"
    )
    assert restored.snapshot_state() == ["a", "b"]

    await restored.write("c")
    assert destination.batches == [["a", "b"]]
    assert restored.snapshot_state() == ["c"]

    commit = asyncio.create_task(restored.prepare_commit())
    destination.complete(0)
    await settle()
    destination.complete(1)
    await asyncio.wait_for(commit, timeout=1.0)
    assert destination.batches == [["a", "b"], ["c"]]


@pytest.mark.asyncio
async def test_time_based_flush_lets_non_flushing_drain_finish(identity):
    """With max_time_in_buffer_ms the buffer timer dispatches partial batches."""
    batches = []

    async def send(batch):
        batches.append(list(batch))
        return []

    writer = AsyncSinkWriter(
        identity,
        CoroutineDestination(send),
        AsyncSinkWriterConfig(
            max_batch_size=10,
            max_in_flight_requests=1,
            max_buffered_requests=100,
            max_time_in_buffer_ms=20,
        ),
    )
    for i in range(3):
        await writer.write(i)

    await asyncio.sleep(0.1)
    assert batches == [[0, 1, 2]]

    await writer.write(3)
    await asyncio.wait_for(writer.prepare_commit(flush=False), timeout=1.0)
    assert batches == [[0, 1, 2], [3]]


@pytest.mark.asyncio
async def test_expired_timer_flushes_as_soon_as_slot_frees(identity, destination, settle):
    """A buffer timer that fires with no free slot dispatches on the next completion."""
    writer = AsyncSinkWriter(identity, destination, small_config(max_time_in_buffer_ms=50))
    await writer.write("a")
    await writer.write("b")  # dispatched, slot taken
    await writer.write("c")

    await asyncio.sleep(0.08)  # timer expired while the slot was busy
    assert destination.batches == [["a", "b"]]

    destination.complete(0)
    await settle()
    assert destination.batches == [["a", "b"], ["c"]]
    assert writer.buffered == 0


@pytest.mark.asyncio
async def test_pending_timed_flush_cleared_when_buffer_drains(identity, destination, settle):
    """Entries written after a size-triggered drain are not flushed early."""
    writer = AsyncSinkWriter(
        identity,
        destination,
        small_config(max_in_flight_requests=2, max_time_in_buffer_ms=50),
    )
    await writer.write("a")
    await writer.write("b")  # batch 0
    await writer.write("c")
    await writer.write("d")  # batch 1, both slots taken

    await writer.write("e")
    await asyncio.sleep(0.08)  # timer expires with no free slot

    destination.complete(0)
    await settle()
    assert destination.batches[-1] == ["e"]

    # buffer empty now; a new entry must wait for its own timer
    await writer.write("f")
    destination.complete(1)
    await settle()
    assert writer.snapshot_state() == ["f"]
