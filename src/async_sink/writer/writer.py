"""
AsyncSinkWriter: buffering, batching and drain engine for arbitrary destinations.

Elements are converted to request entries, buffered, and handed to a
``Destination`` in batches with bounded concurrency. Entries the destination
reports as failed are requeued at the head of the buffer. ``prepare_commit``
waits until nothing is buffered or in flight, which is the point where a
checkpoint can safely be taken (at-least-once).

All state lives on the asyncio loop the writer is first used from. Nothing is
locked; completions from other threads are marshalled onto that loop.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, List, Optional

from loguru import logger

from async_sink.metrics.registry import metrics_registry

from .buffer import RequestBuffer
from .completion import RequestResult
from .config import AsyncSinkWriterConfig
from .errors import (
    DestinationError,
    InFlightTimeoutError,
    WriterClosedError,
    WriterConfigError,
)
from .feedback import BackpressureLevel, FeedbackBus, FeedbackEvent, feedback_bus
from .in_flight import InFlightTracker
from .types import Destination, ElementConverter, InputT, RequestEntryT, WriterContext


@dataclass(frozen=True)
class WriterHealth:
    """Point-in-time view of a writer for health checks and logging."""

    writer_id: str
    buffered: int
    max_buffered: int
    in_flight: int
    max_in_flight: int
    closed: bool
    failed: bool

    @property
    def drained(self) -> bool:
        return self.buffered == 0 and self.in_flight == 0


class AsyncSinkWriter(Generic[InputT, RequestEntryT]):
    """Generic asynchronous batching writer.

    Example:
        writer = AsyncSinkWriter[Event, dict](
            element_converter=lambda e, ctx: e.to_record(),
            destination=CoroutineDestination(put_records),
            config=AsyncSinkWriterConfig(max_batch_size=500, max_buffered_requests=10_000),
            writer_id="events-0",
        )
        async with writer:
            for event in events:
                await writer.write(event)
            await writer.prepare_commit()  # checkpoint boundary
            state = writer.snapshot_state()
    """

    def __init__(
        self,
        element_converter: ElementConverter[InputT, RequestEntryT],
        destination: Destination[RequestEntryT],
        config: Optional[AsyncSinkWriterConfig] = None,
        *,
        initial_state: Optional[Iterable[RequestEntryT]] = None,
        writer_id: str = "default",
        feedback: Optional[FeedbackBus] = None,
    ):
        if element_converter is None:
            raise WriterConfigError("element_converter is required")
        if destination is None:
            raise WriterConfigError("destination is required")

        self._cfg = config or AsyncSinkWriterConfig()
        self._converter = element_converter
        self._destination = destination
        self._writer_id = writer_id
        self._feedback = feedback

        self._buffer: RequestBuffer[RequestEntryT] = RequestBuffer(
            self._cfg.max_buffered_requests, initial_state
        )
        self._in_flight: InFlightTracker[RequestEntryT] = InFlightTracker(
            self._cfg.max_in_flight_requests
        )

        # bound lazily to the first running loop that uses the writer
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._waiters: list[asyncio.Future[None]] = []
        self._timer: Optional[asyncio.TimerHandle] = None
        # timer expired while every slot was taken; next completion flushes
        self._timed_flush_pending = False
        self._failure: Optional[DestinationError] = None
        self._closed = False

        m = metrics_registry
        self._m_written = m.entries_written_total.labels(writer=writer_id)
        self._m_batches = m.batches_dispatched_total.labels(writer=writer_id)
        self._m_requeued = m.entries_requeued_total.labels(writer=writer_id)
        self._m_batch_size = m.batch_size.labels(writer=writer_id)
        self._m_latency = m.request_latency_ms.labels(writer=writer_id)
        self._m_buffered = m.buffered_entries.labels(writer=writer_id)
        self._m_in_flight = m.in_flight_requests.labels(writer=writer_id)

        if self._buffer:
            logger.info(f"Writer {writer_id} restored {len(self._buffer)} entries from state")
        self._update_gauges()

    # --------------- context management

    async def __aenter__(self) -> "AsyncSinkWriter[InputT, RequestEntryT]":
        self._bind_loop()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # --------------- properties

    @property
    def writer_id(self) -> str:
        return self._writer_id

    @property
    def config(self) -> AsyncSinkWriterConfig:
        return self._cfg

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    @property
    def in_flight(self) -> int:
        return self._in_flight.count

    # --------------- public API

    async def write(self, element: InputT, context: Optional[WriterContext] = None) -> None:
        """Convert and buffer one element, dispatching full batches.

        Suspends while the buffer is full (flushing to make room) and while
        every in-flight slot is taken. Never drops the element.
        """
        self._bind_loop()
        self._check_usable()

        # HARD/OK are only published when the full buffer actually blocks the caller
        blocked = False
        while self._buffer.is_full:
            if not blocked and not self._in_flight.has_capacity():
                blocked = True
                self._backpressure_wait("buffer_full")
                await self._publish(BackpressureLevel.HARD, "buffer_full")
            await self._flush()
        if blocked:
            await self._publish(BackpressureLevel.OK, "recovered")

        entry = self._converter(element, context)
        was_empty = not self._buffer
        self._buffer.append(entry)
        self._m_written.inc()
        if was_empty:
            self._arm_timer()

        while len(self._buffer) >= self._cfg.max_batch_size:
            await self._flush()
        self._update_gauges()

    async def prepare_commit(self, flush: bool = True) -> List[Any]:
        """Block until the buffer is empty and no batch is in flight.

        Args:
            flush: Actively dispatch buffered entries. Without it the writer
                only waits for completions (and the buffer timer, if any).

        Returns:
            An empty list; a commit carries no data of its own.
        """
        self._bind_loop()
        self._check_usable()
        logger.debug(
            f"Writer {self._writer_id} draining: buffered={len(self._buffer)} "
            f"in_flight={self._in_flight.count} flush={flush}"
        )

        while self._in_flight.count > 0 or self._buffer:
            if flush and self._buffer and self._in_flight.has_capacity():
                self._dispatch_batch()
                continue
            await self._wait_for_change()

        self._update_gauges()
        logger.debug(f"Writer {self._writer_id} drained")
        return []

    def snapshot_state(self) -> List[RequestEntryT]:
        """Buffered entries, head first, to persist with the checkpoint.

        In-flight entries are not included; take the snapshot after
        prepare_commit so there are none.
        """
        return self._buffer.snapshot()

    async def close(self) -> None:
        """Release timers and wake blocked callers. Does not drain."""
        if self._closed:
            return
        self._closed = True
        self._cancel_timer()

        abandoned = self._in_flight.clear()
        if abandoned or self._buffer:
            logger.warning(
                f"Writer {self._writer_id} closed with {len(self._buffer)} buffered entries "
                f"and {len(abandoned)} in-flight batches"
            )
        self._notify()
        self._update_gauges()
        logger.info(f"Writer {self._writer_id} closed")

    def health(self) -> WriterHealth:
        return WriterHealth(
            writer_id=self._writer_id,
            buffered=len(self._buffer),
            max_buffered=self._cfg.max_buffered_requests,
            in_flight=self._in_flight.count,
            max_in_flight=self._cfg.max_in_flight_requests,
            closed=self._closed,
            failed=self._failure is not None,
        )

    # --------------- batch formation & dispatch

    async def _flush(self) -> None:
        if not self._in_flight.has_capacity():
            self._backpressure_wait("in_flight_limit")
            await self._publish(BackpressureLevel.SOFT, "in_flight_limit")
            await self._wait_until(self._in_flight.has_capacity)
        self._dispatch_batch()

    def _dispatch_batch(self) -> None:
        self._check_usable()
        batch = self._buffer.take(self._cfg.max_batch_size)
        if not self._buffer:
            self._timed_flush_pending = False
        if not batch:
            return

        loop = self._bind_loop()
        request = self._in_flight.open(batch)
        if self._cfg.request_timeout_sec is not None:
            request.timeout_handle = loop.call_later(
                self._cfg.request_timeout_sec, self._expire_request, request.batch_id
            )
        result = RequestResult(loop, request.batch_id, self._complete_request, self._fail_request)

        self._m_batches.inc()
        self._m_batch_size.observe(len(batch))
        logger.debug(
            f"Writer {self._writer_id} dispatching batch {request.batch_id} "
            f"({len(batch)} entries, in_flight={self._in_flight.count})"
        )

        try:
            self._destination.submit_request_entries(batch, result)
        except Exception as exc:
            self._in_flight.complete(request.batch_id)
            error = DestinationError(
                f"submit_request_entries failed for batch {request.batch_id}: {exc}",
                batch_id=request.batch_id,
            )
            self._set_failure(error)
            raise error from exc
        finally:
            self._update_gauges()

    # --------------- completion handling (always on the writer loop)

    def _complete_request(self, batch_id: int, failed_entries: List[RequestEntryT]) -> None:
        if self._closed:
            logger.debug(f"Writer {self._writer_id} closed, ignoring completion of batch {batch_id}")
            return
        request = self._in_flight.complete(batch_id)
        if request is None:
            logger.warning(
                f"Writer {self._writer_id} ignoring completion for unknown or "
                f"already completed batch {batch_id}"
            )
            return

        self._m_latency.observe(request.age_ms)
        if failed_entries:
            was_empty = not self._buffer
            requeued = self._buffer.prepend_all(failed_entries)
            self._m_requeued.inc(requeued)
            logger.debug(
                f"Writer {self._writer_id} requeued {requeued}/{len(request.entries)} "
                f"entries of batch {batch_id}"
            )
            if was_empty:
                self._arm_timer()

        if self._timed_flush_pending and self._buffer:
            self._timed_flush_pending = False
            self._timed_flush()

        self._update_gauges()
        self._notify()

    def _fail_request(self, batch_id: int, exc: BaseException) -> None:
        request = self._in_flight.complete(batch_id)
        if request is None:
            logger.warning(
                f"Writer {self._writer_id} ignoring failure for unknown or "
                f"already completed batch {batch_id}: {exc!r}"
            )
            return

        error = DestinationError(
            f"Destination failed batch {batch_id} ({len(request.entries)} entries): {exc}",
            batch_id=batch_id,
        )
        error.__cause__ = exc
        self._set_failure(error)

    def _expire_request(self, batch_id: int) -> None:
        request = self._in_flight.complete(batch_id)
        if request is None:
            return
        self._set_failure(
            InFlightTimeoutError(
                f"Batch {batch_id} ({len(request.entries)} entries) not completed within "
                f"{self._cfg.request_timeout_sec}s",
                batch_id=batch_id,
            )
        )

    def _set_failure(self, error: DestinationError) -> None:
        if self._failure is None:
            self._failure = error
            logger.error(f"Writer {self._writer_id} failed: {error}")
        self._cancel_timer()
        self._update_gauges()
        self._notify()

    # --------------- time-based flush

    def _arm_timer(self) -> None:
        interval_ms = self._cfg.max_time_in_buffer_ms
        if interval_ms is None or self._timer is not None or self._loop is None or self._closed:
            return
        self._timer = self._loop.call_later(interval_ms / 1000.0, self._on_buffer_timeout)

    def _cancel_timer(self) -> None:
        self._timed_flush_pending = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_buffer_timeout(self) -> None:
        self._timer = None
        if self._closed or self._failure is not None or not self._buffer:
            return

        if not self._in_flight.has_capacity():
            self._timed_flush_pending = True
            logger.debug(
                f"Writer {self._writer_id} buffer timer expired with no free slot, "
                f"flushing on next completion"
            )
            return
        self._timed_flush()

    def _timed_flush(self) -> None:
        """Dispatch one batch for the buffer timer; must have a free slot."""
        logger.debug(f"Writer {self._writer_id} time-based flush ({len(self._buffer)} buffered)")
        try:
            self._dispatch_batch()
        except DestinationError:
            # recorded as the writer failure; raised from the next write/prepare_commit
            return
        self._notify()

        if self._buffer:
            self._arm_timer()

    # --------------- suspension primitives

    def _bind_loop(self) -> asyncio.AbstractEventLoop:
        loop = asyncio.get_running_loop()
        if self._loop is None:
            self._loop = loop
            if self._buffer:
                self._arm_timer()
        elif self._loop is not loop:
            raise RuntimeError(f"Writer {self._writer_id} is bound to a different event loop")
        return loop

    def _check_usable(self) -> None:
        if self._closed:
            raise WriterClosedError(f"Writer {self._writer_id} is closed")
        if self._failure is not None:
            raise self._failure

    async def _wait_for_change(self) -> None:
        """Suspend until a completion, failure, flush or close wakes us."""
        self._check_usable()
        waiter: asyncio.Future[None] = self._bind_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)
        self._check_usable()

    async def _wait_until(self, predicate: Callable[[], bool]) -> None:
        while not predicate():
            await self._wait_for_change()

    def _notify(self) -> None:
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)

    # --------------- observability

    def _backpressure_wait(self, reason: str) -> None:
        metrics_registry.backpressure_waits_total.labels(writer=self._writer_id, reason=reason).inc()
        logger.debug(
            f"Writer {self._writer_id} backpressure ({reason}): "
            f"buffered={len(self._buffer)}/{self._cfg.max_buffered_requests} "
            f"in_flight={self._in_flight.count}/{self._cfg.max_in_flight_requests}"
        )

    async def _publish(self, level: BackpressureLevel, reason: str) -> None:
        bus = self._feedback or feedback_bus()
        await bus.publish(
            FeedbackEvent(
                writer_id=self._writer_id,
                buffered=len(self._buffer),
                capacity=self._cfg.max_buffered_requests,
                in_flight=self._in_flight.count,
                level=level,
                reason=reason,
            )
        )

    def _update_gauges(self) -> None:
        self._m_buffered.set(len(self._buffer))
        self._m_in_flight.set(self._in_flight.count)
