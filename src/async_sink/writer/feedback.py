"""
Backpressure feedback for async sink writers.

In-process pub/sub so producers, rate controllers or plain logging can react
when a writer starts blocking its caller (full buffer, saturated in-flight
slots) and when it recovers.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from loguru import logger


class BackpressureLevel(str, Enum):
    """Backpressure severity levels."""

    OK = "ok"  # writer accepting elements again
    SOFT = "soft"  # flush waiting on an in-flight slot
    HARD = "hard"  # write blocked on a full buffer


@dataclass(frozen=True)
class FeedbackEvent:
    """Immutable backpressure event emitted by an AsyncSinkWriter.

    Attributes:
        writer_id: Identifies the writer (e.g., "kinesis-0")
        buffered: Entries currently in the buffer
        capacity: max_buffered_requests of the writer
        in_flight: Batches currently awaiting completion
        level: Backpressure severity (OK, SOFT, HARD)
        reason: Context ("buffer_full", "in_flight_limit", "recovered")
    """

    writer_id: str
    buffered: int
    capacity: int
    in_flight: int
    level: BackpressureLevel
    reason: str | None = None

    @property
    def utilization(self) -> float:
        """Buffer utilization (0.0 to 1.0, may exceed 1.0 after requeues)."""
        return self.buffered / self.capacity if self.capacity > 0 else 0.0


class FeedbackSubscriber(Protocol):
    """Async callable accepting FeedbackEvent. Exceptions are logged, not raised."""

    async def __call__(self, event: FeedbackEvent) -> None: ...


class FeedbackBus:
    """In-process pub/sub bus for backpressure feedback.

    One subscriber's failure does not affect the others or the writer.

    Example:
        bus = FeedbackBus()

        async def on_feedback(event: FeedbackEvent):
            if event.level == BackpressureLevel.HARD:
                logger.warning(f"{event.writer_id} is blocking producers")

        bus.subscribe(on_feedback)
    """

    def __init__(self) -> None:
        self._subs: list[FeedbackSubscriber] = []

    def subscribe(self, callback: FeedbackSubscriber) -> None:
        if callback not in self._subs:
            self._subs.append(callback)
            logger.debug(f"Feedback subscriber added (total: {len(self._subs)})")

    def unsubscribe(self, callback: FeedbackSubscriber) -> None:
        """Remove a subscriber. No-op if it was never subscribed."""
        if callback in self._subs:
            self._subs.remove(callback)
            logger.debug(f"Feedback subscriber removed (total: {len(self._subs)})")

    async def publish(self, event: FeedbackEvent) -> None:
        """Deliver an event to every subscriber in registration order."""
        if not self._subs:
            return

        logger.debug(
            f"Publishing feedback: writer={event.writer_id} "
            f"level={event.level.value} reason={event.reason} "
            f"buffer={event.buffered}/{event.capacity} in_flight={event.in_flight}"
        )

        # copy so subscribers may unsubscribe while we iterate
        for callback in list(self._subs):
            try:
                await callback(event)
            except Exception as exc:
                logger.warning(f"Feedback subscriber error (ignored): {type(exc).__name__}: {exc}")

    @property
    def subscriber_count(self) -> int:
        return len(self._subs)


_bus: Optional[FeedbackBus] = None


def feedback_bus() -> FeedbackBus:
    """Process-wide FeedbackBus used by writers that are not given their own."""
    global _bus
    if _bus is None:
        _bus = FeedbackBus()
        logger.debug("FeedbackBus singleton initialized")
    return _bus
