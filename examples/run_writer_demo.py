"""
Demo script for AsyncSinkWriter.

Shows batching, partial-failure retries, backpressure feedback, checkpoint
drain and Prometheus metrics (exposed on :8000/metrics).
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Optional

from loguru import logger
from prometheus_client import start_http_server

from async_sink.writer import (
    AsyncSinkWriter,
    BackpressureLevel,
    CoroutineDestination,
    FeedbackEvent,
    WriterContext,
    WriterRuntimeSettings,
    feedback_bus,
)


@dataclass
class Item:
    value: int


def to_record(item: Item, context: Optional[WriterContext]) -> dict:
    return {"id": item.value, "ts": context.timestamp if context else None}


async def put_records(batch: list[dict]) -> list[dict]:
    """Simulated destination that rejects ~5% of entries."""
    await asyncio.sleep(0.01)
    return [r for r in batch if random.random() < 0.05]


async def on_feedback(event: FeedbackEvent):
    if event.level == BackpressureLevel.HARD:
        logger.warning(f"⚠️  {event.writer_id} blocking producer ({event.reason})")
    elif event.level == BackpressureLevel.OK:
        logger.info(f"✅ {event.writer_id} accepting writes again")


async def main():
    start_http_server(8000)
    logger.info("📊 Prometheus metrics available at http://localhost:8000/metrics")

    settings = WriterRuntimeSettings(max_batch_size=50, max_buffered_requests=200)
    feedback_bus().subscribe(on_feedback)

    destination = CoroutineDestination(put_records)
    async with AsyncSinkWriter[Item, dict](
        to_record,
        destination,
        settings.to_config(),
        writer_id=settings.writer_id,
    ) as writer:
        logger.info("🚀 Writing 5,000 items with a checkpoint every 1,000")
        for i in range(5_000):
            await writer.write(Item(i), WriterContext(timestamp=i))
            if i % 1000 == 999:
                await writer.prepare_commit(flush=True)
                state = writer.snapshot_state()
                h = writer.health()
                logger.info(
                    f"Checkpoint at {i + 1}: buffered={h.buffered} in_flight={h.in_flight} "
                    f"snapshot={len(state)} entries"
                )

    await destination.aclose()
    logger.info("✅ Writer demo complete")


if __name__ == "__main__":
    asyncio.run(main())
