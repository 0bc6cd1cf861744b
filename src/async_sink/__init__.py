"""
Async Sink

Generic asynchronous batching writer for stream-processing sinks.

Usage:
    from async_sink import AsyncSinkWriter, AsyncSinkWriterConfig, CoroutineDestination

    writer = AsyncSinkWriter(
        element_converter=lambda element, ctx: element,
        destination=CoroutineDestination(send_batch),
        config=AsyncSinkWriterConfig(max_batch_size=100, max_buffered_requests=1000),
    )
    await writer.write(record)
    await writer.prepare_commit()
"""

from .writer import (
    AsyncSinkWriter,
    AsyncSinkWriterConfig,
    WriterRuntimeSettings,
    WriterContext,
    CoroutineDestination,
    ExecutorDestination,
    AsyncSinkError,
    DestinationError,
    WriterClosedError,
    WriterConfigError,
)

__version__ = "1.0.0"
__all__ = [
    "AsyncSinkWriter",
    "AsyncSinkWriterConfig",
    "WriterRuntimeSettings",
    "WriterContext",
    "CoroutineDestination",
    "ExecutorDestination",
    "AsyncSinkError",
    "DestinationError",
    "WriterClosedError",
    "WriterConfigError",
]
