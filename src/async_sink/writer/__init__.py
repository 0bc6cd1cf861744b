"""Async Sink Writer

Converter -> buffer -> batch -> destination pipeline with:
- RequestBuffer (FIFO writes, failed entries requeued at the head)
- InFlightTracker bounding concurrent destination calls
- Per-entry retry through the completion handle
- prepare_commit drain for checkpoint-time at-least-once
- Optional time-based flush and in-flight timeout
- Backpressure feedback bus and Prometheus metrics
- Environment-based settings
"""

from .types import Destination, ElementConverter, ResultHandler, WriterContext
from .errors import (
    AsyncSinkError,
    WriterConfigError,
    WriterClosedError,
    DestinationError,
    InFlightTimeoutError,
)
from .config import AsyncSinkWriterConfig
from .settings import WriterRuntimeSettings
from .buffer import RequestBuffer
from .in_flight import InFlightTracker, InFlightRequest
from .completion import RequestResult
from .destination import CoroutineDestination, ExecutorDestination
from .feedback import BackpressureLevel, FeedbackBus, FeedbackEvent, feedback_bus
from .writer import AsyncSinkWriter, WriterHealth

__all__ = [
    # types
    "Destination",
    "ElementConverter",
    "ResultHandler",
    "WriterContext",
    "WriterHealth",
    # errors
    "AsyncSinkError",
    "WriterConfigError",
    "WriterClosedError",
    "DestinationError",
    "InFlightTimeoutError",
    # config
    "AsyncSinkWriterConfig",
    "WriterRuntimeSettings",
    # runtime
    "RequestBuffer",
    "InFlightTracker",
    "InFlightRequest",
    "RequestResult",
    "AsyncSinkWriter",
    # destinations
    "CoroutineDestination",
    "ExecutorDestination",
    # feedback
    "BackpressureLevel",
    "FeedbackBus",
    "FeedbackEvent",
    "feedback_bus",
]
