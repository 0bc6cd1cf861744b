from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .errors import WriterConfigError


@dataclass(frozen=True)
class AsyncSinkWriterConfig:
    """Buffering hints for an AsyncSinkWriter. Immutable for the writer's lifetime.

    Attributes:
        max_batch_size: Max entries per destination call
        max_in_flight_requests: Max concurrent outstanding destination calls
        max_buffered_requests: Max entries resident in the buffer, must exceed
            max_batch_size
        max_time_in_buffer_ms: Flush a partial batch once entries have waited
            this long (None disables time-based flushing)
        request_timeout_sec: Fail the writer when a batch stays in flight
            longer than this (None waits forever)
    """

    max_batch_size: int = 500
    max_in_flight_requests: int = 50
    max_buffered_requests: int = 10_000
    max_time_in_buffer_ms: Optional[int] = None
    request_timeout_sec: Optional[float] = None

    def __post_init__(self) -> None:
        if self.max_batch_size <= 0:
            raise WriterConfigError("max_batch_size must be > 0")
        if self.max_in_flight_requests <= 0:
            raise WriterConfigError("max_in_flight_requests must be > 0")
        if self.max_buffered_requests <= 0:
            raise WriterConfigError("max_buffered_requests must be > 0")
        if self.max_buffered_requests <= self.max_batch_size:
            raise WriterConfigError(
                "The maximum number of requests that may be buffered should be strictly "
                "greater than the maximum number of requests per batch."
            )
        if self.max_time_in_buffer_ms is not None and self.max_time_in_buffer_ms <= 0:
            raise WriterConfigError("max_time_in_buffer_ms must be > 0 when set")
        if self.request_timeout_sec is not None and self.request_timeout_sec <= 0:
            raise WriterConfigError("request_timeout_sec must be > 0 when set")
