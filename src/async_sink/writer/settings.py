"""
Environment-based settings for the async sink writer.

Every field maps to ``ASYNC_SINK_<FIELD>`` (case-insensitive), e.g.
``ASYNC_SINK_MAX_BATCH_SIZE=200``. A local ``.env`` file is read if present.
"""

from __future__ import annotations

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .config import AsyncSinkWriterConfig


class WriterRuntimeSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ASYNC_SINK_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    writer_id: str = "default"
    max_batch_size: int = 500
    max_in_flight_requests: int = 50
    max_buffered_requests: int = 10_000
    max_time_in_buffer_ms: Optional[int] = None
    request_timeout_sec: Optional[float] = None

    def to_config(self) -> AsyncSinkWriterConfig:
        """Build a validated writer config (raises WriterConfigError)."""
        return AsyncSinkWriterConfig(
            max_batch_size=self.max_batch_size,
            max_in_flight_requests=self.max_in_flight_requests,
            max_buffered_requests=self.max_buffered_requests,
            max_time_in_buffer_ms=self.max_time_in_buffer_ms,
            request_timeout_sec=self.request_timeout_sec,
        )
