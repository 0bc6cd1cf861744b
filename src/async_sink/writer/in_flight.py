from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from itertools import count
from time import monotonic
from typing import Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


@dataclass
class InFlightRequest(Generic[T]):
    """A batch handed to the destination whose completion is not yet observed."""

    batch_id: int
    entries: List[T]
    dispatched_at: float = field(default_factory=monotonic)
    timeout_handle: Optional[asyncio.TimerHandle] = None

    @property
    def age_ms(self) -> float:
        return (monotonic() - self.dispatched_at) * 1000.0

    def cancel_timeout(self) -> None:
        if self.timeout_handle is not None:
            self.timeout_handle.cancel()
            self.timeout_handle = None


class InFlightTracker(Generic[T]):
    """Bounded registry of outstanding destination calls.

    Requests are keyed by batch id so a completion can only be counted once;
    the count is the number of open ids and can never go negative.
    """

    def __init__(self, limit: int):
        if limit <= 0:
            raise ValueError("limit must be > 0")
        self._limit = limit
        self._ids = count(1)
        self._open: Dict[int, InFlightRequest[T]] = {}

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def count(self) -> int:
        return len(self._open)

    def has_capacity(self) -> bool:
        return len(self._open) < self._limit

    def open(self, entries: List[T]) -> InFlightRequest[T]:
        request = InFlightRequest(batch_id=next(self._ids), entries=entries)
        self._open[request.batch_id] = request
        return request

    def complete(self, batch_id: int) -> Optional[InFlightRequest[T]]:
        """Close a request. Returns None if the id is unknown or already closed."""
        request = self._open.pop(batch_id, None)
        if request is not None:
            request.cancel_timeout()
        return request

    def clear(self) -> List[InFlightRequest[T]]:
        """Forget every open request (used on close/failure)."""
        requests = list(self._open.values())
        for request in requests:
            request.cancel_timeout()
        self._open.clear()
        return requests
