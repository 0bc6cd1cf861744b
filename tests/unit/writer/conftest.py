"""
Fixtures for writer unit tests.
"""

import asyncio
from typing import Any, Collection, List, Sequence, Tuple

import pytest

from async_sink.writer import ResultHandler


class ManualDestination:
    """Destination that records every batch and completes only when told to."""

    def __init__(self):
        self.calls: List[Tuple[List[Any], ResultHandler]] = []

    @property
    def batches(self) -> List[List[Any]]:
        return [batch for batch, _ in self.calls]

    def submit_request_entries(self, entries: Sequence[Any], result: ResultHandler) -> None:
        self.calls.append((list(entries), result))

    def complete(self, index: int, failed: Collection[Any] = ()) -> None:
        self.calls[index][1](failed)

    def fail(self, index: int, exc: BaseException) -> None:
        self.calls[index][1].fail(exc)


@pytest.fixture
def destination() -> ManualDestination:
    return ManualDestination()


@pytest.fixture
def identity():
    """Element converter that uses the element itself as the request entry."""

    def _convert(element, context):
        return element

    return _convert


@pytest.fixture
def settle():
    """Run the event loop until scheduled completions and woken writers have run."""

    async def _settle(rounds: int = 10) -> None:
        for _ in range(rounds):
            await asyncio.sleep(0)

    return _settle
