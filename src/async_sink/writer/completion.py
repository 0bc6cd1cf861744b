from __future__ import annotations

import asyncio
from typing import Any, Callable, Collection, Generic, List, TypeVar

from loguru import logger

E = TypeVar("E")


class RequestResult(Generic[E]):
    """Thread-safe completion handle for one dispatched batch.

    Never runs writer code inline: both outcomes are scheduled onto the
    writer's event loop with ``call_soon_threadsafe``, so buffer and counter
    mutation stays on that loop regardless of which thread the destination
    completes on. Duplicate calls are forwarded too; the writer drops them
    because the batch id is already closed.
    """

    __slots__ = ("batch_id", "_loop", "_on_complete", "_on_fail")

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        batch_id: int,
        on_complete: Callable[[int, List[E]], Any],
        on_fail: Callable[[int, BaseException], Any],
    ):
        self.batch_id = batch_id
        self._loop = loop
        self._on_complete = on_complete
        self._on_fail = on_fail

    def __call__(self, failed_entries: Collection[E]) -> None:
        # copy now; the destination may reuse its collection
        self._schedule(self._on_complete, list(failed_entries))

    def fail(self, exc: BaseException) -> None:
        self._schedule(self._on_fail, exc)

    def _schedule(self, callback: Callable[..., Any], arg: Any) -> None:
        try:
            self._loop.call_soon_threadsafe(callback, self.batch_id, arg)
        except RuntimeError:
            logger.warning(
                f"Event loop closed, dropping completion for batch {self.batch_id}"
            )

    def __repr__(self) -> str:
        return f"RequestResult(batch_id={self.batch_id})"
