"""
Ready-made Destination adapters.

Most clients expose either a coroutine (aiohttp, aioboto3, asyncpg, ...) or a
blocking call (boto3, requests, ...). These adapters turn such a call into the
callback-style ``submit_request_entries`` contract the writer dispatches to.
The wrapped call returns the entries that were NOT persisted; raising means
the whole call failed.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Awaitable, Callable, Collection, Generic, List, Optional, Sequence, Set

from loguru import logger

from .types import E, ResultHandler

AsyncSend = Callable[[List[E]], Awaitable[Optional[Collection[E]]]]
BlockingSend = Callable[[List[E]], Optional[Collection[E]]]


class CoroutineDestination(Generic[E]):
    """Runs ``send(batch)`` as a task on the writer's event loop.

    Example:
        async def put_records(batch: list[dict]) -> list[dict]:
            resp = await client.put_records(Records=batch)
            return [r for r, res in zip(batch, resp["Records"]) if "ErrorCode" in res]

        destination = CoroutineDestination(put_records)
    """

    def __init__(self, send: AsyncSend[E]):
        self._send = send
        self._tasks: Set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit_request_entries(self, entries: Sequence[E], result: ResultHandler[E]) -> None:
        task = asyncio.get_running_loop().create_task(self._run(list(entries), result))
        # keep a strong reference until done
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, batch: List[E], result: ResultHandler[E]) -> None:
        try:
            failed = await self._send(batch)
        except asyncio.CancelledError as exc:
            # the batch outcome is unknown; release the writer's in-flight slot
            result.fail(exc)
            raise
        except Exception as exc:
            logger.warning(f"Destination call failed for {len(batch)} entries: {exc!r}")
            result.fail(exc)
            return
        result(failed or ())

    async def aclose(self) -> None:
        """Cancel outstanding sends (reported as failed) and wait for them to finish."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


class ExecutorDestination(Generic[E]):
    """Runs a blocking ``send(batch)`` on a thread pool.

    Completion is reported from the worker thread; the writer's result
    handle moves it back onto the event loop.
    """

    def __init__(
        self,
        send: BlockingSend[E],
        executor: Optional[Executor] = None,
        *,
        max_workers: Optional[int] = None,
    ):
        self._send = send
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="async-sink"
        )

    def submit_request_entries(self, entries: Sequence[E], result: ResultHandler[E]) -> None:
        future = self._executor.submit(self._send, list(entries))
        future.add_done_callback(lambda f: self._on_done(f, result))

    @staticmethod
    def _on_done(future: Future, result: ResultHandler[E]) -> None:
        if future.cancelled():
            result.fail(asyncio.CancelledError("destination call cancelled"))
            return
        exc = future.exception()
        if exc is not None:
            logger.warning(f"Destination call failed: {exc!r}")
            result.fail(exc)
            return
        result(future.result() or ())

    async def aclose(self) -> None:
        """Shut down the executor if this adapter created it."""
        if self._owns_executor:
            await asyncio.get_running_loop().run_in_executor(
                None, lambda: self._executor.shutdown(wait=True)
            )
