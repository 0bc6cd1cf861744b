from __future__ import annotations

from dataclasses import dataclass
from typing import Collection, Optional, Protocol, Sequence, TypeVar

InputT = TypeVar("InputT", contravariant=True)
RequestEntryT = TypeVar("RequestEntryT")
E = TypeVar("E")


@dataclass(frozen=True)
class WriterContext:
    """Per-element context handed to the element converter.

    Attributes:
        timestamp: Event time of the element in epoch millis, if known
        watermark: Current watermark of the pipeline in epoch millis, if known
    """

    timestamp: Optional[int] = None
    watermark: Optional[int] = None


class ElementConverter(Protocol[InputT, RequestEntryT]):
    """Maps a stream element to the request entry a destination accepts."""

    def __call__(self, element: InputT, context: Optional[WriterContext]) -> RequestEntryT: ...


class ResultHandler(Protocol[E]):
    """Completion handle passed along with every dispatched batch.

    ``handler(failed)`` reports the entries that were not persisted (empty for
    full success). ``handler.fail(exc)`` reports that the call itself failed.
    Exactly one of the two should be invoked, once, from any thread.
    """

    def __call__(self, failed_entries: Collection[E]) -> None: ...

    def fail(self, exc: BaseException) -> None: ...


class Destination(Protocol[E]):
    """Capability the writer dispatches batches to.

    Implementations must not block: start the I/O and return, then report
    through ``result`` once the outcome is known.
    """

    def submit_request_entries(self, entries: Sequence[E], result: ResultHandler[E]) -> None: ...
