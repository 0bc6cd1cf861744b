from __future__ import annotations

from collections import deque
from typing import Deque, Generic, Iterable, Iterator, List, Optional, TypeVar

T = TypeVar("T")


class RequestBuffer(Generic[T]):
    """Ordered buffer of pending request entries.

    New writes go to the tail; requeued failures go to the head so they are
    the next candidates for dispatch. ``capacity`` is advisory: the writer
    refuses to start a new write while ``is_full``, but a completion may
    requeue entries past it.

    Not thread-safe. Only the writer's event loop touches it.
    """

    def __init__(self, capacity: int, initial: Optional[Iterable[T]] = None):
        if capacity <= 0:
            raise ValueError("capacity must be > 0")

        self._capacity = capacity
        self._entries: Deque[T] = deque(initial or ())

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def is_full(self) -> bool:
        return len(self._entries) >= self._capacity

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __iter__(self) -> Iterator[T]:
        return iter(self._entries)

    def append(self, entry: T) -> None:
        """Add a freshly written entry at the tail."""
        self._entries.append(entry)

    def prepend_all(self, entries: Iterable[T]) -> int:
        """Put entries back at the head, keeping their given order.

        Returns the number of entries requeued.
        """
        items = list(entries)
        # extendleft reverses, so feed it reversed to keep order
        self._entries.extendleft(reversed(items))
        return len(items)

    def take(self, max_count: int) -> List[T]:
        """Remove up to ``max_count`` entries from the head, in order."""
        n = min(max_count, len(self._entries))
        return [self._entries.popleft() for _ in range(n)]

    def snapshot(self) -> List[T]:
        """Copy of the current contents, head first."""
        return list(self._entries)
