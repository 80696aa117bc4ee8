"""Deduplicating work queues for the call-graph resolver."""

from __future__ import annotations

from collections import deque
from typing import Deque, Generic, Hashable, Iterable, Set, TypeVar


T = TypeVar("T", bound=Hashable)


class Worklist(Generic[T]):
    """Pending items; an item already waiting is not added a second time.

    Subclasses choose the order in which :meth:`pop` hands items out.
    """

    def __init__(self, items: Iterable[T] = ()) -> None:
        self._queue: Deque[T] = deque()
        self._pending: Set[T] = set()
        for item in items:
            self.add(item)

    def add(self, item: T) -> bool:
        if item in self._pending:
            return False
        self._pending.add(item)
        self._queue.append(item)
        return True

    def pop(self) -> T:
        item = self._take()
        self._pending.discard(item)
        return item

    def _take(self) -> T:
        raise NotImplementedError

    def __contains__(self, item: object) -> bool:
        return item in self._pending

    def __len__(self) -> int:
        return len(self._queue)

    def __bool__(self) -> bool:
        return bool(self._queue)


class FifoWorklist(Worklist[T]):
    def _take(self) -> T:
        return self._queue.popleft()


class LifoWorklist(Worklist[T]):
    """Depth-first order, handy when following one resolution chain."""

    def _take(self) -> T:
        return self._queue.pop()
