from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class InflightRegistry(Generic[T]):
    """
    One running task per key within this process.

    Tasks are detached from the request that started them: a caller going away
    does not cancel the fetch, and the entry is dropped as soon as the task
    finishes, whatever the outcome.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[T]] = {}

    def get(self, key: str) -> asyncio.Task[T] | None:
        return self._tasks.get(key)

    def __contains__(self, key: str) -> bool:
        return key in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def register(self, key: str, factory: Callable[[], Awaitable[T]]) -> asyncio.Task[T]:
        existing = self._tasks.get(key)
        if existing is not None:
            return existing
        task = asyncio.ensure_future(factory())
        self._tasks[key] = task
        task.add_done_callback(lambda t: self._discard(key, t))
        return task

    def _discard(self, key: str, task: asyncio.Task[T]) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
