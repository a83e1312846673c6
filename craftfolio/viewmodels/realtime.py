"""
Realtime plumbing shared by the view-models.

`apply_change` is the pure row reducer; `LiveQuery` owns a view-model's
channels and the refreshes their handlers schedule.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Set, Type, TypeVar

from pydantic import BaseModel

from craftfolio.gateway.client import GatewayClient
from craftfolio.gateway.realtime import ChangeEvent, ChangeSpec, ChangeType, Channel

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def apply_change(
    rows: List[M],
    event: ChangeEvent,
    model: Type[M],
    accepts: Callable[[dict], bool],
    key: str = "id"
) -> List[M]:
    """
    Return `rows` with one change event applied.

    UPDATE merges the new column values into the row with the same key,
    DELETE drops it, INSERT adds the row at the front only when `accepts`
    passes it. Applying the same event twice gives the same result.
    """
    if event.event_type == ChangeType.DELETE:
        gone = event.old.get(key)
        return [row for row in rows if getattr(row, key) != gone]

    new = event.new
    target = new.get(key)
    index = next((i for i, row in enumerate(rows) if getattr(row, key) == target), None)

    if index is not None:
        merged = model.model_validate({**rows[index].model_dump(), **new})
        return rows[:index] + [merged] + rows[index + 1:]

    if event.event_type == ChangeType.INSERT and accepts(new):
        return [model.model_validate(new)] + list(rows)
    return list(rows)


class LiveQuery:
    def __init__(self, client: GatewayClient, name: str):
        self.client = client
        self.name = name
        self._channels: List[Channel] = []
        self._tasks: Set["asyncio.Future[Any]"] = set()

    @property
    def active(self) -> bool:
        return bool(self._channels)

    def watch(self, spec: ChangeSpec, handler: Callable[[ChangeEvent], Any]) -> Channel:
        channel = self.client.channel(f"{self.name}-{spec.table}").on(spec, handler).subscribe()
        self._channels.append(channel)
        return channel

    def refetch_on(self, spec: ChangeSpec, loader: Callable[[], Awaitable[Any]]) -> Channel:
        """Re-run `loader` on every matching change."""
        return self.watch(spec, lambda event: self.schedule(loader()))

    def schedule(self, awaitable: Awaitable[Any]) -> "asyncio.Future[Any]":
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: "asyncio.Future[Any]") -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Realtime refresh on %s failed: %s", self.name, task.exception())

    def close(self) -> None:
        for channel in self._channels:
            channel.unsubscribe()
        self._channels = []

    async def settle(self) -> None:
        """Wait for scheduled refreshes, including any they schedule in turn."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
