"""
Realtime change feed.

Every committed insert/update/delete on a table is published to the hub
as a ChangeEvent; channels bind callbacks to (event, table, filter)
specs and receive matching events in commit order.
"""

import asyncio
import enum
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from craftfolio.database import utcnow

logger = logging.getLogger(__name__)


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class ChangeType(str, enum.Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event_type: ChangeType
    new: Dict[str, Any] = field(default_factory=dict)
    old: Dict[str, Any] = field(default_factory=dict)
    commit_timestamp: datetime = field(default_factory=utcnow)

    @property
    def record(self) -> Dict[str, Any]:
        """The row as it exists after the change (before it, for deletes)."""
        return self.old if self.event_type == ChangeType.DELETE else self.new


def _as_text(value: Any) -> str:
    if isinstance(value, enum.Enum):
        value = value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def parse_filter(expression: str) -> Tuple[str, str, Any]:
    """Split `column=op.value` into its parts; `in` takes `(a,b,c)`."""
    try:
        column, rest = expression.split("=", 1)
        op, value = rest.split(".", 1)
    except ValueError:
        raise ValueError(f"Invalid filter expression: {expression!r}")

    if op == "in":
        if not (value.startswith("(") and value.endswith(")")):
            raise ValueError(f"Invalid filter expression: {expression!r}")
        return column, op, [v.strip() for v in value[1:-1].split(",") if v.strip()]
    if op not in ("eq", "neq"):
        raise ValueError(f"Unsupported filter operator in {expression!r}")
    return column, op, value


def row_matches(row: Dict[str, Any], expression: Optional[str]) -> bool:
    if not expression:
        return True
    if not row:
        return False
    column, op, value = parse_filter(expression)
    if column not in row:
        return False
    actual = _as_text(row[column])
    if op == "eq":
        return actual == value
    if op == "neq":
        return actual != value
    return actual in value


@dataclass(frozen=True)
class ChangeSpec:
    table: str
    event: str = "*"
    filter: Optional[str] = None

    def __post_init__(self):
        if self.event != "*" and self.event.upper() not in ChangeType.__members__:
            raise ValueError(f"Unknown change event: {self.event}")
        if self.filter:
            parse_filter(self.filter)

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        if self.event != "*" and event.event_type.value != self.event.upper():
            return False
        if event.event_type == ChangeType.UPDATE:
            # rows leaving the filtered set are still delivered
            return row_matches(event.new, self.filter) or row_matches(event.old, self.filter)
        return row_matches(event.record, self.filter)


ChangeCallback = Callable[[ChangeEvent], Any]


class Channel:
    def __init__(self, hub: "RealtimeHub", name: str):
        self._hub = hub
        self.name = name
        self._bindings: List[Tuple[ChangeSpec, ChangeCallback]] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.subscribed = False

    def on(self, spec: ChangeSpec, callback: ChangeCallback) -> "Channel":
        self._bindings.append((spec, callback))
        return self

    def subscribe(self) -> "Channel":
        self._loop = _running_loop()
        self._hub.attach(self)
        self.subscribed = True
        return self

    def unsubscribe(self) -> None:
        self._hub.detach(self)
        self.subscribed = False

    def deliver(self, event: ChangeEvent) -> None:
        """Dispatch on the loop the channel subscribed from; writes may commit on worker threads."""
        loop = self._loop
        if loop is None or loop.is_closed() or _running_loop() is loop:
            self.dispatch(event)
        else:
            loop.call_soon_threadsafe(self.dispatch, event)

    def dispatch(self, event: ChangeEvent) -> None:
        if not self.subscribed:
            return
        for spec, callback in list(self._bindings):
            if not spec.matches(event):
                continue
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    asyncio.ensure_future(result)
            except Exception:
                logger.exception("Realtime callback on channel %s failed", self.name)


class RealtimeHub:
    def __init__(self):
        self._channels: List[Channel] = []

    def attach(self, channel: Channel) -> None:
        if channel not in self._channels:
            self._channels.append(channel)

    def detach(self, channel: Channel) -> None:
        if channel in self._channels:
            self._channels.remove(channel)

    @property
    def channel_count(self) -> int:
        return len(self._channels)

    def publish(self, event: ChangeEvent) -> None:
        for channel in list(self._channels):
            channel.deliver(event)
