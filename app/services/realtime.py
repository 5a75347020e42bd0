"""
In-process change notification channel.

Storage publishes INSERT / UPDATE / DELETE events for a table after each
successful commit; subscribers get them synchronously on the event loop.
Subscriptions report their lifecycle through ChannelStatus. When the broker
is marked unavailable every open subscription drops to ERROR and new
subscriptions fail until it comes back; clients are expected to reconnect.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class ChannelStatus(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"
    CLOSED = "closed"


class ChangeEvent(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass
class ChangeHandlers:
    on_insert: Callable[[dict[str, Any]], None]
    on_update: Callable[[dict[str, Any]], None]
    # receives the deleted row, only "id" is guaranteed
    on_delete: Callable[[dict[str, Any]], None]


StatusCallback = Callable[[ChannelStatus], None]


class Channel:
    def __init__(self, broker: "RealtimeBroker", name: str) -> None:
        self._broker = broker
        self.name = name
        self.table: Optional[str] = None
        self.status = ChannelStatus.CLOSED
        self._handlers: Optional[ChangeHandlers] = None
        self._on_status: Optional[StatusCallback] = None

    def subscribe(
        self,
        table: str,
        handlers: ChangeHandlers,
        on_status: Optional[StatusCallback] = None,
    ) -> ChannelStatus:
        self.table = table
        self._handlers = handlers
        self._on_status = on_status
        self._set_status(ChannelStatus.CONNECTING)
        if not self._broker.available:
            self._set_status(ChannelStatus.ERROR)
            return self.status
        self._broker._attach(self)
        self._set_status(ChannelStatus.CONNECTED)
        return self.status

    def unsubscribe(self) -> None:
        self._broker._detach(self)
        self._handlers = None
        self._on_status = None
        self.status = ChannelStatus.CLOSED

    def _set_status(self, status: ChannelStatus) -> None:
        self.status = status
        if self._on_status is None:
            return
        try:
            self._on_status(status)
        except Exception as exc:
            logger.error("Channel %s status callback failed: %s", self.name, exc, exc_info=True)

    def _deliver(self, event: ChangeEvent, payload: dict[str, Any]) -> None:
        handlers = self._handlers
        if handlers is None or self.status != ChannelStatus.CONNECTED:
            return
        callback = {
            ChangeEvent.INSERT: handlers.on_insert,
            ChangeEvent.UPDATE: handlers.on_update,
            ChangeEvent.DELETE: handlers.on_delete,
        }[event]
        try:
            callback(payload)
        except Exception as exc:
            logger.error(
                "Channel %s handler for %s failed: %s", self.name, event.value, exc, exc_info=True
            )


class RealtimeBroker:
    def __init__(self) -> None:
        self.available = True
        self._subscribers: list[Channel] = []

    def channel(self, name: str) -> Channel:
        return Channel(self, name)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribers_for(self, table: str) -> list[Channel]:
        return [ch for ch in self._subscribers if ch.table == table]

    def publish(self, table: str, event: ChangeEvent, payload: dict[str, Any]) -> None:
        if not self.available:
            logger.debug("Broker unavailable, dropping %s on %s", event.value, table)
            return
        for channel in list(self._subscribers):
            if channel.table == table:
                channel._deliver(event, payload)

    def set_available(self, available: bool) -> None:
        """Simulate the change channel going down (False) or recovering (True)."""
        self.available = available
        if available:
            logger.info("Realtime broker available")
            return
        logger.warning("Realtime broker unavailable, dropping %d subscriptions", len(self._subscribers))
        for channel in list(self._subscribers):
            self._detach(channel)
            channel._set_status(ChannelStatus.ERROR)

    def close(self) -> None:
        for channel in list(self._subscribers):
            self._detach(channel)
            channel._set_status(ChannelStatus.CLOSED)

    def _attach(self, channel: Channel) -> None:
        if channel not in self._subscribers:
            self._subscribers.append(channel)

    def _detach(self, channel: Channel) -> None:
        if channel in self._subscribers:
            self._subscribers.remove(channel)
