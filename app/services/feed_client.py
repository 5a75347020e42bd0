"""
Change feed client.

Keeps one ActivityCache in sync with the activities table through two paths:
  - incremental insert/update/delete events from the realtime channel
  - a full refetch of the most recent N rows on a fixed poll interval, and
    whenever the owning view becomes visible again

Connection lifecycle is an explicit state machine. A channel error or an
unexpected close moves the client to RECONNECTING and schedules a single
reconnect after a fixed delay; this repeats with no ceiling until close().
No public method raises: failures are logged and kept in last_error.
"""
import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import ValidationError

from app.config import settings
from app.schemas import ActivityRecord
from app.services.activity_cache import ActivityCache
from app.services.realtime import Channel, ChangeHandlers, ChannelStatus, RealtimeBroker
from app.services.storage import Storage

logger = logging.getLogger(__name__)

ACTIVITIES_TABLE = "activities"


class FeedState(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


class ActivityFeedClient:
    def __init__(
        self,
        name: str,
        storage: Storage,
        broker: RealtimeBroker,
        cache: ActivityCache,
        scheduler: Optional[AsyncIOScheduler] = None,
        poll_seconds: int = 60,
        fetch_limit: Optional[int] = None,
        reconnect_delay: float = settings.REALTIME_RECONNECT_SECONDS,
    ) -> None:
        self.name = name
        self.cache = cache
        self._storage = storage
        self._broker = broker
        self._scheduler = scheduler
        self._poll_seconds = poll_seconds
        self._fetch_limit = fetch_limit
        self._reconnect_delay = reconnect_delay

        self._state = FeedState.CLOSED
        self._closed = False
        self._hidden = False
        self._channel: Optional[Channel] = None
        self._reconnect_task: Optional[asyncio.Task] = None

        self.last_error: Optional[str] = None
        self.reconnect_attempts = 0
        self.last_refetch_at: Optional[datetime] = None

    # ── State ────────────────────────────────────────────────────────────────

    @property
    def state(self) -> FeedState:
        return self._state

    @property
    def is_live(self) -> bool:
        return self._state == FeedState.CONNECTED

    @property
    def poll_job_id(self) -> str:
        return f"feed_poll_{self.name}"

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    def status(self) -> dict[str, Any]:
        return {
            "view": self.name,
            "state": self._state.value,
            "is_live": self.is_live,
            "last_error": self.last_error,
            "reconnect_attempts": self.reconnect_attempts,
            "last_refetch_at": self.last_refetch_at.isoformat() if self.last_refetch_at else None,
            "cached": len(self.cache),
        }

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Subscribe, register the poll timer and load the initial snapshot."""
        self._closed = False
        self.connect()
        if self._scheduler is not None:
            self._scheduler.add_job(
                self.poll_now,
                "interval",
                seconds=self._poll_seconds,
                id=self.poll_job_id,
                replace_existing=True,
            )
        await self.poll_now()

    def connect(self) -> None:
        if self._closed:
            return
        self._set_state(FeedState.CONNECTING)
        self._teardown_channel()
        self._channel = self._broker.channel(f"activities-{self.name}")
        try:
            self._channel.subscribe(
                ACTIVITIES_TABLE,
                ChangeHandlers(
                    on_insert=self._on_insert,
                    on_update=self._on_update,
                    on_delete=self._on_delete,
                ),
                on_status=self._on_channel_status,
            )
        except Exception as exc:
            self._record_error(f"subscribe failed: {exc}")
            self._schedule_reconnect()

    def close(self) -> None:
        """Cancel the pending reconnect, unsubscribe and drop the poll timer."""
        self._closed = True
        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            self._reconnect_task = None
        self._teardown_channel()
        if self._scheduler is not None:
            try:
                self._scheduler.remove_job(self.poll_job_id)
            except JobLookupError:
                pass
        if self._state != FeedState.CLOSED:
            logger.info("Feed %s closed", self.name)
        self._state = FeedState.CLOSED

    # ── Polling fallback ─────────────────────────────────────────────────────

    async def poll_now(self) -> bool:
        """Refetch the newest rows (all of them when fetch_limit is None) into the cache. Returns False on failure."""
        if self._closed:
            return False
        result = await self._storage.select(
            ACTIVITIES_TABLE, order="-created_at", limit=self._fetch_limit
        )
        if not result.ok:
            self._record_error(f"refetch failed: {result.error}")
            return False
        if self._closed:
            return False
        records = [r for r in (self._parse(row) for row in result.data) if r is not None]
        self.cache.replace_all(records)
        self.last_refetch_at = datetime.now(timezone.utc)
        logger.debug("Feed %s refetched %d activities", self.name, len(records))
        return True

    async def on_visibility_change(self, visible: bool) -> bool:
        """Refetch when the view becomes visible again after being hidden."""
        was_hidden = self._hidden
        self._hidden = not visible
        if visible and was_hidden:
            return await self.poll_now()
        return False

    # ── Channel callbacks ────────────────────────────────────────────────────

    def _on_channel_status(self, status: ChannelStatus) -> None:
        if self._closed:
            return
        if status == ChannelStatus.CONNECTED:
            self._set_state(FeedState.CONNECTED)
        elif status == ChannelStatus.ERROR:
            self._record_error("realtime channel error")
            self._schedule_reconnect()
        elif status == ChannelStatus.CLOSED:
            self._record_error("realtime channel closed unexpectedly")
            self._schedule_reconnect()

    def _on_insert(self, payload: dict[str, Any]) -> None:
        record = self._parse(payload)
        if record is not None:
            self.cache.apply_insert(record)

    def _on_update(self, payload: dict[str, Any]) -> None:
        record = self._parse(payload)
        if record is not None:
            self.cache.apply_update(record)

    def _on_delete(self, payload: dict[str, Any]) -> None:
        record_id = payload.get("id") if isinstance(payload, dict) else None
        if not record_id:
            logger.warning("Feed %s dropped delete event without id", self.name)
            return
        self.cache.apply_delete(str(record_id))

    # ── Internals ────────────────────────────────────────────────────────────

    def _schedule_reconnect(self) -> None:
        if self._closed:
            return
        self._set_state(FeedState.RECONNECTING)
        if self.reconnect_pending:
            return
        self._reconnect_task = asyncio.create_task(self._reconnect_after_delay())

    async def _reconnect_after_delay(self) -> None:
        await asyncio.sleep(self._reconnect_delay)
        if self._closed:
            return
        self.reconnect_attempts += 1
        self._reconnect_task = None
        logger.info("Feed %s reconnect attempt %d", self.name, self.reconnect_attempts)
        self.connect()

    def _teardown_channel(self) -> None:
        if self._channel is not None:
            self._channel.unsubscribe()
            self._channel = None

    def _parse(self, payload: Any) -> Optional[ActivityRecord]:
        try:
            return ActivityRecord.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Feed %s dropped malformed activity: %s", self.name, exc)
            return None

    def _record_error(self, message: str) -> None:
        self.last_error = message
        logger.warning("Feed %s: %s", self.name, message)

    def _set_state(self, state: FeedState) -> None:
        if state != self._state:
            logger.info("Feed %s: %s -> %s", self.name, self._state.value, state.value)
        self._state = state
