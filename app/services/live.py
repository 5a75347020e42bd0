"""
Live activity views.

A view owns one cache, the feed client that keeps it current and (for the
admin view) a periodic stats recompute. start() wires everything up and
stop() tears all of it down: channel unsubscribed, reconnect cancelled,
every scheduler job this view added removed.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.config import Settings
from app.schemas import ActivityRecord
from app.services.activity_cache import ActivityCache
from app.services.aggregator import ActivityStats, compute_stats
from app.services.clock import local_now
from app.services.feed_client import ActivityFeedClient
from app.services.realtime import RealtimeBroker
from app.services.storage import Storage

logger = logging.getLogger(__name__)

RECENT_VIEW = "recent"
ADMIN_VIEW = "admin"


class LiveActivityView:
    def __init__(
        self,
        name: str,
        storage: Storage,
        broker: RealtimeBroker,
        scheduler: Optional[AsyncIOScheduler],
        capacity: Optional[int],
        poll_seconds: int,
        fetch_limit: Optional[int],
        recompute_seconds: Optional[int] = None,
        reconnect_delay: float = 3.0,
        active_window: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self.name = name
        self.cache = ActivityCache(capacity)
        self.feed = ActivityFeedClient(
            name,
            storage,
            broker,
            self.cache,
            scheduler=scheduler,
            poll_seconds=poll_seconds,
            fetch_limit=fetch_limit,
            reconnect_delay=reconnect_delay,
        )
        self._scheduler = scheduler
        self._recompute_seconds = recompute_seconds
        self._active_window = active_window
        self._clock = clock
        self.stats: ActivityStats = compute_stats((), clock(), active_window)

    @property
    def stats_job_id(self) -> str:
        return f"stats_recompute_{self.name}"

    def job_ids(self) -> list[str]:
        ids = [self.feed.poll_job_id]
        if self._recompute_seconds:
            ids.append(self.stats_job_id)
        return ids

    async def start(self) -> None:
        self.cache.add_listener(self._on_cache_change)
        await self.feed.start()
        if self._scheduler is not None and self._recompute_seconds:
            self._scheduler.add_job(
                self.recompute_job,
                "interval",
                seconds=self._recompute_seconds,
                id=self.stats_job_id,
                replace_existing=True,
            )
        logger.info("Live view %s started (%s)", self.name, self.feed.state.value)

    def stop(self) -> None:
        self.feed.close()
        self.cache.remove_listener(self._on_cache_change)
        if self._scheduler is not None and self._recompute_seconds:
            try:
                self._scheduler.remove_job(self.stats_job_id)
            except JobLookupError:
                pass
        logger.info("Live view %s stopped", self.name)

    def recompute(self) -> ActivityStats:
        self.stats = compute_stats(self.cache.snapshot(), self._clock(), self._active_window)
        return self.stats

    async def recompute_job(self) -> None:
        # coroutine so AsyncIOScheduler runs it on the loop, not in a worker thread
        self.recompute()

    def snapshot(self) -> tuple[ActivityRecord, ...]:
        return self.cache.snapshot()

    def _on_cache_change(self, _snapshot: tuple[ActivityRecord, ...]) -> None:
        self.recompute()


def build_views(
    settings: Settings,
    storage: Storage,
    broker: RealtimeBroker,
    scheduler: Optional[AsyncIOScheduler],
) -> dict[str, LiveActivityView]:
    window = timedelta(hours=settings.ACTIVE_USER_WINDOW_HOURS)
    return {
        RECENT_VIEW: LiveActivityView(
            RECENT_VIEW,
            storage,
            broker,
            scheduler,
            capacity=settings.RECENT_FEED_LIMIT,
            poll_seconds=settings.RECENT_FEED_POLL_SECONDS,
            fetch_limit=settings.RECENT_FEED_LIMIT,
            reconnect_delay=settings.REALTIME_RECONNECT_SECONDS,
            active_window=window,
        ),
        ADMIN_VIEW: LiveActivityView(
            ADMIN_VIEW,
            storage,
            broker,
            scheduler,
            capacity=None,
            poll_seconds=settings.ADMIN_FEED_POLL_SECONDS,
            fetch_limit=None,
            recompute_seconds=settings.STATS_RECOMPUTE_SECONDS,
            reconnect_delay=settings.REALTIME_RECONNECT_SECONDS,
            active_window=window,
        ),
    }
