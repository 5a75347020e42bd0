"""
Application context.

Built once in the lifespan and stored on app.state.context; routes and jobs
get storage, the realtime broker, the scheduler, the notifier and the live
views from here instead of module globals.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings
from app.services.notifications import Notifier
from app.services.realtime import RealtimeBroker
from app.services.storage import Storage
from app.services.system_monitor import SystemMonitor

if TYPE_CHECKING:
    from app.services.live import LiveActivityView


@dataclass
class AppContext:
    settings: Settings
    session_factory: async_sessionmaker[AsyncSession]
    storage: Storage
    broker: RealtimeBroker
    notifier: Notifier
    scheduler: Optional[AsyncIOScheduler] = None
    views: dict[str, "LiveActivityView"] = field(default_factory=dict)
    monitor: SystemMonitor = field(default_factory=SystemMonitor)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def build_context(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    scheduler: Optional[AsyncIOScheduler] = None,
    notifier: Optional[Notifier] = None,
) -> AppContext:
    broker = RealtimeBroker()
    return AppContext(
        settings=settings,
        session_factory=session_factory,
        storage=Storage(session_factory, broker),
        broker=broker,
        notifier=notifier or Notifier(),
        scheduler=scheduler,
    )


def get_context(request: Request) -> AppContext:
    return request.app.state.context
