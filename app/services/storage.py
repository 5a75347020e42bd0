"""
Relational storage facade.

A narrow select/insert/update/delete surface over the SQLAlchemy models.
Every call returns a StorageResult instead of raising, and every successful
write is published to the realtime broker after commit.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import delete, inspect, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models import (
    Activity,
    ActivityType,
    AdminSetting,
    CalendarEvent,
    LoginHistory,
    Profile,
)
from app.services.errors import StorageError
from app.services.realtime import ChangeEvent, RealtimeBroker

logger = logging.getLogger(__name__)

TABLES = {
    "activities": Activity,
    "activity_types": ActivityType,
    "profiles": Profile,
    "admin_settings": AdminSetting,
    "calendar_events": CalendarEvent,
    "login_history": LoginHistory,
}


@dataclass
class StorageResult:
    ok: bool
    data: Any = None
    error: Optional[str] = None

    def unwrap(self) -> Any:
        if not self.ok:
            raise StorageError(self.error or "Storage request failed")
        return self.data


def row_to_dict(obj: Any) -> dict[str, Any]:
    return {attr.key: getattr(obj, attr.key) for attr in inspect(obj).mapper.column_attrs}


class Storage:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        broker: Optional[RealtimeBroker] = None,
    ) -> None:
        self._session_factory = session_factory
        self._broker = broker

    async def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> StorageResult:
        """
        filters: column -> value (equality) or column -> list (IN).
        order: column name, prefix with "-" for descending ("-created_at").
        """
        try:
            model = self._model(table)
            stmt = select(model)
            for column, value in (filters or {}).items():
                attr = self._column(model, column)
                stmt = stmt.where(attr.in_(value) if isinstance(value, (list, tuple)) else attr == value)
            if order:
                attr = self._column(model, order.lstrip("-"))
                stmt = stmt.order_by(attr.desc() if order.startswith("-") else attr.asc())
            if limit is not None:
                stmt = stmt.limit(limit)
            async with self._session_factory() as db:
                rows = (await db.execute(stmt)).scalars().all()
            return StorageResult(ok=True, data=[row_to_dict(r) for r in rows])
        except (SQLAlchemyError, KeyError) as exc:
            return self._failed("select", table, exc)

    async def get(self, table: str, row_id: Any) -> StorageResult:
        try:
            model = self._model(table)
            async with self._session_factory() as db:
                obj = await db.get(model, row_id)
            return StorageResult(ok=True, data=row_to_dict(obj) if obj else None)
        except (SQLAlchemyError, KeyError) as exc:
            return self._failed("get", table, exc)

    async def insert(self, table: str, values: dict[str, Any]) -> StorageResult:
        try:
            model = self._model(table)
            for column in values:
                self._column(model, column)
            async with self._session_factory() as db:
                obj = model(**values)
                db.add(obj)
                await db.commit()
                await db.refresh(obj)
                record = row_to_dict(obj)
        except (SQLAlchemyError, KeyError) as exc:
            return self._failed("insert", table, exc)
        self._publish(table, ChangeEvent.INSERT, record)
        return StorageResult(ok=True, data=record)

    async def update(self, table: str, row_id: Any, patch: dict[str, Any]) -> StorageResult:
        """data is the updated row, or None when no row has that id."""
        try:
            model = self._model(table)
            async with self._session_factory() as db:
                obj = await db.get(model, row_id)
                if obj is None:
                    return StorageResult(ok=True, data=None)
                for column, value in patch.items():
                    self._column(model, column)
                    setattr(obj, column, value)
                await db.commit()
                await db.refresh(obj)
                record = row_to_dict(obj)
        except (SQLAlchemyError, KeyError) as exc:
            return self._failed("update", table, exc)
        self._publish(table, ChangeEvent.UPDATE, record)
        return StorageResult(ok=True, data=record)

    async def delete(self, table: str, row_id: Any) -> StorageResult:
        """data is the deleted row, or None when no row has that id."""
        try:
            model = self._model(table)
            async with self._session_factory() as db:
                obj = await db.get(model, row_id)
                if obj is None:
                    return StorageResult(ok=True, data=None)
                record = row_to_dict(obj)
                await db.delete(obj)
                await db.commit()
        except (SQLAlchemyError, KeyError) as exc:
            return self._failed("delete", table, exc)
        self._publish(table, ChangeEvent.DELETE, record)
        return StorageResult(ok=True, data=record)

    async def delete_before(self, table: str, column: str, cutoff: Any) -> StorageResult:
        """Bulk delete rows whose column is older than cutoff; data is the deleted count."""
        try:
            model = self._model(table)
            attr = self._column(model, column)
            async with self._session_factory() as db:
                ids = (await db.execute(select(model.id).where(attr < cutoff))).scalars().all()
                if ids:
                    await db.execute(delete(model).where(model.id.in_(ids)))
                    await db.commit()
        except (SQLAlchemyError, KeyError) as exc:
            return self._failed("delete_before", table, exc)
        for row_id in ids:
            self._publish(table, ChangeEvent.DELETE, {"id": row_id})
        return StorageResult(ok=True, data=len(ids))

    def _model(self, table: str):
        try:
            return TABLES[table]
        except KeyError:
            raise KeyError(f"unknown table '{table}'") from None

    @staticmethod
    def _column(model, column: str):
        if column not in model.__table__.columns:
            raise KeyError(f"unknown column '{column}' on {model.__tablename__}")
        return getattr(model, column)

    def _publish(self, table: str, event: ChangeEvent, record: dict[str, Any]) -> None:
        if self._broker is not None:
            self._broker.publish(table, event, record)

    @staticmethod
    def _failed(op: str, table: str, exc: Exception) -> StorageResult:
        if isinstance(exc, IntegrityError):
            message = "A record with these details already exists"
        elif isinstance(exc, KeyError):
            message = str(exc.args[0]) if exc.args else "Invalid request"
        else:
            message = "Storage is unavailable, please try again"
        logger.error("Storage %s on %s failed: %s", op, table, exc)
        return StorageResult(ok=False, error=message)

