"""Maintenance mode switch, scheduled end and change history"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import MaintenanceActive, ValidationError
from app.models.maintenance import (
    MAINTENANCE_ROW_ID,
    MaintenanceEvent,
    MaintenanceMode,
    MaintenanceSource,
)
from app.services.activity_service import activity_service
from app.utils.logger import get_logger

logger = get_logger("maintenance")

# History rows kept by prune_history
HISTORY_KEEP = 50


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _in_effect(state: Optional[MaintenanceMode], now: datetime) -> bool:
    if state is None or not state.is_active:
        return False
    return state.end_time is None or state.end_time > now


class MaintenanceService:
    async def get_state(self, db: AsyncSession) -> MaintenanceMode:
        state = await db.get(MaintenanceMode, MAINTENANCE_ROW_ID)
        if state is None:
            state = MaintenanceMode(id=MAINTENANCE_ROW_ID, is_active=False)
            db.add(state)
            await db.flush()
        return state

    async def set_state(
        self,
        db: AsyncSession,
        is_active: bool,
        message: Optional[str] = None,
        end_time: Optional[datetime] = None,
        source: MaintenanceSource = MaintenanceSource.ADMIN,
    ) -> MaintenanceMode:
        """Switch maintenance on or off and record the change.

        ``end_time`` schedules the automatic end of a maintenance window.
        """
        end_time = _naive_utc(end_time)
        if is_active and end_time is not None and end_time <= datetime.utcnow():
            raise ValidationError("Maintenance end time must be in the future")

        state = await self.get_state(db)
        state.is_active = is_active
        state.message = message
        state.end_time = end_time
        db.add(
            MaintenanceEvent(is_active=is_active, message=message, end_time=end_time, source=source.value)
        )
        activity_service.record(
            db,
            "maintenance_updated",
            None,
            {
                "is_active": is_active,
                "message": message,
                "end_time": end_time.isoformat() if end_time else None,
                "source": source.value,
            },
        )
        await db.commit()
        await db.refresh(state)
        logger.warning(
            f"Maintenance mode {'enabled' if is_active else 'disabled'} ({source.value}): {message or '-'}"
            + (f", ends {end_time:%Y-%m-%d %H:%M} UTC" if is_active and end_time else "")
        )
        return state

    async def force_disable(self, db: AsyncSession) -> MaintenanceMode:
        return await self.set_state(
            db,
            False,
            "Maintenance disabled manually by an administrator",
            end_time=datetime.utcnow(),
            source=MaintenanceSource.FORCE,
        )

    async def expire_if_due(self, db: AsyncSession, now: Optional[datetime] = None) -> bool:
        """End a maintenance window whose end time has passed.

        Returns:
            True if maintenance was switched off
        """
        now = now or datetime.utcnow()
        state = await db.get(MaintenanceMode, MAINTENANCE_ROW_ID, populate_existing=True)
        if state is None or not state.is_active or state.end_time is None or state.end_time > now:
            return False

        scheduled = state.end_time
        await self.set_state(
            db,
            False,
            f"Maintenance ended automatically (scheduled for {scheduled:%Y-%m-%d %H:%M} UTC)",
            end_time=now,
            source=MaintenanceSource.AUTO,
        )
        return True

    async def history(self, db: AsyncSession, limit: int = 20) -> list[MaintenanceEvent]:
        result = await db.execute(
            select(MaintenanceEvent)
            .order_by(MaintenanceEvent.created_at.desc(), MaintenanceEvent.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def prune_history(self, db: AsyncSession, keep: int = HISTORY_KEEP) -> tuple[int, int]:
        """Delete all but the ``keep`` newest history rows.

        Returns:
            (kept, deleted)
        """
        result = await db.execute(
            select(MaintenanceEvent.id).order_by(MaintenanceEvent.created_at.desc(), MaintenanceEvent.id.desc())
        )
        ids = list(result.scalars().all())
        stale = ids[keep:]
        if stale:
            await db.execute(delete(MaintenanceEvent).where(MaintenanceEvent.id.in_(stale)))
            activity_service.record(
                db, "maintenance_history_pruned", None, {"kept": len(ids) - len(stale), "deleted": len(stale)}
            )
            await db.commit()
            logger.info(f"Pruned {len(stale)} maintenance history row(s)")
        return len(ids) - len(stale), len(stale)

    async def ensure_open(self, db: AsyncSession) -> None:
        """Raise MaintenanceActive while a maintenance window is in effect."""
        state = await db.get(MaintenanceMode, MAINTENANCE_ROW_ID)
        if _in_effect(state, datetime.utcnow()):
            raise MaintenanceActive(state.message or None)


maintenance_service = MaintenanceService()
