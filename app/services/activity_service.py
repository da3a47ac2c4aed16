"""Activity log writes and reads"""

from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.activity_log import ActivityLog


class ActivityService:
    def record(
        self,
        db: AsyncSession,
        action: str,
        user_id: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> ActivityLog:
        """Stage an activity row in the caller's transaction."""
        entry = ActivityLog(user_id=user_id, action=action, details=details or {})
        db.add(entry)
        return entry

    async def list_for_user(
        self, db: AsyncSession, user_id: int, page: int, limit: int
    ) -> tuple[list[ActivityLog], int]:
        base = select(ActivityLog).where(ActivityLog.user_id == user_id)
        total = (await db.execute(select(func.count()).select_from(base.subquery()))).scalar() or 0
        result = await db.execute(
            base.order_by(ActivityLog.created_at.desc()).offset((page - 1) * limit).limit(limit)
        )
        return list(result.scalars().all()), total


activity_service = ActivityService()
