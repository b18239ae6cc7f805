import logging
from typing import List, Optional, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from planboard.core.config import settings
from planboard.models.activity import Activity, ActivityAction, ActivityEntity

logger = logging.getLogger(__name__)


class ActivityService:
    """Append-only activity log"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        action: Union[ActivityAction, str],
        entity_type: Union[ActivityEntity, str],
        entity_id: UUID,
        description: str,
        user_id: Optional[UUID],
        project_id: UUID,
        task_id: Optional[UUID] = None,
    ) -> None:
        """
        Append an activity entry inside a savepoint of the current transaction.

        A failed write rolls back only the savepoint; the error is logged and
        the surrounding mutation carries on.
        :param action: What happened.
        :param entity_type: Kind of entity affected.
        :param entity_id: UUID of the affected entity.
        :param description: Human readable description.
        :param user_id: Acting user.
        :param project_id: Project the entity belongs to.
        :param task_id: Related task, if any.
        :return: None
        """
        activity = Activity(
            action=getattr(action, "value", action),
            entity_type=getattr(entity_type, "value", entity_type),
            entity_id=entity_id,
            description=description,
            user_id=user_id,
            project_id=project_id,
            task_id=task_id,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(activity)
        except SQLAlchemyError as e:
            logger.warning(
                f"Failed to record activity '{activity.action}' for "
                f"{activity.entity_type} {entity_id}: {e}"
            )

    async def list_task_activities(
        self, task_id: UUID, limit: Optional[int] = None
    ) -> List[Activity]:
        """Activities for one task, newest first"""
        stmt = (
            select(Activity)
            .where(Activity.task_id == task_id)
            .order_by(Activity.created_at.desc(), Activity.id)
            .limit(limit or settings.ACTIVITY_PAGE_SIZE)
        )
        result = await self.db.scalars(stmt)
        return list(result.all())

    async def list_project_activities(
        self, project_id: UUID, limit: Optional[int] = None
    ) -> List[Activity]:
        """Activities for a project, newest first"""
        stmt = (
            select(Activity)
            .where(Activity.project_id == project_id)
            .order_by(Activity.created_at.desc(), Activity.id)
            .limit(limit or settings.ACTIVITY_PAGE_SIZE)
        )
        result = await self.db.scalars(stmt)
        return list(result.all())
