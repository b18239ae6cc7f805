import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from planboard.core.exceptions import NotFoundException, CrossProjectError
from planboard.models.activity import ActivityAction, ActivityEntity
from planboard.models.project_status import ProjectStatus
from planboard.models.task import Task
from planboard.services.activity_service import ActivityService
from planboard.services.ordering_service import OrderingService, MoveResult

logger = logging.getLogger(__name__)


class StatusTransitionService:
    """Moves tasks between kanban columns"""

    def __init__(
        self,
        db: AsyncSession,
        ordering: Optional[OrderingService] = None,
        activity: Optional[ActivityService] = None,
    ):
        self.db = db
        self.ordering = ordering or OrderingService(db)
        self.activity = activity or ActivityService(db)

    async def get_project_status(
        self, status_id: UUID, project_id: UUID
    ) -> ProjectStatus:
        """
        Fetch a status and check it belongs to the given project.
        :raises NotFoundException: If the status does not exist.
        :raises CrossProjectError: If it belongs to another project.
        """
        status = await self.db.get(ProjectStatus, status_id)
        if not status:
            raise NotFoundException("Status", str(status_id))
        if status.project_id != project_id:
            raise CrossProjectError(
                "Status must belong to the task's project", field="status_id"
            )
        return status

    async def get_default_status(self, project_id: UUID) -> Optional[ProjectStatus]:
        """The project's default column, else its first column, else None"""
        stmt = (
            select(ProjectStatus)
            .where(ProjectStatus.project_id == project_id)
            .order_by(ProjectStatus.is_default.desc(), ProjectStatus.order)
            .limit(1)
        )
        return await self.db.scalar(stmt)

    async def _label(self, status_id: Optional[UUID]) -> str:
        if status_id is None:
            return "no status"
        status = await self.db.get(ProjectStatus, status_id)
        return f'"{status.name}"' if status else "no status"

    async def apply_status_change(
        self,
        task: Task,
        new_status_id: Optional[UUID],
        user_id: UUID,
        target_task_id: Optional[UUID] = None,
        position: Optional[int] = None,
    ) -> MoveResult:
        """
        Move a task to a kanban column.
        :param task: Task being moved.
        :param new_status_id: Destination column; None moves the task out of every column.
        :param user_id: Acting user.
        :param target_task_id: Card to place the task before.
        :param position: Index in the destination column.
        :return: MoveResult with every column that was renumbered.
        """
        if new_status_id is not None:
            await self.get_project_status(new_status_id, task.project_id)

        old_status_id = task.status_id
        if old_status_id == new_status_id:
            if target_task_id is None and position is None:
                return MoveResult(task=task)

            scope = await self.ordering.move_within_scope(
                task, by_status=True, target_task_id=target_task_id, index=position
            )
            await self.activity.record(
                action=ActivityAction.REORDERED,
                entity_type=ActivityEntity.TASK,
                entity_id=task.id,
                description=f'Task "{task.title}" was reordered in {await self._label(new_status_id)}',
                user_id=user_id,
                project_id=task.project_id,
                task_id=task.id,
            )
            return MoveResult(task=task, scopes=[scope])

        result = await self.ordering.move_between_scopes(
            task,
            dest_parent_id=task.parent_id,
            dest_status_id=new_status_id,
            by_status=True,
            target_task_id=target_task_id,
            index=position,
        )

        old_label = await self._label(old_status_id)
        new_label = await self._label(new_status_id)
        await self.activity.record(
            action=ActivityAction.STATUS_CHANGED,
            entity_type=ActivityEntity.TASK,
            entity_id=task.id,
            description=f'Task "{task.title}" moved from {old_label} to {new_label}',
            user_id=user_id,
            project_id=task.project_id,
            task_id=task.id,
        )
        logger.info(f"Task {task.id} status {old_status_id} -> {new_status_id}")
        return result
