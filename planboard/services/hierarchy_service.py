import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from planboard.core.config import settings
from planboard.core.exceptions import (
    NotFoundException,
    SelfParentError,
    CrossProjectError,
    CycleError,
)
from planboard.models.task import Task

logger = logging.getLogger(__name__)


class HierarchyService:
    """
    Read-only checks on the task tree. Nothing here writes.
    """

    def __init__(self, db: AsyncSession, max_depth: Optional[int] = None):
        self.db = db
        self.max_depth = max_depth or settings.MAX_HIERARCHY_DEPTH

    async def _parent_of(self, task_id: UUID) -> Optional[UUID]:
        return await self.db.scalar(select(Task.parent_id).where(Task.id == task_id))

    async def ancestor_ids(self, task_id: UUID) -> List[UUID]:
        """
        Walk parent pointers upward from a task.
        :param task_id: UUID of the starting task (not included in the result).
        :return: Ancestor ids, nearest first.
        :raises CycleError: If the chain loops or exceeds the configured depth.
        """
        chain: List[UUID] = []
        seen = {task_id}
        current = await self._parent_of(task_id)

        while current is not None:
            if current in seen:
                logger.error(f"Existing cycle in task hierarchy at {current}")
                raise CycleError(
                    "Task hierarchy already contains a cycle",
                    chain=[str(i) for i in chain],
                )
            if len(chain) >= self.max_depth:
                raise CycleError(
                    f"Task hierarchy is deeper than {self.max_depth} levels"
                )
            chain.append(current)
            seen.add(current)
            current = await self._parent_of(current)

        return chain

    async def validate_reparent(
        self, task_id: UUID, candidate_parent_id: UUID, project_id: UUID
    ) -> Task:
        """
        Check that a task may be moved under a new parent.
        :param task_id: UUID of the task being moved.
        :param candidate_parent_id: UUID of the proposed parent.
        :param project_id: Project the task belongs to.
        :return: The candidate parent task.
        :raises SelfParentError: If the task would become its own parent.
        :raises NotFoundException: If the candidate parent does not exist.
        :raises CrossProjectError: If the candidate parent is in another project.
        :raises CycleError: If the task is an ancestor of the candidate parent.
        """
        if candidate_parent_id == task_id:
            raise SelfParentError(str(task_id))

        parent = await self.db.get(Task, candidate_parent_id)
        if not parent:
            raise NotFoundException("Parent task", str(candidate_parent_id))

        if parent.project_id != project_id:
            raise CrossProjectError(
                "Parent task must be in the same project", field="parent_id"
            )

        chain = [candidate_parent_id]
        current = parent.parent_id
        while current is not None:
            if current == task_id:
                raise CycleError(chain=[str(i) for i in chain + [current]])
            if current in chain:
                raise CycleError(
                    "Task hierarchy already contains a cycle",
                    chain=[str(i) for i in chain],
                )
            if len(chain) >= self.max_depth:
                raise CycleError(
                    f"Task hierarchy is deeper than {self.max_depth} levels"
                )
            chain.append(current)
            current = await self._parent_of(current)

        return parent

    async def validate_new_parent(self, parent_id: UUID, project_id: UUID) -> Task:
        """Parent check for a task that does not exist yet"""
        parent = await self.db.get(Task, parent_id)
        if not parent:
            raise NotFoundException("Parent task", str(parent_id))
        if parent.project_id != project_id:
            raise CrossProjectError(
                "Parent task must be in the same project", field="parent_id"
            )
        return parent
