"""
Sibling ordering for tasks.

A scope is the set of siblings a task is ordered against: (project, parent)
for its position in the task tree, or (project, parent, status) for its
position in a kanban column. Every move rewrites the whole scope to the
integers ``0..n-1``; display order is ``(order, created_at, id)``.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from planboard.core.exceptions import ValidationException
from planboard.models.task import Task

logger = logging.getLogger(__name__)


@dataclass
class MoveResult:
    """The moved task plus every scope the move rewrote, in display order"""

    task: Task
    scopes: List[List[Task]] = field(default_factory=list)


class OrderingService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ==========================================
    # Pure helpers
    # ==========================================

    @staticmethod
    def assign_orders(ids: Iterable[UUID]) -> Dict[UUID, int]:
        """Number ids 0..n-1 in the given order, dropping repeats"""
        result: Dict[UUID, int] = {}
        for item in ids:
            if item not in result:
                result[item] = len(result)
        return result

    @staticmethod
    def _without(scope_ids: Iterable[UUID], moved_id: UUID) -> List[UUID]:
        return list(OrderingService.assign_orders(i for i in scope_ids if i != moved_id))

    @staticmethod
    def resequence(
        scope_ids: List[UUID], moved_id: UUID, target_id: Optional[UUID] = None
    ) -> Dict[UUID, int]:
        """
        Place a task before a sibling (or at the end) and renumber the scope.
        :param scope_ids: Current scope in display order; may or may not contain moved_id.
        :param moved_id: Task being placed.
        :param target_id: Sibling to place the task before; None appends.
        :return: New order value for every task in the scope.
        :raises ValidationException: If target_id is not part of the scope.
        """
        if target_id == moved_id:
            if moved_id in scope_ids:
                return OrderingService.assign_orders(scope_ids)
            target_id = None

        ids = OrderingService._without(scope_ids, moved_id)
        if target_id is None:
            ids.append(moved_id)
        else:
            if target_id not in ids:
                raise ValidationException(
                    "Target task is not in the destination scope",
                    field="target_task_id",
                    details={"target_task_id": str(target_id)},
                )
            ids.insert(ids.index(target_id), moved_id)

        return OrderingService.assign_orders(ids)

    @staticmethod
    def resequence_at(
        scope_ids: List[UUID], moved_id: UUID, index: int
    ) -> Dict[UUID, int]:
        """
        Place a task at an index (clamped to the scope) and renumber the scope.
        """
        ids = OrderingService._without(scope_ids, moved_id)
        index = max(0, min(index, len(ids)))
        ids.insert(index, moved_id)
        return OrderingService.assign_orders(ids)

    # ==========================================
    # Datastore operations
    # ==========================================

    async def next_order(self, project_id: UUID, parent_id: Optional[UUID]) -> int:
        """
        One past the highest order among (project, parent) siblings.
        :param project_id: UUID of the project.
        :param parent_id: UUID of the parent task, None for top level.
        :return: 0 for an empty scope, max(order) + 1 otherwise.
        """
        stmt = select(func.max(Task.order)).where(
            Task.project_id == project_id, self._parent_clause(parent_id)
        )
        current = await self.db.scalar(stmt)
        return 0 if current is None else current + 1

    @staticmethod
    def _parent_clause(parent_id: Optional[UUID]):
        if parent_id is None:
            return Task.parent_id.is_(None)
        return Task.parent_id == parent_id

    @staticmethod
    def _status_clause(status_id: Optional[UUID]):
        if status_id is None:
            return Task.status_id.is_(None)
        return Task.status_id == status_id

    async def load_scope(
        self,
        project_id: UUID,
        parent_id: Optional[UUID],
        status_id: Optional[UUID] = None,
        by_status: bool = False,
    ) -> List[Task]:
        """
        Load a sibling scope in display order.
        :param by_status: Restrict to one kanban column (status_id) when True.
        """
        stmt = select(Task).where(
            Task.project_id == project_id, self._parent_clause(parent_id)
        )
        if by_status:
            stmt = stmt.where(self._status_clause(status_id))
        stmt = stmt.order_by(Task.order, Task.created_at, Task.id)

        result = await self.db.scalars(stmt)
        return list(result.all())

    async def apply_orders(self, assignments: Dict[UUID, int]) -> None:
        """Write order values onto tasks already loaded in the session"""
        for task_id, order in assignments.items():
            task = await self.db.get(Task, task_id)
            if task is None:
                continue
            if task.order != order:
                task.order = order
        await self.db.flush()

    @staticmethod
    def _sorted(tasks: List[Task], assignments: Dict[UUID, int]) -> List[Task]:
        return sorted(tasks, key=lambda t: assignments[t.id])

    def _placement(
        self,
        scope_ids: List[UUID],
        moved_id: UUID,
        target_task_id: Optional[UUID],
        index: Optional[int],
    ) -> Dict[UUID, int]:
        if index is not None:
            return self.resequence_at(scope_ids, moved_id, index)
        return self.resequence(scope_ids, moved_id, target_task_id)

    async def move_within_scope(
        self,
        task: Task,
        by_status: bool = False,
        target_task_id: Optional[UUID] = None,
        index: Optional[int] = None,
    ) -> List[Task]:
        """
        Reorder a task among its current siblings.
        :param task: Task being moved.
        :param by_status: Use the kanban column scope instead of the tree scope.
        :param target_task_id: Sibling to place the task before.
        :param index: Position in the scope; wins over target_task_id.
        :return: The scope in its new display order.
        """
        scope = await self.load_scope(
            task.project_id, task.parent_id, task.status_id, by_status=by_status
        )
        if task not in scope:
            scope.append(task)
        assignments = self._placement(
            [t.id for t in scope], task.id, target_task_id, index
        )
        await self.apply_orders(assignments)
        return self._sorted(scope, assignments)

    async def move_between_scopes(
        self,
        task: Task,
        dest_parent_id: Optional[UUID],
        dest_status_id: Optional[UUID],
        by_status: bool = False,
        target_task_id: Optional[UUID] = None,
        index: Optional[int] = None,
    ) -> MoveResult:
        """
        Move a task out of its scope into another one.

        The source scope is renumbered without the task, the task takes its new
        parent and status, and the destination scope is renumbered with the task
        placed before target_task_id, at index, or at the end.
        :return: MoveResult with the source and destination scopes.
        """
        same_scope = task.parent_id == dest_parent_id and (
            not by_status or task.status_id == dest_status_id
        )
        if same_scope:
            task.status_id = dest_status_id
            scope = await self.move_within_scope(
                task, by_status=by_status, target_task_id=target_task_id, index=index
            )
            return MoveResult(task=task, scopes=[scope])

        source = await self.load_scope(
            task.project_id, task.parent_id, task.status_id, by_status=by_status
        )
        destination = await self.load_scope(
            task.project_id, dest_parent_id, dest_status_id, by_status=by_status
        )
        remaining = [t for t in source if t.id != task.id]
        destination = [t for t in destination if t.id != task.id]

        # Placement is computed before any write
        dest_orders = self._placement(
            [t.id for t in destination], task.id, target_task_id, index
        )
        source_orders = self.assign_orders(t.id for t in remaining)

        task.parent_id = dest_parent_id
        task.status_id = dest_status_id
        await self.apply_orders(source_orders)
        await self.apply_orders(dest_orders)

        logger.debug(
            f"Moved task {task.id} to parent={dest_parent_id} status={dest_status_id} "
            f"order={dest_orders[task.id]}"
        )
        return MoveResult(
            task=task,
            scopes=[
                self._sorted(remaining, source_orders),
                self._sorted(destination + [task], dest_orders),
            ],
        )
