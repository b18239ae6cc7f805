import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from planboard.core.exceptions import (
    APIException,
    NotFoundException,
    ConflictError,
)
from planboard.core.policy import PermissionPolicy, TaskAction
from planboard.models.activity import ActivityAction, ActivityEntity
from planboard.models.project_status import ProjectStatus
from planboard.models.task import Task, TaskAssignee
from planboard.schemas.task import TaskCreate, TaskUpdate, TaskFilters
from planboard.services.activity_service import ActivityService
from planboard.services.assignee_service import AssigneeService
from planboard.services.hierarchy_service import HierarchyService
from planboard.services.ordering_service import OrderingService, MoveResult
from planboard.services.permission_service import PermissionService
from planboard.services.status_service import StatusTransitionService
from planboard.services.task_tree_service import TaskTreeService, TaskTree

logger = logging.getLogger(__name__)


@dataclass
class TaskMutationResult:
    task: Task
    warnings: List[str] = field(default_factory=list)


class TaskService:
    """
    Task mutations. Each public method authorizes, validates, applies the change
    and commits once; nothing is written when validation or authorization fails.
    """

    def __init__(self, db: AsyncSession, policy: Optional[PermissionPolicy] = None):
        self.db = db
        self.permissions = PermissionService(db, policy)
        self.hierarchy = HierarchyService(db)
        self.ordering = OrderingService(db)
        self.assignees = AssigneeService(db)
        self.activity = ActivityService(db)
        self.statuses = StatusTransitionService(db, self.ordering, self.activity)
        self.trees = TaskTreeService(db)

    # ==========================================
    # Reads
    # ==========================================

    async def get_task_by_id(self, task_id: UUID) -> Task:
        """
        Retrieve a task with its assignees loaded.
        :param task_id: UUID of the task to retrieve.
        :return: Task object.
        :raises NotFoundException: If the task does not exist.
        """
        stmt = (
            select(Task)
            .where(Task.id == task_id)
            .options(selectinload(Task.assignees))
            .execution_options(populate_existing=True)
        )
        task = await self.db.scalar(stmt)
        if not task:
            raise NotFoundException("Task", str(task_id))
        return task

    async def get_task(self, task_id: UUID, user_id: UUID) -> Task:
        await self.permissions.require(user_id, TaskAction.VIEW, task_id=task_id)
        return await self.get_task_by_id(task_id)

    async def get_task_tree(
        self, task_id: UUID, user_id: UUID, depth: Optional[int] = None
    ) -> TaskTree:
        """
        Load a task with its subtasks.
        :param task_id: UUID of the root task.
        :param user_id: Requesting user; needs view permission on the root.
        :param depth: Subtask levels to load.
        :return: TaskTree arena.
        """
        await self.permissions.require(user_id, TaskAction.VIEW, task_id=task_id)
        return await self.trees.load_subtree(task_id, depth)

    @staticmethod
    def _apply_task_filters(stmt, filters: TaskFilters):
        """Apply filters to task query"""
        if filters.status_id:
            stmt = stmt.where(Task.status_id == filters.status_id)

        if filters.priority:
            stmt = stmt.where(Task.priority.in_(filters.priority))

        if filters.assignee_id:
            stmt = stmt.where(
                Task.id.in_(
                    select(TaskAssignee.task_id).where(
                        TaskAssignee.user_id == filters.assignee_id
                    )
                )
            )

        if filters.parent_id:
            stmt = stmt.where(Task.parent_id == filters.parent_id)
        elif not filters.include_subtasks:
            stmt = stmt.where(Task.parent_id.is_(None))

        return stmt

    async def list_tasks(
        self,
        project_id: UUID,
        user_id: UUID,
        filters: TaskFilters,
        page: int = 1,
        size: int = 20,
    ) -> Tuple[List[Task], int]:
        """
        Get tasks for a project with filtering and pagination.

        Only top-level tasks are listed unless a parent is given or subtasks
        are requested. Results come in display order.
        :param project_id: UUID of the project.
        :param user_id: Requesting user; needs view permission on the project.
        :param filters: TaskFilters schema containing filter criteria.
        :param page: Page number, starting at 1.
        :param size: Number of tasks per page.
        :return: Tuple of the page of tasks and the total matching count.
        """
        await self.permissions.require(user_id, TaskAction.VIEW, project_id=project_id)

        stmt = self._apply_task_filters(
            select(Task).where(Task.project_id == project_id), filters
        )

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total_count = await self.db.scalar(count_stmt)

        stmt = (
            stmt.order_by(Task.order, Task.created_at, Task.id)
            .offset((page - 1) * size)
            .limit(size)
            .options(selectinload(Task.assignees))
        )
        tasks = (await self.db.scalars(stmt)).all()

        return list(tasks), total_count or 0

    async def list_board(
        self, project_id: UUID, user_id: UUID
    ) -> List[Tuple[Optional[ProjectStatus], List[Task]]]:
        """
        Top-level tasks of a project grouped into kanban columns.
        :param project_id: UUID of the project.
        :param user_id: Requesting user; needs view permission on the project.
        :return: (status, tasks) pairs in column order; a trailing (None, tasks)
            pair holds tasks without a status, when there are any.
        """
        await self.permissions.require(user_id, TaskAction.VIEW, project_id=project_id)

        statuses = (
            await self.db.scalars(
                select(ProjectStatus)
                .where(ProjectStatus.project_id == project_id)
                .order_by(ProjectStatus.order, ProjectStatus.created_at)
            )
        ).all()

        tasks = (
            await self.db.scalars(
                select(Task)
                .where(Task.project_id == project_id, Task.parent_id.is_(None))
                .options(selectinload(Task.assignees))
                .order_by(Task.order, Task.created_at, Task.id)
            )
        ).all()

        columns = {status.id: [] for status in statuses}
        unassigned: List[Task] = []
        for task in tasks:
            columns.get(task.status_id, unassigned).append(task)

        board: List[Tuple[Optional[ProjectStatus], List[Task]]] = [
            (status, columns[status.id]) for status in statuses
        ]
        if unassigned:
            board.append((None, unassigned))
        return board

    # ==========================================
    # Mutations
    # ==========================================

    async def create_task(self, task_data: TaskCreate, user_id: UUID) -> Task:
        """
        Create a task at the end of its (project, parent) scope.
        :param task_data: TaskCreate schema containing task details.
        :param user_id: UUID of the creating user.
        :return: Created Task with assignees loaded.
        """
        project_id = task_data.project_id
        await self.permissions.require(user_id, TaskAction.UPDATE, project_id=project_id)

        if task_data.parent_id:
            await self.hierarchy.validate_new_parent(task_data.parent_id, project_id)

        if task_data.status_id:
            status = await self.statuses.get_project_status(
                task_data.status_id, project_id
            )
        else:
            status = await self.statuses.get_default_status(project_id)

        assignee_ids = await self.assignees.validate_user_ids(task_data.assignee_ids)
        order = await self.ordering.next_order(project_id, task_data.parent_id)

        task = Task(
            title=task_data.title,
            description=task_data.description,
            priority=task_data.priority,
            start_date=task_data.start_date,
            end_date=task_data.end_date,
            due_date=task_data.due_date,
            estimated_time=task_data.estimated_time,
            time_spent=task_data.time_spent,
            project_id=project_id,
            status_id=status.id if status else None,
            parent_id=task_data.parent_id,
            order=order,
            completed=False,
        )
        self.db.add(task)
        await self.db.flush()

        if assignee_ids:
            await self.assignees.set_assignees(
                task.id, project_id, assignee_ids, assigned_by=user_id
            )

        kind = "Subtask" if task.parent_id else "Task"
        await self.activity.record(
            action=ActivityAction.CREATED,
            entity_type=ActivityEntity.TASK,
            entity_id=task.id,
            description=f'{kind} "{task.title}" was created',
            user_id=user_id,
            project_id=project_id,
            task_id=task.id,
        )
        await self.db.commit()

        logger.info(f"Task {task.id} created in project {project_id} at order {order}")
        return await self.get_task_by_id(task.id)

    @staticmethod
    def _describe_update(task: Task, changed: List[str]) -> str:
        if changed == ["completed"]:
            state = "completed" if task.completed else "incomplete"
            return f'Task "{task.title}" was marked as {state}'
        return f'Task "{task.title}" was updated ({", ".join(changed)})'

    async def update_task(
        self, task_id: UUID, task_data: TaskUpdate, user_id: UUID
    ) -> TaskMutationResult:
        """
        Apply a partial update.

        Status and parent changes go through the status and hierarchy rules.
        Assignee problems do not abort the update; they come back as warnings.
        When the request carries no assignee list the acting user is added as
        an assignee.
        :param task_id: UUID of the task to update.
        :param task_data: TaskUpdate schema; only fields present are applied.
        :param user_id: UUID of the acting user.
        :return: TaskMutationResult with the updated task and any warnings.
        """
        await self.permissions.require(user_id, TaskAction.UPDATE, task_id=task_id)
        task = await self.get_task_by_id(task_id)
        fields_set = task_data.model_fields_set

        move_parent = (
            "parent_id" in fields_set and task_data.parent_id != task.parent_id
        )
        move_status = (
            "status_id" in fields_set and task_data.status_id != task.status_id
        )

        if move_parent and task_data.parent_id is not None:
            await self.hierarchy.validate_reparent(
                task.id, task_data.parent_id, task.project_id
            )
            await self.permissions.require(
                user_id, TaskAction.UPDATE, task_id=task_data.parent_id
            )
        if move_status and task_data.status_id is not None:
            await self.statuses.get_project_status(task_data.status_id, task.project_id)

        changed = []
        for name, value in task_data.changes().items():
            if getattr(task, name) != value:
                setattr(task, name, value)
                changed.append(name)

        if move_parent:
            await self.ordering.move_between_scopes(
                task,
                dest_parent_id=task_data.parent_id,
                dest_status_id=task.status_id,
            )
            changed.append("parent")

        if move_status:
            await self.statuses.apply_status_change(task, task_data.status_id, user_id)

        warnings: List[str] = []
        try:
            async with self.db.begin_nested():
                if task_data.assignee_ids is not None:
                    diff = await self.assignees.set_assignees(
                        task.id, task.project_id, task_data.assignee_ids, user_id
                    )
                    if diff.changed:
                        await self.activity.record(
                            action=ActivityAction.ASSIGNED,
                            entity_type=ActivityEntity.TASK,
                            entity_id=task.id,
                            description=(
                                f'Assignees of task "{task.title}" changed: '
                                f"{len(diff.added)} added, {len(diff.removed)} removed"
                            ),
                            user_id=user_id,
                            project_id=task.project_id,
                            task_id=task.id,
                        )
                else:
                    await self.assignees.ensure_assignee(
                        task.id, task.project_id, user_id, assigned_by=user_id
                    )
        except APIException as e:
            logger.warning(f"Assignee update skipped for task {task.id}: {e.message}")
            warnings.append(e.message)
        except SQLAlchemyError as e:
            logger.warning(f"Assignee update failed for task {task.id}: {e}")
            warnings.append("Assignees could not be updated")

        if changed:
            await self.activity.record(
                action=ActivityAction.UPDATED,
                entity_type=ActivityEntity.TASK,
                entity_id=task.id,
                description=self._describe_update(task, changed),
                user_id=user_id,
                project_id=task.project_id,
                task_id=task.id,
            )

        await self.db.commit()
        return TaskMutationResult(task=await self.get_task_by_id(task.id), warnings=warnings)

    async def delete_task(
        self, task_id: UUID, user_id: UUID, cascade: bool = False
    ) -> None:
        """
        Delete a task.
        :param task_id: UUID of the task to delete.
        :param user_id: UUID of the acting user.
        :param cascade: Also delete every subtask, deepest first.
        :raises ConflictError: If the task has subtasks and cascade is False.
        """
        await self.permissions.require(user_id, TaskAction.DELETE, task_id=task_id)
        task = await self.get_task_by_id(task_id)
        title, project_id = task.title, task.project_id

        descendants = await self.trees.descendant_ids(task.id)
        if descendants and not cascade:
            raise ConflictError(
                f"Task has {len(descendants)} subtask(s); delete them first or use cascade",
                resource="Task",
                details={"subtask_count": len(descendants)},
            )

        doomed = list(reversed(descendants)) + [task.id]
        await self.assignees.clear_assignees(doomed)
        for doomed_id in doomed:
            await self.db.execute(delete(Task).where(Task.id == doomed_id))

        description = f'Task "{title}" was deleted'
        if descendants:
            description += f" with {len(descendants)} subtask(s)"
        await self.activity.record(
            action=ActivityAction.DELETED,
            entity_type=ActivityEntity.TASK,
            entity_id=task_id,
            description=description,
            user_id=user_id,
            project_id=project_id,
            task_id=task_id,
        )
        await self.db.commit()
        logger.info(f"Task {task_id} deleted ({len(descendants)} subtasks)")

    async def reorder_task(
        self,
        task_id: UUID,
        user_id: UUID,
        new_parent_id: Optional[UUID] = None,
        target_task_id: Optional[UUID] = None,
        is_same_parent_reorder: bool = False,
    ) -> MoveResult:
        """
        Drag-and-drop move in the task tree.
        :param task_id: UUID of the task being moved.
        :param user_id: UUID of the acting user.
        :param new_parent_id: New parent; None makes the task top level.
        :param target_task_id: Sibling to place the task before; None appends.
        :param is_same_parent_reorder: Keep the current parent and only reorder.
        :return: MoveResult with the task and every renumbered scope.
        """
        await self.permissions.require(user_id, TaskAction.UPDATE, task_id=task_id)
        task = await self.get_task_by_id(task_id)
        title = task.title

        if is_same_parent_reorder or new_parent_id == task.parent_id:
            scope = await self.ordering.move_within_scope(
                task, target_task_id=target_task_id
            )
            result = MoveResult(task=task, scopes=[scope])
            action = ActivityAction.REORDERED
            if task.parent_id:
                description = f'Subtask "{title}" was reordered within its parent'
            else:
                description = f'Task "{title}" was reordered'
        else:
            if new_parent_id is not None:
                await self.hierarchy.validate_reparent(
                    task.id, new_parent_id, task.project_id
                )
                await self.permissions.require(
                    user_id, TaskAction.UPDATE, task_id=new_parent_id
                )
            result = await self.ordering.move_between_scopes(
                task,
                dest_parent_id=new_parent_id,
                dest_status_id=task.status_id,
                target_task_id=target_task_id,
            )
            action = ActivityAction.MOVED
            if new_parent_id is not None:
                description = f'Task "{title}" was moved to be a subtask of another task'
            else:
                description = f'Subtask "{title}" was promoted to a top-level task'

        await self.activity.record(
            action=action,
            entity_type=ActivityEntity.TASK,
            entity_id=task.id,
            description=description,
            user_id=user_id,
            project_id=task.project_id,
            task_id=task.id,
        )
        await self.db.commit()

        result.task = await self.get_task_by_id(task.id)
        return result

    async def set_task_status(
        self,
        task_id: UUID,
        status_id: Optional[UUID],
        user_id: UUID,
        target_task_id: Optional[UUID] = None,
        position: Optional[int] = None,
    ) -> MoveResult:
        """
        Move a task to a kanban column.
        :param task_id: UUID of the task.
        :param status_id: Destination column; None clears the status.
        :param user_id: UUID of the acting user.
        :param target_task_id: Card to place the task before.
        :param position: Index in the destination column.
        :return: MoveResult with the task and every renumbered column.
        """
        await self.permissions.require(user_id, TaskAction.UPDATE, task_id=task_id)
        task = await self.get_task_by_id(task_id)

        result = await self.statuses.apply_status_change(
            task, status_id, user_id, target_task_id=target_task_id, position=position
        )
        await self.db.commit()

        result.task = await self.get_task_by_id(task.id)
        return result
