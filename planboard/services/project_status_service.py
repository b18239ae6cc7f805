import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from planboard.core.exceptions import (
    NotFoundException,
    ConflictError,
    ValidationException,
)
from planboard.core.policy import TaskAction
from planboard.models.activity import ActivityAction, ActivityEntity
from planboard.models.project import Project
from planboard.models.project_status import ProjectStatus
from planboard.models.task import Task
from planboard.schemas.project_status import ProjectStatusCreate, ProjectStatusUpdate
from planboard.services.activity_service import ActivityService
from planboard.services.permission_service import PermissionService

logger = logging.getLogger(__name__)

DEFAULT_STATUSES = (
    ("To Do", "#E4E4E7", True),
    ("In Progress", "#3B82F6", False),
    ("Done", "#22C55E", False),
)


class ProjectStatusService:
    """Kanban column management"""

    def __init__(
        self,
        db: AsyncSession,
        permissions: Optional[PermissionService] = None,
        activity: Optional[ActivityService] = None,
    ):
        self.db = db
        self.permissions = permissions or PermissionService(db)
        self.activity = activity or ActivityService(db)

    async def _get_status_for_update(
        self, status_id: UUID, user_id: UUID
    ) -> ProjectStatus:
        """
        Load a column the user is about to change. Columns of projects the
        user cannot view are reported as not found.
        :raises NotFoundException: If the status is missing or not visible.
        :raises ForbiddenException: If the user may view but not change it.
        """
        status = await self.db.get(ProjectStatus, status_id)
        if not status or not await self.permissions.can(
            user_id, TaskAction.VIEW, project_id=status.project_id
        ):
            raise NotFoundException("Status", str(status_id))

        await self.permissions.require(
            user_id, TaskAction.UPDATE, project_id=status.project_id
        )
        return status

    async def list_statuses(
        self, project_id: UUID, user_id: Optional[UUID] = None
    ) -> List[ProjectStatus]:
        """
        Columns of a project in board order.
        :param project_id: UUID of the project.
        :param user_id: When given, the user must be allowed to view the project.
        :return: List of ProjectStatus.
        """
        if user_id is not None:
            await self.permissions.require(
                user_id, TaskAction.VIEW, project_id=project_id
            )
        elif not await self.db.get(Project, project_id):
            raise NotFoundException("Project", str(project_id))

        stmt = (
            select(ProjectStatus)
            .where(ProjectStatus.project_id == project_id)
            .order_by(ProjectStatus.order, ProjectStatus.created_at)
        )
        result = await self.db.scalars(stmt)
        return list(result.all())

    async def _ensure_unique_name(
        self, project_id: UUID, name: str, exclude_id: Optional[UUID] = None
    ) -> None:
        stmt = select(ProjectStatus.id).where(
            ProjectStatus.project_id == project_id,
            func.lower(ProjectStatus.name) == name.lower(),
        )
        if exclude_id is not None:
            stmt = stmt.where(ProjectStatus.id != exclude_id)
        if await self.db.scalar(stmt) is not None:
            raise ConflictError(
                f'A status named "{name}" already exists in this project',
                resource="ProjectStatus",
            )

    async def _clear_default(self, project_id: UUID) -> None:
        await self.db.execute(
            update(ProjectStatus)
            .where(ProjectStatus.project_id == project_id, ProjectStatus.is_default)
            .values(is_default=False)
            .execution_options(synchronize_session="fetch")
        )

    async def create_status(
        self, project_id: UUID, data: ProjectStatusCreate, user_id: UUID
    ) -> ProjectStatus:
        """
        Add a column at the end of the board.
        :param project_id: UUID of the project.
        :param data: ProjectStatusCreate schema.
        :param user_id: Acting user; needs project-level update permission.
        :return: Created ProjectStatus.
        """
        await self.permissions.require(user_id, TaskAction.UPDATE, project_id=project_id)
        await self._ensure_unique_name(project_id, data.name)

        current_max = await self.db.scalar(
            select(func.max(ProjectStatus.order)).where(
                ProjectStatus.project_id == project_id
            )
        )
        is_first = current_max is None
        make_default = data.is_default or is_first
        if make_default and not is_first:
            await self._clear_default(project_id)

        status = ProjectStatus(
            project_id=project_id,
            name=data.name,
            color=data.color,
            order=0 if is_first else current_max + 1,
            is_default=make_default,
        )
        self.db.add(status)
        await self.db.flush()

        await self.activity.record(
            action=ActivityAction.CREATED,
            entity_type=ActivityEntity.PROJECT_STATUS,
            entity_id=status.id,
            description=f'Status "{status.name}" was created',
            user_id=user_id,
            project_id=project_id,
        )
        await self.db.commit()

        logger.info(f"Status '{status.name}' created in project {project_id}")
        return status

    async def update_status(
        self, status_id: UUID, data: ProjectStatusUpdate, user_id: UUID
    ) -> ProjectStatus:
        """
        Rename, recolor or make a column the default.
        :raises ValidationException: If the default flag is removed from the default column.
        """
        status = await self._get_status_for_update(status_id, user_id)

        changes = data.model_dump(exclude_unset=True)
        if changes.get("is_default") is False and status.is_default:
            raise ValidationException(
                "Pick another default status instead of clearing this one",
                field="is_default",
            )

        if changes.get("name") is not None and changes["name"] != status.name:
            await self._ensure_unique_name(status.project_id, changes["name"], status.id)
            status.name = changes["name"]

        if changes.get("color") is not None:
            status.color = changes["color"]

        if changes.get("is_default") is True and not status.is_default:
            await self._clear_default(status.project_id)
            status.is_default = True

        await self.db.flush()
        await self.activity.record(
            action=ActivityAction.UPDATED,
            entity_type=ActivityEntity.PROJECT_STATUS,
            entity_id=status.id,
            description=f'Status "{status.name}" was updated',
            user_id=user_id,
            project_id=status.project_id,
        )
        await self.db.commit()
        return status

    async def reorder_statuses(
        self, project_id: UUID, ordered_ids: List[UUID], user_id: UUID
    ) -> List[ProjectStatus]:
        """
        Set the full column order of a project.
        :param ordered_ids: Every status id of the project, in the new order.
        :raises ValidationException: If ordered_ids is not exactly the project's columns.
        """
        await self.permissions.require(user_id, TaskAction.UPDATE, project_id=project_id)

        statuses = await self.list_statuses(project_id)
        by_id = {status.id: status for status in statuses}
        if len(ordered_ids) != len(set(ordered_ids)) or set(ordered_ids) != set(by_id):
            raise ValidationException(
                "Status order must list every status of the project exactly once",
                field="status_ids",
            )

        for index, status_id in enumerate(ordered_ids):
            by_id[status_id].order = index
        await self.db.flush()

        await self.activity.record(
            action=ActivityAction.REORDERED,
            entity_type=ActivityEntity.PROJECT_STATUS,
            entity_id=project_id,
            description="Statuses were reordered",
            user_id=user_id,
            project_id=project_id,
        )
        await self.db.commit()
        return [by_id[status_id] for status_id in ordered_ids]

    async def delete_status(self, status_id: UUID, user_id: UUID) -> None:
        """
        Remove a column that no task uses.
        :raises ConflictError: If tasks reference the status or it is the default column.
        """
        status = await self._get_status_for_update(status_id, user_id)
        project_id = status.project_id

        task_count = await self.db.scalar(
            select(func.count(Task.id)).where(Task.status_id == status_id)
        )
        if task_count:
            raise ConflictError(
                f'Status "{status.name}" is used by {task_count} task(s)',
                resource="ProjectStatus",
                details={"task_count": task_count},
            )
        if status.is_default:
            raise ConflictError(
                "The default status cannot be deleted", resource="ProjectStatus"
            )

        name = status.name
        await self.db.delete(status)
        await self.db.flush()

        remaining = await self.list_statuses(project_id)
        for index, column in enumerate(remaining):
            column.order = index
        await self.db.flush()

        await self.activity.record(
            action=ActivityAction.DELETED,
            entity_type=ActivityEntity.PROJECT_STATUS,
            entity_id=status_id,
            description=f'Status "{name}" was deleted',
            user_id=user_id,
            project_id=project_id,
        )
        await self.db.commit()
        logger.info(f"Status '{name}' deleted from project {project_id}")

    async def create_default_statuses(
        self,
        project_id: UUID,
        initial: Optional[List[ProjectStatusCreate]] = None,
    ) -> List[ProjectStatus]:
        """
        Seed a new project with its first columns. Does nothing when the
        project already has columns.
        :param project_id: UUID of the project.
        :param initial: Columns to create in board order; the standard
            "To Do", "In Progress", "Done" when empty. The first flagged column
            becomes the default, or the first column when none is flagged.
        :return: The project's columns.
        """
        existing = await self.list_statuses(project_id)
        if existing:
            return existing

        specs = DEFAULT_STATUSES
        if initial:
            flagged = [i for i, data in enumerate(initial) if data.is_default]
            default_index = flagged[0] if flagged else 0
            specs = [
                (data.name, data.color, index == default_index)
                for index, data in enumerate(initial)
            ]

        statuses = [
            ProjectStatus(
                project_id=project_id,
                name=name,
                color=color,
                order=index,
                is_default=is_default,
            )
            for index, (name, color, is_default) in enumerate(specs)
        ]
        self.db.add_all(statuses)
        await self.db.commit()
        return statuses
