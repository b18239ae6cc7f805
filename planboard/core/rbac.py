import uuid

from fastapi import Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from planboard.core.auth import get_current_active_user
from planboard.core.policy import TaskAction
from planboard.db.client import get_db
from planboard.schemas.auth import AuthUser
from planboard.services.permission_service import PermissionService


async def get_permission_service(
    db: AsyncSession = Depends(get_db),
) -> PermissionService:
    """
    Dependency to get the permission resolver.
    :param db: Database session dependency.
    :return: An instance of PermissionService using the default policy.
    """
    return PermissionService(db)


# Project-level permission factory
def require_project_permission(action: TaskAction):
    """Factory for project permission dependencies"""

    async def permission_dependency(
        project_id: uuid.UUID = Path(..., description="Project ID"),
        current_user: AuthUser = Depends(get_current_active_user),
        permissions: PermissionService = Depends(get_permission_service),
    ) -> AuthUser:
        """
        Check that the current user may perform the action on the project.
        :raises NotFoundException: If the project does not exist.
        :raises ForbiddenException: If no rule grants the action.
        """
        await permissions.require(
            uuid.UUID(current_user.id), action, project_id=project_id
        )
        return current_user

    return permission_dependency


# Task-level permission factory
def require_task_permission(action: TaskAction):
    """Factory for task permission dependencies"""

    async def permission_dependency(
        task_id: uuid.UUID = Path(..., description="Task ID"),
        current_user: AuthUser = Depends(get_current_active_user),
        permissions: PermissionService = Depends(get_permission_service),
    ) -> AuthUser:
        """
        Check that the current user may perform the action on the task,
        including the parent-task fallback.
        :raises NotFoundException: If the task does not exist.
        :raises ForbiddenException: If no rule grants the action.
        """
        await permissions.require(uuid.UUID(current_user.id), action, task_id=task_id)
        return current_user

    return permission_dependency
