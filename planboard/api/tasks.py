import logging
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from planboard.core.auth import get_current_active_user
from planboard.core.policy import TaskAction
from planboard.core.rbac import require_task_permission
from planboard.db.client import get_db
from planboard.schemas.activity import ActivityResponse
from planboard.schemas.auth import AuthUser
from planboard.schemas.responses import DataResponse, ListResponse, MessageResponse
from planboard.schemas.task import (
    TaskCreate,
    TaskUpdate,
    TaskResponse,
    TaskReorderRequest,
    TaskStatusChange,
    TaskMoveResponse,
    TaskOrderEntry,
    TaskTreeNode,
)
from planboard.services.activity_service import ActivityService
from planboard.services.ordering_service import MoveResult
from planboard.services.task_service import TaskService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["Tasks"])


def _move_response(result: MoveResult) -> TaskMoveResponse:
    return TaskMoveResponse(
        task=TaskResponse.model_validate(result.task),
        scopes=[
            [
                TaskOrderEntry(
                    id=task.id,
                    order=task.order,
                    parent_id=task.parent_id,
                    status_id=task.status_id,
                )
                for task in scope
            ]
            for scope in result.scopes
        ],
    )


@router.post(
    "",
    response_model=DataResponse[TaskResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_task(
    task_data: TaskCreate,
    current_user: Annotated[AuthUser, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> DataResponse[TaskResponse]:
    """
    Create a new task.

    User needs update access to the project (admin, project owner or team member).
    """
    task_service = TaskService(db)
    task = await task_service.create_task(task_data, UUID(current_user.id))

    return DataResponse(
        message="Task created successfully",
        data=TaskResponse.model_validate(task),
    )


@router.post("/reorder", response_model=DataResponse[TaskMoveResponse])
async def reorder_task(
    reorder: TaskReorderRequest,
    current_user: Annotated[AuthUser, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> DataResponse[TaskMoveResponse]:
    """
    Move a task within the tree.

    The response holds the canonical order of every scope the move touched.
    """
    task_service = TaskService(db)
    result = await task_service.reorder_task(
        reorder.task_id,
        UUID(current_user.id),
        new_parent_id=reorder.new_parent_id,
        target_task_id=reorder.target_task_id,
        is_same_parent_reorder=reorder.is_same_parent_reorder,
    )

    return DataResponse(message="Task reordered successfully", data=_move_response(result))


@router.get("/{task_id}", response_model=DataResponse[TaskResponse])
async def get_task(
    task_id: UUID,
    current_user: Annotated[AuthUser, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> DataResponse[TaskResponse]:
    """
    Get task details by ID.
    """
    task_service = TaskService(db)
    task = await task_service.get_task(task_id, UUID(current_user.id))

    return DataResponse(
        message="Task retrieved successfully",
        data=TaskResponse.model_validate(task),
    )


@router.get("/{task_id}/tree", response_model=DataResponse[TaskTreeNode])
async def get_task_tree(
    task_id: UUID,
    current_user: Annotated[AuthUser, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    depth: Optional[int] = Query(None, ge=1, le=100, description="Subtask levels"),
) -> DataResponse[TaskTreeNode]:
    """
    Get a task with its nested subtasks.
    """
    task_service = TaskService(db)
    tree = await task_service.get_task_tree(task_id, UUID(current_user.id), depth)

    return DataResponse(
        message="Task tree retrieved successfully",
        data=TaskTreeNode.model_validate(tree.to_nested()),
    )


@router.patch("/{task_id}", response_model=DataResponse[TaskResponse])
async def update_task(
    task_id: UUID,
    task_data: TaskUpdate,
    current_user: Annotated[AuthUser, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> DataResponse[TaskResponse]:
    """
    Partially update a task.

    Assignee problems do not fail the request; they are listed in ``warnings``.
    """
    task_service = TaskService(db)
    result = await task_service.update_task(task_id, task_data, UUID(current_user.id))

    response = TaskResponse.model_validate(result.task)
    response.warnings = result.warnings
    message = "Task updated successfully"
    if result.warnings:
        message = "Task updated with warnings"

    return DataResponse(message=message, data=response)


@router.delete("/{task_id}", response_model=MessageResponse)
async def delete_task(
    task_id: UUID,
    current_user: Annotated[AuthUser, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    cascade: bool = Query(False, description="Also delete all subtasks"),
) -> MessageResponse:
    """
    Delete a task. Tasks with subtasks need ``cascade=true``.
    """
    task_service = TaskService(db)
    await task_service.delete_task(task_id, UUID(current_user.id), cascade=cascade)

    return MessageResponse(message="Task deleted successfully")


@router.patch("/{task_id}/status", response_model=DataResponse[TaskMoveResponse])
async def set_task_status(
    task_id: UUID,
    status_change: TaskStatusChange,
    current_user: Annotated[AuthUser, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> DataResponse[TaskMoveResponse]:
    """
    Move a task to a kanban column, optionally at a position.
    """
    task_service = TaskService(db)
    result = await task_service.set_task_status(
        task_id,
        status_change.status_id,
        UUID(current_user.id),
        target_task_id=status_change.target_task_id,
        position=status_change.position,
    )

    return DataResponse(message="Task status updated", data=_move_response(result))


@router.get("/{task_id}/activities", response_model=ListResponse[ActivityResponse])
async def list_task_activities(
    task_id: UUID,
    current_user: Annotated[AuthUser, Depends(require_task_permission(TaskAction.VIEW))],
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: Optional[int] = Query(None, ge=1, le=500),
) -> ListResponse[ActivityResponse]:
    """
    Activity history of a task, newest first.
    """
    activities = await ActivityService(db).list_task_activities(task_id, limit)
    data = [ActivityResponse.model_validate(a) for a in activities]
    return ListResponse(data=data, total=len(data))
