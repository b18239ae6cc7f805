import logging
from typing import Annotated, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from planboard.core.auth import get_current_active_user
from planboard.core.policy import TaskAction
from planboard.core.rbac import require_project_permission
from planboard.db.client import get_db
from planboard.models.task import TaskPriority
from planboard.schemas.activity import ActivityResponse
from planboard.schemas.auth import AuthUser
from planboard.schemas.project import ProjectCreate, ProjectResponse
from planboard.schemas.project_status import (
    ProjectStatusCreate,
    ProjectStatusReorder,
    ProjectStatusResponse,
)
from planboard.schemas.responses import DataResponse, ListResponse, PaginationMeta
from planboard.schemas.task import BoardColumn, BoardResponse, TaskFilters, TaskResponse
from planboard.services.activity_service import ActivityService
from planboard.services.project_service import ProjectService
from planboard.services.project_status_service import ProjectStatusService
from planboard.services.task_service import TaskService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["Projects"])


@router.post(
    "", response_model=DataResponse[ProjectResponse], status_code=status.HTTP_201_CREATED
)
async def create_project(
    project_data: ProjectCreate,
    current_user: Annotated[AuthUser, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> DataResponse[ProjectResponse]:
    """
    Create a new project.

    The creator becomes its owner. The project starts with the given columns,
    or "To Do", "In Progress" and "Done".
    """
    project_service = ProjectService(db)
    project, statuses = await project_service.create_project(
        project_data, UUID(current_user.id)
    )

    return DataResponse(
        message="Project created successfully",
        data=ProjectResponse(
            id=project.id,
            name=project.name,
            description=project.description,
            created_by_id=project.created_by_id,
            created_at=project.created_at,
            statuses=[ProjectStatusResponse.model_validate(s) for s in statuses],
        ),
    )


@router.get("/{project_id}/board", response_model=DataResponse[BoardResponse])
async def get_board(
    project_id: UUID,
    current_user: Annotated[AuthUser, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> DataResponse[BoardResponse]:
    """
    Kanban board: top-level tasks grouped by column, each column in display order.
    """
    task_service = TaskService(db)
    board = await task_service.list_board(project_id, UUID(current_user.id))

    columns: List[BoardColumn] = []
    for index, (column, tasks) in enumerate(board):
        columns.append(
            BoardColumn(
                status_id=column.id if column else None,
                name=column.name if column else "No status",
                color=column.color if column else None,
                order=column.order if column else index,
                tasks=[TaskResponse.model_validate(task) for task in tasks],
            )
        )

    return DataResponse(
        message="Board retrieved successfully",
        data=BoardResponse(project_id=project_id, columns=columns),
    )


@router.get("/{project_id}/tasks", response_model=ListResponse[TaskResponse])
async def list_project_tasks(
    project_id: UUID,
    current_user: Annotated[AuthUser, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Page size"),
    status_id: Optional[UUID] = Query(None, description="Filter by kanban column"),
    priority: Optional[List[TaskPriority]] = Query(
        None, description="Filter by priority"
    ),
    assignee_id: Optional[UUID] = Query(None, description="Filter by assignee"),
    parent_id: Optional[UUID] = Query(None, description="List subtasks of this task"),
    include_subtasks: bool = Query(False, description="Include subtasks in results"),
) -> ListResponse[TaskResponse]:
    """
    Get tasks for a project with filtering and pagination.

    Top-level tasks only unless parent_id or include_subtasks is given.
    """
    filters = TaskFilters(
        status_id=status_id,
        priority=priority,
        assignee_id=assignee_id,
        parent_id=parent_id,
        include_subtasks=include_subtasks,
    )

    task_service = TaskService(db)
    tasks, total = await task_service.list_tasks(
        project_id, UUID(current_user.id), filters, page, size
    )

    return ListResponse(
        message="Tasks retrieved successfully",
        data=[TaskResponse.model_validate(task) for task in tasks],
        total=total,
        pagination=PaginationMeta.create(page, size, total),
    )


@router.get("/{project_id}/activities", response_model=ListResponse[ActivityResponse])
async def list_project_activities(
    project_id: UUID,
    current_user: Annotated[
        AuthUser, Depends(require_project_permission(TaskAction.VIEW))
    ],
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: Optional[int] = Query(None, ge=1, le=500),
) -> ListResponse[ActivityResponse]:
    """
    Activity history of a project, newest first.
    """
    activities = await ActivityService(db).list_project_activities(project_id, limit)
    data = [ActivityResponse.model_validate(a) for a in activities]
    return ListResponse(data=data, total=len(data))


@router.get(
    "/{project_id}/statuses", response_model=ListResponse[ProjectStatusResponse]
)
async def list_statuses(
    project_id: UUID,
    current_user: Annotated[AuthUser, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ListResponse[ProjectStatusResponse]:
    """
    Kanban columns of a project in board order.
    """
    statuses = await ProjectStatusService(db).list_statuses(
        project_id, UUID(current_user.id)
    )
    data = [ProjectStatusResponse.model_validate(s) for s in statuses]
    return ListResponse(data=data, total=len(data))


@router.post(
    "/{project_id}/statuses",
    response_model=DataResponse[ProjectStatusResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_status(
    project_id: UUID,
    status_data: ProjectStatusCreate,
    current_user: Annotated[AuthUser, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> DataResponse[ProjectStatusResponse]:
    """
    Add a kanban column at the end of the board.
    """
    created = await ProjectStatusService(db).create_status(
        project_id, status_data, UUID(current_user.id)
    )
    return DataResponse(
        message="Status created successfully",
        data=ProjectStatusResponse.model_validate(created),
    )


@router.put(
    "/{project_id}/statuses/order",
    response_model=ListResponse[ProjectStatusResponse],
)
async def reorder_statuses(
    project_id: UUID,
    reorder: ProjectStatusReorder,
    current_user: Annotated[AuthUser, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ListResponse[ProjectStatusResponse]:
    """
    Replace the column order of a project.
    """
    statuses = await ProjectStatusService(db).reorder_statuses(
        project_id, reorder.status_ids, UUID(current_user.id)
    )
    data = [ProjectStatusResponse.model_validate(s) for s in statuses]
    return ListResponse(message="Statuses reordered", data=data, total=len(data))
