from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from planboard.core.auth import get_current_active_user
from planboard.db.client import get_db
from planboard.schemas.auth import AuthUser
from planboard.schemas.project_status import ProjectStatusUpdate, ProjectStatusResponse
from planboard.schemas.responses import DataResponse, MessageResponse
from planboard.services.project_status_service import ProjectStatusService

router = APIRouter(prefix="/statuses", tags=["Statuses"])


@router.patch("/{status_id}", response_model=DataResponse[ProjectStatusResponse])
async def update_status(
    status_id: UUID,
    status_data: ProjectStatusUpdate,
    current_user: Annotated[AuthUser, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> DataResponse[ProjectStatusResponse]:
    """
    Rename, recolor or set the default kanban column.
    """
    updated = await ProjectStatusService(db).update_status(
        status_id, status_data, UUID(current_user.id)
    )
    return DataResponse(
        message="Status updated successfully",
        data=ProjectStatusResponse.model_validate(updated),
    )


@router.delete("/{status_id}", response_model=MessageResponse)
async def delete_status(
    status_id: UUID,
    current_user: Annotated[AuthUser, Depends(get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> MessageResponse:
    """
    Delete a kanban column. Columns still holding tasks, and the default
    column, cannot be deleted.
    """
    await ProjectStatusService(db).delete_status(status_id, UUID(current_user.id))
    return MessageResponse(message="Status deleted successfully")
