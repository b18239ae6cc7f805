import logging
from typing import List, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from planboard.models.activity import ActivityAction, ActivityEntity
from planboard.models.project import Project
from planboard.models.project_status import ProjectStatus
from planboard.models.team_member import TeamMember, TeamRole
from planboard.schemas.project import ProjectCreate
from planboard.services.activity_service import ActivityService
from planboard.services.project_status_service import ProjectStatusService

logger = logging.getLogger(__name__)


class ProjectService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.activity = ActivityService(db)
        self.statuses = ProjectStatusService(db, activity=self.activity)

    async def create_project(
        self, project_data: ProjectCreate, creator_id: UUID
    ) -> Tuple[Project, List[ProjectStatus]]:
        """
        Create a new project owned by its creator, with its first kanban columns.
        :param project_data: ProjectCreate schema containing project details.
        :param creator_id: UUID of the user creating the project.
        :return: Created Project and its columns in board order.
        """
        project = Project(
            name=project_data.name,
            description=project_data.description,
            created_by_id=creator_id,
        )
        self.db.add(project)
        await self.db.flush()

        self.db.add(
            TeamMember(project_id=project.id, user_id=creator_id, role=TeamRole.OWNER)
        )

        await self.activity.record(
            action=ActivityAction.CREATED,
            entity_type=ActivityEntity.PROJECT,
            entity_id=project.id,
            description=f'Project "{project.name}" was created',
            user_id=creator_id,
            project_id=project.id,
        )

        # Commits the project together with its columns
        statuses = await self.statuses.create_default_statuses(
            project.id, project_data.initial_statuses
        )

        logger.info(f"Project {project.id} created by {creator_id}")
        return project, statuses
