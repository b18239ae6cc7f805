import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from planboard.core.config import settings
from planboard.core.exceptions import ValidationException
from planboard.models.task import TaskAssignee
from planboard.models.team_member import TeamMember, TeamRole
from planboard.models.user import User

logger = logging.getLogger(__name__)


@dataclass
class AssigneeDiff:
    """Result of reconciling a task's assignees"""

    added: List[UUID] = field(default_factory=list)
    removed: List[UUID] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


class AssigneeService:
    """
    Keeps task assignees in step with project team membership.
    Every assignment implies membership of the task's project.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _unique(user_ids: Iterable[UUID]) -> List[UUID]:
        seen = set()
        result = []
        for user_id in user_ids:
            if user_id not in seen:
                seen.add(user_id)
                result.append(user_id)
        return result

    async def validate_user_ids(self, user_ids: Iterable[UUID]) -> List[UUID]:
        """
        Check that every id belongs to an existing user.
        :param user_ids: Candidate user ids.
        :return: The ids, deduplicated in their original order.
        :raises ValidationException: Listing the ids that do not resolve.
        """
        wanted = self._unique(user_ids)
        if not wanted:
            return wanted

        stmt = select(User.id).where(User.id.in_(wanted))
        found = set((await self.db.scalars(stmt)).all())
        invalid = [str(user_id) for user_id in wanted if user_id not in found]
        if invalid:
            raise ValidationException(
                "One or more assignees do not exist",
                field="assignee_ids",
                details={"invalid_ids": invalid},
            )
        return wanted

    async def get_assignee_ids(self, task_id: UUID) -> List[UUID]:
        stmt = (
            select(TaskAssignee.user_id)
            .where(TaskAssignee.task_id == task_id)
            .order_by(TaskAssignee.assigned_at, TaskAssignee.id)
        )
        result = await self.db.scalars(stmt)
        return list(result.all())

    async def ensure_team_member(
        self, project_id: UUID, user_id: UUID, role: Optional[TeamRole] = None
    ) -> bool:
        """
        Grant project membership if the user does not have it yet.
        :param project_id: UUID of the project.
        :param user_id: UUID of the user.
        :param role: Role for a new membership; settings.DEFAULT_TEAM_ROLE when None.
        :return: True if a membership row was created.
        """
        stmt = select(TeamMember.id).where(
            TeamMember.project_id == project_id, TeamMember.user_id == user_id
        )
        if await self.db.scalar(stmt) is not None:
            return False

        self.db.add(
            TeamMember(
                project_id=project_id,
                user_id=user_id,
                role=role or TeamRole(settings.DEFAULT_TEAM_ROLE),
            )
        )
        await self.db.flush()
        logger.info(f"Added user {user_id} to project {project_id} team via assignment")
        return True

    async def ensure_assignee(
        self,
        task_id: UUID,
        project_id: UUID,
        user_id: UUID,
        assigned_by: Optional[UUID] = None,
    ) -> bool:
        """
        Assign a user to a task if not already assigned, and make them a team member.
        :return: True if an assignment row was created.
        """
        stmt = select(TaskAssignee.id).where(
            TaskAssignee.task_id == task_id, TaskAssignee.user_id == user_id
        )
        created = False
        if await self.db.scalar(stmt) is None:
            self.db.add(
                TaskAssignee(
                    task_id=task_id,
                    user_id=user_id,
                    assigned_by=assigned_by or user_id,
                )
            )
            await self.db.flush()
            created = True

        await self.ensure_team_member(project_id, user_id)
        return created

    async def set_assignees(
        self,
        task_id: UUID,
        project_id: UUID,
        desired_user_ids: Iterable[UUID],
        assigned_by: Optional[UUID] = None,
    ) -> AssigneeDiff:
        """
        Make the task's assignees exactly the desired set.
        :param task_id: UUID of the task.
        :param project_id: Project of the task; new assignees join its team.
        :param desired_user_ids: Full desired assignee list.
        :param assigned_by: User making the change.
        :return: AssigneeDiff with the added and removed user ids.
        :raises ValidationException: If any id does not resolve to a user.
        """
        desired = await self.validate_user_ids(desired_user_ids)
        current = await self.get_assignee_ids(task_id)

        desired_set = set(desired)
        current_set = set(current)
        diff = AssigneeDiff(
            added=[user_id for user_id in desired if user_id not in current_set],
            removed=[user_id for user_id in current if user_id not in desired_set],
        )

        if diff.removed:
            await self.db.execute(
                delete(TaskAssignee).where(
                    TaskAssignee.task_id == task_id,
                    TaskAssignee.user_id.in_(diff.removed),
                )
            )

        for user_id in diff.added:
            self.db.add(
                TaskAssignee(task_id=task_id, user_id=user_id, assigned_by=assigned_by)
            )
        await self.db.flush()

        for user_id in diff.added:
            await self.ensure_team_member(project_id, user_id)

        if diff.changed:
            logger.debug(
                f"Task {task_id} assignees: +{len(diff.added)} -{len(diff.removed)}"
            )
        return diff

    async def clear_assignees(self, task_ids: List[UUID]) -> None:
        """Drop every assignment row for the given tasks"""
        if not task_ids:
            return
        await self.db.execute(
            delete(TaskAssignee).where(TaskAssignee.task_id.in_(task_ids))
        )
