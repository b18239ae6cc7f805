import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from planboard.core.exceptions import NotFoundException, ForbiddenException
from planboard.core.policy import PermissionPolicy, TaskAction, default_policy
from planboard.models.project import Project
from planboard.models.task import Task, TaskAssignee
from planboard.models.team_member import TeamMember
from planboard.models.user import User
from planboard.schemas.permission import PermissionDecision, GrantRule, DenyReason

logger = logging.getLogger(__name__)


class PermissionService:
    """
    Layered access resolver for tasks and projects.

    Rules are tried in order and the first match wins:

    1. the user's system role is granted the action by the policy;
    2. the user created the project;
    3. the user is on the project team and the policy grants their team role the action;
    4. the user is assigned to the task and the policy grants assignees the action;
    5. for a subtask, rules 1-4 are tried once more against the immediate parent.

    The parent fallback never goes further than one level.
    """

    def __init__(self, db: AsyncSession, policy: Optional[PermissionPolicy] = None):
        self.db = db
        self.policy = policy or default_policy()

    async def _team_role(self, project_id: UUID, user_id: UUID):
        stmt = select(TeamMember.role).where(
            TeamMember.project_id == project_id, TeamMember.user_id == user_id
        )
        return await self.db.scalar(stmt)

    async def _is_assignee(self, task_id: UUID, user_id: UUID) -> bool:
        stmt = select(TaskAssignee.id).where(
            TaskAssignee.task_id == task_id, TaskAssignee.user_id == user_id
        )
        return await self.db.scalar(stmt) is not None

    async def _match_rule(
        self,
        user: User,
        project: Project,
        task: Optional[Task],
        action: TaskAction,
    ) -> Optional[GrantRule]:
        """
        Evaluate rules 1-4 for one target.
        :return: The granting rule, or None when no rule applies.
        """
        if self.policy.system_role_allows(user.role, action):
            return GrantRule.SYSTEM_ROLE

        if project.is_owned_by(user.id):
            return GrantRule.PROJECT_OWNER

        team_role = await self._team_role(project.id, user.id)
        if team_role is not None and self.policy.team_role_allows(team_role, action):
            return GrantRule.TEAM_MEMBER

        if (
            task is not None
            and self.policy.assignee_allows(action)
            and await self._is_assignee(task.id, user.id)
        ):
            return GrantRule.TASK_ASSIGNEE

        return None

    async def resolve(
        self,
        user_id: UUID,
        action: TaskAction,
        task_id: Optional[UUID] = None,
        project_id: Optional[UUID] = None,
    ) -> PermissionDecision:
        """
        Decide whether a user may perform an action on a task or a project.
        :param user_id: UUID of the requesting user.
        :param action: Action being attempted.
        :param task_id: Target task; takes precedence over project_id.
        :param project_id: Target project when no task is given.
        :return: PermissionDecision with the granting rule or the deny reason.
        """
        if task_id is None and project_id is None:
            raise ValueError("Either task_id or project_id is required")

        user = await self.db.get(User, user_id)
        if not user:
            return PermissionDecision.deny(action, DenyReason.NOT_FOUND)
        if not user.is_active:
            return PermissionDecision.deny(action, DenyReason.FORBIDDEN)

        task = None
        if task_id is not None:
            task = await self.db.get(Task, task_id)
            if not task:
                return PermissionDecision.deny(action, DenyReason.NOT_FOUND)
            project_id = task.project_id

        project = await self.db.get(Project, project_id)
        if not project:
            return PermissionDecision.deny(action, DenyReason.NOT_FOUND)

        rule = await self._match_rule(user, project, task, action)
        if rule is not None:
            return PermissionDecision.allow(action, rule)

        if task is not None and task.parent_id is not None:
            parent = await self.db.get(Task, task.parent_id)
            if parent is not None:
                parent_rule = await self._match_rule(user, project, parent, action)
                if parent_rule is not None:
                    logger.debug(
                        f"User {user_id} granted {action.value} on {task_id} via parent "
                        f"{parent.id} ({parent_rule.value})"
                    )
                    return PermissionDecision.allow(action, GrantRule.PARENT_TASK)

        return PermissionDecision.deny(action, DenyReason.FORBIDDEN)

    async def can(
        self,
        user_id: UUID,
        action: TaskAction,
        task_id: Optional[UUID] = None,
        project_id: Optional[UUID] = None,
    ) -> bool:
        decision = await self.resolve(user_id, action, task_id, project_id)
        return decision.allowed

    async def require(
        self,
        user_id: UUID,
        action: TaskAction,
        task_id: Optional[UUID] = None,
        project_id: Optional[UUID] = None,
    ) -> PermissionDecision:
        """
        Resolve and raise on denial.
        :raises NotFoundException: If the task, project or user does not exist.
        :raises ForbiddenException: If no rule grants the action.
        """
        decision = await self.resolve(user_id, action, task_id, project_id)
        if decision.allowed:
            return decision

        if decision.reason == DenyReason.NOT_FOUND:
            if task_id is not None:
                raise NotFoundException("Task", str(task_id))
            raise NotFoundException("Project", str(project_id))

        target = "task" if task_id is not None else "project"
        logger.info(f"Denied {action.value} on {target} for user {user_id}")
        raise ForbiddenException(f"You do not have permission to {action.value} this {target}")
