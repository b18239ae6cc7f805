"""
Permission policy table consumed by the permission resolver.

The policy is an immutable value built once from settings and injected into
``PermissionService``; nothing in this module holds mutable state.
"""

from enum import Enum
from typing import FrozenSet, Mapping

from pydantic import BaseModel, ConfigDict, Field

from planboard.core.config import Settings, settings as app_settings
from planboard.models.team_member import TeamRole
from planboard.models.user import SystemRole


class TaskAction(str, Enum):
    """Actions gated by the permission resolver"""

    VIEW = "view"
    UPDATE = "update"
    DELETE = "delete"


ALL_ACTIONS: FrozenSet[TaskAction] = frozenset(TaskAction)


class PermissionPolicy(BaseModel):
    """
    Role -> allowed actions for each layer of the resolver.

    - ``system_roles``: actions granted by the system role alone (rule 1).
    - ``team_roles``: actions granted by project team membership (rule 3).
    - ``assignee_actions``: actions granted to task assignees (rule 4).
    """

    model_config = ConfigDict(frozen=True)

    system_roles: Mapping[SystemRole, FrozenSet[TaskAction]] = Field(
        default_factory=dict
    )
    team_roles: Mapping[TeamRole, FrozenSet[TaskAction]] = Field(default_factory=dict)
    assignee_actions: FrozenSet[TaskAction] = Field(default=ALL_ACTIONS)

    def system_role_allows(self, role: SystemRole, action: TaskAction) -> bool:
        return action in self.system_roles.get(role, frozenset())

    def team_role_allows(self, role: TeamRole, action: TaskAction) -> bool:
        return action in self.team_roles.get(role, frozenset())

    def assignee_allows(self, action: TaskAction) -> bool:
        return action in self.assignee_actions


def default_policy(config: Settings = app_settings) -> PermissionPolicy:
    """
    Build the default policy: admins may do anything, every team role may view,
    update and delete, and assignees may view, update and delete.

    With RESTRICT_TASK_DELETE_TO_MANAGERS the plain ``member`` team role loses delete.
    """
    member_actions = ALL_ACTIONS
    if config.RESTRICT_TASK_DELETE_TO_MANAGERS:
        member_actions = frozenset({TaskAction.VIEW, TaskAction.UPDATE})

    return PermissionPolicy(
        system_roles={SystemRole.ADMIN: ALL_ACTIONS},
        team_roles={
            TeamRole.MEMBER: member_actions,
            TeamRole.MANAGER: ALL_ACTIONS,
            TeamRole.ADMIN: ALL_ACTIONS,
            TeamRole.OWNER: ALL_ACTIONS,
        },
        assignee_actions=ALL_ACTIONS,
    )
