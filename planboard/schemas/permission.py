from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from planboard.core.policy import TaskAction


class DenyReason(str, Enum):
    """Why the resolver refused a request"""

    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"


class GrantRule(str, Enum):
    """Which layer of the resolver granted access"""

    SYSTEM_ROLE = "system_role"
    PROJECT_OWNER = "project_owner"
    TEAM_MEMBER = "team_member"
    TASK_ASSIGNEE = "task_assignee"
    PARENT_TASK = "parent_task"


class PermissionDecision(BaseModel):
    """Outcome of a permission check"""

    allowed: bool
    action: TaskAction
    rule: Optional[GrantRule] = Field(None, description="Granting rule when allowed")
    reason: Optional[DenyReason] = Field(None, description="Deny reason when refused")

    @classmethod
    def allow(cls, action: TaskAction, rule: GrantRule) -> "PermissionDecision":
        return cls(allowed=True, action=action, rule=rule)

    @classmethod
    def deny(cls, action: TaskAction, reason: DenyReason) -> "PermissionDecision":
        return cls(allowed=False, action=action, reason=reason)
