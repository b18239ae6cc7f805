"""
Models package for the application.
"""

from .user import User, SystemRole
from .project import Project
from .project_status import ProjectStatus
from .team_member import TeamMember, TeamRole
from .task import Task, TaskAssignee, TaskPriority
from .activity import Activity, ActivityAction, ActivityEntity

__all__ = [
    "User",
    "SystemRole",
    "Project",
    "ProjectStatus",
    "TeamMember",
    "TeamRole",
    "Task",
    "TaskAssignee",
    "TaskPriority",
    "Activity",
    "ActivityAction",
    "ActivityEntity",
]
