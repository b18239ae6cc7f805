import uuid
from datetime import datetime
from typing import Optional, List, Annotated, Dict, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from planboard.models.task import TaskPriority


# ==========================================
# Base Schemas
# ==========================================


class TaskBase(BaseModel):
    """Base task schema with common fields"""

    title: Annotated[str, Field(min_length=1, max_length=500, description="Task title")]
    description: Optional[str] = Field(None, description="Detailed task description")
    priority: TaskPriority = Field(TaskPriority.MEDIUM, description="Task priority")

    # Dates
    start_date: Optional[datetime] = Field(None, description="When work starts")
    end_date: Optional[datetime] = Field(None, description="When work ends")
    due_date: Optional[datetime] = Field(None, description="Task due date")

    # Time tracking
    estimated_time: Optional[float] = Field(None, ge=0, description="Estimated hours")
    time_spent: Optional[float] = Field(None, ge=0, description="Hours spent")

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be blank")
        return v

    @model_validator(mode="after")
    def validate_date_range(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


# ==========================================
# Request Schemas
# ==========================================


class TaskCreate(TaskBase):
    """Schema for creating a new task"""

    project_id: uuid.UUID = Field(..., description="Project ID")
    parent_id: Optional[uuid.UUID] = Field(None, description="Parent task ID for subtasks")
    status_id: Optional[uuid.UUID] = Field(
        None, description="Kanban column; the project's default column when omitted"
    )
    assignee_ids: List[uuid.UUID] = Field(
        default_factory=list, description="List of assigned user IDs"
    )


class TaskUpdate(BaseModel):
    """
    Partial update. Only fields present in the request are applied;
    explicit nulls clear nullable fields.
    """

    title: Annotated[Optional[str], Field(default=None, min_length=1, max_length=500)]
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    due_date: Optional[datetime] = None

    estimated_time: Optional[float] = Field(None, ge=0)
    time_spent: Optional[float] = Field(None, ge=0)
    completed: Optional[bool] = None

    status_id: Optional[uuid.UUID] = None
    parent_id: Optional[uuid.UUID] = None
    assignee_ids: Optional[List[uuid.UUID]] = Field(
        None, description="Full desired assignee list; omit to keep current assignees"
    )

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be blank")
        return v

    @model_validator(mode="after")
    def validate_non_nullable(self):
        for field in ("title", "priority", "completed"):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self

    def changes(self) -> Dict[str, Any]:
        """Plain column changes (everything except hierarchy, status and assignees)"""
        return self.model_dump(
            exclude_unset=True, exclude={"status_id", "parent_id", "assignee_ids"}
        )


class TaskReorderRequest(BaseModel):
    """Drag-and-drop move within the task tree"""

    task_id: uuid.UUID
    new_parent_id: Optional[uuid.UUID] = Field(
        None, description="New parent; null promotes the task to top level"
    )
    target_task_id: Optional[uuid.UUID] = Field(
        None, description="Place the task before this sibling; append when omitted"
    )
    is_same_parent_reorder: bool = Field(
        False, description="Reorder among current siblings without reparenting"
    )


class TaskStatusChange(BaseModel):
    """Move a task to a kanban column"""

    status_id: Optional[uuid.UUID] = Field(..., description="Destination column")
    target_task_id: Optional[uuid.UUID] = Field(
        None, description="Place the task before this card"
    )
    position: Optional[int] = Field(
        None, ge=0, description="Index in the destination column"
    )

    @model_validator(mode="after")
    def validate_placement(self):
        if self.target_task_id is not None and self.position is not None:
            raise ValueError("Give either target_task_id or position, not both")
        return self


class TaskFilters(BaseModel):
    """Schema for task filtering"""

    status_id: Optional[uuid.UUID] = None
    priority: Optional[List[TaskPriority]] = None
    assignee_id: Optional[uuid.UUID] = None
    parent_id: Optional[uuid.UUID] = None
    include_subtasks: bool = False


# ==========================================
# Response Schemas
# ==========================================


class TaskAssigneeResponse(BaseModel):
    """Task assignment"""

    model_config = ConfigDict(from_attributes=True)

    user_id: uuid.UUID
    assigned_by: Optional[uuid.UUID] = None
    assigned_at: datetime


class TaskResponse(BaseModel):
    """Task details"""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    description: Optional[str]
    priority: TaskPriority
    start_date: Optional[datetime]
    end_date: Optional[datetime]
    due_date: Optional[datetime]
    estimated_time: Optional[float]
    time_spent: Optional[float]
    project_id: uuid.UUID
    status_id: Optional[uuid.UUID]
    parent_id: Optional[uuid.UUID]
    order: int
    completed: bool
    created_at: datetime
    updated_at: datetime
    assignees: List[TaskAssigneeResponse] = Field(default_factory=list)
    warnings: List[str] = Field(
        default_factory=list, description="Non-fatal problems met while applying the change"
    )

    @computed_field
    @property
    def assignee_ids(self) -> List[uuid.UUID]:
        return [assignee.user_id for assignee in self.assignees]


class TaskOrderEntry(BaseModel):
    """Canonical position of one task after a move"""

    id: uuid.UUID
    order: int
    parent_id: Optional[uuid.UUID]
    status_id: Optional[uuid.UUID]


class TaskMoveResponse(BaseModel):
    """
    Moved task plus the canonical order of every scope the move touched;
    clients replace their optimistic state with this.
    """

    task: TaskResponse
    scopes: List[List[TaskOrderEntry]]


class TaskTreeNode(BaseModel):
    """Task with nested subtasks"""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    priority: TaskPriority
    status_id: Optional[uuid.UUID]
    parent_id: Optional[uuid.UUID]
    order: int
    completed: bool
    subtasks: List["TaskTreeNode"] = Field(default_factory=list)
    truncated: bool = Field(
        False, description="Subtasks exist below the loaded depth"
    )


class BoardColumn(BaseModel):
    """One kanban column with its ordered cards"""

    status_id: Optional[uuid.UUID]
    name: str
    color: Optional[str] = None
    order: int
    tasks: List[TaskResponse]


class BoardResponse(BaseModel):
    """Kanban board for a project's top-level tasks"""

    project_id: uuid.UUID
    columns: List[BoardColumn]
