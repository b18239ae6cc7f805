import uuid
from datetime import datetime
from typing import Optional, List, Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from planboard.schemas.project_status import ProjectStatusCreate, ProjectStatusResponse


class ProjectCreate(BaseModel):
    """Schema for creating a project"""

    name: Annotated[
        str, Field(min_length=1, max_length=200, description="Project name")
    ]
    description: Optional[str] = Field(None, description="Project description")
    initial_statuses: Optional[List[ProjectStatusCreate]] = Field(
        None, description="Kanban columns to start with; the standard three when omitted"
    )

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v

    @model_validator(mode="after")
    def validate_initial_statuses(self):
        if self.initial_statuses:
            names = [status.name.lower() for status in self.initial_statuses]
            if len(names) != len(set(names)):
                raise ValueError("Initial status names must be unique")
        return self


class ProjectResponse(BaseModel):
    """Project with its kanban columns"""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str]
    created_by_id: Optional[uuid.UUID]
    created_at: datetime
    statuses: List[ProjectStatusResponse] = Field(default_factory=list)
