import re
import uuid
from datetime import datetime
from typing import Optional, List, Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")


def _check_color(v: Optional[str]) -> Optional[str]:
    if v is not None and not HEX_COLOR.match(v):
        raise ValueError("Color must be a hex value like #3B82F6")
    return v


class ProjectStatusCreate(BaseModel):
    """Schema for creating a kanban column"""

    name: Annotated[str, Field(min_length=1, max_length=100)]
    color: str = Field("#E4E4E7", description="Display color")
    is_default: bool = Field(False, description="Make this the default column")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str) -> str:
        return _check_color(v)


class ProjectStatusUpdate(BaseModel):
    """Schema for renaming or recoloring a column"""

    name: Annotated[Optional[str], Field(default=None, min_length=1, max_length=100)]
    color: Optional[str] = None
    is_default: Optional[bool] = None

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: Optional[str]) -> Optional[str]:
        return _check_color(v)


class ProjectStatusReorder(BaseModel):
    """Full column order for a project"""

    status_ids: List[uuid.UUID] = Field(..., min_length=1)


class ProjectStatusResponse(BaseModel):
    """Kanban column"""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    color: str
    order: int
    is_default: bool
    project_id: uuid.UUID
    created_at: datetime
