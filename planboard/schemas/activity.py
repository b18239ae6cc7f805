import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ActivityResponse(BaseModel):
    """Activity log entry"""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    action: str
    entity_type: str
    entity_id: uuid.UUID
    description: str
    user_id: Optional[uuid.UUID]
    project_id: uuid.UUID
    task_id: Optional[uuid.UUID]
    created_at: datetime
