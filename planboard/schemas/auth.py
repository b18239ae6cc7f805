from typing import Optional

from pydantic import BaseModel

from planboard.models.user import SystemRole


class AuthUser(BaseModel):
    """Authenticated user information supplied to the API layer"""

    id: str
    email: str
    name: Optional[str] = None
    role: SystemRole
    is_active: bool = True
