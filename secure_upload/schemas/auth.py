from typing import Optional
import enum
from pydantic import BaseModel


class UserRole(str, enum.Enum):
    """Roles carried in bearer tokens."""
    ADMIN = "admin"
    COMPLIANCE = "compliance"
    MANAGER = "manager"
    RECRUITER = "recruiter"


class CurrentUser(BaseModel):
    """Caller identity decoded from a bearer token."""
    id: str
    email: Optional[str] = None
    role: str
