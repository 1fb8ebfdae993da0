from typing import Any, Dict, Optional
from datetime import datetime
from pydantic import BaseModel

from secure_upload.models.access_log import AccessAction


class FileAccessLogEntry(BaseModel):
    """An access event to be recorded."""
    file_id: str
    action: AccessAction
    user_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class FileAccessLog(FileAccessLogEntry):
    """A recorded access event."""
    id: int
    accessed_at: datetime

    class Config:
        from_attributes = True
