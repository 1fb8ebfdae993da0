from typing import Any, Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel, Field

from secure_upload.models.session import SessionStatus


class NewUploadedFile(BaseModel):
    """File metadata handed to the session store; id and timestamp are assigned there."""
    field_name: str
    original_name: str
    stored_name: str
    file_path: str
    mime_type: str
    file_size: int
    document_type: Optional[str] = None
    checksum: Optional[str] = None


class UploadedFile(NewUploadedFile):
    """A stored file record."""
    id: str
    session_id: str
    uploaded_at: datetime

    class Config:
        from_attributes = True


class UploadSession(BaseModel):
    """An upload session with the files it owns."""
    id: str
    upload_link_id: str
    form_data: Dict[str, Any] = Field(default_factory=dict)
    uploaded_files: List[UploadedFile] = Field(default_factory=list)
    status: SessionStatus = SessionStatus.IN_PROGRESS
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime
    submitted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UploadedFileResponse(BaseModel):
    """File metadata returned to API callers (no storage paths)."""
    id: str
    session_id: str
    field_name: str
    original_name: str
    mime_type: str
    file_size: int
    document_type: Optional[str] = None
    checksum: Optional[str] = None
    uploaded_at: datetime

    class Config:
        from_attributes = True


class UploadSessionResponse(BaseModel):
    """Session as returned to API callers."""
    id: str
    upload_link_id: str
    form_data: Dict[str, Any]
    uploaded_files: List[UploadedFileResponse]
    status: SessionStatus
    created_at: datetime
    submitted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SessionCreateRequest(BaseModel):
    """Request schema for opening a session against a link."""
    upload_link_id: str


class SessionDataUpdate(BaseModel):
    """Partial form data saved before submission."""
    form_data: Dict[str, Any]


class IncomingFile(BaseModel):
    """A file part received by the submit endpoint."""
    field_name: str
    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


class SubmissionResult(BaseModel):
    """Response payload of a successful submission."""
    session: UploadSessionResponse
    files_uploaded: int
