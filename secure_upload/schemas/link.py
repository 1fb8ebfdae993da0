from typing import List, Optional
from datetime import datetime
import enum
from pydantic import BaseModel, EmailStr

from secure_upload.models.link import LinkStatus


class LinkInvalidReason(str, enum.Enum):
    """Why a link failed validation."""
    NOT_FOUND = "not_found"
    NOT_ACTIVE = "not_active"
    EXPIRED = "expired"


class UploadLinkCreate(BaseModel):
    """Request schema for creating an upload link."""
    job_number: str
    form_template_id: str
    expires_at: Optional[datetime] = None
    client_email: Optional[EmailStr] = None


class UploadLinkUpdate(BaseModel):
    """Link patch: status, expiry and client e-mail."""
    status: Optional[LinkStatus] = None
    expires_at: Optional[datetime] = None
    client_email: Optional[EmailStr] = None


class UploadLink(BaseModel):
    """An upload link as stored."""
    id: str
    job_number: str
    form_template_id: str
    created_by: str
    status: LinkStatus
    expires_at: datetime
    client_email: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PublicLinkView(BaseModel):
    """The part of a link shown to unauthenticated clients."""
    id: str
    job_number: str
    form_template_id: str
    status: LinkStatus
    expires_at: datetime

    class Config:
        from_attributes = True


class LinkValidation(BaseModel):
    """Outcome of validating a link; ``link`` is set unless it was not found."""
    is_valid: bool
    link: Optional[UploadLink] = None
    reason: Optional[LinkInvalidReason] = None
    message: Optional[str] = None


class LinkValidationResponse(BaseModel):
    """Public rendering of ``LinkValidation``."""
    is_valid: bool
    reason: Optional[LinkInvalidReason] = None
    message: Optional[str] = None
    link: Optional[PublicLinkView] = None


class DashboardStats(BaseModel):
    """Counts shown on the admin dashboard."""
    active_links_count: int
    expiring_links_count: int
    expiring_links: List[UploadLink]
