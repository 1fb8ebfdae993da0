from sqlalchemy import Column, String, DateTime, ForeignKey, Enum as SQLEnum
import enum

from secure_upload.core.clock import utcnow
from secure_upload.database import Base


class LinkStatus(str, enum.Enum):
    """Upload link status enumeration."""
    ACTIVE = "active"
    EXPIRED = "expired"
    COMPLETED = "completed"
    DISABLED = "disabled"


class UploadLinkRecord(Base):
    """Upload link row - an expiring, job-number-scoped entry point to a template."""

    __tablename__ = "upload_links"

    id = Column(String(36), primary_key=True)
    # Unique constraint backs the application-level duplicate check
    job_number = Column(String(100), unique=True, nullable=False, index=True)
    form_template_id = Column(String(36), ForeignKey("form_templates.id"), nullable=False, index=True)
    created_by = Column(String(255), nullable=False, index=True)
    status = Column(
        SQLEnum(LinkStatus, name="link_status", values_callable=lambda e: [m.value for m in e]),
        default=LinkStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    expires_at = Column(DateTime, nullable=False, index=True)
    client_email = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
