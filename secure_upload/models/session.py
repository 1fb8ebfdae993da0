from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum

from secure_upload.core.clock import utcnow
from secure_upload.database import Base


class SessionStatus(str, enum.Enum):
    """Upload session status enumeration."""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class UploadSessionRecord(Base):
    """Upload session row - one client's attempt at filling a link's form."""

    __tablename__ = "upload_sessions"

    id = Column(String(36), primary_key=True)
    upload_link_id = Column(String(36), ForeignKey("upload_links.id", ondelete="CASCADE"), nullable=False, index=True)
    form_data = Column(JSON, nullable=False, default=dict)
    status = Column(
        SQLEnum(SessionStatus, name="session_status", values_callable=lambda e: [m.value for m in e]),
        default=SessionStatus.IN_PROGRESS,
        nullable=False,
        index=True,
    )
    client_ip = Column(String(45), nullable=True)
    user_agent = Column(String(512), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    submitted_at = Column(DateTime, nullable=True)

    # Relationships
    files = relationship(
        "UploadedFileRecord",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="UploadedFileRecord.uploaded_at",
    )


class UploadedFileRecord(Base):
    """Uploaded file row - metadata for bytes stored under UPLOAD_DIR."""

    __tablename__ = "uploaded_files"

    id = Column(String(36), primary_key=True)
    session_id = Column(String(36), ForeignKey("upload_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    field_name = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    stored_name = Column(String(255), nullable=False)
    file_path = Column(String(1024), nullable=False)
    mime_type = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=False)  # Size in bytes
    document_type = Column(String(64), nullable=True, index=True)
    checksum = Column(String(64), nullable=True)  # SHA-256 hex
    uploaded_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    session = relationship("UploadSessionRecord", back_populates="files")
