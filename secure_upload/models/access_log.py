from sqlalchemy import Column, Integer, String, DateTime, JSON, Enum as SQLEnum
import enum

from secure_upload.core.clock import utcnow
from secure_upload.database import Base


class AccessAction(str, enum.Enum):
    """Actions recorded against stored files."""
    VIEW = "view"
    DOWNLOAD = "download"
    DELETE = "delete"
    SHARE = "share"
    ACCESS_DENIED = "access_denied"


class FileAccessLogRecord(Base):
    """
    File access audit row.

    ``file_id`` is not a foreign key: entries outlive the file
    they describe, including its deletion.
    """

    __tablename__ = "document_access_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    file_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(255), nullable=True, index=True)
    action = Column(
        SQLEnum(AccessAction, name="access_action", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        index=True,
    )
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(512), nullable=True)
    details = Column(JSON, nullable=True)
    accessed_at = Column(DateTime, default=utcnow, nullable=False, index=True)
