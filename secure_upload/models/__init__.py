"""Database models."""
from secure_upload.models.template import FormTemplateRecord, FormFieldRecord, FieldType
from secure_upload.models.link import UploadLinkRecord, LinkStatus
from secure_upload.models.session import UploadSessionRecord, UploadedFileRecord, SessionStatus
from secure_upload.models.access_log import FileAccessLogRecord, AccessAction

__all__ = [
    "FormTemplateRecord",
    "FormFieldRecord",
    "FieldType",
    "UploadLinkRecord",
    "LinkStatus",
    "UploadSessionRecord",
    "UploadedFileRecord",
    "SessionStatus",
    "FileAccessLogRecord",
    "AccessAction",
]
