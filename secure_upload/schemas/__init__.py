"""Pydantic schemas: canonical entities and request/response contracts."""
from secure_upload.schemas.common import ApiResponse, ErrorResponse
from secure_upload.schemas.auth import CurrentUser, UserRole
from secure_upload.schemas.template import (
    FormField,
    FormFieldCreate,
    FormFieldUpdate,
    FormTemplate,
    FormTemplateCreate,
    FormTemplateUpdate,
)
from secure_upload.schemas.link import (
    DashboardStats,
    LinkInvalidReason,
    LinkValidation,
    LinkValidationResponse,
    PublicLinkView,
    UploadLink,
    UploadLinkCreate,
    UploadLinkUpdate,
)
from secure_upload.schemas.access_log import FileAccessLog, FileAccessLogEntry
from secure_upload.schemas.session import (
    IncomingFile,
    NewUploadedFile,
    SessionCreateRequest,
    SessionDataUpdate,
    SubmissionResult,
    UploadedFile,
    UploadedFileResponse,
    UploadSession,
    UploadSessionResponse,
)

__all__ = [
    "ApiResponse",
    "ErrorResponse",
    "CurrentUser",
    "UserRole",
    "FormField",
    "FormFieldCreate",
    "FormFieldUpdate",
    "FormTemplate",
    "FormTemplateCreate",
    "FormTemplateUpdate",
    "DashboardStats",
    "LinkInvalidReason",
    "LinkValidation",
    "LinkValidationResponse",
    "PublicLinkView",
    "UploadLink",
    "UploadLinkCreate",
    "UploadLinkUpdate",
    "FileAccessLog",
    "FileAccessLogEntry",
    "IncomingFile",
    "NewUploadedFile",
    "SessionCreateRequest",
    "SessionDataUpdate",
    "SubmissionResult",
    "UploadedFile",
    "UploadedFileResponse",
    "UploadSession",
    "UploadSessionResponse",
]
