"""
Public intake workflow: open a session on a link, save progress, submit.

This is where link validity is checked before a session exists, and
where per-submission limits are enforced: file count, per-document-type
MIME allow-lists and size caps, and required fields.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from secure_upload.config import settings
from secure_upload.core.document_types import parse_document_type, policy_for
from secure_upload.core.exceptions import StorageException, ValidationException
from secure_upload.core.logging_utils import sanitize_log_message
from secure_upload.models.session import SessionStatus
from secure_upload.models.template import FieldType
from secure_upload.schemas.link import LinkValidation
from secure_upload.schemas.session import IncomingFile, NewUploadedFile, UploadSession
from secure_upload.schemas.template import FormField, FormTemplate
from secure_upload.services.file_storage import FileStorageService
from secure_upload.services.link_service import LinkService
from secure_upload.services.session_service import SessionService
from secure_upload.services.template_service import TemplateService

logger = logging.getLogger(__name__)

DOCUMENT_TYPE_SUFFIX = "_document_type"


def clean_form_data(form_data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop document-type hints and underscore-prefixed control keys."""
    return {
        key: value for key, value in form_data.items()
        if not key.endswith(DOCUMENT_TYPE_SUFFIX) and not key.startswith("_")
    }


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip()) or value in ([], {})


class IntakeService:
    """Orchestrates the link, template and session stores for external clients."""

    def __init__(
        self,
        links: LinkService,
        templates: TemplateService,
        sessions: SessionService,
        storage: FileStorageService
    ):
        self.links = links
        self.templates = templates
        self.sessions = sessions
        self.storage = storage

    async def _require_valid_link(self, link_id: str, request_id: Optional[str]) -> LinkValidation:
        validation = await self.links.validate_link(link_id, request_id=request_id)
        if not validation.is_valid:
            logger.info(
                sanitize_log_message(
                    "Rejected request on invalid link",
                    RequestID=request_id,
                    LinkID=link_id,
                    Reason=validation.reason.value,
                )
            )
            raise ValidationException(detail=validation.message)
        return validation

    async def get_public_form(self, link_id: str, request_id: Optional[str] = None) -> FormTemplate:
        """Template behind a valid link, for rendering by the client."""
        validation = await self._require_valid_link(link_id, request_id)
        template = await self.templates.get_template_for_intake(validation.link.form_template_id)
        if not template.is_active:
            raise ValidationException(detail="This form is no longer available")
        return template

    async def open_session(
        self,
        link_id: str,
        client_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        request_id: Optional[str] = None
    ) -> UploadSession:
        """
        Start a session on a link.

        Raises:
            ValidationException: link missing, not active or expired; no
                session is stored in that case
        """
        await self._require_valid_link(link_id, request_id)
        return await self.sessions.create_session(
            link_id,
            client_ip=client_ip,
            user_agent=user_agent,
            request_id=request_id,
        )

    async def save_progress(
        self,
        session_id: str,
        form_data: Dict[str, Any],
        request_id: Optional[str] = None
    ) -> UploadSession:
        """Merge partial form data into an open session."""
        session = await self.sessions.get_session(session_id)
        await self._require_valid_link(session.upload_link_id, request_id)
        return await self.sessions.update_session_data(session_id, clean_form_data(form_data))

    def _check_files(
        self,
        files: List[IncomingFile],
        fields: Dict[str, FormField],
        form_data: Dict[str, Any]
    ) -> List[Tuple[IncomingFile, Optional[str]]]:
        """Resolve each file's document type and apply its policy."""
        if len(files) > settings.MAX_FILES_PER_SUBMISSION:
            raise ValidationException(
                detail=f"Too many files: at most {settings.MAX_FILES_PER_SUBMISSION} per submission"
            )

        checked = []
        for file in files:
            field = fields.get(file.field_name)
            tag = parse_document_type(
                (field.document_data_type if field else None)
                or form_data.get(f"{file.field_name}{DOCUMENT_TYPE_SUFFIX}")
            )
            document_type = tag.value if tag else None
            policy = policy_for(document_type)
            label = document_type or "general_document"

            if file.size == 0:
                raise ValidationException(detail=f"File for {file.field_name} is empty")
            if not policy.allows_mime_type(file.content_type):
                raise ValidationException(
                    detail=f"File type {file.content_type} is not allowed for {label}. "
                           f"Allowed types: {', '.join(sorted(policy.allowed_mime_types))}"
                )
            if file.size > policy.max_size:
                raise ValidationException(
                    detail=f"File for {file.field_name} exceeds the maximum size of {policy.max_size} bytes"
                )
            checked.append((file, document_type))
        return checked

    @staticmethod
    def _check_required(
        template: FormTemplate,
        merged_data: Dict[str, Any],
        file_fields: set
    ) -> None:
        missing = [
            field.field_label for field in template.fields
            if field.is_required
            and field.field_name not in file_fields
            and (field.field_type == FieldType.FILE or _is_blank(merged_data.get(field.field_name)))
        ]
        if missing:
            raise ValidationException(detail=f"Missing required fields: {', '.join(missing)}")

    async def submit(
        self,
        session_id: str,
        form_data: Dict[str, Any],
        files: List[IncomingFile],
        request_id: Optional[str] = None
    ) -> UploadSession:
        """
        Submit form data and files for a session and complete it.

        Files are checked before anything is written. If writing or
        recording a file fails, files already written and any records
        already added are removed, the session is marked failed and
        StorageException is raised.

        Raises:
            NotFoundException: unknown session
            ValidationException: session not open, link no longer valid,
                or a file/field check failed
            StorageException: a file could not be stored
        """
        session = await self.sessions.get_session(session_id)
        if session.status != SessionStatus.IN_PROGRESS:
            raise ValidationException(detail=f"Session is already {session.status.value}")

        validation = await self.links.validate_link(session.upload_link_id, request_id=request_id)
        if not validation.is_valid:
            raise ValidationException(detail="Upload link is no longer valid")

        template = await self.templates.get_template_for_intake(validation.link.form_template_id)
        fields = {field.field_name: field for field in template.fields}

        checked = self._check_files(files, fields, form_data)
        cleaned = clean_form_data(form_data)
        self._check_required(
            template,
            {**session.form_data, **cleaned},
            {f.field_name for f in files} | {f.field_name for f in session.uploaded_files},
        )

        written: List[NewUploadedFile] = []
        recorded: List[str] = []
        try:
            for file, document_type in checked:
                stored = await self.storage.save(
                    session_id,
                    file.field_name,
                    file.filename,
                    file.content,
                    file.content_type,
                    document_type=document_type,
                    request_id=request_id,
                )
                written.append(stored)
            for stored in written:
                record = await self.sessions.add_file_to_session(session_id, stored)
                recorded.append(record.id)
        except StorageException as e:
            await self.sessions.remove_files(session_id, recorded)
            self.storage.remove([f.file_path for f in written], request_id=request_id)
            await self.sessions.fail_session(session_id, reason=e.detail, request_id=request_id)
            raise

        await self.sessions.update_session_data(session_id, cleaned)
        completed = await self.sessions.complete_session(session_id, request_id=request_id)

        logger.info(
            sanitize_log_message(
                "Submission accepted",
                RequestID=request_id,
                SessionID=session_id,
                LinkID=session.upload_link_id,
                FilesUploaded=len(written),
            )
        )
        return completed
