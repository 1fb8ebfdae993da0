import json
import logging
from typing import Any, Dict, List, Tuple
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import FileResponse
from starlette.datastructures import UploadFile

from secure_upload.api.deps import (
    AuditContext,
    get_audit_context,
    get_audit_service,
    get_current_user,
    get_file_storage,
    get_intake_service,
    get_link_service,
    get_session_service,
    require_roles,
)
from secure_upload.core.access import ELEVATED_ROLES, visible_to
from secure_upload.core.exceptions import AccessDeniedException, NotFoundException, ValidationException
from secure_upload.core.logging_utils import get_request_id
from secure_upload.middleware.rate_limit import rate_limit_public, rate_limit_submit
from secure_upload.models.access_log import AccessAction
from secure_upload.schemas.access_log import FileAccessLog
from secure_upload.schemas.auth import CurrentUser
from secure_upload.schemas.common import ApiResponse
from secure_upload.schemas.session import (
    IncomingFile,
    SessionCreateRequest,
    SessionDataUpdate,
    SubmissionResult,
    UploadSession,
    UploadSessionResponse,
)
from secure_upload.services.audit_service import AuditService
from secure_upload.services.file_storage import FileStorageService
from secure_upload.services.intake_service import IntakeService
from secure_upload.services.link_service import LinkService
from secure_upload.services.session_service import SessionService

logger = logging.getLogger(__name__)

router = APIRouter()

# Multipart part carrying a JSON object of form values
FORM_DATA_PART = "form_data"


async def _read_submission(request: Request) -> Tuple[Dict[str, Any], List[IncomingFile]]:
    """
    Split a multipart body into form values and file parts.

    Any part name may carry a file. Repeated plain values become lists.
    """
    form = await request.form()
    form_data: Dict[str, Any] = {}
    files: List[IncomingFile] = []

    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            files.append(
                IncomingFile(
                    field_name=key,
                    filename=value.filename or "",
                    content_type=value.content_type or "application/octet-stream",
                    content=await value.read(),
                )
            )
        elif key == FORM_DATA_PART:
            try:
                decoded = json.loads(value)
            except ValueError:
                raise ValidationException(detail="form_data must be a JSON object")
            if not isinstance(decoded, dict):
                raise ValidationException(detail="form_data must be a JSON object")
            form_data.update(decoded)
        elif key in form_data:
            existing = form_data[key]
            form_data[key] = (existing if isinstance(existing, list) else [existing]) + [value]
        else:
            form_data[key] = value

    return form_data, files


async def _authorize(session: UploadSession, current_user: CurrentUser, links: LinkService) -> None:
    """Session access follows the owning link's access rule."""
    await links.get_link(session.upload_link_id, current_user)


@router.post(
    "",
    response_model=ApiResponse[UploadSessionResponse],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
@rate_limit_public()
async def create_session(
    body: SessionCreateRequest,
    request: Request,
    intake: IntakeService = Depends(get_intake_service)
):
    """
    Open a session on an upload link.
    Public: no token required. Rejected with 400 if the link is not valid.
    """
    session = await intake.open_session(
        body.upload_link_id,
        client_ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        request_id=get_request_id(request),
    )
    return ApiResponse(data=UploadSessionResponse.model_validate(session), message="Upload session created")


@router.patch("/{session_id}/data", response_model=ApiResponse[UploadSessionResponse], response_model_exclude_none=True)
@rate_limit_public()
async def save_progress(
    session_id: str,
    body: SessionDataUpdate,
    request: Request,
    intake: IntakeService = Depends(get_intake_service)
):
    """Save partial form data. Public: no token required."""
    session = await intake.save_progress(session_id, body.form_data, request_id=get_request_id(request))
    return ApiResponse(data=UploadSessionResponse.model_validate(session), message="Progress saved")


@router.post("/{session_id}/submit", response_model=ApiResponse[SubmissionResult], response_model_exclude_none=True)
@rate_limit_submit()
async def submit_session(
    session_id: str,
    request: Request,
    intake: IntakeService = Depends(get_intake_service)
):
    """
    Submit form values and files (multipart/form-data) and complete the session.
    Public: no token required.
    """
    form_data, files = await _read_submission(request)
    session = await intake.submit(session_id, form_data, files, request_id=get_request_id(request))
    return ApiResponse(
        data=SubmissionResult(
            session=UploadSessionResponse.model_validate(session),
            files_uploaded=len(files),
        ),
        message="Documents submitted successfully",
    )


@router.get("", response_model=ApiResponse[List[UploadSessionResponse]], response_model_exclude_none=True)
async def list_sessions(
    current_user: CurrentUser = Depends(get_current_user),
    sessions: SessionService = Depends(get_session_service),
    links: LinkService = Depends(get_link_service)
):
    """All sessions on links visible to the caller, newest first."""
    visible_links = {link.id: link.created_by for link in await links.list_links(current_user)}
    # Sessions whose link is gone have no owner and are shown to elevated roles only
    result = visible_to(
        current_user,
        await sessions.list_all_sessions(),
        owner_of=lambda s: visible_links.get(s.upload_link_id),
    )
    return ApiResponse(data=[UploadSessionResponse.model_validate(s) for s in result], count=len(result))


@router.get("/link/{link_id}", response_model=ApiResponse[List[UploadSessionResponse]], response_model_exclude_none=True)
async def list_sessions_for_link(
    link_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    sessions: SessionService = Depends(get_session_service),
    links: LinkService = Depends(get_link_service)
):
    await links.get_link(link_id, current_user)
    result = await sessions.list_sessions_for_link(link_id)
    return ApiResponse(data=[UploadSessionResponse.model_validate(s) for s in result], count=len(result))


@router.get("/files/{file_id}/download")
async def download_file(
    file_id: str,
    inline: bool = False,
    current_user: CurrentUser = Depends(get_current_user),
    audit: AuditContext = Depends(get_audit_context),
    sessions: SessionService = Depends(get_session_service),
    links: LinkService = Depends(get_link_service),
    storage: FileStorageService = Depends(get_file_storage)
):
    """
    Stream a stored file. Every attempt is written to the file access log.

    ``inline=true`` is recorded as a view, otherwise as a download.
    """
    file = await sessions.get_file(file_id)
    try:
        await _authorize(await sessions.get_session(file.session_id), current_user, links)
    except AccessDeniedException:
        await audit.log_file_access_now(file_id, AccessAction.ACCESS_DENIED)
        raise

    path = storage.resolve(file)
    if path is None:
        raise NotFoundException(detail="Stored file is missing")

    audit.log_file_access(file_id, AccessAction.VIEW if inline else AccessAction.DOWNLOAD)
    return FileResponse(
        path,
        media_type=file.mime_type,
        filename=file.original_name,
        content_disposition_type="inline" if inline else "attachment",
    )


@router.get("/files/{file_id}/access-log", response_model=ApiResponse[List[FileAccessLog]], response_model_exclude_none=True)
async def file_access_log(
    file_id: str,
    current_user: CurrentUser = Depends(require_roles(ELEVATED_ROLES)),
    audit_service: AuditService = Depends(get_audit_service)
):
    """
    Access history of a file, oldest first. Admin and compliance only.
    Entries remain after the file itself is deleted.
    """
    entries = await audit_service.history(file_id)
    return ApiResponse(data=entries, count=len(entries))


@router.get("/{session_id}", response_model=ApiResponse[UploadSessionResponse], response_model_exclude_none=True)
async def get_session(
    session_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    sessions: SessionService = Depends(get_session_service),
    links: LinkService = Depends(get_link_service)
):
    session = await sessions.get_session(session_id)
    await _authorize(session, current_user, links)
    return ApiResponse(data=UploadSessionResponse.model_validate(session))


@router.delete("/{session_id}", response_model=ApiResponse[None], response_model_exclude_none=True)
async def delete_session(
    session_id: str,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    audit: AuditContext = Depends(get_audit_context),
    sessions: SessionService = Depends(get_session_service),
    links: LinkService = Depends(get_link_service),
    storage: FileStorageService = Depends(get_file_storage)
):
    """Delete a session, its file records and the stored bytes."""
    request_id = get_request_id(request)
    await _authorize(await sessions.get_session(session_id), current_user, links)

    removed = await sessions.delete_session(session_id, request_id=request_id)
    storage.remove([f.file_path for f in removed], request_id=request_id)
    for file in removed:
        audit.log_file_access(file.id, AccessAction.DELETE, session_id=session_id)

    return ApiResponse(message="Upload session deleted successfully")
