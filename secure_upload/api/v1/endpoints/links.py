import logging
from typing import List
from fastapi import APIRouter, Depends, Request, status

from secure_upload.api.deps import (
    AuditContext,
    get_audit_context,
    get_current_user,
    get_file_storage,
    get_intake_service,
    get_link_service,
    require_roles,
)
from secure_upload.core.access import LINK_CREATOR_ROLES
from secure_upload.core.logging_utils import get_request_id
from secure_upload.middleware.rate_limit import rate_limit_public
from secure_upload.models.access_log import AccessAction
from secure_upload.schemas.auth import CurrentUser
from secure_upload.schemas.common import ApiResponse
from secure_upload.schemas.link import (
    DashboardStats,
    LinkValidationResponse,
    PublicLinkView,
    UploadLink,
    UploadLinkCreate,
    UploadLinkUpdate,
)
from secure_upload.schemas.template import FormTemplate
from secure_upload.services.file_storage import FileStorageService
from secure_upload.services.intake_service import IntakeService
from secure_upload.services.link_service import LinkService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=ApiResponse[List[UploadLink]], response_model_exclude_none=True)
async def list_links(
    current_user: CurrentUser = Depends(get_current_user),
    service: LinkService = Depends(get_link_service)
):
    """List links visible to the caller, newest first."""
    links = await service.list_links(current_user)
    return ApiResponse(data=links, count=len(links))


@router.get("/stats", response_model=ApiResponse[DashboardStats], response_model_exclude_none=True)
async def dashboard_stats(
    current_user: CurrentUser = Depends(get_current_user),
    service: LinkService = Depends(get_link_service)
):
    """Active link count and links expiring within the dashboard window."""
    return ApiResponse(data=await service.dashboard_stats(current_user))


@router.get("/{link_id}/validate", response_model=ApiResponse[LinkValidationResponse], response_model_exclude_none=True)
@rate_limit_public()
async def validate_link(
    link_id: str,
    request: Request,
    service: LinkService = Depends(get_link_service)
):
    """
    Check whether a link accepts submissions.
    Public: no token required. An active link past its expiry is marked
    expired by this call.
    """
    validation = await service.validate_link(link_id, request_id=get_request_id(request))
    return ApiResponse(
        data=LinkValidationResponse(
            is_valid=validation.is_valid,
            reason=validation.reason,
            message=validation.message,
            link=PublicLinkView.model_validate(validation.link) if validation.link else None,
        )
    )


@router.get("/{link_id}/form", response_model=ApiResponse[FormTemplate], response_model_exclude_none=True)
@rate_limit_public()
async def get_public_form(
    link_id: str,
    request: Request,
    intake: IntakeService = Depends(get_intake_service)
):
    """Form definition behind a valid link. Public: no token required."""
    return ApiResponse(data=await intake.get_public_form(link_id, request_id=get_request_id(request)))


@router.get("/{link_id}", response_model=ApiResponse[UploadLink], response_model_exclude_none=True)
async def get_link(
    link_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: LinkService = Depends(get_link_service)
):
    return ApiResponse(data=await service.get_link(link_id, current_user))


@router.post(
    "",
    response_model=ApiResponse[UploadLink],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_link(
    body: UploadLinkCreate,
    request: Request,
    current_user: CurrentUser = Depends(require_roles(LINK_CREATOR_ROLES)),
    service: LinkService = Depends(get_link_service)
):
    link = await service.create_link(body, current_user, request_id=get_request_id(request))
    return ApiResponse(data=link, message="Upload link created successfully")


@router.put("/{link_id}", response_model=ApiResponse[UploadLink], response_model_exclude_none=True)
async def update_link(
    link_id: str,
    body: UploadLinkUpdate,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    service: LinkService = Depends(get_link_service)
):
    link = await service.update_link(link_id, body, current_user, request_id=get_request_id(request))
    return ApiResponse(data=link, message="Upload link updated successfully")


@router.delete("/{link_id}", response_model=ApiResponse[None], response_model_exclude_none=True)
async def delete_link(
    link_id: str,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    audit: AuditContext = Depends(get_audit_context),
    service: LinkService = Depends(get_link_service),
    storage: FileStorageService = Depends(get_file_storage)
):
    """Delete a link together with its sessions and their stored files."""
    request_id = get_request_id(request)
    removed = await service.delete_link(link_id, current_user, request_id=request_id)
    storage.remove([f.file_path for f in removed], request_id=request_id)
    for file in removed:
        audit.log_file_access(file.id, AccessAction.DELETE, link_id=link_id)
    return ApiResponse(message="Upload link deleted successfully")
