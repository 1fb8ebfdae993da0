import logging
from typing import List
from fastapi import APIRouter, Depends, Request, status

from secure_upload.api.deps import get_current_user, get_template_service, require_roles
from secure_upload.core.access import TEMPLATE_CREATOR_ROLES
from secure_upload.core.logging_utils import get_request_id
from secure_upload.schemas.auth import CurrentUser
from secure_upload.schemas.common import ApiResponse
from secure_upload.schemas.template import (
    FormField,
    FormFieldCreate,
    FormFieldUpdate,
    FormTemplate,
    FormTemplateCreate,
    FormTemplateUpdate,
)
from secure_upload.services.template_service import TemplateService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=ApiResponse[List[FormTemplate]], response_model_exclude_none=True)
async def list_templates(
    include_inactive: bool = False,
    current_user: CurrentUser = Depends(get_current_user),
    service: TemplateService = Depends(get_template_service)
):
    """List templates visible to the caller."""
    templates = await service.list_templates(current_user, include_inactive=include_inactive)
    return ApiResponse(data=templates, count=len(templates))


@router.get("/{template_id}", response_model=ApiResponse[FormTemplate], response_model_exclude_none=True)
async def get_template(
    template_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: TemplateService = Depends(get_template_service)
):
    return ApiResponse(data=await service.get_template(template_id, current_user))


@router.post(
    "",
    response_model=ApiResponse[FormTemplate],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_template(
    body: FormTemplateCreate,
    request: Request,
    current_user: CurrentUser = Depends(require_roles(TEMPLATE_CREATOR_ROLES)),
    service: TemplateService = Depends(get_template_service)
):
    """
    Create a template with its fields.
    Requires admin, compliance or manager role.
    """
    template = await service.create_template(body, current_user, request_id=get_request_id(request))
    return ApiResponse(data=template, message="Form template created successfully")


@router.put("/{template_id}", response_model=ApiResponse[FormTemplate], response_model_exclude_none=True)
async def update_template(
    template_id: str,
    body: FormTemplateUpdate,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    service: TemplateService = Depends(get_template_service)
):
    template = await service.update_template(template_id, body, current_user, request_id=get_request_id(request))
    return ApiResponse(data=template, message="Form template updated successfully")


@router.delete("/{template_id}", response_model=ApiResponse[None], response_model_exclude_none=True)
async def delete_template(
    template_id: str,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    service: TemplateService = Depends(get_template_service)
):
    """Deactivate a template (soft delete)."""
    await service.delete_template(template_id, current_user, request_id=get_request_id(request))
    return ApiResponse(message="Form template deleted successfully")


@router.post(
    "/{template_id}/fields",
    response_model=ApiResponse[FormField],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def add_field(
    template_id: str,
    body: FormFieldCreate,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    service: TemplateService = Depends(get_template_service)
):
    field = await service.add_field(template_id, body, current_user, request_id=get_request_id(request))
    return ApiResponse(data=field, message="Field added successfully")


@router.put("/fields/{field_id}", response_model=ApiResponse[FormField], response_model_exclude_none=True)
async def update_field(
    field_id: str,
    body: FormFieldUpdate,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    service: TemplateService = Depends(get_template_service)
):
    field = await service.update_field(field_id, body, current_user, request_id=get_request_id(request))
    return ApiResponse(data=field, message="Field updated successfully")


@router.delete("/fields/{field_id}", response_model=ApiResponse[None], response_model_exclude_none=True)
async def delete_field(
    field_id: str,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    service: TemplateService = Depends(get_template_service)
):
    await service.delete_field(field_id, current_user, request_id=get_request_id(request))
    return ApiResponse(message="Field deleted successfully")
