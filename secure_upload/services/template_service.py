import logging
import uuid
from typing import List, Optional

from secure_upload.core.access import is_elevated, require_access
from secure_upload.core.clock import utcnow
from secure_upload.core.exceptions import NotFoundException, ValidationException
from secure_upload.core.logging_utils import sanitize_log_message
from secure_upload.repositories.base import TemplateRepository
from secure_upload.schemas.auth import CurrentUser
from secure_upload.schemas.template import (
    FormField,
    FormFieldCreate,
    FormFieldUpdate,
    FormTemplate,
    FormTemplateCreate,
    FormTemplateUpdate,
)

logger = logging.getLogger(__name__)


class TemplateService:
    """Form templates and their field definitions, gated by the ownership rule."""

    def __init__(self, templates: TemplateRepository):
        self.templates = templates

    @staticmethod
    def _validate_field(field: FormFieldCreate, position: int) -> None:
        missing = [
            name for name, value in (
                ("field_name", (field.field_name or "").strip()),
                ("field_type", field.field_type),
                ("field_label", (field.field_label or "").strip()),
            )
            if not value
        ]
        if missing:
            raise ValidationException(
                detail=f"Field {position} is missing required attributes: {', '.join(missing)}"
            )

    @staticmethod
    def _new_field(template_id: str, field: FormFieldCreate) -> FormField:
        return FormField(
            id=str(uuid.uuid4()),
            template_id=template_id,
            created_at=utcnow(),
            **field.model_dump(),
        )

    async def list_templates(
        self,
        caller: CurrentUser,
        include_inactive: bool = False
    ) -> List[FormTemplate]:
        """
        List templates visible to the caller, newest first.

        Elevated roles see every template, everyone else only their own.
        Soft-deleted templates are left out unless ``include_inactive``.
        """
        created_by = None if is_elevated(caller) else caller.id
        return await self.templates.list(created_by=created_by, include_inactive=include_inactive)

    async def get_template(self, template_id: str, caller: CurrentUser) -> FormTemplate:
        """
        Get a template with its fields sorted by display order.

        Raises:
            NotFoundException: unknown id
            AccessDeniedException: caller is neither elevated nor the creator
        """
        template = await self.templates.get(template_id)
        if template is None:
            raise NotFoundException(detail="Template not found")
        require_access(caller, template.created_by, detail="Access denied to this template")
        return template

    async def get_template_for_intake(self, template_id: str) -> FormTemplate:
        """Read a template for the public intake workflow; no caller involved."""
        template = await self.templates.get(template_id)
        if template is None:
            raise NotFoundException(detail="Template not found")
        return template

    async def create_template(
        self,
        data: FormTemplateCreate,
        caller: CurrentUser,
        request_id: Optional[str] = None
    ) -> FormTemplate:
        """
        Create a template together with its fields.

        Raises:
            ValidationException: empty name, no fields, or a field without
                name, type or label
        """
        name = (data.name or "").strip()
        if not name:
            raise ValidationException(detail="Template name is required")
        if not data.fields:
            raise ValidationException(detail="At least one field is required")
        for position, field in enumerate(data.fields, start=1):
            self._validate_field(field, position)

        now = utcnow()
        template_id = str(uuid.uuid4())
        template = FormTemplate(
            id=template_id,
            name=name,
            description=data.description,
            is_active=True,
            created_by=caller.id,
            created_at=now,
            updated_at=now,
            fields=[self._new_field(template_id, f) for f in data.fields],
        )
        created = await self.templates.add(template)

        logger.info(
            sanitize_log_message(
                "Template created",
                RequestID=request_id,
                TemplateID=created.id,
                FieldCount=len(created.fields),
                CreatedBy=caller.id,
            )
        )
        return created

    async def update_template(
        self,
        template_id: str,
        patch: FormTemplateUpdate,
        caller: CurrentUser,
        request_id: Optional[str] = None
    ) -> FormTemplate:
        """Patch name, description and the active flag; nothing else is mutable."""
        await self.get_template(template_id, caller)

        changes = patch.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in changes:
            changes["name"] = changes["name"].strip()
            if not changes["name"]:
                raise ValidationException(detail="Template name cannot be empty")
        changes["updated_at"] = utcnow()

        updated = await self.templates.update(template_id, changes)
        if updated is None:
            raise NotFoundException(detail="Template not found")

        logger.info(
            sanitize_log_message(
                "Template updated",
                RequestID=request_id,
                TemplateID=template_id,
                Changes=sorted(k for k in changes if k != "updated_at"),
            )
        )
        return updated

    async def delete_template(
        self,
        template_id: str,
        caller: CurrentUser,
        request_id: Optional[str] = None
    ) -> None:
        """Soft delete: the template is kept but marked inactive."""
        await self.get_template(template_id, caller)
        await self.templates.update(template_id, {"is_active": False, "updated_at": utcnow()})
        logger.info(sanitize_log_message("Template deactivated", RequestID=request_id, TemplateID=template_id))

    async def _field_with_access(self, field_id: str, caller: CurrentUser) -> FormField:
        field = await self.templates.get_field(field_id)
        if field is None:
            raise NotFoundException(detail="Field not found")
        # Permission is evaluated against the template owner
        await self.get_template(field.template_id, caller)
        return field

    async def add_field(
        self,
        template_id: str,
        data: FormFieldCreate,
        caller: CurrentUser,
        request_id: Optional[str] = None
    ) -> FormField:
        await self.get_template(template_id, caller)
        self._validate_field(data, 1)

        field = await self.templates.add_field(self._new_field(template_id, data))
        await self.templates.update(template_id, {"updated_at": utcnow()})

        logger.info(
            sanitize_log_message("Field added", RequestID=request_id, TemplateID=template_id, FieldID=field.id)
        )
        return field

    async def update_field(
        self,
        field_id: str,
        patch: FormFieldUpdate,
        caller: CurrentUser,
        request_id: Optional[str] = None
    ) -> FormField:
        """
        Partially update a field.

        Raises:
            NotFoundException: unknown field id
            AccessDeniedException: caller may not access the owning template
            ValidationException: patch blanks out name, type or label, or sets
                is_required or display_order to null
        """
        field = await self._field_with_access(field_id, caller)

        changes = patch.model_dump(exclude_unset=True)
        for required in ("field_name", "field_type", "field_label"):
            if required in changes and not changes[required]:
                raise ValidationException(detail=f"{required} cannot be empty")
        for flag in ("is_required", "display_order"):
            if flag in changes and changes[flag] is None:
                raise ValidationException(detail=f"{flag} cannot be null")

        updated = await self.templates.update_field(field_id, changes)
        if updated is None:
            raise NotFoundException(detail="Field not found")
        await self.templates.update(field.template_id, {"updated_at": utcnow()})

        logger.info(sanitize_log_message("Field updated", RequestID=request_id, FieldID=field_id))
        return updated

    async def delete_field(
        self,
        field_id: str,
        caller: CurrentUser,
        request_id: Optional[str] = None
    ) -> None:
        field = await self._field_with_access(field_id, caller)
        if not await self.templates.delete_field(field_id):
            raise NotFoundException(detail="Field not found")
        await self.templates.update(field.template_id, {"updated_at": utcnow()})
        logger.info(sanitize_log_message("Field deleted", RequestID=request_id, FieldID=field_id))
