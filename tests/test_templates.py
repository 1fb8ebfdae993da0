"""
Tests for form templates: creation, ordering, ownership and field operations.
"""
import pytest
from datetime import timedelta

from secure_upload.core.exceptions import AccessDeniedException, NotFoundException, ValidationException
from secure_upload.models.template import FieldType
from secure_upload.schemas.template import (
    FormFieldCreate,
    FormFieldUpdate,
    FormTemplateCreate,
    FormTemplateUpdate,
)


def _template(name: str = "Onboarding", **overrides) -> FormTemplateCreate:
    data = {
        "name": name,
        "description": "New client intake",
        "fields": [
            FormFieldCreate(
                field_name="id_document",
                field_type=FieldType.FILE,
                field_label="ID Document",
                document_data_type="drivers_license",
                is_required=True,
                display_order=2,
            ),
            FormFieldCreate(
                field_name="full_name",
                field_type=FieldType.TEXT,
                field_label="Full Name",
                is_required=True,
                display_order=1,
            ),
        ],
    }
    data.update(overrides)
    return FormTemplateCreate(**data)


class TestCreateTemplate:
    """Test template creation"""

    @pytest.mark.asyncio
    async def test_create_assigns_ids_and_sorts_fields(self, template_service, manager):
        """Fields come back ordered by display_order with ids assigned"""
        template = await template_service.create_template(_template(), manager)

        assert template.id
        assert template.is_active is True
        assert template.created_by == manager.id
        assert [f.field_name for f in template.fields] == ["full_name", "id_document"]
        assert all(f.template_id == template.id for f in template.fields)
        assert len({f.id for f in template.fields}) == 2

    @pytest.mark.asyncio
    async def test_create_without_fields_rejected(self, template_service, admin):
        """A template needs at least one field"""
        with pytest.raises(ValidationException):
            await template_service.create_template(_template(fields=[]), admin)

        assert await template_service.list_templates(admin) == []

    @pytest.mark.asyncio
    async def test_create_with_blank_name_rejected(self, template_service, admin):
        with pytest.raises(ValidationException):
            await template_service.create_template(_template(name="   "), admin)

    @pytest.mark.asyncio
    async def test_field_missing_label_rejected(self, template_service, admin):
        """Every field needs a name, type and label"""
        data = _template(fields=[FormFieldCreate(field_name="x", field_type=FieldType.TEXT)])

        with pytest.raises(ValidationException) as exc_info:
            await template_service.create_template(data, admin)

        assert "field_label" in exc_info.value.detail
        assert await template_service.list_templates(admin, include_inactive=True) == []


class TestTemplateAccess:
    """Test visibility and ownership of templates"""

    @pytest.mark.asyncio
    async def test_list_newest_first(self, template_service, store, admin):
        first = await template_service.create_template(_template("First"), admin)
        second = await template_service.create_template(_template("Second"), admin)
        await store.templates.update(first.id, {"created_at": second.created_at - timedelta(minutes=5)})

        templates = await template_service.list_templates(admin)

        assert [t.name for t in templates] == ["Second", "First"]

    @pytest.mark.asyncio
    async def test_non_elevated_sees_only_own(self, template_service, manager, recruiter, compliance):
        """Managers see their own templates, compliance sees everything"""
        await template_service.create_template(_template("Mine"), manager)
        await template_service.create_template(_template("Theirs"), compliance)

        assert [t.name for t in await template_service.list_templates(manager)] == ["Mine"]
        assert await template_service.list_templates(recruiter) == []
        assert len(await template_service.list_templates(compliance)) == 2

    @pytest.mark.asyncio
    async def test_get_other_users_template_denied(self, template_service, manager, recruiter, admin):
        template = await template_service.create_template(_template(), manager)

        with pytest.raises(AccessDeniedException):
            await template_service.get_template(template.id, recruiter)

        fetched = await template_service.get_template(template.id, admin)
        assert fetched.id == template.id

    @pytest.mark.asyncio
    async def test_get_unknown_template(self, template_service, admin):
        with pytest.raises(NotFoundException):
            await template_service.get_template("missing", admin)


class TestUpdateAndDelete:
    """Test template patching and soft delete"""

    @pytest.mark.asyncio
    async def test_update_name_and_description(self, template_service, manager):
        template = await template_service.create_template(_template(), manager)

        updated = await template_service.update_template(
            template.id,
            FormTemplateUpdate(name="Renamed", description="Changed"),
            manager,
        )

        assert updated.name == "Renamed"
        assert updated.description == "Changed"
        assert updated.updated_at >= template.updated_at
        assert len(updated.fields) == 2

    @pytest.mark.asyncio
    async def test_update_by_other_user_denied(self, template_service, manager, recruiter):
        template = await template_service.create_template(_template(), manager)

        with pytest.raises(AccessDeniedException):
            await template_service.update_template(template.id, FormTemplateUpdate(name="X"), recruiter)

    @pytest.mark.asyncio
    async def test_delete_is_soft(self, template_service, manager):
        """Deleted templates stay readable but drop out of the default listing"""
        template = await template_service.create_template(_template(), manager)

        await template_service.delete_template(template.id, manager)

        assert await template_service.list_templates(manager) == []
        listed = await template_service.list_templates(manager, include_inactive=True)
        assert [t.id for t in listed] == [template.id]
        assert (await template_service.get_template(template.id, manager)).is_active is False


class TestFieldOperations:
    """Test per-field operations, which check access against the owning template"""

    @pytest.mark.asyncio
    async def test_add_field(self, template_service, manager):
        template = await template_service.create_template(_template(), manager)

        field = await template_service.add_field(
            template.id,
            FormFieldCreate(field_name="notes", field_type=FieldType.TEXTAREA, field_label="Notes", display_order=0),
            manager,
        )

        refreshed = await template_service.get_template(template.id, manager)
        assert refreshed.fields[0].id == field.id
        assert len(refreshed.fields) == 3

    @pytest.mark.asyncio
    async def test_update_field(self, template_service, manager):
        template = await template_service.create_template(_template(), manager)
        field_id = template.fields[0].id

        updated = await template_service.update_field(
            field_id, FormFieldUpdate(field_label="Legal Name", is_required=False), manager
        )

        assert updated.field_label == "Legal Name"
        assert updated.is_required is False
        assert updated.field_name == "full_name"

    @pytest.mark.asyncio
    async def test_field_ops_denied_for_non_owner(self, template_service, manager, recruiter):
        template = await template_service.create_template(_template(), manager)
        field_id = template.fields[0].id

        with pytest.raises(AccessDeniedException):
            await template_service.update_field(field_id, FormFieldUpdate(field_label="X"), recruiter)
        with pytest.raises(AccessDeniedException):
            await template_service.delete_field(field_id, recruiter)

        refreshed = await template_service.get_template(template.id, manager)
        assert refreshed.fields[0].field_label == "Full Name"

    @pytest.mark.asyncio
    async def test_delete_field(self, template_service, manager):
        template = await template_service.create_template(_template(), manager)
        field_id = template.fields[0].id

        await template_service.delete_field(field_id, manager)

        refreshed = await template_service.get_template(template.id, manager)
        assert [f.field_name for f in refreshed.fields] == ["id_document"]
        with pytest.raises(NotFoundException):
            await template_service.delete_field(field_id, manager)

    @pytest.mark.asyncio
    async def test_unknown_field(self, template_service, admin):
        with pytest.raises(NotFoundException):
            await template_service.update_field("missing", FormFieldUpdate(field_label="X"), admin)

    @pytest.mark.asyncio
    async def test_null_order_or_required_rejected(self, template_service, manager):
        """Nulling a non-nullable attribute is a validation error and leaves the template readable"""
        template = await template_service.create_template(_template(), manager)
        field_id = template.fields[0].id

        for patch in (FormFieldUpdate(display_order=None), FormFieldUpdate(is_required=None)):
            with pytest.raises(ValidationException):
                await template_service.update_field(field_id, patch, manager)

        refreshed = await template_service.get_template(template.id, manager)
        assert [f.display_order for f in refreshed.fields] == [1, 2]
        assert refreshed.fields[0].is_required is True

    @pytest.mark.asyncio
    async def test_display_order_zero_allowed(self, template_service, manager):
        template = await template_service.create_template(_template(), manager)

        updated = await template_service.update_field(
            template.fields[1].id, FormFieldUpdate(display_order=0), manager
        )

        assert updated.display_order == 0
