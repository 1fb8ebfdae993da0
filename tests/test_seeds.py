"""
Tests for default template seeding.
"""
import pytest

from secure_upload.models.template import FieldType
from secure_upload.seeds import CLIENT_ONBOARDING, seed_form_templates


class TestSeedFormTemplates:
    """Seeding installs the onboarding template once."""

    @pytest.mark.asyncio
    async def test_seed_creates_onboarding_template(self, template_service, admin):
        created = await seed_form_templates(template_service, admin)

        assert [t.name for t in created] == [CLIENT_ONBOARDING.name]
        fields = created[0].fields
        assert len(fields) == 11
        assert [f.display_order for f in fields] == sorted(f.display_order for f in fields)
        file_fields = [f for f in fields if f.field_type == FieldType.FILE]
        assert file_fields
        assert all(f.document_data_type for f in file_fields)

    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, template_service, admin):
        await seed_form_templates(template_service, admin)

        assert await seed_form_templates(template_service, admin) == []
        assert len(await template_service.list_templates(admin)) == 1
