"""Default form templates installed by ``scripts/seed_form_templates.py``."""
import logging
from typing import List, Optional

from secure_upload.core.document_types import MB, DocumentDataType
from secure_upload.models.template import FieldType
from secure_upload.schemas.auth import CurrentUser
from secure_upload.schemas.template import FormFieldCreate, FormTemplate, FormTemplateCreate
from secure_upload.services.template_service import TemplateService

logger = logging.getLogger(__name__)

CLIENT_ONBOARDING = FormTemplateCreate(
    name="Client Onboarding Documents",
    description=(
        "Standard form for collecting client onboarding documents including "
        "identity verification and compliance materials"
    ),
    fields=[
        FormFieldCreate(field_name="first_name", field_type=FieldType.TEXT, field_label="First Name",
                        is_required=True, display_order=1, validation_rules={"minLength": 2, "maxLength": 50}),
        FormFieldCreate(field_name="last_name", field_type=FieldType.TEXT, field_label="Last Name",
                        is_required=True, display_order=2, validation_rules={"minLength": 2, "maxLength": 50}),
        FormFieldCreate(field_name="email", field_type=FieldType.EMAIL, field_label="Email Address",
                        is_required=True, display_order=3, validation_rules={"format": "email"}),
        FormFieldCreate(field_name="phone", field_type=FieldType.PHONE, field_label="Phone Number",
                        is_required=True, display_order=4, validation_rules={"format": "phone"}),
        FormFieldCreate(field_name="date_of_birth", field_type=FieldType.DATE, field_label="Date of Birth",
                        is_required=True, display_order=5, validation_rules={"minAge": 18}),
        FormFieldCreate(
            field_name="employment_type",
            field_type=FieldType.SELECT,
            field_label="Employment Type",
            is_required=True,
            display_order=6,
            field_options={"options": [
                {"value": "permanent", "label": "Permanent"},
                {"value": "contract", "label": "Contract"},
                {"value": "temporary", "label": "Temporary"},
                {"value": "freelance", "label": "Freelance"},
            ]},
        ),
        FormFieldCreate(field_name="identity_document", field_type=FieldType.FILE,
                        field_label="Government Issued ID (Passport/Driver's License)",
                        document_data_type=DocumentDataType.DRIVERS_LICENSE.value,
                        is_required=True, display_order=7,
                        validation_rules={"allowedTypes": ["pdf", "jpg", "jpeg", "png"], "maxSize": 5 * MB}),
        FormFieldCreate(field_name="proof_of_address", field_type=FieldType.FILE,
                        field_label="Proof of Address (Utility Bill/Bank Statement)",
                        document_data_type=DocumentDataType.UTILITY_BILL.value,
                        is_required=True, display_order=8,
                        validation_rules={"allowedTypes": ["pdf", "jpg", "jpeg", "png"], "maxSize": 5 * MB}),
        FormFieldCreate(field_name="resume_cv", field_type=FieldType.FILE, field_label="Resume/CV",
                        document_data_type=DocumentDataType.RESUME.value,
                        is_required=True, display_order=9,
                        validation_rules={"allowedTypes": ["pdf", "doc", "docx"], "maxSize": 10 * MB}),
        FormFieldCreate(field_name="right_to_work", field_type=FieldType.FILE,
                        field_label="Right to Work Documentation",
                        document_data_type=DocumentDataType.WORK_PERMIT.value,
                        is_required=True, display_order=10,
                        validation_rules={"allowedTypes": ["pdf", "jpg", "jpeg", "png"], "maxSize": 5 * MB}),
        FormFieldCreate(field_name="additional_notes", field_type=FieldType.TEXTAREA,
                        field_label="Additional Notes or Comments",
                        is_required=False, display_order=11, validation_rules={"maxLength": 1000}),
    ],
)

DEFAULT_TEMPLATES = [CLIENT_ONBOARDING]


async def seed_form_templates(
    service: TemplateService,
    owner: CurrentUser,
    templates: Optional[List[FormTemplateCreate]] = None
) -> List[FormTemplate]:
    """
    Create the default templates unless the owner can already see any template.

    Returns:
        The templates created (empty when seeding was skipped)
    """
    if await service.list_templates(owner, include_inactive=True):
        logger.info("Form templates already exist, skipping template seeding")
        return []

    created = []
    for data in templates or DEFAULT_TEMPLATES:
        created.append(await service.create_template(data, owner))
        logger.info(f"Seeded form template: {data.name} ({len(data.fields)} fields)")
    return created
