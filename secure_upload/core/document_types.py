"""
Document-data-type tags and the intake policy attached to each.

A file field may carry a tag (``drivers_license``, ``tax_return``...). At
submission time the tag selects the MIME types accepted for the file and
its size cap. Files without a tag, or with a tag that has no dedicated
policy, fall back to the general-document policy.
"""
from typing import Dict, FrozenSet, Optional
import enum

from pydantic import BaseModel

from secure_upload.config import settings

MB = 1024 * 1024

PDF = "application/pdf"
JPEG = "image/jpeg"
JPG = "image/jpg"
PNG = "image/png"
MSWORD = "application/msword"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

IMAGES_AND_PDF = frozenset({JPEG, JPG, PNG, PDF})
WORD_AND_PDF = frozenset({PDF, MSWORD, DOCX})


class DocumentDataType(str, enum.Enum):
    """Classification tags for file fields."""
    # Identity
    DRIVERS_LICENSE = "drivers_license"
    PASSPORT = "passport"
    SSN_CARD = "ssn_card"
    BIRTH_CERTIFICATE = "birth_certificate"
    STATE_ID = "state_id"
    # Financial
    TAX_RETURN = "tax_return"
    W2 = "w2"
    PAYSTUB = "paystub"
    BANK_STATEMENT = "bank_statement"
    CREDIT_REPORT = "credit_report"
    # Employment
    EMPLOYMENT_VERIFICATION = "employment_verification"
    RESUME = "resume"
    REFERENCE_LETTER = "reference_letter"
    BACKGROUND_CHECK = "background_check"
    # Medical
    MEDICAL_RECORD = "medical_record"
    VACCINATION_RECORD = "vaccination_record"
    INSURANCE_CARD = "insurance_card"
    PRESCRIPTION = "prescription"
    # Education
    DIPLOMA = "diploma"
    TRANSCRIPT = "transcript"
    CERTIFICATE = "certificate"
    # Legal
    CONTRACT = "contract"
    COURT_DOCUMENT = "court_document"
    POWER_OF_ATTORNEY = "power_of_attorney"
    WILL = "will"
    # Property
    LEASE_AGREEMENT = "lease_agreement"
    MORTGAGE_DOCUMENT = "mortgage_document"
    PROPERTY_DEED = "property_deed"
    UTILITY_BILL = "utility_bill"
    # Immigration
    VISA = "visa"
    GREEN_CARD = "green_card"
    WORK_PERMIT = "work_permit"
    I9_FORM = "i9_form"
    # Insurance
    AUTO_INSURANCE = "auto_insurance"
    HEALTH_INSURANCE = "health_insurance"
    LIABILITY_INSURANCE = "liability_insurance"
    # Other
    OTHER = "other"
    GENERAL_DOCUMENT = "general_document"


class DocumentPolicy(BaseModel):
    """MIME allow-list and size cap applied to one document type."""
    allowed_mime_types: FrozenSet[str]
    max_size: int

    def allows_mime_type(self, mime_type: str) -> bool:
        return (mime_type or "").lower() in self.allowed_mime_types


def _general_policy() -> DocumentPolicy:
    return DocumentPolicy(
        allowed_mime_types=frozenset(t.lower() for t in settings.ALLOWED_FILE_TYPES),
        max_size=settings.MAX_FILE_SIZE,
    )


def _policies() -> Dict[DocumentDataType, DocumentPolicy]:
    default_size = settings.MAX_FILE_SIZE
    return {
        DocumentDataType.DRIVERS_LICENSE: DocumentPolicy(allowed_mime_types=IMAGES_AND_PDF, max_size=5 * MB),
        DocumentDataType.PASSPORT: DocumentPolicy(allowed_mime_types=IMAGES_AND_PDF, max_size=5 * MB),
        DocumentDataType.MEDICAL_RECORD: DocumentPolicy(allowed_mime_types=IMAGES_AND_PDF, max_size=default_size),
        DocumentDataType.TAX_RETURN: DocumentPolicy(allowed_mime_types=frozenset({PDF}), max_size=default_size),
        DocumentDataType.BANK_STATEMENT: DocumentPolicy(allowed_mime_types=frozenset({PDF}), max_size=default_size),
        DocumentDataType.CONTRACT: DocumentPolicy(allowed_mime_types=WORD_AND_PDF, max_size=20 * MB),
        DocumentDataType.RESUME: DocumentPolicy(allowed_mime_types=WORD_AND_PDF, max_size=default_size),
        DocumentDataType.GENERAL_DOCUMENT: _general_policy(),
    }


def parse_document_type(value: Optional[str]) -> Optional[DocumentDataType]:
    """Return the tag for a raw value, or None when it is empty or unknown."""
    if not value:
        return None
    try:
        return DocumentDataType(value.strip().lower())
    except ValueError:
        return None


def policy_for(document_type: Optional[str]) -> DocumentPolicy:
    """Intake policy for a tag; untagged and unlisted types get the general policy."""
    policies = _policies()
    tag = parse_document_type(document_type)
    if tag is None or tag not in policies:
        return policies[DocumentDataType.GENERAL_DOCUMENT]
    return policies[tag]
