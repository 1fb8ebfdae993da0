from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum

from secure_upload.core.clock import utcnow
from secure_upload.database import Base


class FieldType(str, enum.Enum):
    """Form field type enumeration."""
    TEXT = "text"
    EMAIL = "email"
    PHONE = "phone"
    DATE = "date"
    SELECT = "select"
    MULTISELECT = "multiselect"
    FILE = "file"
    TEXTAREA = "textarea"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    NUMBER = "number"


class FormTemplateRecord(Base):
    """Form template row - a named set of field definitions."""

    __tablename__ = "form_templates"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_by = Column(String(255), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    fields = relationship(
        "FormFieldRecord",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="FormFieldRecord.display_order",
    )


class FormFieldRecord(Base):
    """Form field row - one typed input of a template."""

    __tablename__ = "form_fields"

    id = Column(String(36), primary_key=True)
    template_id = Column(String(36), ForeignKey("form_templates.id", ondelete="CASCADE"), nullable=False, index=True)
    field_name = Column(String(255), nullable=False)
    field_type = Column(
        SQLEnum(FieldType, name="field_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    field_label = Column(String(255), nullable=False)
    field_options = Column(JSON, nullable=True)  # choices, placeholder, help_text
    validation_rules = Column(JSON, nullable=True)
    document_data_type = Column(String(64), nullable=True)
    is_required = Column(Boolean, default=False, nullable=False)
    display_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    template = relationship("FormTemplateRecord", back_populates="fields")
