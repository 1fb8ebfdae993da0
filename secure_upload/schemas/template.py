from typing import Any, Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel, Field

from secure_upload.models.template import FieldType


class FormFieldBase(BaseModel):
    field_name: str = ""
    field_type: Optional[FieldType] = None
    field_label: str = ""
    field_options: Optional[Dict[str, Any]] = None
    validation_rules: Optional[Dict[str, Any]] = None
    document_data_type: Optional[str] = None
    is_required: bool = False
    display_order: int = 0


class FormFieldCreate(FormFieldBase):
    """
    Request schema for a new field.

    Name, type and label default to empty so that missing values are
    reported by the template store as a validation error.
    """


class FormFieldUpdate(BaseModel):
    """Partial patch of any field attribute."""
    field_name: Optional[str] = None
    field_type: Optional[FieldType] = None
    field_label: Optional[str] = None
    field_options: Optional[Dict[str, Any]] = None
    validation_rules: Optional[Dict[str, Any]] = None
    document_data_type: Optional[str] = None
    is_required: Optional[bool] = None
    display_order: Optional[int] = None


class FormField(FormFieldBase):
    """A field definition as stored."""
    id: str
    template_id: str
    field_type: FieldType
    created_at: datetime

    class Config:
        from_attributes = True


class FormTemplateCreate(BaseModel):
    """Request schema for creating a template with its fields."""
    name: str = ""
    description: Optional[str] = None
    fields: List[FormFieldCreate] = Field(default_factory=list)


class FormTemplateUpdate(BaseModel):
    """Template patch; only name, description and the active flag are mutable."""
    name: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class FormTemplate(BaseModel):
    """A template with its fields, always ordered by display_order."""
    id: str
    name: str
    description: Optional[str] = None
    is_active: bool = True
    created_by: str
    created_at: datetime
    updated_at: datetime
    fields: List[FormField] = Field(default_factory=list)

    class Config:
        from_attributes = True
