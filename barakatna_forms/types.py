"""Core type definitions for the Barakatna form engine.

This module defines the enumerations shared by the metadata model, the
validation engine and the form session:
- FieldType: Input types a form field can declare
- ValidationRuleType: Rule kinds understood by the validation engine
- ConditionalOperator: Operators for conditional field visibility
- FieldWidth: Layout widths on the 12-column form grid
- ClientType / FormModule / FormPermission: Registry classification
- FormState: Submission controller states
- EventType: Session event types
- FieldErrorCode: Structured codes for per-field validation failures

All enums are string-valued so that metadata documents and events
round-trip through JSON unchanged.
"""

from enum import Enum
from typing import Any, Dict

from typing_extensions import TypeAlias


FormValues: TypeAlias = Dict[str, Any]
"""Flat mapping of field name to current value for one editing session."""

FormErrors: TypeAlias = Dict[str, str]
"""Mapping of field name to a single human-readable error message."""


class FieldType(str, Enum):
    """Field input types.

    The renderer supports TEXT through FILE. The remaining members exist so
    that metadata documents using them still load; they render as an
    unsupported placeholder.
    """
    TEXT = "text"
    EMAIL = "email"
    PHONE = "phone"
    NUMBER = "number"
    TEXTAREA = "textarea"
    SELECT = "select"
    MULTISELECT = "multiselect"
    RADIO = "radio"
    SWITCH = "switch"
    DATE = "date"
    FILE = "file"
    TIME = "time"
    DATETIME = "datetime"
    CHECKBOX = "checkbox"
    IMAGE = "image"
    SIGNATURE = "signature"
    LOCATION = "location"
    PASSWORD = "password"
    HIDDEN = "hidden"
    CALCULATED = "calculated"
    LOOKUP = "lookup"
    REFERENCE = "reference"
    SECTION = "section"
    SUBSECTION = "subsection"
    REPEATER = "repeater"


class ValidationRuleType(str, Enum):
    """Validation rule kinds, in the camelCase used by metadata documents."""
    REQUIRED = "required"
    MIN_LENGTH = "minLength"
    MAX_LENGTH = "maxLength"
    MIN_VALUE = "minValue"
    MAX_VALUE = "maxValue"
    PATTERN = "pattern"
    EMAIL = "email"
    URL = "url"
    CUSTOM = "custom"


class ConditionalOperator(str, Enum):
    """Operators for a field's conditional visibility rule."""
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    INCLUDES = "includes"
    NOT_INCLUDES = "notIncludes"


class FieldWidth(str, Enum):
    """Field widths on the 12-column form grid."""
    FULL = "full"
    HALF = "half"
    THIRD = "third"
    QUARTER = "quarter"


WIDTH_CLASSES: Dict[FieldWidth, str] = {
    FieldWidth.FULL: "col-span-12",
    FieldWidth.HALF: "col-span-12 md:col-span-6",
    FieldWidth.THIRD: "col-span-12 md:col-span-4",
    FieldWidth.QUARTER: "col-span-12 md:col-span-3",
}


class ClientType(str, Enum):
    """Funding/client programs a form can apply to."""
    FDF = "FDF"
    ADHA = "ADHA"
    CASH = "CASH"
    OTHER = "OTHER"


class FormModule(str, Enum):
    """Platform module a form belongs to."""
    ASSESSMENT = "assessment"
    PROJECT = "project"
    PROCUREMENT = "procurement"
    COMMITTEE = "committee"
    FINANCIAL = "financial"
    INVENTORY = "inventory"
    USER = "user"
    CLIENT = "client"
    SUPPLIER = "supplier"
    REPORT = "report"
    SETTINGS = "settings"
    CASE = "case"
    MANPOWER = "manpower"
    DRAWING = "drawing"
    COHORT = "cohort"
    PRICE_LIST = "price_list"
    PROGRAM = "program"
    ADMINISTRATION = "administration"


class FormPermission(str, Enum):
    """Permission names used in registry role lookups."""
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    APPROVE = "approve"
    REJECT = "reject"
    SUBMIT = "submit"
    PRINT = "print"
    EXPORT = "export"


class FormState(str, Enum):
    """Submission controller states."""
    EDITING = "editing"
    SUBMITTING = "submitting"


class EventType(str, Enum):
    """Event types emitted by a form session."""
    FORM_LOADED = "form.loaded"
    FIELD_CHANGED = "field.changed"
    SECTION_TOGGLED = "section.toggled"
    VALIDATION_PASSED = "validation.passed"
    VALIDATION_FAILED = "validation.failed"
    FORM_SUBMITTED = "form.submitted"
    DRAFT_SAVED = "draft.saved"


class FieldErrorCode(str, Enum):
    """Structured codes for per-field validation failures."""
    REQUIRED = "required"
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"
    INVALID_FORMAT = "invalid_format"
    INVALID_VALUE = "invalid_value"
    BELOW_MINIMUM = "below_minimum"
    ABOVE_MAXIMUM = "above_maximum"


__all__ = [
    "FormValues",
    "FormErrors",
    "FieldType",
    "ValidationRuleType",
    "ConditionalOperator",
    "FieldWidth",
    "WIDTH_CLASSES",
    "ClientType",
    "FormModule",
    "FormPermission",
    "FormState",
    "EventType",
    "FieldErrorCode",
]
