"""Barakatna Forms: declarative form engine for the Barakatna Platform.

Barakatna Forms interprets declarative form metadata and provides:
- A field/section metadata model loaded from JSON-style documents
- Conditional field visibility
- Rule-based field validation with guarded rule conditions
- A headless render model for UI layers
- A form session that hands valid values to an injected submit handler
- A registry of forms by module, client type and role

Basic usage:
    >>> from barakatna_forms import FormMetadata, FormSession
    >>> form = FormMetadata.from_dict({
    ...     "id": "beneficiary_contact",
    ...     "title": "Beneficiary Contact",
    ...     "sections": [{"id": "contact", "title": "Contact"}],
    ...     "fields": [{"id": "phone", "name": "phone", "type": "phone",
    ...                 "section": "contact", "validation": [{"type": "required"}]}],
    ... })
    >>> session = FormSession(form, on_submit=print)
    >>> session.submit().errors
    {'phone': 'This field is required'}
"""

__version__ = "0.1.0"
__author__ = "Barakatna Platform Team"

# Version info
VERSION = (0, 1, 0)

# Core exports
from barakatna_forms.metadata import FormMetadata
from barakatna_forms.registry import FormRegistry
from barakatna_forms.session import FormSession
from barakatna_forms.validation import ValidationEngine, validate_field, validate_form
from barakatna_forms.visibility import is_visible

# Package metadata
__all__ = [
    "__version__",
    "VERSION",
    "FormMetadata",
    "FormRegistry",
    "FormSession",
    "ValidationEngine",
    "is_visible",
    "validate_field",
    "validate_form",
]
