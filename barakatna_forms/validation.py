"""Validation engine for form values.

This module provides a ValidationEngine that checks a form's values against
the validation rules declared on its fields and produces the per-field error
map shown under each control.

Rules on a field run in declared order and the first failing rule wins; later
rules are not evaluated. A rule with a ``condition`` is skipped while the
condition is false. Fields hidden by their conditional rule are not validated
at all; fields in collapsed sections still are.

Default messages per rule kind:
    required   "This field is required"
    minLength  "Minimum length is N characters"
    maxLength  "Maximum length is N characters"
    pattern    "Invalid format"
    email      "Invalid email address"
    url        "Invalid URL"
    minValue   "Minimum value is N"
    maxValue   "Maximum value is N"
"""

import functools
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Pattern, Tuple

from barakatna_forms.conditions import Condition, compile_condition, to_number
from barakatna_forms.errors import FieldError, MetadataError
from barakatna_forms.metadata import FormField, FormMetadata, ValidationRule
from barakatna_forms.types import FieldErrorCode, FormErrors, FormValues, ValidationRuleType
from barakatna_forms.visibility import is_visible

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}$", re.IGNORECASE)
URL_RE = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)


@functools.lru_cache(maxsize=512)
def _condition(source: str) -> Condition:
    return compile_condition(source)


@functools.lru_cache(maxsize=512)
def _pattern(source: str) -> Pattern[str]:
    try:
        return re.compile(source)
    except re.error as exc:
        raise MetadataError(f"Invalid validation pattern {source!r}: {exc}") from exc


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def _check_rule(rule: ValidationRule, value: Any) -> Optional[Tuple[FieldErrorCode, str]]:
    """Apply one rule to a value.

    Returns:
        (error code, default message) if the rule fails, None if it passes
    """
    kind = rule.type
    bound = rule.value

    if kind == ValidationRuleType.REQUIRED:
        if _is_blank(value):
            return FieldErrorCode.REQUIRED, "This field is required"
        return None

    # Text rules only look at non-empty strings
    text = value if isinstance(value, str) and value else None

    if kind == ValidationRuleType.MIN_LENGTH:
        if text is not None and len(text) < to_number(bound):
            return FieldErrorCode.TOO_SHORT, f"Minimum length is {bound} characters"
        return None
    if kind == ValidationRuleType.MAX_LENGTH:
        if text is not None and len(text) > to_number(bound):
            return FieldErrorCode.TOO_LONG, f"Maximum length is {bound} characters"
        return None
    if kind == ValidationRuleType.PATTERN:
        if text is not None and bound is not None and not _pattern(str(bound)).search(text):
            return FieldErrorCode.INVALID_FORMAT, "Invalid format"
        return None
    if kind == ValidationRuleType.EMAIL:
        if text is not None and not EMAIL_RE.match(text):
            return FieldErrorCode.INVALID_FORMAT, "Invalid email address"
        return None
    if kind == ValidationRuleType.URL:
        if text is not None and not URL_RE.match(text):
            return FieldErrorCode.INVALID_FORMAT, "Invalid URL"
        return None

    if kind in (ValidationRuleType.MIN_VALUE, ValidationRuleType.MAX_VALUE):
        if value is None:
            return None
        number, limit = to_number(value), to_number(bound)
        if math.isnan(number) or math.isnan(limit):
            return None
        if kind == ValidationRuleType.MIN_VALUE and number < limit:
            return FieldErrorCode.BELOW_MINIMUM, f"Minimum value is {bound}"
        if kind == ValidationRuleType.MAX_VALUE and number > limit:
            return FieldErrorCode.ABOVE_MAXIMUM, f"Maximum value is {bound}"
        return None

    logger.debug("Rule type %r is not checked by the engine", getattr(kind, "value", kind))
    return None


@dataclass(frozen=True)
class ValidationResult:
    """Result of validating a form's values.

    Attributes:
        is_valid: Whether no field recorded an error
        errors: Field name to error message, one entry per failing field
        field_errors: Structured view of the same errors, in field order
        skipped_fields: Names of fields not validated because they are hidden

    Examples:
        >>> form = FormMetadata.from_dict({"id": "f", "title": "F", "sections": [], "fields": []})
        >>> result = ValidationEngine(form).validate({})
        >>> result.is_valid
        True
        >>> result.errors
        {}
    """
    is_valid: bool
    errors: FormErrors = field(default_factory=dict)
    field_errors: List[FieldError] = field(default_factory=list)
    skipped_fields: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "isValid": self.is_valid,
            "errors": dict(self.errors),
            "fieldErrors": [e.to_dict() for e in self.field_errors],
            "skippedFields": list(self.skipped_fields),
        }


class ValidationEngine:
    """Rule-based validation engine for one form.

    Rule conditions and patterns are compiled when the engine is created, so a
    malformed form fails when it is loaded rather than while a user types.

    Attributes:
        metadata: The form whose fields are validated

    Examples:
        >>> form = FormMetadata.from_dict({
        ...     "id": "contact", "title": "Contact", "sections": [],
        ...     "fields": [{"id": "email", "name": "email", "type": "email",
        ...                 "validation": [{"type": "required"}, {"type": "email"}]}],
        ... })
        >>> engine = ValidationEngine(form)
        >>> engine.validate({"email": ""}).errors
        {'email': 'This field is required'}
        >>> engine.validate({"email": "not-an-email"}).errors
        {'email': 'Invalid email address'}
    """

    def __init__(self, metadata: FormMetadata) -> None:
        """Initialize the engine and compile the form's rule conditions.

        Raises:
            ConditionSyntaxError: If a rule condition does not parse
            MetadataError: If a pattern rule is not a valid regular expression
        """
        self.metadata = metadata
        for form_field in metadata.fields:
            for rule in form_field.validation:
                if rule.condition:
                    _condition(rule.condition)
                if rule.type == ValidationRuleType.PATTERN and rule.value is not None:
                    _pattern(str(rule.value))

    def check_field(self, form_field: FormField, values: FormValues) -> Optional[FieldError]:
        """Validate one field, returning the first failing rule as a FieldError."""
        value = values.get(form_field.name)
        for rule in form_field.validation:
            if rule.condition and not _condition(rule.condition)(values, value):
                logger.debug(
                    "Skipping %s rule on '%s': condition %r is false",
                    getattr(rule.type, "value", rule.type),
                    form_field.name,
                    rule.condition,
                )
                continue

            failure = _check_rule(rule, value)
            if failure is None:
                continue
            code, default_message = failure
            return FieldError(
                field=form_field.name,
                code=code,
                message=rule.message or default_message,
                expected=rule.value,
                received=value,
            )
        return None

    def validate_field(self, form_field: FormField, values: FormValues) -> Optional[str]:
        """Validate one field, returning its error message or None."""
        error = self.check_field(form_field, values)
        return error.message if error else None

    def validate(self, values: FormValues) -> ValidationResult:
        """Validate every visible field of the form.

        Args:
            values: Current form values

        Returns:
            ValidationResult with the error map recomputed from scratch
        """
        errors: FormErrors = {}
        field_errors: List[FieldError] = []
        skipped: List[str] = []

        for form_field in self.metadata.fields:
            if not is_visible(form_field, values):
                skipped.append(form_field.name)
                continue
            error = self.check_field(form_field, values)
            if error is not None:
                errors[form_field.name] = error.message
                field_errors.append(error)

        return ValidationResult(
            is_valid=not errors,
            errors=errors,
            field_errors=field_errors,
            skipped_fields=skipped,
        )


def validate_field(form_field: FormField, values: FormValues) -> Optional[str]:
    """Validate a single field outside any form.

    Examples:
        >>> f = FormField.from_dict({"id": "n", "name": "n", "type": "text",
        ...                          "validation": [{"type": "minLength", "value": 3}]})
        >>> validate_field(f, {"n": "ab"})
        'Minimum length is 3 characters'
    """
    form = FormMetadata(id="", title="", fields=[form_field])
    return ValidationEngine(form).validate_field(form_field, values)


def validate_form(metadata: FormMetadata, values: FormValues) -> ValidationResult:
    """Validate every visible field of a form."""
    return ValidationEngine(metadata).validate(values)


__all__ = [
    "EMAIL_RE",
    "URL_RE",
    "ValidationEngine",
    "ValidationResult",
    "validate_field",
    "validate_form",
]
