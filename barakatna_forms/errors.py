"""Error types for the Barakatna form engine.

Two families live here:
- Exceptions raised when a form definition or engine configuration is
  unusable (FormEngineError and its subclasses).
- FieldError, the structured record of a single field validation failure.
  Validation failures are ordinary results, not exceptions; FieldError gives
  programmatic consumers the code, message and context behind each entry of
  the plain error map.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from barakatna_forms.types import FieldErrorCode


class FormEngineError(Exception):
    """Base class for all form engine exceptions."""


class MetadataError(FormEngineError):
    """Raised when a form metadata document is malformed.

    Attributes:
        form_id: ID of the offending form, when it could be read
        problems: Individual problems found in the document
    """

    def __init__(self, message: str, form_id: Optional[str] = None, problems: Optional[List[str]] = None):
        self.form_id = form_id
        self.problems = list(problems or [])
        super().__init__(message)


class ConditionSyntaxError(FormEngineError):
    """Raised when a rule condition expression cannot be parsed.

    Attributes:
        expression: The full condition text
        position: Character offset where parsing failed
    """

    def __init__(self, expression: str, position: int, reason: str):
        self.expression = expression
        self.position = position
        self.reason = reason
        super().__init__(
            f"Invalid condition {expression!r} at position {position}: {reason}"
        )


class FormConfigurationError(FormEngineError):
    """Raised when a session is used without a collaborator it needs."""


@dataclass(frozen=True)
class FieldError:
    """Per-field validation error details.

    Attributes:
        field: Name of the field (its key in the form values)
        code: Specific validation error code
        message: Human-readable error description, as shown under the field
        expected: Optional - the rule's bound (length, pattern, limit)
        received: Optional - the value that failed

    Examples:
        >>> err = FieldError(
        ...     field="email",
        ...     code=FieldErrorCode.INVALID_FORMAT,
        ...     message="Invalid email address",
        ...     received="not-an-email"
        ... )
        >>> err.field
        'email'
    """
    field: str
    code: FieldErrorCode
    message: str
    expected: Optional[Any] = None
    received: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "field": self.field,
            "code": self.code.value if isinstance(self.code, FieldErrorCode) else self.code,
            "message": self.message,
        }
        if self.expected is not None:
            result["expected"] = self.expected
        if self.received is not None:
            result["received"] = self.received
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldError":
        """Create FieldError from dict."""
        code = data["code"]
        if isinstance(code, str):
            code = FieldErrorCode(code)
        return cls(
            field=data["field"],
            code=code,
            message=data["message"],
            expected=data.get("expected"),
            received=data.get("received"),
        )


__all__ = [
    "FormEngineError",
    "MetadataError",
    "ConditionSyntaxError",
    "FormConfigurationError",
    "FieldError",
]
