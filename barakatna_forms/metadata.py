"""Declarative form metadata: forms, sections, fields and validation rules.

A FormMetadata document describes one form: its ordered sections, its fields
(each with a type, layout width, validation rules and an optional
conditional-visibility rule) and its references to other forms. Documents are
authored as camelCase JSON-style dicts; ``FormMetadata.from_dict`` checks the
document shape against ``METADATA_SCHEMA`` with jsonschema before building the
dataclasses below.

Field and section references inside a form are not enforced at runtime.
``check_references`` reports them so they can be logged or, with strict
settings, rejected.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

from dateutil import parser as date_parser
from jsonschema import Draft7Validator

from barakatna_forms.conditions import compile_condition
from barakatna_forms.errors import ConditionSyntaxError, MetadataError
from barakatna_forms.types import (
    WIDTH_CLASSES,
    ClientType,
    ConditionalOperator,
    FieldType,
    FieldWidth,
    FormModule,
    ValidationRuleType,
)

E = TypeVar("E")


_RULE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "type": {"type": "string"},
        "message": {"type": ["string", "null"]},
        "condition": {"type": ["string", "null"]},
        "clientTypes": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["type"],
}

_FIELD_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "name": {"type": "string", "minLength": 1},
        "label": {"type": "string"},
        "type": {"type": "string"},
        "section": {"type": ["string", "null"]},
        "order": {"type": ["number", "null"]},
        "width": {"type": ["string", "integer", "null"]},
        "required": {"type": "boolean"},
        "readOnly": {"type": "boolean"},
        "multiple": {"type": "boolean"},
        "validation": {"type": "array", "items": _RULE_SCHEMA},
        "options": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {"value": {}, "label": {"type": "string"}},
                "required": ["value", "label"],
            },
        },
        "conditional": {
            "type": ["object", "null"],
            "properties": {
                "field": {"type": "string"},
                "operator": {"type": "string"},
            },
            "required": ["field", "operator"],
        },
        "clientTypeOverrides": {"type": "object"},
    },
    "required": ["id", "name", "type"],
}

METADATA_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "title": {"type": "string"},
        "description": {"type": ["string", "null"]},
        "module": {"type": "string"},
        "version": {"type": "string"},
        "clientTypes": {"type": "array", "items": {"type": "string"}},
        "permissions": {
            "type": "object",
            "additionalProperties": {"type": "array", "items": {"type": "string"}},
        },
        "sections": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string", "minLength": 1},
                    "title": {"type": "string"},
                    "collapsible": {"type": "boolean"},
                    "collapsed": {"type": "boolean"},
                },
                "required": ["id", "title"],
            },
        },
        "fields": {"type": "array", "items": _FIELD_SCHEMA},
        "dependencies": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {"formId": {"type": "string"}, "required": {"type": "boolean"}},
                "required": ["formId"],
            },
        },
        "isActive": {"type": "boolean"},
        "clientTypeOverrides": {"type": "object"},
    },
    "required": ["id", "title", "sections", "fields"],
}

Draft7Validator.check_schema(METADATA_SCHEMA)
_metadata_validator = Draft7Validator(METADATA_SCHEMA)


def _enum_or_raw(enum_cls: Type[E], value: Any) -> Union[E, Any]:
    """Return the enum member for value, or value unchanged if it is not one."""
    try:
        return enum_cls(value)  # type: ignore[call-arg]
    except ValueError:
        return value


def _raw(value: Any) -> Any:
    """Enum member to its string value; anything else unchanged."""
    return getattr(value, "value", value)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return date_parser.isoparse(value)


@dataclass(frozen=True)
class FieldOption:
    """One choice of a SELECT, RADIO or MULTISELECT field."""
    value: Any
    label: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {"value": self.value, "label": self.label}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldOption":
        """Create FieldOption from dict."""
        return cls(value=data["value"], label=data["label"])


@dataclass(frozen=True)
class ValidationRule:
    """A single validation constraint on a field.

    Attributes:
        type: Rule kind; unknown kinds are kept as plain strings and never fail
        value: Rule bound (length, limit or pattern), where the kind needs one
        message: Optional message replacing the rule kind's default
        condition: Optional expression; the rule only applies while it holds
        client_types: Client programs the rule is authored for
    """
    type: Union[ValidationRuleType, str]
    value: Any = None
    message: Optional[str] = None
    condition: Optional[str] = None
    client_types: List[ClientType] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {"type": _raw(self.type)}
        if self.value is not None:
            result["value"] = self.value
        if self.message is not None:
            result["message"] = self.message
        if self.condition is not None:
            result["condition"] = self.condition
        if self.client_types:
            result["clientTypes"] = [_raw(c) for c in self.client_types]
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValidationRule":
        """Create ValidationRule from dict."""
        return cls(
            type=_enum_or_raw(ValidationRuleType, data["type"]),
            value=data.get("value"),
            message=data.get("message"),
            condition=data.get("condition"),
            client_types=[_enum_or_raw(ClientType, c) for c in data.get("clientTypes", [])],
        )


@dataclass(frozen=True)
class ConditionalRule:
    """Conditional visibility: show a field only while another field's value matches.

    Attributes:
        field: Name of the field whose value is inspected
        operator: Comparison operator; unknown operators are kept as strings
        value: Value compared against
    """
    field: str
    operator: Union[ConditionalOperator, str]
    value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {"field": self.field, "operator": _raw(self.operator), "value": self.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConditionalRule":
        """Create ConditionalRule from dict."""
        return cls(
            field=data["field"],
            operator=_enum_or_raw(ConditionalOperator, data["operator"]),
            value=data.get("value"),
        )


@dataclass(frozen=True)
class FormField:
    """One data-entry unit of a form.

    Attributes:
        id: Unique ID within the form, used for control IDs
        name: Key under which the field's value is stored in the form values
        label: Display label
        type: Input type; unknown types are kept as strings and render as a placeholder
        section: ID of the section the field belongs to
        order: Sort key within the section (ascending, default 0)
        width: Layout width, a FieldWidth or a column count out of 12
        required: Whether the label shows the required marker
        read_only: Whether the control is disabled
        validation: Ordered rules; the first failing rule's message is reported
        conditional: Optional visibility rule
        options: Choices for SELECT, RADIO and MULTISELECT fields
        multiple: FILE fields accept several files
        client_type_overrides: Per-client partial field documents (camelCase)

    Examples:
        >>> f = FormField.from_dict({"id": "email", "name": "email", "type": "email"})
        >>> f.type
        <FieldType.EMAIL: 'email'>
        >>> f.width_class
        'col-span-12'
    """
    id: str
    name: str
    type: Union[FieldType, str]
    label: str = ""
    section: Optional[str] = None
    order: float = 0
    width: Union[FieldWidth, int, str, None] = None
    required: bool = False
    read_only: bool = False
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    default_value: Any = None
    validation: List[ValidationRule] = field(default_factory=list)
    conditional: Optional[ConditionalRule] = None
    options: List[FieldOption] = field(default_factory=list)
    multiple: bool = False
    client_type_overrides: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def width_class(self) -> str:
        """Grid class for the field's width."""
        if isinstance(self.width, int) and not isinstance(self.width, bool):
            return f"col-span-12 md:col-span-{self.width}"
        width = _enum_or_raw(FieldWidth, self.width or FieldWidth.FULL)
        return WIDTH_CLASSES.get(width, WIDTH_CLASSES[FieldWidth.FULL])

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "label": self.label,
            "type": _raw(self.type),
            "order": self.order,
            "required": self.required,
        }
        if self.section is not None:
            result["section"] = self.section
        if self.width is not None:
            result["width"] = _raw(self.width)
        if self.read_only:
            result["readOnly"] = True
        if self.placeholder is not None:
            result["placeholder"] = self.placeholder
        if self.help_text is not None:
            result["helpText"] = self.help_text
        if self.default_value is not None:
            result["defaultValue"] = self.default_value
        if self.validation:
            result["validation"] = [r.to_dict() for r in self.validation]
        if self.conditional is not None:
            result["conditional"] = self.conditional.to_dict()
        if self.options:
            result["options"] = [o.to_dict() for o in self.options]
        if self.multiple:
            result["multiple"] = True
        if self.client_type_overrides:
            result["clientTypeOverrides"] = self.client_type_overrides
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormField":
        """Create FormField from dict."""
        width = data.get("width")
        if isinstance(width, str):
            width = _enum_or_raw(FieldWidth, width)
        conditional = data.get("conditional")
        return cls(
            id=data["id"],
            name=data["name"],
            type=_enum_or_raw(FieldType, data["type"]),
            label=data.get("label", ""),
            section=data.get("section"),
            order=data.get("order") or 0,
            width=width,
            required=data.get("required", False),
            read_only=data.get("readOnly", False),
            placeholder=data.get("placeholder"),
            help_text=data.get("helpText"),
            default_value=data.get("defaultValue"),
            validation=[ValidationRule.from_dict(r) for r in data.get("validation") or []],
            conditional=ConditionalRule.from_dict(conditional) if conditional else None,
            options=[FieldOption.from_dict(o) for o in data.get("options") or []],
            multiple=data.get("multiple", False),
            client_type_overrides=dict(data.get("clientTypeOverrides") or {}),
        )


@dataclass(frozen=True)
class FormSection:
    """A titled group of fields. Sections have no lifecycle of their own."""
    id: str
    title: str
    description: Optional[str] = None
    order: Optional[int] = None
    collapsible: bool = False
    collapsed: bool = False
    client_types: List[ClientType] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "collapsible": self.collapsible,
            "collapsed": self.collapsed,
        }
        if self.description is not None:
            result["description"] = self.description
        if self.order is not None:
            result["order"] = self.order
        if self.client_types:
            result["clientTypes"] = [_raw(c) for c in self.client_types]
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormSection":
        """Create FormSection from dict."""
        return cls(
            id=data["id"],
            title=data["title"],
            description=data.get("description"),
            order=data.get("order"),
            collapsible=data.get("collapsible", False),
            collapsed=data.get("collapsed", False),
            client_types=[_enum_or_raw(ClientType, c) for c in data.get("clientTypes", [])],
        )


@dataclass(frozen=True)
class FieldMapping:
    """Maps a field of a source form onto a field of the dependent form."""
    source_field: str
    target_field: str
    transformation_rule: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {"sourceField": self.source_field, "targetField": self.target_field}
        if self.transformation_rule is not None:
            result["transformationRule"] = self.transformation_rule
        if self.description is not None:
            result["description"] = self.description
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldMapping":
        """Create FieldMapping from dict."""
        return cls(
            source_field=data["sourceField"],
            target_field=data["targetField"],
            transformation_rule=data.get("transformationRule"),
            description=data.get("description"),
        )


@dataclass(frozen=True)
class FormDependency:
    """Reference from one form to another (prerequisite, followup, ...).

    Recorded for the registry; never enforced while a form is being filled in.
    """
    form_id: str
    description: str = ""
    type: str = "reference"
    required: bool = False
    condition: Optional[str] = None
    client_types: List[ClientType] = field(default_factory=list)
    field_mappings: List[FieldMapping] = field(default_factory=list)

    def applies_to(self, client_type: Optional[ClientType]) -> bool:
        """Whether the dependency applies to a client type (all, if unrestricted)."""
        if client_type is None or not self.client_types:
            return True
        return client_type in self.client_types

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "formId": self.form_id,
            "description": self.description,
            "type": self.type,
            "required": self.required,
        }
        if self.condition is not None:
            result["condition"] = self.condition
        if self.client_types:
            result["clientTypes"] = [_raw(c) for c in self.client_types]
        if self.field_mappings:
            result["fieldMappings"] = [m.to_dict() for m in self.field_mappings]
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormDependency":
        """Create FormDependency from dict."""
        return cls(
            form_id=data["formId"],
            description=data.get("description", ""),
            type=data.get("type", "reference"),
            required=data.get("required", False),
            condition=data.get("condition"),
            client_types=[_enum_or_raw(ClientType, c) for c in data.get("clientTypes", [])],
            field_mappings=[FieldMapping.from_dict(m) for m in data.get("fieldMappings") or []],
        )


@dataclass(frozen=True)
class FormMetadata:
    """Declarative description of one form.

    Sections render in list order. Fields render inside their section sorted
    by ``order``; every field is validated, whatever its section.

    Attributes:
        id: Unique form identifier
        title: Display title
        description: Display description
        module: Platform module the form belongs to
        version: Metadata version string
        client_types: Client programs the form serves
        permissions: Permission name to permitted role names ("*" for any)
        sections: Ordered sections
        fields: Fields, in authoring order
        dependencies: References to other forms
        is_active: Whether the form is offered to users
        client_type_overrides: Per-client partial documents applied by the registry

    Examples:
        >>> form = FormMetadata.from_dict({"id": "empty", "title": "Empty", "sections": [], "fields": []})
        >>> form.fields
        []
    """
    id: str
    title: str
    description: str = ""
    module: Union[FormModule, str, None] = None
    version: str = "1.0"
    client_types: List[ClientType] = field(default_factory=list)
    permissions: Dict[str, List[str]] = field(default_factory=dict)
    sections: List[FormSection] = field(default_factory=list)
    fields: List[FormField] = field(default_factory=list)
    dependencies: List[FormDependency] = field(default_factory=list)
    is_active: bool = True
    client_type_overrides: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def get_field(self, name: str) -> Optional[FormField]:
        """Look up a field by its value key."""
        for form_field in self.fields:
            if form_field.name == name:
                return form_field
        return None

    def get_section(self, section_id: str) -> Optional[FormSection]:
        """Look up a section by ID."""
        for section in self.sections:
            if section.id == section_id:
                return section
        return None

    def fields_for_section(self, section_id: str) -> List[FormField]:
        """Fields of a section, sorted by ascending order (stable for ties)."""
        return sorted(
            (f for f in self.fields if f.section == section_id),
            key=lambda f: f.order or 0,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "version": self.version,
            "clientTypes": [_raw(c) for c in self.client_types],
            "permissions": self.permissions,
            "sections": [s.to_dict() for s in self.sections],
            "fields": [f.to_dict() for f in self.fields],
            "dependencies": [d.to_dict() for d in self.dependencies],
            "isActive": self.is_active,
        }
        if self.module is not None:
            result["module"] = _raw(self.module)
        if self.client_type_overrides:
            result["clientTypeOverrides"] = self.client_type_overrides
        if self.created_at is not None:
            result["createdAt"] = self.created_at.isoformat()
        if self.updated_at is not None:
            result["updatedAt"] = self.updated_at.isoformat()
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormMetadata":
        """Create FormMetadata from a metadata document.

        Raises:
            MetadataError: If the document does not match METADATA_SCHEMA
        """
        errors = sorted(_metadata_validator.iter_errors(data), key=lambda e: list(e.path))
        if errors:
            form_id = data.get("id") if isinstance(data, dict) else None
            problems = [
                f"{'.'.join(str(p) for p in error.path) or '<root>'}: {error.message}"
                for error in errors
            ]
            raise MetadataError(
                f"Form metadata {form_id or '<unknown>'} is invalid: {problems[0]}",
                form_id=form_id,
                problems=problems,
            )

        return cls(
            id=data["id"],
            title=data["title"],
            description=data.get("description") or "",
            module=_enum_or_raw(FormModule, data["module"]) if data.get("module") else None,
            version=data.get("version", "1.0"),
            client_types=[_enum_or_raw(ClientType, c) for c in data.get("clientTypes", [])],
            permissions={k: list(v) for k, v in (data.get("permissions") or {}).items()},
            sections=[FormSection.from_dict(s) for s in data["sections"]],
            fields=[FormField.from_dict(f) for f in data["fields"]],
            dependencies=[FormDependency.from_dict(d) for d in data.get("dependencies") or []],
            is_active=data.get("isActive", True),
            client_type_overrides=dict(data.get("clientTypeOverrides") or {}),
            created_at=_parse_timestamp(data.get("createdAt")),
            updated_at=_parse_timestamp(data.get("updatedAt")),
        )


def check_references(metadata: FormMetadata) -> List[str]:
    """Report broken references inside a form.

    Checks that every field names an existing section, that every
    conditional rule reads an existing field, and that every rule condition
    parses and reads only existing fields.

    Args:
        metadata: The form to check

    Returns:
        One message per problem; empty when the form is consistent
    """
    problems: List[str] = []
    section_ids = {s.id for s in metadata.sections}
    field_names = {f.name for f in metadata.fields}

    for form_field in metadata.fields:
        if form_field.section is None:
            problems.append(f"field '{form_field.name}' is not assigned to a section")
        elif form_field.section not in section_ids:
            problems.append(
                f"field '{form_field.name}' references unknown section '{form_field.section}'"
            )

        if form_field.conditional is not None and form_field.conditional.field not in field_names:
            problems.append(
                f"field '{form_field.name}' is conditional on unknown field "
                f"'{form_field.conditional.field}'"
            )

        for rule in form_field.validation:
            if not rule.condition:
                continue
            try:
                condition = compile_condition(rule.condition)
            except ConditionSyntaxError as exc:
                problems.append(f"field '{form_field.name}' has an invalid rule condition: {exc}")
                continue
            for name in sorted(condition.references - field_names):
                problems.append(
                    f"field '{form_field.name}' rule condition references unknown field '{name}'"
                )

    return problems


__all__ = [
    "METADATA_SCHEMA",
    "FieldOption",
    "ValidationRule",
    "ConditionalRule",
    "FormField",
    "FormSection",
    "FieldMapping",
    "FormDependency",
    "FormMetadata",
    "check_references",
]
