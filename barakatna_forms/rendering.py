"""Headless form renderer.

``render_form`` turns a form's metadata plus the session's values, errors and
collapsed sections into a RenderedForm: a plain tree of sections, fields and
controls that a UI layer (web template, TUI, test) draws without knowing
anything about visibility or ordering rules.

Rendering rules:
- Sections appear in the order they are listed in the metadata.
- A section's fields are sorted by ``order`` and filtered by visibility.
- A collapsed section carries no fields. Its fields keep their values and
  are still validated on submit.
- A field without a value shows its ``default_value``.
- A field type the renderer has no control for becomes an ``unsupported``
  control with a visible message; rendering never fails on it.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

from dateutil import parser as date_parser

from barakatna_forms.conditions import strict_equals
from barakatna_forms.metadata import FormField, FormMetadata
from barakatna_forms.types import FieldType, FormErrors, FormValues
from barakatna_forms.visibility import is_visible


# FieldType -> (control kind, HTML input type)
CONTROL_KINDS: Dict[FieldType, tuple] = {
    FieldType.TEXT: ("input", "text"),
    FieldType.EMAIL: ("input", "email"),
    FieldType.PHONE: ("input", "tel"),
    FieldType.NUMBER: ("input", "number"),
    FieldType.TEXTAREA: ("textarea", None),
    FieldType.SELECT: ("select", None),
    FieldType.MULTISELECT: ("checkbox_group", None),
    FieldType.RADIO: ("radio_group", None),
    FieldType.SWITCH: ("switch", None),
    FieldType.DATE: ("date_picker", None),
    FieldType.FILE: ("input", "file"),
}

TEXTAREA_ROWS = 5


@dataclass(frozen=True)
class ControlOption:
    """One choice rendered inside a select, radio or checkbox group."""
    id: str
    value: Any
    label: str
    selected: bool = False


@dataclass(frozen=True)
class Control:
    """An input control for one field.

    Attributes:
        kind: Control family (input, textarea, select, checkbox_group,
              radio_group, switch, date_picker, unsupported)
        input_type: HTML input type for ``input`` controls
        value: Value to show in the control
        display_text: Text shown beside or inside the control, where it has one
        options: Choices for select/radio/checkbox controls
        disabled: Whether the control accepts input
        invalid: Whether the field currently has an error
    """
    kind: str
    input_type: Optional[str] = None
    value: Any = None
    display_text: Optional[str] = None
    placeholder: Optional[str] = None
    options: List[ControlOption] = field(default_factory=list)
    disabled: bool = False
    invalid: bool = False
    multiple: bool = False
    rows: Optional[int] = None


@dataclass(frozen=True)
class RenderedField:
    """A visible field with its label, error and control."""
    id: str
    name: str
    label: str
    required: bool
    width_class: str
    control: Control
    help_text: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class RenderedSection:
    """A section header and, unless collapsed, its visible fields."""
    id: str
    title: str
    description: Optional[str]
    collapsible: bool
    collapsed: bool
    fields: List[RenderedField] = field(default_factory=list)


@dataclass(frozen=True)
class FormAction:
    """A form-level button."""
    name: str
    label: str
    disabled: bool = False
    busy: bool = False


@dataclass(frozen=True)
class RenderedForm:
    """The full render model of a form session."""
    form_id: str
    title: str
    description: str
    sections: List[RenderedSection]
    actions: List[FormAction]

    def get_field(self, name: str) -> Optional[RenderedField]:
        """Find a rendered field by name, or None if it is not shown."""
        for section in self.sections:
            for rendered in section.fields:
                if rendered.name == name:
                    return rendered
        return None

    def get_action(self, name: str) -> Optional[FormAction]:
        """Find a form action by name."""
        for action in self.actions:
            if action.name == name:
                return action
        return None

    @property
    def field_names(self) -> List[str]:
        """Names of all rendered fields, in render order."""
        return [f.name for s in self.sections for f in s.fields]


def _ordinal(day: int) -> str:
    if 11 <= day % 100 <= 13:
        return f"{day}th"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


def format_date(value: Any) -> str:
    """Long display form of a date value, e.g. "October 17th, 2026".

    Strings are parsed with dateutil; text that is not a date is shown as is.
    """
    if isinstance(value, (date, datetime)):
        parsed = value
    else:
        try:
            parsed = date_parser.parse(str(value))
        except (ValueError, OverflowError):
            return str(value)
    return f"{parsed.strftime('%B')} {_ordinal(parsed.day)}, {parsed.year}"


def _text_value(value: Any) -> Any:
    return "" if value is None else value


def build_control(form_field: FormField, value: Any, error: Optional[str], disabled: bool) -> Control:
    """Build the control for one field from its type and current value."""
    kind_and_type = CONTROL_KINDS.get(form_field.type)
    invalid = error is not None

    if kind_and_type is None:
        field_type = getattr(form_field.type, "value", form_field.type)
        return Control(
            kind="unsupported",
            display_text=f"Unsupported field type: {field_type}",
            disabled=True,
        )

    kind, input_type = kind_and_type
    common: Dict[str, Any] = {
        "kind": kind,
        "input_type": input_type,
        "placeholder": form_field.placeholder,
        "disabled": disabled,
        "invalid": invalid,
    }

    if form_field.type in (FieldType.SELECT, FieldType.RADIO):
        options = [
            ControlOption(
                id=f"{form_field.id}-{o.value}",
                value=o.value,
                label=o.label,
                selected=strict_equals(o.value, value),
            )
            for o in form_field.options
        ]
        return Control(value=_text_value(value), options=options, **common)

    if form_field.type == FieldType.MULTISELECT:
        chosen = value if isinstance(value, (list, tuple)) else []
        options = [
            ControlOption(
                id=f"{form_field.id}-{o.value}",
                value=o.value,
                label=o.label,
                selected=any(strict_equals(item, o.value) for item in chosen),
            )
            for o in form_field.options
        ]
        return Control(value=list(chosen), options=options, **common)

    if form_field.type == FieldType.SWITCH:
        return Control(value=value is True, display_text="Yes" if value is True else "No", **common)

    if form_field.type == FieldType.DATE:
        if value:
            display = format_date(value)
        else:
            display = form_field.placeholder or "Pick a date"
        return Control(value=value or None, display_text=display, **common)

    if form_field.type == FieldType.FILE:
        files = value if isinstance(value, (list, tuple)) else []
        display = f"{len(files)} file(s) selected" if files else None
        return Control(value=list(files), display_text=display, multiple=form_field.multiple, **common)

    if form_field.type == FieldType.TEXTAREA:
        return Control(value=_text_value(value), rows=TEXTAREA_ROWS, **common)

    return Control(value=_text_value(value), **common)


def render_field(
    form_field: FormField,
    values: FormValues,
    errors: FormErrors,
    is_loading: bool = False,
) -> Optional[RenderedField]:
    """Render one field, or return None if it is hidden by its conditional rule."""
    if not is_visible(form_field, values):
        return None

    value = values[form_field.name] if form_field.name in values else form_field.default_value
    error = errors.get(form_field.name)
    control = build_control(form_field, value, error, disabled=form_field.read_only or is_loading)
    return RenderedField(
        id=form_field.id,
        name=form_field.name,
        label=form_field.label,
        required=form_field.required,
        width_class=form_field.width_class,
        control=control,
        help_text=form_field.help_text,
        error=error,
    )


def render_form(
    metadata: FormMetadata,
    values: FormValues,
    errors: Optional[FormErrors] = None,
    collapsed: Optional[Mapping[str, bool]] = None,
    is_loading: bool = False,
    can_save_draft: bool = False,
) -> RenderedForm:
    """Render a form's metadata and session state into a RenderedForm.

    Args:
        metadata: The form to render
        values: Current form values
        errors: Current error map
        collapsed: Section ID to collapsed flag; defaults to each section's ``collapsed``
        is_loading: Disable all controls and actions while the caller is busy
        can_save_draft: Include the "Save Draft" action

    Returns:
        RenderedForm with sections, fields and actions
    """
    errors = errors or {}
    collapsed = collapsed if collapsed is not None else {s.id: s.collapsed for s in metadata.sections}

    sections: List[RenderedSection] = []
    for section in metadata.sections:
        is_collapsed = bool(collapsed.get(section.id, False))
        rendered_fields: List[RenderedField] = []
        if not is_collapsed:
            for form_field in metadata.fields_for_section(section.id):
                rendered = render_field(form_field, values, errors, is_loading)
                if rendered is not None:
                    rendered_fields.append(rendered)
        sections.append(
            RenderedSection(
                id=section.id,
                title=section.title,
                description=section.description,
                collapsible=section.collapsible,
                collapsed=is_collapsed,
                fields=rendered_fields,
            )
        )

    actions: List[FormAction] = []
    if can_save_draft:
        actions.append(FormAction(name="save_draft", label="Save Draft", disabled=is_loading))
    actions.append(FormAction(name="submit", label="Submit", disabled=is_loading, busy=is_loading))

    return RenderedForm(
        form_id=metadata.id,
        title=metadata.title,
        description=metadata.description,
        sections=sections,
        actions=actions,
    )


__all__ = [
    "CONTROL_KINDS",
    "Control",
    "ControlOption",
    "RenderedField",
    "RenderedSection",
    "FormAction",
    "RenderedForm",
    "build_control",
    "format_date",
    "render_field",
    "render_form",
]
