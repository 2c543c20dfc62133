"""Form sessions: one user filling in one form.

FormSession owns the only mutable state of the engine: the value map, the
error map and the collapsed flags of sections. It wires together visibility,
validation and rendering, and hands the values to the injected ``on_submit``
and ``on_save_draft`` collaborators.

Everything runs synchronously on the caller's thread. The session does not
await, retry, time out or cancel collaborator calls; whatever they return
(including an awaitable) is handed back to the caller.

Usage:
    >>> from barakatna_forms.metadata import FormMetadata
    >>> form = FormMetadata.from_dict({
    ...     "id": "contact", "title": "Contact",
    ...     "sections": [{"id": "main", "title": "Main"}],
    ...     "fields": [{"id": "email", "name": "email", "type": "email", "section": "main",
    ...                 "validation": [{"type": "required"}, {"type": "email"}]}],
    ... })
    >>> submitted = []
    >>> session = FormSession(form, on_submit=submitted.append)
    >>> session.submit().submitted
    False
    >>> session.errors
    {'email': 'This field is required'}
    >>> session.set_value("email", "ana@example.org")
    >>> session.errors
    {}
    >>> session.submit().submitted
    True
    >>> submitted
    [{'email': 'ana@example.org'}]
"""

import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from barakatna_forms.conditions import strict_equals
from barakatna_forms.config import DEFAULT_SETTINGS, EngineSettings
from barakatna_forms.errors import FormConfigurationError, MetadataError
from barakatna_forms.events import EventEmitter, FormEvent
from barakatna_forms.metadata import FormField, FormMetadata, check_references
from barakatna_forms.rendering import RenderedForm, render_form
from barakatna_forms.state_machine import FormStateMachine
from barakatna_forms.types import EventType, FieldType, FormErrors, FormState, FormValues
from barakatna_forms.validation import ValidationEngine, ValidationResult
from barakatna_forms.visibility import is_visible

logger = logging.getLogger(__name__)

SubmitHandler = Callable[[FormValues], Any]
"""Collaborator receiving the form values; may return an awaitable."""


@dataclass(frozen=True)
class SubmitResult:
    """Outcome of a submit action.

    Attributes:
        submitted: Whether the values passed validation and were handed off
        errors: Error map after validation (empty when submitted)
        result: Whatever ``on_submit`` returned, for the caller to own
    """
    submitted: bool
    errors: FormErrors = field(default_factory=dict)
    result: Any = None


class FormSession:
    """Editing session for one form.

    Attributes:
        metadata: The form being edited
        on_submit: Collaborator called with the values on a valid submit
        on_save_draft: Optional collaborator called with the values on save draft;
            its presence alone adds the "Save Draft" action
        is_loading: Set by the caller while its collaborator is busy; disables
            controls and actions in the render model
        settings: Engine settings
        emitter: Event emitter receiving this session's events
    """

    def __init__(
        self,
        metadata: FormMetadata,
        on_submit: Optional[SubmitHandler] = None,
        on_save_draft: Optional[SubmitHandler] = None,
        initial_values: Optional[FormValues] = None,
        is_loading: bool = False,
        validate_on_change: Optional[bool] = None,
        settings: Optional[EngineSettings] = None,
        emitter: Optional[EventEmitter] = None,
    ):
        """Load a form into a new session.

        Raises:
            MetadataError: With strict reference settings, if the form has
                broken references; or if a pattern rule does not compile
            ConditionSyntaxError: If a rule condition does not parse
        """
        self.metadata = metadata
        self.on_submit = on_submit
        self.on_save_draft = on_save_draft
        self.is_loading = is_loading
        self.settings = settings or DEFAULT_SETTINGS
        self.validate_on_change = (
            self.settings.validate_on_change if validate_on_change is None else validate_on_change
        )
        self.emitter = emitter or EventEmitter()
        self.session_id = f"fs_{uuid.uuid4().hex[:16]}"

        if self.settings.check_references:
            self._check_references()

        self._engine = ValidationEngine(metadata)
        self._state_machine = FormStateMachine(form_id=metadata.id)
        self._values: FormValues = dict(initial_values or {})
        self._errors: FormErrors = {}
        self._collapsed: Dict[str, bool] = {s.id: s.collapsed for s in metadata.sections}

        self._emit(EventType.FORM_LOADED, {"version": metadata.version})

    def _check_references(self) -> None:
        problems = check_references(self.metadata)
        if not problems:
            return
        if self.settings.strict_references:
            raise MetadataError(
                f"Form '{self.metadata.id}' has {len(problems)} broken reference(s): {problems[0]}",
                form_id=self.metadata.id,
                problems=problems,
            )
        for problem in problems:
            logger.warning("Form '%s': %s", self.metadata.id, problem)

    def _emit(self, event_type: EventType, payload: Optional[Dict[str, Any]] = None) -> None:
        event = FormEvent(
            event_id=f"evt_{uuid.uuid4().hex[:16]}",
            type=event_type,
            form_id=self.metadata.id,
            session_id=self.session_id,
            ts=datetime.now(timezone.utc),
            state=self._state_machine.state,
            payload=payload,
        )
        self.emitter.emit(event)

    @property
    def values(self) -> FormValues:
        """A copy of the current form values."""
        return dict(self._values)

    @property
    def errors(self) -> FormErrors:
        """A copy of the current error map."""
        return dict(self._errors)

    @property
    def state(self) -> FormState:
        return self._state_machine.state

    @property
    def can_save_draft(self) -> bool:
        return self.on_save_draft is not None

    def get_value(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    def set_value(self, name: str, value: Any) -> None:
        """Update one value.

        A recorded error for the field is cleared at once; the field is only
        re-validated here when validate-on-change is enabled.
        """
        self._values[name] = value
        self._errors.pop(name, None)

        if self.validate_on_change:
            form_field = self.metadata.get_field(name)
            if form_field is not None and is_visible(form_field, self._values):
                error = self._engine.validate_field(form_field, self._values)
                if error:
                    self._errors[name] = error

        self._emit(EventType.FIELD_CHANGED, {"field": name})

    def set_input(self, name: str, raw: Any) -> None:
        """Update a value from raw control input, coerced for the field's type.

        NUMBER input becomes a number ("" stays "", text that is not a number
        becomes NaN), DATE input becomes an ISO date string, FILE input
        becomes a list (or None when nothing is chosen).
        """
        form_field = self.metadata.get_field(name)
        self.set_value(name, coerce_input(form_field, raw) if form_field else raw)

    def toggle_option(self, name: str, option_value: Any, checked: bool) -> None:
        """Check or uncheck one choice of a MULTISELECT field."""
        current = self._values.get(name)
        chosen: List[Any] = list(current) if isinstance(current, (list, tuple)) else []
        if checked:
            chosen.append(option_value)
        else:
            chosen = [v for v in chosen if not strict_equals(v, option_value)]
        self.set_value(name, chosen)

    def toggle_section(self, section_id: str) -> bool:
        """Collapse or expand a collapsible section.

        Returns:
            The section's collapsed flag after the call; non-collapsible and
            unknown sections are left unchanged
        """
        section = self.metadata.get_section(section_id)
        if section is None or not section.collapsible:
            return self._collapsed.get(section_id, False)
        self._collapsed[section_id] = not self._collapsed.get(section_id, False)
        self._emit(EventType.SECTION_TOGGLED, {"section": section_id, "collapsed": self._collapsed[section_id]})
        return self._collapsed[section_id]

    def is_collapsed(self, section_id: str) -> bool:
        return self._collapsed.get(section_id, False)

    def visible_fields(self, section_id: Optional[str] = None) -> List[FormField]:
        """Fields currently shown, optionally limited to one section (sorted by order)."""
        if section_id is None:
            candidates = self.metadata.fields
        else:
            candidates = self.metadata.fields_for_section(section_id)
        return [f for f in candidates if is_visible(f, self._values)]

    def validate(self) -> ValidationResult:
        """Validate all visible fields and replace the error map wholesale."""
        result = self._engine.validate(self._values)
        self._errors = dict(result.errors)
        if result.is_valid:
            self._emit(EventType.VALIDATION_PASSED)
        else:
            self._emit(EventType.VALIDATION_FAILED, {"errors": dict(result.errors)})
        return result

    def render(self) -> RenderedForm:
        """Build the render model for the current session state."""
        return render_form(
            self.metadata,
            self._values,
            errors=self._errors,
            collapsed=self._collapsed,
            is_loading=self.is_loading,
            can_save_draft=self.can_save_draft,
        )

    def submit(self) -> SubmitResult:
        """Validate and, if valid, hand the values to ``on_submit``.

        Invalid values leave the session editing with the error map populated;
        the collaborator is not called. A collaborator exception propagates
        unchanged after the session has returned to editing.

        Raises:
            FormConfigurationError: If the session has no ``on_submit``
        """
        if self.on_submit is None:
            raise FormConfigurationError(f"Form '{self.metadata.id}' has no submit handler")

        result = self.validate()
        if not result.is_valid:
            logger.info(
                "Submit of form '%s' blocked by %d validation error(s)",
                self.metadata.id,
                len(result.errors),
            )
            return SubmitResult(submitted=False, errors=dict(result.errors))

        self._state_machine.transition_to(FormState.SUBMITTING)
        try:
            self._emit(EventType.FORM_SUBMITTED, {"fields": sorted(self._values)})
            outcome = self.on_submit(dict(self._values))
        finally:
            self._state_machine.transition_to(FormState.EDITING)
        return SubmitResult(submitted=True, result=outcome)

    def save_draft(self) -> Any:
        """Hand the values to ``on_save_draft`` without validating.

        Returns:
            The collaborator's return value, or None when there is no collaborator
        """
        if self.on_save_draft is None:
            return None
        self._emit(EventType.DRAFT_SAVED, {"fields": sorted(self._values)})
        return self.on_save_draft(dict(self._values))


def coerce_input(form_field: FormField, raw: Any) -> Any:
    """Coerce raw control input to the value stored for a field."""
    if form_field.type == FieldType.NUMBER:
        if raw is None or raw == "":
            return ""
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            return raw
        text = str(raw).strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return math.nan
    if form_field.type == FieldType.DATE:
        if isinstance(raw, datetime):
            return raw.date().isoformat()
        if isinstance(raw, date):
            return raw.isoformat()
        return raw or None
    if form_field.type == FieldType.FILE:
        return list(raw) if raw else None
    return raw


__all__ = [
    "FormSession",
    "SubmitHandler",
    "SubmitResult",
    "coerce_input",
]
