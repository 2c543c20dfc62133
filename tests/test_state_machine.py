"""Unit tests for the submission state machine.

Tests cover:
- State machine initialization
- Valid and invalid transitions
- Serialization and deserialization
"""

import pytest

from barakatna_forms.state_machine import (
    InvalidStateTransitionError,
    FormStateMachine,
    VALID_TRANSITIONS,
)
from barakatna_forms.types import FormState


class TestStateMachineInitialization:
    """Test state machine initialization and defaults."""

    def test_init_with_form_id(self):
        """Should initialize with form_id and default to EDITING state."""
        sm = FormStateMachine(form_id="home_assessment")
        assert sm.form_id == "home_assessment"
        assert sm.state == FormState.EDITING
        assert sm.is_submitting is False

    def test_init_with_custom_state(self):
        """Should initialize with custom state if provided."""
        sm = FormStateMachine(form_id="home_assessment", state=FormState.SUBMITTING)
        assert sm.is_submitting is True


class TestTransitions:
    """Test the transition table."""

    def test_every_state_has_transitions(self):
        """Should define transitions for every state."""
        assert set(VALID_TRANSITIONS) == set(FormState)

    def test_editing_to_submitting_and_back(self):
        """Should move editing -> submitting -> editing."""
        sm = FormStateMachine(form_id="f1")
        sm.transition_to(FormState.SUBMITTING)
        assert sm.state == FormState.SUBMITTING
        sm.transition_to(FormState.EDITING)
        assert sm.state == FormState.EDITING

    def test_can_transition_to(self):
        """Should report allowed transitions without changing state."""
        sm = FormStateMachine(form_id="f1")
        assert sm.can_transition_to(FormState.SUBMITTING) is True
        assert sm.can_transition_to(FormState.EDITING) is False
        assert sm.state == FormState.EDITING

    def test_double_submit_rejected(self):
        """Should reject submitting while already submitting."""
        sm = FormStateMachine(form_id="f1", state=FormState.SUBMITTING)
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            sm.transition_to(FormState.SUBMITTING)
        error = exc_info.value
        assert error.current_state == FormState.SUBMITTING
        assert error.target_state == FormState.SUBMITTING
        assert "'f1'" in str(error)
        assert "Valid transitions from 'submitting' are: editing" in str(error)
        assert sm.state == FormState.SUBMITTING

    def test_editing_to_editing_rejected(self):
        """Should reject a self-transition while editing."""
        sm = FormStateMachine(form_id="f1")
        with pytest.raises(InvalidStateTransitionError):
            sm.transition_to(FormState.EDITING)


class TestSerialization:
    """Test to_dict and from_dict."""

    def test_to_dict(self):
        """Should serialize with camelCase keys and string state."""
        sm = FormStateMachine(form_id="f1", state=FormState.SUBMITTING)
        assert sm.to_dict() == {"formId": "f1", "state": "submitting"}

    def test_from_dict_with_string_state(self):
        """Should deserialize string states to enum members."""
        sm = FormStateMachine.from_dict({"formId": "f2", "state": "submitting"})
        assert sm.form_id == "f2"
        assert sm.state == FormState.SUBMITTING

    def test_from_dict_with_enum_state(self):
        """Should accept enum states as-is."""
        sm = FormStateMachine.from_dict({"formId": "f3", "state": FormState.EDITING})
        assert sm.state == FormState.EDITING

    def test_round_trip(self):
        """Should restore an equal machine from its dict."""
        sm = FormStateMachine(form_id="f4", state=FormState.SUBMITTING)
        assert FormStateMachine.from_dict(sm.to_dict()) == sm

    def test_from_dict_rejects_unknown_state(self):
        """Should reject states outside FormState."""
        with pytest.raises(ValueError):
            FormStateMachine.from_dict({"formId": "f5", "state": "approved"})
