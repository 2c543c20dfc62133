"""Submission state machine for form sessions.

A form session is either being edited or handing its values to the submit
collaborator:

    editing --submit (values valid)--> submitting --handoff done--> editing

A submit with invalid values never leaves ``editing``. The machine only
enforces the transition table; FormSession decides when to move.

Usage:
    >>> sm = FormStateMachine(form_id="case_creation")
    >>> sm.state
    <FormState.EDITING: 'editing'>
    >>> sm.transition_to(FormState.SUBMITTING)
    >>> sm.can_transition_to(FormState.SUBMITTING)
    False
"""

from dataclasses import dataclass
from typing import Any, Dict, Set

from barakatna_forms.types import FormState


class InvalidStateTransitionError(Exception):
    """Raised when attempting an invalid state transition.

    Attributes:
        current_state: The current state before the attempted transition
        target_state: The target state that was attempted
    """

    def __init__(self, current_state: FormState, target_state: FormState, message: str):
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(message)


# Maps each state to the set of states it can transition to
VALID_TRANSITIONS: Dict[FormState, Set[FormState]] = {
    FormState.EDITING: {FormState.SUBMITTING},
    FormState.SUBMITTING: {FormState.EDITING},
}


@dataclass
class FormStateMachine:
    """Tracks and guards the submission state of one form session.

    Attributes:
        form_id: ID of the form being edited
        state: Current state
    """

    form_id: str
    state: FormState = FormState.EDITING

    def can_transition_to(self, target_state: FormState) -> bool:
        """Check if transition to target state is valid."""
        return target_state in VALID_TRANSITIONS.get(self.state, set())

    def transition_to(self, target_state: FormState) -> None:
        """Transition to a new state.

        Raises:
            InvalidStateTransitionError: If the transition is not allowed
        """
        if not self.can_transition_to(target_state):
            allowed = ", ".join(sorted(s.value for s in VALID_TRANSITIONS[self.state]))
            raise InvalidStateTransitionError(
                current_state=self.state,
                target_state=target_state,
                message=(
                    f"Invalid state transition for form '{self.form_id}': cannot transition "
                    f"from '{self.state.value}' to '{target_state.value}'. "
                    f"Valid transitions from '{self.state.value}' are: {allowed}"
                ),
            )
        self.state = target_state

    @property
    def is_submitting(self) -> bool:
        return self.state == FormState.SUBMITTING

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the state machine to a dictionary.

        Examples:
            >>> FormStateMachine(form_id="f1").to_dict()
            {'formId': 'f1', 'state': 'editing'}
        """
        return {"formId": self.form_id, "state": self.state.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormStateMachine":
        """Deserialize a state machine from a dictionary."""
        state = data["state"]
        if isinstance(state, str):
            state = FormState(state)
        return cls(form_id=data["formId"], state=state)


__all__ = [
    "FormStateMachine",
    "InvalidStateTransitionError",
    "VALID_TRANSITIONS",
]
