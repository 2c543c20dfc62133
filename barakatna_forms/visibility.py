"""Conditional field visibility.

A field with a ``conditional`` rule is only shown, and only validated, while
the rule is satisfied by the current form values. Collapsing a section does
not affect visibility.

Operator truth table, for ``source = values[conditional.field]``:

    equals       source strictly equals conditional.value
    notEquals    source does not strictly equal conditional.value
    includes     source is a list containing conditional.value
    notIncludes  source is not a list, or is a list without conditional.value

``notIncludes`` is satisfied when the source field was never set. Metadata
that relies on it to hide a field until a choice is made will show the field
instead.
"""

import logging
from typing import Set

from barakatna_forms.conditions import strict_equals
from barakatna_forms.metadata import ConditionalRule, FormField
from barakatna_forms.types import ConditionalOperator, FormValues

logger = logging.getLogger(__name__)

_warned_operators: Set[str] = set()


def _contains(items: list, value) -> bool:
    return any(strict_equals(item, value) for item in items)


def condition_met(conditional: ConditionalRule, values: FormValues) -> bool:
    """Evaluate a conditional rule against form values.

    Unknown operators are never satisfied.
    """
    source = values.get(conditional.field)
    operator = conditional.operator

    if operator == ConditionalOperator.EQUALS:
        return strict_equals(source, conditional.value)
    if operator == ConditionalOperator.NOT_EQUALS:
        return not strict_equals(source, conditional.value)
    if operator == ConditionalOperator.INCLUDES:
        return isinstance(source, (list, tuple)) and _contains(list(source), conditional.value)
    if operator == ConditionalOperator.NOT_INCLUDES:
        return not isinstance(source, (list, tuple)) or not _contains(list(source), conditional.value)

    key = str(getattr(operator, "value", operator))
    if key not in _warned_operators:
        _warned_operators.add(key)
        logger.warning(
            "Unknown conditional operator %r on field '%s'; the field will be hidden",
            key,
            conditional.field,
        )
    return False


def is_visible(field: FormField, values: FormValues) -> bool:
    """Whether a field is shown (and validated) for the given values.

    Examples:
        >>> from barakatna_forms.metadata import FormField
        >>> f = FormField.from_dict({
        ...     "id": "b", "name": "B", "type": "text",
        ...     "conditional": {"field": "A", "operator": "equals", "value": "yes"},
        ... })
        >>> is_visible(f, {"A": "no"})
        False
        >>> is_visible(f, {"A": "yes"})
        True
    """
    if field.conditional is None:
        return True
    return condition_met(field.conditional, values)


__all__ = [
    "condition_met",
    "is_visible",
]
