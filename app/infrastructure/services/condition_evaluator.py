"""Condition evaluation for trigger filters and branch predicates.

A condition list is conjunctive. Anything that cannot be evaluated (a
malformed condition, an unresolved field, a non-numeric comparison) is a
non-match; evaluation never raises.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from app.domain.entities.workflow import Condition, parse_conditions
from app.domain.exceptions import ValidationException
from app.infrastructure.services.template_renderer import MISSING, resolve_path
from app.shared.enums import ConditionOperator
from app.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _is_empty(value: Any) -> bool:
    if value is MISSING or value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def values_equal(actual: Any, expected: Any) -> bool:
    """Equality with numeric coercion ("250" equals 250) and str fallback."""
    if actual == expected:
        return True
    a, b = _as_number(actual), _as_number(expected)
    if a is not None and b is not None:
        return a == b
    if isinstance(actual, str) != isinstance(expected, str):
        if isinstance(actual, (dict, list)) or isinstance(expected, (dict, list)):
            return False
        return _to_str(actual) == _to_str(expected)
    return False


def _to_str(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def evaluate_condition(condition: Condition, data: Mapping[str, Any]) -> bool:
    """Evaluate one condition against data (trigger data or execution context)."""
    actual = resolve_path(data, condition.field)
    op = condition.operator
    expected = condition.value

    if op == ConditionOperator.IS_EMPTY:
        return _is_empty(actual)
    if op == ConditionOperator.IS_NOT_EMPTY:
        return not _is_empty(actual)
    if actual is MISSING:
        return False
    if op == ConditionOperator.EQUALS:
        return values_equal(actual, expected)
    if op == ConditionOperator.NOT_EQUALS:
        return not values_equal(actual, expected)
    if op == ConditionOperator.CONTAINS:
        if isinstance(actual, str):
            return expected is not None and _to_str(expected) in actual
        if isinstance(actual, (list, tuple)):
            return any(values_equal(item, expected) for item in actual)
        return False
    if op == ConditionOperator.IN:
        if not isinstance(expected, (list, tuple)):
            return False
        return any(values_equal(actual, item) for item in expected)
    if op in (ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN):
        a, b = _as_number(actual), _as_number(expected)
        if a is None or b is None:
            return False
        return a > b if op == ConditionOperator.GREATER_THAN else a < b
    return False


def evaluate_conditions(
    conditions: Sequence[Condition] | Sequence[dict[str, Any]] | dict[str, Any] | None,
    data: Mapping[str, Any],
) -> bool:
    """True when every condition holds. Empty means match; malformed means non-match."""
    if not conditions:
        return True
    try:
        parsed = (
            list(conditions)
            if isinstance(conditions, Sequence)
            and all(isinstance(c, Condition) for c in conditions)
            else parse_conditions(conditions)
        )
    except ValidationException as e:
        logger.warning("Malformed condition treated as non-match: %s", e.message)
        return False
    return all(evaluate_condition(c, data) for c in parsed)
