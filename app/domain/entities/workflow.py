"""Workflow domain entity.

A workflow is a definition: trigger (entity type, trigger type, optional
status filters and conditions) and an ordered list of action steps. Steps
are a closed set of variants (send_sms, send_email, wait, branch) parsed
from their stored JSON form.
"""

from dataclasses import dataclass, field
from typing import Any

from app.domain.entities.tracked import is_valid_condition_field, validate_entity_type
from app.domain.exceptions import UnknownStepTypeException, ValidationException
from app.shared.enums import ConditionOperator, StepType, TriggerType

_WAIT_UNIT_SECONDS: dict[str, int] = {
    "seconds": 1,
    "minutes": 60,
    "hours": 3600,
    "days": 86400,
}

DEFAULT_SMS_RECIPIENT = "{{client.phone}}"
DEFAULT_EMAIL_RECIPIENT = "{{client.email}}"


@dataclass(frozen=True)
class Condition:
    """Single predicate over trigger data: field path, operator, value."""

    field: str
    operator: ConditionOperator
    value: Any = None

    @classmethod
    def from_dict(cls, raw: Any) -> "Condition":
        """Build from {field, operator, value}. Raises ValidationException when malformed."""
        if not isinstance(raw, dict):
            raise ValidationException("Condition must be an object", field="condition")
        path = raw.get("field")
        if not isinstance(path, str) or not path:
            raise ValidationException("Condition field is required", field="field")
        try:
            operator = ConditionOperator(raw.get("operator"))
        except ValueError:
            raise ValidationException(
                f"Unsupported condition operator: {raw.get('operator')!r}",
                field="operator",
            ) from None
        return cls(field=path, operator=operator, value=raw.get("value"))

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "operator": self.operator.value, "value": self.value}


def parse_conditions(raw: Any) -> list[Condition]:
    """Parse one condition object or a list of them (conjunctive)."""
    if raw is None:
        return []
    items = raw if isinstance(raw, list) else [raw]
    return [Condition.from_dict(item) for item in items]


@dataclass(frozen=True)
class SendSmsStep:
    id: str
    message: str
    to: str = DEFAULT_SMS_RECIPIENT
    continue_on_error: bool = False
    type: StepType = StepType.SEND_SMS


@dataclass(frozen=True)
class SendEmailStep:
    id: str
    subject: str
    body: str
    to: str = DEFAULT_EMAIL_RECIPIENT
    continue_on_error: bool = False
    type: StepType = StepType.SEND_EMAIL


@dataclass(frozen=True)
class WaitStep:
    id: str
    duration_seconds: float
    continue_on_error: bool = False
    type: StepType = StepType.WAIT


@dataclass(frozen=True)
class BranchStep:
    """Runs then_steps when every condition holds, else_steps otherwise."""

    id: str
    conditions: tuple[Condition, ...]
    then_steps: tuple["ActionStep", ...] = ()
    else_steps: tuple["ActionStep", ...] = ()
    continue_on_error: bool = False
    type: StepType = StepType.BRANCH


ActionStep = SendSmsStep | SendEmailStep | WaitStep | BranchStep


def _wait_seconds(raw: dict[str, Any], step_id: str) -> float:
    if raw.get("duration_seconds") is not None:
        seconds = raw["duration_seconds"]
    else:
        duration = raw.get("duration")
        if not isinstance(duration, dict):
            raise ValidationException(
                f"Wait step {step_id} needs duration_seconds or duration {{value, unit}}",
                field="duration",
            )
        unit = duration.get("unit", "seconds")
        if unit not in _WAIT_UNIT_SECONDS:
            raise ValidationException(
                f"Unsupported wait unit: {unit!r}", field="duration.unit"
            )
        value = duration.get("value")
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            raise ValidationException(
                "Wait duration value must be a number", field="duration.value"
            )
        seconds = value * _WAIT_UNIT_SECONDS[unit]
    if not isinstance(seconds, (int, float)) or isinstance(seconds, bool) or seconds < 0:
        raise ValidationException(
            "Wait duration must be a non-negative number", field="duration_seconds"
        )
    return float(seconds)


def _step_id(raw: dict[str, Any], index: int | None) -> str:
    step_id = raw.get("id")
    if step_id:
        return str(step_id)
    return f"step-{index}" if index is not None else "step"


def parse_step(raw: Any, index: int | None = None) -> ActionStep:
    """Parse stored step JSON into its variant.

    Raises:
        UnknownStepTypeException: type is missing or not a known variant.
        ValidationException: required fields of the variant are missing.
    """
    if not isinstance(raw, dict):
        raise ValidationException("Step must be an object", field="steps")
    step_id = _step_id(raw, index)
    try:
        step_type = StepType(raw.get("type"))
    except ValueError:
        raise UnknownStepTypeException(raw.get("type"), step_id) from None
    continue_on_error = bool(raw.get("continue_on_error", False))

    if step_type == StepType.SEND_SMS:
        message = raw.get("message")
        if not isinstance(message, str) or not message:
            raise ValidationException(
                f"send_sms step {step_id} requires message", field="message"
            )
        return SendSmsStep(
            id=step_id,
            message=message,
            to=raw.get("to") or DEFAULT_SMS_RECIPIENT,
            continue_on_error=continue_on_error,
        )
    if step_type == StepType.SEND_EMAIL:
        subject = raw.get("subject")
        body = raw.get("body")
        if not isinstance(subject, str) or not isinstance(body, str):
            raise ValidationException(
                f"send_email step {step_id} requires subject and body", field="body"
            )
        return SendEmailStep(
            id=step_id,
            subject=subject,
            body=body,
            to=raw.get("to") or DEFAULT_EMAIL_RECIPIENT,
            continue_on_error=continue_on_error,
        )
    if step_type == StepType.WAIT:
        return WaitStep(
            id=step_id,
            duration_seconds=_wait_seconds(raw, step_id),
            continue_on_error=continue_on_error,
        )
    conditions = parse_conditions(raw.get("condition"))
    if not conditions:
        raise ValidationException(
            f"branch step {step_id} requires a condition", field="condition"
        )
    return BranchStep(
        id=step_id,
        conditions=tuple(conditions),
        then_steps=tuple(parse_steps(raw.get("then") or [], prefix=f"{step_id}.then")),
        else_steps=tuple(parse_steps(raw.get("else") or [], prefix=f"{step_id}.else")),
        continue_on_error=continue_on_error,
    )


def parse_steps(raw: list[Any], prefix: str | None = None) -> list[ActionStep]:
    """Parse a list of stored steps; ids default to their position."""
    steps: list[ActionStep] = []
    for i, item in enumerate(raw):
        if prefix and isinstance(item, dict) and not item.get("id"):
            item = {**item, "id": f"{prefix}.{i}"}
        steps.append(parse_step(item, i))
    return steps


@dataclass
class WorkflowEntity:
    """Domain entity for a workflow definition (trigger + steps)."""

    id: str
    name: str
    entity_type: str
    trigger_type: TriggerType
    steps: list[dict[str, Any]]
    trigger_conditions: list[dict[str, Any]] = field(default_factory=list)
    from_status: str | None = None
    to_status: str | None = None
    is_active: bool = True
    description: str | None = None

    def can_trigger_on(self, entity_type: str, trigger_type: TriggerType) -> bool:
        """Return whether this workflow is active and listens for the trigger."""
        return (
            self.is_active
            and self.entity_type == entity_type
            and self.trigger_type == trigger_type
        )

    def validate(self) -> None:
        """Check definition invariants. Raises ValidationException.

        - entity_type is tracked.
        - status triggers carry the status filters they need.
        - an active workflow has at least one step; every step parses.
        - every trigger condition field is addressable for entity_type
          (branch predicates are checked at run time; unresolved ones are false).
        """
        validate_entity_type(self.entity_type)
        needs_to = self.trigger_type in (
            TriggerType.STATUS_CHANGED_TO,
            TriggerType.STATUS_TRANSITION,
        )
        needs_from = self.trigger_type in (
            TriggerType.STATUS_CHANGED_FROM,
            TriggerType.STATUS_TRANSITION,
        )
        if needs_to and not self.to_status:
            raise ValidationException(
                f"{self.trigger_type.value} requires to_status", field="to_status"
            )
        if needs_from and not self.from_status:
            raise ValidationException(
                f"{self.trigger_type.value} requires from_status", field="from_status"
            )
        if self.is_active and not self.steps:
            raise ValidationException(
                "An active workflow needs at least one step", field="steps"
            )
        try:
            parse_steps(self.steps)
        except UnknownStepTypeException as e:
            raise ValidationException(e.message, field="steps") from e
        for condition in parse_conditions(self.trigger_conditions):
            if not is_valid_condition_field(self.entity_type, condition.field):
                raise ValidationException(
                    f"Condition field '{condition.field}' is not valid for "
                    f"entity type '{self.entity_type}'",
                    field="trigger_conditions",
                )
