"""Domain exceptions for the automation engine.

Defines domain-level exceptions that represent business rule violations.
These exceptions are independent of infrastructure concerns. Presentation
layer maps them to HTTP responses in exception handlers.
"""

from typing import Any


class AutomationException(Exception):
    """Base exception for all automation engine errors.

    All custom exceptions should inherit from this class to allow
    consistent error handling and logging. Presentation layer maps
    these to HTTP responses using message, error_code, and details.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. field, resource_id).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Return the error body used by the HTTP exception handler."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(AutomationException):
    """Raised when input validation fails (e.g. invalid format or range)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize with message and optional field name.

        Args:
            message: Description of the validation failure.
            field: Optional field or attribute that failed validation.
        """
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class ResourceNotFoundException(AutomationException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        """Initialize with resource type and id.

        Args:
            resource_type: Type of resource (e.g. 'workflow', 'execution').
            resource_id: The ID that was not found.
        """
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            "RESOURCE_NOT_FOUND",
            {"resource_type": resource_type, "resource_id": resource_id},
        )


class IllegalTransitionException(AutomationException):
    """Raised when an execution status change is not an edge of the lifecycle."""

    def __init__(self, from_status: str, to_status: str) -> None:
        super().__init__(
            f"Illegal execution transition: {from_status} -> {to_status}",
            "ILLEGAL_TRANSITION",
            {"from_status": from_status, "to_status": to_status},
        )


class UnknownStepTypeException(AutomationException):
    """Raised when a workflow step carries a type the runner cannot interpret."""

    def __init__(self, step_type: Any, step_id: str | None = None) -> None:
        super().__init__(
            f"Unknown step type: {step_type}",
            "UNKNOWN_STEP_TYPE",
            {"step_type": str(step_type), "step_id": step_id},
        )


class MissingRecipientException(AutomationException):
    """Raised when a send step's recipient template resolves to nothing usable."""

    def __init__(self, step_id: str, template: str) -> None:
        """Initialize with the step and its unresolved recipient template.

        Args:
            step_id: Step whose recipient is missing.
            template: The raw recipient template (e.g. '{{client.phone}}').
        """
        super().__init__(
            f"No recipient for step {step_id} (template {template!r})",
            "MISSING_RECIPIENT",
            {"step_id": step_id, "template": template},
        )


class SenderException(AutomationException):
    """Raised when an SMS or email provider rejects or fails a send."""

    def __init__(
        self, channel: str, reason: str, status_code: int | None = None
    ) -> None:
        details: dict[str, Any] = {"channel": channel, "reason": reason}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(f"{channel} send failed: {reason}", "SENDER_ERROR", details)


class SqlNotConfiguredException(AutomationException):
    """Raised when an operation requires the SQL database but it is not configured."""

    def __init__(self) -> None:
        super().__init__(
            message="This operation requires a SQL database that is not configured.",
            error_code="SERVICE_UNAVAILABLE",
        )
