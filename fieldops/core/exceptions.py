"""
Workflow exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere (see utils/errors.py).

Usage:
    from fieldops.core.exceptions import Forbidden, IllegalTransition

    raise IllegalTransition("equipment_request", "fulfilled", "approved")
    raise InvalidPayload("Invalid cycle count", details={"lines[0].recorded_qty": "must be >= 0"})
"""


class WorkflowError(Exception):
    """Base class for every error raised by the workflow core."""


class NotFoundError(WorkflowError):
    """Raised when a requested item or record does not exist.

    Args:
        resource: Human-readable entity name (e.g. "equipment_request").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class Forbidden(WorkflowError):
    """Actor lacks the capability or the area/hub scope for the action.

    Maps to HTTP 403.
    """


class IllegalTransition(WorkflowError):
    """No transition-table row exists for (current status, event type).

    Maps to HTTP 409.
    """

    def __init__(self, family: str, status: str | None, event_type: str) -> None:
        self.family = family
        self.status = status
        self.event_type = event_type
        super().__init__(f"{family}: '{event_type}' is not allowed from status '{status}'")


class InvalidPayload(WorkflowError):
    """Raised when the transition payload fails family validation.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Field-level breakdown. Keys are field names; values are
                 error descriptions.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class Conflict(WorkflowError):
    """The item's status changed between read and write (lost CAS race).

    Maps to HTTP 409.
    """

    def __init__(self, family: str, item_id: str, expected_status: str | None) -> None:
        self.family = family
        self.item_id = item_id
        self.expected_status = expected_status
        super().__init__(
            f"{family} {item_id} is no longer in status '{expected_status}'"
        )


class UnconfiguredArea(WorkflowError):
    """An operating area referenced by an item has no hub binding.

    This is a configuration error, not a user error. Maps to HTTP 500.
    """

    def __init__(self, ops_area: str) -> None:
        self.ops_area = ops_area
        super().__init__(f"Operating area '{ops_area}' has no hub binding")
