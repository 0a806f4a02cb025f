"""
Engine-wide exception hierarchy.

Every service raises one of these types and the app factory maps each to a
single HTTP status, so blueprints never translate domain errors by hand.

Usage:
    from qaboard.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Project", resource_id=42)
    raise ValidationError("Title is required", details={"title": "required"})

None of these are fatal: each aborts a single operation and leaves the
session rolled back.
"""

from enum import Enum


class NotFoundError(Exception):
    """Raised when a referenced project, item, task or configuration does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Project", "Task").
        resource_id: The key that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input violates a business rule.

    Covers a missing title, empty required custom fields on a terminal move,
    or a configuration patch that would leave the board invalid. Maps to
    HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DenialReason(str, Enum):
    INVALID_ROLE = "invalid_role"
    PHASE_NOT_AUTHORIZED = "phase_not_authorized"
    REQUIRES_LEADER = "requires_leader"
    REQUIRES_TOP_LEVEL_ROLE = "requires_top_level_role"
    TASK_PERMISSION = "task_permission"


class PermissionDenied(Exception):
    """Raised when the acting role may not perform an action.

    Args:
        reason: Which gate rule denied the action.
        message: User-facing explanation (distinct per reason).
        role: The acting role key.
        phase: Target phase, when the action is phase-scoped.
        action: The requested action key.
    """

    def __init__(
        self,
        reason: DenialReason,
        message: str,
        role: str | None = None,
        phase: str | None = None,
        action: str | None = None,
    ) -> None:
        self.reason = reason
        self.message = message
        self.role = role
        self.phase = phase
        self.action = action
        super().__init__(message)


class ReconciliationFailure(Exception):
    """Raised when the store did not confirm an optimistic task mutation.

    The local board cache has already been rolled back to its snapshot by
    the time this propagates. Maps to HTTP 409.
    """

    def __init__(self, entity: str, entity_id: int | None, cause: Exception | None = None) -> None:
        self.entity = entity
        self.entity_id = entity_id
        self.cause = cause
        msg = f"Could not save {entity}"
        if entity_id is not None:
            msg += f" id={entity_id}"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)
