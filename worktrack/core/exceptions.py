"""
Service-layer exception hierarchy.

Every manager in ``worktrack.services`` raises one of these four types and
nothing else for expected failures. Blueprints register handlers against them
once (see ``worktrack.utils.errors.register_error_handlers``) and get
consistent HTTP status codes everywhere.

Usage:
    from worktrack.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Job", resource_id=job_id)
    raise ValidationError("title is required", details={"title": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested entity does not exist for the calling owner.

    Used for BOTH genuinely missing records AND rows owned by a different
    identity. The two cases are intentionally indistinguishable so existence
    never leaks across owners.

    Args:
        resource: Entity name (e.g. "Job", "Task").
        resource_id: The id that was looked up.
        owner_id: Optional scope that was enforced. For debug logging only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: str | None = None,
        owner_id: str | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.owner_id = owner_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is well-formed but violates a business rule.

    Covers missing required fields, foreign ids that do not resolve for the
    owner, and values outside their declared domain.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown; keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised on a uniqueness violation or a lost concurrent-write race.

    The store has been rolled back when this propagates; the caller may
    retry the whole operation.

    Maps to HTTP 409.

    Args:
        resource: Entity name.
        field: The field whose write conflicted.
        value: The conflicting value, if known.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} {field} conflict"
        if value is not None:
            msg += f" (value={value!r})"
        super().__init__(msg)


class StoreError(Exception):
    """Raised when the entity store is unreachable or fails unexpectedly.

    Fatal to the current operation; never retried by the services.

    Maps to HTTP 503.
    """

    def __init__(self, message: str, operation: str | None = None) -> None:
        self.operation = operation
        super().__init__(message)
