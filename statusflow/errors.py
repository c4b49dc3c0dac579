"""Error types for status transitions and notification delivery.

Exception Hierarchy:
    StatusFlowError (base)
    ├── TransitionRejectedError - Validator refused a status change
    ├── StaleStateError - Entity state changed between read and write
    ├── EntityNotFoundError - No entity with the given id
    ├── EventValidationError - Domain event missing documented fields
    ├── ChannelDeliveryError - A notification channel failed
    ├── QueuePublishError - Durable queue refused or was unreachable
    ├── QueueSignatureError - Worker call not signed by the queue
    └── MalformedJobError - Worker call body is not a delivery job

Only the first three ever reach an end user. Channel, queue and job errors
are operational and are logged, never surfaced to the request that triggered
the notification.
"""

from typing import Any


class StatusFlowError(Exception):
    """Base exception for all statusflow errors.

    Attributes:
        message: Human-readable error message.
        details: Additional error details.
        recoverable: Whether retrying the same operation may succeed.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/API responses."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


class TransitionRejectedError(StatusFlowError):
    """A requested status change is not allowed.

    Attributes:
        entity_kind: Kind of entity whose state machine rejected the change.
        current_state: State the entity is in.
        requested_state: State that was requested.
        reason: Rejection reason value (unknown_state, illegal_transition).
        allowed_next: States the entity may move to from current_state.
    """

    status_code = 400

    def __init__(
        self,
        *,
        entity_kind: str,
        current_state: str,
        requested_state: str,
        reason: str,
        allowed_next: tuple[str, ...] = (),
    ) -> None:
        super().__init__(
            f"Cannot transition {entity_kind} from '{current_state}' to '{requested_state}'",
            details={
                "entity_kind": entity_kind,
                "current_state": current_state,
                "requested_state": requested_state,
                "reason": reason,
                "allowed_next": list(allowed_next),
            },
        )
        self.entity_kind = entity_kind
        self.current_state = current_state
        self.requested_state = requested_state
        self.reason = reason
        self.allowed_next = allowed_next


class StaleStateError(StatusFlowError):
    """The entity's stored state changed after it was validated against."""

    status_code = 409

    def __init__(self, *, entity_kind: str, entity_id: str, expected_state: str) -> None:
        super().__init__(
            f"{entity_kind} {entity_id} is no longer in state '{expected_state}'",
            details={
                "entity_kind": entity_kind,
                "entity_id": entity_id,
                "expected_state": expected_state,
            },
            recoverable=True,
        )
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        self.expected_state = expected_state


class EntityNotFoundError(StatusFlowError):
    """No entity of the given kind and id exists for the tenant."""

    status_code = 404

    def __init__(self, *, entity_kind: str, entity_id: str) -> None:
        super().__init__(
            f"{entity_kind} {entity_id} not found",
            details={"entity_kind": entity_kind, "entity_id": entity_id},
        )


class EventValidationError(StatusFlowError):
    """A domain event is missing fields documented as required for its type."""

    status_code = 422

    def __init__(self, event_type: str, missing: list[str]) -> None:
        super().__init__(
            f"Event '{event_type}' is missing required fields: {', '.join(missing)}",
            details={"event_type": event_type, "missing": missing},
        )
        self.event_type = event_type
        self.missing = missing


class ChannelDeliveryError(StatusFlowError):
    """A notification channel failed to deliver an event."""

    def __init__(self, channel: str, message: str) -> None:
        super().__init__(message, details={"channel": channel}, recoverable=True)
        self.channel = channel


class QueuePublishError(StatusFlowError):
    """The durable queue rejected or did not acknowledge a job."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(
            message,
            details={"response_status": status_code},
            recoverable=status_code is None or status_code >= 500,
        )
        self.response_status = status_code


class QueueSignatureError(StatusFlowError):
    """A call to the delivery worker did not carry a valid queue signature."""

    status_code = 401


class MalformedJobError(StatusFlowError):
    """A call to the delivery worker did not contain a valid delivery job."""

    status_code = 400
