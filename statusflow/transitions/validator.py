"""Status transition validation.

``validate`` is a pure lookup against an injected ``TransitionTable``. It
never touches storage and never raises for a rejected change; callers decide
how to surface the result (see ``TransitionResult.raise_for_rejection``).

Policy:
- A state moving to itself is rejected unless the table lists it as its own
  successor. Callers that want "set the same status again" to be a no-op must
  check for it before calling ``validate``.
- Tables are per entity kind; "completed" may have different successors for
  different kinds.
"""

from dataclasses import dataclass
from enum import Enum

from statusflow.errors import TransitionRejectedError
from statusflow.transitions.machines import EntityKind, TransitionTable, kind_key


class RejectionReason(str, Enum):
    """Why a transition was rejected."""

    UNKNOWN_STATE = "unknown_state"
    ILLEGAL_TRANSITION = "illegal_transition"


@dataclass(frozen=True)
class TransitionRequest:
    """A requested status change for one entity.

    ``current_state`` must be read from the system of record immediately
    before validation.
    """

    entity_kind: str
    current_state: str
    requested_state: str


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of validating a TransitionRequest.

    Attributes:
        request: The validated request.
        allowed: True when the change is legal.
        reason: Rejection reason, None when allowed.
        allowed_next: Sorted states reachable from the current state.
    """

    request: TransitionRequest
    allowed: bool
    reason: RejectionReason | None = None
    allowed_next: tuple[str, ...] = ()

    @property
    def rejected(self) -> bool:
        return not self.allowed

    @property
    def message(self) -> str | None:
        """Client-facing rejection message, None when allowed."""
        if self.allowed:
            return None
        req = self.request
        if self.reason is RejectionReason.UNKNOWN_STATE:
            return f"Unknown {req.entity_kind} status '{req.current_state}'"
        return f"Cannot transition from '{req.current_state}' to '{req.requested_state}'"

    def raise_for_rejection(self) -> None:
        """Raise TransitionRejectedError if the transition was rejected."""
        if self.allowed:
            return
        assert self.reason is not None
        raise TransitionRejectedError(
            entity_kind=self.request.entity_kind,
            current_state=self.request.current_state,
            requested_state=self.request.requested_state,
            reason=self.reason.value,
            allowed_next=self.allowed_next,
        )


def allowed_next_states(
    table: TransitionTable,
    entity_kind: EntityKind | str,
    current_state: str,
) -> tuple[str, ...]:
    """List the states an entity may move to next.

    Args:
        table: Transition table to consult.
        entity_kind: Entity kind.
        current_state: State the entity is in.

    Returns:
        Sorted tuple of next states; empty for terminal or unknown states.
    """
    machine = table.machine(entity_kind)
    if machine is None:
        return ()
    return tuple(sorted(machine.get(current_state, frozenset())))


def validate(
    table: TransitionTable,
    entity_kind: EntityKind | str,
    current_state: str,
    requested_state: str,
) -> TransitionResult:
    """Check whether a status change is legal.

    Args:
        table: Transition table to consult.
        entity_kind: Entity kind whose state machine applies.
        current_state: State read from the system of record.
        requested_state: State the caller wants to move to.

    Returns:
        TransitionResult; rejected with UNKNOWN_STATE when current_state is
        not a key of the kind's machine, ILLEGAL_TRANSITION when
        requested_state is not among its successors.
    """
    request = TransitionRequest(
        entity_kind=kind_key(entity_kind),
        current_state=current_state,
        requested_state=requested_state,
    )

    machine = table.machine(entity_kind)
    if machine is None or current_state not in machine:
        return TransitionResult(
            request=request,
            allowed=False,
            reason=RejectionReason.UNKNOWN_STATE,
        )

    successors = machine[current_state]
    allowed_next = tuple(sorted(successors))

    if requested_state not in successors:
        return TransitionResult(
            request=request,
            allowed=False,
            reason=RejectionReason.ILLEGAL_TRANSITION,
            allowed_next=allowed_next,
        )

    return TransitionResult(request=request, allowed=True, allowed_next=allowed_next)
