"""Status transition service.

Applies one status change end to end: read the current state, validate it
against the transition table, commit with a conditional write, then notify.
The conditional write closes the window between read and write, so two
concurrent requests cannot both move an entity out of the same state.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import structlog

from statusflow.errors import (
    EntityNotFoundError,
    EventValidationError,
    StaleStateError,
)
from statusflow.events.builders import event_type_for_status_change
from statusflow.events.models import DomainEvent, DomainEventType, build_event
from statusflow.notifications.dispatcher import NotificationDispatcher
from statusflow.transitions.machines import EntityKind, TransitionTable, kind_key
from statusflow.transitions.validator import validate

logger = structlog.get_logger(__name__)


class EntityStateStore(ABC):
    """Access to the status field of entities in the system of record."""

    @abstractmethod
    async def get_state(self, tenant_id: str, entity_kind: str, entity_id: str) -> str | None:
        """Read an entity's current status.

        Returns:
            The status, or None if the entity does not exist.
        """

    @abstractmethod
    async def compare_and_set(
        self,
        tenant_id: str,
        entity_kind: str,
        entity_id: str,
        *,
        expected: str,
        new: str,
    ) -> bool:
        """Write ``new`` only if the stored status still equals ``expected``.

        Returns:
            True if the write happened.
        """


class InMemoryEntityStateStore(EntityStateStore):
    """Dictionary-backed entity states. Used in tests and local development."""

    def __init__(self) -> None:
        self._states: dict[tuple[str, str, str], str] = {}
        self._lock = asyncio.Lock()

    def seed(
        self,
        tenant_id: str,
        entity_kind: EntityKind | str,
        entity_id: str,
        state: str,
    ) -> None:
        """Create or overwrite an entity's status without validation."""
        self._states[(tenant_id, kind_key(entity_kind), entity_id)] = state

    async def get_state(self, tenant_id: str, entity_kind: str, entity_id: str) -> str | None:
        async with self._lock:
            return self._states.get((tenant_id, entity_kind, entity_id))

    async def compare_and_set(
        self,
        tenant_id: str,
        entity_kind: str,
        entity_id: str,
        *,
        expected: str,
        new: str,
    ) -> bool:
        key = (tenant_id, entity_kind, entity_id)
        async with self._lock:
            if self._states.get(key) != expected:
                return False
            self._states[key] = new
            return True


@dataclass(frozen=True)
class TransitionOutcome:
    """A committed status change.

    Attributes:
        entity_kind: Kind of entity.
        entity_id: Entity identifier.
        previous_state: Status before the change.
        new_state: Status after the change.
        event: Event handed to the dispatcher, None if it could not be built.
    """

    entity_kind: str
    entity_id: str
    previous_state: str
    new_state: str
    event: DomainEvent | None = None


class StatusTransitionService:
    """Validates, commits and announces status changes."""

    def __init__(
        self,
        table: TransitionTable,
        state_store: EntityStateStore,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            table: Transition table used for validation.
            state_store: Entity status storage supporting compare-and-set.
            dispatcher: Dispatcher for committed changes; None disables notifications.
        """
        self._table = table
        self._state_store = state_store
        self._dispatcher = dispatcher
        self._logger = logger.bind(component="transition_service")

    async def apply(
        self,
        tenant_id: str,
        entity_kind: EntityKind | str,
        entity_id: str,
        requested_state: str,
        *,
        fields: dict[str, Any] | None = None,
        event_type: DomainEventType | None = None,
    ) -> TransitionOutcome:
        """Apply a status change.

        Args:
            tenant_id: Tenant that owns the entity.
            entity_kind: Kind of entity.
            entity_id: Entity identifier.
            requested_state: Status to move to.
            fields: Extra display fields for the resulting event.
            event_type: Event type to emit; picked from the kind and new
                status when omitted.

        Returns:
            The committed change.

        Raises:
            EntityNotFoundError: If the entity does not exist.
            TransitionRejectedError: If the table does not allow the change.
            StaleStateError: If the status changed between read and write.
        """
        kind = kind_key(entity_kind)
        current = await self._state_store.get_state(tenant_id, kind, entity_id)
        if current is None:
            raise EntityNotFoundError(entity_kind=kind, entity_id=entity_id)

        result = validate(self._table, kind, current, requested_state)
        if result.rejected:
            self._logger.info(
                "transition_rejected",
                tenant_id=tenant_id,
                entity_kind=kind,
                entity_id=entity_id,
                current_state=current,
                requested_state=requested_state,
                reason=result.reason.value if result.reason else None,
            )
        result.raise_for_rejection()

        committed = await self._state_store.compare_and_set(
            tenant_id, kind, entity_id, expected=current, new=requested_state
        )
        if not committed:
            self._logger.warning(
                "transition_stale_state",
                tenant_id=tenant_id,
                entity_kind=kind,
                entity_id=entity_id,
                expected_state=current,
            )
            raise StaleStateError(entity_kind=kind, entity_id=entity_id, expected_state=current)

        self._logger.info(
            "transition_committed",
            tenant_id=tenant_id,
            entity_kind=kind,
            entity_id=entity_id,
            previous_state=current,
            new_state=requested_state,
        )

        event = self._build_event(
            tenant_id, kind, entity_id, current, requested_state, fields, event_type
        )
        if event is not None and self._dispatcher is not None:
            self._dispatcher.dispatch_event_nowait(event)

        return TransitionOutcome(
            entity_kind=kind,
            entity_id=entity_id,
            previous_state=current,
            new_state=requested_state,
            event=event,
        )

    def _build_event(
        self,
        tenant_id: str,
        kind: str,
        entity_id: str,
        previous_state: str,
        new_state: str,
        fields: dict[str, Any] | None,
        event_type: DomainEventType | None,
    ) -> DomainEvent | None:
        """Build the event for a committed change.

        Falls back to a generic status_changed event when the chosen type
        needs fields the caller did not supply. Returns None rather than
        raising; the change is already committed.
        """
        payload = {
            **(fields or {}),
            "entity_kind": kind,
            "previous_status": previous_state,
            "new_status": new_state,
        }
        chosen = event_type or event_type_for_status_change(kind, new_state)

        try:
            return build_event(chosen, tenant_id, entity_id, payload)
        except EventValidationError as e:
            if chosen is DomainEventType.STATUS_CHANGED:
                self._logger.error("transition_event_build_failed", error=e.message)
                return None
            self._logger.debug(
                "transition_event_fallback",
                event_type=chosen.value,
                missing=e.missing,
            )
        return build_event(DomainEventType.STATUS_CHANGED, tenant_id, entity_id, payload)
