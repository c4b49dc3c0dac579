"""Per-entity status machines.

Each machine maps a current status to the statuses it may move to next.
A status that appears only as a successor has no outgoing transitions
(terminal). Tables are wrapped in a read-only ``TransitionTable`` built once
at startup and passed to the validator, so tests can supply their own.
"""

from collections.abc import Iterable, Iterator, Mapping
from enum import Enum
from types import MappingProxyType


class EntityKind(str, Enum):
    """Business object types that carry a status field."""

    RESERVATION = "reservation"
    HOUSEKEEPING = "housekeeping"
    MAINTENANCE = "maintenance"
    REPAIR_ORDER = "repair_order"
    LAUNDRY_ORDER = "laundry_order"
    LEGAL_CASE = "legal_case"
    PROJECT = "project"
    CONSULTATION = "consultation"
    PHOTO_SESSION = "photo_session"
    CLASS_BOOKING = "class_booking"
    DESK_BOOKING = "desk_booking"
    ENROLLMENT = "enrollment"
    PURCHASE_ORDER = "purchase_order"
    TREATMENT_PLAN = "treatment_plan"
    SUBSCRIPTION = "subscription"
    SERVICE_REQUEST = "service_request"
    LAB_ORDER = "lab_order"
    ADMISSION = "admission"
    MEDICAL_COMPLAINT = "medical_complaint"
    ORDER = "order"
    APPOINTMENT = "appointment"
    DELIVERY = "delivery"
    VOUCHER = "voucher"
    RETURN_REQUEST = "return_request"


def kind_key(entity_kind: EntityKind | str) -> str:
    """Normalize an entity kind to its plain string value."""
    if isinstance(entity_kind, Enum):
        return str(entity_kind.value)
    return str(entity_kind)


class TransitionTable(Mapping[str, Mapping[str, frozenset[str]]]):
    """Immutable mapping of entity kind -> (state -> allowed next states).

    Example:
        table = TransitionTable.from_mapping(
            {"order": {"pending": ["confirmed", "cancelled"]}}
        )
        table["order"]["pending"]  # frozenset({"confirmed", "cancelled"})
    """

    def __init__(
        self,
        machines: Mapping[EntityKind | str, Mapping[str, Iterable[str]]],
    ) -> None:
        self._machines: Mapping[str, Mapping[str, frozenset[str]]] = MappingProxyType(
            {
                kind_key(kind): MappingProxyType(
                    {state: frozenset(successors) for state, successors in machine.items()}
                )
                for kind, machine in machines.items()
            }
        )

    @classmethod
    def from_mapping(
        cls,
        machines: Mapping[EntityKind | str, Mapping[str, Iterable[str]]],
    ) -> "TransitionTable":
        """Build a table from plain dicts/lists.

        Args:
            machines: Entity kind -> {state: iterable of next states}.

        Returns:
            A read-only TransitionTable.
        """
        return cls(machines)

    def __getitem__(self, entity_kind: EntityKind | str) -> Mapping[str, frozenset[str]]:
        return self._machines[kind_key(entity_kind)]

    def __iter__(self) -> Iterator[str]:
        return iter(self._machines)

    def __len__(self) -> int:
        return len(self._machines)

    def __contains__(self, entity_kind: object) -> bool:
        if not isinstance(entity_kind, str):
            return False
        return kind_key(entity_kind) in self._machines

    def machine(self, entity_kind: EntityKind | str) -> Mapping[str, frozenset[str]] | None:
        """Get the state machine for an entity kind, or None if unknown."""
        return self._machines.get(kind_key(entity_kind))

    def states(self, entity_kind: EntityKind | str) -> frozenset[str]:
        """All states known for an entity kind (keys and successors).

        Args:
            entity_kind: Entity kind.

        Returns:
            Every state that appears in the kind's machine.
        """
        machine = self.machine(entity_kind)
        if machine is None:
            return frozenset()
        known = set(machine)
        for successors in machine.values():
            known.update(successors)
        return frozenset(known)

    def terminal_states(self, entity_kind: EntityKind | str) -> frozenset[str]:
        """States with no outgoing transitions for an entity kind."""
        machine = self.machine(entity_kind) or {}
        return frozenset(
            state for state in self.states(entity_kind) if not machine.get(state)
        )


# ── Hospitality ──────────────────────────────────────────────────────

RESERVATION_TRANSITIONS: dict[str, list[str]] = {
    "confirmed": ["checked_in", "cancelled", "no_show"],
    "checked_in": ["checked_out"],
    "checked_out": [],
    "cancelled": [],
    "no_show": [],
}

HOUSEKEEPING_TRANSITIONS: dict[str, list[str]] = {
    "pending": ["in_progress", "skipped"],
    "in_progress": ["completed", "skipped"],
    "completed": [],
    "skipped": [],
}

MAINTENANCE_TRANSITIONS: dict[str, list[str]] = {
    "reported": ["assigned", "cancelled"],
    "assigned": ["in_progress", "cancelled"],
    "in_progress": ["completed", "cancelled"],
    "completed": [],
    "cancelled": [],
}

# ── Services and repairs ─────────────────────────────────────────────

REPAIR_ORDER_TRANSITIONS: dict[str, list[str]] = {
    "received": ["diagnosed", "cancelled"],
    "diagnosed": ["quoted", "cancelled"],
    "quoted": ["approved", "cancelled"],
    "approved": ["in_repair", "cancelled"],
    "in_repair": ["completed", "cancelled"],
    "completed": ["delivered"],
    "delivered": [],
    "cancelled": [],
}

LAUNDRY_ORDER_TRANSITIONS: dict[str, list[str]] = {
    "received": ["processing", "cancelled"],
    "processing": ["washing", "cancelled"],
    "washing": ["drying"],
    "drying": ["ironing", "ready"],
    "ironing": ["ready"],
    "ready": ["delivered"],
    "delivered": [],
    "cancelled": [],
}

SERVICE_REQUEST_TRANSITIONS: dict[str, list[str]] = {
    "pending": ["confirmed", "cancelled"],
    "confirmed": ["in_progress", "cancelled"],
    "in_progress": ["completed", "cancelled"],
    "completed": [],
    "cancelled": [],
}

# ── Professional services ────────────────────────────────────────────

LEGAL_CASE_TRANSITIONS: dict[str, list[str]] = {
    "open": ["in_progress", "closed"],
    "in_progress": ["pending_hearing", "settled", "closed"],
    "pending_hearing": ["in_progress", "settled", "closed"],
    "settled": ["closed", "archived"],
    "closed": ["archived"],
    "archived": [],
}

PROJECT_TRANSITIONS: dict[str, list[str]] = {
    "planning": ["in_progress", "cancelled"],
    "in_progress": ["on_hold", "completed", "cancelled"],
    "on_hold": ["in_progress", "cancelled"],
    "completed": [],
    "cancelled": [],
}

CONSULTATION_TRANSITIONS: dict[str, list[str]] = {
    "scheduled": ["in_progress", "cancelled", "no_show", "rescheduled"],
    "rescheduled": ["in_progress", "cancelled", "no_show"],
    "in_progress": ["completed"],
    "completed": [],
    "cancelled": [],
    "no_show": [],
}

PHOTO_SESSION_TRANSITIONS: dict[str, list[str]] = {
    "scheduled": ["in_progress", "cancelled", "no_show"],
    "in_progress": ["completed"],
    "completed": [],
    "cancelled": [],
    "no_show": [],
}

# ── Bookings and memberships ─────────────────────────────────────────

CLASS_BOOKING_TRANSITIONS: dict[str, list[str]] = {
    "booked": ["attended", "cancelled", "no_show"],
    "attended": [],
    "cancelled": [],
    "no_show": [],
}

DESK_BOOKING_TRANSITIONS: dict[str, list[str]] = {
    "confirmed": ["checked_in", "cancelled", "no_show"],
    "checked_in": ["completed"],
    "completed": [],
    "cancelled": [],
    "no_show": [],
}

ENROLLMENT_TRANSITIONS: dict[str, list[str]] = {
    "active": ["completed", "withdrawn", "suspended"],
    "suspended": ["active", "withdrawn"],
    "completed": [],
    "withdrawn": [],
}

SUBSCRIPTION_TRANSITIONS: dict[str, list[str]] = {
    "active": ["paused", "cancelled", "expired"],
    "paused": ["active", "cancelled"],
    "cancelled": [],
    "expired": [],
}

APPOINTMENT_TRANSITIONS: dict[str, list[str]] = {
    "pending": ["confirmed", "cancelled"],
    "confirmed": ["in_progress", "cancelled", "no_show"],
    "in_progress": ["completed"],
    "completed": [],
    "cancelled": [],
    "no_show": [],
}

# ── Commerce ─────────────────────────────────────────────────────────

ORDER_TRANSITIONS: dict[str, list[str]] = {
    "pending": ["confirmed", "cancelled"],
    "confirmed": ["processing", "cancelled"],
    "processing": ["shipped", "cancelled"],
    "shipped": ["delivered"],
    "delivered": [],
    "cancelled": [],
}

PURCHASE_ORDER_TRANSITIONS: dict[str, list[str]] = {
    "draft": ["sent", "cancelled"],
    "sent": ["confirmed", "cancelled"],
    "confirmed": ["partially_received", "received", "cancelled"],
    "partially_received": ["received"],
    "received": [],
    "cancelled": [],
}

DELIVERY_TRANSITIONS: dict[str, list[str]] = {
    "pending": ["assigned", "cancelled"],
    "assigned": ["picked_up", "cancelled"],
    "picked_up": ["in_transit", "failed"],
    "in_transit": ["delivered", "failed", "delayed"],
    "delayed": ["in_transit", "delivered", "failed"],
    "delivered": [],
    "failed": [],
    "cancelled": [],
}

VOUCHER_TRANSITIONS: dict[str, list[str]] = {
    "pending_approval": ["approved", "rejected"],
    "approved": ["redeemed"],
    "redeemed": [],
    "rejected": [],
}

RETURN_REQUEST_TRANSITIONS: dict[str, list[str]] = {
    "pending": ["approved", "rejected"],
    "approved": ["completed", "rejected"],
    "completed": [],
    "rejected": [],
}

# ── Healthcare ───────────────────────────────────────────────────────

TREATMENT_PLAN_TRANSITIONS: dict[str, list[str]] = {
    "draft": ["active", "cancelled"],
    "active": ["completed", "cancelled"],
    "completed": [],
    "cancelled": [],
}

LAB_ORDER_TRANSITIONS: dict[str, list[str]] = {
    "ordered": ["collected", "cancelled"],
    "collected": ["processing", "cancelled"],
    "processing": ["completed", "cancelled"],
    "completed": [],
    "cancelled": [],
}

ADMISSION_TRANSITIONS: dict[str, list[str]] = {
    "admitted": ["discharged", "transferred"],
    "discharged": [],
    "transferred": [],
}

MEDICAL_COMPLAINT_TRANSITIONS: dict[str, list[str]] = {
    "open": ["assigned", "closed"],
    "assigned": ["reviewed", "closed"],
    "reviewed": ["resolved", "closed"],
    "resolved": ["closed"],
    "closed": [],
}


DEFAULT_TRANSITIONS = TransitionTable.from_mapping(
    {
        EntityKind.RESERVATION: RESERVATION_TRANSITIONS,
        EntityKind.HOUSEKEEPING: HOUSEKEEPING_TRANSITIONS,
        EntityKind.MAINTENANCE: MAINTENANCE_TRANSITIONS,
        EntityKind.REPAIR_ORDER: REPAIR_ORDER_TRANSITIONS,
        EntityKind.LAUNDRY_ORDER: LAUNDRY_ORDER_TRANSITIONS,
        EntityKind.LEGAL_CASE: LEGAL_CASE_TRANSITIONS,
        EntityKind.PROJECT: PROJECT_TRANSITIONS,
        EntityKind.CONSULTATION: CONSULTATION_TRANSITIONS,
        EntityKind.PHOTO_SESSION: PHOTO_SESSION_TRANSITIONS,
        EntityKind.CLASS_BOOKING: CLASS_BOOKING_TRANSITIONS,
        EntityKind.DESK_BOOKING: DESK_BOOKING_TRANSITIONS,
        EntityKind.ENROLLMENT: ENROLLMENT_TRANSITIONS,
        EntityKind.PURCHASE_ORDER: PURCHASE_ORDER_TRANSITIONS,
        EntityKind.TREATMENT_PLAN: TREATMENT_PLAN_TRANSITIONS,
        EntityKind.SUBSCRIPTION: SUBSCRIPTION_TRANSITIONS,
        EntityKind.SERVICE_REQUEST: SERVICE_REQUEST_TRANSITIONS,
        EntityKind.LAB_ORDER: LAB_ORDER_TRANSITIONS,
        EntityKind.ADMISSION: ADMISSION_TRANSITIONS,
        EntityKind.MEDICAL_COMPLAINT: MEDICAL_COMPLAINT_TRANSITIONS,
        EntityKind.ORDER: ORDER_TRANSITIONS,
        EntityKind.APPOINTMENT: APPOINTMENT_TRANSITIONS,
        EntityKind.DELIVERY: DELIVERY_TRANSITIONS,
        EntityKind.VOUCHER: VOUCHER_TRANSITIONS,
        EntityKind.RETURN_REQUEST: RETURN_REQUEST_TRANSITIONS,
    }
)
