"""Entity state machines and transition validation.

This module provides:
- EntityKind: Business object types that carry a status
- TransitionTable: Immutable per-kind state machines
- validate: Pure transition check returning a TransitionResult

The transition service lives in ``statusflow.transitions.service``.
"""

from statusflow.transitions.machines import (
    DEFAULT_TRANSITIONS,
    EntityKind,
    TransitionTable,
    kind_key,
)
from statusflow.transitions.validator import (
    RejectionReason,
    TransitionRequest,
    TransitionResult,
    allowed_next_states,
    validate,
)

__all__ = [
    # Machines
    "DEFAULT_TRANSITIONS",
    "EntityKind",
    "TransitionTable",
    "kind_key",
    # Validator
    "RejectionReason",
    "TransitionRequest",
    "TransitionResult",
    "allowed_next_states",
    "validate",
]
