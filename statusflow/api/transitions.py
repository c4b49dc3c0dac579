"""Status transition API endpoints.

Read-only views of the transition tables, a dry-run validator, and the
status-change endpoint that commits through the transition service.
"""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from statusflow.api.dependencies import Services, get_services, get_tenant_id
from statusflow.events.models import DomainEventType
from statusflow.transitions.validator import allowed_next_states, validate

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Transitions"])


# ============================================================================
# Request Models
# ============================================================================


class ValidateTransitionRequest(BaseModel):
    """Request to check a status change without applying it."""

    entity_kind: str = Field(..., description="Entity kind, e.g. order", min_length=1)
    current_state: str = Field(..., description="Status the entity is in", min_length=1)
    requested_state: str = Field(..., description="Status to move to", min_length=1)


class StatusChangeRequest(BaseModel):
    """Request to change an entity's status."""

    status: str = Field(..., description="Status to move to", min_length=1)
    fields: dict[str, str | int | float | bool | None] = Field(
        default_factory=dict,
        description="Display fields for the resulting notification",
    )
    event_type: DomainEventType | None = Field(
        default=None,
        description="Event type to emit (chosen from kind and status if omitted)",
    )


# ============================================================================
# Response Models
# ============================================================================


class ValidateTransitionResponse(BaseModel):
    allowed: bool
    reason: str | None = None
    message: str | None = None
    allowed_next: list[str] = Field(default_factory=list)


class AllowedNextResponse(BaseModel):
    entity_kind: str
    state: str
    allowed_next: list[str]
    terminal: bool


class StatusChangeResponse(BaseModel):
    entity_kind: str
    entity_id: str
    previous_status: str
    status: str
    event_id: str | None = None


# ============================================================================
# Endpoints
# ============================================================================


@router.get("/transitions/{entity_kind}")
async def get_machine(
    entity_kind: str,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Get the full state machine for an entity kind."""
    machine = services.table.machine(entity_kind)
    if machine is None:
        raise HTTPException(status_code=404, detail=f"Unknown entity kind '{entity_kind}'")

    return {
        "entity_kind": entity_kind,
        "transitions": {state: sorted(successors) for state, successors in machine.items()},
        "terminal_states": sorted(services.table.terminal_states(entity_kind)),
    }


@router.get("/transitions/{entity_kind}/{state}", response_model=AllowedNextResponse)
async def get_allowed_next(
    entity_kind: str,
    state: str,
    services: Services = Depends(get_services),
) -> AllowedNextResponse:
    """List the states an entity may move to from ``state``."""
    if services.table.machine(entity_kind) is None:
        raise HTTPException(status_code=404, detail=f"Unknown entity kind '{entity_kind}'")
    if state not in services.table.states(entity_kind):
        raise HTTPException(status_code=404, detail=f"Unknown {entity_kind} status '{state}'")

    allowed = allowed_next_states(services.table, entity_kind, state)
    return AllowedNextResponse(
        entity_kind=entity_kind,
        state=state,
        allowed_next=list(allowed),
        terminal=not allowed,
    )


@router.post("/transitions/validate", response_model=ValidateTransitionResponse)
async def validate_transition(
    request: ValidateTransitionRequest,
    services: Services = Depends(get_services),
) -> ValidateTransitionResponse:
    """Check whether a status change would be allowed."""
    result = validate(
        services.table,
        request.entity_kind,
        request.current_state,
        request.requested_state,
    )
    return ValidateTransitionResponse(
        allowed=result.allowed,
        reason=result.reason.value if result.reason else None,
        message=result.message,
        allowed_next=list(result.allowed_next),
    )


@router.patch(
    "/entities/{entity_kind}/{entity_id}/status",
    response_model=StatusChangeResponse,
    responses={
        400: {"description": "Transition not allowed"},
        404: {"description": "Entity not found"},
        409: {"description": "Status changed concurrently"},
    },
)
async def change_status(
    entity_kind: str,
    entity_id: str,
    request: StatusChangeRequest,
    tenant_id: str = Depends(get_tenant_id),
    services: Services = Depends(get_services),
) -> StatusChangeResponse:
    """Apply a status change and notify the tenant's channels."""
    outcome = await services.transitions.apply(
        tenant_id,
        entity_kind,
        entity_id,
        request.status,
        fields=request.fields,
        event_type=request.event_type,
    )
    return StatusChangeResponse(
        entity_kind=outcome.entity_kind,
        entity_id=outcome.entity_id,
        previous_status=outcome.previous_state,
        status=outcome.new_state,
        event_id=outcome.event.id if outcome.event else None,
    )
