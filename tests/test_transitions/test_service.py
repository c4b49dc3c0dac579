"""Tests for the status transition service."""

import asyncio
from unittest.mock import MagicMock

import pytest

from statusflow.errors import EntityNotFoundError, StaleStateError, TransitionRejectedError
from statusflow.events.models import DomainEventType
from statusflow.transitions.machines import DEFAULT_TRANSITIONS, EntityKind
from statusflow.transitions.service import (
    InMemoryEntityStateStore,
    StatusTransitionService,
)

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def state_store():
    """Entity store with one pending order."""
    store = InMemoryEntityStateStore()
    store.seed("tenant-1", EntityKind.ORDER, "ord-1", "pending")
    return store


@pytest.fixture
def dispatcher():
    """Mock dispatcher recording fire-and-forget calls."""
    return MagicMock()


@pytest.fixture
def service(state_store, dispatcher):
    """Transition service over the built-in tables."""
    return StatusTransitionService(DEFAULT_TRANSITIONS, state_store, dispatcher)


# ============================================================================
# InMemoryEntityStateStore Tests
# ============================================================================


class TestInMemoryEntityStateStore:
    """Tests for the in-memory compare-and-set store."""

    @pytest.mark.asyncio
    async def test_compare_and_set_success(self, state_store):
        """Test CAS writes when the expected state matches."""
        ok = await state_store.compare_and_set(
            "tenant-1", "order", "ord-1", expected="pending", new="confirmed"
        )

        assert ok is True
        assert await state_store.get_state("tenant-1", "order", "ord-1") == "confirmed"

    @pytest.mark.asyncio
    async def test_compare_and_set_conflict(self, state_store):
        """Test CAS refuses when the stored state differs."""
        ok = await state_store.compare_and_set(
            "tenant-1", "order", "ord-1", expected="confirmed", new="processing"
        )

        assert ok is False
        assert await state_store.get_state("tenant-1", "order", "ord-1") == "pending"

    @pytest.mark.asyncio
    async def test_states_are_tenant_scoped(self, state_store):
        """Test another tenant cannot see the entity."""
        assert await state_store.get_state("tenant-2", "order", "ord-1") is None


# ============================================================================
# Apply Tests
# ============================================================================


class TestApply:
    """Tests for StatusTransitionService.apply."""

    @pytest.mark.asyncio
    async def test_apply_commits_and_dispatches(self, service, state_store, dispatcher):
        """Test a legal change is written and announced."""
        outcome = await service.apply(
            "tenant-1", "order", "ord-1", "confirmed", fields={"order_number": "1001"}
        )

        assert outcome.previous_state == "pending"
        assert outcome.new_state == "confirmed"
        assert await state_store.get_state("tenant-1", "order", "ord-1") == "confirmed"

        event = outcome.event
        assert event is not None
        assert event.event_type is DomainEventType.ORDER_STATUS
        assert event.payload["previous_status"] == "pending"
        assert event.payload["new_status"] == "confirmed"
        dispatcher.dispatch_event_nowait.assert_called_once_with(event)

    @pytest.mark.asyncio
    async def test_apply_falls_back_to_status_changed(self, service):
        """Test missing kind-specific fields fall back to status_changed."""
        outcome = await service.apply("tenant-1", "order", "ord-1", "confirmed")

        assert outcome.event is not None
        assert outcome.event.event_type is DomainEventType.STATUS_CHANGED
        assert outcome.event.payload["entity_kind"] == "order"

    @pytest.mark.asyncio
    async def test_apply_rejected_does_not_write(self, service, state_store, dispatcher):
        """Test an illegal change raises and leaves state untouched."""
        with pytest.raises(TransitionRejectedError) as exc_info:
            await service.apply("tenant-1", "order", "ord-1", "delivered")

        assert exc_info.value.allowed_next == ("cancelled", "confirmed")
        assert await state_store.get_state("tenant-1", "order", "ord-1") == "pending"
        dispatcher.dispatch_event_nowait.assert_not_called()

    @pytest.mark.asyncio
    async def test_apply_missing_entity(self, service):
        """Test a missing entity raises EntityNotFoundError."""
        with pytest.raises(EntityNotFoundError):
            await service.apply("tenant-1", "order", "ord-404", "confirmed")

    @pytest.mark.asyncio
    async def test_apply_stale_state(self, state_store, dispatcher):
        """Test a concurrent write between read and CAS raises StaleStateError."""
        service = StatusTransitionService(DEFAULT_TRANSITIONS, state_store, dispatcher)
        original_get = state_store.get_state

        async def get_then_race(tenant_id, kind, entity_id):
            state = await original_get(tenant_id, kind, entity_id)
            state_store.seed(tenant_id, kind, entity_id, "cancelled")
            return state

        state_store.get_state = get_then_race

        with pytest.raises(StaleStateError) as exc_info:
            await service.apply("tenant-1", "order", "ord-1", "confirmed")

        assert exc_info.value.status_code == 409
        assert await original_get("tenant-1", "order", "ord-1") == "cancelled"
        dispatcher.dispatch_event_nowait.assert_not_called()

    @pytest.mark.asyncio
    async def test_concurrent_applies_single_winner(self, service, state_store):
        """Test two concurrent transitions out of one state cannot both commit."""
        original_get = state_store.get_state

        async def get_then_yield(tenant_id, kind, entity_id):
            state = await original_get(tenant_id, kind, entity_id)
            await asyncio.sleep(0)
            return state

        state_store.get_state = get_then_yield

        results = await asyncio.gather(
            service.apply("tenant-1", "order", "ord-1", "confirmed"),
            service.apply("tenant-1", "order", "ord-1", "cancelled"),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        successes = [r for r in results if not isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], StaleStateError)
        final = await original_get("tenant-1", "order", "ord-1")
        assert final == successes[0].new_state

    @pytest.mark.asyncio
    async def test_apply_without_dispatcher(self, state_store):
        """Test the service works with notifications disabled."""
        service = StatusTransitionService(DEFAULT_TRANSITIONS, state_store)

        outcome = await service.apply("tenant-1", "order", "ord-1", "cancelled")

        assert outcome.new_state == "cancelled"

    @pytest.mark.asyncio
    async def test_apply_delivery_picks_specific_event(self, state_store, dispatcher):
        """Test delivery status changes emit delivery_* events."""
        state_store.seed("tenant-1", "delivery", "dlv-1", "in_transit")
        service = StatusTransitionService(DEFAULT_TRANSITIONS, state_store, dispatcher)

        outcome = await service.apply(
            "tenant-1", "delivery", "dlv-1", "delivered", fields={"delivery_number": "D-7"}
        )

        assert outcome.event is not None
        assert outcome.event.event_type is DomainEventType.DELIVERY_COMPLETED
