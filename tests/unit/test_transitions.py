"""Tests for the order and batch status machines."""
import pytest

from src.pm_common.enums import BatchStatus, OrderStatus, Side
from src.pm_common.errors import InvalidStateTransitionError
from src.pm_relay.domain.models import RelayBatch, RelayOrder
from src.pm_relay.domain.transitions import (
    BATCH_TRANSITIONS,
    ORDER_TRANSITIONS,
    can_transition_batch,
    can_transition_order,
    transition_batch,
    transition_order,
)


def _order(status: OrderStatus = OrderStatus.PENDING_DEPOSIT) -> RelayOrder:
    return RelayOrder(id="ord_1", market_id="mkt", side=Side.YES, status=status)


def _batch(status: BatchStatus = BatchStatus.COLLECTING) -> RelayBatch:
    return RelayBatch(id="batch_1", market_id="mkt", side=Side.YES, status=status)


class TestOrderTransitions:
    def test_happy_path(self) -> None:
        order = _order()
        for target in (
            OrderStatus.PENDING,
            OrderStatus.COMMITTED,
            OrderStatus.EXECUTING,
            OrderStatus.COMPLETED,
        ):
            transition_order(order, target)
        assert order.status is OrderStatus.COMPLETED
        assert order.executed_at is not None
        assert order.completed_at is not None

    @pytest.mark.parametrize(
        "status",
        [OrderStatus.PENDING_DEPOSIT, OrderStatus.PENDING, OrderStatus.COMMITTED, OrderStatus.EXECUTING],
    )
    def test_every_live_state_can_exit(self, status: OrderStatus) -> None:
        for target in (OrderStatus.REFUNDED, OrderStatus.FAILED, OrderStatus.EXPIRED):
            assert can_transition_order(status, target)

    def test_failed_can_be_refunded(self) -> None:
        order = _order(OrderStatus.FAILED)
        transition_order(order, OrderStatus.REFUNDED)
        assert order.status is OrderStatus.REFUNDED

    @pytest.mark.parametrize(
        "status", [OrderStatus.COMPLETED, OrderStatus.REFUNDED, OrderStatus.EXPIRED]
    )
    def test_terminal_states_are_final(self, status: OrderStatus) -> None:
        assert ORDER_TRANSITIONS[status] == set()
        assert _order(status).is_terminal

    def test_skipping_a_state_is_rejected(self) -> None:
        order = _order()
        with pytest.raises(InvalidStateTransitionError):
            transition_order(order, OrderStatus.COMMITTED)
        assert order.status is OrderStatus.PENDING_DEPOSIT


class TestBatchTransitions:
    def test_plain_path(self) -> None:
        batch = _batch()
        for target in (
            BatchStatus.READY,
            BatchStatus.EXECUTING,
            BatchStatus.PROVING,
            BatchStatus.DISTRIBUTING,
            BatchStatus.COMPLETED,
        ):
            transition_batch(batch, target)
        assert batch.ready_at is not None
        assert batch.executed_at is not None
        assert batch.completed_at is not None

    def test_encrypted_path(self) -> None:
        batch = _batch()
        for target in (
            BatchStatus.READY,
            BatchStatus.MPC_COMPUTING,
            BatchStatus.EXECUTING,
            BatchStatus.MPC_DISTRIBUTING,
            BatchStatus.COMPLETED,
        ):
            transition_batch(batch, target)
        assert batch.status is BatchStatus.COMPLETED

    def test_every_live_state_can_fail(self) -> None:
        for status, targets in BATCH_TRANSITIONS.items():
            if targets:
                assert can_transition_batch(status, BatchStatus.FAILED)

    def test_no_way_back(self) -> None:
        batch = _batch(BatchStatus.EXECUTING)
        with pytest.raises(InvalidStateTransitionError):
            transition_batch(batch, BatchStatus.COLLECTING)
        assert not can_transition_batch(BatchStatus.COMPLETED, BatchStatus.FAILED)
