"""Legal order and batch status transitions.

Every status change goes through transition_order / transition_batch so
an illegal move fails loudly instead of corrupting a batch.
"""

from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import BatchStatus, OrderStatus
from src.pm_common.errors import InvalidStateTransitionError
from src.pm_relay.domain.models import RelayBatch, RelayOrder

_ORDER_EXITS = {OrderStatus.REFUNDED, OrderStatus.FAILED, OrderStatus.EXPIRED}

ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING_DEPOSIT: {OrderStatus.PENDING} | _ORDER_EXITS,
    OrderStatus.PENDING: {OrderStatus.COMMITTED} | _ORDER_EXITS,
    OrderStatus.COMMITTED: {OrderStatus.EXECUTING} | _ORDER_EXITS,
    OrderStatus.EXECUTING: {OrderStatus.COMPLETED} | _ORDER_EXITS,
    OrderStatus.COMPLETED: set(),
    OrderStatus.REFUNDED: set(),
    # Manual reconciliation: funds of a failed order can still be returned.
    OrderStatus.FAILED: {OrderStatus.REFUNDED},
    OrderStatus.EXPIRED: set(),
}

BATCH_TRANSITIONS: dict[BatchStatus, set[BatchStatus]] = {
    BatchStatus.COLLECTING: {BatchStatus.READY, BatchStatus.FAILED},
    BatchStatus.READY: {BatchStatus.EXECUTING, BatchStatus.MPC_COMPUTING, BatchStatus.FAILED},
    BatchStatus.MPC_COMPUTING: {BatchStatus.EXECUTING, BatchStatus.FAILED},
    BatchStatus.EXECUTING: {BatchStatus.PROVING, BatchStatus.MPC_DISTRIBUTING, BatchStatus.FAILED},
    BatchStatus.PROVING: {BatchStatus.DISTRIBUTING, BatchStatus.FAILED},
    BatchStatus.MPC_DISTRIBUTING: {BatchStatus.COMPLETED, BatchStatus.FAILED},
    BatchStatus.DISTRIBUTING: {BatchStatus.COMPLETED, BatchStatus.FAILED},
    BatchStatus.COMPLETED: set(),
    BatchStatus.FAILED: set(),
}


def can_transition_order(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ORDER_TRANSITIONS[current]


def can_transition_batch(current: BatchStatus, target: BatchStatus) -> bool:
    return target in BATCH_TRANSITIONS[current]


def transition_order(order: RelayOrder, target: OrderStatus) -> None:
    if not can_transition_order(order.status, target):
        raise InvalidStateTransitionError("order", order.status.value, target.value)
    order.status = target
    if target is OrderStatus.EXECUTING:
        order.executed_at = utc_now()
    elif target in (OrderStatus.COMPLETED, OrderStatus.REFUNDED):
        order.completed_at = utc_now()


def transition_batch(batch: RelayBatch, target: BatchStatus) -> None:
    if not can_transition_batch(batch.status, target):
        raise InvalidStateTransitionError("batch", batch.status.value, target.value)
    batch.status = target
    if target is BatchStatus.READY:
        batch.ready_at = utc_now()
    elif target in (BatchStatus.EXECUTING, BatchStatus.MPC_COMPUTING) and batch.executed_at is None:
        batch.executed_at = utc_now()
    elif target in (BatchStatus.COMPLETED, BatchStatus.FAILED):
        batch.completed_at = utc_now()
