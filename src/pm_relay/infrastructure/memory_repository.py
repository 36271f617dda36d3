"""In-memory relay repository. Orders and batches live for the process lifetime."""
from collections.abc import Sequence

from src.pm_common.enums import BatchStatus, OrderStatus, Side
from src.pm_relay.domain.models import RelayBatch, RelayOrder


class InMemoryRelayRepository:
    def __init__(self) -> None:
        self._orders: dict[str, RelayOrder] = {}
        self._batches: dict[str, RelayBatch] = {}

    async def save_order(self, order: RelayOrder) -> None:
        self._orders[order.id] = order

    async def get_order(self, order_id: str) -> RelayOrder | None:
        return self._orders.get(order_id)

    async def get_orders(self, order_ids: Sequence[str]) -> list[RelayOrder]:
        # Preserves the requested order, which is commit order for batch members.
        return [self._orders[oid] for oid in order_ids if oid in self._orders]

    async def list_orders(self, statuses: Sequence[OrderStatus]) -> list[RelayOrder]:
        wanted = set(statuses)
        return [o for o in self._orders.values() if o.status in wanted]

    async def save_batch(self, batch: RelayBatch) -> None:
        self._batches[batch.id] = batch

    async def get_batch(self, batch_id: str) -> RelayBatch | None:
        return self._batches.get(batch_id)

    async def list_batches(self, status: BatchStatus | None = None) -> list[RelayBatch]:
        batches = sorted(self._batches.values(), key=lambda b: b.created_at)
        if status is None:
            return batches
        return [b for b in batches if b.status is status]

    async def get_collecting_batch(
        self, market_id: str, side: Side, is_encrypted: bool
    ) -> RelayBatch | None:
        for batch in self._batches.values():
            if (
                batch.status is BatchStatus.COLLECTING
                and batch.market_id == market_id
                and batch.side is side
                and batch.is_encrypted == is_encrypted
            ):
                return batch
        return None
