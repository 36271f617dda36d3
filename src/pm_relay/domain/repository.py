# src/pm_relay/domain/repository.py
"""Repository Protocol: dependency inversion for testability.

Unit tests inject the in-memory implementation or a mock conforming to
this Protocol.
"""

from collections.abc import Sequence
from typing import Protocol

from src.pm_common.enums import BatchStatus, OrderStatus, Side
from src.pm_relay.domain.models import RelayBatch, RelayOrder


class RelayRepositoryProtocol(Protocol):
    async def save_order(self, order: RelayOrder) -> None: ...

    async def get_order(self, order_id: str) -> RelayOrder | None: ...

    async def get_orders(self, order_ids: Sequence[str]) -> list[RelayOrder]: ...

    async def list_orders(self, statuses: Sequence[OrderStatus]) -> list[RelayOrder]: ...

    async def save_batch(self, batch: RelayBatch) -> None: ...

    async def get_batch(self, batch_id: str) -> RelayBatch | None: ...

    async def list_batches(self, status: BatchStatus | None = None) -> list[RelayBatch]: ...

    async def get_collecting_batch(
        self, market_id: str, side: Side, is_encrypted: bool
    ) -> RelayBatch | None: ...
