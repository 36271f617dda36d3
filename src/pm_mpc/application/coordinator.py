"""MpcRevealCoordinator: the relay's only path to encrypted order data.

The relay learns exactly two kinds of values from the MPC network: the
aggregate total of a closed batch, and one order's distribution at a time.
Distribution reveals are serialized through a single lock and never cached.
"""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, TypeVar

from src.pm_common.enums import MpcBatchStatus, Side
from src.pm_common.errors import MpcError
from src.pm_mpc.application.polling import PollPolicy, poll_until
from src.pm_mpc.domain.codec import (
    decode_batch_account,
    encode_add_order,
    encode_close_batch,
    encode_create_batch,
    encode_get_distribution,
)
from src.pm_mpc.domain.models import (
    DistributionInstruction,
    EncryptedOrder,
    MpcBatchState,
    MpcNetwork,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _caller_is_cancelling() -> bool:
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0


class MpcRevealCoordinator:
    def __init__(
        self,
        network: MpcNetwork,
        reveal_policy: PollPolicy,
        distribution_policy: PollPolicy,
    ) -> None:
        self._network = network
        self._reveal_policy = reveal_policy
        self._distribution_policy = distribution_policy
        self._batches: dict[str, MpcBatchState] = {}
        self._reveal_lock = asyncio.Lock()
        self._polls: dict[str, asyncio.Task[Any]] = {}

    def batch_state(self, batch_id: str) -> MpcBatchState | None:
        return self._batches.get(batch_id)

    def _require(self, batch_id: str) -> MpcBatchState:
        state = self._batches.get(batch_id)
        if state is None:
            raise MpcError(f"unknown MPC batch {batch_id}")
        return state

    async def init_batch(self, batch_id: str, market_id: str, side: Side) -> MpcBatchState:
        if batch_id in self._batches:
            raise MpcError(f"MPC batch {batch_id} already initialized")
        await self._network.send_instruction(batch_id, encode_create_batch(market_id, side))
        state = MpcBatchState(batch_id=batch_id, market_id=market_id, side=side)
        self._batches[batch_id] = state
        logger.info("MPC batch %s initialized for %s %s", batch_id, market_id, side.value)
        return state

    async def add_encrypted_order(
        self, batch_id: str, order: EncryptedOrder, order_index: int
    ) -> None:
        state = self._require(batch_id)
        if state.status is not MpcBatchStatus.COLLECTING:
            raise MpcError(f"MPC batch {batch_id} is {state.status.value}, not collecting")
        if order_index != state.order_count:
            raise MpcError(
                f"order index {order_index} out of sequence, expected {state.order_count}"
            )
        await self._network.send_instruction(batch_id, encode_add_order(order, order_index))
        state.order_count += 1
        logger.info("Encrypted order %d added to MPC batch %s", order_index, batch_id)

    async def close_batch_and_reveal_total(self, batch_id: str) -> int:
        """Close the batch and wait for the aggregate total (micros)."""
        state = self._require(batch_id)
        if state.status is not MpcBatchStatus.COLLECTING:
            raise MpcError(f"MPC batch {batch_id} is {state.status.value}, not collecting")
        await self._network.send_instruction(batch_id, encode_close_batch())
        state.status = MpcBatchStatus.CLOSED

        async def _fetch_total() -> int | None:
            data = await self._network.fetch_batch_account(batch_id)
            account = decode_batch_account(data) if data is not None else None
            if account is None or not account.is_revealed:
                return None
            return account.revealed_total

        total = await self._tracked_poll(
            batch_id, poll_until(_fetch_total, self._reveal_policy, f"total reveal for {batch_id}")
        )
        state.revealed_total = total
        state.status = MpcBatchStatus.REVEALED
        logger.info("MPC batch %s revealed total %d micros", batch_id, total)
        return total

    async def get_distribution_instruction(
        self, batch_id: str, order_index: int, total_shares: int
    ) -> DistributionInstruction:
        """Reveal one order's share of ``total_shares``."""
        state = self._require(batch_id)
        if state.status not in (MpcBatchStatus.REVEALED, MpcBatchStatus.DISTRIBUTING):
            raise MpcError(
                f"MPC batch {batch_id} is {state.status.value}, need revealed/distributing"
            )
        if not 0 <= order_index < state.order_count:
            raise MpcError(f"order index {order_index} not in MPC batch {batch_id}")

        async with self._reveal_lock:
            state.status = MpcBatchStatus.DISTRIBUTING
            await self._network.send_instruction(
                batch_id, encode_get_distribution(order_index, total_shares)
            )

            async def _fetch_distribution() -> DistributionInstruction | None:
                return await self._network.fetch_distribution(batch_id, order_index)

            instruction = await self._tracked_poll(
                batch_id,
                poll_until(
                    _fetch_distribution,
                    self._distribution_policy,
                    f"distribution reveal for {batch_id}[{order_index}]",
                ),
            )
        if instruction.order_index != order_index:
            raise MpcError(
                f"MPC returned order {instruction.order_index}, requested {order_index}"
            )
        return instruction

    async def complete_batch(self, batch_id: str) -> None:
        state = self._require(batch_id)
        state.status = MpcBatchStatus.COMPLETED
        logger.info("MPC batch %s completed", batch_id)

    def cancel(self, batch_id: str) -> bool:
        """Abandon the in-flight reveal for a batch, if any."""
        task = self._polls.get(batch_id)
        if task is None or task.done():
            return False
        task.cancel()
        logger.warning("MPC reveal for batch %s cancelled", batch_id)
        return True

    async def _tracked_poll(self, batch_id: str, poll: Coroutine[Any, Any, T]) -> T:
        task = asyncio.create_task(poll)
        self._polls[batch_id] = task
        try:
            return await task
        except asyncio.CancelledError:
            if task.cancelled() and not _caller_is_cancelling():
                raise MpcError(f"reveal for batch {batch_id} was cancelled") from None
            raise
        finally:
            self._polls.pop(batch_id, None)
