"""RelayService: order intake and the batch lifecycle.

Intake and batch freezing share one lock so an order is never admitted to
a batch that is being frozen. Execution is serialized per batch. Once a
batch leaves ``ready`` it runs to ``completed`` or ``failed``; external
failures are recorded on the batch and its orders, never retried here.
"""

import asyncio
import logging
import secrets
import uuid
from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from src.pm_common.amounts import to_micros
from src.pm_common.datetime_utils import elapsed_seconds, seconds_from, utc_now
from src.pm_common.enums import BatchStatus, OrderStatus, Side
from src.pm_common.errors import (
    AppError,
    BatchNotFoundError,
    EncodingError,
    InvalidOrderError,
    InvalidStateTransitionError,
    MpcDisabledError,
    OrderNotFoundError,
    VenueExecutionError,
)
from src.pm_crypto.commitment import DistributionEntry, compute_commitment_hash
from src.pm_crypto.field import BN254_PRIME, field_to_hex, hex_to_field
from src.pm_crypto.poseidon import FieldHasher
from src.pm_merkle import batch_tree
from src.pm_mpc.application.coordinator import MpcRevealCoordinator
from src.pm_mpc.domain.codec import NONCE_BYTES, PUBKEY_BYTES
from src.pm_mpc.domain.models import EncryptedOrder
from src.pm_relay.application.circuit import build_circuit_inputs, circuit_info
from src.pm_relay.application.schemas import (
    ActivateOrderRequest,
    RefundOrderRequest,
    SubmitEncryptedOrderRequest,
    SubmitOrderRequest,
)
from src.pm_relay.domain.allocation import OrderAllocation, compute_allocations, split_order_shares
from src.pm_relay.domain.intake import (
    check_amount,
    check_market_allowed,
    check_wallet,
    validate_distribution,
)
from src.pm_relay.domain.models import DistributionResult, RelayBatch, RelayConfig, RelayOrder
from src.pm_relay.domain.ports import PayoutExecutor, Prover, TradeVenue, VenueExecution
from src.pm_relay.domain.repository import RelayRepositoryProtocol
from src.pm_relay.domain.transitions import transition_batch, transition_order

logger = logging.getLogger(__name__)

FULL_ALLOCATION_BPS = 10_000


def _new_order_id() -> str:
    return f"ord_{uuid.uuid4().hex}"


def _new_batch_id() -> str:
    return f"batch_{uuid.uuid4().hex[:16]}"


def _new_salt() -> str:
    return str(secrets.randbelow(BN254_PRIME))


def _failure_reason(exc: Exception) -> str:
    """Readable reason for a port failure. Non-AppError failures are logged with a traceback."""
    if isinstance(exc, AppError):
        return exc.message
    logger.error("Unexpected %s from an external port", type(exc).__name__, exc_info=exc)
    return f"{type(exc).__name__}: {exc}"


class RelayService:
    def __init__(
        self,
        repo: RelayRepositoryProtocol,
        hasher: FieldHasher,
        venue: TradeVenue,
        prover: Prover,
        payouts: PayoutExecutor,
        config: RelayConfig | None = None,
        mpc: MpcRevealCoordinator | None = None,
    ) -> None:
        self._repo = repo
        self._hasher = hasher
        self._venue = venue
        self._prover = prover
        self._payouts = payouts
        self.config = config or RelayConfig()
        self._mpc = mpc
        self._intake_lock = asyncio.Lock()
        self._batch_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def mpc_enabled(self) -> bool:
        return self.config.mpc_enabled and self._mpc is not None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_order(self, order_id: str) -> RelayOrder:
        order = await self._repo.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def get_batch(self, batch_id: str) -> RelayBatch:
        batch = await self._repo.get_batch(batch_id)
        if batch is None:
            raise BatchNotFoundError(batch_id)
        return batch

    async def get_batch_orders(self, batch_id: str) -> list[RelayOrder]:
        batch = await self.get_batch(batch_id)
        return await self._repo.get_orders(batch.order_ids)

    async def list_batches(self, status: BatchStatus | None = None) -> list[RelayBatch]:
        return await self._repo.list_batches(status)

    def describe(self) -> dict[str, Any]:
        return {
            "max_batch_size": self.config.max_batch_size,
            "min_batch_size": self.config.min_batch_size,
            "batch_timeout_seconds": self.config.batch_timeout_seconds,
            "deposit_window_seconds": self.config.deposit_window_seconds,
            "allowed_markets": sorted(self.config.allowed_markets),
            "mpc_enabled": self.mpc_enabled,
            "circuit": circuit_info(2**self.config.tree_depth, self.config.tree_depth),
        }

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    async def submit_order(self, req: SubmitOrderRequest) -> RelayOrder:
        side = Side(req.side)
        check_market_allowed(self.config, req.market_id)
        try:
            usdc_micros = to_micros(req.usdc_amount)
        except ValueError as e:
            raise EncodingError(EncodingError.MALFORMED, str(e)) from e
        check_amount(usdc_micros)

        destination_wallet: str | None = None
        if req.distribution:
            distribution = [
                DistributionEntry(wallet=d.wallet, basis_points=d.percentage)
                for d in req.distribution
            ]
            validate_distribution(distribution)
        elif req.destination_wallet:
            check_wallet(req.destination_wallet)
            destination_wallet = req.destination_wallet
            distribution = [DistributionEntry(req.destination_wallet, FULL_ALLOCATION_BPS)]
        else:
            raise InvalidOrderError("either distribution or destination_wallet is required")

        order = RelayOrder(
            id=_new_order_id(),
            market_id=req.market_id,
            side=side,
            usdc_amount=usdc_micros,
            salt=req.salt or _new_salt(),
            distribution=distribution,
            destination_wallet=destination_wallet,
        )
        # Encoding failures surface here, before the order joins a batch.
        order.commitment_hash = field_to_hex(
            compute_commitment_hash(order.to_commitment(), self._hasher)
        )
        order.deposit_expires_at = seconds_from(order.created_at, self.config.deposit_window_seconds)

        async with self._intake_lock:
            batch = await self._collecting_batch(order.market_id, side, is_encrypted=False)
            await self._admit(order, batch)
        logger.info(
            "Order %s admitted to batch %s (%d/%d)",
            order.id, batch.id, batch.order_count, self.config.max_batch_size,
        )
        return order

    async def submit_encrypted_order(self, req: SubmitEncryptedOrderRequest) -> RelayOrder:
        if not self.mpc_enabled:
            raise MpcDisabledError()
        side = Side(req.side)
        check_market_allowed(self.config, req.market_id)
        ciphertext, public_key, nonce = req.encrypted_data.decoded()
        if len(public_key) != PUBKEY_BYTES or len(nonce) != NONCE_BYTES:
            raise InvalidOrderError(
                f"encrypted order needs a {PUBKEY_BYTES}-byte public key and {NONCE_BYTES}-byte nonce"
            )
        order = RelayOrder(
            id=_new_order_id(),
            market_id=req.market_id,
            side=side,
            is_encrypted=True,
            encrypted_data=EncryptedOrder(ciphertext=ciphertext, public_key=public_key, nonce=nonce),
        )
        order.deposit_expires_at = seconds_from(order.created_at, self.config.deposit_window_seconds)

        async with self._intake_lock:
            batch = await self._collecting_batch(order.market_id, side, is_encrypted=True)
            await self._admit(order, batch)
        logger.info("Encrypted order %s admitted to batch %s", order.id, batch.id)
        return order

    async def _collecting_batch(self, market_id: str, side: Side, is_encrypted: bool) -> RelayBatch:
        batch = await self._repo.get_collecting_batch(market_id, side, is_encrypted)
        if batch is not None and batch.order_count < self.config.max_batch_size:
            return batch
        batch = RelayBatch(id=_new_batch_id(), market_id=market_id, side=side, is_encrypted=is_encrypted)
        if is_encrypted:
            assert self._mpc is not None
            await self._mpc.init_batch(batch.id, market_id, side)
        await self._repo.save_batch(batch)
        logger.info(
            "Batch %s created for %s %s%s",
            batch.id, market_id, side.value, " (encrypted)" if is_encrypted else "",
        )
        return batch

    async def _admit(self, order: RelayOrder, batch: RelayBatch) -> None:
        order.batch_id = batch.id
        batch.order_ids.append(order.id)
        batch.total_usdc_committed += order.usdc_amount
        await self._repo.save_order(order)
        if batch.order_count >= self.config.max_batch_size:
            transition_batch(batch, BatchStatus.READY)
            logger.info("Batch %s is full and ready", batch.id)
        await self._repo.save_batch(batch)

    async def activate_order(self, order_id: str, req: ActivateOrderRequest) -> RelayOrder:
        """Confirm the deposit for an order: pending_deposit -> pending."""
        async with self._intake_lock:
            order = await self.get_order(order_id)
            if order.status is not OrderStatus.PENDING_DEPOSIT:
                raise InvalidStateTransitionError("order", order.status.value, OrderStatus.PENDING.value)
            now = utc_now()
            if order.deposit_expires_at is not None and now > order.deposit_expires_at:
                await self._expire(order)
                raise InvalidOrderError(f"deposit window for {order_id} has expired")

            if order.is_encrypted:
                # Only funded encrypted orders enter the MPC sum.
                assert self._mpc is not None and order.batch_id is not None
                state = self._mpc.batch_state(order.batch_id)
                index = state.order_count if state is not None else 0
                assert order.encrypted_data is not None
                await self._mpc.add_encrypted_order(order.batch_id, order.encrypted_data, index)
                order.mpc_order_index = index

            transition_order(order, OrderStatus.PENDING)
            order.deposit_tx_signature = req.deposit_tx_signature
            order.deposit_sender_wallet = req.sender_wallet
            order.deposit_confirmed_at = now
            await self._repo.save_order(order)
        logger.info("Order %s funded by %s", order.id, req.deposit_tx_signature[:16])
        return order

    async def expire_orders(self, now: datetime | None = None) -> list[RelayOrder]:
        """Expire unfunded orders whose deposit window has passed."""
        now = now or utc_now()
        expired: list[RelayOrder] = []
        async with self._intake_lock:
            for order in await self._repo.list_orders([OrderStatus.PENDING_DEPOSIT]):
                if order.deposit_expires_at is not None and now > order.deposit_expires_at:
                    await self._expire(order)
                    expired.append(order)
        if expired:
            logger.info("Expired %d unfunded order(s)", len(expired))
        return expired

    async def _expire(self, order: RelayOrder) -> None:
        transition_order(order, OrderStatus.EXPIRED)
        await self._detach(order)
        await self._repo.save_order(order)

    async def _detach(self, order: RelayOrder) -> None:
        """Remove an order from its batch if that batch has not been frozen yet."""
        if order.batch_id is None:
            return
        batch = await self._repo.get_batch(order.batch_id)
        if batch is None or batch.status not in (BatchStatus.COLLECTING, BatchStatus.READY):
            return
        if order.id in batch.order_ids:
            batch.order_ids.remove(order.id)
            batch.total_usdc_committed -= order.usdc_amount
            await self._repo.save_batch(batch)

    async def refund_order(self, order_id: str, req: RefundOrderRequest) -> RelayOrder:
        async with self._intake_lock:
            order = await self.get_order(order_id)
            if order.status not in (OrderStatus.PENDING, OrderStatus.FAILED):
                raise InvalidStateTransitionError("order", order.status.value, OrderStatus.REFUNDED.value)
            if order.is_encrypted and order.mpc_order_index is not None:
                # An activated encrypted order counts toward the MPC total until its batch fails.
                batch = await self._repo.get_batch(order.batch_id) if order.batch_id else None
                if batch is None or batch.status is not BatchStatus.FAILED:
                    raise InvalidOrderError(
                        f"{order_id} is included in the MPC total of its batch; "
                        "it can be refunded once that batch has failed"
                    )
            if req.usdc_amount is not None:
                amount = to_micros(req.usdc_amount)
                check_amount(amount)
            elif not order.is_encrypted:
                amount = order.usdc_amount - (order.effective_usdc_spent or 0)
            else:
                raise InvalidOrderError("refund amount is required for encrypted orders")
            wallet = order.primary_wallet
            if wallet is None:
                raise InvalidOrderError(f"no refund wallet known for {order_id}")

            transition_order(order, OrderStatus.REFUNDED)
            await self._detach(order)
            order.refund_tx_signature = await self._payouts.refund_usdc(wallet, amount)
            order.refund_amount = amount
            order.refund_wallet = wallet
            order.refund_reason = req.reason
            await self._repo.save_order(order)
        logger.info("Order %s refunded: %s", order.id, req.reason)
        return order

    # ------------------------------------------------------------------
    # Batch readiness
    # ------------------------------------------------------------------

    async def mark_batch_ready(self, batch_id: str) -> RelayBatch:
        async with self._intake_lock:
            batch = await self.get_batch(batch_id)
            transition_batch(batch, BatchStatus.READY)
            await self._repo.save_batch(batch)
        logger.info("Batch %s marked ready", batch.id)
        return batch

    def _is_due(self, batch: RelayBatch, now: datetime) -> bool:
        if batch.order_count >= self.config.max_batch_size:
            return True
        timed_out = elapsed_seconds(batch.created_at, now) >= self.config.batch_timeout_seconds
        return timed_out and batch.order_count >= self.config.min_batch_size

    async def ready_batches(self, now: datetime | None = None) -> list[RelayBatch]:
        """Collecting batches that are full, or timed out with enough orders."""
        now = now or utc_now()
        collecting = await self._repo.list_batches(BatchStatus.COLLECTING)
        return [b for b in collecting if self._is_due(b, now)]

    async def promote_ready_batches(self, now: datetime | None = None) -> list[RelayBatch]:
        """Move due batches to ready; returns every batch now awaiting execution."""
        async with self._intake_lock:
            for batch in await self.ready_batches(now):
                transition_batch(batch, BatchStatus.READY)
                await self._repo.save_batch(batch)
                logger.info("Batch %s ready (%d orders)", batch.id, batch.order_count)
        return await self._repo.list_batches(BatchStatus.READY)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute_batch(self, batch_id: str) -> RelayBatch:
        try:
            async with self._batch_locks[batch_id]:
                batch = await self.get_batch(batch_id)
                if batch.status is not BatchStatus.READY:
                    raise InvalidStateTransitionError(
                        "batch", batch.status.value, BatchStatus.EXECUTING.value
                    )
                orders = await self._freeze(batch)
                if not orders:
                    return batch
                if batch.is_encrypted:
                    await self._execute_encrypted(batch, orders)
                else:
                    await self._execute_plain(batch, orders)
                return batch
        finally:
            await self._release_batch_lock(batch_id)

    async def _release_batch_lock(self, batch_id: str) -> None:
        lock = self._batch_locks.get(batch_id)
        if lock is None or lock.locked():
            return
        batch = await self._repo.get_batch(batch_id)
        if batch is None or batch.is_terminal:
            self._batch_locks.pop(batch_id, None)

    async def _freeze(self, batch: RelayBatch) -> list[RelayOrder]:
        """Fix the member set: funded orders stay in commit order, unfunded
        orders move to the next collecting batch for the same market and side."""
        async with self._intake_lock:
            members = await self._repo.get_orders(batch.order_ids)
            funded = [o for o in members if o.is_funded]
            unfunded = [o for o in members if o.status is OrderStatus.PENDING_DEPOSIT]
            batch.order_ids = [o.id for o in funded]
            batch.total_usdc_committed = sum(o.usdc_amount for o in funded)

            if unfunded:
                successor = await self._collecting_batch(batch.market_id, batch.side, batch.is_encrypted)
                for order in unfunded:
                    await self._admit(order, successor)
                logger.info(
                    "Carried %d unfunded order(s) from %s to %s",
                    len(unfunded), batch.id, successor.id,
                )

            if not funded:
                batch.failure_reason = "no funded orders at execution time"
                transition_batch(batch, BatchStatus.FAILED)
                await self._repo.save_batch(batch)
                logger.warning("Batch %s failed: %s", batch.id, batch.failure_reason)
                return []

            for order in funded:
                transition_order(order, OrderStatus.COMMITTED)
                await self._repo.save_order(order)
            next_status = BatchStatus.MPC_COMPUTING if batch.is_encrypted else BatchStatus.EXECUTING
            transition_batch(batch, next_status)
            await self._repo.save_batch(batch)
        logger.info("Batch %s frozen with %d funded order(s)", batch.id, len(funded))
        return funded

    async def _execute_plain(self, batch: RelayBatch, orders: list[RelayOrder]) -> None:
        tree = batch_tree.build(
            [hex_to_field(o.commitment_hash) for o in orders],
            self._hasher,
            max_leaves=2**self.config.tree_depth,
            depth=self.config.tree_depth,
        )
        batch.merkle_root = field_to_hex(tree.root)

        execution = await self._call_venue(batch, orders)
        if execution is None:
            return

        transition_batch(batch, BatchStatus.PROVING)
        allocations = compute_allocations(orders, execution.usdc_spent, execution.shares_received)
        for order, allocation in zip(orders, allocations, strict=True):
            order.effective_usdc_spent = allocation.effective_usdc_spent
            order.shares_received = allocation.shares
            order.refund_amount = allocation.refund
            await self._repo.save_order(order)
        await self._repo.save_batch(batch)

        circuit_inputs = build_circuit_inputs(batch, orders, allocations, tree, self._hasher)
        try:
            proof = await self._prover.generate_proof(circuit_inputs)
        except Exception as e:
            # Allocations stay on the orders for manual reconciliation.
            await self._fail(batch, orders, _failure_reason(e))
            return
        batch.proof = proof.proof
        batch.public_inputs = list(proof.public_inputs)
        batch.proof_verified = proof.self_verified
        transition_batch(batch, BatchStatus.DISTRIBUTING)
        await self._repo.save_batch(batch)

        failed = 0
        for order, allocation in zip(orders, allocations, strict=True):
            try:
                await self._distribute(order, allocation, execution.share_token_mint)
            except Exception as e:
                failed += 1
                order.failure_reason = _failure_reason(e)
                transition_order(order, OrderStatus.FAILED)
                logger.warning("Distribution for order %s failed: %s", order.id, order.failure_reason)
            await self._repo.save_order(order)

        if failed:
            batch.failure_reason = f"payout failed for {failed} order(s)"
            transition_batch(batch, BatchStatus.FAILED)
        else:
            transition_batch(batch, BatchStatus.COMPLETED)
        await self._repo.save_batch(batch)
        logger.info("Batch %s finished as %s", batch.id, batch.status.value)

    async def _call_venue(
        self, batch: RelayBatch, orders: Sequence[RelayOrder]
    ) -> VenueExecution | None:
        for order in orders:
            transition_order(order, OrderStatus.EXECUTING)
            await self._repo.save_order(order)
        try:
            execution = await self._venue.execute(batch.market_id, batch.side, batch.total_usdc_committed)
            if not 0 <= execution.usdc_spent <= batch.total_usdc_committed:
                raise VenueExecutionError(
                    f"reported spend {execution.usdc_spent} outside 0..{batch.total_usdc_committed}"
                )
            if execution.shares_received < 0:
                raise VenueExecutionError(f"negative shares received: {execution.shares_received}")
        except Exception as e:
            await self._fail(batch, orders, _failure_reason(e))
            return None

        batch.actual_usdc_spent = execution.usdc_spent
        batch.actual_shares_received = execution.shares_received
        batch.fill_percentage = execution.fill_percentage
        batch.average_price = execution.average_price
        batch.share_token_mint = execution.share_token_mint
        logger.info(
            "Batch %s executed: spent=%d shares=%d fill=%.1f%%",
            batch.id, execution.usdc_spent, execution.shares_received, execution.fill_percentage,
        )
        return execution

    async def _distribute(
        self, order: RelayOrder, allocation: OrderAllocation, share_token_mint: str | None
    ) -> None:
        # Recorded per transfer; a later failure keeps the earlier signatures.
        order.distribution_results = []
        for wallet, shares in split_order_shares(order, allocation.shares):
            signature = None
            if shares > 0:
                signature = await self._payouts.transfer_shares(wallet, shares, share_token_mint)
            order.distribution_results.append(
                DistributionResult(wallet=wallet, shares_amount=shares, tx_signature=signature)
            )

        if allocation.refund > 0:
            wallet = order.primary_wallet
            assert wallet is not None
            order.refund_tx_signature = await self._payouts.refund_usdc(wallet, allocation.refund)
            order.refund_wallet = wallet
            order.refund_reason = "partial fill" if allocation.shares > 0 else "order not filled"

        target = OrderStatus.COMPLETED if allocation.shares > 0 else OrderStatus.REFUNDED
        transition_order(order, target)

    async def _execute_encrypted(self, batch: RelayBatch, orders: list[RelayOrder]) -> None:
        assert self._mpc is not None
        try:
            total = await self._mpc.close_batch_and_reveal_total(batch.id)
        except Exception as e:
            await self._fail(batch, orders, _failure_reason(e))
            return
        batch.mpc_revealed_total = total
        batch.total_usdc_committed = total
        transition_batch(batch, BatchStatus.EXECUTING)
        await self._repo.save_batch(batch)

        execution = await self._call_venue(batch, orders)
        if execution is None:
            return
        transition_batch(batch, BatchStatus.MPC_DISTRIBUTING)
        await self._repo.save_batch(batch)

        ordered = sorted(orders, key=lambda o: o.mpc_order_index or 0)
        for position, order in enumerate(ordered):
            assert order.mpc_order_index is not None
            try:
                instruction = await self._mpc.get_distribution_instruction(
                    batch.id, order.mpc_order_index, execution.shares_received
                )
                signature = await self._payouts.transfer_shares(
                    instruction.destination_wallet, instruction.shares_amount, execution.share_token_mint
                )
            except Exception as e:
                await self._fail(batch, ordered[position:], _failure_reason(e))
                return
            order.shares_received = instruction.shares_amount
            order.distribution_results = [
                DistributionResult(
                    wallet=instruction.destination_wallet,
                    shares_amount=instruction.shares_amount,
                    tx_signature=signature,
                )
            ]
            transition_order(order, OrderStatus.COMPLETED)
            await self._repo.save_order(order)

        await self._mpc.complete_batch(batch.id)
        transition_batch(batch, BatchStatus.COMPLETED)
        await self._repo.save_batch(batch)
        logger.info("Encrypted batch %s completed", batch.id)

    async def _fail(self, batch: RelayBatch, orders: Sequence[RelayOrder], reason: str) -> None:
        batch.failure_reason = reason
        transition_batch(batch, BatchStatus.FAILED)
        for order in orders:
            if not order.is_terminal:
                order.failure_reason = reason
                transition_order(order, OrderStatus.FAILED)
            await self._repo.save_order(order)
        await self._repo.save_batch(batch)
        logger.warning("Batch %s failed: %s", batch.id, reason)
