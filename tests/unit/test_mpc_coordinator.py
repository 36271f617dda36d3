"""Tests for bounded polling and the MPC reveal coordinator."""
import asyncio
import struct
from unittest.mock import AsyncMock

import pytest

from src.pm_common.enums import MpcBatchStatus, Side
from src.pm_common.errors import MpcError, MpcTimeoutError
from src.pm_mpc.application.coordinator import MpcRevealCoordinator
from src.pm_mpc.application.polling import PollPolicy, poll_until
from src.pm_mpc.domain.models import DistributionInstruction, EncryptedOrder

FAST = PollPolicy(timeout=0.5, interval=0.01)
WALLET = "So11111111111111111111111111111111111111112"


def _revealed_account(total: int) -> bytes:
    data = bytearray(67)
    struct.pack_into("<Q", data, 58, total)
    data[66] = 1
    return bytes(data)


def _encrypted() -> EncryptedOrder:
    return EncryptedOrder(ciphertext=b"ct", public_key=bytes(32), nonce=bytes(16))


@pytest.fixture
def network() -> AsyncMock:
    mock = AsyncMock()
    mock.send_instruction.return_value = "sig"
    mock.fetch_batch_account.return_value = _revealed_account(9_000_000)

    async def _distribution(batch_id: str, order_index: int) -> DistributionInstruction:
        return DistributionInstruction(order_index, 1_000_000 * (order_index + 1), WALLET)

    mock.fetch_distribution.side_effect = _distribution
    return mock


@pytest.fixture
def coordinator(network) -> MpcRevealCoordinator:
    return MpcRevealCoordinator(network, FAST, FAST)


async def _revealed_batch(coordinator: MpcRevealCoordinator, orders: int = 2) -> None:
    await coordinator.init_batch("b1", "mkt", Side.YES)
    for i in range(orders):
        await coordinator.add_encrypted_order("b1", _encrypted(), i)
    await coordinator.close_batch_and_reveal_total("b1")


class TestPollUntil:
    async def test_returns_first_value(self) -> None:
        fetch = AsyncMock(side_effect=[None, None, 42])
        assert await poll_until(fetch, FAST, "settlement") == 42
        assert fetch.await_count == 3

    async def test_timeout(self) -> None:
        fetch = AsyncMock(return_value=None)
        with pytest.raises(MpcTimeoutError) as exc:
            await poll_until(fetch, PollPolicy(timeout=0.05, interval=0.01), "settlement")
        assert "settlement" in exc.value.message

    def test_policy_validation(self) -> None:
        with pytest.raises(ValueError):
            PollPolicy(timeout=0)
        with pytest.raises(ValueError):
            PollPolicy(timeout=1, backoff=0.5)


class TestBatchLifecycle:
    async def test_init_twice(self, coordinator) -> None:
        await coordinator.init_batch("b1", "mkt", Side.YES)
        with pytest.raises(MpcError):
            await coordinator.init_batch("b1", "mkt", Side.YES)

    async def test_orders_must_be_sequential(self, coordinator) -> None:
        await coordinator.init_batch("b1", "mkt", Side.YES)
        await coordinator.add_encrypted_order("b1", _encrypted(), 0)
        with pytest.raises(MpcError):
            await coordinator.add_encrypted_order("b1", _encrypted(), 2)
        assert coordinator.batch_state("b1").order_count == 1

    async def test_unknown_batch(self, coordinator) -> None:
        with pytest.raises(MpcError):
            await coordinator.add_encrypted_order("nope", _encrypted(), 0)

    async def test_reveal_total(self, coordinator, network) -> None:
        await _revealed_batch(coordinator)
        state = coordinator.batch_state("b1")
        assert state.revealed_total == 9_000_000
        assert state.status is MpcBatchStatus.REVEALED
        assert network.send_instruction.await_count == 4

    async def test_reveal_waits_for_closed_status(self, coordinator, network) -> None:
        network.fetch_batch_account.side_effect = [None, bytes(67), _revealed_account(5)]
        await coordinator.init_batch("b1", "mkt", Side.YES)
        assert await coordinator.close_batch_and_reveal_total("b1") == 5
        assert network.fetch_batch_account.await_count == 3

    async def test_reveal_timeout(self, network) -> None:
        network.fetch_batch_account.return_value = None
        coordinator = MpcRevealCoordinator(network, PollPolicy(timeout=0.05, interval=0.01), FAST)
        await coordinator.init_batch("b1", "mkt", Side.YES)
        with pytest.raises(MpcTimeoutError):
            await coordinator.close_batch_and_reveal_total("b1")

    async def test_no_orders_after_close(self, coordinator) -> None:
        await _revealed_batch(coordinator, orders=1)
        with pytest.raises(MpcError):
            await coordinator.add_encrypted_order("b1", _encrypted(), 1)

    async def test_complete(self, coordinator) -> None:
        await _revealed_batch(coordinator)
        await coordinator.complete_batch("b1")
        assert coordinator.batch_state("b1").status is MpcBatchStatus.COMPLETED


class TestDistributionReveal:
    async def test_requires_revealed_total(self, coordinator) -> None:
        await coordinator.init_batch("b1", "mkt", Side.YES)
        await coordinator.add_encrypted_order("b1", _encrypted(), 0)
        with pytest.raises(MpcError):
            await coordinator.get_distribution_instruction("b1", 0, 100)

    async def test_index_must_exist(self, coordinator) -> None:
        await _revealed_batch(coordinator)
        with pytest.raises(MpcError):
            await coordinator.get_distribution_instruction("b1", 2, 100)

    async def test_single_instruction(self, coordinator) -> None:
        await _revealed_batch(coordinator)
        instruction = await coordinator.get_distribution_instruction("b1", 1, 3_000_000)
        assert instruction.shares_amount == 2_000_000
        assert instruction.destination_wallet == WALLET
        assert coordinator.batch_state("b1").status is MpcBatchStatus.DISTRIBUTING

    async def test_mismatched_index(self, coordinator, network) -> None:
        await _revealed_batch(coordinator)
        network.fetch_distribution.side_effect = None
        network.fetch_distribution.return_value = DistributionInstruction(1, 5, WALLET)
        with pytest.raises(MpcError):
            await coordinator.get_distribution_instruction("b1", 0, 100)

    async def test_one_reveal_at_a_time(self, coordinator, network) -> None:
        await _revealed_batch(coordinator, orders=3)
        in_flight = 0
        peak = 0

        async def _slow_distribution(batch_id: str, order_index: int) -> DistributionInstruction:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.02)
            in_flight -= 1
            return DistributionInstruction(order_index, 1, WALLET)

        network.fetch_distribution.side_effect = _slow_distribution
        results = await asyncio.gather(
            *(coordinator.get_distribution_instruction("b1", i, 3) for i in range(3))
        )
        assert [r.order_index for r in results] == [0, 1, 2]
        assert peak == 1

    async def test_cancel_in_flight_reveal(self, network) -> None:
        network.fetch_batch_account.return_value = None
        coordinator = MpcRevealCoordinator(network, PollPolicy(timeout=5, interval=0.01), FAST)
        await coordinator.init_batch("b1", "mkt", Side.YES)
        task = asyncio.create_task(coordinator.close_batch_and_reveal_total("b1"))
        await asyncio.sleep(0.05)
        assert coordinator.cancel("b1")
        with pytest.raises(MpcError):
            await task
        assert not coordinator.cancel("b1")
