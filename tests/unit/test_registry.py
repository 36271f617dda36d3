"""Tests for NullifierRegistry: double-spend protection and proof acceptance."""
import asyncio
from dataclasses import replace
from unittest.mock import AsyncMock

import pytest

from src.pm_common.enums import ErrorKind
from src.pm_common.errors import DoubleSpendError
from src.pm_crypto.field import field_to_hex
from src.pm_merkle.balance_tree import BalanceMerkleTree
from src.pm_privacy.domain.models import BalanceProofRequest
from src.pm_privacy.domain.registry import NullifierRegistry, canonical_hex
from src.pm_privacy.infrastructure.memory_store import MemoryNullifierStore

ZERO = field_to_hex(0)


@pytest.fixture
def verifier() -> AsyncMock:
    mock = AsyncMock()
    mock.verify_proof.return_value = True
    return mock


@pytest.fixture
def registry(hasher, verifier) -> NullifierRegistry:
    tree = BalanceMerkleTree(hasher, depth=5)
    return NullifierRegistry(MemoryNullifierStore(), tree, verifier)


def _request(registry: NullifierRegistry, nullifier: int, change: int = 777, **kwargs):
    defaults = dict(
        proof="0xabcdef",
        merkle_root=registry.tree.root_hex(),
        nullifier=field_to_hex(nullifier),
        new_commitment=field_to_hex(change),
        order_commitment=field_to_hex(555),
    )
    defaults.update(kwargs)
    return BalanceProofRequest(**defaults)


class TestNullifiers:
    async def test_record_then_used(self, registry) -> None:
        await registry.record_nullifier(field_to_hex(1))
        assert await registry.is_nullifier_used(field_to_hex(1))
        assert not await registry.is_nullifier_used(field_to_hex(2))
        assert await registry.nullifier_count() == 1

    async def test_second_record_rejected(self, registry) -> None:
        await registry.record_nullifier(field_to_hex(1))
        with pytest.raises(DoubleSpendError):
            await registry.record_nullifier(field_to_hex(1))

    async def test_equal_field_values_share_a_key(self, registry) -> None:
        await registry.record_nullifier("0x1")
        assert await registry.is_nullifier_used(field_to_hex(1))
        assert canonical_hex("0X01") == field_to_hex(1)

    async def test_concurrent_records_exactly_one_wins(self, registry) -> None:
        nullifier = field_to_hex(42)
        results = await asyncio.gather(
            *(registry.record_nullifier(nullifier) for _ in range(100)),
            return_exceptions=True,
        )
        successes = [r for r in results if r is None]
        failures = [r for r in results if isinstance(r, DoubleSpendError)]
        assert len(successes) == 1
        assert len(failures) == 99
        assert await registry.nullifier_count() == 1


class TestCommitments:
    async def test_add_commitment(self, registry) -> None:
        assert await registry.add_commitment(field_to_hex(10)) == 0
        assert await registry.add_commitment(field_to_hex(11)) == 1
        assert registry.tree.leaves == (10, 11)

    async def test_leaf_store_persists_and_restores(self, hasher, verifier) -> None:
        leaf_store = AsyncMock()
        registry = NullifierRegistry(
            MemoryNullifierStore(), BalanceMerkleTree(hasher), verifier, leaf_store
        )
        await registry.add_commitment(field_to_hex(10))
        leaf_store.save.assert_awaited_once_with(0, field_to_hex(10))

        leaf_store.load_all.return_value = [field_to_hex(1), field_to_hex(2)]
        restored = NullifierRegistry(
            MemoryNullifierStore(), BalanceMerkleTree(hasher), verifier, leaf_store
        )
        assert await restored.restore() == 2
        assert restored.tree.leaves == (1, 2)

    async def test_failed_leaf_write_leaves_tree_unchanged(self, hasher, verifier) -> None:
        leaf_store = AsyncMock()
        leaf_store.save.side_effect = RuntimeError("leaf store down")
        tree = BalanceMerkleTree(hasher)
        registry = NullifierRegistry(MemoryNullifierStore(), tree, verifier, leaf_store)
        with pytest.raises(RuntimeError):
            await registry.add_commitment(field_to_hex(10))
        assert tree.leaf_count == 0

    async def test_restore_without_store_is_noop(self, registry) -> None:
        assert await registry.restore() == 0


class TestProcessBalanceProof:
    async def test_accepted_with_change(self, registry, verifier) -> None:
        request = _request(registry, nullifier=1, change=777)
        result = await registry.process_balance_proof(request)
        assert result.valid
        assert result.new_leaf_index == 0
        assert registry.tree.leaves == (777,)
        assert await registry.is_nullifier_used(field_to_hex(1))
        verifier.verify_proof.assert_awaited_once_with(request.proof, request.public_inputs)

    async def test_zero_change_appends_nothing(self, registry) -> None:
        result = await registry.process_balance_proof(
            _request(registry, nullifier=1, new_commitment=ZERO)
        )
        assert result.valid
        assert result.new_leaf_index is None
        assert registry.tree.leaf_count == 0

    async def test_replay_is_double_spend(self, registry) -> None:
        await registry.process_balance_proof(_request(registry, nullifier=1))
        result = await registry.process_balance_proof(_request(registry, nullifier=1))
        assert not result.valid
        assert result.error is ErrorKind.DOUBLE_SPEND

    async def test_old_root_rejected_after_append(self, registry) -> None:
        old_root = registry.tree.root_hex()
        await registry.add_commitment(field_to_hex(5))
        result = await registry.process_balance_proof(
            _request(registry, nullifier=1, merkle_root=old_root)
        )
        assert result.error is ErrorKind.STALE_ROOT
        assert not await registry.is_nullifier_used(field_to_hex(1))

    async def test_failed_verification(self, registry, verifier) -> None:
        verifier.verify_proof.return_value = False
        result = await registry.process_balance_proof(_request(registry, nullifier=1))
        assert result.error is ErrorKind.INVALID_PROOF
        assert not await registry.is_nullifier_used(field_to_hex(1))
        assert registry.tree.leaf_count == 0

    async def test_malformed_proof_skips_verifier(self, registry, verifier) -> None:
        result = await registry.process_balance_proof(
            _request(registry, nullifier=1, proof="not hex")
        )
        assert result.error is ErrorKind.INVALID_PROOF
        verifier.verify_proof.assert_not_awaited()

    async def test_malformed_nullifier(self, registry) -> None:
        request = replace(_request(registry, nullifier=1), nullifier="zz")
        result = await registry.process_balance_proof(request)
        assert result.error is ErrorKind.INVALID_PROOF

    async def test_full_tree_rejects_before_recording(self, hasher, verifier) -> None:
        registry = NullifierRegistry(
            MemoryNullifierStore(), BalanceMerkleTree(hasher, depth=1), verifier
        )
        await registry.add_commitment(field_to_hex(1))
        await registry.add_commitment(field_to_hex(2))
        result = await registry.process_balance_proof(_request(registry, nullifier=9))
        assert result.error is ErrorKind.CAPACITY
        assert not await registry.is_nullifier_used(field_to_hex(9))

    async def test_full_tree_accepts_zero_change(self, hasher, verifier) -> None:
        registry = NullifierRegistry(
            MemoryNullifierStore(), BalanceMerkleTree(hasher, depth=1), verifier
        )
        await registry.add_commitment(field_to_hex(1))
        await registry.add_commitment(field_to_hex(2))
        result = await registry.process_balance_proof(
            _request(registry, nullifier=9, new_commitment=ZERO)
        )
        assert result.valid

    async def test_concurrent_submissions_one_accepted(self, registry) -> None:
        results = await asyncio.gather(
            *(registry.process_balance_proof(_request(registry, nullifier=3)) for _ in range(5))
        )
        accepted = [r for r in results if r.valid]
        assert len(accepted) == 1
        assert all(r.error is ErrorKind.DOUBLE_SPEND for r in results if not r.valid)
        assert registry.tree.leaf_count == 1

    async def test_root_moves_during_verification(self, registry, verifier) -> None:
        async def _verify_while_tree_grows(proof, public_inputs) -> bool:
            registry.tree.append(4242)
            return True

        verifier.verify_proof.side_effect = _verify_while_tree_grows
        result = await registry.process_balance_proof(_request(registry, nullifier=1))
        assert result.error is ErrorKind.STALE_ROOT
        assert not await registry.is_nullifier_used(field_to_hex(1))

    async def test_verifier_outage_propagates(self, registry, verifier) -> None:
        verifier.verify_proof.side_effect = RuntimeError("verifier down")
        with pytest.raises(RuntimeError):
            await registry.process_balance_proof(_request(registry, nullifier=1))

    async def test_leaf_store_failure_releases_nullifier(self, hasher, verifier) -> None:
        leaf_store = AsyncMock()
        leaf_store.save.side_effect = RuntimeError("leaf store down")
        tree = BalanceMerkleTree(hasher)
        registry = NullifierRegistry(MemoryNullifierStore(), tree, verifier, leaf_store)
        root_before = tree.root

        with pytest.raises(RuntimeError):
            await registry.process_balance_proof(_request(registry, nullifier=5))
        assert not await registry.is_nullifier_used(field_to_hex(5))
        assert tree.leaf_count == 0
        assert tree.root == root_before

        leaf_store.save.side_effect = None
        result = await registry.process_balance_proof(_request(registry, nullifier=5))
        assert result.valid
        assert result.new_leaf_index == 0
