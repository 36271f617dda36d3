"""Shared test fixtures."""

import hashlib
from collections.abc import Sequence
from unittest.mock import AsyncMock

import pytest

from src.pm_crypto.field import BN254_PRIME
from src.pm_relay.domain.ports import GeneratedProof, VenueExecution


class FakeHasher:
    """Deterministic stand-in for Poseidon: SHA-256 over the inputs, mod P.

    Arity is mixed into the digest so hash2(a, b) never equals hash_n([a, b])
    by accident of padding.
    """

    def _hash(self, inputs: Sequence[int]) -> int:
        data = bytes([len(inputs)]) + b"".join(
            (v % BN254_PRIME).to_bytes(32, "big") for v in inputs
        )
        return int.from_bytes(hashlib.sha256(data).digest(), "big") % BN254_PRIME

    def hash2(self, left: int, right: int) -> int:
        return self._hash([left, right])

    def hash5(self, inputs: Sequence[int]) -> int:
        assert len(inputs) == 5
        return self._hash(inputs)

    def hash_n(self, inputs: Sequence[int]) -> int:
        return self._hash(inputs)


@pytest.fixture
def hasher() -> FakeHasher:
    return FakeHasher()


def full_fill(market_id: str, side: object, usdc_amount: int) -> VenueExecution:
    """Venue side effect: spend everything, one share per two micros."""
    return VenueExecution(
        usdc_spent=usdc_amount,
        shares_received=usdc_amount * 2,
        fill_percentage=100.0,
        share_token_mint="MintYes111111111111111111111111111111111111",
        average_price="0.50",
    )


@pytest.fixture
def venue() -> AsyncMock:
    mock = AsyncMock()
    mock.execute.side_effect = full_fill
    return mock


@pytest.fixture
def prover() -> AsyncMock:
    mock = AsyncMock()
    mock.generate_proof.return_value = GeneratedProof(
        proof="0xdeadbeef", public_inputs=["1", "2"], self_verified=True
    )
    mock.verify_proof.return_value = True
    return mock


@pytest.fixture
def payouts() -> AsyncMock:
    mock = AsyncMock()
    mock.transfer_shares.return_value = "sig-transfer"
    mock.refund_usdc.return_value = "sig-refund"
    return mock
