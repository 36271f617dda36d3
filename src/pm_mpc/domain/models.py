"""MPC coordinator domain objects and the network port."""
from dataclasses import dataclass
from typing import Protocol

from src.pm_common.enums import MpcBatchStatus, Side


@dataclass(frozen=True)
class EncryptedOrder:
    """Client-side encrypted order. The relay stores it but cannot read it."""
    ciphertext: bytes
    public_key: bytes  # ephemeral x25519 key
    nonce: bytes


@dataclass
class MpcBatchState:
    batch_id: str
    market_id: str
    side: Side
    order_count: int = 0
    status: MpcBatchStatus = MpcBatchStatus.COLLECTING
    revealed_total: int | None = None  # micros, set once the aggregate is revealed


@dataclass(frozen=True)
class DistributionInstruction:
    order_index: int
    shares_amount: int  # micros
    destination_wallet: str


class MpcNetwork(Protocol):
    async def send_instruction(self, batch_id: str, data: bytes) -> str:
        """Submit an encoded instruction; returns the network's reference for it."""
        ...

    async def fetch_batch_account(self, batch_id: str) -> bytes | None: ...

    async def fetch_distribution(
        self, batch_id: str, order_index: int
    ) -> DistributionInstruction | None: ...
