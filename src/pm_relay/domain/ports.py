# src/pm_relay/domain/ports.py
"""External collaborators of the batch lifecycle.

Adapters raise VenueExecutionError / ProofGenerationError / PayoutError on
failure; the lifecycle never retries them itself.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from src.pm_common.enums import Side


@dataclass(frozen=True)
class VenueExecution:
    usdc_spent: int  # micros
    shares_received: int  # micros
    fill_percentage: float  # 0-100
    share_token_mint: str | None = None
    average_price: str | None = None


@dataclass(frozen=True)
class GeneratedProof:
    proof: str  # hex
    public_inputs: list[str]
    self_verified: bool


class TradeVenue(Protocol):
    async def execute(self, market_id: str, side: Side, usdc_amount: int) -> VenueExecution: ...


class Prover(Protocol):
    async def generate_proof(self, circuit_inputs: dict[str, Any]) -> GeneratedProof: ...

    async def verify_proof(self, proof: str, public_inputs: Sequence[str]) -> bool: ...


class PayoutExecutor(Protocol):
    async def transfer_shares(
        self, wallet: str, shares_amount: int, share_token_mint: str | None
    ) -> str:
        """Send shares; returns the transaction reference."""
        ...

    async def refund_usdc(self, wallet: str, usdc_amount: int) -> str: ...
