"""Relay domain model: pure dataclasses, no persistence dependency.

All amounts are int micros (6 implied decimals).
"""
from dataclasses import dataclass, field
from datetime import datetime

from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import BatchStatus, OrderStatus, Side
from src.pm_crypto.commitment import DistributionEntry, OrderCommitment
from src.pm_mpc.domain.models import EncryptedOrder

ORDER_TERMINAL_STATUSES = frozenset(
    {OrderStatus.COMPLETED, OrderStatus.REFUNDED, OrderStatus.FAILED, OrderStatus.EXPIRED}
)
BATCH_TERMINAL_STATUSES = frozenset({BatchStatus.COMPLETED, BatchStatus.FAILED})


@dataclass(frozen=True)
class RelayConfig:
    max_batch_size: int = 32
    min_batch_size: int = 1
    batch_timeout_seconds: float = 60
    deposit_window_seconds: float = 3600
    tree_depth: int = 5
    allowed_markets: frozenset[str] = frozenset()  # empty = every market
    mpc_enabled: bool = False

    def __post_init__(self) -> None:
        if self.max_batch_size > 2**self.tree_depth:
            raise ValueError(
                f"max_batch_size {self.max_batch_size} exceeds tree capacity {2**self.tree_depth}"
            )
        if not 1 <= self.min_batch_size <= self.max_batch_size:
            raise ValueError("min_batch_size must be in [1, max_batch_size]")

    def market_allowed(self, market_id: str) -> bool:
        return not self.allowed_markets or market_id in self.allowed_markets


@dataclass
class DistributionResult:
    wallet: str
    shares_amount: int
    tx_signature: str | None = None


@dataclass
class RelayOrder:
    id: str
    market_id: str
    side: Side
    status: OrderStatus = OrderStatus.PENDING_DEPOSIT
    batch_id: str | None = None
    is_encrypted: bool = False
    # Commitment data; left empty for encrypted orders
    usdc_amount: int = 0
    salt: str = ""
    commitment_hash: str = ""
    distribution: list[DistributionEntry] = field(default_factory=list)
    destination_wallet: str | None = None  # legacy single-destination orders
    # Encrypted orders only
    encrypted_data: EncryptedOrder | None = None
    mpc_order_index: int | None = None
    # Execution results
    effective_usdc_spent: int | None = None
    shares_received: int | None = None
    refund_amount: int | None = None
    distribution_results: list[DistributionResult] = field(default_factory=list)
    refund_tx_signature: str | None = None
    refund_wallet: str | None = None
    refund_reason: str | None = None
    failure_reason: str | None = None
    # Deposit tracking
    deposit_tx_signature: str | None = None
    deposit_sender_wallet: str | None = None
    deposit_confirmed_at: datetime | None = None
    deposit_expires_at: datetime | None = None
    # Timestamps
    created_at: datetime = field(default_factory=utc_now)
    executed_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in ORDER_TERMINAL_STATUSES

    @property
    def is_funded(self) -> bool:
        return self.status is OrderStatus.PENDING

    @property
    def primary_wallet(self) -> str | None:
        if self.distribution:
            return self.distribution[0].wallet
        return self.destination_wallet or self.deposit_sender_wallet

    def to_commitment(self) -> OrderCommitment:
        return OrderCommitment(
            market_id=self.market_id,
            side=self.side,
            usdc_amount=self.usdc_amount,
            salt=self.salt,
            distribution=() if self.destination_wallet else tuple(self.distribution),
            destination_wallet=self.destination_wallet,
        )


@dataclass
class RelayBatch:
    id: str
    market_id: str
    side: Side
    status: BatchStatus = BatchStatus.COLLECTING
    is_encrypted: bool = False
    order_ids: list[str] = field(default_factory=list)
    total_usdc_committed: int = 0
    merkle_root: str | None = None
    # Venue results
    actual_usdc_spent: int | None = None
    actual_shares_received: int | None = None
    fill_percentage: float | None = None
    average_price: str | None = None
    share_token_mint: str | None = None
    # Proof
    proof: str | None = None
    public_inputs: list[str] = field(default_factory=list)
    proof_verified: bool | None = None
    # MPC
    mpc_revealed_total: int | None = None
    failure_reason: str | None = None
    # Timestamps
    created_at: datetime = field(default_factory=utc_now)
    ready_at: datetime | None = None
    executed_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def order_count(self) -> int:
        return len(self.order_ids)

    @property
    def is_terminal(self) -> bool:
        return self.status in BATCH_TERMINAL_STATUSES
