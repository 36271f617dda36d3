# src/pm_relay/application/schemas.py
import base64
import binascii
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, field_validator

from src.pm_relay.domain.models import RelayBatch, RelayOrder


class DistributionEntryIn(BaseModel):
    wallet: str
    percentage: int  # basis points, 10000 = 100%


class SubmitOrderRequest(BaseModel):
    market_id: str
    side: Literal["YES", "NO"]
    usdc_amount: Decimal
    distribution: list[DistributionEntryIn] | None = None
    destination_wallet: str | None = None  # legacy single destination
    salt: str | None = None

    @field_validator("market_id")
    @classmethod
    def no_whitespace(cls, v: str) -> str:
        if not v or v != v.strip() or " " in v:
            raise ValueError("market_id must not contain whitespace")
        return v


class EncryptedDataIn(BaseModel):
    ciphertext: str  # base64
    public_key: str  # base64
    nonce: str  # base64

    @field_validator("ciphertext", "public_key", "nonce")
    @classmethod
    def is_base64(cls, v: str) -> str:
        try:
            decoded = base64.b64decode(v, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError("must be base64") from e
        if not decoded:
            raise ValueError("must not be empty")
        return v

    def decoded(self) -> tuple[bytes, bytes, bytes]:
        return (
            base64.b64decode(self.ciphertext),
            base64.b64decode(self.public_key),
            base64.b64decode(self.nonce),
        )


class SubmitEncryptedOrderRequest(BaseModel):
    market_id: str
    side: Literal["YES", "NO"]
    encrypted_data: EncryptedDataIn


class ActivateOrderRequest(BaseModel):
    deposit_tx_signature: str
    sender_wallet: str


class RefundOrderRequest(BaseModel):
    reason: str
    usdc_amount: Decimal | None = None  # required for encrypted orders


class DistributionResultResponse(BaseModel):
    wallet: str
    shares_amount: int
    tx_signature: str | None = None


class OrderResponse(BaseModel):
    id: str
    batch_id: str | None
    market_id: str
    side: str
    status: str
    is_encrypted: bool
    usdc_amount: int | None
    commitment_hash: str | None
    mpc_order_index: int | None = None
    effective_usdc_spent: int | None = None
    shares_received: int | None = None
    refund_amount: int | None = None
    distribution_results: list[DistributionResultResponse] = []
    refund_tx_signature: str | None = None
    refund_reason: str | None = None
    failure_reason: str | None = None
    deposit_expires_at: datetime | None = None
    deposit_confirmed_at: datetime | None = None
    created_at: datetime
    executed_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_domain(cls, o: RelayOrder) -> "OrderResponse":
        return cls(
            id=o.id,
            batch_id=o.batch_id,
            market_id=o.market_id,
            side=o.side.value,
            status=o.status.value,
            is_encrypted=o.is_encrypted,
            # Hidden fields stay hidden for encrypted orders.
            usdc_amount=None if o.is_encrypted else o.usdc_amount,
            commitment_hash=None if o.is_encrypted else o.commitment_hash,
            mpc_order_index=o.mpc_order_index,
            effective_usdc_spent=o.effective_usdc_spent,
            shares_received=o.shares_received,
            refund_amount=o.refund_amount,
            distribution_results=[
                DistributionResultResponse(
                    wallet=r.wallet, shares_amount=r.shares_amount, tx_signature=r.tx_signature
                )
                for r in o.distribution_results
            ],
            refund_tx_signature=o.refund_tx_signature,
            refund_reason=o.refund_reason,
            failure_reason=o.failure_reason,
            deposit_expires_at=o.deposit_expires_at,
            deposit_confirmed_at=o.deposit_confirmed_at,
            created_at=o.created_at,
            executed_at=o.executed_at,
            completed_at=o.completed_at,
        )


class BatchResponse(BaseModel):
    id: str
    market_id: str
    side: str
    status: str
    is_encrypted: bool
    order_ids: list[str]
    order_count: int
    total_usdc_committed: int
    merkle_root: str | None = None
    actual_usdc_spent: int | None = None
    actual_shares_received: int | None = None
    fill_percentage: float | None = None
    average_price: str | None = None
    proof: str | None = None
    public_inputs: list[str] = []
    proof_verified: bool | None = None
    mpc_revealed_total: int | None = None
    failure_reason: str | None = None
    created_at: datetime
    ready_at: datetime | None = None
    executed_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_domain(cls, b: RelayBatch) -> "BatchResponse":
        return cls(
            id=b.id,
            market_id=b.market_id,
            side=b.side.value,
            status=b.status.value,
            is_encrypted=b.is_encrypted,
            order_ids=list(b.order_ids),
            order_count=b.order_count,
            total_usdc_committed=b.total_usdc_committed,
            merkle_root=b.merkle_root,
            actual_usdc_spent=b.actual_usdc_spent,
            actual_shares_received=b.actual_shares_received,
            fill_percentage=b.fill_percentage,
            average_price=b.average_price,
            proof=b.proof,
            public_inputs=list(b.public_inputs),
            proof_verified=b.proof_verified,
            mpc_revealed_total=b.mpc_revealed_total,
            failure_reason=b.failure_reason,
            created_at=b.created_at,
            ready_at=b.ready_at,
            executed_at=b.executed_at,
            completed_at=b.completed_at,
        )


class BatchListResponse(BaseModel):
    items: list[BatchResponse]


class RelayConfigResponse(BaseModel):
    max_batch_size: int
    min_batch_size: int
    batch_timeout_seconds: float
    deposit_window_seconds: float
    allowed_markets: list[str]
    mpc_enabled: bool
    circuit: dict[str, object]
