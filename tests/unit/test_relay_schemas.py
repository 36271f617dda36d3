"""Tests for relay request/response schemas."""
import base64
from decimal import Decimal

import pytest
from pydantic import ValidationError

from src.pm_common.enums import Side
from src.pm_mpc.domain.models import EncryptedOrder
from src.pm_relay.application.schemas import (
    BatchResponse,
    EncryptedDataIn,
    OrderResponse,
    SubmitOrderRequest,
)
from src.pm_relay.domain.models import RelayBatch, RelayOrder


class TestRequests:
    def test_side_must_be_yes_or_no(self) -> None:
        with pytest.raises(ValidationError):
            SubmitOrderRequest(market_id="mkt", side="MAYBE", usdc_amount=Decimal("1"))

    def test_market_id_whitespace(self) -> None:
        with pytest.raises(ValidationError):
            SubmitOrderRequest(market_id="mkt 1", side="YES", usdc_amount=Decimal("1"))

    def test_encrypted_data_must_be_base64(self) -> None:
        good = base64.b64encode(b"x").decode()
        with pytest.raises(ValidationError):
            EncryptedDataIn(ciphertext="***", public_key=good, nonce=good)
        with pytest.raises(ValidationError):
            EncryptedDataIn(ciphertext="", public_key=good, nonce=good)

    def test_encrypted_data_decoded(self) -> None:
        data = EncryptedDataIn(
            ciphertext=base64.b64encode(b"ct").decode(),
            public_key=base64.b64encode(b"pk").decode(),
            nonce=base64.b64encode(b"nn").decode(),
        )
        assert data.decoded() == (b"ct", b"pk", b"nn")


class TestResponses:
    def test_plain_order_shows_amount(self) -> None:
        order = RelayOrder(
            id="ord_1", market_id="mkt", side=Side.YES, usdc_amount=5, commitment_hash="0xabc"
        )
        resp = OrderResponse.from_domain(order)
        assert resp.usdc_amount == 5
        assert resp.commitment_hash == "0xabc"
        assert resp.status == "pending_deposit"

    def test_encrypted_order_hides_amount(self) -> None:
        order = RelayOrder(
            id="ord_2",
            market_id="mkt",
            side=Side.NO,
            is_encrypted=True,
            encrypted_data=EncryptedOrder(b"ct", bytes(32), bytes(16)),
            mpc_order_index=0,
        )
        resp = OrderResponse.from_domain(order)
        assert resp.usdc_amount is None
        assert resp.commitment_hash is None
        assert resp.mpc_order_index == 0

    def test_batch_response(self) -> None:
        batch = RelayBatch(id="b1", market_id="mkt", side=Side.YES, order_ids=["a", "b"])
        resp = BatchResponse.from_domain(batch)
        assert resp.order_count == 2
        assert resp.status == "collecting"
        assert "created_at" in resp.model_dump(mode="json")
