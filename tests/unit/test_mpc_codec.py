"""Tests for the MPC instruction codec and batch-account decoding."""
import struct

import pytest

from src.pm_common.enums import Side
from src.pm_common.errors import MpcError
from src.pm_mpc.domain.codec import (
    ADD_ORDER_DISCRIMINATOR,
    CLOSE_BATCH_DISCRIMINATOR,
    CREATE_BATCH_DISCRIMINATOR,
    GET_DISTRIBUTION_DISCRIMINATOR,
    decode_batch_account,
    encode_add_order,
    encode_close_batch,
    encode_create_batch,
    encode_get_distribution,
)
from src.pm_mpc.domain.models import EncryptedOrder


def _order(**kwargs) -> EncryptedOrder:
    defaults = dict(ciphertext=b"\x01\x02\x03", public_key=bytes(range(32)), nonce=bytes(16))
    defaults.update(kwargs)
    return EncryptedOrder(**defaults)


class TestEncode:
    def test_create_batch(self) -> None:
        data = encode_create_batch("mkt-election", Side.YES)
        assert data[:8] == CREATE_BATCH_DISCRIMINATOR
        assert data[8:24] == b"mkt-election".ljust(16, b"\x00")
        assert data[24] == 1
        assert len(data) == 25

    def test_create_batch_truncates_market(self) -> None:
        data = encode_create_batch("x" * 40, Side.NO)
        assert data[8:24] == b"x" * 16
        assert data[24] == 0

    def test_add_order_layout(self) -> None:
        order = _order()
        data = encode_add_order(order, 3)
        assert data[:8] == ADD_ORDER_DISCRIMINATOR
        assert data[8] == 3
        assert struct.unpack_from("<I", data, 9)[0] == 3
        assert data[13:16] == b"\x01\x02\x03"
        assert data[16:48] == order.public_key
        assert data[48:64] == order.nonce

    def test_add_order_bad_key(self) -> None:
        with pytest.raises(MpcError):
            encode_add_order(_order(public_key=bytes(31)), 0)
        with pytest.raises(MpcError):
            encode_add_order(_order(nonce=bytes(12)), 0)

    def test_order_index_bounds(self) -> None:
        with pytest.raises(MpcError):
            encode_add_order(_order(), 256)
        with pytest.raises(MpcError):
            encode_get_distribution(-1, 10)

    def test_close_batch(self) -> None:
        assert encode_close_batch() == CLOSE_BATCH_DISCRIMINATOR + bytes(9)

    def test_get_distribution(self) -> None:
        data = encode_get_distribution(2, 5_000_000)
        assert data[:8] == GET_DISTRIBUTION_DISCRIMINATOR
        assert data[8] == 2
        assert struct.unpack_from("<Q", data, 9)[0] == 5_000_000

    def test_total_shares_must_fit_u64(self) -> None:
        with pytest.raises(MpcError):
            encode_get_distribution(0, 2**64)


class TestDecodeAccount:
    def test_short_account(self) -> None:
        assert decode_batch_account(bytes(40)) is None

    def test_collecting(self) -> None:
        account = decode_batch_account(bytes(67))
        assert account is not None
        assert not account.is_revealed

    def test_revealed(self) -> None:
        data = bytearray(80)
        struct.pack_into("<Q", data, 58, 123_456)
        data[66] = 1
        account = decode_batch_account(bytes(data))
        assert account.is_revealed
        assert account.revealed_total == 123_456
