"""Binary instruction encoding for the MPC batch program.

Instructions are Anchor-style: an 8-byte discriminator followed by
little-endian fields. Amounts travel as u64 micros.
"""

import struct
from dataclasses import dataclass

from src.pm_common.enums import Side
from src.pm_common.errors import MpcError
from src.pm_mpc.domain.models import EncryptedOrder

CREATE_BATCH_DISCRIMINATOR = bytes([44, 149, 233, 113, 29, 207, 147, 100])
ADD_ORDER_DISCRIMINATOR = bytes([215, 132, 173, 50, 107, 201, 88, 26])
CLOSE_BATCH_DISCRIMINATOR = bytes([166, 174, 35, 253, 209, 211, 181, 28])
GET_DISTRIBUTION_DISCRIMINATOR = bytes([100, 101, 102, 103, 104, 105, 106, 107])

MARKET_ID_BYTES = 16
PUBKEY_BYTES = 32
NONCE_BYTES = 16
MAX_ORDER_INDEX = 255
U64_MAX = 2**64 - 1

# Batch account layout:
#   discriminator(8) authority(32) market_id(16) side(1) pad(1) total(8 @58) status(1 @66)
ACCOUNT_TOTAL_OFFSET = 58
ACCOUNT_STATUS_OFFSET = 66
ACCOUNT_MIN_LENGTH = ACCOUNT_STATUS_OFFSET + 1

# Status byte values on the account.
ACCOUNT_STATUS_COLLECTING = 0
ACCOUNT_STATUS_CLOSED = 1


@dataclass(frozen=True)
class BatchAccount:
    status: int
    revealed_total: int  # micros

    @property
    def is_revealed(self) -> bool:
        return self.status >= ACCOUNT_STATUS_CLOSED


def _order_index(index: int) -> bytes:
    if not 0 <= index <= MAX_ORDER_INDEX:
        raise MpcError(f"order index {index} outside 0..{MAX_ORDER_INDEX}")
    return bytes([index])


def encode_create_batch(market_id: str, side: Side) -> bytes:
    market_bytes = market_id.encode("utf-8")[:MARKET_ID_BYTES].ljust(MARKET_ID_BYTES, b"\x00")
    side_byte = bytes([1 if side is Side.YES else 0])
    return CREATE_BATCH_DISCRIMINATOR + market_bytes + side_byte


def encode_add_order(order: EncryptedOrder, order_index: int) -> bytes:
    if len(order.public_key) != PUBKEY_BYTES:
        raise MpcError(f"ephemeral public key must be {PUBKEY_BYTES} bytes")
    if len(order.nonce) != NONCE_BYTES:
        raise MpcError(f"nonce must be {NONCE_BYTES} bytes")
    return (
        ADD_ORDER_DISCRIMINATOR
        + _order_index(order_index)
        + struct.pack("<I", len(order.ciphertext))
        + order.ciphertext
        + order.public_key
        + order.nonce
    )


def encode_close_batch() -> bytes:
    # Placeholder revealed_total (u64) and revealed_count (u8), filled by the callback.
    return CLOSE_BATCH_DISCRIMINATOR + struct.pack("<QB", 0, 0)


def encode_get_distribution(order_index: int, total_shares: int) -> bytes:
    if not 0 <= total_shares <= U64_MAX:
        raise MpcError(f"total shares {total_shares} does not fit in u64")
    return GET_DISTRIBUTION_DISCRIMINATOR + _order_index(order_index) + struct.pack("<Q", total_shares)


def decode_batch_account(data: bytes) -> BatchAccount | None:
    """Parse the batch account; None if the account is not fully written yet."""
    if len(data) < ACCOUNT_MIN_LENGTH:
        return None
    (total,) = struct.unpack_from("<Q", data, ACCOUNT_TOTAL_OFFSET)
    return BatchAccount(status=data[ACCOUNT_STATUS_OFFSET], revealed_total=total)
