"""Order commitments and the multi-destination distribution hash.

    distribution_hash = PoseidonN(pad10([Poseidon2(addr_i, bps_i) ...]))
    commitment        = Poseidon5(market_id, side, usdc_micros, dist, salt)

Entry order is part of the commitment: permuting a distribution changes
its hash. Orders without a distribution commit to their single destination
address directly.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field

from src.pm_common.enums import Side
from src.pm_crypto.field import (
    address_to_field,
    decimal_to_field,
    market_id_to_field,
    pad_list,
    side_to_field,
    string_to_field,
)
from src.pm_crypto.poseidon import FieldHasher

MAX_DISTRIBUTION_DESTINATIONS = 10
ZERO_FIELD = 0


@dataclass(frozen=True)
class DistributionEntry:
    wallet: str
    basis_points: int  # 10000 = 100%


@dataclass(frozen=True)
class OrderCommitment:
    market_id: str
    side: Side
    usdc_amount: int  # micros
    salt: str
    distribution: tuple[DistributionEntry, ...] = field(default_factory=tuple)
    destination_wallet: str | None = None


def compute_distribution_hash(
    distribution: Sequence[DistributionEntry], hasher: FieldHasher
) -> int:
    if not distribution:
        return ZERO_FIELD
    if len(distribution) > MAX_DISTRIBUTION_DESTINATIONS:
        raise ValueError(
            f"Distribution has {len(distribution)} entries, max {MAX_DISTRIBUTION_DESTINATIONS}"
        )
    entries = [
        hasher.hash2(address_to_field(e.wallet), decimal_to_field(e.basis_points))
        for e in distribution
    ]
    return hasher.hash_n(pad_list(entries, MAX_DISTRIBUTION_DESTINATIONS, ZERO_FIELD))


def _distribution_field(commitment: OrderCommitment, hasher: FieldHasher) -> int:
    if commitment.distribution:
        return compute_distribution_hash(commitment.distribution, hasher)
    if commitment.destination_wallet:
        return address_to_field(commitment.destination_wallet)
    return ZERO_FIELD


def compute_commitment_hash(commitment: OrderCommitment, hasher: FieldHasher) -> int:
    return hasher.hash5([
        market_id_to_field(commitment.market_id),
        side_to_field(commitment.side),
        decimal_to_field(commitment.usdc_amount),
        _distribution_field(commitment, hasher),
        string_to_field(commitment.salt),
    ])


def commitment_to_circuit(commitment: OrderCommitment, hasher: FieldHasher) -> dict[str, str]:
    """Decimal-string field map in the prover's input naming."""
    return {
        "market_id": str(market_id_to_field(commitment.market_id)),
        "side": str(side_to_field(commitment.side)),
        "usdc_amount": str(decimal_to_field(commitment.usdc_amount)),
        "distribution_hash": str(_distribution_field(commitment, hasher)),
        "salt": str(string_to_field(commitment.salt)),
    }


def zero_commitment() -> dict[str, str]:
    """All-zero sentinel used to pad circuit inputs."""
    return {
        "market_id": "0",
        "side": "0",
        "usdc_amount": "0",
        "distribution_hash": "0",
        "salt": "0",
    }


def verify_commitment(
    commitment: OrderCommitment, expected_hash: int, hasher: FieldHasher
) -> bool:
    return compute_commitment_hash(commitment, hasher) == expected_hash
