"""Prover input assembly for the batch-distribution circuit.

Slot i of commitments, allocations and merkle_paths all describe the order
at leaf i of the batch tree, i.e. commit order. Every array is padded to
the circuit's fixed width.
"""

from collections.abc import Sequence
from typing import Any

from src.pm_crypto.commitment import commitment_to_circuit, zero_commitment
from src.pm_crypto.field import market_id_to_field, pad_list, side_to_field, string_to_field
from src.pm_crypto.poseidon import FieldHasher
from src.pm_merkle.batch_tree import BatchMerkleTree, all_paths
from src.pm_relay.domain.allocation import OrderAllocation
from src.pm_relay.domain.models import RelayBatch, RelayOrder

CIRCUIT_NAME = "batch_distribution"
PUBLIC_INPUT_NAMES = (
    "batch_id",
    "merkle_root",
    "total_usdc_in",
    "total_shares_out",
    "market_id",
    "side",
)
ZERO_ALLOCATION = {"distribution_hash": "0", "shares_amount": "0"}


def build_circuit_inputs(
    batch: RelayBatch,
    orders: Sequence[RelayOrder],
    allocations: Sequence[OrderAllocation],
    tree: BatchMerkleTree,
    hasher: FieldHasher,
) -> dict[str, Any]:
    if len(orders) != len(allocations):
        raise ValueError(f"{len(orders)} orders but {len(allocations)} allocations")
    for order, allocation in zip(orders, allocations, strict=True):
        if order.id != allocation.order_id:
            raise ValueError(f"allocation for {allocation.order_id} misaligned with {order.id}")
    width = len(tree.leaves)

    commitments = [commitment_to_circuit(o.to_commitment(), hasher) for o in orders]
    circuit_allocations = [
        {"distribution_hash": c["distribution_hash"], "shares_amount": str(a.shares)}
        for c, a in zip(commitments, allocations, strict=True)
    ]
    return {
        "batch_id": str(string_to_field(batch.id)),
        "merkle_root": str(tree.root),
        "total_usdc_in": str(batch.actual_usdc_spent or 0),
        "total_shares_out": str(batch.actual_shares_received or 0),
        "market_id": str(market_id_to_field(batch.market_id)),
        "side": str(side_to_field(batch.side)),
        "commitments": pad_list(commitments, width, zero_commitment()),
        "allocations": pad_list(circuit_allocations, width, dict(ZERO_ALLOCATION)),
        "merkle_paths": [[str(s) for s in p.path] for p in all_paths(tree, len(orders))],
        "num_orders": str(len(orders)),
    }


def public_inputs_of(circuit_inputs: dict[str, Any]) -> list[str]:
    return [str(circuit_inputs[name]) for name in PUBLIC_INPUT_NAMES]


def circuit_info(max_orders: int, depth: int) -> dict[str, Any]:
    return {
        "name": CIRCUIT_NAME,
        "max_orders": max_orders,
        "merkle_depth": depth,
        "public_inputs": list(PUBLIC_INPUT_NAMES),
    }
