"""Pro-rata allocation of a (possibly partial) fill back to member orders."""
from collections.abc import Sequence
from dataclasses import dataclass

from src.pm_common.amounts import allocate_pro_rata, split_basis_points
from src.pm_relay.domain.models import RelayOrder


@dataclass(frozen=True)
class OrderAllocation:
    order_id: str
    committed: int
    effective_usdc_spent: int
    shares: int

    @property
    def refund(self) -> int:
        return self.committed - self.effective_usdc_spent


def compute_allocations(
    orders: Sequence[RelayOrder], usdc_spent: int, shares_received: int
) -> list[OrderAllocation]:
    """Split spent USDC and received shares in commit order.

    Both splits use the same rule: floor, then remainder units to the first
    orders, so each column sums exactly to the venue's totals.
    """
    committed = [o.usdc_amount for o in orders]
    total = sum(committed)
    if usdc_spent > total:
        raise ValueError(f"venue spent {usdc_spent} but only {total} was committed")
    spent = allocate_pro_rata(committed, usdc_spent)
    shares = allocate_pro_rata(committed, shares_received)
    return [
        OrderAllocation(
            order_id=o.id,
            committed=o.usdc_amount,
            effective_usdc_spent=spent[i],
            shares=shares[i],
        )
        for i, o in enumerate(orders)
    ]


def split_order_shares(order: RelayOrder, shares: int) -> list[tuple[str, int]]:
    """(wallet, shares) per distribution entry, in submitted order."""
    amounts = split_basis_points(shares, [e.basis_points for e in order.distribution])
    return [(e.wallet, amounts[i]) for i, e in enumerate(order.distribution)]
