"""Integer arithmetic for micro-unit amounts.

USDC and outcome shares both carry 6 implied decimals. All internal amounts
are int micros; human decimals are converted once at the boundary with
Decimal, never float.
"""

from collections.abc import Sequence
from decimal import ROUND_FLOOR, Decimal, InvalidOperation

MICROS_PER_UNIT = 1_000_000
BPS_DENOMINATOR = 10_000


def to_micros(amount: Decimal | str | int) -> int:
    """Human decimal -> micros, floored: '1.5' -> 1500000, '0.0000019' -> 1."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise ValueError(f"Not a decimal amount: {amount!r}") from e
    if not value.is_finite():
        raise ValueError(f"Not a finite amount: {amount!r}")
    return int((value * MICROS_PER_UNIT).to_integral_value(rounding=ROUND_FLOOR))


def micros_to_display(micros: int) -> str:
    """1500000 -> '1.500000'."""
    sign = "-" if micros < 0 else ""
    micros = abs(micros)
    return f"{sign}{micros // MICROS_PER_UNIT}.{micros % MICROS_PER_UNIT:06d}"


def allocate_pro_rata(weights: Sequence[int], total: int) -> list[int]:
    """Split ``total`` proportionally to ``weights`` using integer division.

    The remainder left by flooring is handed out one unit at a time to the
    first entries in order, so the result always sums to exactly ``total``
    and each share is within one unit of its exact proportional value.
    """
    if total < 0:
        raise ValueError(f"Cannot allocate a negative total: {total}")
    if any(w < 0 for w in weights):
        raise ValueError("Weights must be non-negative")
    weight_sum = sum(weights)
    if weight_sum == 0:
        if total != 0:
            raise ValueError("Cannot allocate a non-zero total over zero weights")
        return [0] * len(weights)

    shares = [w * total // weight_sum for w in weights]
    remainder = total - sum(shares)
    for i in range(len(shares)):
        if remainder == 0:
            break
        if weights[i] == 0:
            continue
        shares[i] += 1
        remainder -= 1
    return shares


def split_basis_points(amount: int, basis_points: Sequence[int]) -> list[int]:
    """Split ``amount`` across entries expressed in basis points (sum 10000)."""
    if sum(basis_points) != BPS_DENOMINATOR:
        raise ValueError(f"Basis points must sum to {BPS_DENOMINATOR}, got {sum(basis_points)}")
    return allocate_pro_rata(basis_points, amount)
