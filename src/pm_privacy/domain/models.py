"""Privacy-pool domain objects: pure dataclasses."""
from dataclasses import dataclass

from src.pm_common.enums import ErrorKind


@dataclass(frozen=True)
class BalanceProofRequest:
    proof: str  # hex-encoded proof bytes
    merkle_root: str
    nullifier: str
    new_commitment: str  # change note; all-zero means "no change"
    order_commitment: str

    @property
    def public_inputs(self) -> list[str]:
        # Order is fixed by the circuit.
        return [self.merkle_root, self.nullifier, self.new_commitment, self.order_commitment]


@dataclass(frozen=True)
class BalanceProofResult:
    valid: bool
    new_leaf_index: int | None = None
    error: ErrorKind | None = None
    reason: str | None = None

    @classmethod
    def accepted(cls, new_leaf_index: int | None) -> "BalanceProofResult":
        return cls(valid=True, new_leaf_index=new_leaf_index)

    @classmethod
    def rejected(cls, error: ErrorKind, reason: str) -> "BalanceProofResult":
        return cls(valid=False, error=error, reason=reason)
