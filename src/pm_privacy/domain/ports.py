# src/pm_privacy/domain/ports.py
"""Storage and verifier ports for the privacy pool.

Nullifiers are passed around as canonical 0x-prefixed 32-byte hex strings.
"""

from collections.abc import Sequence
from typing import Protocol


class NullifierStore(Protocol):
    async def contains(self, nullifier: str) -> bool: ...

    async def add(self, nullifier: str) -> bool:
        """Insert atomically. Returns False if the value was already present."""
        ...

    async def discard(self, nullifier: str) -> None:
        """Undo an insert whose follow-up write failed."""
        ...

    async def count(self) -> int: ...


class BalanceLeafStore(Protocol):
    """Durable copy of balance-tree leaves, replayed into the tree at startup."""

    async def save(self, leaf_index: int, commitment: str) -> None: ...

    async def load_all(self) -> list[str]: ...


class ProofVerifier(Protocol):
    async def verify_proof(self, proof: str, public_inputs: Sequence[str]) -> bool: ...
