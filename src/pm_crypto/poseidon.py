"""Poseidon hashing over the BN254 scalar field.

Callers depend on the FieldHasher protocol and receive an instance by
injection; PoseidonHasher is the production implementation backed by the
``poseidon-hash`` package.
"""

import logging
import threading
from collections.abc import Sequence
from typing import Any, Protocol

import poseidon

from src.pm_crypto.field import BN254_PRIME

logger = logging.getLogger(__name__)

SECURITY_LEVEL = 128
ALPHA = 5


class FieldHasher(Protocol):
    def hash2(self, left: int, right: int) -> int: ...

    def hash5(self, inputs: Sequence[int]) -> int: ...

    def hash_n(self, inputs: Sequence[int]) -> int: ...


class PoseidonHasher:
    """Poseidon sponge with capacity 1 and width = arity + 1.

    Permutation parameters (round constants, MDS matrix) are generated once
    per arity and cached, since generation dominates the cost of a hash.
    """

    def __init__(self, prime: int = BN254_PRIME) -> None:
        self._prime = prime
        self._instances: dict[int, Any] = {}
        self._lock = threading.Lock()

    def _instance(self, arity: int) -> Any:
        inst = self._instances.get(arity)
        if inst is None:
            with self._lock:
                inst = self._instances.get(arity)
                if inst is None:
                    logger.debug("Generating Poseidon parameters for arity %d", arity)
                    inst = poseidon.Poseidon(
                        self._prime, SECURITY_LEVEL, ALPHA, arity, arity + 1
                    )
                    self._instances[arity] = inst
        return inst

    def _hash(self, inputs: Sequence[int]) -> int:
        if not inputs:
            raise ValueError("Poseidon needs at least one input")
        words = [0] + [v % self._prime for v in inputs]
        return int(self._instance(len(inputs)).run_hash(words)) % self._prime

    def hash2(self, left: int, right: int) -> int:
        return self._hash([left, right])

    def hash5(self, inputs: Sequence[int]) -> int:
        if len(inputs) != 5:
            raise ValueError(f"hash5 takes exactly 5 inputs, got {len(inputs)}")
        return self._hash(inputs)

    def hash_n(self, inputs: Sequence[int]) -> int:
        return self._hash(inputs)


_default_hasher: PoseidonHasher | None = None


def get_hasher() -> PoseidonHasher:
    global _default_hasher  # noqa: PLW0603
    if _default_hasher is None:
        _default_hasher = PoseidonHasher()
    return _default_hasher
