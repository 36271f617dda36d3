"""Append-only Merkle accumulator over privacy-pool balance commitments.

The tree keeps every populated node per level, so an append recomputes one
path (O(depth)) and the root is always cached. Missing right siblings are
the canonical empty-subtree hashes ``zero_hashes[level]``.

Appends are synchronous and complete before control returns to the event
loop, so concurrent readers only ever observe whole tree states. Callers
that pair an append with a check (the nullifier registry) serialize the
pair themselves.
"""

import logging
from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from src.pm_common.datetime_utils import utc_now
from src.pm_common.errors import CapacityError, EncodingError
from src.pm_crypto.field import field_to_hex, hex_to_field
from src.pm_crypto.poseidon import FieldHasher

logger = logging.getLogger(__name__)

DEFAULT_DEPTH = 5


@dataclass(frozen=True)
class TreeStats:
    depth: int
    capacity: int
    leaf_count: int
    root: str
    last_updated: datetime | None


def compute_zero_hashes(hasher: FieldHasher, depth: int) -> list[int]:
    zeros = [0]
    for _ in range(depth):
        zeros.append(hasher.hash2(zeros[-1], zeros[-1]))
    return zeros


class BalanceMerkleTree:
    def __init__(
        self,
        hasher: FieldHasher,
        depth: int = DEFAULT_DEPTH,
        root_history_size: int = 1,
    ) -> None:
        if depth < 1:
            raise ValueError(f"Tree depth must be positive, got {depth}")
        if root_history_size < 1:
            raise ValueError(f"Root history must keep at least one root, got {root_history_size}")
        self._hasher = hasher
        self.depth = depth
        self.capacity = 2**depth
        self.zero_hashes = compute_zero_hashes(hasher, depth)
        self._levels: list[list[int]] = [[] for _ in range(depth + 1)]
        self._root = self.zero_hashes[depth]
        self._recent_roots: deque[int] = deque([self._root], maxlen=root_history_size)
        self.last_updated: datetime | None = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def leaf_count(self) -> int:
        return len(self._levels[0])

    @property
    def leaves(self) -> tuple[int, ...]:
        return tuple(self._levels[0])

    @property
    def is_full(self) -> bool:
        return self.leaf_count >= self.capacity

    def root(self) -> int:
        return self._root

    def root_hex(self) -> str:
        return field_to_hex(self._root)

    def _node(self, level: int, index: int) -> int:
        nodes = self._levels[level]
        return nodes[index] if index < len(nodes) else self.zero_hashes[level]

    def path_for(self, leaf_index: int) -> list[int]:
        """Sibling hashes from leaf level to just below the root."""
        if not 0 <= leaf_index < self.capacity:
            raise ValueError(f"Invalid leaf index: {leaf_index}")
        path: list[int] = []
        index = leaf_index
        for level in range(self.depth):
            path.append(self._node(level, index ^ 1))
            index //= 2
        return path

    def verify_path(
        self, leaf: int, leaf_index: int, path: Sequence[int], expected_root: int
    ) -> bool:
        current = leaf
        index = leaf_index
        for level in range(self.depth):
            sibling = path[level] if level < len(path) else self.zero_hashes[level]
            if index % 2 == 1:
                current = self._hasher.hash2(sibling, current)
            else:
                current = self._hasher.hash2(current, sibling)
            index //= 2
        return current == expected_root

    def is_recent_root(self, candidate: int | str) -> bool:
        """True for the current root or one of the retained historical roots."""
        if isinstance(candidate, str):
            try:
                candidate = hex_to_field(candidate)
            except EncodingError:
                return False
        if self.leaf_count == 0 and candidate == self.zero_hashes[self.depth]:
            return True
        return candidate in self._recent_roots

    def stats(self) -> TreeStats:
        return TreeStats(
            depth=self.depth,
            capacity=self.capacity,
            leaf_count=self.leaf_count,
            root=self.root_hex(),
            last_updated=self.last_updated,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _insert(self, leaf: int) -> int:
        if self.is_full:
            raise CapacityError(f"balance tree is full ({self.capacity} leaves)")
        leaf_index = self.leaf_count
        self._levels[0].append(leaf)
        index = leaf_index
        for level in range(self.depth):
            parent = index // 2
            left = self._node(level, parent * 2)
            right = self._node(level, parent * 2 + 1)
            node = self._hasher.hash2(left, right)
            upper = self._levels[level + 1]
            if parent < len(upper):
                upper[parent] = node
            else:
                upper.append(node)
            index = parent
        self._root = self._levels[self.depth][0]
        return leaf_index

    def append(self, commitment: int) -> int:
        """Append a leaf and return its index. Raises CapacityError when full."""
        leaf_index = self._insert(commitment)
        self._recent_roots.append(self._root)
        self.last_updated = utc_now()
        logger.info(
            "Balance leaf %d appended, root %s...", leaf_index, self.root_hex()[:18]
        )
        return leaf_index

    def load(self, leaves: Iterable[int]) -> None:
        """Replace the tree contents with a persisted snapshot, in leaf order."""
        snapshot = list(leaves)
        if len(snapshot) > self.capacity:
            raise CapacityError(
                f"snapshot has {len(snapshot)} leaves, tree holds {self.capacity}"
            )
        self._levels = [[] for _ in range(self.depth + 1)]
        self._root = self.zero_hashes[self.depth]
        for leaf in snapshot:
            self._insert(leaf)
        self._recent_roots.clear()
        self._recent_roots.append(self._root)
        self.last_updated = utc_now()
        logger.info("Balance tree loaded with %d leaves", len(snapshot))
