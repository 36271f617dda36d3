"""Fixed-depth Merkle tree over one batch's order commitments.

Rebuilt from scratch for every batch and never mutated afterwards. Leaves
are the commitment hashes in commit order, right-padded with zero.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from functools import lru_cache

from src.pm_common.errors import CapacityError
from src.pm_crypto.field import pad_list
from src.pm_crypto.poseidon import FieldHasher

DEFAULT_DEPTH = 5
DEFAULT_MAX_LEAVES = 2**DEFAULT_DEPTH
ZERO_LEAF = 0


@dataclass(frozen=True)
class MerkleProof:
    path: tuple[int, ...]  # sibling per level, leaf level first
    indices: tuple[int, ...]  # 1 = current node is the right child


@dataclass(frozen=True)
class BatchMerkleTree:
    root: int
    layers: tuple[tuple[int, ...], ...]  # layers[0] = padded leaves, layers[-1] = (root,)

    @property
    def depth(self) -> int:
        return len(self.layers) - 1

    @property
    def leaves(self) -> tuple[int, ...]:
        return self.layers[0]


def build(
    leaf_hashes: Sequence[int],
    hasher: FieldHasher,
    max_leaves: int = DEFAULT_MAX_LEAVES,
    depth: int = DEFAULT_DEPTH,
) -> BatchMerkleTree:
    if max_leaves != 2**depth:
        raise ValueError(f"max_leaves {max_leaves} does not match depth {depth}")
    if len(leaf_hashes) > max_leaves:
        raise CapacityError(f"batch has {len(leaf_hashes)} leaves, tree holds {max_leaves}")

    layer = pad_list(list(leaf_hashes), max_leaves, ZERO_LEAF)
    layers = [tuple(layer)]
    for _ in range(depth):
        layer = [hasher.hash2(layer[i], layer[i + 1]) for i in range(0, len(layer), 2)]
        layers.append(tuple(layer))
    return BatchMerkleTree(root=layers[-1][0], layers=tuple(layers))


def proof_for(tree: BatchMerkleTree, leaf_index: int) -> MerkleProof:
    if not 0 <= leaf_index < len(tree.leaves):
        raise ValueError(f"Leaf index {leaf_index} out of range 0..{len(tree.leaves) - 1}")
    path: list[int] = []
    indices: list[int] = []
    index = leaf_index
    for level in range(tree.depth):
        nodes = tree.layers[level]
        is_right = index % 2
        sibling_index = index - 1 if is_right else index + 1
        path.append(nodes[sibling_index] if sibling_index < len(nodes) else ZERO_LEAF)
        indices.append(is_right)
        index //= 2
    return MerkleProof(path=tuple(path), indices=tuple(indices))


def compute_root(leaf: int, proof: MerkleProof, hasher: FieldHasher) -> int:
    current = leaf
    for sibling, is_right in zip(proof.path, proof.indices, strict=True):
        current = hasher.hash2(sibling, current) if is_right else hasher.hash2(current, sibling)
    return current


def verify(leaf: int, proof: MerkleProof, root: int, hasher: FieldHasher) -> bool:
    return compute_root(leaf, proof, hasher) == root


def all_paths(tree: BatchMerkleTree, num_orders: int) -> list[MerkleProof]:
    """One proof per leaf slot; slots past ``num_orders`` get an all-zero path."""
    zero_path = MerkleProof(path=(ZERO_LEAF,) * tree.depth, indices=(0,) * tree.depth)
    return [
        proof_for(tree, i) if i < num_orders else zero_path
        for i in range(len(tree.leaves))
    ]


@lru_cache(maxsize=32)
def _empty_root(hasher: FieldHasher, depth: int) -> int:
    node = ZERO_LEAF
    for _ in range(depth):
        node = hasher.hash2(node, node)
    return node


def empty_root(hasher: FieldHasher, depth: int = DEFAULT_DEPTH) -> int:
    """Root of a tree whose leaves are all zero; cached per hasher and depth."""
    return _empty_root(hasher, depth)


def is_empty(tree: BatchMerkleTree, hasher: FieldHasher) -> bool:
    return tree.root == empty_root(hasher, tree.depth)
