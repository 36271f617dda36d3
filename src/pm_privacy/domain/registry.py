"""NullifierRegistry: spent-set plus balance-tree appends for the pool.

Every mutation runs inside one asyncio.Lock together with the checks that
guard it, so two proofs carrying the same nullifier can never both be
accepted. The expensive external verification runs outside the lock; the
cheap checks are repeated once the lock is held.
"""

import asyncio
import logging

from src.pm_common.enums import ErrorKind
from src.pm_common.errors import CapacityError, DoubleSpendError, EncodingError
from src.pm_crypto.field import field_to_hex, hex_to_field
from src.pm_merkle.balance_tree import BalanceMerkleTree
from src.pm_privacy.domain.models import BalanceProofRequest, BalanceProofResult
from src.pm_privacy.domain.ports import BalanceLeafStore, NullifierStore, ProofVerifier
from src.pm_privacy.domain.validation import structural_error

logger = logging.getLogger(__name__)


def canonical_hex(value: str) -> str:
    """Normalize a field hex string so equal field values share one key."""
    return field_to_hex(hex_to_field(value))


def _short(value: str) -> str:
    return value[:18] + "..."


class NullifierRegistry:
    def __init__(
        self,
        store: NullifierStore,
        tree: BalanceMerkleTree,
        verifier: ProofVerifier,
        leaf_store: BalanceLeafStore | None = None,
    ) -> None:
        self._store = store
        self._tree = tree
        self._verifier = verifier
        self._leaf_store = leaf_store
        self._lock = asyncio.Lock()

    @property
    def tree(self) -> BalanceMerkleTree:
        return self._tree

    async def restore(self) -> int:
        """Replay persisted leaves into the tree. Returns the leaf count."""
        if self._leaf_store is None:
            return self._tree.leaf_count
        async with self._lock:
            leaves = await self._leaf_store.load_all()
            self._tree.load(hex_to_field(leaf) for leaf in leaves)
        return len(leaves)

    # ------------------------------------------------------------------
    # Nullifier set
    # ------------------------------------------------------------------

    async def is_nullifier_used(self, nullifier: str) -> bool:
        return await self._store.contains(canonical_hex(nullifier))

    async def record_nullifier(self, nullifier: str) -> None:
        """Insert a nullifier. Raises DoubleSpendError if it was already used."""
        key = canonical_hex(nullifier)
        async with self._lock:
            await self._record_locked(key)

    async def _record_locked(self, key: str) -> None:
        if await self._store.contains(key):
            raise DoubleSpendError(key)
        # The store insert is itself atomic; this covers writers in other processes.
        if not await self._store.add(key):
            raise DoubleSpendError(key)
        logger.info("Nullifier recorded: %s", _short(key))

    async def nullifier_count(self) -> int:
        return await self._store.count()

    # ------------------------------------------------------------------
    # Balance tree
    # ------------------------------------------------------------------

    async def add_commitment(self, commitment: str) -> int:
        """Append a deposit commitment to the balance tree; returns its leaf index."""
        async with self._lock:
            return await self._append_locked(hex_to_field(commitment))

    async def _append_locked(self, leaf: int) -> int:
        # Persist first: a failed write leaves the tree untouched.
        if self._tree.is_full:
            raise CapacityError(f"balance tree holds {self._tree.capacity} leaves")
        leaf_index = self._tree.leaf_count
        if self._leaf_store is not None:
            await self._leaf_store.save(leaf_index, field_to_hex(leaf))
        return self._tree.append(leaf)

    # ------------------------------------------------------------------
    # Proof acceptance
    # ------------------------------------------------------------------

    async def process_balance_proof(self, request: BalanceProofRequest) -> BalanceProofResult:
        """Nullifier, then root, then proof, then record, then append.

        Rejections are returned, not raised, so callers always get a kind and
        a reason. Failures of the verifier service propagate, as do leaf-store
        failures after the nullifier has been released again.
        """
        try:
            key = canonical_hex(request.nullifier)
        except EncodingError as e:
            return self._reject(ErrorKind.INVALID_PROOF, e.message)

        if await self._store.contains(key):
            return self._reject(ErrorKind.DOUBLE_SPEND, f"nullifier {_short(key)} already used")

        if not self._tree.is_recent_root(request.merkle_root):
            return self._reject(ErrorKind.STALE_ROOT, "merkle root is not recent; refresh and resubmit")

        problem = structural_error(request.proof, request.public_inputs)
        if problem is not None:
            return self._reject(ErrorKind.INVALID_PROOF, problem)
        if not await self._verifier.verify_proof(request.proof, request.public_inputs):
            return self._reject(ErrorKind.INVALID_PROOF, "proof verification failed")

        change_leaf = hex_to_field(request.new_commitment)
        async with self._lock:
            # Re-check: another submission may have won the race during verification.
            if await self._store.contains(key):
                return self._reject(ErrorKind.DOUBLE_SPEND, f"nullifier {_short(key)} already used")
            if not self._tree.is_recent_root(request.merkle_root):
                return self._reject(
                    ErrorKind.STALE_ROOT, "merkle root changed during verification; resubmit"
                )
            if change_leaf != 0 and self._tree.is_full:
                return self._reject(ErrorKind.CAPACITY, "balance tree is full")

            try:
                await self._record_locked(key)
            except DoubleSpendError as e:
                return self._reject(ErrorKind.DOUBLE_SPEND, e.message)

            new_leaf_index = None
            if change_leaf != 0:
                try:
                    new_leaf_index = await self._append_locked(change_leaf)
                except CapacityError as e:
                    await self._store.discard(key)
                    return self._reject(ErrorKind.CAPACITY, e.message)
                except Exception:
                    # A recorded nullifier always has its change leaf persisted.
                    await self._store.discard(key)
                    logger.exception("Change leaf write failed; nullifier %s released", _short(key))
                    raise

        logger.info(
            "Balance proof accepted: nullifier=%s change_leaf=%s",
            _short(key),
            new_leaf_index,
        )
        return BalanceProofResult.accepted(new_leaf_index)

    @staticmethod
    def _reject(kind: ErrorKind, reason: str) -> BalanceProofResult:
        logger.warning("Balance proof rejected (%s): %s", kind.value, reason)
        return BalanceProofResult.rejected(kind, reason)
