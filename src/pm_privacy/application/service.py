"""PrivacyPoolService: thin composition layer over the NullifierRegistry.

Translates rejected proof results into AppErrors so the API envelope
carries the error code, kind and reason.
"""

from src.pm_common.enums import ErrorKind
from src.pm_common.errors import (
    AppError,
    CapacityError,
    DoubleSpendError,
    InternalError,
    InvalidProofError,
    LeafIndexOutOfRangeError,
    StaleRootError,
)
from src.pm_crypto.field import field_to_hex
from src.pm_privacy.application.schemas import (
    BalanceProofResponse,
    BalanceProofSubmission,
    DepositResponse,
    MerklePathResponse,
    MerkleRootResponse,
    NullifierCountResponse,
    NullifierStatusResponse,
    TreeStatsResponse,
)
from src.pm_privacy.domain.models import BalanceProofRequest, BalanceProofResult
from src.pm_privacy.domain.registry import NullifierRegistry, canonical_hex


def _error_for(result: BalanceProofResult, request: BalanceProofRequest) -> AppError:
    reason = result.reason or "rejected"
    if result.error is ErrorKind.DOUBLE_SPEND:
        return DoubleSpendError(request.nullifier)
    if result.error is ErrorKind.STALE_ROOT:
        return StaleRootError(request.merkle_root)
    if result.error is ErrorKind.INVALID_PROOF:
        return InvalidProofError(reason)
    if result.error is ErrorKind.CAPACITY:
        return CapacityError(reason)
    return InternalError(reason)


class PrivacyPoolService:
    def __init__(self, registry: NullifierRegistry) -> None:
        self._registry = registry

    def get_root(self) -> MerkleRootResponse:
        tree = self._registry.tree
        return MerkleRootResponse(root=tree.root_hex(), leaf_count=tree.leaf_count)

    def get_path(self, leaf_index: int) -> MerklePathResponse:
        tree = self._registry.tree
        if not 0 <= leaf_index < tree.capacity:
            raise LeafIndexOutOfRangeError(leaf_index, tree.capacity)
        path = tree.path_for(leaf_index)
        return MerklePathResponse(
            leaf_index=leaf_index,
            path=[field_to_hex(p) for p in path],
            root=tree.root_hex(),
        )

    async def get_stats(self) -> TreeStatsResponse:
        stats = self._registry.tree.stats()
        return TreeStatsResponse(
            depth=stats.depth,
            capacity=stats.capacity,
            leaf_count=stats.leaf_count,
            root=stats.root,
            last_updated=stats.last_updated,
            nullifier_count=await self._registry.nullifier_count(),
        )

    async def deposit(self, commitment: str) -> DepositResponse:
        leaf_index = await self._registry.add_commitment(commitment)
        return DepositResponse(
            commitment=canonical_hex(commitment),
            leaf_index=leaf_index,
            root=self._registry.tree.root_hex(),
        )

    async def submit_balance_proof(self, body: BalanceProofSubmission) -> BalanceProofResponse:
        request = BalanceProofRequest(
            proof=body.proof,
            merkle_root=body.merkle_root,
            nullifier=body.nullifier,
            new_commitment=body.new_commitment,
            order_commitment=body.order_commitment,
        )
        result = await self._registry.process_balance_proof(request)
        if not result.valid:
            raise _error_for(result, request)
        return BalanceProofResponse(
            valid=True,
            new_leaf_index=result.new_leaf_index,
            root=self._registry.tree.root_hex(),
        )

    async def nullifier_status(self, nullifier: str) -> NullifierStatusResponse:
        used = await self._registry.is_nullifier_used(nullifier)
        return NullifierStatusResponse(nullifier=canonical_hex(nullifier), used=used)

    async def nullifier_count(self) -> NullifierCountResponse:
        return NullifierCountResponse(count=await self._registry.nullifier_count())
