"""pm_privacy REST endpoints.

GET  /privacy/merkle/root               current balance-tree root
GET  /privacy/merkle/path/{leaf_index}  sibling path for one leaf
GET  /privacy/merkle/stats              depth, capacity, leaf count, nullifier count
POST /privacy/deposit                   append a deposit commitment
POST /privacy/balance-proof             nullifier + proof acceptance pipeline
GET  /privacy/nullifiers/count          number of recorded nullifiers
GET  /privacy/nullifiers/{nullifier}    whether a nullifier is spent
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.container import ServiceContainer, get_container
from src.pm_common.response import ApiResponse, success_response
from src.pm_privacy.application.schemas import BalanceProofSubmission, DepositRequest
from src.pm_privacy.application.service import PrivacyPoolService

router = APIRouter(prefix="/privacy", tags=["privacy"])


def get_privacy_service(
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> PrivacyPoolService:
    return container.privacy_service


def _respond(request: Request, data: object) -> ApiResponse:
    resp = success_response(data)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/merkle/root")
async def get_merkle_root(
    request: Request,
    service: Annotated[PrivacyPoolService, Depends(get_privacy_service)],
) -> ApiResponse:
    return _respond(request, service.get_root().model_dump())


@router.get("/merkle/path/{leaf_index}")
async def get_merkle_path(
    leaf_index: int,
    request: Request,
    service: Annotated[PrivacyPoolService, Depends(get_privacy_service)],
) -> ApiResponse:
    return _respond(request, service.get_path(leaf_index).model_dump())


@router.get("/merkle/stats")
async def get_merkle_stats(
    request: Request,
    service: Annotated[PrivacyPoolService, Depends(get_privacy_service)],
) -> ApiResponse:
    result = await service.get_stats()
    return _respond(request, result.model_dump(mode="json"))


@router.post("/deposit", status_code=201)
async def deposit(
    body: DepositRequest,
    request: Request,
    service: Annotated[PrivacyPoolService, Depends(get_privacy_service)],
) -> ApiResponse:
    result = await service.deposit(body.commitment)
    return _respond(request, result.model_dump())


@router.post("/balance-proof")
async def submit_balance_proof(
    body: BalanceProofSubmission,
    request: Request,
    service: Annotated[PrivacyPoolService, Depends(get_privacy_service)],
) -> ApiResponse:
    result = await service.submit_balance_proof(body)
    return _respond(request, result.model_dump())


@router.get("/nullifiers/count")
async def get_nullifier_count(
    request: Request,
    service: Annotated[PrivacyPoolService, Depends(get_privacy_service)],
) -> ApiResponse:
    result = await service.nullifier_count()
    return _respond(request, result.model_dump())


@router.get("/nullifiers/{nullifier}")
async def get_nullifier_status(
    nullifier: str,
    request: Request,
    service: Annotated[PrivacyPoolService, Depends(get_privacy_service)],
) -> ApiResponse:
    result = await service.nullifier_status(nullifier)
    return _respond(request, result.model_dump())
