"""pm_relay REST endpoints.

POST /relay/orders                     submit a plaintext committed order
POST /relay/orders/encrypted           submit an MPC-encrypted order
GET  /relay/orders/{order_id}          order status and results
POST /relay/orders/{order_id}/activate  confirm the deposit
POST /relay/orders/{order_id}/refund   refund a funded or failed order
GET  /relay/batches                    list batches, optional status filter
GET  /relay/batches/{batch_id}         batch detail
GET  /relay/batches/{batch_id}/orders  member orders in commit order
POST /relay/batches/{batch_id}/ready   close a collecting batch early
POST /relay/batches/{batch_id}/execute  run a ready batch to completion
GET  /relay/config                     batching parameters and circuit info
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.container import ServiceContainer, get_container
from src.pm_common.enums import BatchStatus
from src.pm_common.response import ApiResponse, success_response
from src.pm_relay.application.schemas import (
    ActivateOrderRequest,
    BatchListResponse,
    BatchResponse,
    OrderResponse,
    RefundOrderRequest,
    RelayConfigResponse,
    SubmitEncryptedOrderRequest,
    SubmitOrderRequest,
)
from src.pm_relay.application.service import RelayService

router = APIRouter(prefix="/relay", tags=["relay"])


def get_relay_service(
    container: Annotated[ServiceContainer, Depends(get_container)],
) -> RelayService:
    return container.relay_service


def _respond(request: Request, data: object) -> ApiResponse:
    resp = success_response(data)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/orders", status_code=201)
async def submit_order(
    body: SubmitOrderRequest,
    request: Request,
    service: Annotated[RelayService, Depends(get_relay_service)],
) -> ApiResponse:
    order = await service.submit_order(body)
    return _respond(request, OrderResponse.from_domain(order).model_dump(mode="json"))


@router.post("/orders/encrypted", status_code=201)
async def submit_encrypted_order(
    body: SubmitEncryptedOrderRequest,
    request: Request,
    service: Annotated[RelayService, Depends(get_relay_service)],
) -> ApiResponse:
    order = await service.submit_encrypted_order(body)
    return _respond(request, OrderResponse.from_domain(order).model_dump(mode="json"))


@router.get("/orders/{order_id}")
async def get_order(
    order_id: str,
    request: Request,
    service: Annotated[RelayService, Depends(get_relay_service)],
) -> ApiResponse:
    order = await service.get_order(order_id)
    return _respond(request, OrderResponse.from_domain(order).model_dump(mode="json"))


@router.post("/orders/{order_id}/activate")
async def activate_order(
    order_id: str,
    body: ActivateOrderRequest,
    request: Request,
    service: Annotated[RelayService, Depends(get_relay_service)],
) -> ApiResponse:
    order = await service.activate_order(order_id, body)
    return _respond(request, OrderResponse.from_domain(order).model_dump(mode="json"))


@router.post("/orders/{order_id}/refund")
async def refund_order(
    order_id: str,
    body: RefundOrderRequest,
    request: Request,
    service: Annotated[RelayService, Depends(get_relay_service)],
) -> ApiResponse:
    order = await service.refund_order(order_id, body)
    return _respond(request, OrderResponse.from_domain(order).model_dump(mode="json"))


@router.get("/batches")
async def list_batches(
    request: Request,
    service: Annotated[RelayService, Depends(get_relay_service)],
    status: BatchStatus | None = Query(None),
) -> ApiResponse:
    batches = await service.list_batches(status)
    result = BatchListResponse(items=[BatchResponse.from_domain(b) for b in batches])
    return _respond(request, result.model_dump(mode="json"))


@router.get("/batches/{batch_id}")
async def get_batch(
    batch_id: str,
    request: Request,
    service: Annotated[RelayService, Depends(get_relay_service)],
) -> ApiResponse:
    batch = await service.get_batch(batch_id)
    return _respond(request, BatchResponse.from_domain(batch).model_dump(mode="json"))


@router.get("/batches/{batch_id}/orders")
async def get_batch_orders(
    batch_id: str,
    request: Request,
    service: Annotated[RelayService, Depends(get_relay_service)],
) -> ApiResponse:
    orders = await service.get_batch_orders(batch_id)
    result = [OrderResponse.from_domain(o).model_dump(mode="json") for o in orders]
    return _respond(request, {"items": result})


@router.post("/batches/{batch_id}/ready")
async def mark_batch_ready(
    batch_id: str,
    request: Request,
    service: Annotated[RelayService, Depends(get_relay_service)],
) -> ApiResponse:
    batch = await service.mark_batch_ready(batch_id)
    return _respond(request, BatchResponse.from_domain(batch).model_dump(mode="json"))


@router.post("/batches/{batch_id}/execute")
async def execute_batch(
    batch_id: str,
    request: Request,
    service: Annotated[RelayService, Depends(get_relay_service)],
) -> ApiResponse:
    batch = await service.execute_batch(batch_id)
    return _respond(request, BatchResponse.from_domain(batch).model_dump(mode="json"))


@router.get("/config")
async def get_config(
    request: Request,
    service: Annotated[RelayService, Depends(get_relay_service)],
) -> ApiResponse:
    result = RelayConfigResponse(**service.describe())
    return _respond(request, result.model_dump())
