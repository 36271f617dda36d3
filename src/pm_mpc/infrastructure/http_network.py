"""HTTP gateway to the MPC network.

Binary payloads travel base64-encoded in JSON bodies. A 404 or 202 on a
fetch means "not ready yet" and maps to None so the caller keeps polling.
"""

import base64
import logging

import httpx

from src.pm_common.errors import MpcError
from src.pm_mpc.domain.models import DistributionInstruction

logger = logging.getLogger(__name__)

_PENDING_STATUSES = (202, 404)


class HttpMpcNetwork:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def send_instruction(self, batch_id: str, data: bytes) -> str:
        try:
            resp = await self._client.post(
                f"/batches/{batch_id}/instructions",
                json={"data": base64.b64encode(data).decode("ascii")},
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise MpcError(f"instruction for batch {batch_id} failed: {e}") from e
        reference = str(resp.json().get("signature", ""))
        logger.debug("MPC instruction for %s accepted: %s", batch_id, reference)
        return reference

    async def fetch_batch_account(self, batch_id: str) -> bytes | None:
        try:
            resp = await self._client.get(f"/batches/{batch_id}/account")
            if resp.status_code in _PENDING_STATUSES:
                return None
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise MpcError(f"account fetch for batch {batch_id} failed: {e}") from e
        return base64.b64decode(resp.json()["data"])

    async def fetch_distribution(
        self, batch_id: str, order_index: int
    ) -> DistributionInstruction | None:
        try:
            resp = await self._client.get(f"/batches/{batch_id}/distributions/{order_index}")
            if resp.status_code in _PENDING_STATUSES:
                return None
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise MpcError(f"distribution fetch for batch {batch_id} failed: {e}") from e
        body = resp.json()
        return DistributionInstruction(
            order_index=int(body["order_index"]),
            shares_amount=int(body["shares_amount"]),
            destination_wallet=str(body["destination_wallet"]),
        )
