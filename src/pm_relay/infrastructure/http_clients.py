"""httpx adapters for the trade venue, prover and payout service.

Transport or HTTP errors are mapped to the matching AppError so the
lifecycle can record them on the batch.
"""

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from src.pm_common.enums import Side
from src.pm_common.errors import PayoutError, ProofGenerationError, VenueExecutionError
from src.pm_relay.domain.ports import GeneratedProof, VenueExecution

logger = logging.getLogger(__name__)


class HttpTradeVenue:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def execute(self, market_id: str, side: Side, usdc_amount: int) -> VenueExecution:
        try:
            resp = await self._client.post(
                "/execute",
                json={"market_id": market_id, "side": side.value, "usdc_amount": usdc_amount},
            )
            resp.raise_for_status()
            body = resp.json()
            return VenueExecution(
                usdc_spent=int(body["usdc_spent"]),
                shares_received=int(body["shares_received"]),
                fill_percentage=float(body["fill_percentage"]),
                share_token_mint=body.get("share_token_mint"),
                average_price=body.get("average_price"),
            )
        except httpx.HTTPError as e:
            raise VenueExecutionError(str(e)) from e
        except (KeyError, TypeError, ValueError) as e:
            raise VenueExecutionError(f"malformed venue response: {e}") from e


class HttpProver:
    """Proof generation and verification. Also serves as the pool's verifier."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def generate_proof(self, circuit_inputs: dict[str, Any]) -> GeneratedProof:
        try:
            resp = await self._client.post("/prove", json={"inputs": circuit_inputs})
            resp.raise_for_status()
            body = resp.json()
            return GeneratedProof(
                proof=str(body["proof"]),
                public_inputs=[str(x) for x in body["public_inputs"]],
                self_verified=bool(body.get("verified", False)),
            )
        except httpx.HTTPError as e:
            raise ProofGenerationError(str(e)) from e
        except (KeyError, TypeError) as e:
            raise ProofGenerationError(f"malformed prover response: {e}") from e

    async def verify_proof(self, proof: str, public_inputs: Sequence[str]) -> bool:
        try:
            resp = await self._client.post(
                "/verify", json={"proof": proof, "public_inputs": list(public_inputs)}
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise ProofGenerationError(f"verifier unavailable: {e}") from e
        verified = bool(resp.json().get("valid", False))
        logger.debug("Verifier answered %s", verified)
        return verified


class HttpPayoutExecutor:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def _post(self, path: str, payload: dict[str, Any]) -> str:
        try:
            resp = await self._client.post(path, json=payload)
            resp.raise_for_status()
            return str(resp.json()["signature"])
        except httpx.HTTPError as e:
            raise PayoutError(str(e)) from e
        except (KeyError, TypeError) as e:
            raise PayoutError(f"malformed payout response: {e}") from e

    async def transfer_shares(
        self, wallet: str, shares_amount: int, share_token_mint: str | None
    ) -> str:
        return await self._post(
            "/transfers/shares",
            {"wallet": wallet, "amount": shares_amount, "mint": share_token_mint},
        )

    async def refund_usdc(self, wallet: str, usdc_amount: int) -> str:
        return await self._post("/transfers/usdc", {"wallet": wallet, "amount": usdc_amount})
