# src/pm_privacy/application/schemas.py
from datetime import datetime

from pydantic import BaseModel, field_validator

from src.pm_crypto.field import is_field_hex


def _field_hex(v: str) -> str:
    if not is_field_hex(v):
        raise ValueError("must be a 0x-prefixed 32-byte hex value")
    return v.lower()


class DepositRequest(BaseModel):
    commitment: str

    @field_validator("commitment")
    @classmethod
    def commitment_is_field(cls, v: str) -> str:
        return _field_hex(v)


class BalanceProofSubmission(BaseModel):
    proof: str
    merkle_root: str
    nullifier: str
    new_commitment: str
    order_commitment: str


class MerkleRootResponse(BaseModel):
    root: str
    leaf_count: int


class MerklePathResponse(BaseModel):
    leaf_index: int
    path: list[str]
    root: str


class TreeStatsResponse(BaseModel):
    depth: int
    capacity: int
    leaf_count: int
    root: str
    last_updated: datetime | None = None
    nullifier_count: int


class DepositResponse(BaseModel):
    commitment: str
    leaf_index: int
    root: str


class BalanceProofResponse(BaseModel):
    valid: bool
    new_leaf_index: int | None = None
    root: str


class NullifierStatusResponse(BaseModel):
    nullifier: str
    used: bool


class NullifierCountResponse(BaseModel):
    count: int
