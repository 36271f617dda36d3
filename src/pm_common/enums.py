"""Global enums. Status values are stored and returned as lower-case strings."""

from enum import Enum


class Side(str, Enum):
    YES = "YES"
    NO = "NO"


class OrderStatus(str, Enum):
    PENDING_DEPOSIT = "pending_deposit"
    PENDING = "pending"
    COMMITTED = "committed"
    EXECUTING = "executing"
    COMPLETED = "completed"
    REFUNDED = "refunded"
    FAILED = "failed"
    EXPIRED = "expired"


class BatchStatus(str, Enum):
    COLLECTING = "collecting"
    READY = "ready"
    MPC_COMPUTING = "mpc_computing"  # encrypted batches only
    EXECUTING = "executing"
    PROVING = "proving"
    MPC_DISTRIBUTING = "mpc_distributing"  # encrypted batches only
    DISTRIBUTING = "distributing"
    COMPLETED = "completed"
    FAILED = "failed"


class MpcBatchStatus(str, Enum):
    """Lifecycle of a batch on the MPC network side."""
    COLLECTING = "collecting"
    CLOSED = "closed"
    REVEALED = "revealed"
    DISTRIBUTING = "distributing"
    COMPLETED = "completed"


class ErrorKind(str, Enum):
    """Machine-readable failure kind attached to every rejected operation."""
    ENCODING = "ENCODING"
    INVALID_DISTRIBUTION = "INVALID_DISTRIBUTION"
    CAPACITY = "CAPACITY"
    DOUBLE_SPEND = "DOUBLE_SPEND"
    STALE_ROOT = "STALE_ROOT"
    INVALID_PROOF = "INVALID_PROOF"
    VENUE_EXECUTION = "VENUE_EXECUTION"
    MPC_TIMEOUT = "MPC_TIMEOUT"
    MPC = "MPC"
    PROOF_GENERATION = "PROOF_GENERATION"
    PAYOUT = "PAYOUT"
    NOT_FOUND = "NOT_FOUND"
    INVALID_STATE = "INVALID_STATE"
    MARKET_NOT_ALLOWED = "MARKET_NOT_ALLOWED"
    INTERNAL = "INTERNAL"


class NullifierStoreKind(str, Enum):
    MEMORY = "memory"
    REDIS = "redis"
    DATABASE = "database"
