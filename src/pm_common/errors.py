"""Unified error codes and custom exceptions.

Error code ranges:
  4xxx: Order / Batch lifecycle
  6xxx: Encoding
  7xxx: Privacy pool (trees, nullifiers, proofs)
  8xxx: External collaborators (venue, prover, MPC)
  9xxx: System

Every error carries an ErrorKind so result objects and API envelopes can
report an explicit failure kind alongside the human-readable message.
"""

from src.pm_common.enums import ErrorKind


class AppError(Exception):
    """Base application error."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 4xxx: Order / Batch ---

class OrderNotFoundError(AppError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, order_id: str) -> None:
        super().__init__(4004, f"Order not found: {order_id}", 404)


class BatchNotFoundError(AppError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, batch_id: str) -> None:
        super().__init__(4101, f"Batch not found: {batch_id}", 404)


class InvalidStateTransitionError(AppError):
    kind = ErrorKind.INVALID_STATE

    def __init__(self, entity: str, current: str, target: str) -> None:
        super().__init__(
            4102, f"Illegal {entity} transition: {current} -> {target}", 409
        )


class MarketNotAllowedError(AppError):
    kind = ErrorKind.MARKET_NOT_ALLOWED

    def __init__(self, market_id: str) -> None:
        super().__init__(4103, f"Market not allowed: {market_id}", 422)


class InvalidDistributionError(AppError):
    kind = ErrorKind.INVALID_DISTRIBUTION

    def __init__(self, detail: str) -> None:
        super().__init__(4104, f"Invalid distribution: {detail}", 422)


class InvalidOrderError(AppError):
    kind = ErrorKind.INVALID_STATE

    def __init__(self, detail: str) -> None:
        super().__init__(4105, f"Invalid order: {detail}", 422)


# --- 6xxx: Encoding ---

class EncodingError(AppError):
    """Malformed address, amount or hex value. Raised at intake only."""

    kind = ErrorKind.ENCODING

    NEGATIVE = "Negative"
    MALFORMED = "Malformed"

    def __init__(self, reason: str, detail: str) -> None:
        self.reason = reason
        super().__init__(6001, f"Encoding error ({reason}): {detail}", 422)


# --- 7xxx: Privacy pool ---

class CapacityError(AppError):
    kind = ErrorKind.CAPACITY

    def __init__(self, detail: str) -> None:
        super().__init__(7001, f"Capacity exceeded: {detail}", 409)


class DoubleSpendError(AppError):
    kind = ErrorKind.DOUBLE_SPEND

    def __init__(self, nullifier: str) -> None:
        super().__init__(7002, f"Nullifier already used: {nullifier}", 409)


class StaleRootError(AppError):
    kind = ErrorKind.STALE_ROOT

    def __init__(self, root: str) -> None:
        super().__init__(7003, f"Merkle root is not recent: {root}", 409)


class InvalidProofError(AppError):
    kind = ErrorKind.INVALID_PROOF

    def __init__(self, detail: str = "Proof verification failed") -> None:
        super().__init__(7004, detail, 422)


class LeafIndexOutOfRangeError(AppError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, leaf_index: int, capacity: int) -> None:
        super().__init__(7005, f"Leaf index {leaf_index} outside 0..{capacity - 1}", 404)


# --- 8xxx: External collaborators ---

class VenueExecutionError(AppError):
    kind = ErrorKind.VENUE_EXECUTION

    def __init__(self, detail: str) -> None:
        super().__init__(8001, f"Trade venue failed: {detail}", 502)


class MpcTimeoutError(AppError):
    kind = ErrorKind.MPC_TIMEOUT

    def __init__(self, operation: str, timeout: float) -> None:
        super().__init__(8002, f"MPC {operation} timed out after {timeout:g}s", 504)


class ProofGenerationError(AppError):
    kind = ErrorKind.PROOF_GENERATION

    def __init__(self, detail: str) -> None:
        super().__init__(8003, f"Proof generation failed: {detail}", 502)


class MpcError(AppError):
    kind = ErrorKind.MPC

    def __init__(self, detail: str) -> None:
        super().__init__(8004, f"MPC error: {detail}", 502)


class MpcDisabledError(AppError):
    kind = ErrorKind.MPC

    def __init__(self) -> None:
        super().__init__(8006, "MPC is not enabled; encrypted orders are unavailable", 503)


class PayoutError(AppError):
    kind = ErrorKind.PAYOUT

    def __init__(self, detail: str) -> None:
        super().__init__(8005, f"Payout failed: {detail}", 502)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
