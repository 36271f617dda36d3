"""Order intake checks. Every malformed order is rejected here, before it
reaches a batch."""

from collections.abc import Sequence

from src.pm_common.amounts import BPS_DENOMINATOR
from src.pm_common.errors import InvalidDistributionError, InvalidOrderError, MarketNotAllowedError
from src.pm_crypto.commitment import MAX_DISTRIBUTION_DESTINATIONS, DistributionEntry
from src.pm_crypto.field import address_to_field
from src.pm_relay.domain.models import RelayConfig

MIN_WALLET_LENGTH = 32


def check_market_allowed(config: RelayConfig, market_id: str) -> None:
    if not config.market_allowed(market_id):
        raise MarketNotAllowedError(market_id)


def check_amount(usdc_micros: int) -> None:
    if usdc_micros <= 0:
        raise InvalidOrderError(f"usdc amount must be positive, got {usdc_micros} micros")


def check_wallet(wallet: str) -> None:
    """Length check plus a trial encoding; raises EncodingError on bad base58."""
    if len(wallet) < MIN_WALLET_LENGTH:
        raise InvalidDistributionError(f"wallet {wallet!r} is not a valid address")
    address_to_field(wallet)


def validate_distribution(distribution: Sequence[DistributionEntry]) -> None:
    if not distribution:
        raise InvalidDistributionError("at least one destination is required")
    if len(distribution) > MAX_DISTRIBUTION_DESTINATIONS:
        raise InvalidDistributionError(
            f"{len(distribution)} destinations, max {MAX_DISTRIBUTION_DESTINATIONS}"
        )
    for entry in distribution:
        if entry.basis_points <= 0:
            raise InvalidDistributionError(f"percentage for {entry.wallet} must be positive")
        check_wallet(entry.wallet)
    total = sum(e.basis_points for e in distribution)
    if total != BPS_DENOMINATOR:
        raise InvalidDistributionError(f"percentages sum to {total}, expected {BPS_DENOMINATOR}")
