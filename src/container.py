"""Service wiring.

Every stateful component (balance tree, nullifier registry, relay, MPC
coordinator) is constructed here once per application and handed to its
callers; nothing in the domain layers reads ``settings`` or keeps a module
global. Tests build their own container with fakes for the external ports.
"""

import logging
from dataclasses import dataclass, field

import httpx
from fastapi import Request

from config.settings import Settings
from src.pm_common.database import async_session_factory
from src.pm_common.enums import NullifierStoreKind
from src.pm_common.redis_client import close_redis, get_redis
from src.pm_crypto.poseidon import FieldHasher, get_hasher
from src.pm_merkle.balance_tree import BalanceMerkleTree
from src.pm_mpc.application.coordinator import MpcRevealCoordinator
from src.pm_mpc.application.polling import PollPolicy
from src.pm_mpc.domain.models import MpcNetwork
from src.pm_mpc.infrastructure.http_network import HttpMpcNetwork
from src.pm_privacy.application.service import PrivacyPoolService
from src.pm_privacy.domain.ports import BalanceLeafStore, NullifierStore, ProofVerifier
from src.pm_privacy.domain.registry import NullifierRegistry
from src.pm_privacy.infrastructure.memory_store import MemoryNullifierStore
from src.pm_privacy.infrastructure.redis_store import RedisBalanceLeafStore, RedisNullifierStore
from src.pm_privacy.infrastructure.sql_store import SqlBalanceLeafStore, SqlNullifierStore
from src.pm_relay.application.scheduler import BatchScheduler
from src.pm_relay.application.service import RelayService
from src.pm_relay.domain.models import RelayConfig
from src.pm_relay.domain.ports import PayoutExecutor, Prover, TradeVenue
from src.pm_relay.infrastructure.http_clients import HttpPayoutExecutor, HttpProver, HttpTradeVenue
from src.pm_relay.infrastructure.memory_repository import InMemoryRelayRepository

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    hasher: FieldHasher
    registry: NullifierRegistry
    privacy_service: PrivacyPoolService
    relay_service: RelayService
    scheduler: BatchScheduler
    mpc: MpcRevealCoordinator | None = None
    uses_redis: bool = False
    http_clients: list[httpx.AsyncClient] = field(default_factory=list)

    async def aclose(self) -> None:
        await self.scheduler.stop()
        for client in self.http_clients:
            await client.aclose()
        if self.uses_redis:
            await close_redis()


def relay_config_from(cfg: Settings) -> RelayConfig:
    return RelayConfig(
        max_batch_size=cfg.MAX_BATCH_SIZE,
        min_batch_size=cfg.MIN_BATCH_SIZE,
        batch_timeout_seconds=cfg.BATCH_TIMEOUT_SECONDS,
        deposit_window_seconds=cfg.DEPOSIT_WINDOW_SECONDS,
        tree_depth=cfg.BATCH_TREE_DEPTH,
        allowed_markets=frozenset(cfg.ALLOWED_MARKETS),
        mpc_enabled=cfg.MPC_ENABLED,
    )


async def build_stores(cfg: Settings) -> tuple[NullifierStore, BalanceLeafStore | None]:
    kind = NullifierStoreKind(cfg.NULLIFIER_STORE)
    if kind is NullifierStoreKind.REDIS:
        redis = await get_redis()
        return (
            RedisNullifierStore(redis, cfg.REDIS_NULLIFIER_KEY),
            RedisBalanceLeafStore(redis, f"{cfg.REDIS_NULLIFIER_KEY}:leaves"),
        )
    if kind is NullifierStoreKind.DATABASE:
        return SqlNullifierStore(async_session_factory), SqlBalanceLeafStore(async_session_factory)
    return MemoryNullifierStore(), None


async def build_container(
    cfg: Settings,
    *,
    hasher: FieldHasher | None = None,
    venue: TradeVenue | None = None,
    prover: Prover | None = None,
    payouts: PayoutExecutor | None = None,
    verifier: ProofVerifier | None = None,
    mpc_network: MpcNetwork | None = None,
) -> ServiceContainer:
    hasher = hasher or get_hasher()
    clients: list[httpx.AsyncClient] = []

    def _client(base_url: str) -> httpx.AsyncClient:
        client = httpx.AsyncClient(base_url=base_url, timeout=cfg.EXTERNAL_TIMEOUT_SECONDS)
        clients.append(client)
        return client

    prover = prover or HttpProver(_client(cfg.PROVER_URL))
    venue = venue or HttpTradeVenue(_client(cfg.VENUE_URL))
    payouts = payouts or HttpPayoutExecutor(_client(cfg.PAYOUT_URL))

    nullifier_store, leaf_store = await build_stores(cfg)
    tree = BalanceMerkleTree(hasher, cfg.BALANCE_TREE_DEPTH, cfg.ROOT_HISTORY_SIZE)
    registry = NullifierRegistry(nullifier_store, tree, verifier or prover, leaf_store)

    mpc: MpcRevealCoordinator | None = None
    if cfg.MPC_ENABLED:
        mpc = MpcRevealCoordinator(
            mpc_network or HttpMpcNetwork(_client(cfg.MPC_URL)),
            reveal_policy=PollPolicy(
                timeout=cfg.MPC_REVEAL_TIMEOUT_SECONDS,
                interval=cfg.MPC_POLL_INTERVAL_SECONDS,
                backoff=cfg.MPC_POLL_BACKOFF,
                max_interval=cfg.MPC_POLL_MAX_INTERVAL_SECONDS,
            ),
            distribution_policy=PollPolicy(
                timeout=cfg.MPC_DISTRIBUTION_TIMEOUT_SECONDS,
                interval=cfg.MPC_POLL_INTERVAL_SECONDS,
                backoff=cfg.MPC_POLL_BACKOFF,
                max_interval=cfg.MPC_POLL_MAX_INTERVAL_SECONDS,
            ),
        )

    relay_service = RelayService(
        repo=InMemoryRelayRepository(),
        hasher=hasher,
        venue=venue,
        prover=prover,
        payouts=payouts,
        config=relay_config_from(cfg),
        mpc=mpc,
    )
    logger.info(
        "Container built: nullifier_store=%s mpc=%s", cfg.NULLIFIER_STORE, cfg.MPC_ENABLED
    )
    return ServiceContainer(
        hasher=hasher,
        registry=registry,
        privacy_service=PrivacyPoolService(registry),
        relay_service=relay_service,
        scheduler=BatchScheduler(relay_service, cfg.SCHEDULER_INTERVAL_SECONDS),
        mpc=mpc,
        uses_redis=cfg.NULLIFIER_STORE == NullifierStoreKind.REDIS.value,
        http_clients=clients,
    )


def get_container(request: Request) -> ServiceContainer:
    """FastAPI dependency: the container built in the app lifespan."""
    return request.app.state.container
