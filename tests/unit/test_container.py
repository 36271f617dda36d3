"""Tests for service wiring."""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from config.settings import Settings
from src.container import build_container, build_stores, get_container, relay_config_from
from src.pm_privacy.infrastructure.memory_store import MemoryNullifierStore
from src.pm_privacy.infrastructure.redis_store import RedisBalanceLeafStore, RedisNullifierStore
from src.pm_privacy.infrastructure.sql_store import SqlBalanceLeafStore, SqlNullifierStore


class TestRelayConfig:
    def test_from_settings(self) -> None:
        cfg = Settings(MAX_BATCH_SIZE=8, ALLOWED_MARKETS=["a", "b"], BATCH_TIMEOUT_SECONDS=5)
        config = relay_config_from(cfg)
        assert config.max_batch_size == 8
        assert config.allowed_markets == frozenset({"a", "b"})
        assert config.batch_timeout_seconds == 5


class TestStores:
    async def test_memory(self) -> None:
        store, leaf_store = await build_stores(Settings(NULLIFIER_STORE="memory"))
        assert isinstance(store, MemoryNullifierStore)
        assert leaf_store is None

    async def test_redis(self) -> None:
        with patch("src.container.get_redis", AsyncMock(return_value=AsyncMock())):
            store, leaf_store = await build_stores(Settings(NULLIFIER_STORE="redis"))
        assert isinstance(store, RedisNullifierStore)
        assert isinstance(leaf_store, RedisBalanceLeafStore)

    async def test_database(self) -> None:
        store, leaf_store = await build_stores(Settings(NULLIFIER_STORE="database"))
        assert isinstance(store, SqlNullifierStore)
        assert isinstance(leaf_store, SqlBalanceLeafStore)

    async def test_unknown(self) -> None:
        with pytest.raises(ValueError):
            await build_stores(Settings(NULLIFIER_STORE="etcd"))


class TestBuildContainer:
    async def test_defaults_without_mpc(self, hasher, venue, prover, payouts) -> None:
        container = await build_container(
            Settings(), hasher=hasher, venue=venue, prover=prover, payouts=payouts
        )
        assert container.mpc is None
        assert container.http_clients == []
        assert container.registry.tree.depth == 5
        assert not container.relay_service.mpc_enabled
        await container.aclose()

    async def test_http_adapters_and_mpc(self, hasher) -> None:
        container = await build_container(Settings(MPC_ENABLED=True), hasher=hasher)
        assert container.mpc is not None
        assert container.relay_service.mpc_enabled
        assert len(container.http_clients) == 4
        await container.aclose()
        assert all(c.is_closed for c in container.http_clients)

    def test_get_container(self) -> None:
        request = MagicMock()
        assert get_container(request) is request.app.state.container
