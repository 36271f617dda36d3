"""Tests for pm_common.enums: values are part of the HTTP contract and stored rows."""

from src.pm_common.enums import (
    BatchStatus,
    ErrorKind,
    MpcBatchStatus,
    NullifierStoreKind,
    OrderStatus,
    Side,
)


class TestAllEnumsAreStr:
    """All enums inherit from (str, Enum) for JSON serialization."""

    def test_side_is_str(self) -> None:
        assert isinstance(Side.YES, str)
        assert Side.YES == "YES"

    def test_order_status_is_str(self) -> None:
        assert isinstance(OrderStatus.PENDING_DEPOSIT, str)
        assert OrderStatus.PENDING_DEPOSIT == "pending_deposit"

    def test_error_kind_is_str(self) -> None:
        assert ErrorKind.DOUBLE_SPEND == "DOUBLE_SPEND"


class TestOrderStatus:
    def test_all_values(self) -> None:
        expected = {
            "pending_deposit", "pending", "committed", "executing",
            "completed", "refunded", "failed", "expired",
        }
        assert {s.value for s in OrderStatus} == expected


class TestBatchStatus:
    def test_all_values(self) -> None:
        expected = {
            "collecting", "ready", "mpc_computing", "executing", "proving",
            "mpc_distributing", "distributing", "completed", "failed",
        }
        assert {s.value for s in BatchStatus} == expected


class TestMpcBatchStatus:
    def test_all_values(self) -> None:
        expected = {"collecting", "closed", "revealed", "distributing", "completed"}
        assert {s.value for s in MpcBatchStatus} == expected


class TestNullifierStoreKind:
    def test_parse_from_setting(self) -> None:
        assert NullifierStoreKind("redis") is NullifierStoreKind.REDIS
