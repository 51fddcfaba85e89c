"""
Unit Tests for Entry Admission

Tests cover:
1. Successful joins
2. Precondition order and rejections without side effects
3. Atomic rollback of debit + pool append
4. Concurrent joins
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from pipredict.errors import (
    DuplicateEntryError,
    InsufficientFundsError,
    InvalidAmountError,
    NotEligibleError,
    PoolNotFoundError,
    PoolNotPendingError,
    PredictionInvalidError,
)
from pipredict.models import PoolState
from pipredict.service import PredictionService

from conftest import KICKOFF, NOW


class TestJoinFlow:
    """Tests for admitting entries."""

    def test_join_debits_and_records_entry(self, service, fund, football_pool):
        fund("alice", "2.00")

        response = service.join(football_pool.id, "alice", "home", Decimal("0.50"))

        assert response.pool_total == Decimal("0.50")
        assert response.balance_after == Decimal("1.50")
        assert response.entry.prediction == "home"
        pool = service.get_pool(football_pool.id)
        assert len(pool.entries) == 1
        assert pool.total == pool.entries_total()
        assert service.get_account("alice").balance == Decimal("1.50")

    def test_default_fee_applies(self, service, fund, football_pool, settings):
        fund("alice", "2.00")

        response = service.join(football_pool.id, "alice", "draw")

        assert response.entry.fee == settings.default_entry_fee

    def test_pool_totals_accumulate(self, service, fund, football_pool):
        for user_id in ("alice", "bob", "carol"):
            fund(user_id, "1.00")
            service.join(football_pool.id, user_id, "away", Decimal("0.75"))

        assert service.get_pool(football_pool.id).total == Decimal("2.25")


class TestJoinRejections:
    """Rejected joins leave balances and pools untouched."""

    def test_insufficient_funds(self, service, fund, football_pool):
        fund("alice", "0.40")

        with pytest.raises(InsufficientFundsError):
            service.join(football_pool.id, "alice", "home", Decimal("0.50"))

        assert service.get_account("alice").balance == Decimal("0.40")
        assert service.get_pool(football_pool.id).total == Decimal("0.00")
        assert service.get_pool(football_pool.id).entries == []

    def test_unknown_pool(self, service, fund):
        fund("alice", "1.00")
        with pytest.raises(PoolNotFoundError):
            service.join("football_404", "alice", "home")

    def test_draw_not_valid_for_nba(self, service, fund, nba_pool):
        fund("alice", "1.00")
        with pytest.raises(PredictionInvalidError):
            service.join(nba_pool.id, "alice", "draw")

    def test_resolved_pool_rejects_entries(self, service, fund, football_pool):
        fund("alice", "1.00")
        service.resolve(football_pool.id, "home")

        with pytest.raises(PoolNotPendingError):
            service.join(football_pool.id, "alice", "home")

    def test_pool_check_precedes_prediction_check(self, service, fund, football_pool):
        fund("alice", "1.00")
        service.resolve(football_pool.id, "home")

        with pytest.raises(PoolNotPendingError):
            service.join(football_pool.id, "alice", "not-a-label")

    def test_duplicate_entry_rejected(self, service, fund, football_pool):
        fund("alice", "2.00")
        service.join(football_pool.id, "alice", "home")

        with pytest.raises(DuplicateEntryError):
            service.join(football_pool.id, "alice", "away")

        assert service.get_account("alice").balance == Decimal("1.50")
        assert service.get_pool(football_pool.id).total == Decimal("0.50")

    def test_non_positive_fee(self, service, fund, football_pool):
        fund("alice", "1.00")
        with pytest.raises(InvalidAmountError):
            service.join(football_pool.id, "alice", "home", Decimal("0"))

    def test_premium_required_by_default(self, settings):
        service = PredictionService(settings=settings, clock=lambda: NOW)
        pool = service.register_event("football", "1", "Leeds", "Everton", KICKOFF)
        service.deposit("alice", Decimal("5.00"))

        with pytest.raises(NotEligibleError):
            service.join(pool.id, "alice", "home")

        service.subscribe("alice")
        response = service.join(pool.id, "alice", "home")
        assert response.pool_total == Decimal("0.50")


class TestJoinAtomicity:
    """Debit and pool append commit together or not at all."""

    def test_append_failure_rolls_back_debit(self, service, fund, football_pool, monkeypatch):
        fund("alice", "2.00")

        def broken_append(uow, entry):
            raise RuntimeError("pool store unavailable")

        monkeypatch.setattr(service.pools, "append_entry", broken_append)

        with pytest.raises(RuntimeError):
            service.join(football_pool.id, "alice", "home")

        assert service.get_account("alice").balance == Decimal("2.00")
        assert service.get_ledger_history("alice").total_count == 1
        pool = service.get_pool(football_pool.id)
        assert pool.total == Decimal("0.00")
        assert pool.entries == []


class TestConcurrentJoins:
    """Concurrent joins keep balances non-negative and totals exact."""

    def test_many_users_one_pool(self, service, fund, football_pool):
        users = [f"user-{i}" for i in range(25)]
        for user_id in users:
            fund(user_id, "0.50")
        barrier = threading.Barrier(len(users))

        def join(user_id):
            barrier.wait()
            service.join(football_pool.id, user_id, "home", Decimal("0.50"))

        with ThreadPoolExecutor(max_workers=len(users)) as pool:
            list(pool.map(join, users))

        pool = service.get_pool(football_pool.id)
        assert len(pool.entries) == 25
        assert pool.total == Decimal("12.50")
        assert all(service.get_account(u).balance == Decimal("0.00") for u in users)

    def test_one_user_many_pools(self, service, fund):
        fund("alice", "2.00")
        pools = [
            service.register_event("football", str(i), f"Home {i}", f"Away {i}", KICKOFF)
            for i in range(10)
        ]
        barrier = threading.Barrier(len(pools))

        def join(pool_id):
            barrier.wait()
            try:
                service.join(pool_id, "alice", "home", Decimal("0.50"))
                return True
            except InsufficientFundsError:
                return False

        with ThreadPoolExecutor(max_workers=len(pools)) as executor:
            admitted = list(executor.map(join, [p.id for p in pools]))

        assert admitted.count(True) == 4
        assert service.get_account("alice").balance == Decimal("0.00")
        totals = sum((service.get_pool(p.id).total for p in pools), Decimal("0"))
        assert totals == Decimal("2.00")

    def test_same_user_races_on_one_pool(self, service, fund, football_pool):
        fund("alice", "5.00")
        barrier = threading.Barrier(8)

        def join(_):
            barrier.wait()
            try:
                service.join(football_pool.id, "alice", "home", Decimal("0.50"))
                return True
            except DuplicateEntryError:
                return False

        with ThreadPoolExecutor(max_workers=8) as executor:
            admitted = list(executor.map(join, range(8)))

        assert admitted.count(True) == 1
        assert service.get_account("alice").balance == Decimal("4.50")
        assert service.get_pool(football_pool.id).state == PoolState.PENDING
