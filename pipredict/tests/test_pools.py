"""
Unit Tests for event pools and outcome interpretation
"""

from datetime import timedelta

import pytest

from pipredict.errors import InvalidOutcomeError, PoolNotFoundError
from pipredict.models import EventPool, PoolState
from pipredict.resolvers import Resolution, StaticOutcomeResolver, outcome_from_scores

from conftest import KICKOFF, NOW


class TestRegisterEvent:
    """Tests for pool registration."""

    def test_pool_id_derived_from_sport_and_external_id(self, service):
        pool = service.register_event("NBA", "18446", "Celtics", "Heat", KICKOFF)

        assert pool.id == "nba_18446"
        assert pool.sport == "nba"
        assert pool.outcomes == ["home", "away"]
        assert pool.state == PoolState.PENDING

    def test_football_allows_draw(self, football_pool):
        assert football_pool.outcomes == ["home", "away", "draw"]

    def test_register_is_upsert(self, service, fund, football_pool):
        fund("alice", "1.00")
        service.join(football_pool.id, "alice", "home")

        pool = service.register_event("football", "1035037", "Arsenal FC", "Chelsea FC", KICKOFF + timedelta(hours=1))

        assert pool.home == "Arsenal FC"
        assert pool.scheduled_at == KICKOFF + timedelta(hours=1)
        assert len(pool.entries) == 1

    def test_resolved_pool_keeps_fixture(self, service, football_pool):
        service.resolve(football_pool.id, "away")

        pool = service.register_event("football", "1035037", "Renamed", "Renamed", KICKOFF)

        assert pool.home == "Arsenal"
        assert pool.state == PoolState.RESOLVED

    def test_list_open_pools_sorted(self, service):
        later = service.register_event("nba", "2", "A", "B", NOW + timedelta(days=2))
        sooner = service.register_event("nba", "1", "C", "D", NOW + timedelta(days=1))
        closed = service.register_event("nba", "3", "E", "F", NOW)
        service.resolve(closed.id, "home")

        assert [p.id for p in service.list_open_pools()] == [sooner.id, later.id]

    def test_unknown_pool(self, service):
        with pytest.raises(PoolNotFoundError):
            service.get_pool("nba_missing")


class TestOutcomes:
    """Tests for score interpretation and the static resolver."""

    def test_scores(self):
        assert outcome_from_scores(102, 99, allow_draw=False) == "home"
        assert outcome_from_scores(1, 3) == "away"
        assert outcome_from_scores(2, 2) == "draw"

    def test_level_score_without_draws(self):
        with pytest.raises(InvalidOutcomeError):
            outcome_from_scores(100, 100, allow_draw=False)

    def test_static_resolver(self, football_pool: EventPool, nba_pool: EventPool):
        resolver = StaticOutcomeResolver()
        assert resolver(football_pool) == Resolution.PENDING

        assert resolver.set_score(football_pool, 1, 1) == "draw"
        assert resolver(football_pool) == "draw"

        resolver.mark_unavailable(nba_pool.id)
        assert resolver(nba_pool) == Resolution.UNAVAILABLE
