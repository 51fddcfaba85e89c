from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from pipredict.config import Settings
from pipredict.resolvers import StaticOutcomeResolver
from pipredict.service import PredictionService


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
KICKOFF = NOW - timedelta(hours=3)


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def resolver():
    return StaticOutcomeResolver()


@pytest.fixture
def service(settings, resolver):
    """Service with a fixed clock and an eligibility check that admits everyone."""
    return PredictionService(
        settings=settings,
        resolver=resolver,
        eligibility=lambda user_id: True,
        clock=lambda: NOW,
    )


@pytest.fixture
def fund(service):
    def _fund(user_id: str, amount: str) -> None:
        service.open_account(user_id, user_id.title())
        service.deposit(user_id, Decimal(amount))
    return _fund


@pytest.fixture
def football_pool(service):
    return service.register_event("football", "1035037", "Arsenal", "Chelsea", KICKOFF)


@pytest.fixture
def nba_pool(service):
    return service.register_event("nba", "18446", "Boston Celtics", "Miami Heat", KICKOFF)
