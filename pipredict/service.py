import logging
from datetime import datetime
from typing import Optional

from .admission import EligibilityCheck, EntryAdmission
from .clock import Clock, utcnow
from .config import Settings, get_settings
from .errors import UserNotFoundError, ValidationError
from .ledger import Ledger
from .models import (
    EventPool,
    JoinResponse,
    LeaderboardRow,
    LedgerHistoryResponse,
    SettlementResponse,
    SubscriptionResponse,
    UserAccount,
)
from .money import AmountLike
from .pools import PoolRegistry
from .resolvers import OutcomeResolver, StaticOutcomeResolver
from .settlement import SettlementEngine
from .storage import InMemoryStorage
from .subscriptions import PremiumEligibility, SubscriptionService

logger = logging.getLogger(__name__)


class PredictionService:
    """Entry point wiring the ledger, pools, admission, settlement and subscriptions."""

    def __init__(
        self,
        storage: Optional[InMemoryStorage] = None,
        settings: Optional[Settings] = None,
        resolver: Optional[OutcomeResolver] = None,
        eligibility: Optional[EligibilityCheck] = None,
        clock: Clock = utcnow,
    ):
        self.storage = storage or InMemoryStorage()
        self.settings = settings or get_settings()
        self.clock = clock
        self.resolver = resolver if resolver is not None else StaticOutcomeResolver()

        self.ledger = Ledger(self.storage, self.settings, clock)
        self.pools = PoolRegistry(self.storage, self.settings, clock)
        self.eligibility = eligibility or PremiumEligibility(self.ledger, clock)
        self.admission = EntryAdmission(
            self.storage, self.ledger, self.pools, self.eligibility, self.settings, clock
        )
        self.settlement = SettlementEngine(
            self.storage, self.ledger, self.pools, self.resolver, self.settings, clock
        )
        self.subscriptions = SubscriptionService(self.storage, self.ledger, self.settings, clock)

    # Accounts

    def open_account(self, user_id: str, display_name: Optional[str] = None) -> UserAccount:
        return self.ledger.open_account(user_id, display_name)

    def get_account(self, user_id: str) -> UserAccount:
        return self.ledger.get_account(user_id)

    def deposit(self, user_id: str, amount: AmountLike) -> UserAccount:
        return self.ledger.deposit(user_id, amount)

    def get_ledger_history(self, user_id: str, limit: int = 50, offset: int = 0) -> LedgerHistoryResponse:
        return self.ledger.get_ledger_history(user_id, limit, offset)

    def leaderboard(self, limit: int = 10) -> list[LeaderboardRow]:
        return self.ledger.leaderboard(limit)

    def refer(self, referrer_id: str, new_user_id: str) -> UserAccount:
        if referrer_id == new_user_id:
            raise ValidationError("Users cannot refer themselves")
        if self.ledger.find_account(referrer_id) is None:
            raise UserNotFoundError(f"User {referrer_id} not found")

        with self.storage.unit_of_work() as uow:
            referrer = uow.lock_users([referrer_id])[referrer_id]
            if referrer is None:
                raise UserNotFoundError(f"User {referrer_id} not found")
            referrer["referrals"] += 1
            self.ledger.credit(
                referrer_id, self.settings.referral_bonus, reference=f"referral:{new_user_id}",
                description=f"Referral bonus for {new_user_id}", uow=uow,
            )
        logger.info("%s referred %s (+%s)", referrer_id, new_user_id, self.settings.referral_bonus)
        return self.ledger.get_account(referrer_id)

    # Pools

    def register_event(self, sport: str, external_id: str, home: str, away: str, scheduled_at: datetime) -> EventPool:
        return self.pools.register_event(sport, external_id, home, away, scheduled_at)

    def get_pool(self, pool_id: str) -> EventPool:
        return self.pools.get_pool(pool_id)

    def list_open_pools(self) -> list[EventPool]:
        return self.pools.list_open_pools()

    def join(self, pool_id: str, user_id: str, prediction: str, fee: Optional[AmountLike] = None) -> JoinResponse:
        return self.admission.join(pool_id, user_id, prediction, fee)

    def resolve(self, pool_id: str, outcome: str) -> EventPool:
        return self.pools.resolve(pool_id, outcome)

    def settle(self, pool_id: str) -> SettlementResponse:
        return self.settlement.settle(pool_id)

    def settle_due(self, now: Optional[datetime] = None) -> list[SettlementResponse]:
        return self.settlement.settle_due(now)

    # Subscriptions

    def subscribe(self, user_id: str, discount_code: Optional[str] = None) -> SubscriptionResponse:
        return self.subscriptions.subscribe(user_id, discount_code)
