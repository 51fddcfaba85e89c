"""
Premium subscription and reward-code redemption.
"""

import logging
from datetime import timedelta
from typing import Optional

from .clock import Clock, utcnow
from .config import Settings, get_settings
from .errors import CodeInvalidError, InsufficientFundsError, UserNotFoundError
from .ledger import Ledger
from .models import SubscriptionResponse, UserAccount
from .money import apply_discount
from .storage import InMemoryStorage

logger = logging.getLogger(__name__)


class PremiumEligibility:
    """Default eligibility check: the user holds an unexpired premium plan."""

    def __init__(self, ledger: Ledger, clock: Clock = utcnow):
        self.ledger = ledger
        self.clock = clock

    def __call__(self, user_id: str) -> bool:
        account = self.ledger.find_account(user_id)
        return account is not None and account.premium_active(self.clock())


class SubscriptionService:
    def __init__(
        self,
        storage: InMemoryStorage,
        ledger: Ledger,
        settings: Optional[Settings] = None,
        clock: Clock = utcnow,
    ):
        self.storage = storage
        self.ledger = ledger
        self.settings = settings or get_settings()
        self.clock = clock

    def subscribe(self, user_id: str, discount_code: Optional[str] = None) -> SubscriptionResponse:
        """Charge the subscription price and extend premium.

        A discount code must belong to the user and still be unused; it is
        removed in the same unit of work as the debit and the premium update.
        """
        with self.storage.unit_of_work() as uow:
            user = uow.lock_users([user_id])[user_id]
            if user is None:
                raise UserNotFoundError(f"User {user_id} not found")
            account = UserAccount(**user)

            price = self.settings.subscription_price
            if discount_code:
                code = account.find_code(discount_code)
                if code is None:
                    raise CodeInvalidError(f"Code {discount_code} is not valid for {user_id}")
                price = apply_discount(price, code.discount_percent, self.settings.minor_unit)

            if account.balance < price:
                raise InsufficientFundsError(
                    f"Insufficient balance for {user_id}: {account.balance} < {price}"
                )
            self.ledger.debit(user_id, price, reference="subscription", description="Premium subscription", uow=uow)

            now = self.clock()
            start = account.premium_until if account.premium_active(now) else now
            premium_until = start + timedelta(days=self.settings.subscription_days)
            user["is_premium"] = True
            user["premium_until"] = premium_until
            if discount_code:
                user["reward_codes"] = [c for c in user["reward_codes"] if c["code"] != discount_code]

        logger.info("%s subscribed until %s (charged %s)", user_id, premium_until.isoformat(), price)
        return SubscriptionResponse(
            user_id=user_id,
            premium_until=premium_until,
            amount_charged=price,
            discount_code=discount_code,
        )
