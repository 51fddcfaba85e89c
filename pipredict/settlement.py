"""
Settlement engine.

Turns a resolved pool into payouts exactly once:

- house cut = pool total * commission rate, rounded half-up to the minor unit
- each winner gets (total - house cut) / winners, rounded down
- the rounding remainder, or the whole pool when nobody won, stays with the house

Credits, win counters, reward codes and the Settled transition commit as one
unit under the pool lock. A second call finds the pool Settled and replays the
stored receipt without touching any balance.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .clock import Clock, utcnow
from .config import Settings, get_settings
from .errors import (
    DependencyError,
    NotResolvedError,
    PoolNotFoundError,
    ResolutionUnavailableError,
)
from .ledger import Ledger
from .models import (
    Entry,
    EventPool,
    PoolState,
    SettlementReceipt,
    SettlementResponse,
    WinnerCredit,
)
from .money import house_cut, split_evenly
from .pools import PoolRegistry
from .resolvers import OutcomeResolver, Resolution
from .storage import InMemoryStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PayoutPlan:
    house_cut: Decimal
    payout_per_winner: Decimal
    remainder: Decimal
    house_total: Decimal


def plan_payouts(total: Decimal, winner_count: int, rate: Decimal, unit: Decimal) -> PayoutPlan:
    cut = house_cut(total, rate, unit)
    payout, remainder = split_evenly(total - cut, winner_count, unit)
    return PayoutPlan(
        house_cut=cut,
        payout_per_winner=payout,
        remainder=remainder,
        house_total=cut + remainder,
    )


class SettlementEngine:
    def __init__(
        self,
        storage: InMemoryStorage,
        ledger: Ledger,
        pools: PoolRegistry,
        resolver: OutcomeResolver,
        settings: Optional[Settings] = None,
        clock: Clock = utcnow,
    ):
        self.storage = storage
        self.ledger = ledger
        self.pools = pools
        self.resolver = resolver
        self.settings = settings or get_settings()
        self.clock = clock

    def settle(self, pool_id: str) -> SettlementResponse:
        pool = self.pools.get_pool(pool_id)
        if pool.state == PoolState.SETTLED:
            return self._replay(pool)
        if pool.state == PoolState.PENDING:
            pool = self._resolve(pool)

        with self.storage.unit_of_work() as uow:
            data = uow.lock_pool(pool_id)
            if data is None:
                raise PoolNotFoundError(f"Pool {pool_id} not found")
            pool = EventPool(**data)
            if pool.state == PoolState.SETTLED:
                return self._replay(pool)
            if pool.state != PoolState.RESOLVED:
                raise NotResolvedError(f"Pool {pool_id} has no outcome yet")

            winners = [e for e in pool.entries if e.prediction == pool.outcome]
            plan = plan_payouts(pool.total, len(winners), self.settings.commission_rate, self.settings.minor_unit)

            uow.lock_users(e.user_id for e in winners)
            credits = [self._pay_winner(uow, pool, entry, plan.payout_per_winner) for entry in winners]

            receipt = SettlementReceipt(
                pool_id=pool_id,
                outcome=pool.outcome,
                pool_total=pool.total,
                commission_rate=self.settings.commission_rate,
                house_cut=plan.house_cut,
                payout_per_winner=plan.payout_per_winner,
                remainder=plan.remainder,
                house_total=plan.house_total,
                winners=credits,
                settled_at=self.clock(),
            )
            self.pools.mark_settled(uow, pool_id, receipt)

        logger.info(
            "Settled %s on %s: %d winner(s) at %s each, house keeps %s of %s",
            pool_id, receipt.outcome, len(credits), receipt.payout_per_winner,
            receipt.house_total, receipt.pool_total,
        )
        return SettlementResponse(receipt=receipt, replayed=False, message="Pool settled")

    def settle_due(self, now: Optional[datetime] = None) -> list[SettlementResponse]:
        """Settle every unsettled pool whose event time has passed.

        Pools still waiting for a result, or whose resolver is down, are
        skipped and picked up on the next run.
        """
        results = []
        for pool in self.pools.list_unsettled(now or self.clock()):
            try:
                results.append(self.settle(pool.id))
            except (NotResolvedError, DependencyError) as e:
                logger.info("Skipping %s: %s", pool.id, e)
        return results

    def _resolve(self, pool: EventPool) -> EventPool:
        try:
            result = self.resolver(pool)
        except Exception as e:
            raise ResolutionUnavailableError(f"Resolver failed for {pool.id}: {e}") from e

        if result == Resolution.PENDING:
            raise NotResolvedError(f"Pool {pool.id} has no outcome yet")
        if result == Resolution.UNAVAILABLE:
            raise ResolutionUnavailableError(f"No result source available for {pool.id}")
        outcome = getattr(result, "value", result)
        if outcome not in pool.outcomes:
            raise ResolutionUnavailableError(f"Resolver returned {outcome!r}, not an outcome of {pool.id}")
        return self.pools.resolve(pool.id, outcome)

    def _pay_winner(self, uow, pool: EventPool, entry: Entry, amount: Decimal) -> WinnerCredit:
        if amount > 0:
            self.ledger.credit(
                entry.user_id, amount, reference=pool.id,
                description=f"Winnings for {pool.id}", uow=uow,
            )
        code = self.ledger.record_win(uow, entry.user_id, pool.id)
        logger.info("Winner %s gets code %s", entry.user_id, code.code)
        return WinnerCredit(user_id=entry.user_id, entry_id=entry.id, amount=amount, reward_code=code.code)

    @staticmethod
    def _replay(pool: EventPool) -> SettlementResponse:
        return SettlementResponse(receipt=pool.receipt, replayed=True, message="Pool already settled (idempotent return)")
