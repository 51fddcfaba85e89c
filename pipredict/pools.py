"""
Event pools: registration, lookup, resolution and entry bookkeeping.

A pool owns its entry list and resolution state. Its total always equals the
sum of the fees of the entries it records.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from .clock import Clock, utcnow
from .config import Settings, get_settings
from .errors import (
    DuplicateEntryError,
    IntegrityFailure,
    InvalidOutcomeError,
    InvalidStateTransitionError,
    PoolNotFoundError,
    PoolNotPendingError,
)
from .models import Entry, EventPool, Outcome, PoolState, SettlementReceipt
from .storage import InMemoryStorage, UnitOfWork

logger = logging.getLogger(__name__)


class PoolRegistry:
    def __init__(
        self,
        storage: InMemoryStorage,
        settings: Optional[Settings] = None,
        clock: Clock = utcnow,
    ):
        self.storage = storage
        self.settings = settings or get_settings()
        self.clock = clock

    @staticmethod
    def pool_id_for(sport: str, external_id: str) -> str:
        return f"{sport.lower()}_{external_id}"

    def outcomes_for(self, sport: str) -> list[str]:
        outcomes = [Outcome.HOME.value, Outcome.AWAY.value]
        if self.settings.allows_draw(sport):
            outcomes.append(Outcome.DRAW.value)
        return outcomes

    def register_event(
        self,
        sport: str,
        external_id: str,
        home: str,
        away: str,
        scheduled_at: datetime,
    ) -> EventPool:
        """Create the pool for an event, or refresh its fixture details.

        Entries and stake are never touched; fixture details only change while
        the pool is still pending.
        """
        pool_id = self.pool_id_for(sport, external_id)
        if scheduled_at.tzinfo is None:
            scheduled_at = scheduled_at.replace(tzinfo=timezone.utc)
        with self.storage.unit_of_work() as uow:
            pool = uow.lock_pool(pool_id)
            if pool is None:
                pool = EventPool(
                    id=pool_id,
                    sport=sport.lower(),
                    external_id=str(external_id),
                    home=home,
                    away=away,
                    scheduled_at=scheduled_at,
                    outcomes=self.outcomes_for(sport),
                    total=Decimal("0").quantize(self.settings.minor_unit),
                    created_at=self.clock(),
                ).model_dump()
                uow.put_pool(pool_id, pool)
                logger.info("Registered pool %s (%s vs %s)", pool_id, home, away)
            elif pool["state"] == PoolState.PENDING:
                pool.update(home=home, away=away, scheduled_at=scheduled_at)
        return EventPool(**pool)

    def find_pool(self, pool_id: str) -> Optional[EventPool]:
        data = self.storage.read_pool(pool_id)
        return EventPool(**data) if data else None

    def get_pool(self, pool_id: str) -> EventPool:
        pool = self.find_pool(pool_id)
        if pool is None:
            raise PoolNotFoundError(f"Pool {pool_id} not found")
        return pool

    def list_open_pools(self) -> list[EventPool]:
        pools = [EventPool(**p) for p in self.storage.list_pools() if p["state"] == PoolState.PENDING]
        pools.sort(key=lambda p: p.scheduled_at)
        return pools

    def list_unsettled(self, due_before: datetime) -> list[EventPool]:
        pools = [
            EventPool(**p) for p in self.storage.list_pools()
            if p["state"] != PoolState.SETTLED and p["scheduled_at"] <= due_before
        ]
        pools.sort(key=lambda p: p.scheduled_at)
        return pools

    def resolve(self, pool_id: str, outcome: str) -> EventPool:
        """Record the final outcome: Pending -> Resolved.

        Re-resolving with the same outcome is a no-op; a different outcome on a
        resolved or settled pool is rejected.
        """
        self.get_pool(pool_id)
        with self.storage.unit_of_work() as uow:
            pool = uow.lock_pool(pool_id)
            if pool is None:
                raise PoolNotFoundError(f"Pool {pool_id} not found")
            if outcome not in pool["outcomes"]:
                raise InvalidOutcomeError(f"Outcome {outcome!r} is not valid for pool {pool_id}")

            if pool["state"] == PoolState.PENDING:
                pool["state"] = PoolState.RESOLVED
                pool["outcome"] = outcome
                pool["resolved_at"] = self.clock()
                logger.info("Pool %s resolved to %s", pool_id, outcome)
            elif pool["outcome"] != outcome:
                raise InvalidStateTransitionError(
                    f"Pool {pool_id} already resolved to {pool['outcome']!r}, cannot change to {outcome!r}"
                )
        return EventPool(**pool)

    def append_entry(self, uow: UnitOfWork, entry: Entry) -> Decimal:
        pool = uow.pool(entry.pool_id)
        if pool is None:
            raise PoolNotFoundError(f"Pool {entry.pool_id} not found")
        if pool["state"] != PoolState.PENDING:
            raise PoolNotPendingError(f"Pool {entry.pool_id} is {pool['state'].value}")
        if any(e["user_id"] == entry.user_id for e in pool["entries"]):
            raise DuplicateEntryError(f"User {entry.user_id} already holds an entry in {entry.pool_id}")

        pool["entries"].append(entry.model_dump())
        pool["total"] += entry.fee
        self._check_total(pool)
        return pool["total"]

    def mark_settled(self, uow: UnitOfWork, pool_id: str, receipt: SettlementReceipt) -> None:
        pool = uow.pool(pool_id)
        if pool is None or pool["state"] != PoolState.RESOLVED:
            raise InvalidStateTransitionError(f"Pool {pool_id} is not resolved")
        self._check_total(pool)
        pool["state"] = PoolState.SETTLED
        pool["receipt"] = receipt.model_dump()

    @staticmethod
    def _check_total(pool: dict) -> None:
        recorded = sum((e["fee"] for e in pool["entries"]), Decimal("0"))
        if recorded != pool["total"]:
            raise IntegrityFailure(
                f"Pool {pool['id']} total {pool['total']} does not match entries {recorded}"
            )
