"""
Entry admission: validate a stake and record it against a pool.

The fee debit and the pool append run in one unit of work, so a failure in
either leaves both the balance and the pool total untouched.
"""

import logging
from typing import Callable, Optional
from uuid import uuid4

from .clock import Clock, utcnow
from .config import Settings, get_settings
from .errors import (
    DuplicateEntryError,
    NotEligibleError,
    PoolNotFoundError,
    PoolNotPendingError,
    PredictionInvalidError,
)
from .ledger import Ledger
from .models import Entry, JoinResponse, PoolState
from .money import AmountLike, to_amount
from .pools import PoolRegistry
from .storage import InMemoryStorage

logger = logging.getLogger(__name__)

EligibilityCheck = Callable[[str], bool]


class EntryAdmission:
    def __init__(
        self,
        storage: InMemoryStorage,
        ledger: Ledger,
        pools: PoolRegistry,
        eligibility: EligibilityCheck,
        settings: Optional[Settings] = None,
        clock: Clock = utcnow,
    ):
        self.storage = storage
        self.ledger = ledger
        self.pools = pools
        self.eligibility = eligibility
        self.settings = settings or get_settings()
        self.clock = clock

    def join(
        self,
        pool_id: str,
        user_id: str,
        prediction: str,
        fee: Optional[AmountLike] = None,
    ) -> JoinResponse:
        """Stake ``fee`` on ``prediction`` for ``pool_id``.

        Checks run in order: amount, pool exists, pool pending, prediction
        valid, caller eligible, no prior entry, funds. The eligibility lookup
        happens before any lock is taken; the remaining checks are repeated
        under the pool and user locks.
        """
        fee = to_amount(self.settings.default_entry_fee if fee is None else fee, self.settings.minor_unit)

        pool = self.pools.get_pool(pool_id)
        if pool.state != PoolState.PENDING:
            raise PoolNotPendingError(f"Pool {pool_id} is {pool.state.value}")
        if prediction not in pool.outcomes:
            raise PredictionInvalidError(
                f"Prediction {prediction!r} is not one of {', '.join(pool.outcomes)}"
            )
        if not self.eligibility(user_id):
            logger.debug("Rejected %s for %s: not eligible", user_id, pool_id)
            raise NotEligibleError(f"User {user_id} is not eligible to join")

        entry = Entry(
            id=uuid4(),
            pool_id=pool_id,
            user_id=user_id,
            prediction=prediction,
            fee=fee,
            created_at=self.clock(),
        )
        with self.storage.unit_of_work() as uow:
            if uow.lock_pool(pool_id) is None:
                raise PoolNotFoundError(f"Pool {pool_id} not found")
            uow.lock_users([user_id])
            # the pool append repeats these checks; running them first keeps
            # the error order stable against the funds check
            self._check_still_open(uow.pool(pool_id), user_id)
            balance_after = self.ledger.debit(
                user_id, fee, reference=pool_id, description=f"Entry fee for {pool_id}", uow=uow
            )
            pool_total = self.pools.append_entry(uow, entry)

        logger.info("%s joined %s predicting %s (fee %s, pool %s)", user_id, pool_id, prediction, fee, pool_total)
        return JoinResponse(pool_id=pool_id, entry=entry, pool_total=pool_total, balance_after=balance_after)

    @staticmethod
    def _check_still_open(pool: dict, user_id: str) -> None:
        if pool["state"] != PoolState.PENDING:
            raise PoolNotPendingError(f"Pool {pool['id']} is {pool['state'].value}")
        if any(e["user_id"] == user_id for e in pool["entries"]):
            raise DuplicateEntryError(f"User {user_id} already holds an entry in {pool['id']}")
