"""
Per-user balances, win counters and reward codes.

Every balance change is a single locked read-modify-write on one user record
and leaves a journal line behind. Callers that need the change to be part of a
larger atomic unit pass their own UnitOfWork; otherwise the ledger opens one.
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from .clock import Clock, utcnow
from .config import Settings, get_settings
from .errors import InsufficientFundsError, UserNotFoundError
from .models import (
    EntryType,
    LeaderboardRow,
    LedgerEntry,
    LedgerHistoryResponse,
    RewardCode,
    UserAccount,
)
from .money import AmountLike, to_amount
from .storage import InMemoryStorage, UnitOfWork

logger = logging.getLogger(__name__)


class Ledger:
    def __init__(
        self,
        storage: InMemoryStorage,
        settings: Optional[Settings] = None,
        clock: Clock = utcnow,
    ):
        self.storage = storage
        self.settings = settings or get_settings()
        self.clock = clock

    def open_account(self, user_id: str, display_name: Optional[str] = None) -> UserAccount:
        with self.storage.unit_of_work() as uow:
            uow.lock_users([user_id])
            user = self._ensure_account(uow, user_id, display_name)
        return UserAccount(**user)

    def find_account(self, user_id: str) -> Optional[UserAccount]:
        data = self.storage.read_user(user_id)
        return UserAccount(**data) if data else None

    def get_account(self, user_id: str) -> UserAccount:
        account = self.find_account(user_id)
        if account is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return account

    def debit(
        self,
        user_id: str,
        amount: AmountLike,
        reference: Optional[str] = None,
        description: str = "Debit",
        uow: Optional[UnitOfWork] = None,
    ) -> Decimal:
        """Take ``amount`` from the user's balance and return the new balance.

        Raises InvalidAmountError for non-positive or sub-unit amounts and
        InsufficientFundsError when the balance would go negative. An unknown
        user has nothing to spend.
        """
        amount = to_amount(amount, self.settings.minor_unit)
        if uow is None:
            with self.storage.unit_of_work() as own:
                own.lock_users([user_id])
                return self._apply(own, user_id, EntryType.DEBIT, amount, reference, description)
        return self._apply(uow, user_id, EntryType.DEBIT, amount, reference, description)

    def credit(
        self,
        user_id: str,
        amount: AmountLike,
        reference: Optional[str] = None,
        description: str = "Credit",
        uow: Optional[UnitOfWork] = None,
    ) -> Decimal:
        """Add ``amount`` to the user's balance, opening the account if needed."""
        amount = to_amount(amount, self.settings.minor_unit)
        if uow is None:
            with self.storage.unit_of_work() as own:
                own.lock_users([user_id])
                return self._apply(own, user_id, EntryType.CREDIT, amount, reference, description)
        return self._apply(uow, user_id, EntryType.CREDIT, amount, reference, description)

    def deposit(self, user_id: str, amount: AmountLike) -> UserAccount:
        self.credit(user_id, amount, reference="deposit", description="Account top-up")
        return self.get_account(user_id)

    def record_win(self, uow: UnitOfWork, user_id: str, pool_id: str) -> RewardCode:
        """Bump the user's win counter and issue a reward code keyed by it."""
        user = uow.user(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        user["wins"] += 1
        percent = self.settings.reward_discount_percent
        code = RewardCode(
            code=f"{self.settings.reward_code_prefix}{percent}_{user['wins']}",
            user_id=user_id,
            discount_percent=percent,
            pool_id=pool_id,
            issued_at=self.clock(),
        )
        user["reward_codes"].append(code.model_dump())
        return code

    def get_ledger_history(self, user_id: str, limit: int = 50, offset: int = 0) -> LedgerHistoryResponse:
        account = self.get_account(user_id)
        all_entries = [LedgerEntry(**e) for e in self.storage.journal_for(user_id)]
        all_entries.sort(key=lambda e: e.created_at, reverse=True)
        return LedgerHistoryResponse(
            user_id=user_id,
            entries=all_entries[offset:offset + limit],
            total_count=len(all_entries),
            current_balance=account.balance,
        )

    def leaderboard(self, limit: int = 10) -> list[LeaderboardRow]:
        users = sorted(self.storage.list_users(), key=lambda u: (-u["wins"], u["user_id"]))
        return [
            LeaderboardRow(user_id=u["user_id"], display_name=u["display_name"], wins=u["wins"])
            for u in users[:limit]
        ]

    def _ensure_account(self, uow: UnitOfWork, user_id: str, display_name: Optional[str] = None) -> dict:
        user = uow.user(user_id)
        if user is None:
            user = UserAccount(
                user_id=user_id,
                display_name=display_name or user_id,
                balance=Decimal("0").quantize(self.settings.minor_unit),
                created_at=self.clock(),
            ).model_dump()
            uow.put_user(user_id, user)
            logger.info("Opened account %s", user_id)
        return user

    def _apply(
        self,
        uow: UnitOfWork,
        user_id: str,
        entry_type: EntryType,
        amount: Decimal,
        reference: Optional[str],
        description: str,
    ) -> Decimal:
        if entry_type == EntryType.DEBIT:
            user = uow.user(user_id)
            balance = user["balance"] if user else Decimal("0")
            if balance < amount:
                raise InsufficientFundsError(
                    f"Insufficient balance for {user_id}: {balance} < {amount}"
                )
            new_balance = balance - amount
        else:
            user = self._ensure_account(uow, user_id)
            new_balance = user["balance"] + amount

        user["balance"] = new_balance
        uow.record(LedgerEntry(
            id=uuid4(),
            user_id=user_id,
            entry_type=entry_type,
            amount=amount,
            balance_after=new_balance,
            reference=reference,
            description=description,
            created_at=self.clock(),
        ).model_dump())
        return new_balance
