from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class EntryType(str, Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class PoolState(str, Enum):
    PENDING = "PENDING"
    RESOLVED = "RESOLVED"
    SETTLED = "SETTLED"


class Outcome(str, Enum):
    HOME = "home"
    AWAY = "away"
    DRAW = "draw"


class RewardCode(BaseModel):
    code: str
    user_id: str
    discount_percent: int
    pool_id: Optional[str] = None
    issued_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserAccount(BaseModel):
    user_id: str
    display_name: str
    balance: Decimal = Decimal("0")
    is_premium: bool = False
    premium_until: Optional[datetime] = None
    wins: int = 0
    referrals: int = 0
    reward_codes: list[RewardCode] = Field(default_factory=list)
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    def premium_active(self, now: datetime) -> bool:
        return self.is_premium and self.premium_until is not None and self.premium_until > now

    def find_code(self, code: str) -> Optional[RewardCode]:
        return next((c for c in self.reward_codes if c.code == code), None)


class Entry(BaseModel):
    id: UUID
    pool_id: str
    user_id: str
    prediction: str
    fee: Decimal
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WinnerCredit(BaseModel):
    user_id: str
    entry_id: UUID
    amount: Decimal
    reward_code: str


class SettlementReceipt(BaseModel):
    pool_id: str
    outcome: str
    pool_total: Decimal
    commission_rate: Decimal
    house_cut: Decimal
    payout_per_winner: Decimal
    remainder: Decimal
    house_total: Decimal
    winners: list[WinnerCredit] = Field(default_factory=list)
    settled_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @property
    def total_paid(self) -> Decimal:
        return sum((w.amount for w in self.winners), Decimal("0"))


class EventPool(BaseModel):
    id: str
    sport: str
    external_id: str
    home: str
    away: str
    scheduled_at: datetime
    outcomes: list[str]
    state: PoolState = PoolState.PENDING
    outcome: Optional[str] = None
    total: Decimal = Decimal("0")
    entries: list[Entry] = Field(default_factory=list)
    receipt: Optional[SettlementReceipt] = None
    created_at: datetime
    resolved_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    def has_entry_for(self, user_id: str) -> bool:
        return any(e.user_id == user_id for e in self.entries)

    def entries_total(self) -> Decimal:
        return sum((e.fee for e in self.entries), Decimal("0"))


class LedgerEntry(BaseModel):
    id: UUID
    user_id: str
    entry_type: EntryType
    amount: Decimal
    balance_after: Decimal
    reference: Optional[str] = None
    description: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Requests


class OpenAccountRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    display_name: Optional[str] = None


class DepositRequest(BaseModel):
    amount: Decimal = Field(..., description="Top-up amount in ledger units")


class RegisterEventRequest(BaseModel):
    sport: str
    external_id: str
    home: str
    away: str
    scheduled_at: datetime

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "sport": "football",
            "external_id": "1035037",
            "home": "Arsenal",
            "away": "Chelsea",
            "scheduled_at": "2026-10-24T14:00:00Z",
        }
    })


class JoinRequest(BaseModel):
    user_id: str
    prediction: str
    fee: Optional[Decimal] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {"user_id": "pi-user-1", "prediction": "home", "fee": "0.50"}
    })


class ResolveRequest(BaseModel):
    outcome: str


class SubscribeRequest(BaseModel):
    user_id: str
    discount_code: Optional[str] = None


class ReferRequest(BaseModel):
    referrer_id: str
    new_user_id: str


# Responses


class JoinResponse(BaseModel):
    pool_id: str
    entry: Entry
    pool_total: Decimal
    balance_after: Decimal


class SettlementResponse(BaseModel):
    receipt: SettlementReceipt
    replayed: bool = False
    message: str


class SubscriptionResponse(BaseModel):
    user_id: str
    premium_until: datetime
    amount_charged: Decimal
    discount_code: Optional[str] = None


class LeaderboardRow(BaseModel):
    user_id: str
    display_name: str
    wins: int


class LedgerHistoryResponse(BaseModel):
    user_id: str
    entries: list[LedgerEntry]
    total_count: int
    current_balance: Decimal
