"""
Escrow and settlement engine for pooled-stake sports prediction challenges

This package provides:
- A per-user ledger with atomic debit/credit and an audit journal
- Event pools with a one-way Pending → Resolved → Settled lifecycle
- Entry admission that debits the fee and records the entry as one unit
- Exactly-once, idempotent settlement with fixed-point payout arithmetic
- Premium subscriptions paid with balance and single-use reward codes
"""

from .config import Settings, get_settings
from .models import (
    Entry,
    EntryType,
    EventPool,
    Outcome,
    PoolState,
    RewardCode,
    SettlementReceipt,
    UserAccount,
)
from .resolvers import Resolution, StaticOutcomeResolver, outcome_from_scores
from .service import PredictionService
from .settlement import plan_payouts

__all__ = [
    "Settings",
    "get_settings",
    "Entry",
    "EntryType",
    "EventPool",
    "Outcome",
    "PoolState",
    "RewardCode",
    "SettlementReceipt",
    "UserAccount",
    "Resolution",
    "StaticOutcomeResolver",
    "outcome_from_scores",
    "PredictionService",
    "plan_payouts",
]
