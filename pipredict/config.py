"""Application configuration using Pydantic Settings."""

from decimal import Decimal
from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Escrow settings loaded from PIPREDICT_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PIPREDICT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Money
    commission_rate: Decimal = Field(default=Decimal("0.10"), description="House cut taken from each settled pool")
    minor_unit: Decimal = Field(default=Decimal("0.01"), description="Smallest ledger quantity")
    default_entry_fee: Decimal = Field(default=Decimal("0.50"), description="Entry fee when the caller sends none")

    # Subscription and rewards
    subscription_price: Decimal = Field(default=Decimal("0.50"))
    subscription_days: int = Field(default=30, gt=0)
    reward_discount_percent: int = Field(default=10, description="Discount carried by a winner's reward code")
    reward_code_prefix: str = Field(default="WIN")
    referral_bonus: Decimal = Field(default=Decimal("0.10"))

    # Events
    draw_sports: List[str] = Field(default_factory=lambda: ["football"])

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("commission_rate")
    @classmethod
    def validate_commission_rate(cls, v: Decimal) -> Decimal:
        if v < 0 or v >= 1:
            raise ValueError("commission_rate must be in [0, 1)")
        return v

    @field_validator("minor_unit", "default_entry_fee", "subscription_price", "referral_bonus")
    @classmethod
    def validate_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("amount must be positive")
        return v

    @field_validator("reward_discount_percent")
    @classmethod
    def validate_discount(cls, v: int) -> int:
        if not 0 < v < 100:
            raise ValueError("reward_discount_percent must be between 1 and 99")
        return v

    @field_validator("draw_sports")
    @classmethod
    def normalize_sports(cls, v: List[str]) -> List[str]:
        return [sport.strip().lower() for sport in v if sport.strip()]

    def allows_draw(self, sport: str) -> bool:
        return sport.lower() in self.draw_sports


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
