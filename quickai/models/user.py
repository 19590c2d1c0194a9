"""
quickai/models/user.py

Identity-side view of a user.

The identity provider owns plan and usage; this service only reads them and
asks for increments.
"""

from enum import Enum
from pydantic import BaseModel, ConfigDict, Field


class Plan(str, Enum):
    FREE = "free"
    PREMIUM = "premium"

    @classmethod
    def parse(cls, value) -> "Plan":
        """Map a raw metadata/claim value to a Plan; anything unknown is free."""
        if isinstance(value, Plan):
            return value
        text = str(value or "").strip().lower()
        # Clerk billing encodes plans in session claims as "u:<slug>" / "o:<slug>"
        if ":" in text:
            text = text.split(":", 1)[1]
        return cls.PREMIUM if text == cls.PREMIUM.value else cls.FREE


class UserAccount(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    plan: Plan = Plan.FREE
    free_usage: int = Field(default=0, ge=0)

    @property
    def is_premium(self) -> bool:
        return self.plan is Plan.PREMIUM
