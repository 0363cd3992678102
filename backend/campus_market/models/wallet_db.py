from sqlmodel import SQLModel, Field
from typing import Optional
from decimal import Decimal
from datetime import datetime, timezone

TRANSACTION_TYPES = ("deposit", "withdraw", "purchase", "sale", "refund")
TRANSACTION_STATUSES = ("pending", "completed", "failed")

class WalletTransaction(SQLModel, table=True):
    __tablename__ = "wallet_transactions"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    type: str
    status: str = Field(default="completed")
    # Order id, account description, etc.
    reference: Optional[str] = Field(default=None, index=True)
    # At most one ledger row per Stripe payment
    payment_intent_id: Optional[str] = Field(default=None, unique=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
