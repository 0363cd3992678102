from pydantic import BaseModel, Field
from typing import Any, Dict, Literal, Union
from decimal import Decimal

class AmountRequest(BaseModel):
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)

class ConfirmDepositRequest(BaseModel):
    payment_intent_id: str = Field(min_length=1)

class WithdrawRequest(BaseModel):
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    account_details: Union[str, Dict[str, Any]]

class OrderCreate(BaseModel):
    listing_id: int

class OrderStatusUpdate(BaseModel):
    status: Literal["pending", "completed", "cancelled"]
