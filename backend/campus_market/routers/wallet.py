import json
import logging
from decimal import Decimal

import stripe
from fastapi import APIRouter, Depends, HTTPException

from campus_market import storage
from campus_market.auth.dependencies import get_current_user
from campus_market.config import config
from campus_market.db import get_session
from campus_market.models.user_db import User as DBUser
from campus_market.models.wallet import AmountRequest, ConfirmDepositRequest, WithdrawRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/wallet", tags=["Wallet"])

DEPOSIT_TYPE = "wallet_deposit"


def get_stripe():
    if not config.STRIPE_SECRET_KEY:
        raise HTTPException(status_code=503, detail="Payments are not configured")
    stripe.api_key = config.STRIPE_SECRET_KEY
    return stripe


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value())


@router.get("/balance")
def get_balance(user: DBUser = Depends(get_current_user)):
    with get_session() as session:
        return {"balance": str(storage.get_wallet_balance(session, user.id))}


@router.get("/transactions")
def get_transactions(user: DBUser = Depends(get_current_user)):
    with get_session() as session:
        return [t.model_dump(mode="json") for t in storage.get_wallet_transactions(session, user.id)]


@router.post("/create-payment-intent")
def create_payment_intent(data: AmountRequest, user: DBUser = Depends(get_current_user)):
    client = get_stripe()
    try:
        intent = client.PaymentIntent.create(
            amount=to_minor_units(data.amount),
            currency=config.STRIPE_CURRENCY,
            metadata={"user_id": str(user.id), "type": DEPOSIT_TYPE},
        )
    except stripe.StripeError as e:
        logger.error("Stripe error creating payment intent for user %s: %s", user.id, e)
        raise HTTPException(status_code=502, detail="Failed to create payment intent")

    return {"client_secret": intent.client_secret, "payment_intent_id": intent.id}


@router.post("/confirm-deposit")
def confirm_deposit(data: ConfirmDepositRequest, user: DBUser = Depends(get_current_user)):
    client = get_stripe()
    reference = f"Deposit via Stripe: {data.payment_intent_id}"

    with get_session() as session:
        if storage.has_payment_intent(session, data.payment_intent_id):
            raise HTTPException(status_code=409, detail="Payment already credited")

    try:
        intent = client.PaymentIntent.retrieve(data.payment_intent_id)
    except stripe.StripeError as e:
        logger.error("Stripe error retrieving %s: %s", data.payment_intent_id, e)
        raise HTTPException(status_code=502, detail="Failed to verify payment")

    metadata = intent.metadata or {}
    try:
        owner, kind = str(metadata["user_id"]), metadata["type"]
    except KeyError:
        owner, kind = None, None
    if intent.status != "succeeded" or owner != str(user.id) or kind != DEPOSIT_TYPE:
        raise HTTPException(status_code=400, detail="Invalid or unsuccessful payment")

    amount = Decimal(intent.amount) / 100
    with get_session() as session:
        transaction = storage.deposit(session, user.id, amount, reference, data.payment_intent_id)
        return transaction.model_dump(mode="json")


@router.post("/deposit")
def simulated_deposit(data: AmountRequest, user: DBUser = Depends(get_current_user)):
    if not config.ALLOW_SIMULATED_DEPOSITS:
        raise HTTPException(status_code=403, detail="Simulated deposits are disabled")
    with get_session() as session:
        transaction = storage.deposit(session, user.id, data.amount, "Simulated deposit")
        return transaction.model_dump(mode="json")


@router.post("/withdraw")
def withdraw(data: WithdrawRequest, user: DBUser = Depends(get_current_user)):
    if not data.account_details:
        raise HTTPException(status_code=400, detail="Account details are required for withdrawal")
    details = data.account_details
    if not isinstance(details, str):
        details = json.dumps(details)
    details = details[:50]
    with get_session() as session:
        transaction = storage.withdraw(
            session, user.id, data.amount, f"Withdrawal to account: {details}..."
        )
        return transaction.model_dump(mode="json")
