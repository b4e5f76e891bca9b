"""Credit purchase initiation through Stripe Checkout."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional
import uuid

import stripe
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from config import require_stripe_secret_key, settings
from models.transaction import Transaction
from services.catalog import get_credit_plan

logger = logging.getLogger(__name__)


def _create_checkout_session(api_key: str, **params: Any):
    return stripe.checkout.Session.create(api_key=api_key, **params)


def build_checkout_params(transaction: Transaction, origin: str, now: Optional[float] = None) -> Dict[str, Any]:
    """Stripe Checkout parameters for a pending transaction."""
    issued_at = int(now if now is not None else time.time())
    base_url = (origin or "").rstrip("/")
    return {
        "success_url": f"{base_url}/loading",
        "cancel_url": base_url or "/",
        "line_items": [
            {
                "price_data": {
                    "currency": settings.STRIPE_CURRENCY,
                    "product_data": {"name": f"SiteSwift - {transaction.credits} Credits"},
                    "unit_amount": int(transaction.amount) * 100,
                },
                "quantity": 1,
            }
        ],
        "mode": "payment",
        "metadata": {
            "transactionId": transaction.id,
            "appId": settings.PAYMENT_APP_ID,
        },
        "expires_at": issued_at + int(settings.CHECKOUT_SESSION_TTL_MINUTES) * 60,
    }


async def create_credit_checkout(
    user_id: str,
    plan_id: Optional[str],
    origin: str,
    db: AsyncSession,
) -> Dict[str, Any]:
    """
    Record a pending purchase and open a checkout session for it.

    Credits are only granted by the payment-completion webhook.
    """
    plan = get_credit_plan(plan_id)
    if not plan:
        raise HTTPException(status_code=400, detail="Plan not found")

    try:
        api_key = require_stripe_secret_key()
    except ValueError as exc:
        raise HTTPException(status_code=503, detail="Stripe is not configured.") from exc

    transaction = Transaction(
        id=str(uuid.uuid4()),
        user_id=user_id,
        plan_id=(plan_id or "").strip().lower(),
        amount=plan["amount"],
        credits=plan["credits"],
        is_paid=False,
    )
    db.add(transaction)
    await db.commit()

    params = build_checkout_params(transaction, origin)
    try:
        session = await asyncio.to_thread(_create_checkout_session, api_key, **params)
    except stripe.StripeError as exc:
        logger.error(f"Stripe checkout creation failed for transaction {transaction.id}: {exc}")
        raise HTTPException(status_code=502, detail="Payment provider error. Please try again.") from exc

    transaction.checkout_session_id = session["id"]
    await db.commit()

    return {
        "payment_link": session["url"],
        "transaction_id": transaction.id,
    }
