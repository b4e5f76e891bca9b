"""Billing and credits router."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from routers.rate_limit import rate_limit
from services.catalog import CREDIT_PLANS
from services.credits import get_credit_balance
from services.payments import create_credit_checkout

router = APIRouter()
logger = logging.getLogger(__name__)


class PurchaseCreditsRequest(BaseModel):
    plan_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("plan_id", "planId"))


@router.get("/credits")
async def credits_balance(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return {"credits": await get_credit_balance(auth.user_id, db)}


@router.get("/plans")
async def credit_plans():
    return {
        "plans": [
            {"plan_id": plan_id, "credits": plan["credits"], "amount": plan["amount"]}
            for plan_id, plan in CREDIT_PLANS.items()
        ],
        "generation_cost": int(settings.GENERATION_CREDIT_COST),
    }


@router.post("/purchase-credits")
async def purchase_credits(
    request: PurchaseCreditsRequest,
    http_request: Request,
    _rate_limit: None = Depends(rate_limit("purchase_credits", limit=20, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Create a pending transaction and return the Stripe checkout link."""
    origin = http_request.headers.get("origin") or settings.FRONTEND_URL
    result = await create_credit_checkout(auth.user_id, request.plan_id, origin, db)
    logger.info("Checkout opened for user %s transaction %s", auth.user_id, result["transaction_id"])
    return result
