"""Credit ledger helpers: atomic debit, idempotent refund, purchases."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
import uuid

from fastapi import HTTPException
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.credit_ledger import CreditLedger
from models.user import User

logger = logging.getLogger(__name__)


def _user_not_found() -> HTTPException:
    return HTTPException(status_code=401, detail="User not found")


async def get_credit_balance(user_id: str, db: AsyncSession) -> int:
    result = await db.execute(select(User.credits).where(User.id == user_id))
    balance = result.scalar_one_or_none()
    if balance is None:
        raise _user_not_found()
    return int(balance)


async def _insert_entry(
    user_id: str,
    db: AsyncSession,
    *,
    entry_type: str,
    delta_credits: int,
    reason: Optional[str] = None,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
    billing_provider: Optional[str] = None,
    billing_reference: Optional[str] = None,
) -> CreditLedger:
    entry = CreditLedger(
        id=str(uuid.uuid4()),
        user_id=user_id,
        entry_type=entry_type,
        delta_credits=int(delta_credits),
        balance_after=await get_credit_balance(user_id, db),
        reason=reason,
        reference_type=reference_type,
        reference_id=reference_id,
        billing_provider=billing_provider,
        billing_reference=billing_reference,
    )
    db.add(entry)
    await db.flush()
    return entry


async def _increment_balance(user_id: str, db: AsyncSession, delta: int) -> None:
    result = await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(credits=User.credits + int(delta))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise _user_not_found()


async def debit_credits(
    user_id: str,
    db: AsyncSession,
    *,
    amount: int,
    reason: str,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Debit credits with a conditional update so concurrent debits cannot overdraw.

    Does not commit: the caller's transaction decides whether the debit sticks.
    """
    debit_cost = max(int(amount), 0)
    result = await db.execute(
        update(User)
        .where(User.id == user_id, User.credits >= debit_cost)
        .values(credits=User.credits - debit_cost)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        exists = await db.execute(select(User.id).where(User.id == user_id))
        if exists.scalar_one_or_none() is None:
            raise _user_not_found()
        balance = await get_credit_balance(user_id, db)
        raise HTTPException(
            status_code=402,
            detail=(
                f"Insufficient credits. Required: {debit_cost}, available: {balance}. "
                "Add credits to create more projects."
            ),
        )

    entry = await _insert_entry(
        user_id=user_id,
        db=db,
        entry_type="debit",
        delta_credits=-debit_cost,
        reason=reason,
        reference_type=reference_type,
        reference_id=reference_id,
    )
    return {"charged": debit_cost, "balance_after": entry.balance_after}


async def refund_credits(
    user_id: str,
    db: AsyncSession,
    *,
    amount: int,
    reason: str,
    reference_type: str,
    reference_id: str,
) -> bool:
    """
    Return debited credits once per reference.

    Returns False when a refund for the same reference was already issued.
    """
    existing = await db.execute(
        select(CreditLedger.id).where(
            CreditLedger.entry_type == "refund",
            CreditLedger.reference_type == reference_type,
            CreditLedger.reference_id == reference_id,
        )
    )
    if existing.scalar_one_or_none():
        logger.info("Refund for %s %s already issued; skipping", reference_type, reference_id)
        return False

    grant = max(int(amount), 0)
    try:
        await _increment_balance(user_id, db, grant)
        await _insert_entry(
            user_id=user_id,
            db=db,
            entry_type="refund",
            delta_credits=grant,
            reason=reason,
            reference_type=reference_type,
            reference_id=reference_id,
        )
        await db.commit()
    except IntegrityError:
        # A concurrent refund for the same reference won the unique constraint.
        await db.rollback()
        logger.info("Refund for %s %s raced with another refund; skipping", reference_type, reference_id)
        return False
    except Exception:
        await db.rollback()
        raise
    logger.info("Refunded %s credits to user %s for %s %s", grant, user_id, reference_type, reference_id)
    return True


async def add_credit_purchase(
    user_id: str,
    db: AsyncSession,
    *,
    credits: int,
    provider: str,
    billing_reference: str,
    reason: str = "Credit purchase",
) -> Dict[str, Any]:
    grant = max(int(credits), 0)
    if grant <= 0:
        raise HTTPException(status_code=422, detail="credits must be greater than 0")
    await _increment_balance(user_id, db, grant)
    entry = await _insert_entry(
        user_id=user_id,
        db=db,
        entry_type="purchase",
        delta_credits=grant,
        reason=reason,
        billing_provider=provider,
        billing_reference=billing_reference,
    )
    await db.commit()
    return {"balance_after": entry.balance_after}
