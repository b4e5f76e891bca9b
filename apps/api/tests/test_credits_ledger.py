import pytest
from fastapi import HTTPException
from sqlalchemy.future import select

from models.credit_ledger import CreditLedger
from models.user import User
from services.credits import add_credit_purchase, debit_credits, get_credit_balance, refund_credits


@pytest.mark.asyncio
async def test_debit_reduces_balance_and_journals_entry(db, create_user):
    await create_user("ledger-user", credits=10)

    charge = await debit_credits("ledger-user", db, amount=5, reason="Website generation", reference_type="generation", reference_id="p-1")
    await db.commit()

    assert charge == {"charged": 5, "balance_after": 5}
    assert await get_credit_balance("ledger-user", db) == 5
    entries = (await db.execute(select(CreditLedger).where(CreditLedger.user_id == "ledger-user"))).scalars().all()
    assert [(e.entry_type, e.delta_credits, e.balance_after) for e in entries] == [("debit", -5, 5)]


@pytest.mark.asyncio
async def test_debit_rejects_insufficient_balance_without_change(db, create_user):
    await create_user("poor-user", credits=4)

    with pytest.raises(HTTPException) as exc_info:
        await debit_credits("poor-user", db, amount=5, reason="Website generation")
    await db.rollback()

    assert exc_info.value.status_code == 402
    assert await get_credit_balance("poor-user", db) == 4


@pytest.mark.asyncio
async def test_debit_unknown_user_is_not_found(db):
    with pytest.raises(HTTPException) as exc_info:
        await debit_credits("ghost", db, amount=5, reason="Website generation")
    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "User not found"


@pytest.mark.asyncio
async def test_debit_checks_balance_in_database_not_stale_copy(session_maker, create_user):
    await create_user("racer", credits=7)

    async with session_maker() as first, session_maker() as second:
        stale = (await first.execute(select(User).where(User.id == "racer"))).scalar_one()
        assert stale.credits == 7

        await debit_credits("racer", second, amount=5, reason="Website generation", reference_type="generation", reference_id="p-a")
        await second.commit()

        # The first session still sees 7 in memory but the conditional update must fail.
        with pytest.raises(HTTPException) as exc_info:
            await debit_credits("racer", first, amount=5, reason="Website generation", reference_type="generation", reference_id="p-b")
        await first.rollback()

    assert exc_info.value.status_code == 402
    async with session_maker() as check:
        assert await get_credit_balance("racer", check) == 2


@pytest.mark.asyncio
async def test_refund_is_issued_once_per_reference(db, create_user):
    await create_user("refund-user", credits=5)

    first = await refund_credits("refund-user", db, amount=5, reason="Generation failed", reference_type="generation", reference_id="p-9")
    second = await refund_credits("refund-user", db, amount=5, reason="Generation failed", reference_type="generation", reference_id="p-9")

    assert first is True
    assert second is False
    assert await get_credit_balance("refund-user", db) == 10
    refunds = (
        await db.execute(select(CreditLedger).where(CreditLedger.entry_type == "refund"))
    ).scalars().all()
    assert len(refunds) == 1
    assert refunds[0].balance_after == 10


@pytest.mark.asyncio
async def test_refund_unknown_user_raises(db):
    with pytest.raises(HTTPException) as exc_info:
        await refund_credits("ghost", db, amount=5, reason="Generation failed", reference_type="generation", reference_id="p-x")
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_add_credit_purchase_increments_balance(db, create_user):
    await create_user("buyer", credits=0)

    result = await add_credit_purchase("buyer", db, credits=100, provider="manual", billing_reference="manual:test")

    assert result["balance_after"] == 100
    assert await get_credit_balance("buyer", db) == 100


@pytest.mark.asyncio
async def test_add_credit_purchase_rejects_non_positive_grant(db, create_user):
    await create_user("buyer-zero", credits=0)
    with pytest.raises(HTTPException) as exc_info:
        await add_credit_purchase("buyer-zero", db, credits=0, provider="manual", billing_reference="manual:zero")
    assert exc_info.value.status_code == 422
