"""Operator tool: create a user if needed and grant credits manually."""

import argparse
import asyncio
import os
import sys

# Add parent dir to path to find app modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.future import select

from database import async_session_maker, engine
from models.user import User
from services.credits import add_credit_purchase
from services.session_token import create_session_token


async def grant_credits(user_id: str, email: str, credits: int, reference: str) -> None:
    async with async_session_maker() as db:
        result = await db.execute(select(User).where(User.id == user_id))
        if result.scalar_one_or_none() is None:
            db.add(User(id=user_id, email=email, credits=0, total_creation=0))
            await db.commit()
            print(f"👤 Created user {user_id} ({email})")

        outcome = await add_credit_purchase(
            user_id,
            db,
            credits=credits,
            provider="manual",
            billing_reference=reference,
            reason="Manual credit grant",
        )
        print(f"💳 Granted {credits} credits to {user_id}; balance is now {outcome['balance_after']}")
        print(f"🔑 Session token: {create_session_token(user_id, email)['token']}")
    await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("user_id")
    parser.add_argument("--email", default=None)
    parser.add_argument("--credits", type=int, default=20)
    parser.add_argument("--reference", default="manual:cli")
    args = parser.parse_args()
    email = args.email or f"{args.user_id}@local.invalid"
    asyncio.run(grant_credits(args.user_id, email, args.credits, args.reference))


if __name__ == "__main__":
    main()
