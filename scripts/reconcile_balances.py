#!/usr/bin/env python3
"""
Compare every user's cached coin balance with the ledger.

Usage:
    # Report drift only
    ENV=staging uv run python scripts/reconcile_balances.py

    # Rewrite drifted balances from the ledger
    ENV=staging uv run python scripts/reconcile_balances.py --fix
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

env = os.getenv("ENV", "local")
load_dotenv(f".env.{env}")

print(f"Environment: {env}")


async def main():
    parser = argparse.ArgumentParser(description="Reconcile cached balances against the coin ledger")
    parser.add_argument("--fix", action="store_true", help="Rewrite drifted balances")
    args = parser.parse_args()

    from sqlalchemy import select

    from app.db import get_db_session
    from app.models import User
    from app.services.ledger_service import ledger_service

    async with get_db_session() as db:
        users = (await db.execute(select(User.id, User.email, User.coins).order_by(User.id))).all()

        drifted = 0
        for user_id, email, cached in users:
            computed = await ledger_service.ledger_balance(db, user_id)
            if computed == cached:
                continue
            drifted += 1
            print(f"  user {user_id} ({email}): cached={cached} ledger={computed}")
            if args.fix:
                await ledger_service.reconcile_balance(db, user_id)

    print(f"\nChecked {len(users)} user(s), {drifted} with drift" + (" (fixed)" if args.fix and drifted else ""))


if __name__ == "__main__":
    asyncio.run(main())
