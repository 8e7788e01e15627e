import sys
import os
import asyncio
import argparse

# Add the project root to the python path so we can import 'app'
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.persistence.db import AsyncSessionLocal
from app.persistence.repositories.user_repo import UserRepository
from app.services.wallet_service import WalletService


async def main(dry_run: bool = False) -> int:
    """
    Open an empty wallet for every user that has none.
    Returns the number of users affected.
    """
    async with AsyncSessionLocal() as session:
        users = await UserRepository(session).list_without_wallet()

        if not users:
            print("All users already have a wallet.")
            return 0

        service = WalletService()
        for user in users:
            print(f"   {'would open' if dry_run else 'opening'} wallet for {user.name} ({user.id}, {user.role})")
            if not dry_run:
                await service.ensure_wallet(session=session, user_id=user.id)

        if not dry_run:
            await session.commit()

    print(f"Done: {len(users)} user(s) {'need' if dry_run else 'received'} a wallet.")
    return len(users)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create missing wallets")
    parser.add_argument("--dry-run", action="store_true", help="only list affected users")
    args = parser.parse_args()

    asyncio.run(main(dry_run=args.dry_run))
