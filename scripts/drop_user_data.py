"""Drop all time entries for a specific user.

Usage:
    python scripts/drop_user_data.py <mongodb_url> <user_id> [db_name]
"""
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from motor.motor_asyncio import AsyncIOMotorClient


async def drop_user_data(mongodb_url: str, user_id: str, db_name: str = "timesheet"):
    """Delete every time entry owned by a user, running timers included."""
    client = AsyncIOMotorClient(mongodb_url)
    db = client[db_name]

    result = await db["time_entries"].delete_many({"user_id": user_id})
    print(f"Deleted {result.deleted_count} documents from time_entries")

    client.close()
    print("Done!")


if __name__ == "__main__":
    if len(sys.argv) not in (3, 4):
        print("Usage: python drop_user_data.py <mongodb_url> <user_id> [db_name]")
        sys.exit(1)

    asyncio.run(drop_user_data(*sys.argv[1:]))
