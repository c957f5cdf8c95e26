"""Create the time entry indexes, including the running-timer guard."""
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from motor.motor_asyncio import AsyncIOMotorClient

from chronos.database import ensure_indexes


async def main(mongodb_url: str, db_name: str):
    """Ensure indexes on the given database."""
    client = AsyncIOMotorClient(mongodb_url)
    db = client[db_name]

    await ensure_indexes(db)
    async for index in db["time_entries"].list_indexes():
        print(f"{index['name']}: {dict(index['key'])}")

    client.close()
    print("Done!")

if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("Usage: python ensure_indexes.py <mongodb_url> <db_name>")
        sys.exit(1)

    asyncio.run(main(sys.argv[1], sys.argv[2]))
