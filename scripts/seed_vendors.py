
import asyncio
import json
import os
import sys

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from app.core.config import settings
from app.core.db import SessionLocal, init_models
from app.modules.vendors.models import Vendor
from app.modules.vendors.repository import VendorRepository

async def seed_vendors(rows, session_factory=SessionLocal):
    """
    Registers vendors so drops can be created against them locally.

    Existing vendors keep their row; only `is_alive` is refreshed from the file.
    Returns the number of vendors created.
    """
    created = 0
    async with session_factory() as db:
        vendors = VendorRepository(db)
        for row in rows:
            stable_id = row['stable_id']
            vendor = await vendors.get(stable_id)

            if vendor:
                print(f"  - Vendor '{stable_id}' already exists. Updating liveness.")
                vendor.is_alive = row.get('is_alive', True)
                continue

            print(f"  - Creating vendor: {stable_id}")
            db.add(Vendor(
                stable_id=stable_id,
                owner=row.get('owner'),
                env=row.get('env', settings.DEFAULT_DROP_ENV),
                is_alive=row.get('is_alive', True),
            ))
            created += 1

        print("\nCommitting all changes to the database...")
        await db.commit()
    return created

async def main():
    """
    Seeds the vendors table from a JSON list, e.g.
    [{"stable_id": "VENDOR_ALPHA", "owner": "0xabc", "is_alive": true}]
    """
    json_file_path = sys.argv[1] if len(sys.argv) > 1 else os.path.join(os.path.dirname(__file__), 'vendors.json')
    with open(json_file_path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    await init_models()
    print(f"Seeding {len(data)} vendors...")
    created = await seed_vendors(data)
    print(f"Seeding complete! {created} new vendors.")

if __name__ == "__main__":
    asyncio.run(main())
