"""
Move legacy ``STATUS:<value>`` note prefixes into the trips status column.

Run once after deploying the status column:

    python scripts/migrate_legacy_status.py
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from fleet_backend.app.core.observability import configure_logging
from fleet_backend.app.db.session import AsyncSessionLocal
from fleet_backend.app.services.legacy_status_migration import migrate_legacy_statuses


async def main():
    async with AsyncSessionLocal() as db:
        print("🔄 Migrating legacy trip statuses...")
        count = await migrate_legacy_statuses(db)
        print(f"✅ {count} trip(s) migrated")


if __name__ == "__main__":
    configure_logging()
    asyncio.run(main())
