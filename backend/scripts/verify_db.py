import sys, pathlib, asyncio
sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from sqlalchemy import func, select, text
from marketplace.core.db import SessionLocal
from marketplace.models import AdSlot, Campaign, Publisher, Sponsor

async def main():
    async with SessionLocal() as s:
        # Simple ping
        one = await s.execute(text("SELECT 1"))
        print("db-ping:", one.scalar())

        for model in (Sponsor, Publisher, Campaign, AdSlot):
            count = await s.scalar(select(func.count()).select_from(model))
            print(f"{model.__tablename__}:", count)

asyncio.run(main())
