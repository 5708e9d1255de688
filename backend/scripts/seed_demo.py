"""Create the schema and a demo sponsor/publisher pair with live sessions.

The real session rows come from the external auth service; this script
writes equivalent rows so the API can be exercised locally. It prints the
cookie header to send for each account.
"""

import asyncio
import pathlib
import secrets
import sys
from datetime import timedelta
from decimal import Decimal
from urllib.parse import quote

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from marketplace.core.config import settings
from marketplace.core.db import SessionLocal, engine
from marketplace.models import AdSlot, AdSlotType, Base, Publisher, Session, Sponsor, User
from marketplace.models.base import utcnow

SESSION_TTL = timedelta(days=7)


def _cookie(token: str) -> str:
    signature = secrets.token_urlsafe(16)
    return f"{settings.SESSION_COOKIE_NAME}={quote(f'{token}.{signature}')}"


async def main() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with SessionLocal() as s:
        sponsor_user = User(email=f"sponsor-{secrets.token_hex(3)}@example.com", name="Demo Sponsor")
        publisher_user = User(email=f"publisher-{secrets.token_hex(3)}@example.com", name="Demo Publisher")
        s.add_all([sponsor_user, publisher_user])
        await s.flush()

        sponsor = Sponsor(user_id=sponsor_user.id, name="Acme Outdoor Co.")
        publisher = Publisher(
            user_id=publisher_user.id,
            name="Trail Notes Weekly",
            category="Outdoors",
            monthly_views=120_000,
        )
        s.add_all([sponsor, publisher])
        await s.flush()

        s.add_all(
            [
                AdSlot(
                    publisher_id=publisher.id,
                    name="Newsletter header",
                    type=AdSlotType.NEWSLETTER,
                    position="header",
                    base_price=Decimal("250.00"),
                ),
                AdSlot(
                    publisher_id=publisher.id,
                    name="Sidebar banner",
                    type=AdSlotType.DISPLAY,
                    position="sidebar",
                    width=300,
                    height=250,
                    base_price=Decimal("80.00"),
                    cpm_floor=Decimal("4.50"),
                ),
            ]
        )

        cookies = {}
        for label, user in (("sponsor", sponsor_user), ("publisher", publisher_user)):
            token = secrets.token_urlsafe(24)
            s.add(Session(token=token, user_id=user.id, expires_at=utcnow() + SESSION_TTL))
            cookies[label] = _cookie(token)
        await s.commit()

    for label, cookie in cookies.items():
        print(f"{label}: Cookie: {cookie}")


asyncio.run(main())
