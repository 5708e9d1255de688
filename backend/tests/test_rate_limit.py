"""Booking allowance is counted per client address across every slot."""

import httpx
import pytest
from fastapi import status

from marketplace.core.config import settings
from marketplace.core.rate_limit import limiter
from marketplace.main import app
from marketplace.models import AdSlot


@pytest.fixture
def tight_booking_rate(monkeypatch):
    monkeypatch.setattr(settings, "BOOKING_RATE", "2/minute")
    limiter.reset()
    yield
    limiter.reset()


@pytest.mark.anyio
async def test_third_booking_from_one_client_is_throttled(client, seed, tight_booking_rate):
    publisher = await seed.publisher()
    sponsor = await seed.sponsor()
    slot_ids = [await seed.ad_slot(publisher, name=f"Slot {n}") for n in range(3)]

    codes = []
    for slot_id in slot_ids:
        resp = await client.post(f"/api/ad-slots/{slot_id}/book", headers=sponsor.headers)
        codes.append(resp.status_code)

    assert codes == [status.HTTP_200_OK, status.HTTP_200_OK, status.HTTP_429_TOO_MANY_REQUESTS]
    assert resp.json() == {"error": "Too many requests", "hint": "Slow down and retry shortly"}
    assert (await seed.get(AdSlot, slot_ids[2])).is_available is True


@pytest.mark.anyio
async def test_failed_bookings_count_against_the_allowance(client, seed, tight_booking_rate):
    sponsor = await seed.sponsor()

    first = await client.post("/api/ad-slots/missing-1/book", headers=sponsor.headers)
    second = await client.post("/api/ad-slots/missing-2/book", headers=sponsor.headers)
    third = await client.post("/api/ad-slots/missing-3/book", headers=sponsor.headers)

    assert first.status_code == status.HTTP_404_NOT_FOUND
    assert second.status_code == status.HTTP_404_NOT_FOUND
    assert third.status_code == status.HTTP_429_TOO_MANY_REQUESTS


@pytest.mark.anyio
async def test_other_client_addresses_keep_their_own_allowance(client, seed, tight_booking_rate):
    publisher = await seed.publisher()
    sponsor = await seed.sponsor()
    slot_ids = [await seed.ad_slot(publisher, name=f"Slot {n}") for n in range(3)]

    for slot_id in slot_ids[:2]:
        resp = await client.post(f"/api/ad-slots/{slot_id}/book", headers=sponsor.headers)
        assert resp.status_code == status.HTTP_200_OK

    transport = httpx.ASGITransport(app=app, client=("10.0.0.9", 4321))
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as elsewhere:
        resp = await elsewhere.post(f"/api/ad-slots/{slot_ids[2]}/book", headers=sponsor.headers)

    assert resp.status_code == status.HTTP_200_OK
    assert (await seed.get(AdSlot, slot_ids[2])).is_available is False
