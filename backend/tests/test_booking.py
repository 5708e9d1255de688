"""Booking transitions an available ad slot to booked, once."""

import pytest
from fastapi import status
from sqlalchemy import select

from factories import ad_slot_payload
from marketplace.api.routes.ad_slots import set_availability
from marketplace.models import AdSlot, AuditLog


@pytest.mark.anyio
async def test_marketplace_booking_scenario(client, seed):
    publisher_p = await seed.publisher("P")
    publisher_q = await seed.publisher("Q")
    sponsor_s = await seed.sponsor("S")

    created = await client.post(
        "/api/ad-slots",
        headers=publisher_p.headers,
        json=ad_slot_payload(basePrice="10.00", type="DISPLAY"),
    )
    assert created.status_code == status.HTTP_201_CREATED
    slot = created.json()
    assert slot["isAvailable"] is True

    booked = await client.post(f"/api/ad-slots/{slot['id']}/book", headers=sponsor_s.headers)
    assert booked.status_code == status.HTTP_200_OK
    body = booked.json()
    assert body["success"] is True
    assert body["message"] == "Ad slot booked successfully!"
    assert body["adSlot"]["isAvailable"] is False
    assert body["adSlot"]["publisher"]["id"] == publisher_p.scoped_id

    again = await client.post(f"/api/ad-slots/{slot['id']}/book", headers=sponsor_s.headers)
    assert again.status_code == status.HTTP_400_BAD_REQUEST
    assert "no longer available" in again.json()["error"]

    hijack = await client.put(
        f"/api/ad-slots/{slot['id']}",
        headers=publisher_q.headers,
        json=ad_slot_payload(isAvailable=True),
    )
    assert hijack.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.anyio
async def test_publisher_cannot_book_and_slot_is_untouched(client, seed):
    publisher = await seed.publisher()
    slot_id = await seed.ad_slot(publisher)

    resp = await client.post(f"/api/ad-slots/{slot_id}/book", headers=publisher.headers)

    assert resp.status_code == status.HTTP_403_FORBIDDEN
    assert resp.json()["error"] == "Only sponsors can book ad slots"
    assert (await seed.get(AdSlot, slot_id)).is_available is True


@pytest.mark.anyio
async def test_booking_unavailable_slot_does_not_mutate(client, seed, db_maker):
    publisher = await seed.publisher()
    sponsor = await seed.sponsor()
    slot_id = await seed.ad_slot(publisher, is_available=False)
    before = await seed.get(AdSlot, slot_id)

    resp = await client.post(f"/api/ad-slots/{slot_id}/book", headers=sponsor.headers)

    assert resp.status_code == status.HTTP_400_BAD_REQUEST
    after = await seed.get(AdSlot, slot_id)
    assert after.is_available is False
    assert after.updated_at == before.updated_at
    async with db_maker() as s:
        assert (await s.scalars(select(AuditLog))).all() == []


@pytest.mark.anyio
async def test_booking_missing_slot_is_404(client, seed):
    sponsor = await seed.sponsor()
    resp = await client.post("/api/ad-slots/missing/book", headers=sponsor.headers)
    assert resp.status_code == status.HTTP_404_NOT_FOUND
    assert resp.json() == {"error": "Ad slot not found"}


@pytest.mark.anyio
async def test_booking_accepts_message_and_audits(client, seed, db_maker):
    publisher = await seed.publisher()
    sponsor = await seed.sponsor()
    slot_id = await seed.ad_slot(publisher)

    resp = await client.post(
        f"/api/ad-slots/{slot_id}/book",
        headers=sponsor.headers,
        json={"message": "Looking forward to it"},
    )

    assert resp.status_code == status.HTTP_200_OK
    async with db_maker() as s:
        [entry] = (await s.scalars(select(AuditLog))).all()
    assert entry.action == "BOOK"
    assert entry.entity_id == slot_id
    assert sponsor.scoped_id in entry.details
    assert "Looking forward to it" in entry.details


@pytest.mark.anyio
async def test_conditional_update_books_only_once(seed, db_maker):
    publisher = await seed.publisher()
    slot_id = await seed.ad_slot(publisher)

    async with db_maker() as first, db_maker() as second:
        assert await set_availability(first, slot_id, available=False) is True
        await first.commit()
        assert await set_availability(second, slot_id, available=False) is False
        await second.rollback()

    assert (await seed.get(AdSlot, slot_id)).is_available is False


@pytest.mark.anyio
async def test_unbook_resets_availability_for_any_signed_in_user(client, seed):
    publisher = await seed.publisher()
    sponsor = await seed.sponsor()
    slot_id = await seed.ad_slot(publisher, is_available=False)

    resp = await client.post(f"/api/ad-slots/{slot_id}/unbook", headers=sponsor.headers)

    assert resp.status_code == status.HTTP_200_OK
    assert resp.json()["message"] == "Ad slot is now available again"
    assert resp.json()["adSlot"]["isAvailable"] is True

    rebook = await client.post(f"/api/ad-slots/{slot_id}/book", headers=sponsor.headers)
    assert rebook.status_code == status.HTTP_200_OK


@pytest.mark.anyio
async def test_unbook_missing_slot_is_404(client, seed):
    publisher = await seed.publisher()
    resp = await client.post("/api/ad-slots/missing/unbook", headers=publisher.headers)
    assert resp.status_code == status.HTTP_404_NOT_FOUND
