"""Ad slot CRUD plus the booking transition.

Publishers only ever see and modify their own slots. Sponsors can browse
and view every slot so they can book one.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from loguru import logger
from sqlalchemy import Select, delete, select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.core.audit import log_audit
from marketplace.core.config import settings
from marketplace.core.db import get_session
from marketplace.core.db_errors import raise_on_lock_conflict
from marketplace.core.db_retry import with_db_retry
from marketplace.core.deps import get_identity
from marketplace.core.errors import NotFoundOrForbidden, RoleForbidden, SlotUnavailable
from marketplace.core.identity import Identity, PublisherIdentity, SponsorIdentity
from marketplace.core.rate_limit import booking_rate, limiter
from marketplace.models import AdSlot, AdSlotType, Placement
from marketplace.schemas.ad_slot import (
    AdSlotCreate,
    AdSlotDetail,
    AdSlotListItem,
    AdSlotUpdate,
    AdSlotWithPublisher,
    BookingOut,
    BookingRequest,
)

router = APIRouter(prefix="/ad-slots", tags=["ad-slots"])


def _visible(slot_id: str, identity: Identity) -> Select:
    stmt = select(AdSlot).where(AdSlot.id == slot_id)
    if isinstance(identity, PublisherIdentity):
        stmt = stmt.where(AdSlot.publisher_id == identity.publisher_id)
    return stmt


def _publisher_only(identity: Identity, action: str) -> PublisherIdentity:
    if not isinstance(identity, PublisherIdentity):
        raise RoleForbidden(f"Only publishers can {action} ad slots")
    return identity


async def _lock_owned(session: AsyncSession, slot_id: str, identity: PublisherIdentity) -> AdSlot:
    """Fetch the caller's slot FOR UPDATE; 404 if missing or not theirs."""

    try:
        obj = await session.scalar(
            _visible(slot_id, identity).with_for_update(nowait=settings.DB_NOWAIT_LOCKS)
        )
    except OperationalError as exc:
        raise_on_lock_conflict(exc)
    if obj is None:
        raise NotFoundOrForbidden("Ad slot not found")
    return obj


async def _reload_with_publisher(session: AsyncSession, slot_id: str) -> Optional[AdSlot]:
    return await session.scalar(
        select(AdSlot)
        .options(selectinload(AdSlot.publisher))
        .where(AdSlot.id == slot_id)
        .execution_options(populate_existing=True)
    )


async def set_availability(session: AsyncSession, slot_id: str, *, available: bool) -> bool:
    """Flip ``is_available`` with a single conditional UPDATE.

    Only rows currently in the opposite state match, so of two concurrent
    bookings exactly one sees an affected row.
    """

    stmt = update(AdSlot).where(AdSlot.id == slot_id)
    if not available:
        stmt = stmt.where(AdSlot.is_available.is_(True))
    result = await session.execute(
        stmt.values(is_available=available).execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


@router.get("", response_model=List[AdSlotListItem])
async def list_ad_slots(
    type_filter: Optional[AdSlotType] = Query(None, alias="type"),
    available: Optional[bool] = None,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    stmt = select(AdSlot).options(selectinload(AdSlot.publisher))
    if isinstance(identity, PublisherIdentity):
        stmt = stmt.where(AdSlot.publisher_id == identity.publisher_id)
    if type_filter is not None:
        stmt = stmt.where(AdSlot.type == type_filter)
    if available is not None:
        stmt = stmt.where(AdSlot.is_available.is_(available))
    stmt = stmt.order_by(AdSlot.base_price.desc(), AdSlot.id)
    return (await session.scalars(stmt)).all()


@router.get("/{slot_id}", response_model=AdSlotDetail)
async def get_ad_slot(
    slot_id: str,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    obj = await session.scalar(
        _visible(slot_id, identity).options(
            selectinload(AdSlot.publisher),
            selectinload(AdSlot.placements).selectinload(Placement.campaign),
        )
    )
    if obj is None:
        raise NotFoundOrForbidden("Ad slot not found")
    return obj


@router.post("", response_model=AdSlotWithPublisher, status_code=status.HTTP_201_CREATED)
async def create_ad_slot(
    payload: AdSlotCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    publisher = _publisher_only(identity, "create")
    obj = AdSlot(**payload.model_dump(), publisher_id=publisher.publisher_id, is_available=True)
    session.add(obj)
    await session.flush()

    await log_audit(
        session,
        publisher,
        "ad_slot",
        obj.id,
        "CREATE",
        details=payload.model_dump(mode="json"),
        request=request,
    )
    await session.commit()
    logger.bind(ad_slot_id=obj.id, publisher_id=publisher.publisher_id).info("ad_slot_created")
    return await _reload_with_publisher(session, obj.id)


@router.put("/{slot_id}", response_model=AdSlotWithPublisher)
async def update_ad_slot(
    slot_id: str,
    payload: AdSlotUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    publisher = _publisher_only(identity, "update")
    obj = await _lock_owned(session, slot_id, publisher)

    for field, value in payload.model_dump().items():
        setattr(obj, field, value)

    await log_audit(
        session,
        publisher,
        "ad_slot",
        slot_id,
        "UPDATE",
        details=payload.model_dump(mode="json"),
        request=request,
    )
    await session.commit()
    return await _reload_with_publisher(session, slot_id)


@router.delete(
    "/{slot_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def delete_ad_slot(
    slot_id: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    publisher = _publisher_only(identity, "delete")
    await _lock_owned(session, slot_id, publisher)
    await session.execute(delete(AdSlot).where(AdSlot.id == slot_id))
    await log_audit(session, publisher, "ad_slot", slot_id, "DELETE", request=request)
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{slot_id}/book", response_model=BookingOut)
@limiter.limit(booking_rate)
async def book_ad_slot(
    request: Request,
    slot_id: str,
    payload: Optional[BookingRequest] = None,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    if not isinstance(identity, SponsorIdentity):
        raise RoleForbidden("Only sponsors can book ad slots")
    message = payload.message if payload else None

    async def _book() -> bool:
        booked = await set_availability(session, slot_id, available=False)
        if booked:
            await log_audit(
                session,
                identity,
                "ad_slot",
                slot_id,
                "BOOK",
                details={"sponsor_id": identity.sponsor_id, "message": message},
                request=request,
            )
            await session.commit()
        return booked

    if not await with_db_retry(session, _book, label="book_ad_slot"):
        exists = await session.scalar(select(AdSlot.id).where(AdSlot.id == slot_id))
        await session.rollback()
        if exists is None:
            raise NotFoundOrForbidden("Ad slot not found")
        raise SlotUnavailable()

    # Booking does not create a placement yet; the slot is only marked as taken.
    logger.bind(
        ad_slot_id=slot_id,
        sponsor_id=identity.sponsor_id,
        message=message or "None",
    ).info("ad_slot_booked")
    return BookingOut(
        message="Ad slot booked successfully!",
        ad_slot=AdSlotWithPublisher.model_validate(await _reload_with_publisher(session, slot_id)),
    )


@router.post("/{slot_id}/unbook", response_model=BookingOut)
async def unbook_ad_slot(
    slot_id: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
    identity: Identity = Depends(get_identity),
):
    # Open to any signed-in caller so bookings can be reset while testing.
    async def _unbook() -> bool:
        found = await set_availability(session, slot_id, available=True)
        if found:
            await log_audit(session, identity, "ad_slot", slot_id, "UNBOOK", request=request)
            await session.commit()
        return found

    if not await with_db_retry(session, _unbook, label="unbook_ad_slot"):
        await session.rollback()
        raise NotFoundOrForbidden("Ad slot not found")

    return BookingOut(
        message="Ad slot is now available again",
        ad_slot=AdSlotWithPublisher.model_validate(await _reload_with_publisher(session, slot_id)),
    )
