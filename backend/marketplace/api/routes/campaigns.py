"""Sponsor-owned campaign CRUD. Every query is scoped to the caller's sponsor id."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from loguru import logger
from sqlalchemy import Select, delete, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.core.audit import log_audit
from marketplace.core.config import settings
from marketplace.core.db import get_session
from marketplace.core.db_errors import raise_on_lock_conflict
from marketplace.core.deps import require_sponsor
from marketplace.core.errors import NotFoundOrForbidden
from marketplace.core.identity import SponsorIdentity
from marketplace.models import Campaign, CampaignStatus, Placement
from marketplace.schemas.campaign import (
    CampaignCreate,
    CampaignDetail,
    CampaignListItem,
    CampaignUpdate,
    CampaignWithSponsor,
)

router = APIRouter(prefix="/campaigns", tags=["campaigns"])


def _owned(campaign_id: str, identity: SponsorIdentity) -> Select:
    return select(Campaign).where(
        Campaign.id == campaign_id, Campaign.sponsor_id == identity.sponsor_id
    )


async def _lock_owned(
    session: AsyncSession, campaign_id: str, identity: SponsorIdentity
) -> Campaign:
    """Fetch the caller's campaign FOR UPDATE; 404 if missing or not theirs."""

    try:
        obj = await session.scalar(
            _owned(campaign_id, identity).with_for_update(nowait=settings.DB_NOWAIT_LOCKS)
        )
    except OperationalError as exc:
        raise_on_lock_conflict(exc)
    if obj is None:
        raise NotFoundOrForbidden("Campaign not found")
    return obj


async def _reload_with_sponsor(session: AsyncSession, campaign_id: str) -> Campaign:
    return await session.scalar(
        select(Campaign)
        .options(selectinload(Campaign.sponsor))
        .where(Campaign.id == campaign_id)
        .execution_options(populate_existing=True)
    )


@router.get("", response_model=List[CampaignListItem])
async def list_campaigns(
    status_filter: Optional[CampaignStatus] = Query(None, alias="status"),
    session: AsyncSession = Depends(get_session),
    identity: SponsorIdentity = Depends(require_sponsor),
):
    stmt = (
        select(Campaign)
        .options(selectinload(Campaign.sponsor))
        .where(Campaign.sponsor_id == identity.sponsor_id)
    )
    if status_filter is not None:
        stmt = stmt.where(Campaign.status == status_filter)
    stmt = stmt.order_by(Campaign.created_at.desc(), Campaign.id)
    return (await session.scalars(stmt)).all()


@router.get("/{campaign_id}", response_model=CampaignDetail)
async def get_campaign(
    campaign_id: str,
    session: AsyncSession = Depends(get_session),
    identity: SponsorIdentity = Depends(require_sponsor),
):
    obj = await session.scalar(
        _owned(campaign_id, identity).options(
            selectinload(Campaign.sponsor),
            selectinload(Campaign.placements).selectinload(Placement.ad_slot),
            selectinload(Campaign.placements).selectinload(Placement.publisher),
        )
    )
    if obj is None:
        raise NotFoundOrForbidden("Campaign not found")
    return obj


@router.post("", response_model=CampaignWithSponsor, status_code=status.HTTP_201_CREATED)
async def create_campaign(
    payload: CampaignCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    identity: SponsorIdentity = Depends(require_sponsor),
):
    # Owner comes from the session; any sponsorId in the body was dropped by the schema.
    obj = Campaign(**payload.model_dump(), sponsor_id=identity.sponsor_id)
    session.add(obj)
    await session.flush()

    await log_audit(
        session,
        identity,
        "campaign",
        obj.id,
        "CREATE",
        details=payload.model_dump(mode="json"),
        request=request,
    )
    await session.commit()
    logger.bind(campaign_id=obj.id, sponsor_id=identity.sponsor_id).info("campaign_created")
    return await _reload_with_sponsor(session, obj.id)


@router.put("/{campaign_id}", response_model=CampaignWithSponsor)
async def update_campaign(
    campaign_id: str,
    payload: CampaignUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    identity: SponsorIdentity = Depends(require_sponsor),
):
    obj = await _lock_owned(session, campaign_id, identity)

    data = payload.model_dump()
    for field, value in data.items():
        setattr(obj, field, value)

    await log_audit(
        session,
        identity,
        "campaign",
        campaign_id,
        "UPDATE",
        details=payload.model_dump(mode="json"),
        request=request,
    )
    await session.commit()
    return await _reload_with_sponsor(session, campaign_id)


@router.delete(
    "/{campaign_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def delete_campaign(
    campaign_id: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
    identity: SponsorIdentity = Depends(require_sponsor),
):
    await _lock_owned(session, campaign_id, identity)
    await session.execute(delete(Campaign).where(Campaign.id == campaign_id))
    await log_audit(session, identity, "campaign", campaign_id, "DELETE", request=request)
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
