"""Pydantic models for ad slot and booking endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, computed_field

from marketplace.models.enums import AdSlotType, CampaignStatus, PlacementStatus
from marketplace.schemas.account import PublisherOut, PublisherRef, PublisherSummary
from marketplace.schemas.common import CamelModel, PlacementCount


class AdSlotPayload(CamelModel):
    """Fields a publisher controls; the owner always comes from the session."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    type: AdSlotType
    position: Optional[str] = Field(None, max_length=100)
    width: Optional[int] = Field(None, gt=0)
    height: Optional[int] = Field(None, gt=0)
    base_price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    cpm_floor: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)


class AdSlotCreate(AdSlotPayload):
    pass


class AdSlotUpdate(AdSlotPayload):
    """Full replacement: every mutable key must be sent, null clears it."""

    description: Optional[str] = Field(...)
    position: Optional[str] = Field(..., max_length=100)
    width: Optional[int] = Field(..., gt=0)
    height: Optional[int] = Field(..., gt=0)
    cpm_floor: Optional[Decimal] = Field(..., ge=0, max_digits=10, decimal_places=2)
    is_available: bool


class AdSlotOut(CamelModel):
    id: str
    publisher_id: str
    name: str
    description: Optional[str] = None
    type: AdSlotType
    position: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    base_price: Decimal
    cpm_floor: Optional[Decimal] = None
    is_available: bool
    created_at: datetime
    updated_at: datetime


class AdSlotWithPublisher(AdSlotOut):
    publisher: PublisherRef


class AdSlotListItem(AdSlotOut):
    publisher: PublisherSummary
    placement_count: int = Field(0, exclude=True)

    @computed_field(alias="_count")
    @property
    def counts(self) -> PlacementCount:
        return PlacementCount(placements=self.placement_count)


class PlacementCampaignRef(CamelModel):
    id: str
    name: str
    status: CampaignStatus


class AdSlotPlacementOut(CamelModel):
    id: str
    campaign_id: str
    agreed_price: Decimal
    status: PlacementStatus
    start_date: datetime
    end_date: datetime
    created_at: datetime
    campaign: PlacementCampaignRef


class AdSlotDetail(AdSlotOut):
    publisher: PublisherOut
    placements: List[AdSlotPlacementOut]


class BookingRequest(CamelModel):
    message: Optional[str] = Field(None, max_length=1000)


class BookingOut(CamelModel):
    success: bool = True
    message: str
    ad_slot: AdSlotWithPublisher
