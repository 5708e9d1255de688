"""Pydantic models for campaign endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import Field, computed_field, field_validator, model_validator

from marketplace.models.enums import CampaignStatus, PlacementStatus
from marketplace.schemas.account import PublisherRef, SponsorOut, SponsorSummary
from marketplace.schemas.ad_slot import AdSlotOut
from marketplace.schemas.common import CamelModel, PlacementCount, to_naive_utc


class CampaignPayload(CamelModel):
    """Fields a sponsor controls; the owner always comes from the session."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    budget: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    cpm_rate: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    cpc_rate: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    start_date: datetime
    end_date: datetime
    target_categories: List[str] = Field(default_factory=list)
    target_regions: List[str] = Field(default_factory=list)

    @field_validator("target_categories", "target_regions", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("target_categories", "target_regions")
    @classmethod
    def dedupe(cls, v: List[str]) -> List[str]:
        # Targeting is a set; keep first-seen order for stable output.
        return list(dict.fromkeys(v))

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_tz(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    @model_validator(mode="after")
    def check_dates(self) -> "CampaignPayload":
        if self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class CampaignCreate(CampaignPayload):
    pass


class CampaignUpdate(CampaignPayload):
    """Full replacement: every mutable key must be sent, null clears it."""

    description: Optional[str] = Field(...)
    cpm_rate: Optional[Decimal] = Field(..., ge=0, max_digits=10, decimal_places=2)
    cpc_rate: Optional[Decimal] = Field(..., ge=0, max_digits=10, decimal_places=2)
    target_categories: List[str] = Field(...)
    target_regions: List[str] = Field(...)
    status: CampaignStatus


class CampaignOut(CamelModel):
    id: str
    sponsor_id: str
    name: str
    description: Optional[str] = None
    budget: Decimal
    cpm_rate: Optional[Decimal] = None
    cpc_rate: Optional[Decimal] = None
    start_date: datetime
    end_date: datetime
    target_categories: List[str]
    target_regions: List[str]
    status: CampaignStatus
    created_at: datetime
    updated_at: datetime


class CampaignSummary(CamelModel):
    id: str
    name: str
    status: CampaignStatus


class CampaignWithSponsor(CampaignOut):
    sponsor: SponsorSummary


class CampaignListItem(CampaignWithSponsor):
    placement_count: int = Field(0, exclude=True)

    @computed_field(alias="_count")
    @property
    def counts(self) -> PlacementCount:
        return PlacementCount(placements=self.placement_count)


class CampaignPlacementOut(CamelModel):
    id: str
    ad_slot_id: str
    publisher_id: str
    agreed_price: Decimal
    status: PlacementStatus
    start_date: datetime
    end_date: datetime
    created_at: datetime
    ad_slot: AdSlotOut
    publisher: PublisherRef


class CampaignDetail(CampaignOut):
    sponsor: SponsorOut
    placements: List[CampaignPlacementOut]
