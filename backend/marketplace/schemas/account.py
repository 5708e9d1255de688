"""Read models for sponsor and publisher accounts embedded in responses."""

from datetime import datetime
from typing import Optional

from marketplace.schemas.common import CamelModel


class SponsorSummary(CamelModel):
    id: str
    name: str
    logo: Optional[str] = None


class SponsorOut(SponsorSummary):
    user_id: str
    created_at: datetime


class PublisherRef(CamelModel):
    id: str
    name: str
    category: Optional[str] = None


class PublisherSummary(PublisherRef):
    monthly_views: int


class PublisherOut(PublisherSummary):
    user_id: str
    created_at: datetime
