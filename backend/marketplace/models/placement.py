"""Placement model linking a campaign to an ad slot.

Bookings do not create placements yet; the table is read for detail views
and ``_count`` summaries.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Numeric, String, func, select
from sqlalchemy.orm import Mapped, column_property, mapped_column, relationship

from marketplace.models.ad_slot import AdSlot
from marketplace.models.base import Base, new_id, utcnow
from marketplace.models.campaign import Campaign
from marketplace.models.enums import PlacementStatus
from marketplace.models.publisher import Publisher


class Placement(Base):
    __tablename__ = "placement"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    campaign_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("campaign.id", ondelete="CASCADE"), nullable=False, index=True
    )
    ad_slot_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("ad_slot.id", ondelete="CASCADE"), nullable=False, index=True
    )
    publisher_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("publisher.id", ondelete="CASCADE"), nullable=False
    )
    agreed_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[PlacementStatus] = mapped_column(
        Enum(PlacementStatus, native_enum=False, length=16),
        nullable=False,
        default=PlacementStatus.PENDING,
    )
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    campaign: Mapped[Campaign] = relationship(back_populates="placements", lazy="raise")
    ad_slot: Mapped[AdSlot] = relationship(back_populates="placements", lazy="raise")
    publisher: Mapped[Publisher] = relationship(lazy="raise")


# Placement counts are loaded with every campaign / ad slot row.
Campaign.placement_count = column_property(
    select(func.count(Placement.id))
    .where(Placement.campaign_id == Campaign.id)
    .correlate_except(Placement)
    .scalar_subquery()
)
AdSlot.placement_count = column_property(
    select(func.count(Placement.id))
    .where(Placement.ad_slot_id == AdSlot.id)
    .correlate_except(Placement)
    .scalar_subquery()
)
