"""Campaign model: a sponsor's advertising effort with budget and targeting."""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace.models.base import Base, new_id, utcnow
from marketplace.models.enums import CampaignStatus
from marketplace.models.sponsor import Sponsor

if TYPE_CHECKING:
    from marketplace.models.placement import Placement


class Campaign(Base):
    __tablename__ = "campaign"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    # Owner; never changes after creation.
    sponsor_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("sponsor.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    budget: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    cpm_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    cpc_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    target_categories: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    target_regions: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[CampaignStatus] = mapped_column(
        Enum(CampaignStatus, native_enum=False, length=16),
        nullable=False,
        default=CampaignStatus.ACTIVE,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    sponsor: Mapped[Sponsor] = relationship(lazy="raise")
    placements: Mapped[List["Placement"]] = relationship(
        back_populates="campaign", lazy="raise", passive_deletes=True
    )
