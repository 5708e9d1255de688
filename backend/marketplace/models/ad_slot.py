"""Ad slot model: bookable inventory offered by a publisher."""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text, true
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace.models.base import Base, new_id, utcnow
from marketplace.models.enums import AdSlotType
from marketplace.models.publisher import Publisher

if TYPE_CHECKING:
    from marketplace.models.placement import Placement


class AdSlot(Base):
    __tablename__ = "ad_slot"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    # Owner; never changes after creation.
    publisher_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("publisher.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    type: Mapped[AdSlotType] = mapped_column(
        Enum(AdSlotType, native_enum=False, length=16), nullable=False
    )
    position: Mapped[Optional[str]] = mapped_column(String(100))
    width: Mapped[Optional[int]] = mapped_column(Integer)
    height: Mapped[Optional[int]] = mapped_column(Integer)
    base_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, index=True)
    cpm_floor: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    is_available: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    publisher: Mapped[Publisher] = relationship(lazy="raise")
    placements: Mapped[List["Placement"]] = relationship(
        back_populates="ad_slot", lazy="raise", passive_deletes=True
    )
