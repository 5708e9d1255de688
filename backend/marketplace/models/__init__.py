"""ORM model exports for convenient imports elsewhere in the app."""

from marketplace.models.base import Base
from marketplace.models.enums import AdSlotType, CampaignStatus, PlacementStatus
from marketplace.models.user import Session, User
from marketplace.models.sponsor import Sponsor
from marketplace.models.publisher import Publisher
from marketplace.models.campaign import Campaign
from marketplace.models.ad_slot import AdSlot
from marketplace.models.placement import Placement
from marketplace.models.audit_log import AuditLog

__all__ = [
    "Base",
    "AdSlotType",
    "CampaignStatus",
    "PlacementStatus",
    "Session",
    "User",
    "Sponsor",
    "Publisher",
    "Campaign",
    "AdSlot",
    "Placement",
    "AuditLog",
]
