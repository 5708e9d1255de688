"""Enumerations shared by ORM models and API schemas."""

from enum import Enum


class CampaignStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"


class AdSlotType(str, Enum):
    DISPLAY = "DISPLAY"
    VIDEO = "VIDEO"
    NATIVE = "NATIVE"
    NEWSLETTER = "NEWSLETTER"
    PODCAST = "PODCAST"


class PlacementStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
