"""Resolved caller identity, passed explicitly to route handlers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Union


@dataclass(frozen=True, slots=True)
class SponsorIdentity:
    user_id: str
    sponsor_id: str
    role: Literal["sponsor"] = "sponsor"

    @property
    def scoped_id(self) -> str:
        return self.sponsor_id


@dataclass(frozen=True, slots=True)
class PublisherIdentity:
    user_id: str
    publisher_id: str
    role: Literal["publisher"] = "publisher"

    @property
    def scoped_id(self) -> str:
        return self.publisher_id


Identity = Union[SponsorIdentity, PublisherIdentity]
