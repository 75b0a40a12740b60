from __future__ import annotations
from enum import Enum
from typing import Optional, List, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

PRICE_SENTINEL = "See tickets"
GENERAL_CATEGORY = "General"
MULTI_DAY = "Multi-Day"
DEFAULT_LOCATION = "Location TBA"


class EventStatus(str, Enum):
    UPCOMING = "UPCOMING"
    CANCELLED = "CANCELLED"
    MOVED = "MOVED"


class GenderSoldOut(str, Enum):
    MALE = "male"
    FEMALE = "female"
    BOTH = "both"
    NONE = "none"


class _Record(BaseModel):
    # persisted documents use camelCase keys
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TicketType(_Record):
    name: str
    price: Optional[float] = None
    availability: Optional[str] = None


class LocationDetails(_Record):
    venue: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    is_online: bool = False
    online_platform: Optional[str] = None


class Event(_Record):
    id: str
    title: str
    date: Optional[str] = None  # canonical zoned timestamp, None when unknown
    end_date: Optional[str] = None
    location: str = DEFAULT_LOCATION
    location_details: Optional[LocationDetails] = None
    source: str = "Other"
    url: str
    image: Optional[str] = None
    price: str = PRICE_SENTINEL
    price_amount: Optional[float] = None
    is_free: bool = False
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    ticket_types: List[TicketType] = Field(default_factory=list)
    description: Optional[str] = None
    categories: List[str] = Field(default_factory=lambda: [GENERAL_CATEGORY])
    status: EventStatus = EventStatus.UPCOMING
    is_sold_out: bool = False
    gender_sold_out: GenderSoldOut = GenderSoldOut.NONE
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    last_updated: Optional[str] = None

    @field_validator("price", mode="before")
    @classmethod
    def _price_never_empty(cls, value):
        if value is None or not str(value).strip():
            return PRICE_SENTINEL
        return value

    @field_validator("categories")
    @classmethod
    def _categories_as_set(cls, value: List[str]) -> List[str]:
        unique: List[str] = []
        for cat in value:
            if cat and cat not in unique:
                unique.append(cat)
        return unique or [GENERAL_CATEGORY]

    @model_validator(mode="after")
    def _sync_is_free(self) -> "Event":
        self.is_free = self.price_amount == 0
        return self


class Enrichment(_Record):
    """Partial view of an event produced by a secondary extraction pass."""

    url: Optional[str] = None
    price: Optional[str] = None
    price_amount: Optional[float] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    ticket_types: List[TicketType] = Field(default_factory=list)
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    full_description: Optional[str] = None
    location_details: Optional[LocationDetails] = None
    is_sold_out: Optional[bool] = None
    gender_sold_out: Optional[GenderSoldOut] = None
    is_recurring: bool = False
    moved: bool = False

    def is_empty(self) -> bool:
        return self == Enrichment(url=self.url)


class RawEvent(_Record):
    """Loosely typed record as handed over by a scraper."""

    url: str
    title: str
    date: Optional[str] = None
    end_date: Optional[str] = None
    price: Optional[Union[float, str]] = None
    price_amount: Optional[float] = None
    location: Optional[str] = None
    location_details: Optional[LocationDetails] = None
    description: Optional[str] = None
    image: Optional[str] = None
    source: str = "Other"
    categories: List[str] = Field(default_factory=list)
