from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from crowdwatch.models.enums import EventStatus
from crowdwatch.schemas.area import AreaOut
from crowdwatch.schemas.base import CamelModel, to_naive_utc


class EventAreaIn(CamelModel):
    name: str = Field(min_length=2, max_length=100)
    capacity: int = Field(ge=1)
    threshold: int = Field(ge=1)


class EventIn(CamelModel):
    name: str = Field(min_length=2, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    venue: Optional[str] = Field(default=None, max_length=300)
    start_at: datetime
    end_at: Optional[datetime] = None
    areas: List[EventAreaIn] = []

    @field_validator("start_at", "end_at")
    @classmethod
    def _naive_utc(cls, v):
        return to_naive_utc(v)


class EventOut(CamelModel):
    id: int
    name: str
    description: Optional[str]
    venue: Optional[str]
    start_at: datetime
    end_at: Optional[datetime]
    status: EventStatus
    total_areas: int
    total_capacity: int
    total_current_count: int
    occupancy_pct: float
    areas: List[AreaOut]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class GroupedEventsOut(CamelModel):
    live: List[EventOut]
    upcoming: List[EventOut]
    completed: List[EventOut]
