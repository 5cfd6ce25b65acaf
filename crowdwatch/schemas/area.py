from datetime import datetime
from typing import Optional

from pydantic import Field

from crowdwatch.models.enums import AreaStatus
from crowdwatch.schemas.base import CamelModel
from crowdwatch.services.status import area_status, occupancy_pct


class AreaIn(CamelModel):
    name: str = Field(min_length=2, max_length=100)
    capacity: int = Field(ge=1)
    threshold: int = Field(ge=1)
    event_id: Optional[int] = None


class AreaOut(CamelModel):
    id: int
    name: str
    event_id: Optional[int] = None
    capacity: int
    threshold: int
    current_count: int
    status: AreaStatus
    occupancy_pct: float
    updated_at: Optional[datetime] = None

    @classmethod
    def from_area(cls, area) -> "AreaOut":
        """Build from an Area model or an AreaSnapshot; status and occupancy are derived here."""
        return cls(
            id=area.id,
            name=area.name,
            event_id=area.event_id,
            capacity=area.capacity,
            threshold=area.threshold,
            current_count=area.current_count,
            status=area_status(area.current_count, area.threshold, area.capacity),
            occupancy_pct=round(occupancy_pct(area.current_count, area.capacity), 1),
            updated_at=getattr(area, "updated_at", None),
        )
